"""
ProjStoreLib - Crop preset persistence

This module stores geometry snapshots as preset files so a crop can be
replayed across sessions.
"""

from BC_Libs.ProjStoreLib.snapshot_store import (
    get_presets_dir,
    list_preset_files,
    load_preset,
    load_preset_data,
    load_preset_expansion,
    load_preset_name,
    sanitize_preset_name,
    save_preset,
)

__all__ = [
    "get_presets_dir",
    "list_preset_files",
    "load_preset",
    "load_preset_data",
    "load_preset_expansion",
    "load_preset_name",
    "sanitize_preset_name",
    "save_preset",
]
