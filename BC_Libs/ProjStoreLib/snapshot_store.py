"""
Crop preset storage for Bulk Crop.

A preset is a saved GeometrySnapshot (plus the expansion settings that were
active) written as JSON in the .bcrop format, so one crop can be replayed on
later batches.

The preset file schema includes:
- Preset metadata (name, creation date, schema version)
- The snapshot in the geometry exchange format:
  {"rect": {"x", "y", "width", "height"}, "aspect": number|null, "rotation": number}
- Expansion settings (without any custom background image)

Functions:
    sanitize_preset_name: Turn a display name into a safe file stem
    get_presets_dir: Presets directory under a base directory
    list_preset_files: List all preset files
    save_preset: Write a snapshot to a new preset file
    load_preset_data: Load and validate the complete preset payload
    load_preset: Load the snapshot of a preset file
    load_preset_name: Load just the preset name
    load_preset_expansion: Load the expansion settings of a preset file
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from BC_Libs.constants import (
    FIELD_CREATED_AT,
    FIELD_EXPANSION,
    FIELD_NAME,
    FIELD_SCHEMA_VERSION,
    FIELD_SNAPSHOT,
    FILENAME_REPLACEMENT_CHAR,
    PRESET_EXTENSION,
    PRESETS_DIR_NAME,
    SAFE_FILENAME_CHARS,
    SCHEMA_VERSION,
)
from BC_Libs.GeometryLib.geometry_models import GeometrySnapshot
from BC_Libs.ImageLib.render_pipeline import ExpansionOptions

logger = logging.getLogger(__name__)

DEFAULT_PRESET_STEM = "new_preset"


def sanitize_preset_name(name: str) -> str:
    """Keep alphanumerics and safe characters, replace the rest."""
    safe_name = "".join(
        c if c.isalnum() or c in SAFE_FILENAME_CHARS else FILENAME_REPLACEMENT_CHAR
        for c in name
    ).strip(FILENAME_REPLACEMENT_CHAR)
    return safe_name or DEFAULT_PRESET_STEM


def get_presets_dir(base_dir: Path) -> Path:
    presets_dir = Path(base_dir) / PRESETS_DIR_NAME
    presets_dir.mkdir(parents=True, exist_ok=True)
    return presets_dir


def list_preset_files(base_dir: Path) -> List[Path]:
    presets_dir = get_presets_dir(base_dir)
    return sorted(presets_dir.glob(f"*{PRESET_EXTENSION}"))


def save_preset(
    base_dir: Path,
    name: str,
    snapshot: GeometrySnapshot,
    expansion: Optional[ExpansionOptions] = None,
    overwrite: bool = False,
) -> Path:
    """
    Save a snapshot as a preset file.

    Args:
        base_dir: Base directory containing the Presets folder
        name: Human-readable preset name
        snapshot: Geometry to store
        expansion: Expansion settings to store alongside (optional)
        overwrite: Replace a preset with the same file name instead of
                   picking a numbered one

    Returns:
        Path to the written preset file

    Raises:
        TypeError: If snapshot is not a GeometrySnapshot
    """
    if not isinstance(snapshot, GeometrySnapshot):
        raise TypeError(f"Expected GeometrySnapshot, got {type(snapshot)}")

    presets_dir = get_presets_dir(base_dir)
    safe_name = sanitize_preset_name(name)

    preset_path = presets_dir / f"{safe_name}{PRESET_EXTENSION}"
    counter = 1
    while preset_path.exists() and not overwrite:
        preset_path = presets_dir / f"{safe_name}_{counter}{PRESET_EXTENSION}"
        counter += 1

    payload: Dict[str, Any] = {
        FIELD_SCHEMA_VERSION: SCHEMA_VERSION,
        FIELD_NAME: name,
        FIELD_CREATED_AT: datetime.now().isoformat(timespec="seconds"),
        FIELD_SNAPSHOT: snapshot.to_dict(),
        FIELD_EXPANSION: expansion.to_dict() if expansion is not None else None,
    }

    preset_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    logger.info(f"Saved preset '{name}' to {preset_path}")
    return preset_path


def load_preset_data(preset_path: Path) -> Dict[str, Any]:
    """
    Load a preset payload and validate its snapshot.

    Args:
        preset_path: Path to the preset file

    Returns:
        Payload dict; ``payload["snapshot"]`` is a GeometrySnapshot

    Raises:
        OSError: If the file cannot be read
        ValueError: If the file is not valid JSON, uses a newer schema,
                    or holds an invalid snapshot
    """
    preset_path = Path(preset_path)
    try:
        payload = json.loads(preset_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValueError(f"Preset {preset_path.name} is not valid JSON: {str(e)}") from e

    if not isinstance(payload, dict):
        raise ValueError(f"Preset {preset_path.name} must contain a JSON object")

    version = payload.get(FIELD_SCHEMA_VERSION, SCHEMA_VERSION)
    if not isinstance(version, int) or version > SCHEMA_VERSION:
        raise ValueError(
            f"Preset {preset_path.name} uses unsupported schema version {version!r}"
        )

    try:
        payload[FIELD_SNAPSHOT] = GeometrySnapshot.from_dict(payload.get(FIELD_SNAPSHOT))
    except TypeError as e:
        raise ValueError(f"Preset {preset_path.name} holds an invalid snapshot: {str(e)}") from e
    payload.setdefault(FIELD_NAME, preset_path.stem)
    payload.setdefault(FIELD_EXPANSION, None)
    return payload


def load_preset(preset_path: Path) -> GeometrySnapshot:
    """Load the snapshot stored in a preset file."""
    return load_preset_data(preset_path)[FIELD_SNAPSHOT]


def load_preset_name(preset_path: Path) -> str:
    """
    Load the preset name from a preset file.

    Returns:
        The preset name, or the filename stem if loading fails
    """
    preset_path = Path(preset_path)
    try:
        payload = json.loads(preset_path.read_text(encoding="utf-8"))
    except (FileNotFoundError, json.JSONDecodeError, OSError):
        return preset_path.stem

    if not isinstance(payload, dict):
        return preset_path.stem
    return str(payload.get(FIELD_NAME) or preset_path.stem)


def load_preset_expansion(
    preset_path: Path,
    custom_image: Optional[Any] = None,
) -> Optional[ExpansionOptions]:
    """
    Load the expansion settings of a preset file.

    Custom background images are not stored in presets. Pass the image to
    use for a preset saved in custom_image mode; without one that mode is
    loaded disabled.

    Returns:
        ExpansionOptions, or None if the preset stored none

    Raises:
        ValueError: If the file or its expansion settings are invalid
    """
    data = load_preset_data(preset_path).get(FIELD_EXPANSION)
    if not isinstance(data, dict):
        return None
    try:
        return ExpansionOptions.from_dict(data, custom_image)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid expansion settings in {preset_path.name}: {str(e)}") from e
