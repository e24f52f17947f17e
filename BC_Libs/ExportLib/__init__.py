"""
ExportLib - Encoding and saving of crop outputs

This module provides the export encoder (JPEG/PNG/PDF byte streams and output
naming) and the single-item and sequential save-all drivers.
"""

from BC_Libs.ExportLib.export_encoder import (
    EncodeError,
    ExportArtifact,
    ExportFormat,
    build_output_name,
    encode_artifact,
    encode_surface,
    resolve_format,
)
from BC_Libs.ExportLib.download_driver import (
    resolve_output_path,
    save_all,
    save_item,
    write_artifact,
)

__all__ = [
    "EncodeError",
    "ExportArtifact",
    "ExportFormat",
    "build_output_name",
    "encode_artifact",
    "encode_surface",
    "resolve_format",
    "resolve_output_path",
    "save_all",
    "save_item",
    "write_artifact",
]
