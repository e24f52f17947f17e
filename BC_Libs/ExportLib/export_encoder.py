"""
Export encoding for Bulk Crop.

Turns rendered surfaces into named byte streams.

Formats:
- JPEG: alpha is flattened onto the matte color, quality is configurable
- PNG: lossless, alpha preserved
- PDF: single page containing the image at its pixel size

Output names follow ``<prefix>-<base name>.<ext>``, where the base name is the
original file name without its extension.

Classes:
    ExportFormat: Supported output formats with MIME type and extension
    ExportArtifact: Encoded output ready to be saved or downloaded
    EncodeError: Surface could not be encoded

Functions:
    resolve_format: Parse a format name into an ExportFormat
    encode_surface: Encode a PIL Image into bytes
    build_output_name: Build the output filename for an original name
    encode_artifact: Encode a surface into a named artifact off the event loop
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from io import BytesIO
from pathlib import Path
from typing import Any, Union

from PIL import Image

from BC_Libs.constants import (
    DEFAULT_JPEG_QUALITY,
    MATTE_COLOR,
    OUTPUT_FILE_PREFIX,
    PDF_RESOLUTION,
)

logger = logging.getLogger(__name__)


class EncodeError(OSError):
    """Raised when a surface cannot be encoded or encodes to nothing."""


class ExportFormat(Enum):
    """Output format: (Pillow format name, MIME type, file extension)."""
    JPEG = ("JPEG", "image/jpeg", "jpg")
    PNG = ("PNG", "image/png", "png")
    PDF = ("PDF", "application/pdf", "pdf")

    @property
    def pil_format(self) -> str:
        return self.value[0]

    @property
    def mime_type(self) -> str:
        return self.value[1]

    @property
    def extension(self) -> str:
        return self.value[2]


_FORMAT_ALIASES = {
    "jpeg": ExportFormat.JPEG,
    "jpg": ExportFormat.JPEG,
    "png": ExportFormat.PNG,
    "pdf": ExportFormat.PDF,
}


def resolve_format(fmt: Union[str, ExportFormat]) -> ExportFormat:
    """
    Parse a format name ('jpeg', 'JPG', 'png', 'pdf') or pass an ExportFormat through.

    Raises:
        ValueError: If the format is unknown
    """
    if isinstance(fmt, ExportFormat):
        return fmt

    key = str(fmt).lower().lstrip(".")
    if key not in _FORMAT_ALIASES:
        raise ValueError(
            f"Unknown export format: {fmt}. Valid formats: {', '.join(sorted(_FORMAT_ALIASES))}"
        )
    return _FORMAT_ALIASES[key]


@dataclass(frozen=True)
class ExportArtifact:
    """Encoded output.

    Attributes:
        filename: Output file name (no directory)
        mime_type: MIME type of ``data``
        data: Encoded bytes
    """
    filename: str
    mime_type: str
    data: bytes = field(repr=False)

    @property
    def size(self) -> int:
        return len(self.data)


def _flatten(surface: Any, matte=MATTE_COLOR) -> Any:
    """Composite any alpha onto ``matte`` and return an RGB image."""
    if surface.mode == "P":
        surface = surface.convert("RGBA")

    if surface.mode in ("RGBA", "LA"):
        rgba = surface.convert("RGBA")
        flat = Image.new("RGB", rgba.size, tuple(matte))
        flat.paste(rgba, mask=rgba.getchannel("A"))
        return flat

    if surface.mode != "RGB":
        return surface.convert("RGB")
    return surface


def encode_surface(
    surface: Any,
    fmt: Union[str, ExportFormat] = ExportFormat.JPEG,
    quality: int = DEFAULT_JPEG_QUALITY,
) -> bytes:
    """
    Encode a surface.

    Args:
        surface: PIL Image to encode
        fmt: Output format
        quality: JPEG quality 1-100 (clamped)

    Returns:
        Encoded bytes

    Raises:
        TypeError: If surface is not a PIL Image
        ValueError: If the format is unknown
        EncodeError: If Pillow fails or produces no data
    """
    if not hasattr(surface, "save") or not hasattr(surface, "mode"):
        raise TypeError(f"Expected PIL Image, got {type(surface)}")

    export_format = resolve_format(fmt)
    kwargs = {"format": export_format.pil_format}

    if export_format is ExportFormat.JPEG:
        image = _flatten(surface)
        kwargs["quality"] = max(1, min(100, int(quality)))
    elif export_format is ExportFormat.PDF:
        image = _flatten(surface)
        kwargs["resolution"] = PDF_RESOLUTION
    else:
        image = surface

    buffer = BytesIO()
    try:
        image.save(buffer, **kwargs)
    except (OSError, ValueError, KeyError) as e:
        raise EncodeError(f"Failed to encode {export_format.pil_format}: {str(e)}") from e

    data = buffer.getvalue()
    if not data:
        raise EncodeError(f"Encoding {export_format.pil_format} produced no data")
    return data


def build_output_name(
    prefix: str,
    original_name: str,
    ext: Union[str, ExportFormat],
) -> str:
    """
    Build ``<prefix>-<base>.<ext>``.

    Args:
        prefix: Filename prefix (empty prefix drops the dash)
        original_name: Original file name, with or without directories
        ext: Extension ('jpg', '.png') or an ExportFormat

    Returns:
        Output filename

    Examples:
        >>> build_output_name("cropped", "holiday.photo.jpeg", "png")
        'cropped-holiday.photo.png'
    """
    if isinstance(ext, ExportFormat):
        ext = ext.extension
    ext = str(ext).lstrip(".")

    base = Path(str(original_name).replace("\\", "/")).stem or "image"
    if prefix:
        return f"{prefix}-{base}.{ext}"
    return f"{base}.{ext}"


async def encode_artifact(
    surface: Any,
    original_name: str,
    fmt: Union[str, ExportFormat] = ExportFormat.JPEG,
    quality: int = DEFAULT_JPEG_QUALITY,
    prefix: str = OUTPUT_FILE_PREFIX,
) -> ExportArtifact:
    """
    Encode ``surface`` in a worker thread and name it after ``original_name``.

    Raises:
        EncodeError: If encoding fails
    """
    export_format = resolve_format(fmt)
    data = await asyncio.to_thread(encode_surface, surface, export_format, quality)
    filename = build_output_name(prefix, original_name, export_format)
    logger.debug(f"Encoded {filename} ({len(data)} bytes)")
    return ExportArtifact(filename=filename, mime_type=export_format.mime_type, data=data)
