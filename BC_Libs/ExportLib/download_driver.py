"""
Save drivers for Bulk Crop.

save_item writes one gallery item. save_all writes every gallery item to an
output directory, one at a time, with a short pause between files. Items that were cropped are written from their stored
artifact; items without a crop are re-encoded from their source so every
gallery image produces exactly one output file.

Security:
    Output names are validated so a crafted original file name cannot escape
    the output directory. Existing files are never replaced unless
    ``overwrite`` is set.

Functions:
    resolve_output_path: Validate an output filename against the output directory
    write_artifact: Write one artifact to disk
    save_item: Save a single item
    save_all: Save every item sequentially and report per-item failures
"""

import asyncio
import logging
from pathlib import Path
from typing import Callable, List, Optional, Union

from BC_Libs.BatchLib.gallery_models import (
    STAGE_DECODE,
    STAGE_ENCODE,
    STAGE_SAVE,
    BatchReport,
    GalleryItem,
)
from BC_Libs.constants import (
    DEFAULT_JPEG_QUALITY,
    DOWNLOAD_DELAY_SECONDS,
    OUTPUT_FILE_PREFIX,
)
from BC_Libs.ExportLib.export_encoder import (
    EncodeError,
    ExportArtifact,
    ExportFormat,
    encode_artifact,
)
from BC_Libs.ImageLib.image_handle import DecodeError, decode_bitmap

logger = logging.getLogger(__name__)


def resolve_output_path(output_dir: Path, filename: str) -> Path:
    """
    Resolve ``filename`` inside ``output_dir``.

    Args:
        output_dir: Directory outputs are restricted to
        filename: Bare output file name

    Returns:
        Resolved absolute path inside ``output_dir``

    Raises:
        ValueError: If the name contains directory components or traversal
                    sequences, or resolves outside ``output_dir``
    """
    name = Path(filename)
    if not filename or len(name.parts) != 1 or name.is_absolute() or ".." in name.parts:
        raise ValueError(f"Path traversal detected in output filename: {filename!r}")

    base_dir = Path(output_dir).resolve()
    resolved = (base_dir / name).resolve()
    try:
        resolved.relative_to(base_dir)
    except ValueError:
        raise ValueError(
            f"Security: output filename '{filename}' resolves to '{resolved}' "
            f"which is outside the output directory '{base_dir}'"
        )
    return resolved


def write_artifact(artifact: ExportArtifact, output_dir: Path, overwrite: bool = False) -> Path:
    """
    Write one artifact.

    Returns:
        Path that was written

    Raises:
        ValueError: If the name is unsafe, or the file exists and overwrite=False
        OSError: If the file cannot be written
    """
    output_file = resolve_output_path(output_dir, artifact.filename)

    if output_file.exists() and not overwrite:
        raise ValueError(
            f"Output file already exists: {output_file}. "
            f"Set overwrite=True to replace."
        )

    try:
        output_file.write_bytes(artifact.data)
    except OSError as e:
        raise OSError(f"Failed to write {output_file}: {str(e)}") from e

    return output_file


async def _artifact_for(
    item: GalleryItem,
    fmt: ExportFormat,
    prefix: str,
    quality: int,
) -> ExportArtifact:
    if item.output_artifact is not None:
        return item.output_artifact

    image = await decode_bitmap(item.handle)
    return await encode_artifact(image, item.name, fmt, quality, prefix)


async def save_item(
    item: GalleryItem,
    output_dir: Union[str, Path],
    fmt: Union[str, ExportFormat] = ExportFormat.JPEG,
    prefix: str = OUTPUT_FILE_PREFIX,
    overwrite: bool = False,
    quality: int = DEFAULT_JPEG_QUALITY,
) -> Path:
    """
    Save one item: its stored artifact, or a re-encode of its source.

    Returns:
        Path that was written

    Raises:
        DecodeError: If an uncropped item's source cannot be decoded
        EncodeError: If re-encoding fails
        ValueError: If the name is unsafe, or the file exists and overwrite=False
        OSError: If the file cannot be written
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    artifact = await _artifact_for(item, fmt, prefix, quality)
    path = await asyncio.to_thread(write_artifact, artifact, output_dir, overwrite)
    logger.info(f"Saved {item.name} -> {path}")
    return path


async def save_all(
    items: List[GalleryItem],
    output_dir: Union[str, Path],
    fmt: Union[str, ExportFormat] = ExportFormat.JPEG,
    prefix: str = OUTPUT_FILE_PREFIX,
    delay: float = DOWNLOAD_DELAY_SECONDS,
    overwrite: bool = False,
    quality: int = DEFAULT_JPEG_QUALITY,
    on_saved: Optional[Callable[[GalleryItem, Path], None]] = None,
) -> BatchReport:
    """
    Save every item to ``output_dir`` in order.

    Each item is written before the next one starts; ``delay`` seconds pass
    between consecutive writes. A failing item is recorded in the report and
    does not stop the run.

    Args:
        items: Gallery items to save
        output_dir: Target directory (created if missing)
        fmt: Format used for items that have no stored artifact
        prefix: Filename prefix for re-encoded items
        delay: Pause between files in seconds
        overwrite: Replace existing files
        quality: JPEG quality for re-encoded items
        on_saved: Called with (item, path) after each successful write

    Returns:
        BatchReport with per-item failures
    """
    if delay < 0:
        raise ValueError(f"delay must be >= 0, got {delay}")

    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    report = BatchReport()
    for index, item in enumerate(items):
        if index > 0 and delay:
            await asyncio.sleep(delay)

        try:
            artifact = await _artifact_for(item, fmt, prefix, quality)
        except DecodeError as e:
            report.record_error(item.id, STAGE_DECODE, str(e))
            logger.warning(f"Skipping {item.name}: {str(e)}")
            continue
        except EncodeError as e:
            report.record_error(item.id, STAGE_ENCODE, str(e))
            logger.warning(f"Skipping {item.name}: {str(e)}")
            continue

        try:
            path = await asyncio.to_thread(write_artifact, artifact, output_dir, overwrite)
        except (ValueError, OSError) as e:
            report.record_error(item.id, STAGE_SAVE, str(e))
            logger.warning(f"Failed to save {item.name}: {str(e)}")
            continue

        report.record_success()
        logger.debug(f"Saved {item.name} -> {path}")
        if on_saved:
            on_saved(item, path)

    logger.info(f"Save all finished: {report.summary()}")
    return report
