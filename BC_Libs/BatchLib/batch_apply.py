"""
Batch apply engine for Bulk Crop.

Applies one reference GeometrySnapshot to every gallery item. Because the
snapshot is normalized, each item gets its own pixel rect computed from its
own native size: a centered 50% crop stays a centered 50% crop on a
4000x3000 photo and on a 640x480 screenshot alike.

Items are processed strictly one after another, so at most one decoded source
bitmap is alive at a time. A failing item is reported and skipped; its
previously committed output is left untouched.

Classes:
    BatchApplyEngine: Sequential decode -> render -> encode over gallery items
"""

import asyncio
import logging
from typing import Callable, List, Optional, Union

from BC_Libs.BatchLib.gallery_models import (
    STAGE_DECODE,
    STAGE_ENCODE,
    STAGE_RENDER,
    BatchReport,
    GalleryItem,
    ItemError,
)
from BC_Libs.config import CropEngineConfig
from BC_Libs.ExportLib.export_encoder import (
    EncodeError,
    ExportFormat,
    encode_artifact,
    resolve_format,
)
from BC_Libs.GeometryLib.geometry_model import to_pixel_rect
from BC_Libs.GeometryLib.geometry_models import GeometrySnapshot, PixelRect, Placement
from BC_Libs.ImageLib.image_handle import DecodeError, ImageHandle
from BC_Libs.ImageLib.render_pipeline import ExpansionOptions, RenderError, render_item

logger = logging.getLogger(__name__)

PlacementFactory = Callable[[ImageHandle, PixelRect], Placement]

_STAGE_BY_ERROR = (
    (DecodeError, STAGE_DECODE),
    (RenderError, STAGE_RENDER),
    (EncodeError, STAGE_ENCODE),
)


class BatchApplyEngine:
    """
    Applies a geometry snapshot across gallery items.

    Example:
        >>> engine = BatchApplyEngine(on_progress=lambda cur, total, name: print(cur, total))
        >>> report = await engine.apply(session.snapshot, gallery, reference_item_id=current.id)
    """

    def __init__(
        self,
        config: Optional[CropEngineConfig] = None,
        on_progress: Optional[Callable[[int, int, str], None]] = None,
        on_item_complete: Optional[Callable[[GalleryItem], None]] = None,
        on_error: Optional[Callable[[GalleryItem, ItemError], None]] = None,
    ):
        """
        Initialize the engine.

        Args:
            config: Engine configuration (export format, quality, prefix, delay)
            on_progress: Callback for progress updates (current, total, item name)
            on_item_complete: Callback when an item was committed
            on_error: Callback when an item failed
        """
        self.config = config or CropEngineConfig()
        self.export_format: ExportFormat = resolve_format(self.config.export_format)
        self._on_progress = on_progress
        self._on_item_complete = on_item_complete
        self._on_error = on_error
        self._cancelled = False

    def cancel(self) -> None:
        """Stop after the item currently being processed."""
        self._cancelled = True

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    async def process_item(
        self,
        item: GalleryItem,
        snapshot: GeometrySnapshot,
        expansion: Optional[ExpansionOptions] = None,
        placement: Union[Placement, PlacementFactory, None] = None,
    ) -> None:
        """
        Decode, render and encode one item, then store the result on it.

        The item's saved snapshot, output bitmap and artifact change only when
        every stage succeeds.

        Args:
            item: Gallery item to commit
            snapshot: Geometry to apply (normalized, so valid for any image size)
            expansion: Canvas expansion options
            placement: Fixed Placement, or a callable (handle, pixel_rect) -> Placement

        Raises:
            DecodeError: If the source cannot be decoded
            RenderError: If rendering fails
            EncodeError: If encoding fails
        """
        margin = expansion.frame_margin if expansion is not None else 0.0
        pixel_rect = to_pixel_rect(snapshot.rect, item.handle, margin)
        if callable(placement):
            placement = placement(item.handle, pixel_rect)

        bitmap = await render_item(
            item.handle, pixel_rect, snapshot.rotation, expansion, placement
        )
        artifact = await encode_artifact(
            bitmap,
            item.name,
            self.export_format,
            self.config.jpeg_quality,
            self.config.output_prefix,
        )
        item.store_output(snapshot, bitmap, artifact)

    async def apply(
        self,
        reference: GeometrySnapshot,
        items: List[GalleryItem],
        expansion: Optional[ExpansionOptions] = None,
        reference_item_id: Optional[str] = None,
        placement: Optional[PlacementFactory] = None,
    ) -> BatchReport:
        """
        Apply ``reference`` to every item except ``reference_item_id``.

        Args:
            reference: Snapshot taken from the item being edited
            items: Gallery items
            expansion: Canvas expansion options shared by all items
            reference_item_id: Item the snapshot came from (skipped)
            placement: Optional per-item placement factory

        Returns:
            BatchReport with one ItemError per failed item
        """
        if not isinstance(reference, GeometrySnapshot):
            raise TypeError(f"Expected GeometrySnapshot, got {type(reference)}")

        targets = [item for item in items if item.id != reference_item_id]
        total = len(targets)
        report = BatchReport()
        self._cancelled = False

        logger.info(f"Applying crop to {total} items")

        for index, item in enumerate(targets):
            if self._cancelled:
                logger.info(f"Batch cancelled after {report.processed} of {total} items")
                break

            if index > 0 and self.config.batch_item_delay:
                await asyncio.sleep(self.config.batch_item_delay)

            try:
                await self.process_item(item, reference, expansion, placement)
            except (DecodeError, RenderError, EncodeError) as e:
                error = report.record_error(item.id, self._stage_of(e), str(e))
                logger.warning(f"Failed to apply crop to {item.name} ({error.stage}): {str(e)}")
                if self._on_error:
                    self._on_error(item, error)
            else:
                report.record_success()
                logger.debug(f"Applied crop to {item.name}")
                if self._on_item_complete:
                    self._on_item_complete(item)

            if self._on_progress:
                self._on_progress(index + 1, total, item.name)

        logger.info(f"Batch finished: {report.summary()}")
        return report

    @staticmethod
    def _stage_of(error: Exception) -> str:
        for error_type, stage in _STAGE_BY_ERROR:
            if isinstance(error, error_type):
                return stage
        return STAGE_RENDER

