"""
Editor session for Bulk Crop.

An EditorSession holds the editing state of exactly one gallery item at a
time: the current geometry, the zoom/pan viewport and the undo history. The
history starts with the item's saved snapshot (or the default snapshot when
the item was never cropped), so undo never goes past the state the session
opened with.

Lifecycle:
    open(item)        -> fresh history and fitted viewport
    preview_rect(...) -> live drag frame, not recorded
    set_rect(...)     -> confirmed edit, recorded in history
    switch_to(item)   -> saves the outgoing snapshot onto the outgoing item
    commit()          -> render + encode, stored on the item on success
    close()           -> discard everything, the item is left as it was
    remove_item(...)  -> drop an item from the gallery, closing it if open

Classes:
    EditorSession: Editing state of one gallery item
"""

import logging
from typing import List, Optional, Tuple

from BC_Libs.BatchLib.batch_apply import BatchApplyEngine, PlacementFactory
from BC_Libs.BatchLib.gallery_models import BatchReport, GalleryItem
from BC_Libs.config import CropEngineConfig
from BC_Libs.constants import ASPECT_PRESET_ORIGINAL, ASPECT_PRESETS
from BC_Libs.ExportLib.export_encoder import ExportArtifact
from BC_Libs.GeometryLib.geometry_model import (
    clamp_rect,
    constrain_to_aspect,
    default_snapshot,
    rect_for_aspect,
    reframe_rect,
    to_pixel_rect,
)
from BC_Libs.GeometryLib.geometry_models import (
    AspectConstraint,
    GeometrySnapshot,
    NormalizedRect,
    PixelRect,
)
from BC_Libs.GeometryLib.history_stack import HistoryStack
from BC_Libs.GeometryLib.zoom_pan_controller import ZoomPanController
from BC_Libs.ImageLib.render_pipeline import ExpansionOptions

logger = logging.getLogger(__name__)


class SessionClosedError(RuntimeError):
    """Raised when an editing operation is attempted with no open item."""


class EditorSession:
    """
    Editing state for one gallery item.

    Attributes:
        config: Engine configuration
        viewport: Zoom/pan state of the editor canvas
        expansion: Canvas expansion options used on commit
        placement_factory: Optional (handle, pixel_rect) -> Placement set by the view
        engine: BatchApplyEngine used for commit and apply-to-all
    """

    def __init__(
        self,
        config: Optional[CropEngineConfig] = None,
        engine: Optional[BatchApplyEngine] = None,
    ):
        self.config = config or CropEngineConfig()
        self.viewport = ZoomPanController(self.config)
        self._expansion = ExpansionOptions()
        self.placement_factory: Optional[PlacementFactory] = None
        self.engine = engine or BatchApplyEngine(self.config)

        self.item: Optional[GalleryItem] = None
        self.history: Optional[HistoryStack] = None
        self._preview: Optional[NormalizedRect] = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def is_open(self) -> bool:
        return self.item is not None

    def _require_open(self) -> None:
        if self.item is None or self.history is None:
            raise SessionClosedError("No item is open in the editor")

    @property
    def snapshot(self) -> GeometrySnapshot:
        """Last confirmed geometry."""
        self._require_open()
        return self.history.current

    @property
    def rect(self) -> NormalizedRect:
        """Rect to draw: the drag preview if one is active, otherwise the confirmed rect."""
        if self._preview is not None:
            return self._preview
        return self.snapshot.rect

    @property
    def expansion(self) -> ExpansionOptions:
        return self._expansion

    @expansion.setter
    def expansion(self, options: ExpansionOptions) -> None:
        self.set_expansion(options)

    @property
    def frame_margin(self) -> float:
        """Margin of the frame the selection is measured against."""
        return self._expansion.frame_margin

    @property
    def aspect(self) -> AspectConstraint:
        return self.snapshot.aspect

    @property
    def rotation(self) -> int:
        return self.snapshot.rotation

    @property
    def image_aspect(self) -> float:
        self._require_open()
        return self.item.handle.native_aspect

    def pixel_rect(self) -> PixelRect:
        """Current rect in the open item's source pixels."""
        self._require_open()
        return to_pixel_rect(self.rect, self.item.handle, self.frame_margin)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def open(
        self,
        item: GalleryItem,
        viewport_size: Optional[Tuple[float, float]] = None,
    ) -> GeometrySnapshot:
        """
        Start editing ``item``.

        Args:
            item: Gallery item to edit
            viewport_size: Canvas size used to fit the image (optional)

        Returns:
            The snapshot the session starts from
        """
        initial = item.saved_snapshot
        if initial is None:
            initial = default_snapshot(item.handle, config=self.config)
            initial = initial.with_rect(reframe_rect(initial.rect, 0.0, self.frame_margin))

        self.item = item
        self.history = HistoryStack(initial, self.config.history_capacity)
        self._preview = None
        self.viewport.cancel_gesture()
        if viewport_size is not None:
            self.viewport.fit_to_viewport(item.handle, viewport_size)

        logger.debug(f"Opened {item.name} with {initial.to_dict()}")
        return initial

    def switch_to(
        self,
        item: GalleryItem,
        viewport_size: Optional[Tuple[float, float]] = None,
    ) -> GeometrySnapshot:
        """Save the current snapshot onto the outgoing item, then open ``item``."""
        if self.item is not None and self.history is not None:
            self.item.saved_snapshot = self.history.current
            logger.debug(f"Saved snapshot of {self.item.name} before switching")
        return self.open(item, viewport_size)

    def close(self) -> None:
        """Discard session state. The item keeps whatever it had before opening."""
        if self.item is not None:
            logger.debug(f"Closed editor for {self.item.name}")
        self.item = None
        self.history = None
        self._preview = None
        self.viewport.cancel_gesture()

    def remove_item(self, items: List[GalleryItem], item_id: str) -> Optional[GalleryItem]:
        """
        Remove an item from the gallery list in place.

        The session is closed first when the removed item is the open one, so
        nothing is written back onto it. The item's rendered output is released.

        Returns:
            The removed item, or None when no item has ``item_id``
        """
        for index, item in enumerate(items):
            if item.id == item_id:
                break
        else:
            return None

        if self.item is not None and self.item.id == item_id:
            self.close()
        removed = items.pop(index)
        removed.clear_output()
        logger.info(f"Removed {removed.name} from the gallery")
        return removed

    def clear_all(self, items: List[GalleryItem]) -> int:
        """Close the session and empty the gallery list. Returns how many items were dropped."""
        self.close()
        count = len(items)
        for item in items:
            item.clear_output()
        items.clear()
        logger.info(f"Cleared {count} items from the gallery")
        return count

    # ------------------------------------------------------------------
    # Geometry edits
    # ------------------------------------------------------------------

    def _default_rect(self, aspect: AspectConstraint, item: GalleryItem) -> NormalizedRect:
        rect = rect_for_aspect(aspect, item.handle, self.config)
        return reframe_rect(rect, 0.0, self.frame_margin)

    def _push(self, snapshot: GeometrySnapshot) -> GeometrySnapshot:
        self._preview = None
        self.history.push(snapshot)
        return self.history.current

    def set_aspect(self, aspect: AspectConstraint) -> GeometrySnapshot:
        """Select an aspect ratio and reset the rect to its default for that ratio."""
        self._require_open()
        rect = self._default_rect(aspect, self.item)
        return self._push(GeometrySnapshot(rect=rect, aspect=aspect, rotation=self.rotation))

    def set_aspect_preset(self, key: str) -> GeometrySnapshot:
        """
        Select an aspect by preset key ('1:1', '16:9', '9:16', 'free', 'original').

        Raises:
            ValueError: If the key is unknown
        """
        self._require_open()
        if key == ASPECT_PRESET_ORIGINAL:
            return self.set_aspect(self.item.handle.native_aspect)
        if key not in ASPECT_PRESETS:
            raise ValueError(f"Unknown aspect preset: {key}")
        return self.set_aspect(ASPECT_PRESETS[key][0])

    def _fit_rect(self, x: float, y: float, width: float, height: float) -> NormalizedRect:
        rect = clamp_rect(x, y, width, height)
        return constrain_to_aspect(rect, self.aspect, self.image_aspect)

    def preview_rect(self, x: float, y: float, width: float, height: float) -> NormalizedRect:
        """Update the live drag frame without recording history."""
        self._require_open()
        self._preview = self._fit_rect(x, y, width, height)
        return self._preview

    def set_rect(self, x: float, y: float, width: float, height: float) -> GeometrySnapshot:
        """Confirm a rect (end of a drag) and record it."""
        self._require_open()
        rect = self._fit_rect(x, y, width, height)
        return self._push(self.snapshot.with_rect(rect))

    def confirm_preview(self) -> GeometrySnapshot:
        """Record the active drag frame, if any."""
        self._require_open()
        if self._preview is None:
            return self.snapshot
        return self._push(self.snapshot.with_rect(self._preview))

    def cancel_preview(self) -> None:
        self._preview = None

    def load_snapshot(self, snapshot: GeometrySnapshot) -> GeometrySnapshot:
        """Replace the geometry with a stored snapshot (e.g. a preset) as one history entry."""
        self._require_open()
        if not isinstance(snapshot, GeometrySnapshot):
            raise TypeError(f"Expected GeometrySnapshot, got {type(snapshot)}")
        return self._push(snapshot)

    def set_expansion(self, options: ExpansionOptions) -> None:
        """
        Replace the canvas expansion options.

        When the selection frame changes (expansion toggled or its margin
        edited) the open selection is re-expressed in the new frame so it
        keeps covering the same pixels. History restarts from there because
        older entries were measured against the old frame.
        """
        if not isinstance(options, ExpansionOptions):
            raise TypeError(f"Expected ExpansionOptions, got {type(options)}")

        previous_margin = self._expansion.frame_margin
        self._expansion = options
        if self.history is None or previous_margin == options.frame_margin:
            return

        current = self.history.current
        rect = reframe_rect(current.rect, previous_margin, options.frame_margin)
        rect = constrain_to_aspect(rect, current.aspect, self.image_aspect)
        self._preview = None
        self.history.reset(current.with_rect(rect))
        logger.debug(f"Selection frame margin {previous_margin} -> {options.frame_margin}")

    def set_rotation(self, degrees: float) -> GeometrySnapshot:
        self._require_open()
        return self._push(self.snapshot.with_rotation(degrees))

    def rotate_by(self, delta: float) -> GeometrySnapshot:
        self._require_open()
        return self.set_rotation(self.rotation + delta)

    def reset(self) -> GeometrySnapshot:
        """Back to the default geometry for the current aspect (recorded)."""
        self._require_open()
        rect = self._default_rect(self.aspect, self.item)
        return self._push(GeometrySnapshot(rect=rect, aspect=self.aspect, rotation=0))

    def undo(self) -> Optional[GeometrySnapshot]:
        self._require_open()
        self._preview = None
        return self.history.undo()

    def redo(self) -> Optional[GeometrySnapshot]:
        self._require_open()
        self._preview = None
        return self.history.redo()

    @property
    def can_undo(self) -> bool:
        return self.history is not None and self.history.can_undo()

    @property
    def can_redo(self) -> bool:
        return self.history is not None and self.history.can_redo()

    # ------------------------------------------------------------------
    # Commit
    # ------------------------------------------------------------------

    async def commit(self) -> ExportArtifact:
        """
        Render and encode the open item with the current geometry.

        On success the item's saved snapshot, output bitmap and artifact are
        replaced; on failure they are left as they were and the error propagates.

        Raises:
            DecodeError, RenderError, EncodeError: From the failing stage
        """
        self._require_open()
        await self.engine.process_item(
            self.item, self.snapshot, self.expansion, self.placement_factory
        )
        logger.info(f"Committed crop for {self.item.name}")
        return self.item.output_artifact

    async def commit_and_advance(
        self,
        items: List[GalleryItem],
        viewport_size: Optional[Tuple[float, float]] = None,
    ) -> Optional[GalleryItem]:
        """
        Commit the open item and open the one after it in ``items``.

        Returns:
            The newly opened item, or None when the last item was committed
            (the session is then closed)
        """
        await self.commit()
        ids = [item.id for item in items]
        index = ids.index(self.item.id) if self.item.id in ids else len(ids) - 1
        if index + 1 < len(items):
            upcoming = items[index + 1]
            self.open(upcoming, viewport_size)
            return upcoming
        self.close()
        return None

    async def apply_to_all(
        self,
        items: List[GalleryItem],
        include_current: bool = True,
    ) -> BatchReport:
        """
        Apply the current geometry to every item.

        Args:
            items: Gallery items
            include_current: Also commit the open item

        Returns:
            BatchReport of the run
        """
        self._require_open()
        reference_id = None if include_current else self.item.id
        return await self.engine.apply(
            self.snapshot,
            items,
            expansion=self.expansion,
            reference_item_id=reference_id,
            placement=self.placement_factory,
        )
