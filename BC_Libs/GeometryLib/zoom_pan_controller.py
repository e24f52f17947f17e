"""
Zoom and pan viewport controller for the crop editor.

The controller maps image-space points to screen points with
``screen = offset + zoom * image``. All zoom gestures (wheel, buttons, manual
slider and two-finger pinch) go through ``zoom_at`` so the image point under
the focal point stays under it across the change. Panning only translates the
offset. Nothing here touches the selection, which stays in normalized image
coordinates.

Classes:
    ViewportState: Immutable zoom/offset value
    ZoomPanController: Owns the viewport state and routes pointer input
"""

import math
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from BC_Libs.config import CropEngineConfig
from BC_Libs.constants import MIN_PINCH_DISTANCE

Point = Tuple[float, float]


@dataclass(frozen=True)
class ViewportState:
    """Snapshot of the viewport transform."""
    zoom: float
    offset_x: float
    offset_y: float


@dataclass
class _PinchGesture:
    initial_distance: float
    initial_zoom: float


def _distance(a: Point, b: Point) -> float:
    return math.hypot(b[0] - a[0], b[1] - a[1])


def _midpoint(a: Point, b: Point) -> Point:
    return ((a[0] + b[0]) / 2.0, (a[1] + b[1]) / 2.0)


class ZoomPanController:
    """
    Anchor-preserving zoom and pan for one editor viewport.

    Example:
        >>> controller = ZoomPanController()
        >>> controller.fit_to_viewport(handle, (800, 600))
        >>> controller.zoom_at(2.0, (400, 300))
        >>> controller.screen_to_image((400, 300))
    """

    def __init__(self, config: Optional[CropEngineConfig] = None):
        self.config = config or CropEngineConfig()
        self.zoom = 1.0
        self.offset_x = 0.0
        self.offset_y = 0.0
        self.pan_mode = False
        self.anchor_image_point: Optional[Point] = None
        self.focal_screen_point: Optional[Point] = None
        self.viewport_size: Optional[Tuple[float, float]] = None

        self._pointers: Dict[Any, Point] = {}
        self._pinch: Optional[_PinchGesture] = None

    @property
    def state(self) -> ViewportState:
        return ViewportState(self.zoom, self.offset_x, self.offset_y)

    def _clamp_zoom(self, zoom: float) -> float:
        return min(max(zoom, self.config.min_zoom), self.config.max_zoom)

    # ------------------------------------------------------------------
    # Coordinate mapping
    # ------------------------------------------------------------------

    def screen_to_image(self, point: Point) -> Point:
        """Image-space point currently under a screen point."""
        return (
            (point[0] - self.offset_x) / self.zoom,
            (point[1] - self.offset_y) / self.zoom,
        )

    def image_to_screen(self, point: Point) -> Point:
        """Screen point where an image-space point is drawn."""
        return (
            self.offset_x + point[0] * self.zoom,
            self.offset_y + point[1] * self.zoom,
        )

    # ------------------------------------------------------------------
    # Zoom
    # ------------------------------------------------------------------

    def zoom_at(self, factor: float, focal: Point) -> float:
        """
        Multiply the zoom by ``factor`` keeping ``focal`` fixed on the image.

        The image point under ``focal`` is computed and stored before the zoom
        changes; the offset is then recomputed so that point re-projects under
        the same screen point.

        Args:
            factor: Positive zoom multiplier
            focal: Screen point that must stay over the same image point

        Returns:
            The new (clamped) zoom value

        Raises:
            ValueError: If factor is not a positive finite number
        """
        if not (math.isfinite(factor) and factor > 0):
            raise ValueError(f"factor must be > 0, got {factor}")

        self.anchor_image_point = self.screen_to_image(focal)
        self.focal_screen_point = (float(focal[0]), float(focal[1]))

        self.zoom = self._clamp_zoom(self.zoom * factor)

        anchor_x, anchor_y = self.anchor_image_point
        self.offset_x = focal[0] - anchor_x * self.zoom
        self.offset_y = focal[1] - anchor_y * self.zoom
        return self.zoom

    def set_zoom(self, zoom: float, focal: Optional[Point] = None) -> float:
        """Set an absolute zoom (e.g. from a slider), anchored at ``focal``."""
        if not (math.isfinite(zoom) and zoom > 0):
            raise ValueError(f"zoom must be > 0, got {zoom}")
        return self.zoom_at(zoom / self.zoom, focal or self.viewport_center())

    def zoom_by_steps(self, steps: float, focal: Optional[Point] = None) -> float:
        """Discrete zoom for wheel notches or zoom buttons (negative = out)."""
        return self.zoom_at(self.config.zoom_step ** steps, focal or self.viewport_center())

    def zoom_in(self) -> float:
        return self.zoom_by_steps(1)

    def zoom_out(self) -> float:
        return self.zoom_by_steps(-1)

    def viewport_center(self) -> Point:
        if self.viewport_size is None:
            return (0.0, 0.0)
        return (self.viewport_size[0] / 2.0, self.viewport_size[1] / 2.0)

    def fit_to_viewport(self, handle: Any, viewport_size: Tuple[float, float],
                        margin: Optional[float] = None) -> float:
        """
        Fit the whole image inside the viewport and center it.

        This is the state entered whenever a new image is loaded.

        Args:
            handle: Image handle with native_width/native_height
            viewport_size: (width, height) of the viewport in screen pixels
            margin: Fraction of the viewport to use (default from config)

        Returns:
            The new zoom value
        """
        margin = self.config.fit_margin if margin is None else margin
        viewport_w, viewport_h = float(viewport_size[0]), float(viewport_size[1])
        self.viewport_size = (viewport_w, viewport_h)

        zoom = min(viewport_w / handle.native_width, viewport_h / handle.native_height) * margin
        self.zoom = self._clamp_zoom(zoom)
        self.offset_x = (viewport_w - handle.native_width * self.zoom) / 2.0
        self.offset_y = (viewport_h - handle.native_height * self.zoom) / 2.0

        self.anchor_image_point = None
        self.focal_screen_point = None
        self.cancel_gesture()
        return self.zoom

    # ------------------------------------------------------------------
    # Pan
    # ------------------------------------------------------------------

    def pan(self, dx: float, dy: float) -> None:
        """Translate the image on screen; zoom is unchanged."""
        self.offset_x += dx
        self.offset_y += dy

    def set_pan_mode(self, enabled: bool) -> None:
        self.pan_mode = bool(enabled)

    def toggle_pan_mode(self) -> bool:
        self.pan_mode = not self.pan_mode
        return self.pan_mode

    # ------------------------------------------------------------------
    # Pointer input
    # ------------------------------------------------------------------

    @property
    def is_pinching(self) -> bool:
        return self._pinch is not None

    def cancel_gesture(self) -> None:
        self._pointers.clear()
        self._pinch = None

    def _start_pinch(self) -> None:
        first, second = list(self._pointers.values())[:2]
        distance = max(_distance(first, second), MIN_PINCH_DISTANCE)
        self._pinch = _PinchGesture(initial_distance=distance, initial_zoom=self.zoom)

    def pointer_down(self, pointer_id: Any, point: Point) -> bool:
        """
        Register a pointer.

        Returns:
            True if the controller owns the gesture (pinch, or pan in pan mode);
            False if the caller should treat it as rectangle editing.
        """
        self._pointers[pointer_id] = (float(point[0]), float(point[1]))

        if len(self._pointers) >= 2:
            self._start_pinch()
            return True

        return self.pan_mode

    def pointer_move(self, pointer_id: Any, point: Point) -> bool:
        """
        Update a pointer position.

        With two pointers down the zoom follows the ratio of the current to
        the initial pointer distance, anchored at their midpoint. With one
        pointer the image pans, but only in pan mode.

        Returns:
            True if the move was consumed as zoom or pan
        """
        if pointer_id not in self._pointers:
            return False

        previous = self._pointers[pointer_id]
        current = (float(point[0]), float(point[1]))
        self._pointers[pointer_id] = current

        if self._pinch is not None and len(self._pointers) >= 2:
            first, second = list(self._pointers.values())[:2]
            ratio = max(_distance(first, second), MIN_PINCH_DISTANCE) / self._pinch.initial_distance
            target = self._clamp_zoom(self._pinch.initial_zoom * ratio)
            self.zoom_at(target / self.zoom, _midpoint(first, second))
            return True

        if self.pan_mode:
            self.pan(current[0] - previous[0], current[1] - previous[1])
            return True

        return False

    def pointer_up(self, pointer_id: Any) -> bool:
        """
        Release a pointer.

        Returns:
            True if the release ended a gesture owned by the controller
        """
        if pointer_id not in self._pointers:
            return False

        del self._pointers[pointer_id]
        was_pinching = self._pinch is not None

        if len(self._pointers) < 2:
            self._pinch = None

        return was_pinching or self.pan_mode
