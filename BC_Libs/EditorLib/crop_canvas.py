"""
Crop canvas widget for the Bulk Crop editor.

Paints the open image through the ZoomPanController transform, the
expansion frame behind it while canvas expansion is on, the selection
overlay on top, and routes input:

- Wheel: zoom around the cursor
- Two touch points: pinch zoom around their midpoint
- One pointer in pan mode: pan
- One pointer otherwise: move, resize (corner handles) or draw the selection

Drags update the session's preview rect; releasing confirms it into history.

Classes:
    CropCanvas: QWidget showing one image and its selection

Functions:
    pil_to_pixmap: Convert a PIL Image to a QPixmap
    compute_placement: Placement of the source inside an output surface
"""

from io import BytesIO
from typing import Any, Dict, Optional, Tuple

from PyQt5.QtCore import QEvent, QPointF, QRectF, Qt, pyqtSignal
from PyQt5.QtGui import QBrush, QColor, QPainter, QPainterPath, QPen, QPixmap
from PyQt5.QtWidgets import QWidget

from BC_Libs.BatchLib.editor_session import EditorSession
from BC_Libs.constants import (
    BACKGROUND_MODE_COLOR,
    CANVAS_BACKGROUND_COLOR,
    EXPANSION_FRAME_COLOR,
    HANDLE_SIZE,
    NORMALIZED_MAX,
    SELECTION_BORDER_COLOR,
    SELECTION_SHADE_COLOR,
)
from BC_Libs.GeometryLib.geometry_models import NormalizedRect, PixelRect, Placement
from BC_Libs.ImageLib.image_handle import ImageHandle
from BC_Libs.ImageLib.render_pipeline import fit_placement

MOUSE_POINTER_ID = "mouse"

DRAG_NONE = "none"
DRAG_PAN = "pan"
DRAG_MOVE = "move"
DRAG_RESIZE = "resize"
DRAG_DRAW = "draw"

CORNERS = ("tl", "tr", "bl", "br")


def pil_to_pixmap(image: Any) -> QPixmap:
    """Convert a PIL Image to a QPixmap via an in-memory PNG."""
    buffer = BytesIO()
    image.save(buffer, format="PNG")
    pixmap = QPixmap()
    pixmap.loadFromData(buffer.getvalue(), "PNG")
    return pixmap


def compute_placement(handle: ImageHandle, pixel_rect: PixelRect, fit_source: bool = False) -> Placement:
    """
    Placement of the source inside the output surface of ``pixel_rect``.

    Args:
        handle: Image being rendered
        pixel_rect: Output selection in source pixels
        fit_source: Show the whole source centered inside the surface
                    instead of exactly the selected region

    Returns:
        Placement for the renderer
    """
    if fit_source:
        return fit_placement(pixel_rect.size, handle.native_size)
    return Placement.for_crop(pixel_rect)


class CropCanvas(QWidget):
    geometryChanged = pyqtSignal()
    zoomChanged = pyqtSignal(float)

    def __init__(self, session: EditorSession, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self.session = session
        self.controller = session.viewport
        self.pixmap: Optional[QPixmap] = None
        self.fit_source = False

        self._drag_mode = DRAG_NONE
        self._drag_origin: Optional[Tuple[float, float]] = None
        self._drag_start_rect: Optional[NormalizedRect] = None
        self._active_corner: Optional[str] = None
        self._touch_drag_id: Optional[int] = None

        self.setMouseTracking(True)
        self.setAttribute(Qt.WA_AcceptTouchEvents, True)
        self.setFocusPolicy(Qt.StrongFocus)
        self.setMinimumSize(480, 360)

        session.placement_factory = self.placement_for

    # ------------------------------------------------------------------
    # Image
    # ------------------------------------------------------------------

    def set_image(self, image: Any) -> None:
        self.pixmap = pil_to_pixmap(image)
        self.fit()

    def clear(self) -> None:
        self.pixmap = None
        self._drag_mode = DRAG_NONE
        self.update()

    def fit(self) -> None:
        if not self.session.is_open:
            return
        self.controller.fit_to_viewport(self.session.item.handle, (self.width(), self.height()))
        self.zoomChanged.emit(self.controller.zoom)
        self.update()

    def placement_for(self, handle: ImageHandle, pixel_rect: PixelRect) -> Placement:
        return compute_placement(handle, pixel_rect, self.fit_source)

    def set_fit_source(self, enabled: bool) -> None:
        self.fit_source = bool(enabled)

    # ------------------------------------------------------------------
    # Coordinate helpers
    # ------------------------------------------------------------------

    def _native_size(self) -> Tuple[int, int]:
        return self.session.item.handle.native_size

    def _frame_extent(self) -> Tuple[float, float, float, float]:
        """Native (left, top, width, height) of the frame the selection is measured in."""
        width, height = self._native_size()
        margin = self.session.frame_margin
        scale = 1.0 + 2.0 * margin
        return (-margin * width, -margin * height, scale * width, scale * height)

    def _to_normalized(self, pos: QPointF) -> Tuple[float, float]:
        left, top, frame_width, frame_height = self._frame_extent()
        image_x, image_y = self.controller.screen_to_image((pos.x(), pos.y()))
        return ((image_x - left) / frame_width * NORMALIZED_MAX,
                (image_y - top) / frame_height * NORMALIZED_MAX)

    def _to_screen(self, nx: float, ny: float) -> QPointF:
        left, top, frame_width, frame_height = self._frame_extent()
        x, y = self.controller.image_to_screen(
            (left + nx / NORMALIZED_MAX * frame_width, top + ny / NORMALIZED_MAX * frame_height)
        )
        return QPointF(x, y)

    def selection_screen_rect(self) -> QRectF:
        rect = self.session.rect
        top_left = self._to_screen(rect.x, rect.y)
        bottom_right = self._to_screen(rect.x + rect.width, rect.y + rect.height)
        return QRectF(top_left, bottom_right)

    def _corner_points(self, selection: QRectF) -> Dict[str, QPointF]:
        return {
            "tl": selection.topLeft(),
            "tr": selection.topRight(),
            "bl": selection.bottomLeft(),
            "br": selection.bottomRight(),
        }

    def _corner_at(self, pos: QPointF) -> Optional[str]:
        for corner, point in self._corner_points(self.selection_screen_rect()).items():
            if abs(pos.x() - point.x()) <= HANDLE_SIZE and abs(pos.y() - point.y()) <= HANDLE_SIZE:
                return corner
        return None

    # ------------------------------------------------------------------
    # Painting
    # ------------------------------------------------------------------

    def paintEvent(self, event) -> None:
        painter = QPainter(self)
        painter.fillRect(self.rect(), QColor(CANVAS_BACKGROUND_COLOR))

        if self.pixmap is None or not self.session.is_open:
            painter.end()
            return

        painter.setRenderHint(QPainter.SmoothPixmapTransform)
        painter.setRenderHint(QPainter.Antialiasing)
        selection = self.selection_screen_rect()
        width, height = self._native_size()

        if self.session.frame_margin > 0:
            expansion = self.session.expansion
            if expansion.background_mode == BACKGROUND_MODE_COLOR:
                frame_color = QColor(*expansion.color)
            else:
                frame_color = QColor(EXPANSION_FRAME_COLOR)
            frame = QRectF(self._to_screen(0, 0), self._to_screen(NORMALIZED_MAX, NORMALIZED_MAX))
            painter.fillRect(frame, frame_color)

        # Rotation pivots on the selection center, as in the rendered output
        painter.save()
        center = selection.center()
        painter.translate(center)
        painter.rotate(self.session.rotation)
        painter.translate(-center)
        image_rect = QRectF(
            self.controller.offset_x,
            self.controller.offset_y,
            width * self.controller.zoom,
            height * self.controller.zoom,
        )
        painter.drawPixmap(image_rect, self.pixmap, QRectF(self.pixmap.rect()))
        painter.restore()

        outside = QPainterPath()
        outside.addRect(QRectF(self.rect()))
        inside = QPainterPath()
        inside.addRect(selection)
        painter.fillPath(outside.subtracted(inside), QColor(*SELECTION_SHADE_COLOR))

        painter.setBrush(Qt.NoBrush)
        painter.setPen(QPen(QColor(SELECTION_BORDER_COLOR), 2))
        painter.drawRect(selection)

        painter.setBrush(QBrush(QColor(255, 255, 255, 230)))
        painter.setPen(QPen(QColor(SELECTION_BORDER_COLOR), 1))
        half = HANDLE_SIZE / 2.0
        for point in self._corner_points(selection).values():
            painter.drawRect(QRectF(point.x() - half, point.y() - half, HANDLE_SIZE, HANDLE_SIZE))

        painter.end()

    # ------------------------------------------------------------------
    # Selection drags
    # ------------------------------------------------------------------

    def _begin_drag(self, pos: QPointF) -> None:
        corner = self._corner_at(pos)
        if corner is not None:
            self._drag_mode = DRAG_RESIZE
            self._active_corner = corner
        elif self.selection_screen_rect().contains(pos):
            self._drag_mode = DRAG_MOVE
        else:
            self._drag_mode = DRAG_DRAW

        self._drag_origin = self._to_normalized(pos)
        self._drag_start_rect = self.session.snapshot.rect

    def _update_drag(self, pos: QPointF) -> None:
        if self._drag_mode not in (DRAG_MOVE, DRAG_RESIZE, DRAG_DRAW):
            return

        nx, ny = self._to_normalized(pos)
        ox, oy = self._drag_origin
        start = self._drag_start_rect

        if self._drag_mode == DRAG_MOVE:
            self.session.preview_rect(start.x + nx - ox, start.y + ny - oy, start.width, start.height)

        elif self._drag_mode == DRAG_RESIZE:
            anchor_x = start.x + start.width if "l" in self._active_corner else start.x
            anchor_y = start.y + start.height if "t" in self._active_corner else start.y
            self.session.preview_rect(*self._sized_from_anchor(anchor_x, anchor_y, nx, ny))

        else:
            self.session.preview_rect(*self._sized_from_anchor(ox, oy, nx, ny))

        self.update()

    def _sized_from_anchor(self, anchor_x: float, anchor_y: float,
                           nx: float, ny: float) -> Tuple[float, float, float, float]:
        """Rect spanned from a fixed corner to the pointer, following the aspect."""
        width = abs(nx - anchor_x)
        height = abs(ny - anchor_y)

        aspect = self.session.aspect
        if aspect is not None:
            ratio = aspect / self.session.image_aspect
            height = width / ratio

        x = anchor_x if nx >= anchor_x else anchor_x - width
        y = anchor_y if ny >= anchor_y else anchor_y - height
        return (x, y, width, height)

    def _end_drag(self) -> None:
        if self._drag_mode in (DRAG_MOVE, DRAG_RESIZE, DRAG_DRAW):
            self.session.confirm_preview()
            self.geometryChanged.emit()
        self._drag_mode = DRAG_NONE
        self._active_corner = None
        self.update()

    def _cancel_drag(self) -> None:
        if self._drag_mode in (DRAG_MOVE, DRAG_RESIZE, DRAG_DRAW):
            self.session.cancel_preview()
        self._drag_mode = DRAG_NONE
        self._active_corner = None

    # ------------------------------------------------------------------
    # Mouse, wheel and touch
    # ------------------------------------------------------------------

    def wheelEvent(self, event) -> None:
        if not self.session.is_open:
            return
        steps = event.angleDelta().y() / 120.0
        if steps:
            pos = event.position()
            self.controller.zoom_by_steps(steps, (pos.x(), pos.y()))
            self.zoomChanged.emit(self.controller.zoom)
            self.update()
        event.accept()

    def mousePressEvent(self, event) -> None:
        if event.button() != Qt.LeftButton or not self.session.is_open:
            super().mousePressEvent(event)
            return

        pos = event.localPos()
        if self.controller.pointer_down(MOUSE_POINTER_ID, (pos.x(), pos.y())):
            self._drag_mode = DRAG_PAN
            self.setCursor(Qt.ClosedHandCursor)
            return

        self._begin_drag(pos)

    def mouseMoveEvent(self, event) -> None:
        if not self.session.is_open:
            return

        pos = event.localPos()
        if not (event.buttons() & Qt.LeftButton):
            self._update_hover_cursor(pos)
            return

        if self.controller.pointer_move(MOUSE_POINTER_ID, (pos.x(), pos.y())):
            self.update()
            return

        self._update_drag(pos)

    def mouseReleaseEvent(self, event) -> None:
        if event.button() != Qt.LeftButton:
            super().mouseReleaseEvent(event)
            return

        self.controller.pointer_up(MOUSE_POINTER_ID)
        self._end_drag()
        self.unsetCursor()

    def _update_hover_cursor(self, pos: QPointF) -> None:
        if self.controller.pan_mode:
            self.setCursor(Qt.OpenHandCursor)
        elif self._corner_at(pos) is not None:
            self.setCursor(Qt.SizeFDiagCursor)
        elif self.selection_screen_rect().contains(pos):
            self.setCursor(Qt.SizeAllCursor)
        else:
            self.setCursor(Qt.CrossCursor)

    def event(self, event) -> bool:
        if event.type() in (QEvent.TouchBegin, QEvent.TouchUpdate, QEvent.TouchEnd, QEvent.TouchCancel):
            self._handle_touch(event)
            return True
        return super().event(event)

    def _handle_touch(self, event) -> None:
        if not self.session.is_open:
            return

        if event.type() == QEvent.TouchCancel:
            self.controller.cancel_gesture()
            self._cancel_drag()
            self._touch_drag_id = None
            self.update()
            return

        for touch in event.touchPoints():
            pointer_id = ("touch", touch.id())
            pos = touch.pos()
            point = (pos.x(), pos.y())
            state = touch.state()

            if state & Qt.TouchPointPressed:
                consumed = self.controller.pointer_down(pointer_id, point)
                if consumed:
                    # A second finger turns a selection drag into a pinch
                    self._cancel_drag()
                    self._touch_drag_id = None
                elif self._touch_drag_id is None:
                    self._touch_drag_id = touch.id()
                    self._begin_drag(pos)

            elif state & Qt.TouchPointReleased:
                self.controller.pointer_up(pointer_id)
                if touch.id() == self._touch_drag_id:
                    self._touch_drag_id = None
                    self._end_drag()

            elif state & Qt.TouchPointMoved:
                if not self.controller.pointer_move(pointer_id, point) and touch.id() == self._touch_drag_id:
                    self._update_drag(pos)

        self.zoomChanged.emit(self.controller.zoom)
        self.update()

    def resizeEvent(self, event) -> None:
        self.controller.viewport_size = (float(self.width()), float(self.height()))
        super().resizeEvent(event)
