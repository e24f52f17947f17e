"""
GeometryLib - Selection geometry, viewport and history

This module provides the pure geometry of the crop engine: normalized and
pixel rects, aspect constraints, anchor-preserving zoom/pan and the
undo/redo history of geometry snapshots.
"""

from BC_Libs.GeometryLib.geometry_models import (
    AspectConstraint,
    GeometrySnapshot,
    NormalizedRect,
    PixelRect,
    Placement,
    normalize_rotation,
)
from BC_Libs.GeometryLib.geometry_model import (
    clamp_rect,
    constrain_to_aspect,
    default_rect,
    default_snapshot,
    display_rect_to_normalized,
    frame_bounds,
    image_aspect_of,
    is_approximately_full_frame,
    rect_for_aspect,
    reframe_rect,
    rotation_pivot,
    satisfies_aspect,
    scale_factors,
    to_normalized_rect,
    to_pixel_rect,
)
from BC_Libs.GeometryLib.zoom_pan_controller import ViewportState, ZoomPanController
from BC_Libs.GeometryLib.history_stack import HistoryStack

__all__ = [
    "AspectConstraint",
    "GeometrySnapshot",
    "NormalizedRect",
    "PixelRect",
    "Placement",
    "normalize_rotation",
    "clamp_rect",
    "constrain_to_aspect",
    "default_rect",
    "default_snapshot",
    "display_rect_to_normalized",
    "frame_bounds",
    "image_aspect_of",
    "is_approximately_full_frame",
    "rect_for_aspect",
    "reframe_rect",
    "rotation_pivot",
    "satisfies_aspect",
    "scale_factors",
    "to_normalized_rect",
    "to_pixel_rect",
    "ViewportState",
    "ZoomPanController",
    "HistoryStack",
]
