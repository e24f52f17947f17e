"""
Selection geometry for Bulk Crop.

Pure math with no I/O: conversion between normalized (percentage) rects and
source-pixel rects, aspect-ratio enforcement, default selections and the
rotation pivot. None of these functions raise for geometry that would be
degenerate; they clamp to the nearest valid rect instead.

Normalized rects are measured against a frame: the image itself, or the image
padded by a margin (a fraction of its size on every side) while canvas
expansion is on. The padded frame keeps the image's ratio, so aspect math is
the same in both cases.

Aspect ratios are expressed in source-pixel terms (pixel width / pixel height).
A normalized rect therefore satisfies ``aspect`` on an image whose own ratio is
``image_aspect`` when ``rect.width / rect.height == aspect / image_aspect``.

Functions:
    default_rect: Full-frame or centered aspect rect
    clamp_rect: Clamp arbitrary values into a valid NormalizedRect
    constrain_to_aspect: Resize a rect to an aspect ratio (idempotent)
    frame_bounds: Pixel extent of the selectable frame around an image
    to_pixel_rect: NormalizedRect -> PixelRect for a given image
    to_normalized_rect: PixelRect -> NormalizedRect for a given image
    display_rect_to_normalized: On-screen selection -> NormalizedRect
    reframe_rect: Keep a selection on the same pixels when the frame margin changes
    is_approximately_full_frame: Whether an aspect is the image's own ratio
    rect_for_aspect: Rect to use when the user picks an aspect preset
    default_snapshot: Starting snapshot for an image
    rotation_pivot: Center of a crop in source pixels
"""

import math
from typing import Any, Optional, Tuple

from BC_Libs.config import CropEngineConfig
from BC_Libs.constants import (
    ASPECT_EPSILON,
    ASPECT_MATCH_TOLERANCE,
    DEFAULT_RECT_PERCENT,
    MIN_NORMALIZED_SIZE,
    MIN_PIXEL_SIZE,
    NORMALIZED_MAX,
    NORMALIZED_MIN,
    PIXEL_ROUNDING_GUARD,
)
from BC_Libs.GeometryLib.geometry_models import (
    AspectConstraint,
    GeometrySnapshot,
    NormalizedRect,
    PixelRect,
)


def _finite_or(value: Any, default: float) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError):
        return default
    return value if math.isfinite(value) else default


def _valid_aspect(aspect: AspectConstraint) -> bool:
    return aspect is not None and math.isfinite(aspect) and aspect > 0


def image_aspect_of(handle: Any) -> float:
    """Native width/height ratio of an image handle."""
    return handle.native_width / handle.native_height


def scale_factors(handle: Any) -> Tuple[float, float]:
    """
    Native-to-display scale factors of an image handle.

    Returns:
        (native_width / display_width, native_height / display_height)
    """
    return (
        handle.native_width / handle.display_width,
        handle.native_height / handle.display_height,
    )


def default_rect(
    aspect: AspectConstraint = None,
    image_aspect: float = 1.0,
    percent: float = DEFAULT_RECT_PERCENT,
) -> NormalizedRect:
    """
    Build the default selection for an aspect constraint.

    Args:
        aspect: Pixel width/height ratio, or None for the full image
        image_aspect: The image's native width/height ratio
        percent: Size of the limiting dimension in percent (default 90)

    Returns:
        The full-image rect when unconstrained, otherwise a centered rect
        whose limiting dimension is ``percent`` and whose other dimension
        follows the ratio. Never extends past [0, 100].
    """
    if not _valid_aspect(aspect) or not _valid_aspect(image_aspect):
        return NormalizedRect.full()

    ratio = aspect / image_aspect
    if ratio >= 1.0:
        width = percent
        height = percent / ratio
    else:
        height = percent
        width = percent * ratio

    x = (NORMALIZED_MAX - width) / 2.0
    y = (NORMALIZED_MAX - height) / 2.0
    return NormalizedRect(x, y, width, height)


def clamp_rect(x: Any, y: Any, width: Any, height: Any) -> NormalizedRect:
    """
    Clamp arbitrary values into a valid normalized rect.

    Sizes are clamped to [MIN_NORMALIZED_SIZE, 100] first, then the origin is
    moved so the rect stays inside the image. Non-numeric or non-finite
    values fall back to the full extent.
    """
    width = min(max(_finite_or(width, NORMALIZED_MAX), MIN_NORMALIZED_SIZE), NORMALIZED_MAX)
    height = min(max(_finite_or(height, NORMALIZED_MAX), MIN_NORMALIZED_SIZE), NORMALIZED_MAX)
    x = min(max(_finite_or(x, NORMALIZED_MIN), NORMALIZED_MIN), NORMALIZED_MAX - width)
    y = min(max(_finite_or(y, NORMALIZED_MIN), NORMALIZED_MIN), NORMALIZED_MAX - height)
    return NormalizedRect(x, y, width, height)


def satisfies_aspect(
    rect: NormalizedRect,
    aspect: AspectConstraint,
    image_aspect: float = 1.0,
    tolerance: float = ASPECT_MATCH_TOLERANCE,
) -> bool:
    """Whether ``rect`` already has the requested ratio (relative tolerance)."""
    if not _valid_aspect(aspect):
        return True
    ratio = aspect / image_aspect
    return abs(rect.width / rect.height - ratio) <= tolerance * ratio


def constrain_to_aspect(
    rect: NormalizedRect,
    aspect: AspectConstraint,
    image_aspect: float = 1.0,
) -> NormalizedRect:
    """
    Resize ``rect`` to satisfy an aspect ratio while staying in bounds.

    The result is the largest rect with the ratio that fits inside ``rect``,
    kept on the same center and shifted back inside [0, 100] if needed.
    When that rect would be degenerate (a side below MIN_NORMALIZED_SIZE)
    the default rect for the ratio is returned instead.
    A rect that already satisfies the ratio is returned unchanged, which
    makes the operation idempotent.

    Args:
        rect: Current selection
        aspect: Pixel width/height ratio (None or invalid = unconstrained)
        image_aspect: The image's native width/height ratio

    Returns:
        A NormalizedRect satisfying the ratio
    """
    if not _valid_aspect(aspect) or not _valid_aspect(image_aspect):
        return rect

    if satisfies_aspect(rect, aspect, image_aspect):
        return rect

    ratio = aspect / image_aspect
    center_x, center_y = rect.center

    width = rect.width
    height = width / ratio
    if height > rect.height:
        height = rect.height
        width = height * ratio

    if width < MIN_NORMALIZED_SIZE or height < MIN_NORMALIZED_SIZE:
        return default_rect(aspect, image_aspect)

    x = min(max(center_x - width / 2.0, NORMALIZED_MIN), NORMALIZED_MAX - width)
    y = min(max(center_y - height / 2.0, NORMALIZED_MIN), NORMALIZED_MAX - height)
    return NormalizedRect(x, y, width, height)


def _margin(value: Any) -> float:
    return max(_finite_or(value, 0.0), 0.0)


def frame_bounds(handle: Any, margin: float = 0.0) -> Tuple[int, int, int, int]:
    """
    Pixel extent of the frame a normalized rect is measured against.

    Args:
        handle: Object exposing native_width/native_height
        margin: Padding on every side as a fraction of the image size
                (0 = the image itself)

    Returns:
        (left, top, right, bottom) in source pixels; left/top are <= 0
    """
    margin = _margin(margin)
    native_w = int(handle.native_width)
    native_h = int(handle.native_height)
    pad_x = int(math.ceil(margin * native_w - PIXEL_ROUNDING_GUARD))
    pad_y = int(math.ceil(margin * native_h - PIXEL_ROUNDING_GUARD))
    return (-pad_x, -pad_y, native_w + pad_x, native_h + pad_y)


def to_pixel_rect(rect: NormalizedRect, handle: Any, margin: float = 0.0) -> PixelRect:
    """
    Convert a normalized selection into source pixels for one image.

    The rect is first mapped into the frame's on-screen size, then scaled by
    ``native / display``. The origin is floored and the size ceiled so the
    output surface is never smaller than the true selection; a small guard
    keeps float noise (e.g. 2000.0000001) from adding a pixel. The result is
    clamped inside the frame.

    Args:
        rect: Normalized selection
        handle: Object exposing native_width/height and display_width/height
        margin: Frame padding per side as a fraction of the image size; with
                canvas expansion the rect may then reach past the image

    Returns:
        PixelRect within the frame; with margin 0 that is
        [0, native_width] x [0, native_height]
    """
    margin = _margin(margin)
    left, top, right, bottom = frame_bounds(handle, margin)
    scale_x, scale_y = scale_factors(handle)
    frame_scale = 1.0 + 2.0 * margin

    display_x = (rect.x / NORMALIZED_MAX * frame_scale - margin) * handle.display_width
    display_y = (rect.y / NORMALIZED_MAX * frame_scale - margin) * handle.display_height
    display_w = rect.width / NORMALIZED_MAX * frame_scale * handle.display_width
    display_h = rect.height / NORMALIZED_MAX * frame_scale * handle.display_height

    x = int(math.floor(display_x * scale_x + PIXEL_ROUNDING_GUARD))
    y = int(math.floor(display_y * scale_y + PIXEL_ROUNDING_GUARD))
    width = int(math.ceil(display_w * scale_x - PIXEL_ROUNDING_GUARD))
    height = int(math.ceil(display_h * scale_y - PIXEL_ROUNDING_GUARD))

    x = min(max(x, left), right - MIN_PIXEL_SIZE)
    y = min(max(y, top), bottom - MIN_PIXEL_SIZE)
    width = min(max(width, MIN_PIXEL_SIZE), right - x)
    height = min(max(height, MIN_PIXEL_SIZE), bottom - y)
    return PixelRect(x, y, width, height)


def to_normalized_rect(pixel_rect: PixelRect, handle: Any, margin: float = 0.0) -> NormalizedRect:
    """Convert a source-pixel rect back into percentages of the frame."""
    margin = _margin(margin)
    frame_w = handle.native_width * (1.0 + 2.0 * margin)
    frame_h = handle.native_height * (1.0 + 2.0 * margin)
    return clamp_rect(
        (pixel_rect.x + margin * handle.native_width) / frame_w * NORMALIZED_MAX,
        (pixel_rect.y + margin * handle.native_height) / frame_h * NORMALIZED_MAX,
        pixel_rect.width / frame_w * NORMALIZED_MAX,
        pixel_rect.height / frame_h * NORMALIZED_MAX,
    )


def reframe_rect(rect: NormalizedRect, from_margin: float, to_margin: float) -> NormalizedRect:
    """
    Re-express ``rect`` against a frame with a different margin.

    The selection keeps covering the same part of the image. When the new
    frame is smaller, whatever falls outside it is clamped away.
    """
    from_margin = _margin(from_margin)
    to_margin = _margin(to_margin)
    if from_margin == to_margin:
        return rect

    from_scale = 1.0 + 2.0 * from_margin
    to_scale = 1.0 + 2.0 * to_margin

    def convert(value: float) -> float:
        image_fraction = value / NORMALIZED_MAX * from_scale - from_margin
        return (image_fraction + to_margin) / to_scale * NORMALIZED_MAX

    ratio = from_scale / to_scale
    return clamp_rect(convert(rect.x), convert(rect.y), rect.width * ratio, rect.height * ratio)


def display_rect_to_normalized(
    x: float, y: float, width: float, height: float, handle: Any
) -> NormalizedRect:
    """
    Convert a selection measured in on-screen pixels into a normalized rect.

    Args:
        x, y, width, height: Selection relative to the displayed image
        handle: Image handle carrying display_width/display_height
    """
    return clamp_rect(
        x / handle.display_width * NORMALIZED_MAX,
        y / handle.display_height * NORMALIZED_MAX,
        width / handle.display_width * NORMALIZED_MAX,
        height / handle.display_height * NORMALIZED_MAX,
    )


def is_approximately_full_frame(
    aspect: AspectConstraint,
    native_aspect: float,
    tolerance: float = ASPECT_EPSILON,
) -> bool:
    """
    Whether an aspect constraint is equivalent to no constraint.

    An aspect within ``tolerance`` of the image's own ratio selects the full
    frame instead of a marginally cropped rect.
    """
    if aspect is None:
        return True
    return abs(aspect - native_aspect) < tolerance


def rect_for_aspect(
    aspect: AspectConstraint,
    handle: Any,
    config: Optional[CropEngineConfig] = None,
) -> NormalizedRect:
    """
    Selection to show when the user picks an aspect for an image.

    Returns the full frame when ``aspect`` is None or approximately the
    image's native ratio, otherwise the default centered aspect rect.
    """
    config = config or CropEngineConfig()
    native_aspect = image_aspect_of(handle)

    if is_approximately_full_frame(aspect, native_aspect, config.aspect_epsilon):
        return NormalizedRect.full()

    return default_rect(aspect, native_aspect, config.default_rect_percent)


def default_snapshot(
    handle: Any,
    aspect: AspectConstraint = None,
    config: Optional[CropEngineConfig] = None,
) -> GeometrySnapshot:
    """
    Starting geometry for an image, independent of any previous edit.

    Args:
        handle: Image handle
        aspect: Optional aspect constraint to start with
        config: Engine configuration (defaults used when omitted)

    Returns:
        GeometrySnapshot with rotation 0
    """
    return GeometrySnapshot(
        rect=rect_for_aspect(aspect, handle, config),
        aspect=aspect,
        rotation=0,
    )


def rotation_pivot(pixel_rect: PixelRect) -> Tuple[float, float]:
    """Rotation pivot of a crop: its own center in source pixels."""
    return pixel_rect.center


