"""
Crop render pipeline.

Turns a decoded source image plus a PixelRect, a rotation and expansion options
into the final output surface of exactly ``pixel_rect.width x
pixel_rect.height`` pixels.

Rendering paths:
    1. No expansion, no rotation, default placement: a direct crop of the
       source region.
    2. Otherwise the source is drawn through one affine transform: the
       drawing origin moves to the surface center, rotates by ``rotation``
       degrees (clockwise on screen), and the placed source is drawn offset
       by the negative of the crop center. Rotation therefore pivots on the
       selection's own center. With expansion enabled, a background (solid,
       blurred source or custom image) is painted first and the drawn source
       is composited over it. The selection may then extend past the
       source, and the uncovered margin shows the background.

Classes:
    ExpansionOptions: Canvas expansion settings
    RenderError: Rendering of a decoded image failed

Functions:
    render_crop: Render one output surface from a decoded image
    render_snapshot: Render a GeometrySnapshot for a given handle and image
    render_item: Decode a handle and render it without blocking the event loop
    fit_placement: Placement that fits the whole source inside a surface
"""

import asyncio
import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from PIL import Image

from BC_Libs.constants import (
    BACKGROUND_MODE_BLUR,
    BACKGROUND_MODE_COLOR,
    BACKGROUND_MODE_CUSTOM_IMAGE,
    DEFAULT_BACKGROUND_COLOR,
    DEFAULT_BLUR_DARKEN,
    DEFAULT_BLUR_RADIUS,
    DEFAULT_CANVAS_MARGIN,
    MAX_CANVAS_MARGIN,
    TRANSPARENT,
    WORKING_MODE,
)
from BC_Libs.GeometryLib.geometry_model import to_pixel_rect
from BC_Libs.GeometryLib.geometry_models import (
    GeometrySnapshot,
    PixelRect,
    Placement,
    normalize_rotation,
)
from BC_Libs.ImageLib.background_fill import paint_background
from BC_Libs.ImageLib.image_handle import ImageHandle, decode_bitmap

logger = logging.getLogger(__name__)

BACKGROUND_MODES = (BACKGROUND_MODE_COLOR, BACKGROUND_MODE_BLUR, BACKGROUND_MODE_CUSTOM_IMAGE)


class RenderError(OSError):
    """Raised when a decoded image cannot be rendered into an output surface."""


@dataclass
class ExpansionOptions:
    """Configuration for canvas expansion.

    While enabled, the selection is measured against the image padded by
    ``canvas_margin`` on every side, so it can reach past the source. The
    uncovered part of the output is painted with the background.

    Attributes:
        enabled: Paint a background and composite the placed source over it
        background_mode: 'color', 'blur' or 'custom_image'
        color: RGBA fill for 'color' mode
        custom_image: PIL Image for 'custom_image' mode
        blur_radius: Gaussian radius for 'blur' mode
        blur_darken: Brightness multiplier for 'blur' mode (0.0-1.0)
        canvas_margin: Selectable padding per side, as a fraction of the image size
    """
    enabled: bool = False
    background_mode: str = BACKGROUND_MODE_COLOR
    color: Tuple[int, int, int, int] = DEFAULT_BACKGROUND_COLOR
    custom_image: Optional[Any] = None
    blur_radius: float = DEFAULT_BLUR_RADIUS
    blur_darken: float = DEFAULT_BLUR_DARKEN
    canvas_margin: float = DEFAULT_CANVAS_MARGIN

    def __post_init__(self):
        """Validate expansion parameters."""
        self.background_mode = str(self.background_mode).lower()
        if self.background_mode not in BACKGROUND_MODES:
            raise ValueError(
                f"Unknown background_mode: {self.background_mode}. "
                f"Valid modes: {', '.join(BACKGROUND_MODES)}"
            )

        if self.custom_image is not None and (
                not hasattr(self.custom_image, "convert") or not hasattr(self.custom_image, "resize")):
            raise TypeError(f"custom_image must be a PIL Image, got {type(self.custom_image)}")

        if (self.enabled and self.background_mode == BACKGROUND_MODE_CUSTOM_IMAGE
                and self.custom_image is None):
            raise ValueError("custom_image is required for the custom_image background")

        if not (0.0 <= self.blur_darken <= 1.0):
            raise ValueError(f"blur_darken must be 0.0-1.0, got {self.blur_darken}")

        if not (0.0 <= self.canvas_margin <= MAX_CANVAS_MARGIN):
            raise ValueError(
                f"canvas_margin must be 0.0-{MAX_CANVAS_MARGIN}, got {self.canvas_margin}"
            )

    @property
    def frame_margin(self) -> float:
        """Margin of the selection frame: ``canvas_margin`` while enabled, else 0."""
        return self.canvas_margin if self.enabled else 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary (excludes the custom image object)."""
        return {
            "enabled": self.enabled,
            "background_mode": self.background_mode,
            "color": list(self.color),
            "custom_image": None,
            "blur_radius": self.blur_radius,
            "blur_darken": self.blur_darken,
            "canvas_margin": self.canvas_margin,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], custom_image: Optional[Any] = None) -> "ExpansionOptions":
        """
        Create from dictionary.

        The custom background is never stored. Pass the image to reattach it;
        without one, an enabled custom_image configuration comes back disabled
        with its other settings intact.
        """
        filtered = {k: v for k, v in data.items()
                    if k in cls.__dataclass_fields__}
        if "color" in filtered and filtered["color"] is not None:
            filtered["color"] = tuple(filtered["color"])
        filtered["custom_image"] = custom_image

        mode = str(filtered.get("background_mode", BACKGROUND_MODE_COLOR)).lower()
        if filtered.get("enabled") and mode == BACKGROUND_MODE_CUSTOM_IMAGE and custom_image is None:
            logger.warning("Custom background image is not stored; expansion loaded disabled")
            filtered["enabled"] = False
        return cls(**filtered)


def fit_placement(
    output_size: Tuple[int, int],
    source_size: Tuple[int, int],
    margin: float = 1.0,
) -> Placement:
    """
    Placement that shows the whole source centered inside the output surface.

    Args:
        output_size: (width, height) of the output surface
        source_size: (width, height) of the source image
        margin: Fraction of the surface the source may use (0-1]
    """
    if not (0 < margin <= 1.0):
        raise ValueError(f"margin must be 0 < m <= 1.0, got {margin}")

    out_w, out_h = output_size
    src_w, src_h = source_size
    scale = min(out_w / src_w, out_h / src_h) * margin
    return Placement(
        offset_x=(out_w - src_w * scale) / 2.0,
        offset_y=(out_h - src_h * scale) / 2.0,
        scale=scale,
    )


def _inverse_affine(
    output_size: Tuple[int, int],
    rotation: int,
    placement: Placement,
) -> Tuple[float, float, float, float, float, float]:
    """
    Output-to-source affine coefficients for Image.transform.

    Forward mapping: out = C + R(rotation) * (offset + scale * src - C), with
    C the output center. Image.transform needs the inverse.
    """
    theta = math.radians(rotation)
    cos_t = math.cos(theta)
    sin_t = math.sin(theta)
    center_x = output_size[0] / 2.0
    center_y = output_size[1] / 2.0
    scale = placement.scale

    a = cos_t / scale
    b = sin_t / scale
    c = (center_x - cos_t * center_x - sin_t * center_y - placement.offset_x) / scale
    d = -sin_t / scale
    e = cos_t / scale
    f = (center_y + sin_t * center_x - cos_t * center_y - placement.offset_y) / scale
    return (a, b, c, d, e, f)


def _draw_source(
    image: Any,
    output_size: Tuple[int, int],
    rotation: int,
    placement: Placement,
) -> Any:
    source = image if image.mode == WORKING_MODE else image.convert(WORKING_MODE)
    return source.transform(
        output_size,
        Image.Transform.AFFINE,
        data=_inverse_affine(output_size, rotation, placement),
        resample=Image.Resampling.BICUBIC,
        fillcolor=TRANSPARENT,
    )


def render_crop(
    image: Any,
    pixel_rect: PixelRect,
    rotation: float = 0,
    expansion: Optional[ExpansionOptions] = None,
    placement: Optional[Placement] = None,
) -> Any:
    """
    Render one output surface.

    Args:
        image: Decoded source PIL Image
        pixel_rect: Selection in source pixels; it must lie inside the image
                    unless expansion is enabled
        rotation: Degrees, pivoting on the crop center (0 and 360 are identical)
        expansion: Canvas expansion options (default: disabled)
        placement: Where the source sits in the output surface
                   (default: exactly ``pixel_rect``)

    Returns:
        PIL Image of size ``pixel_rect.width x pixel_rect.height``

    Raises:
        TypeError: If image is not a PIL Image
        ValueError: If pixel_rect lies outside the image without expansion
    """
    if not hasattr(image, "crop") or not hasattr(image, "transform"):
        raise TypeError(f"Expected PIL Image, got {type(image)}")

    rotation = normalize_rotation(rotation)
    expansion = expansion or ExpansionOptions()

    if not expansion.enabled and not pixel_rect.lies_within(image.width, image.height):
        raise ValueError(
            f"Pixel rect {pixel_rect.to_dict()} lies outside image of size {image.size}"
        )

    if placement is None:
        placement = Placement.for_crop(pixel_rect)

    output_size = pixel_rect.size

    if not expansion.enabled and rotation == 0 and placement.is_identity_crop(pixel_rect):
        return image.crop(pixel_rect.box)

    layer = _draw_source(image, output_size, rotation, placement)

    if not expansion.enabled:
        return layer

    background = paint_background(
        output_size,
        mode=expansion.background_mode,
        color=expansion.color,
        source=image,
        custom_image=expansion.custom_image,
        blur_radius=expansion.blur_radius,
        blur_darken=expansion.blur_darken,
    )
    return Image.alpha_composite(background, layer)


def render_snapshot(
    image: Any,
    handle: ImageHandle,
    snapshot: GeometrySnapshot,
    expansion: Optional[ExpansionOptions] = None,
    placement: Optional[Placement] = None,
) -> Any:
    """Render ``snapshot`` against ``handle``'s own native dimensions."""
    margin = expansion.frame_margin if expansion is not None else 0.0
    pixel_rect = to_pixel_rect(snapshot.rect, handle, margin)
    return render_crop(image, pixel_rect, snapshot.rotation, expansion, placement)


async def render_item(
    handle: ImageHandle,
    pixel_rect: PixelRect,
    rotation: float = 0,
    expansion: Optional[ExpansionOptions] = None,
    placement: Optional[Placement] = None,
) -> Any:
    """
    Decode a handle and render it in worker threads.

    Raises:
        DecodeError: If the source cannot be decoded
        RenderError: If the decoded image cannot be rendered
    """
    image = await decode_bitmap(handle)
    logger.debug(f"Rendering {handle.name} at {pixel_rect.to_dict()} rotation={rotation}")
    try:
        return await asyncio.to_thread(render_crop, image, pixel_rect, rotation, expansion, placement)
    except (ValueError, TypeError, MemoryError) as e:
        raise RenderError(f"Failed to render {handle.name}: {str(e)}") from e
