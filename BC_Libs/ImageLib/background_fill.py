"""
Background painting for canvas expansion.

When the output surface is larger than the placed source image, the uncovered
area is filled by one of three backgrounds:

- Solid color: a flat RGBA fill
- Blur: the source scaled to cover the surface, centered, heavily blurred
  and darkened
- Custom image: a user-supplied image stretched to fill the surface exactly

Example:
    >>> from PIL import Image
    >>> source = Image.open("photo.jpg")
    >>> bg = paint_background((1200, 800), BACKGROUND_MODE_BLUR, source=source)
"""

from typing import Any, Optional, Tuple

import numpy as np
from PIL import Image, ImageFilter, ImageOps

from BC_Libs.constants import (
    BACKGROUND_MODE_BLUR,
    BACKGROUND_MODE_COLOR,
    BACKGROUND_MODE_CUSTOM_IMAGE,
    DEFAULT_BACKGROUND_COLOR,
    DEFAULT_BLUR_DARKEN,
    DEFAULT_BLUR_RADIUS,
    WORKING_MODE,
)

Size = Tuple[int, int]


def _require_image(image: Any, label: str = "image") -> None:
    if not hasattr(image, "convert") or not hasattr(image, "size"):
        raise TypeError(f"Expected PIL Image for {label}, got {type(image)}")


def _to_rgba_color(color: Any) -> Tuple[int, int, int, int]:
    if isinstance(color, str):
        return Image.new(WORKING_MODE, (1, 1), color).getpixel((0, 0))

    values = tuple(int(c) for c in color)
    if len(values) == 3:
        values = values + (255,)
    if len(values) != 4 or not all(0 <= c <= 255 for c in values):
        raise ValueError(f"color must be RGB/RGBA with 0-255 channels, got {color}")
    return values


def apply_gaussian_blur(image: Any, radius: float = DEFAULT_BLUR_RADIUS) -> Any:
    """
    Apply Gaussian blur to image.

    Args:
        image: PIL Image
        radius: Blur radius in pixels (0 < r <= 250)

    Returns:
        Blurred PIL Image (palette images come back as RGB)

    Raises:
        ValueError: If radius <= 0 or > 250
        TypeError: If image not PIL Image
    """
    if not hasattr(image, "filter"):
        raise TypeError(f"Expected PIL Image, got {type(image)}")

    if not (0 < radius <= 250):
        raise ValueError(f"radius must be 0 < r <= 250, got {radius}")

    if image.mode == "P":
        image = image.convert("RGB")

    return image.filter(ImageFilter.GaussianBlur(radius=radius))


def darken(image: Any, factor: float = DEFAULT_BLUR_DARKEN) -> Any:
    """
    Scale the color channels of an RGBA image by ``factor``.

    Alpha is left untouched.

    Args:
        image: PIL Image (converted to RGBA)
        factor: Brightness multiplier 0.0-1.0

    Raises:
        ValueError: If factor is outside 0-1
    """
    if not (0.0 <= factor <= 1.0):
        raise ValueError(f"factor must be 0.0-1.0, got {factor}")

    pixels = np.asarray(image.convert(WORKING_MODE), dtype=np.float32).copy()
    pixels[..., :3] *= factor
    return Image.fromarray(np.clip(pixels, 0, 255).astype(np.uint8))


def paint_solid(size: Size, color: Any = DEFAULT_BACKGROUND_COLOR) -> Any:
    """Flat RGBA fill of ``size``."""
    return Image.new(WORKING_MODE, size, _to_rgba_color(color))


def paint_blurred_source(
    size: Size,
    source: Any,
    radius: float = DEFAULT_BLUR_RADIUS,
    darken_factor: float = DEFAULT_BLUR_DARKEN,
) -> Any:
    """
    Blurred, darkened copy of ``source`` covering ``size``.

    The source is scaled to cover the surface (preserving its ratio) and
    center-cropped to the surface's aspect before blurring.
    """
    _require_image(source, "source")
    covered = ImageOps.fit(source.convert(WORKING_MODE), size, method=Image.Resampling.BILINEAR)
    return darken(apply_gaussian_blur(covered, radius), darken_factor)


def paint_custom_image(size: Size, background: Any) -> Any:
    """User-supplied background stretched to fill ``size`` exactly."""
    _require_image(background, "custom background")
    return background.convert(WORKING_MODE).resize(size, Image.Resampling.BICUBIC)


def paint_background(
    size: Size,
    mode: str = BACKGROUND_MODE_COLOR,
    color: Any = DEFAULT_BACKGROUND_COLOR,
    source: Optional[Any] = None,
    custom_image: Optional[Any] = None,
    blur_radius: float = DEFAULT_BLUR_RADIUS,
    blur_darken: float = DEFAULT_BLUR_DARKEN,
) -> Any:
    """
    Paint the background of an expanded output surface.

    Args:
        size: (width, height) of the output surface
        mode: 'color', 'blur' or 'custom_image'
        color: Fill color for 'color' mode (RGB/RGBA tuple or color name)
        source: Source image for 'blur' mode
        custom_image: Background image for 'custom_image' mode
        blur_radius: Gaussian radius for 'blur' mode
        blur_darken: Brightness multiplier for 'blur' mode

    Returns:
        RGBA PIL Image of ``size``

    Raises:
        ValueError: If mode is unknown or its image is missing
    """
    mode = str(mode).lower()

    if mode == BACKGROUND_MODE_COLOR:
        return paint_solid(size, color)

    elif mode == BACKGROUND_MODE_BLUR:
        if source is None:
            raise ValueError("Blur background requires the source image")
        return paint_blurred_source(size, source, blur_radius, blur_darken)

    elif mode == BACKGROUND_MODE_CUSTOM_IMAGE:
        if custom_image is None:
            raise ValueError("Custom background mode requires a custom image")
        return paint_custom_image(size, custom_image)

    else:
        raise ValueError(
            f"Unknown background mode: {mode}. "
            f"Valid modes: {BACKGROUND_MODE_COLOR}, {BACKGROUND_MODE_BLUR}, "
            f"{BACKGROUND_MODE_CUSTOM_IMAGE}"
        )
