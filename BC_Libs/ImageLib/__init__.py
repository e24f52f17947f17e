"""
ImageLib - Image handles and the crop render pipeline

This module provides image handles with lazy decoding, background painting
for canvas expansion, and the render pipeline that produces output surfaces.
"""

from BC_Libs.ImageLib.image_handle import (
    DecodeError,
    ImageHandle,
    decode_bitmap,
    get_supported_image_formats,
    is_supported_format,
)
from BC_Libs.ImageLib.background_fill import (
    apply_gaussian_blur,
    darken,
    paint_background,
)
from BC_Libs.ImageLib.render_pipeline import (
    ExpansionOptions,
    RenderError,
    fit_placement,
    render_crop,
    render_item,
    render_snapshot,
)

__all__ = [
    "DecodeError",
    "ImageHandle",
    "decode_bitmap",
    "get_supported_image_formats",
    "is_supported_format",
    "apply_gaussian_blur",
    "darken",
    "paint_background",
    "ExpansionOptions",
    "RenderError",
    "fit_placement",
    "render_crop",
    "render_item",
    "render_snapshot",
]
