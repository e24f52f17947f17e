"""
Pytest configuration and shared fixtures for Bulk Crop tests.

This module provides shared test fixtures and configuration
used across multiple test modules.
"""

from io import BytesIO

import numpy as np
import pytest
from PIL import Image

from BC_Libs.BatchLib.gallery_models import GalleryItem
from BC_Libs.ImageLib.image_handle import ImageHandle


def make_quadrant_image(width: int = 100, height: int = 100) -> Image.Image:
    """
    Build an RGBA image with four solid quadrants.

    Top-left red, top-right green, bottom-left blue, bottom-right white.
    """
    pixels = np.zeros((height, width, 4), dtype=np.uint8)
    pixels[..., 3] = 255
    half_w, half_h = width // 2, height // 2
    pixels[:half_h, :half_w, 0] = 255
    pixels[:half_h, half_w:, 1] = 255
    pixels[half_h:, :half_w, 2] = 255
    pixels[half_h:, half_w:, :3] = 255
    return Image.fromarray(pixels)


def make_gradient_image(width: int, height: int) -> Image.Image:
    """RGB image whose pixels encode their own position (for exact crop checks)."""
    xs = np.arange(width, dtype=np.uint32)
    ys = np.arange(height, dtype=np.uint32)
    pixels = np.zeros((height, width, 3), dtype=np.uint8)
    pixels[..., 0] = (xs[None, :] % 256).astype(np.uint8)
    pixels[..., 1] = (ys[:, None] % 256).astype(np.uint8)
    pixels[..., 2] = ((xs[None, :] + ys[:, None]) % 251).astype(np.uint8)
    return Image.fromarray(pixels)


def encode_png(image: Image.Image) -> bytes:
    buffer = BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def temp_base_dir(tmp_path):
    """
    Provide a temporary base directory for presets and outputs.

    Args:
        tmp_path: Pytest's built-in temporary directory fixture

    Returns:
        Path object pointing to a temporary directory
    """
    return tmp_path


@pytest.fixture
def quadrant_image():
    """100x100 RGBA image with red/green/blue/white quadrants."""
    return make_quadrant_image()


@pytest.fixture
def gradient_image():
    """200x100 RGB image with position-encoded pixels."""
    return make_gradient_image(200, 100)


@pytest.fixture
def photo_handle():
    """Header-only handle of a 4000x3000 photo."""
    return ImageHandle(name="photo.jpg", native_width=4000, native_height=3000)


@pytest.fixture
def wide_handle():
    """Header-only handle of a 1000x500 image."""
    return ImageHandle(name="wide.png", native_width=1000, native_height=500)


@pytest.fixture
def gallery():
    """Three gallery items of different sizes backed by encoded PNG bytes."""
    items = []
    for index, size in enumerate([(120, 80), (64, 64), (50, 100)]):
        image = make_gradient_image(*size)
        handle = ImageHandle.from_bytes(encode_png(image), f"image_{index}.png")
        items.append(GalleryItem(id=f"item-{index}", handle=handle))
    return items
