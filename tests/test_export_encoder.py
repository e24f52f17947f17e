"""
Tests for export encoding.

Tests cover:
- Format resolution
- Output naming
- JPEG, PNG and PDF encoding
- Alpha flattening
- Error handling
"""

import asyncio
import unittest
from io import BytesIO
from unittest import mock

from PIL import Image

from BC_Libs.ExportLib.export_encoder import (
    EncodeError,
    ExportArtifact,
    ExportFormat,
    _flatten,
    build_output_name,
    encode_artifact,
    encode_surface,
    resolve_format,
)


class TestResolveFormat(unittest.TestCase):
    """Test resolve_format."""

    def test_aliases(self):
        self.assertIs(resolve_format("jpeg"), ExportFormat.JPEG)
        self.assertIs(resolve_format("JPG"), ExportFormat.JPEG)
        self.assertIs(resolve_format(".png"), ExportFormat.PNG)
        self.assertIs(resolve_format("pdf"), ExportFormat.PDF)

    def test_passes_enum_through(self):
        self.assertIs(resolve_format(ExportFormat.PNG), ExportFormat.PNG)

    def test_unknown_format(self):
        with self.assertRaises(ValueError):
            resolve_format("gif")

    def test_format_metadata(self):
        self.assertEqual(ExportFormat.PDF.mime_type, "application/pdf")
        self.assertEqual(ExportFormat.JPEG.extension, "jpg")
        self.assertEqual(ExportFormat.PNG.pil_format, "PNG")


class TestBuildOutputName(unittest.TestCase):
    """Test build_output_name."""

    def test_replaces_extension(self):
        self.assertEqual(build_output_name("cropped", "beach.png", "jpg"), "cropped-beach.jpg")

    def test_keeps_inner_dots(self):
        self.assertEqual(
            build_output_name("cropped", "holiday.photo.jpeg", "png"),
            "cropped-holiday.photo.png",
        )

    def test_accepts_export_format(self):
        self.assertEqual(
            build_output_name("cropped", "dir/sub/pic.PNG", ExportFormat.PDF),
            "cropped-pic.pdf",
        )

    def test_strips_windows_directories(self):
        self.assertEqual(build_output_name("cropped", "C:\\shots\\pic.png", ".jpg"), "cropped-pic.jpg")

    def test_empty_prefix(self):
        self.assertEqual(build_output_name("", "a.png", "jpg"), "a.jpg")

    def test_empty_name(self):
        self.assertEqual(build_output_name("cropped", "", "jpg"), "cropped-image.jpg")


class TestEncodeSurface(unittest.TestCase):
    """Test encode_surface."""

    def setUp(self):
        self.surface = Image.new("RGBA", (20, 10), (200, 50, 25, 255))

    def test_jpeg(self):
        data = encode_surface(self.surface, "jpeg")

        self.assertTrue(data.startswith(b"\xff\xd8"))
        decoded = Image.open(BytesIO(data))
        self.assertEqual(decoded.mode, "RGB")
        self.assertEqual(decoded.size, (20, 10))

    def test_png_preserves_alpha(self):
        surface = Image.new("RGBA", (4, 4), (10, 20, 30, 40))

        data = encode_surface(surface, ExportFormat.PNG)

        self.assertTrue(data.startswith(b"\x89PNG"))
        self.assertEqual(Image.open(BytesIO(data)).getpixel((0, 0)), (10, 20, 30, 40))

    def test_pdf(self):
        data = encode_surface(self.surface, "pdf")
        self.assertTrue(data.startswith(b"%PDF"))

    def test_quality_is_clamped(self):
        self.assertTrue(encode_surface(self.surface, "jpeg", quality=500))
        self.assertTrue(encode_surface(self.surface, "jpeg", quality=-3))

    def test_rejects_non_image(self):
        with self.assertRaises(TypeError):
            encode_surface(b"bytes", "png")

    def test_empty_output_raises(self):
        with mock.patch.object(Image.Image, "save", return_value=None):
            with self.assertRaises(EncodeError):
                encode_surface(self.surface, "png")

    def test_pillow_failure_raises(self):
        with mock.patch.object(Image.Image, "save", side_effect=OSError("encoder error -2")):
            with self.assertRaises(EncodeError):
                encode_surface(self.surface, "jpeg")


class TestFlatten(unittest.TestCase):
    """Test alpha flattening for formats without transparency."""

    def test_transparent_pixels_become_matte(self):
        surface = Image.new("RGBA", (4, 4), (255, 0, 0, 0))

        flat = _flatten(surface)

        self.assertEqual(flat.mode, "RGB")
        self.assertEqual(flat.getpixel((0, 0)), (0, 0, 0))

    def test_opaque_pixels_unchanged(self):
        flat = _flatten(Image.new("RGBA", (4, 4), (255, 0, 0, 255)))
        self.assertEqual(flat.getpixel((0, 0)), (255, 0, 0))

    def test_grayscale_is_converted(self):
        self.assertEqual(_flatten(Image.new("L", (2, 2), 7)).mode, "RGB")


class TestEncodeArtifact(unittest.TestCase):
    """Test encode_artifact."""

    def test_named_artifact(self):
        surface = Image.new("RGB", (8, 8), (1, 2, 3))

        artifact = asyncio.run(encode_artifact(surface, "scan.tiff", "png", prefix="cropped"))

        self.assertIsInstance(artifact, ExportArtifact)
        self.assertEqual(artifact.filename, "cropped-scan.png")
        self.assertEqual(artifact.mime_type, "image/png")
        self.assertEqual(artifact.size, len(artifact.data))
