"""
Tests for the batch apply engine.

Tests cover:
- Replaying one normalized snapshot on images of different sizes
- Replaying an expanded selection frame
- Per-item failure isolation and stage classification
- Progress, completion and error callbacks
- Skipping the reference item and cancellation
"""

import unittest
from unittest import mock

from conftest import encode_png, make_gradient_image

from BC_Libs.BatchLib.batch_apply import BatchApplyEngine
from BC_Libs.BatchLib.gallery_models import BatchReport, GalleryItem, ItemError
from BC_Libs.config import CropEngineConfig
from BC_Libs.ExportLib.export_encoder import EncodeError, ExportArtifact
from BC_Libs.GeometryLib.geometry_models import GeometrySnapshot, NormalizedRect
from BC_Libs.ImageLib.image_handle import ImageHandle
from BC_Libs.ImageLib.render_pipeline import ExpansionOptions

CENTER_HALF = GeometrySnapshot(rect=NormalizedRect(25, 25, 50, 50))


def _gallery():
    items = []
    for index, size in enumerate([(120, 80), (64, 64), (50, 100)]):
        handle = ImageHandle.from_bytes(encode_png(make_gradient_image(*size)), f"image_{index}.png")
        items.append(GalleryItem(id=f"item-{index}", handle=handle))
    return items


class TestBatchApply(unittest.IsolatedAsyncioTestCase):
    """Test BatchApplyEngine.apply."""

    def setUp(self):
        self.items = _gallery()

    async def test_each_item_gets_its_own_pixel_rect(self):
        engine = BatchApplyEngine()

        report = await engine.apply(CENTER_HALF, self.items)

        self.assertTrue(report.ok)
        self.assertEqual(report.succeeded, 3)
        self.assertEqual(self.items[0].output_bitmap.size, (60, 40))
        self.assertEqual(self.items[1].output_bitmap.size, (32, 32))
        self.assertEqual(self.items[2].output_bitmap.size, (25, 50))
        for item in self.items:
            self.assertEqual(item.saved_snapshot, CENTER_HALF)

    async def test_expansion_frame_scales_with_each_item(self):
        """Should reach the same fraction past every image when expansion is on."""
        engine = BatchApplyEngine()
        expansion = ExpansionOptions(enabled=True, canvas_margin=0.5)

        report = await engine.apply(GeometrySnapshot(rect=NormalizedRect.full()), self.items, expansion)

        self.assertTrue(report.ok)
        self.assertEqual(self.items[0].output_bitmap.size, (240, 160))
        self.assertEqual(self.items[1].output_bitmap.size, (128, 128))
        self.assertEqual(self.items[2].output_bitmap.size, (100, 200))

    async def test_artifacts_are_named_and_encoded(self):
        engine = BatchApplyEngine()

        await engine.apply(CENTER_HALF, self.items)

        artifact = self.items[0].output_artifact
        self.assertEqual(artifact.filename, "cropped-image_0.jpg")
        self.assertEqual(artifact.mime_type, "image/jpeg")
        self.assertTrue(artifact.data.startswith(b"\xff\xd8"))

    async def test_config_format_and_prefix(self):
        engine = BatchApplyEngine(CropEngineConfig(export_format="png", output_prefix="sq"))

        await engine.apply(CENTER_HALF, self.items)

        artifact = self.items[1].output_artifact
        self.assertEqual(artifact.filename, "sq-image_1.png")
        self.assertTrue(artifact.data.startswith(b"\x89PNG"))

    async def test_decode_failure_is_isolated(self):
        """Should report the broken item and still process the others."""
        previous = ExportArtifact("cropped-image_1.jpg", "image/jpeg", b"old")
        old_snapshot = GeometrySnapshot(rect=NormalizedRect.full(), rotation=90)
        self.items[1].store_output(old_snapshot, "old bitmap", previous)
        self.items[1].handle.source = b"corrupted"

        report = await BatchApplyEngine().apply(CENTER_HALF, self.items)

        self.assertEqual(report.processed, 3)
        self.assertEqual(report.succeeded, 2)
        self.assertEqual(report.errors[0].item_id, "item-1")
        self.assertEqual(report.errors[0].stage, "decode")
        self.assertIs(self.items[1].output_artifact, previous)
        self.assertEqual(self.items[1].saved_snapshot, old_snapshot)
        self.assertTrue(self.items[2].is_cropped)

    async def test_encode_failure_stage(self):
        with mock.patch(
            "BC_Libs.ExportLib.export_encoder.encode_surface",
            side_effect=EncodeError("disk full"),
        ):
            report = await BatchApplyEngine().apply(CENTER_HALF, self.items[:1])

        self.assertEqual(report.errors[0].stage, "encode")
        self.assertFalse(self.items[0].is_cropped)

    async def test_render_failure_stage(self):
        with mock.patch(
            "BC_Libs.ImageLib.render_pipeline.render_crop",
            side_effect=ValueError("bad rect"),
        ):
            report = await BatchApplyEngine().apply(CENTER_HALF, self.items[:1])

        self.assertEqual(report.errors[0].stage, "render")
        self.assertIsNone(self.items[0].output_bitmap)

    async def test_callbacks(self):
        on_progress = mock.Mock()
        on_item_complete = mock.Mock()
        on_error = mock.Mock()
        self.items[0].handle.source = b"corrupted"
        engine = BatchApplyEngine(
            on_progress=on_progress,
            on_item_complete=on_item_complete,
            on_error=on_error,
        )

        await engine.apply(CENTER_HALF, self.items)

        self.assertEqual(on_progress.call_count, 3)
        on_progress.assert_called_with(3, 3, "image_2.png")
        self.assertEqual(on_item_complete.call_count, 2)
        on_error.assert_called_once()
        failed_item, error = on_error.call_args[0]
        self.assertIs(failed_item, self.items[0])
        self.assertEqual(error.stage, "decode")

    async def test_reference_item_is_skipped(self):
        report = await BatchApplyEngine().apply(
            CENTER_HALF, self.items, reference_item_id="item-0"
        )

        self.assertEqual(report.processed, 2)
        self.assertFalse(self.items[0].is_cropped)
        self.assertTrue(self.items[1].is_cropped)

    async def test_placement_factory_called_per_item(self):
        factory = mock.Mock(return_value=None)

        await BatchApplyEngine().apply(CENTER_HALF, self.items, placement=factory)

        self.assertEqual(factory.call_count, 3)
        handle, pixel_rect = factory.call_args_list[0][0]
        self.assertIs(handle, self.items[0].handle)
        self.assertEqual(pixel_rect.size, (60, 40))

    async def test_cancel_stops_after_current_item(self):
        engine = BatchApplyEngine(on_item_complete=lambda item: engine.cancel())

        report = await engine.apply(CENTER_HALF, self.items)

        self.assertEqual(report.processed, 1)
        self.assertTrue(engine.is_cancelled)
        self.assertFalse(self.items[1].is_cropped)

    async def test_batch_item_delay(self):
        engine = BatchApplyEngine(CropEngineConfig(batch_item_delay=0.01))

        with mock.patch("asyncio.sleep", new_callable=mock.AsyncMock) as sleep:
            await engine.apply(CENTER_HALF, self.items)

        self.assertEqual(sleep.await_count, 2)

    async def test_rejects_non_snapshot(self):
        with self.assertRaises(TypeError):
            await BatchApplyEngine().apply({"rect": None}, self.items)


class TestBatchReport(unittest.TestCase):
    """Test BatchReport and ItemError."""

    def test_summary(self):
        report = BatchReport()
        report.record_success()
        report.record_success()
        report.record_error("item-2", "save", "exists")

        self.assertEqual(report.summary(), "2/3 succeeded, 1 failed")
        self.assertFalse(report.ok)
        self.assertEqual(report.to_dict()["errors"][0]["stage"], "save")

    def test_item_error_rejects_unknown_stage(self):
        with self.assertRaises(ValueError):
            ItemError("item-0", "upload", "nope")

    def test_empty_report_summary(self):
        self.assertEqual(BatchReport().summary(), "0/0 succeeded, 0 failed")
