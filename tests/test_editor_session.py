"""
Tests for the editor session.

Tests cover:
- Opening items with default or saved geometry
- Aspect presets, drag previews and history
- Switching and closing without side effects
- Commit, commit-and-advance and apply-to-all
- Canvas expansion frame changes
- Removing and clearing gallery items
"""

import asyncio
from unittest import mock

import pytest

from BC_Libs.BatchLib.editor_session import EditorSession, SessionClosedError
from BC_Libs.ExportLib.export_encoder import EncodeError
from BC_Libs.GeometryLib.geometry_models import GeometrySnapshot, NormalizedRect, PixelRect
from BC_Libs.ImageLib.render_pipeline import ExpansionOptions


class TestOpenAndEdit:
    """Tests for opening an item and editing its geometry."""

    def test_open_uses_default_snapshot(self, gallery):
        session = EditorSession()

        snapshot = session.open(gallery[0])

        assert snapshot == GeometrySnapshot(rect=NormalizedRect.full())
        assert session.is_open
        assert not session.can_undo
        assert not session.can_redo

    def test_open_uses_saved_snapshot(self, gallery):
        saved = GeometrySnapshot(rect=NormalizedRect(10, 10, 50, 50), rotation=30)
        gallery[0].saved_snapshot = saved
        session = EditorSession()

        assert session.open(gallery[0]) == saved
        assert session.rotation == 30

    def test_open_fits_viewport(self, gallery):
        session = EditorSession()
        session.open(gallery[0], viewport_size=(240, 160))

        assert session.viewport.zoom == pytest.approx(1.8)

    def test_square_aspect(self, gallery):
        """Should give a square pixel crop on a 120x80 image."""
        session = EditorSession()
        session.open(gallery[0])

        session.set_aspect(1.0)

        assert session.pixel_rect() == PixelRect(24, 4, 72, 72)
        assert session.can_undo

    def test_original_preset_restores_full_frame(self, gallery):
        session = EditorSession()
        session.open(gallery[0])
        session.set_aspect_preset("16:9")

        snapshot = session.set_aspect_preset("original")

        assert snapshot.rect == NormalizedRect.full()
        assert snapshot.aspect == pytest.approx(1.5)

    def test_unknown_preset(self, gallery):
        session = EditorSession()
        session.open(gallery[0])

        with pytest.raises(ValueError):
            session.set_aspect_preset("4:3")

    def test_preview_is_not_recorded(self, gallery):
        session = EditorSession()
        session.open(gallery[0])

        preview = session.preview_rect(10, 10, 30, 30)

        assert session.rect == preview
        assert len(session.history) == 1

        session.confirm_preview()
        assert len(session.history) == 2
        assert session.snapshot.rect == preview

    def test_cancel_preview(self, gallery):
        session = EditorSession()
        session.open(gallery[0])
        session.preview_rect(10, 10, 30, 30)

        session.cancel_preview()

        assert session.rect == NormalizedRect.full()

    def test_set_rect_follows_aspect(self, gallery):
        session = EditorSession()
        session.open(gallery[1])
        session.set_aspect(1.0)

        session.set_rect(0, 0, 80, 40)

        assert session.snapshot.rect == NormalizedRect(20, 0, 40, 40)

    def test_rotation_is_normalized(self, gallery):
        session = EditorSession()
        session.open(gallery[0])

        session.rotate_by(270)
        assert session.rotation == -90

        session.rotate_by(-90)
        assert session.rotation == 180

    def test_undo_redo_round_trip(self, gallery):
        session = EditorSession()
        session.open(gallery[0])
        session.set_rotation(15)
        session.set_rotation(30)

        assert session.undo().rotation == 15
        assert session.undo().rotation == 0
        assert session.undo() is None
        assert session.redo().rotation == 15

    def test_reset_keeps_aspect(self, gallery):
        session = EditorSession()
        session.open(gallery[0])
        session.set_aspect(1.0)
        session.set_rotation(40)
        session.set_rect(0, 0, 20, 20)

        snapshot = session.reset()

        assert snapshot.rotation == 0
        assert snapshot.aspect == 1.0
        assert session.pixel_rect() == PixelRect(24, 4, 72, 72)

    def test_load_snapshot(self, gallery):
        session = EditorSession()
        session.open(gallery[0])
        preset = GeometrySnapshot(rect=NormalizedRect(0, 0, 50, 50), aspect=1.5, rotation=5)

        session.load_snapshot(preset)

        assert session.snapshot == preset
        assert session.can_undo
        with pytest.raises(TypeError):
            session.load_snapshot(preset.to_dict())


class TestSwitchAndClose:
    """Tests for switching between items and closing the editor."""

    def test_switch_saves_outgoing_snapshot(self, gallery):
        session = EditorSession()
        session.open(gallery[0])
        edited = session.set_rotation(45)

        session.switch_to(gallery[1])

        assert gallery[0].saved_snapshot == edited
        assert session.item is gallery[1]
        assert not session.can_undo

        assert session.switch_to(gallery[0]) == edited

    def test_close_leaves_item_untouched(self, gallery):
        session = EditorSession()
        session.open(gallery[2])
        session.set_rotation(45)

        session.close()

        assert gallery[2].saved_snapshot is None
        assert not gallery[2].is_cropped
        assert not session.is_open

    def test_operations_require_open_item(self, gallery):
        session = EditorSession()

        with pytest.raises(SessionClosedError):
            session.set_rotation(10)
        with pytest.raises(SessionClosedError):
            session.snapshot
        with pytest.raises(SessionClosedError):
            asyncio.run(session.commit())


class TestCommit:
    """Tests for committing crops."""

    def test_commit_stores_output(self, gallery):
        session = EditorSession()
        session.open(gallery[0])
        session.set_aspect(1.0)

        artifact = asyncio.run(session.commit())

        assert artifact.filename == "cropped-image_0.jpg"
        assert gallery[0].output_artifact is artifact
        assert gallery[0].output_bitmap.size == (72, 72)
        assert gallery[0].saved_snapshot == session.snapshot

    def test_failed_commit_keeps_previous_output(self, gallery):
        """Should leave the last good output in place when encoding fails."""
        session = EditorSession()
        session.open(gallery[0])
        first = asyncio.run(session.commit())
        committed = gallery[0].saved_snapshot
        session.set_rotation(45)

        with mock.patch(
            "BC_Libs.ExportLib.export_encoder.encode_surface",
            side_effect=EncodeError("no space"),
        ):
            with pytest.raises(EncodeError):
                asyncio.run(session.commit())

        assert gallery[0].output_artifact is first
        assert gallery[0].saved_snapshot == committed
        assert session.rotation == 45

    def test_commit_and_advance(self, gallery):
        session = EditorSession()
        session.open(gallery[0])

        upcoming = asyncio.run(session.commit_and_advance(gallery))

        assert upcoming is gallery[1]
        assert session.item is gallery[1]
        assert gallery[0].is_cropped

    def test_commit_and_advance_closes_after_last(self, gallery):
        session = EditorSession()
        session.open(gallery[2])

        assert asyncio.run(session.commit_and_advance(gallery)) is None
        assert not session.is_open
        assert gallery[2].is_cropped

    def test_apply_to_all(self, gallery):
        session = EditorSession()
        session.open(gallery[0])
        session.set_rotation(90)

        report = asyncio.run(session.apply_to_all(gallery))

        assert report.succeeded == 3
        assert all(item.saved_snapshot.rotation == 90 for item in gallery)

    def test_apply_to_all_excluding_current(self, gallery):
        session = EditorSession()
        session.open(gallery[0])

        report = asyncio.run(session.apply_to_all(gallery, include_current=False))

        assert report.processed == 2
        assert not gallery[0].is_cropped

    def test_placement_factory_is_used(self, gallery):
        session = EditorSession()
        session.placement_factory = mock.Mock(return_value=None)
        session.open(gallery[1])

        asyncio.run(session.commit())

        session.placement_factory.assert_called_once()


class TestExpansionFrame:
    """Tests for selections that reach past the image while expansion is on."""

    def test_enabling_keeps_selection_on_image(self, gallery):
        """Should keep covering the same pixels when the frame grows."""
        session = EditorSession()
        session.open(gallery[0])
        session.set_rotation(10)

        session.expansion = ExpansionOptions(enabled=True, canvas_margin=0.25)

        assert session.pixel_rect() == PixelRect(0, 0, 120, 80)
        assert session.rotation == 10
        assert not session.can_undo

    def test_full_frame_reaches_past_image(self, gallery):
        session = EditorSession()
        session.open(gallery[0])
        session.expansion = ExpansionOptions(enabled=True, canvas_margin=0.25)

        session.set_rect(0, 0, 100, 100)

        assert session.pixel_rect() == PixelRect(-30, -20, 180, 120)

    def test_commit_renders_expanded_output(self, gallery):
        session = EditorSession()
        session.open(gallery[0])
        session.expansion = ExpansionOptions(enabled=True, canvas_margin=0.25)
        session.set_rect(0, 0, 100, 100)

        asyncio.run(session.commit())

        assert gallery[0].output_bitmap.size == (180, 120)

    def test_disabling_clamps_back_to_image(self, gallery):
        session = EditorSession()
        session.open(gallery[0])
        session.expansion = ExpansionOptions(enabled=True, canvas_margin=0.25)
        session.set_rect(0, 0, 100, 100)

        session.expansion = ExpansionOptions(enabled=False)

        assert session.rect == NormalizedRect.full()
        assert session.pixel_rect() == PixelRect(0, 0, 120, 80)

    def test_open_with_expansion_starts_on_image(self, gallery):
        session = EditorSession()
        session.expansion = ExpansionOptions(enabled=True)

        session.open(gallery[1])

        assert session.pixel_rect() == PixelRect(0, 0, 64, 64)

    def test_same_frame_keeps_history(self, gallery):
        """Should not restart history when only the background changes."""
        session = EditorSession()
        session.open(gallery[0])
        session.set_rotation(10)

        session.expansion = ExpansionOptions(color=(1, 2, 3, 255))

        assert session.can_undo

    def test_rejects_non_options(self, gallery):
        session = EditorSession()
        with pytest.raises(TypeError):
            session.expansion = {"enabled": True}


class TestGalleryEdits:
    """Tests for removing items from the gallery."""

    def test_remove_open_item_closes_session(self, gallery):
        session = EditorSession()
        session.open(gallery[0])
        asyncio.run(session.commit())

        removed = session.remove_item(gallery, "item-0")

        assert removed.id == "item-0"
        assert not removed.is_cropped
        assert not session.is_open
        assert [item.id for item in gallery] == ["item-1", "item-2"]

    def test_remove_other_item_keeps_session(self, gallery):
        session = EditorSession()
        session.open(gallery[0])
        session.set_rotation(20)

        session.remove_item(gallery, "item-1")

        assert session.item is gallery[0]
        assert session.rotation == 20
        assert [item.id for item in gallery] == ["item-0", "item-2"]

    def test_remove_unknown_item(self, gallery):
        session = EditorSession()

        assert session.remove_item(gallery, "missing") is None
        assert len(gallery) == 3

    def test_clear_all(self, gallery):
        session = EditorSession()
        session.open(gallery[1])
        asyncio.run(session.commit())
        cropped = gallery[1]

        assert session.clear_all(gallery) == 3

        assert gallery == []
        assert not session.is_open
        assert not cropped.is_cropped
