"""
Unit tests for geometry_models module.

Tests value validation, rotation normalization and the geometry exchange format.
"""

import pytest

from BC_Libs.GeometryLib.geometry_models import (
    GeometrySnapshot,
    NormalizedRect,
    PixelRect,
    Placement,
    normalize_rotation,
)


class TestNormalizeRotation:
    """Tests for normalize_rotation function."""

    @pytest.mark.parametrize("degrees, expected", [
        (0, 0),
        (360, 0),
        (270, -90),
        (-180, 180),
        (180, 180),
        (540, 180),
        (-90, -90),
        (89.6, 90),
    ])
    def test_maps_into_half_open_range(self, degrees, expected):
        """Should map any angle into (-180, 180]."""
        assert normalize_rotation(degrees) == expected

    def test_rejects_non_finite(self):
        """Should reject NaN and infinity."""
        with pytest.raises(ValueError):
            normalize_rotation(float("nan"))
        with pytest.raises(ValueError):
            normalize_rotation(float("inf"))


class TestNormalizedRect:
    """Tests for NormalizedRect validation."""

    def test_valid_rect(self):
        rect = NormalizedRect(10, 20, 30, 40)

        assert rect.center == (25.0, 40.0)
        assert rect.to_dict() == {"x": 10, "y": 20, "width": 30, "height": 40}

    def test_full_rect(self):
        assert NormalizedRect.full() == NormalizedRect(0, 0, 100, 100)

    def test_rejects_negative_origin(self):
        with pytest.raises(ValueError):
            NormalizedRect(-1, 0, 10, 10)

    def test_rejects_zero_size(self):
        with pytest.raises(ValueError):
            NormalizedRect(0, 0, 0, 10)

    def test_rejects_rect_past_right_edge(self):
        """Should reject x + width > 100."""
        with pytest.raises(ValueError):
            NormalizedRect(50, 0, 60, 10)

    def test_tolerates_float_noise_at_edge(self):
        """Should accept x + width marginally above 100."""
        rect = NormalizedRect(33.333333333, 0, 66.666666667 + 1e-9, 100)
        assert rect.width > 0

    def test_rejects_non_numeric(self):
        with pytest.raises(TypeError):
            NormalizedRect("a", 0, 10, 10)

    def test_from_dict_missing_field(self):
        with pytest.raises(ValueError, match="missing"):
            NormalizedRect.from_dict({"x": 0, "y": 0, "width": 10})


class TestPixelRect:
    """Tests for PixelRect validation."""

    def test_box_and_center(self):
        rect = PixelRect(1000, 750, 2000, 1500)

        assert rect.box == (1000, 750, 3000, 2250)
        assert rect.size == (2000, 1500)
        assert rect.center == (2000.0, 1500.0)

    def test_rejects_float_values(self):
        with pytest.raises(TypeError):
            PixelRect(1.5, 0, 10, 10)

    def test_rejects_empty_rect(self):
        with pytest.raises(ValueError):
            PixelRect(0, 0, 0, 1)

    def test_lies_within(self):
        assert PixelRect(0, 0, 100, 100).lies_within(100, 100)
        assert not PixelRect(0, 0, 150, 100).lies_within(100, 100)
        assert not PixelRect(-25, 0, 50, 50).lies_within(100, 100)

    def test_negative_origin_for_expanded_selection(self):
        rect = PixelRect(-25, -25, 150, 150)
        assert rect.box == (-25, -25, 125, 125)


class TestGeometrySnapshot:
    """Tests for GeometrySnapshot."""

    def test_defaults(self):
        snapshot = GeometrySnapshot(rect=NormalizedRect.full())

        assert snapshot.aspect is None
        assert snapshot.rotation == 0

    def test_rejects_out_of_range_rotation(self):
        with pytest.raises(ValueError):
            GeometrySnapshot(rect=NormalizedRect.full(), rotation=200)
        with pytest.raises(ValueError):
            GeometrySnapshot(rect=NormalizedRect.full(), rotation=-180)

    def test_rejects_non_positive_aspect(self):
        with pytest.raises(ValueError):
            GeometrySnapshot(rect=NormalizedRect.full(), aspect=0)

    def test_rejects_non_rect(self):
        with pytest.raises(TypeError):
            GeometrySnapshot(rect={"x": 0, "y": 0, "width": 10, "height": 10})

    def test_with_rotation_normalizes(self):
        snapshot = GeometrySnapshot(rect=NormalizedRect.full()).with_rotation(270)
        assert snapshot.rotation == -90

    def test_exchange_format_round_trip(self):
        """Should survive to_dict/from_dict unchanged."""
        snapshot = GeometrySnapshot(
            rect=NormalizedRect(12.5, 5, 75, 90), aspect=16 / 9, rotation=-45
        )
        data = snapshot.to_dict()

        assert data == {
            "rect": {"x": 12.5, "y": 5, "width": 75, "height": 90},
            "aspect": 16 / 9,
            "rotation": -45,
        }
        assert GeometrySnapshot.from_dict(data) == snapshot

    def test_from_dict_normalizes_rotation(self):
        """Should accept rotations outside (-180, 180] from other tools."""
        snapshot = GeometrySnapshot.from_dict({
            "rect": {"x": 0, "y": 0, "width": 100, "height": 100},
            "aspect": None,
            "rotation": 270,
        })
        assert snapshot.rotation == -90

    def test_from_dict_missing_rect(self):
        with pytest.raises(ValueError):
            GeometrySnapshot.from_dict({"aspect": 1.0, "rotation": 0})

    def test_from_dict_not_a_dict(self):
        with pytest.raises(ValueError):
            GeometrySnapshot.from_dict(None)


class TestPlacement:
    """Tests for Placement."""

    def test_for_crop(self):
        placement = Placement.for_crop(PixelRect(10, 20, 5, 5))

        assert placement == Placement(offset_x=-10.0, offset_y=-20.0, scale=1.0)
        assert placement.is_identity_crop(PixelRect(10, 20, 5, 5))
        assert not placement.is_identity_crop(PixelRect(0, 0, 5, 5))

    def test_rejects_non_positive_scale(self):
        with pytest.raises(ValueError):
            Placement(scale=0)
