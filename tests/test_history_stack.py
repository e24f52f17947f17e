"""
Unit tests for history_stack module.
"""

import pytest

from BC_Libs.GeometryLib.geometry_models import GeometrySnapshot, NormalizedRect
from BC_Libs.GeometryLib.history_stack import HistoryStack


def _snapshot(rotation: int) -> GeometrySnapshot:
    return GeometrySnapshot(rect=NormalizedRect.full(), rotation=rotation)


class TestHistoryStack:
    """Tests for HistoryStack."""

    def test_starts_with_initial_snapshot(self):
        history = HistoryStack(_snapshot(0))

        assert history.current == _snapshot(0)
        assert len(history) == 1
        assert not history.can_undo()
        assert not history.can_redo()

    def test_equal_push_is_ignored(self):
        """Should not record a snapshot equal to the current one."""
        history = HistoryStack(_snapshot(0))

        assert history.push(_snapshot(0)) is False
        assert len(history) == 1

    def test_undo_redo(self):
        history = HistoryStack(_snapshot(0))
        history.push(_snapshot(10))
        history.push(_snapshot(20))

        assert history.undo() == _snapshot(10)
        assert history.undo() == _snapshot(0)
        assert history.redo() == _snapshot(10)
        assert history.current == _snapshot(10)

    def test_undo_stops_at_initial_snapshot(self):
        history = HistoryStack(_snapshot(0))
        history.push(_snapshot(10))

        history.undo()
        assert history.undo() is None
        assert history.current == _snapshot(0)

    def test_redo_with_nothing_undone(self):
        history = HistoryStack(_snapshot(0))
        assert history.redo() is None

    def test_push_discards_redo_branch(self):
        """Should drop undone entries when a new edit is pushed."""
        history = HistoryStack(_snapshot(0))
        history.push(_snapshot(10))
        history.push(_snapshot(20))
        history.undo()

        history.push(_snapshot(30))

        assert not history.can_redo()
        assert history.undo() == _snapshot(10)

    def test_evicts_oldest_at_capacity(self):
        history = HistoryStack(_snapshot(0), capacity=3)
        for rotation in (10, 20, 30):
            history.push(_snapshot(rotation))

        assert len(history) == 3
        assert history.undo() == _snapshot(20)
        assert history.undo() == _snapshot(10)
        assert history.undo() is None

    def test_reset(self):
        history = HistoryStack(_snapshot(0))
        history.push(_snapshot(10))

        history.reset(_snapshot(45))

        assert len(history) == 1
        assert history.current == _snapshot(45)
        assert history.pointer == 0

    def test_rejects_zero_capacity(self):
        with pytest.raises(ValueError):
            HistoryStack(_snapshot(0), capacity=0)
