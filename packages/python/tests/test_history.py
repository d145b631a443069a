import pytest

from sheet_engine.grid import Grid
from sheet_engine.history import History


def grid_with(value):
    return Grid(1, 1).set(0, 0, value)


class TestHistory:
    def test_undo_then_redo(self):
        history = History()
        live = grid_with("E0")
        for i in range(1, 4):
            history.record(live)
            live = live.copy().set(0, 0, f"E{i}")

        live = history.undo(live)
        assert live.get(0, 0) == "E2"
        live = history.redo(live)
        assert live.get(0, 0) == "E3"

    def test_undo_all_the_way(self):
        history = History()
        live = grid_with(0)
        for i in range(1, 6):
            history.record(live)
            live = live.copy().set(0, 0, i)
        for expected in [4, 3, 2, 1, 0]:
            live = history.undo(live)
            assert live.get(0, 0) == expected
        assert history.undo(live) is None
        assert not history.can_undo
        assert len(history.redo_stack) == 5

    def test_new_edit_invalidates_redo(self):
        history = History()
        live = grid_with("a")
        history.record(live)
        live = live.copy().set(0, 0, "b")
        live = history.undo(live)
        assert history.can_redo
        history.record(live)
        assert not history.can_redo
        assert history.redo(live) is None

    def test_capacity_drops_oldest(self):
        history = History(capacity=3)
        live = grid_with(0)
        for i in range(1, 6):
            history.record(live)
            live = live.copy().set(0, 0, i)
        assert len(history.undo_stack) == 3
        values = []
        while (previous := history.undo(live)) is not None:
            live = previous
            values.append(live.get(0, 0))
        assert values == [4, 3, 2]

    def test_snapshots_are_copies(self):
        history = History()
        live = grid_with("before")
        history.record(live)
        live.set(0, 0, "after")
        assert history.undo(live).get(0, 0) == "before"

    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            History(capacity=0)

    def test_clear(self):
        history = History()
        history.record(grid_with(1))
        history.clear()
        assert not history.can_undo
