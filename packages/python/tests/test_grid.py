import pandas as pd
import pytest

from sheet_engine.errors import GridBoundsError
from sheet_engine.grid import Grid, cell_id, column_index, column_label, parse_cell_id
from sheet_engine.utils import CellAddress, GridRange


@pytest.fixture
def grid():
    return Grid.from_rows(
        [
            [1, 2, 3],
            ["a", "b", "c"],
            [None, "=A1+B1", True],
        ],
        columns=["Id", "Name", "Done"],
    )


class TestAddressing:
    def test_column_labels(self):
        assert column_label(0) == "A"
        assert column_label(25) == "Z"
        assert column_label(26) == "AA"
        assert column_label(701) == "ZZ"
        assert column_label(702) == "AAA"

    def test_column_limit(self):
        assert column_label(16383) == "XFD"
        assert column_label(18277) == "ZZZ"
        assert column_index("ZZZ") == 18277
        with pytest.raises(ValueError):
            column_label(18278)

    def test_column_round_trip(self):
        for n in range(0, 1001):
            assert column_index(column_label(n)) == n

    def test_column_index_is_case_insensitive(self):
        assert column_index("ab") == 27

    def test_invalid_columns(self):
        with pytest.raises(ValueError):
            column_label(-1)
        with pytest.raises(ValueError):
            column_index("ZZZZ")

    def test_cell_id_round_trip(self):
        for row in range(0, 50, 7):
            for col in range(0, 800, 37):
                assert parse_cell_id(cell_id(row, col)) == (row, col)

    def test_cell_ids(self):
        assert cell_id(0, 0) == "A1"
        assert cell_id(2, 1) == "B3"
        assert parse_cell_id("$C$10") == CellAddress(9, 2)

    def test_invalid_cell_ids(self):
        for ref in ["A0", "1A", "", "A", "A1:B2"]:
            with pytest.raises(ValueError):
                parse_cell_id(ref)


class TestGridRange:
    def test_bounds_ignore_corner_order(self):
        area = GridRange(CellAddress(3, 4), CellAddress(1, 2))
        assert area.bounds() == (1, 3, 2, 4)
        assert area.shape == (3, 3)
        assert area.contains(2, 3)
        assert not area.contains(0, 3)

    def test_addresses_are_row_major(self):
        area = GridRange(CellAddress(1, 1), CellAddress(0, 0))
        assert [a.id() for a in area.addresses()] == ["A1", "B1", "A2", "B2"]


class TestGrid:
    def test_empty_default_size(self):
        grid = Grid.empty()
        assert grid.shape == (20, 10)
        assert grid.columns[:3] == ["A", "B", "C"]
        assert all(len(row) == 10 for row in grid.data)
        assert grid.get(19, 9) is None

    def test_short_rows_are_padded(self):
        grid = Grid(2, 3, data=[[1], [1, 2, 3, 4]])
        assert grid.data == [[1, None, None], [1, 2, 3]]

    def test_header_count_must_match(self):
        with pytest.raises(ValueError):
            Grid(2, 2, columns=["only one"])

    def test_get_and_set(self, grid):
        assert grid.get(0, 1) == 2
        assert grid.set(0, 1, "x") is grid
        assert grid.get(0, 1) == "x"
        assert grid.get_by_id("B1") == "x"
        grid.set_by_id("$C$3", False)
        assert grid.get(2, 2) is False

    def test_out_of_bounds(self, grid):
        for row, col in [(-1, 0), (0, -1), (3, 0), (0, 3)]:
            with pytest.raises(GridBoundsError):
                grid.get(row, col)
            with pytest.raises(IndexError):
                grid.set(row, col, 1)
        with pytest.raises(GridBoundsError):
            grid.get_by_id("D1")

    def test_copy_is_independent(self, grid):
        clone = grid.copy()
        assert clone == grid
        clone.set(0, 0, 99)
        clone.columns[0] = "Other"
        assert grid.get(0, 0) == 1
        assert grid.columns[0] == "Id"
        assert clone != grid

    def test_items_and_cell_ids(self, grid):
        assert grid.cell_ids() == ["A1", "B1", "C1", "A2", "B2", "C2", "B3", "C3"]
        assert next(grid.items()) == (CellAddress(0, 0), 1)

    def test_region(self, grid):
        area = GridRange(CellAddress(1, 2), CellAddress(0, 1))
        assert grid.region(area) == [[2, 3], ["b", "c"]]
        with pytest.raises(GridBoundsError):
            grid.region(GridRange(CellAddress(0, 0), CellAddress(5, 0)))

    def test_clear_region(self, grid):
        grid.clear_region(GridRange(CellAddress(0, 0), CellAddress(1, 1)))
        assert grid.to_rows() == [
            [None, None, 3],
            [None, None, "c"],
            [None, "=A1+B1", True],
        ]

    def test_write_region_truncates(self, grid, caplog):
        written = grid.write_region(1, 1, [[7, 8, 9], [10, 11, 12], [13, 14, 15]])
        assert written == 4
        assert grid.to_rows() == [
            [1, 2, 3],
            ["a", 7, 8],
            [None, 10, 11],
        ]
        assert "5 cells dropped" in caplog.text


class TestRowsAndColumns:
    def test_insert_row(self, grid):
        grid.insert_row(1)
        assert grid.rows == 4
        assert grid.to_rows()[1] == [None, None, None]
        assert grid.get(2, 0) == "a"
        grid.insert_row()
        assert grid.to_rows()[-1] == [None, None, None]
        with pytest.raises(GridBoundsError):
            grid.insert_row(10)

    def test_delete_row(self, grid):
        grid.delete_row(0)
        assert grid.rows == 2
        assert grid.get(0, 0) == "a"
        with pytest.raises(GridBoundsError):
            grid.delete_row(2)

    def test_add_and_delete_column(self, grid):
        grid.add_column()
        assert grid.columns == ["Id", "Name", "Done", "D"]
        assert grid.get(0, 3) is None
        grid.add_column("Notes")
        assert grid.cols == 5
        grid.delete_column(1)
        assert grid.columns == ["Id", "Done", "D", "Notes"]
        assert grid.to_rows()[1] == ["a", "c", None, None]
        with pytest.raises(GridBoundsError):
            grid.delete_column(4)

    def test_find_column(self, grid):
        assert grid.find_column("Name") == 1
        assert grid.find_column("Nmae", similarity=0.7) == 1
        assert grid.find_column("Nmae") is None
        assert grid.find_column("Unrelated") is None


class TestDataFrames:
    def test_to_dataframe(self, grid):
        df = grid.to_dataframe()
        assert list(df.columns) == ["Id", "Name", "Done"]
        assert df.shape == (3, 3)
        assert df.iat[2, 1] == "=A1+B1"

    def test_dataframe_round_trip(self, grid):
        assert Grid.from_dataframe(grid.to_dataframe()) == grid

    def test_from_dataframe_converts_missing_values(self):
        df = pd.DataFrame({"x": [1.5, None], "y": ["a", None]})
        grid = Grid.from_dataframe(df)
        assert grid.columns == ["x", "y"]
        assert grid.to_rows() == [[1.5, "a"], [None, None]]
