import numpy as np

from gridprobe.core.chunk_fetcher import Cell
from gridprobe.core.grid_export import (
    changed_mask,
    format_table,
    is_numeric,
    padded_shape,
    to_numeric_array,
    to_text_array,
)


def rows_of(*rows):
    return [[Cell(str(v)) for v in row] for row in rows]


def test_padded_shape_uses_widest_row():
    assert padded_shape(rows_of([1, 2, 3, 4], [5, 6], [7, 8, 9, 10, 11])) == (3, 5)
    assert padded_shape([]) == (0, 0)


def test_text_array_pads_short_rows():
    text = to_text_array(rows_of([1, 2], [3]), fill="-")
    assert text.tolist() == [['1', '2'], ['3', '-']]


def test_numeric_array_pads_with_nan():
    values = to_numeric_array(rows_of([1, 2.5], [3]))
    assert values.dtype == np.float64
    np.testing.assert_array_equal(values[0], [1.0, 2.5])
    assert values[1, 0] == 3.0
    assert np.isnan(values[1, 1])


def test_non_numeric_cells_become_nan():
    values = to_numeric_array([[Cell('x'), Cell('4')]])
    assert np.isnan(values[0, 0])
    assert values[0, 1] == 4.0


def test_is_numeric():
    assert is_numeric(rows_of([1, 2], [3]))
    assert not is_numeric([[Cell('1'), Cell('<empty>')]])
    assert not is_numeric([])


def test_changed_mask():
    rows = [[Cell('1'), Cell('2', changed=True)], [Cell('3')]]
    assert changed_mask(rows).tolist() == [[False, True], [False, False]]


def test_format_table_headers_use_absolute_indices():
    table = format_table(rows_of([1, 2], [3, 4]), row_start=10, col_start=5)
    lines = table.splitlines()
    assert lines[0].split() == ['#', '[5]', '[6]']
    assert lines[1].split() == ['[10]', '1', '2']
    assert lines[2].split() == ['[11]', '3', '4']


def test_format_table_marks_changed_and_truncates():
    rows = [[Cell('7', changed=True), Cell('x' * 40)]]
    line = format_table(rows, max_width=10).splitlines()[1]
    assert '*7' in line
    assert 'xxxxxxx...' in line
    assert 'x' * 11 not in line
