import pytest

from gridprobe.core.chunk_fetcher import Cell, FetchResult
from gridprobe.core.settings import FetchLimits
from gridprobe.gui.matrix_view import MODE_COLS, MODE_ROWS, FetchRequest, MatrixView


def result_of(rows, total_rows=None, total_cols=None, changed=()):
    cells = [
        [Cell(str(v), changed=(i, j) in changed) for j, v in enumerate(row)]
        for i, row in enumerate(rows)
    ]
    return FetchResult(
        cells=cells,
        total_rows=total_rows,
        total_cols=total_cols,
        max_row_length_seen=max((len(r) for r in rows), default=0),
    )


@pytest.fixture
def view(qtbot):
    widget = MatrixView("grid", limits=FetchLimits(row_batch=20, col_batch=10))
    qtbot.addWidget(widget)
    requests = []
    widget.fetch_requested.connect(requests.append)
    widget.requests = requests
    return widget


def test_initial_state(view):
    assert view.status_label.text() == "Ready"
    assert view._size_label.text() == "(Size: ? x ?)"
    assert view.table.rowCount() == 0
    assert not view.is_loading


def test_first_request_uses_batch_sizes(view):
    assert view.fetch_more_rows()
    assert view.requests == [FetchRequest(MODE_ROWS, 0, 20, 0, 10, epoch=0)]
    assert view.is_loading
    assert view.status_label.text() == "Loading..."
    assert not view.load_rows_btn.isEnabled()


def test_requests_are_serialized(view):
    view.fetch_more_rows()
    assert not view.fetch_more_rows()
    assert not view.fetch_more_cols()
    assert len(view.requests) == 1


def test_jagged_rows_are_rendered(view):
    view.fetch_more_rows()
    view.append_result(view.requests[0], result_of([[1, 2, 3, 4], [5, 6], [7, 8, 9, 10, 11]], total_rows=3))

    assert view.table.rowCount() == 3
    assert view.table.columnCount() == 5
    assert (view.loaded_rows, view.loaded_cols) == (3, 5)
    assert view.cell_text(1, 1) == "6"
    assert view.cell_text(1, 2) is None
    assert view.table.verticalHeaderItem(2).text() == "[2]"
    assert view.table.horizontalHeaderItem(4).text() == "[4]"
    assert view._size_label.text() == "(Size: 3 x ?)"
    assert view.load_rows_btn.text() == "All rows loaded"
    assert not view.load_rows_btn.isEnabled()
    assert view.load_cols_btn.isEnabled()


def test_next_row_batch_is_clipped_to_total(view):
    view.fetch_more_rows()
    view.append_result(view.requests[0], result_of([[i] for i in range(20)], total_rows=25))
    assert view.fetch_more_rows()
    assert view.requests[1] == FetchRequest(MODE_ROWS, 20, 5, 0, 10, epoch=0)


def test_wider_rows_widen_the_table(view):
    view.fetch_more_rows()
    view.append_result(view.requests[0], result_of([[1, 2]], total_rows=2))
    view.fetch_more_rows()
    view.append_result(view.requests[1], result_of([[3, 4, 5]], total_rows=2))
    assert view.loaded_cols == 3
    assert view.cell_text(1, 2) == "5"
    assert view.table.horizontalHeaderItem(2).text() == "[2]"


def test_column_batches(view):
    view.fetch_more_rows()
    view.append_result(view.requests[0], result_of([list(range(10)), list(range(10))], total_rows=2))

    assert view.fetch_more_cols()
    request = view.requests[1]
    assert request == FetchRequest(MODE_COLS, 0, 2, 10, 10, epoch=0)

    view.append_result(request, result_of([[10, 11], [20]], total_rows=2))
    assert view.loaded_cols == 12
    assert view.cell_text(0, 11) == "11"
    assert view.cell_text(1, 10) == "20"
    assert view.cell_text(1, 11) is None
    assert view.load_cols_btn.isEnabled()


def test_empty_column_batch_disables_column_button(view):
    view.fetch_more_rows()
    view.append_result(view.requests[0], result_of([[1], [2]], total_rows=2))
    view.fetch_more_cols()
    view.append_result(view.requests[1], result_of([[], []], total_rows=2))
    assert not view.load_cols_btn.isEnabled()
    assert not view.fetch_more_cols()


def test_known_column_total_stops_column_requests(view):
    view.fetch_more_rows()
    view.append_result(view.requests[0], result_of([[1, 2], [3, 4]], total_rows=2, total_cols=2))
    assert view._size_label.text() == "(Size: 2 x 2)"
    assert not view.load_cols_btn.isEnabled()
    assert not view.fetch_more_cols()


def test_changed_cells_are_highlighted(view):
    view.fetch_more_rows()
    view.append_result(view.requests[0], result_of([[1, 2], [3, 4]], total_rows=2, changed={(1, 0)}))
    assert view.changed_cells() == {(1, 0)}
    assert view.table.item(1, 0).font().bold()
    assert not view.table.item(0, 0).font().bold()


def test_reload_starts_over(view):
    view.fetch_more_rows()
    view.append_result(view.requests[0], result_of([[1, 2]], total_rows=1))
    view.reload()

    assert view.table.rowCount() == 0
    assert view.epoch == 1
    assert view.requests[-1] == FetchRequest(MODE_ROWS, 0, 20, 0, 10, epoch=1)


def test_reload_while_loading_waits_for_outstanding_fetch(view):
    view.fetch_more_rows()
    view.reload()
    assert len(view.requests) == 1

    # The stale result is dropped and the reload goes out
    view.append_result(view.requests[0], result_of([[1]], total_rows=1))
    assert view.table.rowCount() == 0
    assert view.requests[-1].epoch == 1
    assert view.is_loading


def test_stale_result_is_ignored(view):
    stale = FetchRequest(MODE_ROWS, 0, 20, 0, 10, epoch=0)
    view.fetch_more_rows()
    view.append_result(view.requests[0], result_of([[1]], total_rows=1))
    view.reload()
    view.append_result(stale, result_of([[9, 9, 9]], total_rows=1))
    assert view.table.rowCount() == 0


def test_fetch_error_leaves_loading_state(view):
    view.fetch_more_rows()
    view.show_fetch_error(view.requests[0], "No threads found")
    assert not view.is_loading
    assert view.status_label.text() == "Fetch failed: No threads found"
    assert view.load_rows_btn.isEnabled()
    assert view.fetch_more_rows()


def test_close_emits_closed(view, qtbot):
    view.show()
    with qtbot.waitSignal(view.closed, timeout=1000):
        view.close()


def test_widest_row_is_shown_for_jagged_grid(view):
    view.fetch_more_rows()
    result = result_of([[1, 2], [3]], total_rows=2)
    result.max_row_length_seen = 12
    view.append_result(view.requests[0], result)

    assert view.max_row_length == 12
    assert view._size_label.text() == "(Size: 2 x ?)"
    assert view._size_label.toolTip() == "Widest row seen: 12"

    view.reload()
    assert view.max_row_length == 0
    assert view._size_label.toolTip() == ""
