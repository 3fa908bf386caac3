"""
Lazy matrix view - a paged table over a remote two-dimensional value.

Rows load in batches ("Load More Rows"), columns in batches ("+ Columns").
Cells whose value changed since the previous pause are highlighted. The view
never talks to the debugger; it emits fetch_requested and is fed through
append_result() by the PanelManager.
"""
from dataclasses import dataclass
from typing import List, Optional, Set, Tuple

from PyQt6.QtCore import Qt, pyqtSignal
from PyQt6.QtGui import QBrush, QColor, QFont
from PyQt6.QtWidgets import (
    QHBoxLayout, QHeaderView, QLabel, QPushButton, QTableWidget,
    QTableWidgetItem, QVBoxLayout, QWidget,
)

from gridprobe.core.chunk_fetcher import Cell, FetchResult
from gridprobe.core.settings import FetchLimits
from gridprobe.logging import get_logger

logger = get_logger(__name__)

MODE_ROWS = 'rows'
MODE_COLS = 'cols'

CHANGED_BACKGROUND = QColor(255, 255, 0, 110)


@dataclass(frozen=True)
class FetchRequest:
    """A window the view wants, tagged with the load epoch it belongs to."""
    mode: str
    row_start: int
    row_count: int
    col_start: int
    col_count: int
    epoch: int = 0


class MatrixView(QWidget):
    """
    Table widget for one inspected variable.

    Signals:
        fetch_requested: FetchRequest for the next window to load
        closed: the view was closed by the user
    """

    fetch_requested = pyqtSignal(object)  # FetchRequest
    closed = pyqtSignal()

    def __init__(self, var_name: str, limits: Optional[FetchLimits] = None,
                 parent: Optional[QWidget] = None):
        super().__init__(parent)
        self.var_name = var_name
        self._limits = limits or FetchLimits()

        self.loaded_rows = 0
        self.loaded_cols = 0
        self.total_rows: Optional[int] = None
        self.total_cols: Optional[int] = None
        self.max_row_length = 0
        self._is_loading = False
        self._reload_pending = False
        self._cols_exhausted = False
        self._epoch = 0
        self._changed: Set[Tuple[int, int]] = set()

        self.setWindowTitle(f"Matrix: {var_name}")
        self.resize(720, 480)
        self._setup_ui()
        self._apply_styles()

    def _setup_ui(self):
        layout = QVBoxLayout(self)
        layout.setContentsMargins(8, 8, 8, 8)
        layout.setSpacing(6)

        # Header: name, size, refresh, status
        header = QHBoxLayout()
        self._name_label = QLabel(self.var_name)
        self._name_label.setObjectName("varName")
        header.addWidget(self._name_label)

        self._size_label = QLabel("")
        self._size_label.setObjectName("sizeInfo")
        header.addWidget(self._size_label)

        self.refresh_btn = QPushButton("↻")
        self.refresh_btn.setObjectName("refreshBtn")
        self.refresh_btn.setToolTip("Refresh Data")
        self.refresh_btn.clicked.connect(self.reload)
        header.addWidget(self.refresh_btn)
        header.addStretch()

        self.status_label = QLabel("Ready")
        self.status_label.setObjectName("status")
        header.addWidget(self.status_label)
        layout.addLayout(header)

        self.table = QTableWidget(0, 0)
        self.table.setEditTriggers(QTableWidget.EditTrigger.NoEditTriggers)
        h_header = self.table.horizontalHeader()
        if h_header is not None:
            h_header.setSectionResizeMode(QHeaderView.ResizeMode.Interactive)
            h_header.setDefaultSectionSize(80)
        layout.addWidget(self.table, 1)

        buttons = QHBoxLayout()
        self.load_rows_btn = QPushButton("Load More Rows ▼")
        self.load_rows_btn.clicked.connect(self.fetch_more_rows)
        buttons.addWidget(self.load_rows_btn, 1)

        self.load_cols_btn = QPushButton("+ Columns")
        self.load_cols_btn.clicked.connect(self.fetch_more_cols)
        buttons.addWidget(self.load_cols_btn)
        layout.addLayout(buttons)

        self._update_size_info()

    def _apply_styles(self):
        self.setStyleSheet("""
            QWidget {
                background-color: #16162a;
                color: #e0e0e0;
            }
            QLabel#varName {
                font-weight: bold;
            }
            QLabel#sizeInfo, QLabel#status {
                color: #888888;
                font-size: 11px;
            }
            QTableWidget {
                gridline-color: #33334d;
                font-family: 'JetBrains Mono', 'SF Mono', 'Consolas', monospace;
            }
            QHeaderView::section {
                background-color: #1e1e32;
                color: #aaaaaa;
                border: 1px solid #33334d;
                padding: 2px 6px;
            }
            QPushButton {
                background-color: #1e1e32;
                border: 1px dashed #33334d;
                padding: 6px;
            }
            QPushButton:disabled {
                color: #555555;
            }
        """)

    # === State ===

    @property
    def is_loading(self) -> bool:
        return self._is_loading

    @property
    def epoch(self) -> int:
        """Load epoch; bumped by every reload so stale results are dropped."""
        return self._epoch

    def changed_cells(self) -> Set[Tuple[int, int]]:
        """Absolute (row, col) positions currently highlighted."""
        return set(self._changed)

    def cell_text(self, row: int, col: int) -> Optional[str]:
        """Displayed text at a table position, None if empty/padding."""
        item = self.table.item(row, col)
        return item.text() if item is not None else None

    # === Requests ===

    def fetch_more_rows(self) -> bool:
        """Request the next batch of rows. Returns False if nothing was requested."""
        if self._is_loading:
            return False
        if self.total_rows is not None and self.loaded_rows >= self.total_rows:
            return False
        count = self._limits.row_batch
        if self.total_rows is not None:
            count = min(count, self.total_rows - self.loaded_rows)
        self._request(FetchRequest(
            mode=MODE_ROWS,
            row_start=self.loaded_rows,
            row_count=count,
            col_start=0,
            col_count=max(self.loaded_cols, self._limits.col_batch),
            epoch=self._epoch,
        ))
        return True

    def fetch_more_cols(self) -> bool:
        """Request the next batch of columns for every loaded row."""
        if self._is_loading or self.loaded_rows == 0 or self._cols_exhausted:
            return False
        if self.total_cols is not None and self.loaded_cols >= self.total_cols:
            return False
        count = self._limits.col_batch
        if self.total_cols is not None:
            count = min(count, self.total_cols - self.loaded_cols)
        self._request(FetchRequest(
            mode=MODE_COLS,
            row_start=0,
            row_count=self.loaded_rows,
            col_start=self.loaded_cols,
            col_count=count,
            epoch=self._epoch,
        ))
        return True

    def reload(self):
        """Discard the grid and fetch again from the origin."""
        if self._is_loading:
            # Fetches are serialized; reload once the outstanding one lands
            self._reload_pending = True
            return
        self._reset_grid()
        self.fetch_more_rows()

    def _reset_grid(self):
        self._epoch += 1
        self._reload_pending = False
        self._cols_exhausted = False
        self.loaded_rows = 0
        self.loaded_cols = 0
        self.total_rows = None
        self.total_cols = None
        self.max_row_length = 0
        self._changed.clear()
        self._update_size_info()
        self.table.clearContents()
        self.table.setRowCount(0)
        self.table.setColumnCount(0)

    def _request(self, request: FetchRequest):
        self._set_loading(True)
        logger.debug(f"{self.var_name}: requesting {request}")
        self.fetch_requested.emit(request)

    # === Results ===

    def append_result(self, request: FetchRequest, result: FetchResult):
        """Render the result of a request issued by this view."""
        if request.epoch != self._epoch:
            logger.debug(f"{self.var_name}: dropping result of stale epoch {request.epoch}")
            return
        self._set_loading(False)
        if self._reload_pending:
            self._finish_pending_reload()
            return

        self.total_rows = result.total_rows
        self.total_cols = result.total_cols
        self.max_row_length = max(self.max_row_length, result.max_row_length_seen)
        self._update_size_info()

        cells = result.cells
        if request.mode == MODE_ROWS:
            self._append_rows(request.row_start, cells)
        else:
            self._append_cols(request.col_start, cells)
        self._check_limits()

    def show_fetch_error(self, request: Optional[FetchRequest], message: str):
        """Leave the loading state after a failed fetch; nothing is drawn in the grid."""
        if request is not None and request.epoch != self._epoch:
            return
        self._set_loading(False)
        if self._reload_pending:
            self._finish_pending_reload()
            return
        self.status_label.setText(f"Fetch failed: {message}")
        self._check_limits()

    def _finish_pending_reload(self):
        if self._reload_pending:
            self._reload_pending = False
            self.reload()

    def _append_rows(self, row_start: int, cells: List[List[Cell]]):
        if not cells:
            return
        widest = max(len(row) for row in cells)
        if widest > self.loaded_cols:
            self._set_column_count(widest)
        self.table.setRowCount(row_start + len(cells))
        for offset, row in enumerate(cells):
            index = row_start + offset
            self.table.setVerticalHeaderItem(index, QTableWidgetItem(f"[{index}]"))
            for col, cell in enumerate(row):
                self._set_cell(index, col, cell)
        self.loaded_rows = row_start + len(cells)

    def _append_cols(self, col_start: int, cells: List[List[Cell]]):
        added = max((len(row) for row in cells), default=0)
        if added == 0:
            self._cols_exhausted = True
            return
        self._set_column_count(col_start + added)
        for row_index, row in enumerate(cells[:self.loaded_rows]):
            for offset, cell in enumerate(row):
                self._set_cell(row_index, col_start + offset, cell)

    def _set_column_count(self, count: int):
        self.table.setColumnCount(count)
        for col in range(self.loaded_cols, count):
            self.table.setHorizontalHeaderItem(col, QTableWidgetItem(f"[{col}]"))
        self.loaded_cols = count

    def _set_cell(self, row: int, col: int, cell: Cell):
        item = QTableWidgetItem(cell.value)
        item.setTextAlignment(Qt.AlignmentFlag.AlignCenter)
        item.setToolTip(cell.value)
        if cell.changed:
            item.setBackground(QBrush(CHANGED_BACKGROUND))
            font = QFont(item.font())
            font.setBold(True)
            item.setFont(font)
            self._changed.add((row, col))
        else:
            self._changed.discard((row, col))
        self.table.setItem(row, col, item)

    # === Chrome ===

    def _set_loading(self, loading: bool):
        self._is_loading = loading
        self.status_label.setText("Loading..." if loading else "Ready")
        if loading:
            self.load_rows_btn.setText("Loading...")
            self.load_rows_btn.setEnabled(False)
            self.load_cols_btn.setEnabled(False)

    def _check_limits(self):
        if self.total_rows is not None and self.loaded_rows >= self.total_rows:
            self.load_rows_btn.setText("All rows loaded")
            self.load_rows_btn.setEnabled(False)
        else:
            self.load_rows_btn.setText("Load More Rows ▼")
            self.load_rows_btn.setEnabled(True)

        cols_done = self._cols_exhausted or (
            self.total_cols is not None and self.loaded_cols >= self.total_cols
        )
        self.load_cols_btn.setEnabled(self.loaded_rows > 0 and not cols_done)

    def _update_size_info(self):
        rows = '?' if self.total_rows is None else self.total_rows
        cols = '?' if self.total_cols is None else self.total_cols
        self._size_label.setText(f"(Size: {rows} x {cols})")
        # Jagged grids have no column total; the widest row is the best hint
        self._size_label.setToolTip(
            f"Widest row seen: {self.max_row_length}" if self.max_row_length else ""
        )

    def closeEvent(self, event):
        self.closed.emit()
        super().closeEvent(event)
