"""
Padding jagged windows into rectangular numpy arrays for export.

The fetcher never pads; rows keep their own lengths. Export is where a
rectangular shape is needed (CSV, .npy, table printing).
"""

from typing import List, Optional, Sequence

import numpy as np

from .chunk_fetcher import Cell


def _as_float(text: str) -> float:
    try:
        return float(text)
    except (TypeError, ValueError):
        return np.nan


def padded_shape(rows: Sequence[Sequence[Cell]]) -> tuple:
    """Shape of the smallest rectangle holding every row."""
    width = max((len(row) for row in rows), default=0)
    return (len(rows), width)


def to_text_array(rows: Sequence[Sequence[Cell]], fill: str = "") -> np.ndarray:
    """Object array of cell text, short rows padded with `fill`."""
    shape = padded_shape(rows)
    out = np.full(shape, fill, dtype=object)
    for i, row in enumerate(rows):
        for j, cell in enumerate(row):
            out[i, j] = cell.value
    return out


def to_numeric_array(rows: Sequence[Sequence[Cell]], fill: float = np.nan) -> np.ndarray:
    """Float array of cell values; non-numeric cells become NaN, padding is `fill`."""
    shape = padded_shape(rows)
    out = np.full(shape, fill, dtype=np.float64)
    for i, row in enumerate(rows):
        for j, cell in enumerate(row):
            out[i, j] = _as_float(cell.value)
    return out


def changed_mask(rows: Sequence[Sequence[Cell]]) -> np.ndarray:
    """Boolean array marking changed cells (padding is False)."""
    out = np.zeros(padded_shape(rows), dtype=bool)
    for i, row in enumerate(rows):
        for j, cell in enumerate(row):
            out[i, j] = cell.changed
    return out


def is_numeric(rows: Sequence[Sequence[Cell]]) -> bool:
    """True if every cell parses as a number."""
    values = [cell.value for row in rows for cell in row]
    if not values:
        return False
    return not np.isnan(np.array([_as_float(v) for v in values])).any()


def format_table(
    rows: Sequence[Sequence[Cell]],
    row_start: int = 0,
    col_start: int = 0,
    mark_changed: bool = True,
    max_width: Optional[int] = 24,
) -> str:
    """Render a window as an aligned text table with [i]/[j] headers."""
    text = to_text_array(rows)
    n_rows, n_cols = text.shape
    if mark_changed:
        mask = changed_mask(rows)
        for i, j in zip(*np.nonzero(mask)):
            text[i, j] = f"*{text[i, j]}"
    if max_width is not None:
        for i in range(n_rows):
            for j in range(n_cols):
                value = text[i, j]
                if len(value) > max_width:
                    text[i, j] = value[:max_width - 3] + "..."

    headers: List[str] = ["#"] + [f"[{col_start + j}]" for j in range(n_cols)]
    body = [[f"[{row_start + i}]"] + list(text[i]) for i in range(n_rows)]
    widths = [len(h) for h in headers]
    for line in body:
        for k, value in enumerate(line):
            widths[k] = max(widths[k], len(value))

    lines = ["  ".join(h.rjust(w) for h, w in zip(headers, widths))]
    for line in body:
        lines.append("  ".join(v.rjust(w) for v, w in zip(line, widths)))
    return "\n".join(lines)
