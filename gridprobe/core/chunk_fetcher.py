"""
Window fetches over a remote two-dimensional value.

One fetch resolves the paused context, re-evaluates the variable, infers its
row count, lists the requested row slice and then resolves every row
concurrently: row length (cache or inference), column slice, cell previews
and snapshot diffs keyed by absolute position.
"""

import asyncio
import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from gridprobe.logging import get_logger, trace_print
from .object_preview import ObjectPreviewResolver
from .row_size_cache import RowSizeCache
from .session import InspectionSession, SessionError, VariableNotFoundError, resolve_context
from .settings import DEFAULT_PREVIEW_CAP
from .size_inference import SizeInferenceChain
from .snapshot_store import SnapshotDiffStore
from .variable_handle import CompoundHandle, ScalarHandle, VariableHandle, display_text

logger = get_logger(__name__)

_INDEX_NAME = re.compile(r'\[?\s*(\d+)\s*\]?')
_QUOTED_NAME = re.compile(r'''^(['"]).*\1$''', re.DOTALL)


@dataclass(frozen=True)
class Cell:
    """One displayed value and whether it moved since the last fetch."""
    value: str
    changed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {'value': self.value, 'changed': self.changed}


@dataclass
class FetchResult:
    """Cells of one window plus the best-known size metadata."""
    cells: List[List[Cell]] = field(default_factory=list)
    total_rows: Optional[int] = None
    total_cols: Optional[int] = None
    max_row_length_seen: int = 0

    @property
    def row_lengths(self) -> List[int]:
        return [len(row) for row in self.cells]

    def values(self) -> List[List[str]]:
        """Plain cell text, row by row."""
        return [[cell.value for cell in row] for row in self.cells]

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for the rendering surface (see fetch_result_schema.json)."""
        return {
            'data': [[cell.to_dict() for cell in row] for row in self.cells],
            'rows': self.total_rows,
            'cols': self.total_cols,
            'max_row_length': self.max_row_length_seen,
        }


@dataclass(frozen=True)
class _RowOutcome:
    cells: List[Cell]
    length: Optional[int]    # Inferred element count, None if unknown
    observed: int = 0        # Highest column index + 1 actually returned

    @property
    def best_length(self) -> int:
        return self.length if self.length is not None else self.observed


def window_slice(items: Sequence[VariableHandle], start: int, count: int) -> List[VariableHandle]:
    """Clamp a child listing to the requested window.

    A collaborator that returns more than `count` items ignored paging and
    listed from offset 0, so the window is cut out of what it returned.
    """
    if len(items) > count:
        return list(items[start:start + count])
    return list(items)


def row_expression(var_name: str, row: VariableHandle, index: int) -> str:
    """Expression naming a row of `var_name`, for idiom evaluation."""
    if row.evaluate_name:
        return row.evaluate_name
    name = row.name.strip()
    match = _INDEX_NAME.fullmatch(name)
    if match:
        return f"{var_name}[{match.group(1)}]"
    if not name:
        return f"{var_name}[{index}]"
    if _QUOTED_NAME.match(name):
        return f"{var_name}[{name}]"
    return f"{var_name}[{json.dumps(name)}]"


class ChunkFetcher:
    """Fetches rectangular windows of a named variable.

    The snapshot store and row size cache are owned by the caller (one pair
    per view) and updated in place. Only ContextError escapes a fetch; other
    remote failures degrade the affected row or cell.
    """

    def __init__(
        self,
        session: InspectionSession,
        snapshot: SnapshotDiffStore,
        row_sizes: RowSizeCache,
        size_chain: Optional[SizeInferenceChain] = None,
        previewer: Optional[ObjectPreviewResolver] = None,
        preview_cap: int = DEFAULT_PREVIEW_CAP,
    ):
        self._session = session
        self._snapshot = snapshot
        self._row_sizes = row_sizes
        self._size_chain = size_chain or SizeInferenceChain(session)
        self._previewer = previewer or ObjectPreviewResolver(session, cap=preview_cap)

    @property
    def size_chain(self) -> SizeInferenceChain:
        return self._size_chain

    async def fetch_window(
        self,
        var_name: str,
        row_start: int,
        row_count: int,
        col_start: int,
        col_count: int,
    ) -> FetchResult:
        """Fetch rows [row_start, row_start+row_count) x cols [col_start, col_start+col_count).

        Raises:
            ContextError: the debuggee is not paused or `var_name` cannot be evaluated.
        """
        if min(row_start, row_count, col_start, col_count) < 0:
            raise ValueError("Window bounds must be non-negative")

        # Sizes learned by this fetch belong to the pause it started in
        generation = self._row_sizes.generation
        context = await resolve_context(self._session)
        trace_print(f"FETCH {var_name} rows={row_start}+{row_count} cols={col_start}+{col_count} "
                    f"thread={context.thread_id} frame={context.frame_id}")

        # Handles from an earlier pause are never reused
        try:
            top = await self._session.evaluate(var_name, context.frame_id)
        except SessionError as e:
            raise VariableNotFoundError(var_name, e.message) from e

        if isinstance(top, ScalarHandle):
            return self._scalar_window(top, row_start, row_count, col_start, col_count)

        total_rows = await self._size_chain.infer(top, var_name, context.frame_id)
        rows = await self._fetch_rows(top, row_start, row_count, total_rows)

        outcomes = await asyncio.gather(*(
            self._resolve_row(var_name, row_start + i, row, col_start, col_count,
                              context.frame_id, generation)
            for i, row in enumerate(rows)
        ))

        result = FetchResult(
            cells=[outcome.cells for outcome in outcomes],
            total_rows=total_rows,
            total_cols=self._known_total_cols(outcomes, row_start, total_rows),
            max_row_length_seen=max((o.best_length for o in outcomes), default=0),
        )
        logger.debug(f"Fetched {var_name}: {len(result.cells)} rows, "
                     f"size {total_rows}x{result.total_cols}, max row {result.max_row_length_seen}")
        return result

    async def _fetch_rows(
        self,
        top: CompoundHandle,
        row_start: int,
        row_count: int,
        total_rows: Optional[int],
    ) -> List[VariableHandle]:
        if row_count == 0:
            return []
        if total_rows is not None and row_start >= total_rows:
            return []
        try:
            rows = await self._session.list_children(top.reference, row_start, row_count)
        except SessionError as e:
            logger.warning(f"Row listing of '{top.name}' failed: {e}")
            return []
        return window_slice(rows, row_start, row_count)

    async def _resolve_row(
        self,
        var_name: str,
        row_index: int,
        row: VariableHandle,
        col_start: int,
        col_count: int,
        frame_id: int,
        generation: int,
    ) -> _RowOutcome:
        if isinstance(row, ScalarHandle):
            # A scalar row has exactly one logical column
            if col_start > 0 or col_count == 0:
                return _RowOutcome(cells=[], length=1)
            cell = self._diffed_cell(row_index, 0, display_text(row.text))
            return _RowOutcome(cells=[cell], length=1, observed=1)

        length = await self._row_length(var_name, row_index, row, frame_id, generation)

        if length is not None and col_start >= length:
            trace_print(f"ROW {row_index}: col {col_start} past length {length}, skipped")
            return _RowOutcome(cells=[], length=length)

        count = col_count if length is None else min(col_count, length - col_start)
        if count == 0:
            return _RowOutcome(cells=[], length=length)

        try:
            children = await self._session.list_children(row.reference, col_start, count)
        except SessionError as e:
            logger.debug(f"Column listing of row {row_index} failed, showing raw text: {e}")
            return self._degraded_row(row, col_start, length)

        children = window_slice(children, col_start, count)
        texts = await asyncio.gather(*(self._previewer.preview(child) for child in children))
        cells = [
            self._diffed_cell(row_index, col_start + offset, display_text(text))
            for offset, text in enumerate(texts)
        ]
        observed = col_start + len(cells) if cells else 0
        return _RowOutcome(cells=cells, length=length, observed=observed)

    async def _row_length(
        self,
        var_name: str,
        row_index: int,
        row: CompoundHandle,
        frame_id: int,
        generation: int,
    ) -> Optional[int]:
        cached = self._row_sizes.get(row.reference, generation)
        if cached is not None:
            trace_print(f"ROW {row_index}: len={cached} (cache)")
            return cached

        expression = row_expression(var_name, row, row_index)
        length = await self._size_chain.infer(row, expression, frame_id)
        if length is not None and not self._row_sizes.set(row.reference, length, generation):
            trace_print(f"ROW {row_index}: len={length} not cached, pause ended during fetch")
        trace_print(f"ROW {row_index}: len={length} (inferred via {expression})")
        return length

    def _diffed_cell(self, row: int, col: int, value: str) -> Cell:
        changed = self._snapshot.diff_cell(row, col, value)
        return Cell(value=value, changed=changed)

    @staticmethod
    def _degraded_row(row: CompoundHandle, col_start: int, length: Optional[int]) -> _RowOutcome:
        # Raw text is a stand-in, so it is not recorded in the snapshot
        if col_start > 0:
            return _RowOutcome(cells=[], length=length)
        return _RowOutcome(cells=[Cell(value=display_text(row.text))], length=length, observed=1)

    def _scalar_window(
        self,
        top: ScalarHandle,
        row_start: int,
        row_count: int,
        col_start: int,
        col_count: int,
    ) -> FetchResult:
        # A scalar variable is a 1x1 grid
        cells: List[List[Cell]] = []
        if row_start == 0 and row_count > 0:
            row: List[Cell] = []
            if col_start == 0 and col_count > 0:
                row.append(self._diffed_cell(0, 0, display_text(top.text)))
            cells.append(row)
        return FetchResult(cells=cells, total_rows=1, total_cols=1, max_row_length_seen=1 if cells else 0)

    @staticmethod
    def _known_total_cols(
        outcomes: Sequence[_RowOutcome],
        row_start: int,
        total_rows: Optional[int],
    ) -> Optional[int]:
        """Column total, reported only when every row is known to share one length."""
        if not total_rows or row_start != 0 or len(outcomes) != total_rows:
            return None
        lengths = {outcome.length for outcome in outcomes}
        if len(lengths) != 1:
            return None
        (length,) = lengths
        return length
