"""Per-view state: the stores a view owns and the fetches it issues."""

from typing import Optional

from gridprobe.logging import get_logger
from .chunk_fetcher import ChunkFetcher, FetchResult
from .row_size_cache import RowSizeCache
from .session import InspectionSession
from .settings import FetchLimits
from .snapshot_store import SnapshotDiffStore

logger = get_logger(__name__)


class InspectionView:
    """
    One inspection of one variable, alive as long as its panel.

    Owns a SnapshotDiffStore and a RowSizeCache that are never shared with
    other views. Callers serialize fetches per view.
    """

    def __init__(
        self,
        session: InspectionSession,
        var_name: str,
        limits: Optional[FetchLimits] = None,
    ):
        self.var_name = var_name
        self.limits = limits or FetchLimits()
        self.snapshot = SnapshotDiffStore()
        self.row_sizes = RowSizeCache()
        self._fetcher = ChunkFetcher(
            session,
            self.snapshot,
            self.row_sizes,
            preview_cap=self.limits.preview_cap,
        )
        self._fetch_count = 0

    @property
    def fetcher(self) -> ChunkFetcher:
        return self._fetcher

    @property
    def fetch_count(self) -> int:
        """Number of completed fetches."""
        return self._fetch_count

    @property
    def generation(self) -> int:
        """Pause generation the row size cache is keyed by."""
        return self.row_sizes.generation

    async def fetch_window(
        self,
        row_start: int,
        row_count: int,
        col_start: int,
        col_count: int,
    ) -> FetchResult:
        """Fetch a window of this view's variable."""
        result = await self._fetcher.fetch_window(
            self.var_name, row_start, row_count, col_start, col_count
        )
        self._fetch_count += 1
        return result

    def invalidate(self) -> int:
        """Handle a new pause of the debuggee.

        Starts a fresh row size generation; the snapshot is kept so the next
        fetch highlights what changed since the previous pause.
        """
        generation = self.row_sizes.start_generation()
        logger.debug(f"View '{self.var_name}' invalidated, generation {generation}")
        return generation
