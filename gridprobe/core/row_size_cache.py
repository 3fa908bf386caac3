"""Row size memo keyed by structural reference."""

from typing import Dict, Optional, Tuple


class RowSizeCache:
    """
    Remembers inferred element counts of compound rows for one view.

    Entries are permanent within a pause generation. References are only
    meaningful for the pause that produced them, and adapters reuse
    reference numbers after the debuggee resumes, so each pause gets its
    own generation via start_generation().
    """

    def __init__(self):
        self._generation = 0
        # (generation, reference) -> element count
        self._sizes: Dict[Tuple[int, int], int] = {}

    @property
    def generation(self) -> int:
        return self._generation

    def start_generation(self) -> int:
        """Begin a new pause generation and return its number."""
        self._generation += 1
        return self._generation

    def get(self, reference: int, generation: Optional[int] = None) -> Optional[int]:
        """Return the cached size for a reference in `generation` (default: current)."""
        if generation is None:
            generation = self._generation
        return self._sizes.get((generation, reference))

    def set(self, reference: int, size: int, generation: Optional[int] = None) -> bool:
        """Cache a size. The first value written for a reference wins.

        A write tagged with an older generation is dropped: its reference
        belongs to a pause that has since ended. Returns whether it was kept.
        """
        if generation is not None and generation != self._generation:
            return False
        key = (self._generation, reference)
        if key not in self._sizes:
            self._sizes[key] = size
        return True

    def __contains__(self, reference: int) -> bool:
        return (self._generation, reference) in self._sizes

    def __len__(self) -> int:
        return len(self._sizes)
