"""Snapshot of last-seen cell text, used to flag changed cells."""

from typing import Dict, Optional


class SnapshotDiffStore:
    """Last value seen at each absolute (row, column) position of one view.

    History is single-slot. Entries are never trimmed; a long-lived view
    holds one entry per distinct cell ever fetched.
    """

    def __init__(self):
        # "row:col" -> last text value
        self._values: Dict[str, str] = {}

    @staticmethod
    def key_for(row: int, col: int) -> str:
        """Key for an absolute 0-based position."""
        return f"{row}:{col}"

    def diff(self, key: str, value: str) -> bool:
        """Store `value` under `key` and report whether it changed.

        A key seen for the first time is never reported as changed.
        """
        changed = key in self._values and self._values[key] != value
        self._values[key] = value
        return changed

    def diff_cell(self, row: int, col: int, value: str) -> bool:
        """diff() addressed by absolute position."""
        return self.diff(self.key_for(row, col), value)

    def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    def __contains__(self, key: str) -> bool:
        return key in self._values

    def __len__(self) -> int:
        return len(self._values)
