"""Short summaries for compound cell values."""

from typing import List

from gridprobe.logging import get_logger
from .session import InspectionSession, SessionError
from .settings import DEFAULT_PREVIEW_CAP
from .variable_handle import CompoundHandle, VariableHandle, display_text

logger = get_logger(__name__)

PREVIEW_ELLIPSIS = '...'


class ObjectPreviewResolver:
    """Turns a compound cell into `{key: value, ...}` by peeking at a few children.

    At most one remote call per cell. Any failure falls back to the raw text.
    """

    def __init__(self, session: InspectionSession, cap: int = DEFAULT_PREVIEW_CAP):
        if cap < 1:
            raise ValueError("Preview cap must be at least 1")
        self._session = session
        self._cap = cap

    @property
    def cap(self) -> int:
        return self._cap

    async def preview(self, handle: VariableHandle) -> str:
        """Return display text for a cell."""
        if not isinstance(handle, CompoundHandle):
            return handle.text

        try:
            children = await self._session.list_children(handle.reference, 0, self._cap)
        except SessionError as e:
            logger.debug(f"Preview of '{handle.name}' failed, using raw text: {e}")
            return handle.text

        if not children:
            return handle.text

        shown = children[:self._cap]
        summary = '{' + ', '.join(self._format_pair(c) for c in shown) + '}'
        if self._has_more(handle, children):
            summary += PREVIEW_ELLIPSIS
        return summary

    def _has_more(self, handle: CompoundHandle, children: List[VariableHandle]) -> bool:
        if len(children) < self._cap:
            return False
        # Reaching the cap means more may exist, unless the adapter said otherwise
        if handle.element_count is not None and handle.element_count <= self._cap:
            return False
        return True

    @staticmethod
    def _format_pair(child: VariableHandle) -> str:
        return f"{child.name}: {display_text(child.text)}"
