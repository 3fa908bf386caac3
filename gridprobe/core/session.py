"""Remote inspection session interface and the engine's error taxonomy."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List

from .variable_handle import VariableHandle


class GridProbeError(Exception):
    """Base class for gridprobe errors."""


class SessionError(GridProbeError):
    """A remote session call failed or returned an error response."""

    def __init__(self, command: str, message: str = ""):
        self.command = command
        self.message = message
        super().__init__(f"{command} failed: {message}" if message else f"{command} failed")


class ContextError(GridProbeError):
    """The remote process is not paused in a usable state.

    Fatal for the current fetch; every other remote failure is absorbed.
    """


class VariableNotFoundError(ContextError):
    """The requested variable cannot be evaluated in the paused frame."""

    def __init__(self, expression: str, reason: str = ""):
        self.expression = expression
        self.reason = reason
        detail = f": {reason}" if reason else ""
        super().__init__(f"Cannot evaluate '{expression}' in the current frame{detail}")


@dataclass(frozen=True)
class InspectionContext:
    """Where execution is paused. Never reused across fetches."""
    thread_id: int
    frame_id: int


class InspectionSession(ABC):
    """Async remote variable inspection session.

    Implementations convert raw responses into VariableHandles at this
    boundary and raise SessionError for any failed call.
    """

    @abstractmethod
    async def list_threads(self) -> List[int]:
        """Return the ids of the debuggee's threads."""

    @abstractmethod
    async def list_stack_frames(self, thread_id: int, levels: int = 1) -> List[int]:
        """Return frame ids of a thread, innermost first."""

    @abstractmethod
    async def evaluate(self, expression: str, frame_id: int) -> VariableHandle:
        """Evaluate an expression in a frame."""

    @abstractmethod
    async def list_children(self, reference: int, offset: int, count: int) -> List[VariableHandle]:
        """Return up to `count` children of a compound value starting at `offset`."""


async def resolve_context(session: InspectionSession) -> InspectionContext:
    """Resolve the first paused thread and its innermost frame.

    Raises:
        ContextError: no thread, no frame, or the lookups themselves failed.
    """
    try:
        threads = await session.list_threads()
    except SessionError as e:
        raise ContextError(f"No threads found: {e}") from e
    if not threads:
        raise ContextError("No threads found")
    thread_id = threads[0]

    try:
        frames = await session.list_stack_frames(thread_id, levels=1)
    except SessionError as e:
        raise ContextError(f"No stack frames found for thread {thread_id}: {e}") from e
    if not frames:
        raise ContextError(f"No stack frames found for thread {thread_id}")

    return InspectionContext(thread_id=thread_id, frame_id=frames[0])
