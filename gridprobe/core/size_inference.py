"""
Size inference for remote values of unknown type.

No attempt is made to detect the source language. Cheap checks run first and
remote evaluations last, so well-supported runtimes resolve in 0-1 calls and
exotic ones in N calls:

1. Structured hint reported by the adapter (indexed child count)
2. Size-like token in the free-text preview
3. Idiom cascade: evaluate `expr.size()`, `len(expr)`, ... until one parses
"""

import re
from typing import List, Optional, Sequence

from gridprobe.logging import get_logger, trace_print
from .session import InspectionSession, SessionError
from .variable_handle import CompoundHandle, VariableHandle

logger = get_logger(__name__)

# Ordered cheapest / most common first. New idioms are appended, never
# inserted ahead of existing ones.
DEFAULT_SIZE_IDIOMS = (
    '{expr}.size()',      # C++ containers, Java collections
    '{expr}.length()',    # Java strings, some C++ wrappers
    'len({expr})',        # Python
    '{expr}.length',      # Java / JS arrays
    '{expr}.len()',       # Rust
    '{expr}.Count',       # C# collections
    '{expr}.size',        # Scala / Kotlin / Ruby style fields
)

# "size=3", "len: 7", "length 12", "Count = 5" ...
_KEYWORD_SIZE = r'\b(?:size|len|count|length)\s*[:=]?\s*(\d+)'
# "int[5]", "std::array<int>[3]" - a bracket bound to a type-like token.
# A bare "[7]" is a one-element list preview, not a size.
_BRACKET_SIZE = r'[\w>)]\s*\[(\d+)\]\s*$'
PREVIEW_SIZE_PATTERN = re.compile(f'{_KEYWORD_SIZE}|{_BRACKET_SIZE}', re.IGNORECASE)

# Evaluate results such as "3", "3UL", "(size_t) 3", "(unsigned long) $0 = 3"
_INT_RESULT_PATTERN = re.compile(
    r'^\s*(?:\([^()]*\)\s*)?(?:\$\d+\s*=\s*)?(\d+)\s*[uUlL]*\s*$'
)


def size_from_hint(handle: VariableHandle) -> Optional[int]:
    """Return the adapter-reported element count, if positive."""
    if isinstance(handle, CompoundHandle) and handle.element_count:
        if handle.element_count > 0:
            return handle.element_count
    return None


def size_from_preview(text: Optional[str]) -> Optional[int]:
    """Extract the first size-like integer from a free-text preview."""
    if not text:
        return None
    match = PREVIEW_SIZE_PATTERN.search(text)
    if match is None:
        return None
    digits = match.group(1) if match.group(1) is not None else match.group(2)
    return int(digits)


def parse_size_result(text: Optional[str]) -> Optional[int]:
    """Parse an evaluate result as a non-negative integer, or None."""
    if not text:
        return None
    match = _INT_RESULT_PATTERN.match(text)
    if match is None:
        return None
    return int(match.group(1))


class SizeInferenceChain:
    """Resolve the element count of a remote value, or None if unknown.

    None is a terminal state, not a retry trigger: callers show
    open-ended pagination for it.
    """

    def __init__(self, session: InspectionSession, idioms: Optional[Sequence[str]] = None):
        self._session = session
        self._idioms: List[str] = list(idioms if idioms is not None else DEFAULT_SIZE_IDIOMS)

    @property
    def idioms(self) -> List[str]:
        """Idiom templates in evaluation order."""
        return list(self._idioms)

    def register_idiom(self, template: str) -> None:
        """Append an idiom template containing an `{expr}` placeholder."""
        if '{expr}' not in template:
            raise ValueError(f"Idiom template must contain '{{expr}}': {template!r}")
        if template not in self._idioms:
            self._idioms.append(template)

    async def infer(
        self,
        handle: Optional[VariableHandle],
        expression: Optional[str],
        frame_id: int,
    ) -> Optional[int]:
        """Run the chain, stopping at the first success."""
        if handle is not None:
            size = size_from_hint(handle)
            if size is not None:
                trace_print(f"SIZE {handle.name}: {size} (hint)")
                return size

            size = size_from_preview(handle.text)
            if size is not None:
                trace_print(f"SIZE {handle.name}: {size} (preview)")
                return size

        if not expression:
            return None
        return await self.evaluate_cascade(expression, frame_id)

    async def evaluate_cascade(self, expression: str, frame_id: int) -> Optional[int]:
        """Evaluate each idiom in order until one yields an integer."""
        for template in self._idioms:
            candidate = template.format(expr=expression)
            try:
                result = await self._session.evaluate(candidate, frame_id)
            except SessionError as e:
                trace_print(f"SIZE idiom miss: {candidate} ({e})")
                continue
            size = parse_size_result(result.text)
            if size is not None:
                trace_print(f"SIZE {expression}: {size} (idiom {template})")
                return size
        logger.debug(f"Size of '{expression}' unknown after {len(self._idioms)} idioms")
        return None
