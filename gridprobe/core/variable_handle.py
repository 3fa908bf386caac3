"""Variable handles - tagged view of a remote value, decided once at the boundary."""
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

# Shown for empty or missing values. An actual empty string and "no value
# available" both collapse to this text.
EMPTY_PLACEHOLDER = '<empty>'


@dataclass(frozen=True)
class ScalarHandle:
    """A value with no addressable children (logical length 1)."""
    name: str
    text: str = ""
    evaluate_name: Optional[str] = None

    @property
    def is_compound(self) -> bool:
        return False


@dataclass(frozen=True)
class CompoundHandle:
    """A value whose children are addressable through `reference`."""
    name: str
    reference: int
    text: str = ""                        # Free-text preview from the adapter
    element_count: Optional[int] = None   # Indexed child count hint, if reported
    evaluate_name: Optional[str] = None

    @property
    def is_compound(self) -> bool:
        return True


VariableHandle = Union[ScalarHandle, CompoundHandle]


def display_text(text: Optional[str]) -> str:
    """Normalize a raw value for display and diffing."""
    if text is None or text == "":
        return EMPTY_PLACEHOLDER
    return text


def _optional_count(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    count = int(value)
    return count if count > 0 else None


def _reference(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return int(value) if value > 0 else 0


def make_handle(
    name: str,
    text: Optional[str],
    reference: Any = 0,
    element_count: Any = None,
    evaluate_name: Optional[str] = None,
) -> VariableHandle:
    """Build a handle, choosing the variant from the structural reference."""
    ref = _reference(reference)
    value = text if isinstance(text, str) else ("" if text is None else str(text))
    if ref == 0:
        return ScalarHandle(name=name, text=value, evaluate_name=evaluate_name)
    return CompoundHandle(
        name=name,
        reference=ref,
        text=value,
        element_count=_optional_count(element_count),
        evaluate_name=evaluate_name,
    )


def handle_from_variable(payload: Dict[str, Any]) -> VariableHandle:
    """Create from a DAP `Variable` object (one entry of a variables response)."""
    return make_handle(
        name=str(payload.get('name', '')),
        text=payload.get('value'),
        reference=payload.get('variablesReference', 0),
        element_count=payload.get('indexedVariables'),
        evaluate_name=payload.get('evaluateName') or None,
    )


def handle_from_evaluate(expression: str, body: Dict[str, Any]) -> VariableHandle:
    """Create from the body of a DAP `evaluate` response."""
    return make_handle(
        name=expression,
        text=body.get('result'),
        reference=body.get('variablesReference', 0),
        element_count=body.get('indexedVariables'),
        evaluate_name=expression,
    )


def handle_to_dict(handle: VariableHandle) -> Dict[str, Any]:
    """Convert to a DAP-shaped `Variable` dict."""
    payload: Dict[str, Any] = {
        'name': handle.name,
        'value': handle.text,
        'variablesReference': 0,
    }
    if isinstance(handle, CompoundHandle):
        payload['variablesReference'] = handle.reference
        if handle.element_count is not None:
            payload['indexedVariables'] = handle.element_count
    if handle.evaluate_name:
        payload['evaluateName'] = handle.evaluate_name
    return payload
