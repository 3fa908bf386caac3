"""Shared test fixtures for the GridProbe test suite.

Provides a centralized QApplication and FakeSession, an in-memory
InspectionSession that serves nested Python values the way a debug
adapter for a Python debuggee would.
"""

import os
import re
import sys
from typing import Any, Dict, List, Optional, Tuple

import pytest

# Tests never need a visible display
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from PyQt6.QtWidgets import QApplication  # noqa: E402

from gridprobe.core.session import InspectionSession, SessionError
from gridprobe.core.variable_handle import CompoundHandle, ScalarHandle, VariableHandle

_EXPR = re.compile(r'^(\w+)((?:\[[^\[\]]+\])*)$')
_SUBSCRIPT = re.compile(r'\[([^\[\]]+)\]')


class FakeSession(InspectionSession):
    """InspectionSession over a dict of Python values.

    Lists and dicts are compound, everything else is scalar. References are
    stable within a pause and renumbered by new_pause(). Every remote call is
    recorded so tests can count them.
    """

    def __init__(self, variables: Optional[Dict[str, Any]] = None, *,
                 size_idioms=('len({expr})',), hints: bool = False,
                 preview_sizes: bool = False, ignore_paging: bool = False):
        self.variables: Dict[str, Any] = dict(variables or {})
        self.size_idioms = list(size_idioms)
        self.hints = hints
        self.preview_sizes = preview_sizes
        self.ignore_paging = ignore_paging

        self.threads: List[int] = [1]
        self.frames: List[int] = [100]
        self.fail_threads = False
        self.fail_children: set = set()       # paths whose listing fails
        self.fail_all_children = False

        self.calls: List[Tuple] = []
        self._ref_base = 1000
        self._refs: Dict[int, Tuple] = {}
        self._paths: Dict[Tuple, int] = {}

    # === Test helpers ===

    def new_pause(self):
        """Simulate a new stop: references from the old pause are gone."""
        self._ref_base += 1000
        self._refs.clear()
        self._paths.clear()
        self.calls.clear()

    def calls_of(self, kind: str) -> List[Tuple]:
        return [c for c in self.calls if c[0] == kind]

    def children_calls_for(self, path: Tuple) -> List[Tuple]:
        ref = self._paths.get(path)
        return [c for c in self.calls_of('children') if c[1] == ref]

    def reference_of(self, path: Tuple) -> Optional[int]:
        return self._paths.get(path)

    # === Value model ===

    def _resolve(self, path: Tuple) -> Any:
        value = self.variables[path[0]]
        for key in path[1:]:
            value = value[key]
        return value

    def _ref_for(self, path: Tuple) -> int:
        if path not in self._paths:
            ref = self._ref_base + len(self._paths) + 1
            self._paths[path] = ref
            self._refs[ref] = path
        return self._paths[path]

    @staticmethod
    def _text(value: Any, preview_sizes: bool) -> str:
        if isinstance(value, list):
            return f"list len={len(value)}" if preview_sizes else "list"
        if isinstance(value, dict):
            return f"dict len={len(value)}" if preview_sizes else "dict"
        if value is None:
            return ""
        return str(value)

    def _handle(self, name: str, path: Tuple, evaluate_name: Optional[str]) -> VariableHandle:
        value = self._resolve(path)
        text = self._text(value, self.preview_sizes)
        if isinstance(value, (list, dict)):
            return CompoundHandle(
                name=name,
                reference=self._ref_for(path),
                text=text,
                element_count=len(value) if self.hints and isinstance(value, list) and value else None,
                evaluate_name=evaluate_name,
            )
        return ScalarHandle(name=name, text=text, evaluate_name=evaluate_name)

    def _parse_path(self, expression: str) -> Optional[Tuple]:
        match = _EXPR.match(expression.strip())
        if match is None or match.group(1) not in self.variables:
            return None
        path: List[Any] = [match.group(1)]
        for key in _SUBSCRIPT.findall(match.group(2)):
            key = key.strip()
            if key.isdigit():
                path.append(int(key))
            elif len(key) >= 2 and key[0] == key[-1] and key[0] in '"\'':
                path.append(key[1:-1])
            else:
                return None
        return tuple(path)

    def _idiom_target(self, expression: str) -> Optional[str]:
        for template in self.size_idioms:
            pattern = '^' + re.escape(template).replace(re.escape('{expr}'), '(.+)') + '$'
            match = re.match(pattern, expression)
            if match:
                return match.group(1)
        return None

    # === InspectionSession ===

    async def list_threads(self) -> List[int]:
        self.calls.append(('threads',))
        if self.fail_threads:
            raise SessionError('threads', "not paused")
        return list(self.threads)

    async def list_stack_frames(self, thread_id: int, levels: int = 1) -> List[int]:
        self.calls.append(('stackTrace', thread_id))
        return list(self.frames[:levels])

    async def evaluate(self, expression: str, frame_id: int) -> VariableHandle:
        self.calls.append(('evaluate', expression))
        target = self._idiom_target(expression)
        if target is not None:
            path = self._parse_path(target)
            if path is None:
                raise SessionError('evaluate', f"name '{target}' is not defined")
            value = self._resolve(path)
            if not isinstance(value, (list, dict, str)):
                raise SessionError('evaluate', f"object of type {type(value).__name__} has no len()")
            return ScalarHandle(name=expression, text=str(len(value)), evaluate_name=expression)

        path = self._parse_path(expression)
        if path is None:
            raise SessionError('evaluate', f"name '{expression}' is not defined")
        try:
            return self._handle(expression, path, expression)
        except (KeyError, IndexError, TypeError) as e:
            raise SessionError('evaluate', str(e)) from e

    async def list_children(self, reference: int, offset: int, count: int) -> List[VariableHandle]:
        self.calls.append(('children', reference, offset, count))
        path = self._refs.get(reference)
        if path is None:
            raise SessionError('variables', f"invalid variablesReference {reference}")
        if self.fail_all_children or path in self.fail_children:
            raise SessionError('variables', f"cannot list {path}")

        value = self._resolve(path)
        expr = path[0] + ''.join(f'[{k!r}]' if isinstance(k, str) else f'[{k}]' for k in path[1:])
        if isinstance(value, dict):
            keys = list(value)
        else:
            keys = list(range(len(value)))
        if not self.ignore_paging:
            keys = keys[offset:offset + count]

        children = []
        for key in keys:
            name = repr(key) if isinstance(key, str) else str(key)
            children.append(self._handle(name, path + (key,), f"{expr}[{name}]"))
        return children


@pytest.fixture(scope="session")
def qapp():
    """Session-scoped QApplication shared by all tests."""
    app = QApplication.instance()
    if app is None:
        app = QApplication(sys.argv)
    yield app


@pytest.fixture
def fake_session_factory():
    """Factory fixture: create FakeSessions over given variables."""
    def _make(variables=None, **kwargs):
        return FakeSession(variables, **kwargs)
    return _make


@pytest.fixture
def jagged_session(fake_session_factory):
    """The [4, 2, 5] jagged grid used across fetcher tests."""
    return fake_session_factory({
        'grid': [
            [1, 2, 3, 4],
            [5, 6],
            [7, 8, 9, 10, 11],
        ],
    })
