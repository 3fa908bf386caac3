"""
Background asyncio loop for the Qt GUI.

Remote session calls are coroutines; the Qt thread cannot await them. The
worker runs one event loop in a daemon thread, accepts coroutines from the
GUI thread and reports completion through Qt signals, which are delivered
back on the GUI thread (queued connection).
"""

import asyncio
import itertools
import threading
from concurrent.futures import Future
from typing import Any, Callable, Coroutine, Optional

from PyQt6.QtCore import QObject, pyqtSignal

from gridprobe.logging import get_logger

logger = get_logger(__name__)


class AsyncWorker(QObject):
    """
    Runs coroutines on a private event loop.

    Signals:
        job_finished: (job_id, result) when a submitted coroutine returns
        job_failed: (job_id, exception) when it raises or is cancelled
    """

    job_finished = pyqtSignal(int, object)
    job_failed = pyqtSignal(int, object)

    def __init__(self, parent: Optional[QObject] = None):
        super().__init__(parent)
        self._loop = asyncio.new_event_loop()
        self._job_ids = itertools.count(1)
        self._thread = threading.Thread(target=self._run, name="gridprobe-async", daemon=True)
        self._thread.start()

    def _run(self) -> None:
        asyncio.set_event_loop(self._loop)
        self._loop.run_forever()
        logger.debug("Async worker loop stopped")

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop

    @property
    def is_running(self) -> bool:
        return self._thread.is_alive() and not self._loop.is_closed()

    def submit(self, coro: Coroutine) -> int:
        """Schedule a coroutine and return its job id."""
        job_id = next(self._job_ids)
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        future.add_done_callback(lambda f: self._on_done(job_id, f))
        return job_id

    def _on_done(self, job_id: int, future: Future) -> None:
        if future.cancelled():
            self.job_failed.emit(job_id, asyncio.CancelledError())
            return
        exc = future.exception()
        if exc is not None:
            self.job_failed.emit(job_id, exc)
        else:
            self.job_finished.emit(job_id, future.result())

    def run_sync(self, coro: Coroutine, timeout: Optional[float] = None) -> Any:
        """Run a coroutine on the worker loop and block for its result."""
        return asyncio.run_coroutine_threadsafe(coro, self._loop).result(timeout)

    def call_soon(self, callback: Callable[..., Any], *args: Any) -> None:
        """Run a plain callable on the worker loop thread."""
        self._loop.call_soon_threadsafe(callback, *args)

    def stop(self, timeout: float = 2.0) -> None:
        """Stop the loop and join the thread."""
        if self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout)
        if not self._thread.is_alive():
            self._loop.close()
