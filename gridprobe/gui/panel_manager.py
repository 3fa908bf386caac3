"""
Panel lifecycle: one MatrixView + InspectionView pair per inspected variable.

Fetch requests from a view are run on the AsyncWorker loop and the results
routed back to the view that asked. A 'stopped' event from the session
refreshes every open panel.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from PyQt6.QtCore import QObject, pyqtSignal

from gridprobe.core.inspection_view import InspectionView
from gridprobe.core.session import InspectionSession
from gridprobe.core.settings import FetchLimits
from gridprobe.logging import get_logger
from .async_worker import AsyncWorker
from .matrix_view import FetchRequest, MatrixView

logger = get_logger(__name__)


@dataclass
class Panel:
    """An open view and the inspection state behind it."""
    view: MatrixView
    inspection: InspectionView


class PanelManager(QObject):
    """
    Creates and tracks matrix panels.

    Signals:
        panel_opened: MatrixView that was just created
        panel_closed: variable name of a panel that was closed
        fetch_failed: (MatrixView, error message)
        refresh_requested: the debuggee paused again
    """

    panel_opened = pyqtSignal(object)  # MatrixView
    panel_closed = pyqtSignal(str)
    fetch_failed = pyqtSignal(object, str)
    refresh_requested = pyqtSignal()

    def __init__(self, session: InspectionSession, worker: AsyncWorker,
                 limits: Optional[FetchLimits] = None, parent: Optional[QObject] = None):
        super().__init__(parent)
        self._session = session
        self._worker = worker
        self._limits = limits or FetchLimits.from_settings()
        self._panels: List[Panel] = []
        self._jobs: Dict[int, Tuple[Panel, FetchRequest]] = {}
        self._listening = False

        self._worker.job_finished.connect(self._on_job_finished)
        self._worker.job_failed.connect(self._on_job_failed)
        self.refresh_requested.connect(self.refresh_all)

    @property
    def panels(self) -> List[Panel]:
        return list(self._panels)

    def create_panel(self, var_name: str) -> MatrixView:
        """Open a panel for `var_name` and start loading its first rows."""
        view = MatrixView(var_name, limits=self._limits)
        panel = Panel(view=view, inspection=InspectionView(self._session, var_name, self._limits))
        self._panels.append(panel)

        view.fetch_requested.connect(lambda request, p=panel: self._submit(p, request))
        view.closed.connect(lambda p=panel: self._remove(p))

        logger.info(f"Opened matrix panel for '{var_name}'")
        self.panel_opened.emit(view)
        view.show()
        view.fetch_more_rows()
        return view

    def _submit(self, panel: Panel, request: FetchRequest):
        coro = panel.inspection.fetch_window(
            request.row_start, request.row_count, request.col_start, request.col_count
        )
        job_id = self._worker.submit(coro)
        self._jobs[job_id] = (panel, request)

    def _on_job_finished(self, job_id: int, result):
        entry = self._jobs.pop(job_id, None)
        if entry is None:
            return
        panel, request = entry
        if panel in self._panels:
            panel.view.append_result(request, result)

    def _on_job_failed(self, job_id: int, error):
        entry = self._jobs.pop(job_id, None)
        if entry is None:
            return
        panel, request = entry
        message = str(error) or type(error).__name__
        logger.warning(f"Fetch of '{panel.inspection.var_name}' failed: {message}")
        if panel in self._panels:
            panel.view.show_fetch_error(request, message)
            self.fetch_failed.emit(panel.view, message)

    def refresh_all(self):
        """New pause: start a fresh size generation and reload every panel."""
        for panel in self._panels:
            # Runs on the worker loop, ahead of the reload fetch it precedes
            self._worker.call_soon(panel.inspection.invalidate)
            panel.view.reload()

    def bind_session_events(self):
        """Refresh panels whenever the session reports a pause."""
        add_listener = getattr(self._session, 'add_event_listener', None)
        if add_listener is None or self._listening:
            return
        add_listener('stopped', self._on_stopped)
        self._listening = True

    def _on_stopped(self, msg):
        # Called on the worker thread; the signal is queued to the GUI thread
        logger.debug("Debuggee stopped, refreshing panels")
        self.refresh_requested.emit()

    def _remove(self, panel: Panel):
        if panel not in self._panels:
            return
        self._panels.remove(panel)
        self._jobs = {k: v for k, v in self._jobs.items() if v[0] is not panel}
        logger.info(f"Closed matrix panel for '{panel.inspection.var_name}'")
        self.panel_closed.emit(panel.inspection.var_name)

    def dispose(self):
        """Close every panel and stop listening for pauses."""
        remove_listener = getattr(self._session, 'remove_event_listener', None)
        if self._listening and remove_listener is not None:
            remove_listener('stopped', self._on_stopped)
            self._listening = False
        for panel in list(self._panels):
            panel.view.close()
        self._panels.clear()
        self._jobs.clear()
