"""
Application entry point and setup.
"""

import asyncio
import sys
from typing import Any, Dict, List, Optional

from PyQt6.QtCore import Qt
from PyQt6.QtWidgets import QApplication

from gridprobe.core.session import GridProbeError
from gridprobe.core.settings import FetchLimits
from gridprobe.ipc.dap_session import open_session
from gridprobe.logging import get_logger, is_configured, setup_logging
from .async_worker import AsyncWorker
from .panel_manager import PanelManager

logger = get_logger(__name__)


def create_app() -> QApplication:
    """Create and configure the QApplication."""
    QApplication.setHighDpiScaleFactorRoundingPolicy(
        Qt.HighDpiScaleFactorRoundingPolicy.PassThrough
    )

    app = QApplication.instance() or QApplication(sys.argv)
    app.setApplicationName("GridProbe")
    app.setOrganizationName("GridProbe")
    return app


def run_app(
    var_names: List[str],
    host: str = "127.0.0.1",
    port: int = 5678,
    attach_args: Optional[Dict[str, Any]] = None,
    pause: bool = False,
    wait_timeout: Optional[float] = None,
) -> int:
    """Run the GridProbe viewer with one panel per variable."""
    if not is_configured():
        setup_logging()
    app = create_app()
    worker = AsyncWorker()

    try:
        session = worker.run_sync(open_session(host, port, attach_args, pause, wait_timeout))
    except (GridProbeError, ConnectionError, TimeoutError, asyncio.TimeoutError) as e:
        message = str(e) or "timed out waiting for the debuggee"
        logger.error(f"Could not open debug session on {host}:{port}: {message}")
        print(f"gridprobe: {message}", file=sys.stderr)
        worker.stop()
        return 1

    manager = PanelManager(session, worker, limits=FetchLimits.from_settings())
    manager.bind_session_events()
    for var_name in var_names:
        manager.create_panel(var_name)

    # Quit once the last panel is closed
    manager.panel_closed.connect(lambda _name: app.quit() if not manager.panels else None)

    try:
        return app.exec()
    finally:
        manager.dispose()
        worker.run_sync(session.disconnect(), timeout=5.0)
        worker.stop()
