"""
Centralized logging configuration for gridprobe.

Usage:
    from gridprobe.logging import setup_logging, get_logger, trace_print

    # In __main__.py (once at startup)
    setup_logging(level='DEBUG', log_file='/tmp/gridprobe_debug.log', trace=True)

    # In any module
    logger = get_logger(__name__)
    logger.debug("Fetched 20 rows")

    # Per-row / per-idiom fetch tracing, only emitted when trace=True
    trace_print("ROW 3: len=12 (cache)")
"""

import logging
import sys
from typing import Optional

DEFAULT_LOG_FILE = '/tmp/gridprobe_debug.log'

ROOT_LOGGER_NAME = 'gridprobe'
TRACE_LOGGER_NAME = 'gridprobe.trace'

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

_logging_configured = False


def _make_handler(handler: logging.Handler, level: int) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    return handler


def setup_logging(
    level: str = 'WARNING',
    log_file: Optional[str] = None,
    console: bool = False,
    trace: bool = False,
) -> None:
    """
    Configure the 'gridprobe' logger hierarchy.

    Args:
        level: Log level ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')
        log_file: Path to log file (only used if level is DEBUG or INFO)
        console: If True, also log to console (stderr)
        trace: If True, emit per-row fetch traces on 'gridprobe.trace'
            (requires level DEBUG to reach a handler)
    """
    global _logging_configured

    numeric_level = getattr(logging, level.upper(), logging.WARNING)

    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(numeric_level)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    if log_file and numeric_level <= logging.INFO:
        root.addHandler(_make_handler(logging.FileHandler(log_file, mode='w'), numeric_level))
    if console:
        root.addHandler(_make_handler(logging.StreamHandler(sys.stderr), numeric_level))
    if not root.handlers:
        root.addHandler(logging.NullHandler())

    # Traces are DEBUG records; keep them out unless asked for
    logging.getLogger(TRACE_LOGGER_NAME).setLevel(logging.DEBUG if trace else logging.INFO)

    _logging_configured = True
    root.debug(f"Logging configured: level={level}, log_file={log_file}, "
               f"console={console}, trace={trace}")


def is_configured() -> bool:
    """Return True once setup_logging() has run."""
    return _logging_configured


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for a module, always under the 'gridprobe' hierarchy.

    Args:
        name: Module name (typically __name__)
    """
    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + '.'):
        return logging.getLogger(name)
    return logging.getLogger(f'{ROOT_LOGGER_NAME}.{name}')


def trace_print(message: str) -> None:
    """Emit a fetch trace line on the trace logger."""
    trace_logger = logging.getLogger(TRACE_LOGGER_NAME)
    if trace_logger.isEnabledFor(logging.DEBUG):
        trace_logger.debug(message)
