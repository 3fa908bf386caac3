"""
GridProbe entry point.

Usage:
    python -m gridprobe dump grid --port 5678
    python -m gridprobe dump grid --rows 0:50 --cols 10:10 --format csv -o grid.csv
    python -m gridprobe view grid --port 5678 --pause
    python -m gridprobe --loglevel DEBUG dump grid
"""

import argparse
import asyncio
import csv
import json
import sys
from typing import Optional, Tuple


def parse_range(text: str) -> Tuple[int, int]:
    """Parse 'START:COUNT' (or a bare COUNT starting at 0)."""
    try:
        if ':' in text:
            start, count = text.split(':', 1)
            result = (int(start), int(count))
        else:
            result = (0, int(text))
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected START:COUNT, got '{text}'")
    if min(result) < 0:
        raise argparse.ArgumentTypeError(f"range must be non-negative: '{text}'")
    return result


def parse_attach(text: str) -> dict:
    try:
        value = json.loads(text)
    except json.JSONDecodeError as e:
        raise argparse.ArgumentTypeError(f"invalid attach JSON: {e}")
    if not isinstance(value, dict):
        raise argparse.ArgumentTypeError("attach arguments must be a JSON object")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="GridProbe - lazy inspection of large 2-D values in a paused debuggee"
    )
    parser.add_argument(
        "-l", "--loglevel",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default="WARNING",
        help="Set logging level (default: WARNING). DEBUG writes to /tmp/gridprobe_debug.log"
    )
    parser.add_argument(
        "--logfile",
        default="/tmp/gridprobe_debug.log",
        help="Log file path (default: /tmp/gridprobe_debug.log)"
    )
    parser.add_argument(
        "--log-console",
        action="store_true",
        help="Also log to console (stderr)"
    )
    parser.add_argument(
        "--trace",
        action="store_true",
        help="Log every row size lookup and idiom probe (with --loglevel DEBUG)"
    )

    # Connection options shared by every command
    connection = argparse.ArgumentParser(add_help=False)
    connection.add_argument("variable", help="Expression of the variable to inspect")
    connection.add_argument("--host", default="127.0.0.1", help="Debug adapter host (default: 127.0.0.1)")
    connection.add_argument("--port", type=int, default=5678, help="Debug adapter port (default: 5678)")
    connection.add_argument(
        "--attach",
        type=parse_attach,
        default=None,
        help="JSON object passed as the attach request arguments"
    )
    connection.add_argument(
        "--pause",
        action="store_true",
        help="Ask the adapter to pause the first thread instead of waiting for a breakpoint"
    )
    connection.add_argument(
        "--wait-timeout",
        type=float,
        default=None,
        help="Give up if the debuggee does not pause within this many seconds (default: wait forever)"
    )

    commands = parser.add_subparsers(dest="command", required=True)

    dump = commands.add_parser("dump", parents=[connection], help="Fetch one window and print or save it")
    dump.add_argument("--rows", type=parse_range, default=(0, 20), help="Row window START:COUNT (default: 0:20)")
    dump.add_argument("--cols", type=parse_range, default=(0, 10), help="Column window START:COUNT (default: 0:10)")
    dump.add_argument(
        "--format",
        choices=["table", "csv", "npy"],
        default="table",
        help="Output format (default: table)"
    )
    dump.add_argument("-o", "--output", default=None, help="Write to a file instead of stdout (required for npy)")

    commands.add_parser("view", parents=[connection], help="Open the matrix viewer")
    return parser


async def fetch_once(args):
    """Connect, fetch the requested window, disconnect."""
    from .core.inspection_view import InspectionView
    from .core.settings import FetchLimits
    from .ipc.dap_session import open_session

    session = await open_session(args.host, args.port, args.attach, args.pause, args.wait_timeout)
    try:
        view = InspectionView(session, args.variable, FetchLimits.from_settings())
        row_start, row_count = args.rows
        col_start, col_count = args.cols
        return await view.fetch_window(row_start, row_count, col_start, col_count)
    finally:
        await session.disconnect()


def write_result(args, result) -> Optional[str]:
    """Write a fetch result in the requested format. Returns an error message on failure."""
    try:
        return _write_output(args, result)
    except OSError as e:
        return f"cannot write {args.output or 'output'}: {e.strerror or e}"


def _write_output(args, result) -> Optional[str]:
    from .core.grid_export import format_table, to_numeric_array, to_text_array, is_numeric

    if args.format == "npy":
        if not args.output:
            return "--output is required for npy format"
        import numpy as np
        array = to_numeric_array(result.cells) if is_numeric(result.cells) else to_text_array(result.cells)
        np.save(args.output, array, allow_pickle=array.dtype == object)
        return None

    out = open(args.output, "w", newline="", encoding="utf-8") if args.output else sys.stdout
    try:
        if args.format == "csv":
            writer = csv.writer(out)
            writer.writerows(to_text_array(result.cells).tolist())
        else:
            rows = '?' if result.total_rows is None else result.total_rows
            cols = '?' if result.total_cols is None else result.total_cols
            out.write(f"{args.variable} (Size: {rows} x {cols})\n")
            out.write(format_table(result.cells, args.rows[0], args.cols[0]) + "\n")
    finally:
        if out is not sys.stdout:
            out.close()
    return None


def main(argv=None):
    """Main entry point for GridProbe."""
    args = build_parser().parse_args(argv)

    # Setup logging before importing anything else
    from .logging import setup_logging
    setup_logging(
        level=args.loglevel,
        log_file=args.logfile,
        console=args.log_console,
        trace=args.trace,
    )

    if args.command == "view":
        # Import here to avoid slow startup for --help
        from .gui.app import run_app
        sys.exit(run_app(
            [args.variable],
            host=args.host,
            port=args.port,
            attach_args=args.attach,
            pause=args.pause,
            wait_timeout=args.wait_timeout,
        ))

    from .core.session import GridProbeError
    try:
        result = asyncio.run(fetch_once(args))
    except (GridProbeError, ConnectionError, TimeoutError, asyncio.TimeoutError) as e:
        print(f"gridprobe: {e or 'timed out waiting for the debuggee'}", file=sys.stderr)
        sys.exit(1)

    error = write_result(args, result)
    if error:
        print(f"gridprobe: {error}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
