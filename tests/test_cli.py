import argparse
import asyncio
import csv

import numpy as np
import pytest

import gridprobe.__main__ as cli
from gridprobe.__main__ import build_parser, main, parse_attach, parse_range, write_result
from gridprobe.core.chunk_fetcher import Cell, FetchResult


@pytest.fixture
def jagged_result():
    return FetchResult(
        cells=[
            [Cell('1'), Cell('2', changed=True), Cell('3')],
            [Cell('4')],
        ],
        total_rows=2,
        total_cols=None,
        max_row_length_seen=3,
    )


def test_parse_range():
    assert parse_range("10:5") == (10, 5)
    assert parse_range("7") == (0, 7)
    for bad in ("a:b", "-1:3", "1:"):
        with pytest.raises(argparse.ArgumentTypeError):
            parse_range(bad)


def test_parse_attach():
    assert parse_attach('{"justMyCode": false}') == {"justMyCode": False}
    with pytest.raises(argparse.ArgumentTypeError):
        parse_attach("[1]")
    with pytest.raises(argparse.ArgumentTypeError):
        parse_attach("{bad")


def test_dump_defaults():
    args = build_parser().parse_args(["dump", "grid"])
    assert args.command == "dump"
    assert args.variable == "grid"
    assert (args.host, args.port) == ("127.0.0.1", 5678)
    assert args.rows == (0, 20)
    assert args.cols == (0, 10)
    assert args.format == "table"
    assert args.loglevel == "WARNING"


def test_view_options():
    args = build_parser().parse_args(
        ["--loglevel", "DEBUG", "view", "m", "--port", "9000", "--pause", "--attach", '{"a": 1}']
    )
    assert args.command == "view"
    assert args.port == 9000
    assert args.pause
    assert args.attach == {"a": 1}
    assert args.loglevel == "DEBUG"


def test_command_is_required():
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


def test_table_output(tmp_path, jagged_result):
    out = tmp_path / "grid.txt"
    args = build_parser().parse_args(["dump", "grid", "--rows", "5:2", "-o", str(out)])
    assert write_result(args, jagged_result) is None

    lines = out.read_text(encoding="utf-8").splitlines()
    assert lines[0] == "grid (Size: 2 x ?)"
    assert lines[1].split() == ["#", "[0]", "[1]", "[2]"]
    assert lines[2].split() == ["[5]", "1", "*2", "3"]
    assert lines[3].split() == ["[6]", "4"]


def test_csv_output_pads_short_rows(tmp_path, jagged_result):
    out = tmp_path / "grid.csv"
    args = build_parser().parse_args(["dump", "grid", "--format", "csv", "-o", str(out)])
    assert write_result(args, jagged_result) is None

    with open(out, newline="", encoding="utf-8") as f:
        assert list(csv.reader(f)) == [["1", "2", "3"], ["4", "", ""]]


def test_npy_output_is_numeric(tmp_path, jagged_result):
    out = tmp_path / "grid.npy"
    args = build_parser().parse_args(["dump", "grid", "--format", "npy", "-o", str(out)])
    assert write_result(args, jagged_result) is None

    array = np.load(out)
    assert array.shape == (2, 3)
    assert array[1, 0] == 4.0
    assert np.isnan(array[1, 2])


def test_npy_requires_output(jagged_result):
    args = build_parser().parse_args(["dump", "grid", "--format", "npy"])
    assert write_result(args, jagged_result) == "--output is required for npy format"


def test_unwritable_output_is_reported(tmp_path, jagged_result):
    out = tmp_path / "missing" / "grid.csv"
    args = build_parser().parse_args(["dump", "grid", "--format", "csv", "-o", str(out)])
    error = write_result(args, jagged_result)
    assert error.startswith(f"cannot write {out}")
    assert not out.exists()


def test_unwritable_npy_output_is_reported(tmp_path, jagged_result):
    out = tmp_path / "missing" / "grid.npy"
    args = build_parser().parse_args(["dump", "grid", "--format", "npy", "-o", str(out)])
    assert write_result(args, jagged_result).startswith("cannot write")


def test_output_error_exits_with_2(tmp_path, monkeypatch, capsys, jagged_result):
    async def fake_fetch(args):
        return jagged_result

    monkeypatch.setattr(cli, "fetch_once", fake_fetch)
    out = tmp_path / "missing" / "grid.txt"
    with pytest.raises(SystemExit) as excinfo:
        main(["dump", "grid", "-o", str(out)])
    assert excinfo.value.code == 2
    assert "cannot write" in capsys.readouterr().err


def test_wait_timeout_exits_with_1(monkeypatch, capsys):
    async def never_paused(args):
        raise asyncio.TimeoutError()

    monkeypatch.setattr(cli, "fetch_once", never_paused)
    with pytest.raises(SystemExit) as excinfo:
        main(["dump", "grid", "--wait-timeout", "0.1"])
    assert excinfo.value.code == 1
    assert "timed out waiting for the debuggee" in capsys.readouterr().err
