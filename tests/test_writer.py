from __future__ import annotations

import os
import stat
from pathlib import Path

import pytest

from betwixt.directive import WriteMode
from betwixt.exceptions import WriteFailure
from betwixt.writer import FileWriter, apply_operations, outside_root

APPEND = WriteMode.APPEND
OVERWRITE = WriteMode.OVERWRITE


def test_apply_operations_replays_truncate_and_append() -> None:
    assert apply_operations(b"old", [(b"a", APPEND), (b"b", APPEND)]) == b"oldab"
    assert apply_operations(b"old", [(b"a", APPEND), (b"b", OVERWRITE), (b"c", APPEND)]) == b"bc"
    assert apply_operations(b"old", []) == b"old"


def test_writer_creates_parent_directories(tmp_path: Path) -> None:
    writer = FileWriter(tmp_path)
    (result,) = writer.write([("src/pkg/mod.py", [(b"x = 1\n", APPEND)])])
    assert result.ok
    assert result.path == tmp_path / "src/pkg/mod.py"
    assert result.bytes_written == 6
    assert (tmp_path / "src/pkg/mod.py").read_bytes() == b"x = 1\n"


def test_writer_appends_to_existing_file_without_overwrite(tmp_path: Path) -> None:
    target = tmp_path / "log.txt"
    target.write_bytes(b"existing\n")
    FileWriter(tmp_path).write([("log.txt", [(b"more\n", APPEND)])])
    assert target.read_bytes() == b"existing\nmore\n"


def test_writer_is_idempotent_with_leading_overwrite(tmp_path: Path) -> None:
    writer = FileWriter(tmp_path)
    operations = [(b"header\n", OVERWRITE), (b"body\n", APPEND)]
    writer.write([("out.txt", operations)])
    first = (tmp_path / "out.txt").read_bytes()
    writer.write([("out.txt", operations)])
    assert (tmp_path / "out.txt").read_bytes() == first == b"header\nbody\n"


def test_writer_leaves_no_temporary_files(tmp_path: Path) -> None:
    FileWriter(tmp_path).write([("a.txt", [(b"a", OVERWRITE)]), ("b.txt", [(b"b", APPEND)])])
    assert sorted(path.name for path in tmp_path.iterdir()) == ["a.txt", "b.txt"]


def test_write_failure_is_reported_per_destination(tmp_path: Path) -> None:
    (tmp_path / "blocker").write_text("not a directory", encoding="utf-8")
    results = FileWriter(tmp_path).write(
        [
            ("blocker/out.txt", [(b"lost", APPEND)]),
            ("fine.txt", [(b"kept", APPEND)]),
        ]
    )
    failed, written = results
    assert not failed.ok
    assert isinstance(failed.error, WriteFailure)
    assert isinstance(failed.error.cause, OSError)
    assert failed.error.destination == "blocker/out.txt"
    assert written.ok
    assert (tmp_path / "fine.txt").read_bytes() == b"kept"
    assert (tmp_path / "blocker").read_text(encoding="utf-8") == "not a directory"


def _umask() -> int:
    current = os.umask(0)
    os.umask(current)
    return current


@pytest.mark.skipif(os.name == "nt", reason="POSIX permission bits")
def test_new_file_follows_umask(tmp_path: Path) -> None:
    FileWriter(tmp_path).write([("new.txt", [(b"x", APPEND)])])
    mode = stat.S_IMODE((tmp_path / "new.txt").stat().st_mode)
    assert mode == 0o666 & ~_umask()


@pytest.mark.skipif(os.name == "nt", reason="POSIX permission bits")
def test_existing_file_keeps_its_mode(tmp_path: Path) -> None:
    script = tmp_path / "run.sh"
    script.write_bytes(b"old\n")
    script.chmod(0o755)
    FileWriter(tmp_path).write([("run.sh", [(b"#!/bin/sh\n", OVERWRITE)])])
    assert script.read_bytes() == b"#!/bin/sh\n"
    assert stat.S_IMODE(script.stat().st_mode) == 0o755


def test_outside_root_detects_escaping_destinations(tmp_path: Path) -> None:
    root = tmp_path / "out"
    root.mkdir()
    assert not outside_root(root, "src/main.go")
    assert not outside_root(root, "src/../main.go")
    assert outside_root(root, "../main.go")
    assert outside_root(root, str(tmp_path / "elsewhere.txt"))
