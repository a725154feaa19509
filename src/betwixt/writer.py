from __future__ import annotations

import logging
import os
import stat
import tempfile
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Sequence

from betwixt.directive import WriteMode
from betwixt.exceptions import WriteFailure

logger = logging.getLogger(__name__)

Operations = Sequence[tuple[bytes, WriteMode]]

_DESTINATION_LOCKS: dict[Path, threading.Lock] = {}
_DESTINATION_LOCKS_GUARD = threading.Lock()


@contextmanager
def _destination_lock(path: Path) -> Iterator[None]:
    key = path.resolve()
    with _DESTINATION_LOCKS_GUARD:
        lock = _DESTINATION_LOCKS.setdefault(key, threading.Lock())
    with lock:
        yield


def outside_root(root: Path, destination: str) -> bool:
    """True when ``destination`` (absolute, or climbing with ``..``) leaves ``root``."""
    return not (root / destination).resolve().is_relative_to(root.resolve())


def apply_operations(existing: bytes, operations: Operations) -> bytes:
    """Replay truncate/append operations on top of ``existing``."""
    buffer = bytearray(existing)
    for content, mode in operations:
        if mode is WriteMode.OVERWRITE:
            buffer.clear()
        buffer.extend(content)
    return bytes(buffer)


@dataclass(frozen=True)
class DestinationResult:
    destination: str
    path: Path
    bytes_written: int = 0
    error: WriteFailure | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class FileWriter:
    """Flush assembled destinations below ``root``.

    Each destination's final bytes are computed in memory first, then written
    to a temporary sibling and moved into place, so a destination is either
    left untouched or fully replaced.
    """

    def __init__(self, root: Path) -> None:
        self.root = root

    def write(self, destinations: Sequence[tuple[str, Operations]]) -> list[DestinationResult]:
        return [self.flush(destination, operations) for destination, operations in destinations]

    def flush(self, destination: str, operations: Operations) -> DestinationResult:
        path = self.root / destination
        if outside_root(self.root, destination):
            logger.debug("destination %s is outside %s", destination, self.root)
        try:
            with _destination_lock(path):
                needs_existing = not any(mode is WriteMode.OVERWRITE for _, mode in operations)
                existing = path.read_bytes() if needs_existing and path.exists() else b""
                data = apply_operations(existing, operations)
                path.parent.mkdir(parents=True, exist_ok=True)
                _replace_atomically(path, data)
        except OSError as exc:
            logger.debug("write to %s failed: %s", path, exc)
            return DestinationResult(
                destination=destination,
                path=path,
                error=WriteFailure(destination, path, exc),
            )
        logger.debug("wrote %d byte(s) to %s", len(data), path)
        return DestinationResult(destination=destination, path=path, bytes_written=len(data))


def _target_mode(path: Path) -> int:
    try:
        return stat.S_IMODE(path.stat().st_mode)
    except FileNotFoundError:
        umask = os.umask(0)
        os.umask(umask)
        return 0o666 & ~umask


def _replace_atomically(path: Path, data: bytes) -> None:
    mode = _target_mode(path)
    fd, temp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
        # mkstemp creates 0600; the destination keeps its own mode.
        os.chmod(temp_name, mode)
        os.replace(temp_name, path)
    except BaseException:
        Path(temp_name).unlink(missing_ok=True)
        raise
