"""Exception types raised by the betwixt tangle pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


class BetwixtError(Exception):
    """Base class for every error betwixt raises on purpose."""


@dataclass(frozen=True)
class SourceSpan:
    start: int
    end: int
    line: int

    def describe(self) -> str:
        return f"line {self.line}, chars {self.start}-{self.end}"


class DirectiveSyntaxError(BetwixtError):
    """Malformed directive text.

    ``span`` points at the offending characters in the document being
    scanned, so the message can be traced back to the source.
    """

    def __init__(self, message: str, *, span: SourceSpan, text: str = ""):
        super().__init__(f"{message} ({span.describe()})")
        self.reason = message
        self.span = span
        self.text = text


class UnresolvedDestination(BetwixtError):
    def __init__(self, message: str, *, index: int, line: int):
        super().__init__(message)
        self.index = index
        self.line = line


class EmptyDeclaredDestination(BetwixtError):
    def __init__(self, destination: str):
        super().__init__(
            f"destination {destination!r} was declared but received no body fragments"
        )
        self.destination = destination


class WriteFailure(BetwixtError):
    def __init__(self, destination: str, path: Path, cause: OSError):
        super().__init__(f"failed writing {destination!r} to {path}: {cause}")
        self.destination = destination
        self.path = path
        self.cause = cause


class NeverRaise(RuntimeError):
    """Sentinel exception for code paths that should be unreachable.

    Raising it means an internal invariant was broken. It is deliberately not
    a ``BetwixtError`` so callers never mistake it for bad input.
    """

    def __init__(self, message: str, *, env: dict[str, object] | None = None):
        super().__init__(message)
        self.env = dict(env or {})


class NeverThrown(NeverRaise):
    """Alias for NeverRaise used by the explicit never() marker."""


class TangleFailed(BetwixtError):
    """A run finished with error-severity issues; ``issues`` holds all of them."""

    def __init__(self, issues: list) -> None:
        lines = "; ".join(issue.message for issue in issues)
        super().__init__(f"tangle failed with {len(issues)} error(s): {lines}")
        self.issues = list(issues)


class DestinationOutsideRoot(BetwixtError):
    def __init__(self, destination: str, root: Path):
        super().__init__(f"destination {destination!r} resolves outside the output root {root}")
        self.destination = destination
        self.root = root


class DocumentReadError(BetwixtError):
    """The source document could not be read or is not valid UTF-8."""

    def __init__(self, path: Path, cause: OSError | UnicodeDecodeError):
        super().__init__(f"cannot read {path}: {cause}")
        self.path = path
        self.cause = cause
