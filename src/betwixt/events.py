"""Structural events a flavor front end emits for the tangle pipeline.

A flavor turns raw document text into a flat, document-ordered stream of
these events. The pipeline never looks at raw text itself.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TypeAlias

from betwixt.directive import ParsedDirective


@dataclass(frozen=True)
class Position:
    offset: int
    line: int


@dataclass(frozen=True)
class EnterHeading:
    """Close open headings at ``level`` or deeper, then open a new one."""

    level: int
    title: str
    position: Position


@dataclass(frozen=True)
class Directive:
    directive: ParsedDirective
    position: Position


@dataclass(frozen=True)
class Fragment:
    language: str | None
    content: str
    position: Position


@dataclass(frozen=True)
class EnterNestedDocument:
    """``content`` is a complete document, scanned with ``flavor_id``."""

    content: str
    flavor_id: str
    position: Position


StructuralEvent: TypeAlias = EnterHeading | Directive | Fragment | EnterNestedDocument
