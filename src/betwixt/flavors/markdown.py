from __future__ import annotations

import logging
import re
from typing import Iterator

from betwixt.directive import opener_at, scan_directive, skip_directive
from betwixt.events import (
    Directive,
    EnterHeading,
    EnterNestedDocument,
    Fragment,
    Position,
    StructuralEvent,
)
from betwixt.exceptions import DirectiveSyntaxError
from betwixt.flavors.flavor_contract import DirectiveErrorHandler

logger = logging.getLogger(__name__)

NESTED_DOCUMENT_LANGUAGE = "btxt"

_HEADING_RE = re.compile(r"(#+)[ \t]+([^\n]*)")
_LINE_ACTIVITY_RE = re.compile(r"[<\n]")


class MarkdownFlavor:
    """ATX headings, fenced code blocks and inline directives.

    Fences open at column 0 with ``fence`` followed by an optional language
    word and close on a line holding only ``fence`` (plus trailing blanks).
    A fence whose language is ``nested_language`` holds a whole document for
    ``nested_flavor_id`` rather than a fragment.
    """

    def __init__(
        self,
        flavor_id: str,
        *,
        fence: str,
        file_extensions: tuple[str, ...] = (),
        nested_flavor_id: str | None = None,
        nested_language: str = NESTED_DOCUMENT_LANGUAGE,
    ) -> None:
        self.flavor_id = flavor_id
        self.fence = fence
        self.file_extensions = file_extensions
        self.nested_flavor_id = nested_flavor_id
        self.nested_language = nested_language
        self._fence_open = re.compile(
            re.escape(fence) + r"(?P<language>[A-Za-z0-9_.#+-]*)(?P<info>[^\n]*)\n"
        )
        self._fence_close = re.compile(
            r"^" + re.escape(fence) + r"[ \t]*$", re.MULTILINE
        )

    def __repr__(self) -> str:
        return f"MarkdownFlavor({self.flavor_id!r}, fence={self.fence!r})"

    def scan(
        self,
        text: str,
        *,
        on_directive_error: DirectiveErrorHandler | None = None,
    ) -> Iterator[StructuralEvent]:
        pos = 0
        line = 1
        at_line_start = True
        length = len(text)
        while pos < length:
            if at_line_start:
                fenced = self._scan_fence(text, pos, line)
                if fenced is not None:
                    event, pos, line = fenced
                    yield event
                    continue
                heading = _HEADING_RE.match(text, pos)
                if heading is not None:
                    yield EnterHeading(
                        level=len(heading.group(1)),
                        title=heading.group(2).strip(),
                        position=Position(offset=pos, line=line),
                    )
                    # The title stays in the stream so directives on it count.
                    pos = heading.start(2)
                at_line_start = False
                continue
            activity = _LINE_ACTIVITY_RE.search(text, pos)
            if activity is None:
                break
            pos = activity.start()
            if text[pos] == "\n":
                pos += 1
                line += 1
                at_line_start = True
                continue
            if opener_at(text, pos) is None:
                pos += 1
                continue
            try:
                directive, end = scan_directive(text, pos, line=line)
            except DirectiveSyntaxError as exc:
                if on_directive_error is None:
                    raise
                on_directive_error(exc)
                end = skip_directive(text, pos)
                line += text.count("\n", pos, end)
                pos = end
                continue
            yield Directive(directive=directive, position=Position(offset=pos, line=line))
            line += text.count("\n", pos, end)
            pos = end

    def _scan_fence(
        self, text: str, pos: int, line: int
    ) -> tuple[StructuralEvent, int, int] | None:
        opening = self._fence_open.match(text, pos)
        if opening is None:
            return None
        closing = self._fence_close.search(text, opening.end())
        if closing is None:
            logger.debug("unterminated fence at line %d treated as text", line)
            return None
        content = text[opening.end() : closing.start()]
        end = closing.end()
        if end < len(text) and text[end] == "\n":
            end += 1
        language = opening.group("language") or None
        position = Position(offset=pos, line=line)
        event: StructuralEvent
        if language == self.nested_language and self.nested_flavor_id is not None:
            event = EnterNestedDocument(
                content=content,
                flavor_id=self.nested_flavor_id,
                position=position,
            )
        else:
            event = Fragment(language=language, content=content, position=position)
        return event, end, line + text.count("\n", pos, end)


def github_flavor() -> MarkdownFlavor:
    return MarkdownFlavor(
        "github",
        fence="```",
        file_extensions=(".md", ".markdown"),
        nested_flavor_id="nested",
    )


def nested_flavor() -> MarkdownFlavor:
    return MarkdownFlavor("nested", fence="'''")
