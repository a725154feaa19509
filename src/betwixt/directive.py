"""Directive micro-language.

A directive is embedded in prose as::

    <?btxt[+<language>] <key>=<value> ...?>

or, inside an HTML comment so it stays invisible once rendered::

    <!--btxt[+<language>] <key>=<value> ...-->

Values are ``'quoted'``, ``"quoted"`` or ``|||raw|||``. Quoted values may
escape their delimiter with a backslash and may not contain the close marker;
raw values are literal up to the next ``|||``. ``ignore`` only takes the bare
literals ``true`` and ``false``. Every value is validated here so resolution
downstream can never fail.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import StrEnum
from typing import TypeAlias

from betwixt.exceptions import DirectiveSyntaxError, SourceSpan

logger = logging.getLogger(__name__)

DIRECTIVE_OPEN = "<?btxt"
DIRECTIVE_CLOSE = "?>"
COMMENT_OPEN = "<!--btxt"
COMMENT_CLOSE = "-->"
RAW_DELIMITER = "|||"

MARKER_PAIRS: tuple[tuple[str, str], ...] = (
    (DIRECTIVE_OPEN, DIRECTIVE_CLOSE),
    (COMMENT_OPEN, COMMENT_CLOSE),
)

_LANGUAGE_RE = re.compile(r"[A-Za-z0-9_.#+-]+")
_KEY_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


class PropertyKey(StrEnum):
    DESTINATION = "destination"
    WRITE_MODE = "writeMode"
    TAG = "tag"
    IGNORE = "ignore"
    ROLE = "role"


class WriteMode(StrEnum):
    APPEND = "append"
    OVERWRITE = "overwrite"


class Role(StrEnum):
    PREFIX = "prefix"
    BODY = "body"
    POSTFIX = "postfix"


PropertyValue: TypeAlias = str | bool | WriteMode | Role


class ValueForm(StrEnum):
    QUOTED = "quoted"
    RAW = "raw"
    BARE = "bare"


# Directive text key -> property it sets.
PROPERTY_KEYS: dict[str, PropertyKey] = {
    "filename": PropertyKey.DESTINATION,
    "mode": PropertyKey.WRITE_MODE,
    "tag": PropertyKey.TAG,
    "ignore": PropertyKey.IGNORE,
    "role": PropertyKey.ROLE,
}

# Directive text key -> forced role of the inline payload (None: resolved).
PAYLOAD_KEYS: dict[str, Role | None] = {
    "pre": Role.PREFIX,
    "code": None,
    "post": Role.POSTFIX,
}


@dataclass(frozen=True)
class HiddenPayload:
    key: str
    content: str
    role: Role | None
    span: SourceSpan


@dataclass(frozen=True)
class ParsedDirective:
    language: str | None
    assignments: tuple[tuple[PropertyKey, PropertyValue], ...]
    payloads: tuple[HiddenPayload, ...]
    span: SourceSpan

    def properties(self) -> dict[PropertyKey, PropertyValue]:
        return dict(self.assignments)

    def ordered_payloads(self) -> list[HiddenPayload]:
        """Payloads in emission order: pre, code, post."""
        rank = {key: position for position, key in enumerate(PAYLOAD_KEYS)}
        return sorted(self.payloads, key=lambda payload: rank[payload.key])


@dataclass(frozen=True)
class _RawValue:
    text: str
    form: ValueForm
    start: int
    end: int


def opener_at(text: str, pos: int) -> tuple[str, str] | None:
    """Return the (open, close) markers of a directive starting at ``pos``.

    An opener only counts when it is followed by a language qualifier,
    whitespace or its own close marker; ``<?btxtual`` is prose.
    """
    for opener, closer in MARKER_PAIRS:
        if not text.startswith(opener, pos):
            continue
        after = pos + len(opener)
        if after >= len(text):
            return opener, closer
        follower = text[after]
        if follower == "+" or follower.isspace() or text.startswith(closer, after):
            return opener, closer
    return None


class _DirectiveReader:
    def __init__(
        self,
        source: str,
        *,
        start: int,
        stop: int,
        closer: str | None,
        base: int,
        line: int,
    ) -> None:
        self.source = source
        self.start = start
        self.pos = start
        self.stop = stop
        self.closer = closer
        self.base = base
        self.line = line

    def span(self, start: int, end: int) -> SourceSpan:
        line = self.line + self.source.count("\n", self.start, start)
        return SourceSpan(start=self.base + start, end=self.base + end, line=line)

    def fail(self, message: str, start: int, end: int) -> DirectiveSyntaxError:
        return DirectiveSyntaxError(
            message,
            span=self.span(start, end),
            text=self.source[start:end],
        )

    def at_close(self) -> bool:
        return self.closer is not None and self.source.startswith(self.closer, self.pos)

    def at_boundary(self) -> bool:
        return self.pos >= self.stop or self.source[self.pos].isspace() or self.at_close()

    def skip_whitespace(self) -> None:
        while self.pos < self.stop and self.source[self.pos].isspace():
            self.pos += 1

    def read_token(self) -> tuple[int, int]:
        start = self.pos
        while not self.at_boundary():
            self.pos += 1
        return start, self.pos

    def read_language(self) -> str | None:
        if not self.source.startswith("+", self.pos):
            return None
        self.pos += 1
        start, end = self.read_token()
        qualifier = self.source[start:end]
        if not qualifier:
            raise self.fail("empty language qualifier", start - 1, end)
        if _LANGUAGE_RE.fullmatch(qualifier) is None:
            raise self.fail(f"invalid language qualifier {qualifier!r}", start, end)
        return qualifier

    def read_value(self, key: str) -> _RawValue:
        start = self.pos
        if self.source.startswith(RAW_DELIMITER, start):
            end = self.source.find(RAW_DELIMITER, start + len(RAW_DELIMITER), self.stop)
            if end < 0:
                raise self.fail(f"unterminated raw string for {key!r}", start, self.stop)
            self.pos = end + len(RAW_DELIMITER)
            return _RawValue(
                self.source[start + len(RAW_DELIMITER) : end],
                ValueForm.RAW,
                start,
                self.pos,
            )
        if start < self.stop and self.source[start] in "'\"":
            return self.read_quoted(key)
        token_start, token_end = self.read_token()
        return _RawValue(
            self.source[token_start:token_end], ValueForm.BARE, token_start, token_end
        )

    def read_quoted(self, key: str) -> _RawValue:
        start = self.pos
        quote = self.source[start]
        chars: list[str] = []
        self.pos += 1
        while True:
            if self.pos >= self.stop or self.at_close():
                raise self.fail(f"unterminated string for {key!r}", start, self.pos)
            char = self.source[self.pos]
            if char == "\\" and self.pos + 1 < self.stop:
                escaped = self.source[self.pos + 1]
                if escaped in (quote, "\\"):
                    chars.append(escaped)
                    self.pos += 2
                    continue
            if char == quote:
                self.pos += 1
                return _RawValue("".join(chars), ValueForm.QUOTED, start, self.pos)
            chars.append(char)
            self.pos += 1

    def parse(self, open_start: int) -> ParsedDirective:
        language = self.read_language()
        assignments: list[tuple[PropertyKey, PropertyValue]] = []
        payloads: list[HiddenPayload] = []
        seen: set[str] = set()
        while True:
            self.skip_whitespace()
            if self.at_close():
                self.pos += len(self.closer or "")
                break
            if self.pos >= self.stop:
                if self.closer is not None:
                    raise self.fail("unterminated directive", open_start, self.pos)
                break
            key_match = _KEY_RE.match(self.source, self.pos, self.stop)
            if key_match is None:
                token_start, token_end = self.read_token()
                raise self.fail("expected key=value assignment", token_start, token_end)
            key = key_match.group()
            self.pos = key_match.end()
            if key not in PROPERTY_KEYS and key not in PAYLOAD_KEYS:
                raise self.fail(f"unknown key {key!r}", key_match.start(), key_match.end())
            if key in seen:
                raise self.fail(f"duplicate key {key!r}", key_match.start(), key_match.end())
            seen.add(key)
            if not self.source.startswith("=", self.pos):
                raise self.fail(f"expected '=' after {key!r}", key_match.start(), self.pos)
            self.pos += 1
            raw = self.read_value(key)
            if not self.at_boundary():
                raise self.fail(
                    f"expected whitespace after value for {key!r}", raw.start, self.pos + 1
                )
            if key in PAYLOAD_KEYS:
                payloads.append(self.payload(key, raw))
            else:
                assignments.append((PROPERTY_KEYS[key], self.convert(key, raw)))
        return ParsedDirective(
            language=language,
            assignments=tuple(assignments),
            payloads=tuple(payloads),
            span=self.span(open_start, self.pos),
        )

    def payload(self, key: str, raw: _RawValue) -> HiddenPayload:
        if raw.form is ValueForm.BARE:
            raise self.fail(f"value for {key!r} must be quoted", raw.start, raw.end)
        return HiddenPayload(
            key=key,
            content=raw.text,
            role=PAYLOAD_KEYS[key],
            span=self.span(raw.start, raw.end),
        )

    def convert(self, key: str, raw: _RawValue) -> PropertyValue:
        prop = PROPERTY_KEYS[key]
        if prop is PropertyKey.IGNORE:
            if raw.form is not ValueForm.BARE or raw.text not in ("true", "false"):
                raise self.fail(
                    "'ignore' takes a bare true or false", raw.start, raw.end
                )
            return raw.text == "true"
        if raw.form is ValueForm.BARE:
            raise self.fail(f"value for {key!r} must be quoted", raw.start, raw.end)
        if prop is PropertyKey.DESTINATION:
            if not raw.text:
                raise self.fail("empty filename", raw.start, raw.end)
            return raw.text
        if prop is PropertyKey.WRITE_MODE:
            try:
                return WriteMode(raw.text.lower())
            except ValueError:
                raise self.fail(f"unknown mode {raw.text!r}", raw.start, raw.end) from None
        if prop is PropertyKey.ROLE:
            try:
                return Role(raw.text.lower())
            except ValueError:
                raise self.fail(f"unknown role {raw.text!r}", raw.start, raw.end) from None
        return raw.text


def parse_directive(body: str, *, offset: int = 0, line: int = 1) -> ParsedDirective:
    """Parse the text between a directive's open and close markers.

    ``offset`` and ``line`` locate ``body`` inside its document so error spans
    are absolute.
    """
    reader = _DirectiveReader(
        body,
        start=0,
        stop=len(body),
        closer=None,
        base=offset,
        line=line,
    )
    return reader.parse(0)


def scan_directive(text: str, start: int, *, line: int) -> tuple[ParsedDirective, int]:
    """Parse the directive whose opener sits at ``text[start]``.

    Returns the directive and the offset just past its close marker. The close
    marker is located with quoting in mind, so ``code=|||?>|||`` is fine.
    """
    markers = opener_at(text, start)
    if markers is None:
        raise DirectiveSyntaxError(
            "no directive opener",
            span=SourceSpan(start=start, end=start, line=line),
        )
    opener, closer = markers
    reader = _DirectiveReader(
        text,
        start=start,
        stop=len(text),
        closer=closer,
        base=0,
        line=line,
    )
    reader.pos = start + len(opener)
    directive = reader.parse(start)
    logger.debug(
        "directive at line %d: language=%s keys=%s",
        directive.span.line,
        directive.language,
        [prop.value for prop, _ in directive.assignments],
    )
    return directive, reader.pos


def skip_directive(text: str, start: int) -> int:
    """Offset just past the directive opened at ``start``, without validating it.

    Quoted and raw values are stepped over so a close marker inside them does
    not end the directive. When no close marker can be found this way, the
    next close marker after the opener is used, then the end of the line.
    """
    markers = opener_at(text, start)
    if markers is None:
        return start + 1
    opener, closer = markers
    length = len(text)
    pos = start + len(opener)
    while pos < length:
        if text.startswith(closer, pos):
            return pos + len(closer)
        if text.startswith(RAW_DELIMITER, pos):
            end = text.find(RAW_DELIMITER, pos + len(RAW_DELIMITER))
            if end < 0:
                break
            pos = end + len(RAW_DELIMITER)
            continue
        quote = text[pos]
        if quote in "'\"":
            pos += 1
            while pos < length and text[pos] != quote and not text.startswith(closer, pos):
                if text[pos] == "\\" and text[pos + 1 : pos + 2] in (quote, "\\"):
                    pos += 1
                pos += 1
            if pos < length and text[pos] == quote:
                pos += 1
            continue
        pos += 1
    close = text.find(closer, start + len(opener))
    if close >= 0:
        return close + len(closer)
    newline = text.find("\n", start)
    return newline if newline >= 0 else length
