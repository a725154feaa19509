"""Heading-scoped property declarations and their resolution.

Every heading opens a ``ScopeNode`` under the nearest open heading of a
smaller level; content before the first heading belongs to the level-0 root.
Directives write into the node that is current when they appear, either into
its global map or into the map for their language qualifier.

Resolution walks upward from a fragment's node. At each node the language map
is consulted before the global map, and the first hit wins, so a value set on
a nearer node beats anything inherited from further up regardless of how it
was qualified.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import StrEnum

from betwixt.directive import ParsedDirective, PropertyKey, PropertyValue, Role, WriteMode
from betwixt.invariants import never

logger = logging.getLogger(__name__)

DEFAULTS: dict[PropertyKey, PropertyValue | None] = {
    PropertyKey.DESTINATION: None,
    PropertyKey.WRITE_MODE: WriteMode.APPEND,
    PropertyKey.TAG: None,
    PropertyKey.IGNORE: False,
    PropertyKey.ROLE: Role.BODY,
}


@dataclass(eq=False)
class ScopeNode:
    level: int
    title: str | None = None
    parent: ScopeNode | None = field(default=None, repr=False)
    children: list[ScopeNode] = field(default_factory=list, repr=False)
    global_properties: dict[PropertyKey, PropertyValue] = field(default_factory=dict)
    language_properties: dict[str, dict[PropertyKey, PropertyValue]] = field(
        default_factory=dict
    )

    def add_child(self, level: int, title: str | None) -> ScopeNode:
        child = ScopeNode(level=level, title=title, parent=self)
        self.children.append(child)
        return child

    def declare(
        self, language: str | None, key: PropertyKey, value: PropertyValue
    ) -> None:
        if language is None:
            self.global_properties[key] = value
        else:
            self.language_properties.setdefault(language, {})[key] = value

    def apply(self, directive: ParsedDirective) -> None:
        for key, value in directive.assignments:
            self.declare(directive.language, key, value)

    def heading_path(self) -> tuple[str, ...]:
        titles: list[str] = []
        node: ScopeNode | None = self
        while node is not None and node.parent is not None:
            titles.append(node.title or "")
            node = node.parent
        return tuple(reversed(titles))


def resolve(node: ScopeNode, language: str | None, key: PropertyKey) -> PropertyValue | None:
    current: ScopeNode | None = node
    while current is not None:
        if language is not None:
            scoped = current.language_properties.get(language)
            if scoped is not None and key in scoped:
                return scoped[key]
        if key in current.global_properties:
            return current.global_properties[key]
        current = current.parent
    return DEFAULTS[key]


@dataclass(frozen=True)
class ResolvedConfig:
    destination: str | None = None
    write_mode: WriteMode = WriteMode.APPEND
    tag: str | None = None
    ignore: bool = False
    role: Role = Role.BODY


def resolve_config(node: ScopeNode, language: str | None) -> ResolvedConfig:
    destination = resolve(node, language, PropertyKey.DESTINATION)
    write_mode = resolve(node, language, PropertyKey.WRITE_MODE)
    tag = resolve(node, language, PropertyKey.TAG)
    ignore = resolve(node, language, PropertyKey.IGNORE)
    role = resolve(node, language, PropertyKey.ROLE)
    if not isinstance(write_mode, WriteMode) or not isinstance(role, Role):
        never("resolved enum property has the wrong type", write_mode=write_mode, role=role)
    return ResolvedConfig(
        destination=destination if isinstance(destination, str) else None,
        write_mode=write_mode,
        tag=tag if isinstance(tag, str) else None,
        ignore=ignore is True,
        role=role,
    )


class FragmentOrigin(StrEnum):
    FENCE = "fence"
    PAYLOAD = "payload"


@dataclass(frozen=True)
class ResolvedFragment:
    index: int
    language: str | None
    content: str
    node: ScopeNode
    config: ResolvedConfig
    line: int
    origin: FragmentOrigin = FragmentOrigin.FENCE

    @property
    def payload(self) -> bytes:
        return self.content.encode("utf-8")


class ScopeCursor:
    """Stack of open scope nodes for one traversal."""

    def __init__(self, root: ScopeNode | None = None) -> None:
        self.root = root if root is not None else ScopeNode(level=0)
        self._open: list[ScopeNode] = [self.root]

    @property
    def current(self) -> ScopeNode:
        return self._open[-1]

    def enter_heading(self, level: int, title: str | None) -> ScopeNode:
        if level < 1:
            never("heading level must be positive", level=level, title=title)
        while self._open[-1].level >= level:
            self._open.pop()
        node = self._open[-1].add_child(level, title)
        self._open.append(node)
        logger.debug("scope %s opened at depth %d", node.heading_path(), len(self._open) - 1)
        return node
