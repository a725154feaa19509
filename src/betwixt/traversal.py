from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Iterator

from betwixt.directive import ParsedDirective, PropertyKey, Role
from betwixt.events import Directive, EnterHeading, EnterNestedDocument, Fragment
from betwixt.exceptions import DirectiveSyntaxError
from betwixt.flavors.flavor_contract import DocumentFlavor
from betwixt.flavors.registry import resolve_flavor
from betwixt.invariants import never
from betwixt.scope import (
    FragmentOrigin,
    ResolvedFragment,
    ScopeCursor,
    ScopeNode,
    resolve_config,
)

logger = logging.getLogger(__name__)


@dataclass
class DocumentPass:
    """Everything one traversal of one document produced.

    Nested documents get their own pass, with their own root, listed in
    ``nested`` in the order they were encountered.
    """

    flavor_id: str
    root: ScopeNode
    fragments: list[ResolvedFragment] = field(default_factory=list)
    declared_destinations: list[str] = field(default_factory=list)
    directive_errors: list[DirectiveSyntaxError] = field(default_factory=list)
    nested: list[DocumentPass] = field(default_factory=list)

    def walk(self) -> Iterator[DocumentPass]:
        yield self
        for inner in self.nested:
            yield from inner.walk()


class _Traversal:
    def __init__(self, flavor: DocumentFlavor, *, lenient: bool) -> None:
        self.flavor = flavor
        self.lenient = lenient
        self.cursor = ScopeCursor()
        self.result = DocumentPass(flavor_id=flavor.flavor_id, root=self.cursor.root)
        self.next_index = 0

    def run(self, text: str) -> DocumentPass:
        on_error = self.result.directive_errors.append if self.lenient else None
        for event in self.flavor.scan(text, on_directive_error=on_error):
            if isinstance(event, EnterHeading):
                self.cursor.enter_heading(event.level, event.title)
            elif isinstance(event, Directive):
                self.apply_directive(event.directive)
            elif isinstance(event, Fragment):
                self.emit(
                    event.language,
                    event.content,
                    line=event.position.line,
                    origin=FragmentOrigin.FENCE,
                )
            elif isinstance(event, EnterNestedDocument):
                nested_flavor = resolve_flavor(flavor_id=event.flavor_id)
                logger.debug(
                    "nested %s document at line %d", nested_flavor.flavor_id, event.position.line
                )
                self.result.nested.append(
                    traverse(event.content, nested_flavor, lenient=self.lenient)
                )
            else:
                never("unknown structural event", event=type(event).__name__)
        return self.result

    def apply_directive(self, directive: ParsedDirective) -> None:
        node = self.cursor.current
        node.apply(directive)
        destination = directive.properties().get(PropertyKey.DESTINATION)
        if isinstance(destination, str) and destination not in self.result.declared_destinations:
            self.result.declared_destinations.append(destination)
        for payload in directive.ordered_payloads():
            self.emit(
                directive.language,
                payload.content,
                line=payload.span.line,
                origin=FragmentOrigin.PAYLOAD,
                role=payload.role,
            )

    def emit(
        self,
        language: str | None,
        content: str,
        *,
        line: int,
        origin: FragmentOrigin,
        role: Role | None = None,
    ) -> ResolvedFragment:
        node = self.cursor.current
        config = resolve_config(node, language)
        if role is not None:
            config = replace(config, role=role)
        fragment = ResolvedFragment(
            index=self.next_index,
            language=language,
            content=content,
            node=node,
            config=config,
            line=line,
            origin=origin,
        )
        self.next_index += 1
        self.result.fragments.append(fragment)
        return fragment


def traverse(text: str, flavor: DocumentFlavor, *, lenient: bool = False) -> DocumentPass:
    """Scan ``text`` with ``flavor`` and resolve every fragment in it.

    Malformed directives raise ``DirectiveSyntaxError`` unless ``lenient`` is
    set, in which case they are recorded on the pass and skipped.
    """
    return _Traversal(flavor, lenient=lenient).run(text)
