from __future__ import annotations

from typing import Callable, Iterator, Protocol, runtime_checkable

from betwixt.events import StructuralEvent
from betwixt.exceptions import DirectiveSyntaxError

DirectiveErrorHandler = Callable[[DirectiveSyntaxError], None]


@runtime_checkable
class DocumentFlavor(Protocol):
    flavor_id: str
    file_extensions: tuple[str, ...]
    nested_flavor_id: str | None

    def scan(
        self,
        text: str,
        *,
        on_directive_error: DirectiveErrorHandler | None = None,
    ) -> Iterator[StructuralEvent]: ...
