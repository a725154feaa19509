from betwixt.flavors.flavor_contract import DirectiveErrorHandler, DocumentFlavor
from .markdown import MarkdownFlavor, github_flavor, nested_flavor


def resolve_flavor(*, path=None, flavor_id=None, default_flavor_id="github"):
    from betwixt.flavors.registry import resolve_flavor as _resolve_flavor

    return _resolve_flavor(
        path=path,
        flavor_id=flavor_id,
        default_flavor_id=default_flavor_id,
    )


__all__ = [
    "DirectiveErrorHandler",
    "DocumentFlavor",
    "MarkdownFlavor",
    "github_flavor",
    "nested_flavor",
    "resolve_flavor",
]
