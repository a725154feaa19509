from __future__ import annotations

from pathlib import Path

from betwixt.flavors.flavor_contract import DocumentFlavor
from betwixt.flavors.markdown import github_flavor, nested_flavor
from betwixt.invariants import require_not_none


_FLAVORS_BY_NAME: dict[str, DocumentFlavor] = {}
_FLAVORS_BY_EXTENSION: dict[str, DocumentFlavor] = {}

DEFAULT_FLAVOR_ID = "github"


def register_flavor(flavor: DocumentFlavor) -> None:
    _FLAVORS_BY_NAME[flavor.flavor_id.lower()] = flavor
    for extension in flavor.file_extensions:
        _FLAVORS_BY_EXTENSION[extension.lower()] = flavor


def flavor_for_name(flavor_id: str) -> DocumentFlavor | None:
    return _FLAVORS_BY_NAME.get(flavor_id.lower())


def flavor_for_extension(extension: str) -> DocumentFlavor | None:
    return _FLAVORS_BY_EXTENSION.get(extension.lower())


def registered_flavors() -> list[DocumentFlavor]:
    return [_FLAVORS_BY_NAME[name] for name in sorted(_FLAVORS_BY_NAME)]


def resolve_flavor(
    *,
    path: Path | None = None,
    flavor_id: str | None = None,
    default_flavor_id: str = DEFAULT_FLAVOR_ID,
) -> DocumentFlavor:
    if flavor_id is not None:
        return require_not_none(
            flavor_for_name(flavor_id), reason="unknown document flavor", flavor_id=flavor_id
        )
    if path is not None and path.suffix:
        flavor = flavor_for_extension(path.suffix)
        if flavor is not None:
            return flavor
    # Import-time registration guarantees the default flavor exists.
    return _FLAVORS_BY_NAME[default_flavor_id.lower()]


register_flavor(github_flavor())
register_flavor(nested_flavor())
