"""``betwixt.toml`` support.

Only the ``[tangle]`` table is read. A missing file means no defaults; an
unreadable or malformed one is logged and ignored so the command line still
works on its own.
"""

from __future__ import annotations

import logging
import tomllib
from pathlib import Path
from typing import Any, Mapping

from betwixt.tangle import TangleOptions

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_NAME = "betwixt.toml"
TANGLE_SECTION = "tangle"

TangleSettings = dict[str, Any]


def config_location(root: Path | None = None, config_path: Path | None = None) -> Path:
    if config_path is not None:
        return config_path
    return (root if root is not None else Path.cwd()) / DEFAULT_CONFIG_NAME


def tangle_defaults(
    root: Path | None = None, config_path: Path | None = None
) -> TangleSettings:
    """Return the ``[tangle]`` table of the config file, or ``{}``."""
    location = config_location(root, config_path)
    try:
        document = tomllib.loads(location.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return {}
    except (OSError, UnicodeDecodeError, tomllib.TOMLDecodeError) as exc:
        logger.warning("ignoring config %s: %s", location, exc)
        return {}
    section = document.get(TANGLE_SECTION, {})
    if not isinstance(section, dict):
        logger.warning("ignoring config %s: [%s] is not a table", location, TANGLE_SECTION)
        return {}
    return section


def _flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value) if isinstance(value, (bool, int)) else False


def _text(value: Any) -> str | None:
    if value is None:
        return None
    return str(value).strip() or None


def merge_payload(payload: Mapping[str, Any], defaults: Mapping[str, Any]) -> TangleSettings:
    """Overlay explicit values on config defaults; ``None`` means not given."""
    merged = dict(defaults)
    merged.update((key, value) for key, value in payload.items() if value is not None)
    return merged


def tangle_options(payload: Mapping[str, Any], *, root: Path | None = None) -> TangleOptions:
    """Build run options from a merged config/CLI payload.

    A relative ``output`` is taken relative to ``root`` (the directory the
    config file lives in), defaulting to the current directory.
    """
    base = root if root is not None else Path(".")
    output = _text(payload.get("output"))
    return TangleOptions(
        output_root=base if output is None else base / output,
        tag_filter=_text(payload.get("tag")),
        strict=_flag(payload.get("strict")),
        flavor_id=_text(payload.get("flavor")),
        lenient_directives=_flag(payload.get("lenient_directives")),
        dry_run=_flag(payload.get("dry_run")),
    )
