from __future__ import annotations

import sys
import textwrap
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
for entry in (ROOT / "src", ROOT):
    if str(entry) not in sys.path:
        sys.path.insert(0, str(entry))


import pytest

from betwixt.flavors.markdown import MarkdownFlavor, github_flavor


@pytest.fixture
def github() -> MarkdownFlavor:
    return github_flavor()


@pytest.fixture
def write_document(tmp_path: Path):
    def _write(text: str, name: str = "doc.md") -> Path:
        path = tmp_path / name
        path.write_text(textwrap.dedent(text).lstrip("\n"), encoding="utf-8")
        return path

    return _write
