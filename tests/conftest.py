"""Shared pytest fixtures for the create-waffle test suite.

Provides reusable fixtures for:
- A small on-disk template tree (text, nested and binary files)
- Sample registry data and a registry JSON file
- A ``Config`` pointing at both
- A controllable millisecond clock for cache tests
"""

from __future__ import annotations

import json
import textwrap
from pathlib import Path
from typing import Any

import pytest

from waffle.config import Config


# ---------------------------------------------------------------------------
# HTML samples
# ---------------------------------------------------------------------------

SAMPLE_HTML = textwrap.dedent(
    """\
    <!DOCTYPE html>
    <html lang="en">
    <head>
      <meta charset="UTF-8">
      <title>Test</title>
    </head>
    <body>
      <h1>Hello</h1>
    </body>
    </html>
    """
)


@pytest.fixture
def sample_html() -> str:
    """A minimal HTML document with one ``</head>`` and one ``</body>``."""
    return SAMPLE_HTML


@pytest.fixture
def html_file(tmp_path: Path, sample_html: str) -> Path:
    """``index.html`` in a temporary directory, containing ``sample_html``."""
    path = tmp_path / "index.html"
    path.write_text(sample_html, encoding="utf-8")
    return path


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


@pytest.fixture
def sample_registry_data() -> dict[str, Any]:
    """Registry payload covering every attribute combination."""
    return {
        "alpha": {
            "css": [{"src": "a.css"}],
            "js": [{"src": "a.js", "defer": True}],
        },
        "bootstrap": {
            "css": [
                {
                    "src": "https://cdn.example.com/bootstrap.min.css",
                    "integrity": "sha384-css",
                    "crossorigin": True,
                }
            ],
            "js": [
                {
                    "src": "https://cdn.example.com/bootstrap.bundle.min.js",
                    "integrity": "sha384-js",
                    "crossorigin": True,
                }
            ],
        },
        "css-only": {"css": [{"src": "one.css"}, {"src": "two.css"}]},
        "js-only": {"js": [{"src": "one.js"}, {"src": "two.js", "defer": True}]},
    }


@pytest.fixture
def registry_file(tmp_path: Path, sample_registry_data: dict[str, Any]) -> Path:
    """Registry JSON file written from ``sample_registry_data``."""
    path = tmp_path / "libraries.json"
    path.write_text(json.dumps(sample_registry_data, indent=2), encoding="utf-8")
    return path


# ---------------------------------------------------------------------------
# Template tree
# ---------------------------------------------------------------------------

TEMPLATE_FILES: dict[str, bytes] = {
    "package.json": b'{\n  "name": "waffle",\n  "private": true,\n  "version": "0.0.0"\n}\n',
    "src/index.html": SAMPLE_HTML.encode("utf-8"),
    "src/main.js": b"console.log('waffle');\n",
    "src/assets/style.css": b"body { margin: 0; }\n",
    "public/logo.bin": bytes(range(256)),
    ".gitignore": b"node_modules\n",
}


@pytest.fixture
def template_files() -> dict[str, bytes]:
    """Relative path -> exact bytes of every file in ``template_dir``."""
    return dict(TEMPLATE_FILES)


@pytest.fixture
def template_dir(tmp_path: Path, template_files: dict[str, bytes]) -> Path:
    """A template tree on disk built from ``template_files``."""
    root = tmp_path / "template"
    for rel, content in template_files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
    return root


@pytest.fixture
def config(template_dir: Path, registry_file: Path) -> Config:
    """Config pointing at the temporary template and registry."""
    return Config(template_dir=template_dir, registry_source=str(registry_file))


# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------


class FakeClock:
    """Millisecond clock advanced by hand."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(start=1_000.0)


def _read_tree(root: Path) -> dict[str, bytes]:
    return {
        p.relative_to(root).as_posix(): p.read_bytes()
        for p in sorted(root.rglob("*"))
        if p.is_file()
    }


@pytest.fixture
def read_tree():
    """Callable returning relative POSIX path -> bytes for every file under a root."""
    return _read_tree
