"""HTML injection of a library's ``<link>`` and ``<script>`` tags.

Tag lines are rendered from small Jinja2 templates so the attribute order is
fixed in one place::

    <link rel="stylesheet" href="…"[ integrity="…"][ crossorigin="anonymous"]>
    <script src="…"[ defer][ integrity="…"][ crossorigin="anonymous"]></script>

The stylesheet block is spliced in front of the first ``</head>`` and the
script block in front of the first ``</body>``.  This is a literal text
splice, not an HTML parse: a marker that appears inside a comment or a
string literal earlier in the document will be matched first.  A missing
marker means that block is skipped without error; ``InjectionResult``
reports which blocks went in.

Attribute values are inserted verbatim by default.  With
``escape_attributes=True`` Jinja2 autoescaping turns ``& < > " '`` into
entities, which changes the output for such values.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from pathlib import Path

from jinja2 import Environment
from pydantic import BaseModel

from .errors import InjectionIOError
from .registry import AssetTag, LibraryDefinition

HEAD_MARKER = "</head>"
BODY_MARKER = "</body>"

_CSS_TAG_TEMPLATE = (
    '  <link rel="stylesheet" href="{{ tag.src }}"'
    '{% if tag.integrity %} integrity="{{ tag.integrity }}"{% endif %}'
    '{% if tag.crossorigin %} crossorigin="anonymous"{% endif %}>'
)

_JS_TAG_TEMPLATE = (
    '  <script src="{{ tag.src }}"'
    "{% if tag.defer %} defer{% endif %}"
    '{% if tag.integrity %} integrity="{{ tag.integrity }}"{% endif %}'
    '{% if tag.crossorigin %} crossorigin="anonymous"{% endif %}></script>'
)


class InjectionResult(BaseModel):
    """What ``HtmlInjector.inject`` did to one file."""

    html_path: Path
    skipped: bool = False
    css_injected: bool = False
    js_injected: bool = False


# ---------------------------------------------------------------------------
# Tag rendering
# ---------------------------------------------------------------------------


class TagRenderer:
    """Renders asset tags through Jinja2.

    Args:
        escape_attributes: Enable Jinja2 autoescaping of ``src`` and
            ``integrity`` values.
    """

    def __init__(self, escape_attributes: bool = False) -> None:
        self.escape_attributes = escape_attributes
        self.env = Environment(autoescape=escape_attributes, keep_trailing_newline=True)
        self._css = self.env.from_string(_CSS_TAG_TEMPLATE)
        self._js = self.env.from_string(_JS_TAG_TEMPLATE)

    def css_tags(self, tags: Sequence[AssetTag]) -> str:
        """One ``<link>`` line per tag, in order, joined by newlines."""
        return "\n".join(self._css.render(tag=tag) for tag in tags)

    def js_tags(self, tags: Sequence[AssetTag]) -> str:
        """One ``<script>`` line per tag, in order, joined by newlines."""
        return "\n".join(self._js.render(tag=tag) for tag in tags)


_VERBATIM = TagRenderer()


def render_css_tags(tags: Sequence[AssetTag]) -> str:
    """Render stylesheet tags with values inserted verbatim."""
    return _VERBATIM.css_tags(tags)


def render_js_tags(tags: Sequence[AssetTag]) -> str:
    """Render script tags with values inserted verbatim."""
    return _VERBATIM.js_tags(tags)


def splice_markup(html: str, css_block: str, js_block: str) -> tuple[str, bool, bool]:
    """Insert the blocks before the first ``</head>`` and ``</body>``.

    Returns:
        ``(new_html, head_found, body_found)``.
    """
    head_found = HEAD_MARKER in html
    if head_found:
        html = html.replace(HEAD_MARKER, f"{css_block}\n{HEAD_MARKER}", 1)

    body_found = BODY_MARKER in html
    if body_found:
        html = html.replace(BODY_MARKER, f"{js_block}\n{BODY_MARKER}", 1)

    return html, head_found, body_found


# ---------------------------------------------------------------------------
# Injector
# ---------------------------------------------------------------------------


class HtmlInjector:
    """Rewrites an HTML entry file in place to reference a library's assets."""

    def __init__(self, escape_attributes: bool = False) -> None:
        self.renderer = TagRenderer(escape_attributes=escape_attributes)

    async def inject(
        self,
        html_path: str | Path,
        library: LibraryDefinition | str | None,
    ) -> InjectionResult:
        """Inject *library*'s tags into the file at *html_path*.

        Nothing is read or written when *library* is ``None`` or a bare id
        such as the ``"none"`` sentinel.  Calling this twice with the same
        library inserts the blocks twice.

        Raises:
            InjectionIOError: If the file cannot be read or written.
        """
        path = Path(html_path)
        if library is None or isinstance(library, str):
            return InjectionResult(html_path=path, skipped=True)

        try:
            content = await asyncio.to_thread(_read_text, path)
        except (OSError, UnicodeDecodeError) as exc:
            raise InjectionIOError(f"Failed to read {path}: {exc}") from exc

        updated, head_found, body_found = splice_markup(
            content,
            self.renderer.css_tags(library.css),
            self.renderer.js_tags(library.js),
        )

        try:
            await asyncio.to_thread(_write_text, path, updated)
        except OSError as exc:
            raise InjectionIOError(f"Failed to write {path}: {exc}") from exc

        return InjectionResult(
            html_path=path,
            css_injected=head_found,
            js_injected=body_found,
        )


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

# newline="" keeps the file's own line endings on both read and write.


def _read_text(path: Path) -> str:
    with open(path, encoding="utf-8", newline="") as fh:
        return fh.read()


def _write_text(path: Path, content: str) -> None:
    with open(path, "w", encoding="utf-8", newline="") as fh:
        fh.write(content)
