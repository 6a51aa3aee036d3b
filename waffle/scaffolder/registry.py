"""Library registry: the injectable CSS/JS add-ons a project can start with.

The registry is a JSON object mapping a library id to its asset lists::

    {
      "bootstrap": {
        "css": [{"src": "https://.../bootstrap.min.css", "crossorigin": true}],
        "js": [{"src": "https://.../bootstrap.bundle.min.js", "defer": true}]
      }
    }

It is read once per run, through a ``RegistryCache``, from either a file on
disk or an ``http(s)://`` URL.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Iterator, Mapping
from pathlib import Path
from types import MappingProxyType
from typing import Any

import httpx
from pydantic import BaseModel, Field, ValidationError

from .cache import RegistryCache
from .errors import RegistryLoadError

NONE_LIBRARY = "none"
REGISTRY_CACHE_KEY = "libraries"

_DEFAULT_REGISTRY_PATH = Path(__file__).resolve().parent.parent / "libraries.json"


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class AssetTag(BaseModel):
    """One stylesheet or script reference."""

    src: str = Field(..., description="Resource URL, inserted as-is")
    integrity: str | None = Field(default=None, description="Subresource-integrity hash")
    crossorigin: bool = Field(default=False, description='Emit crossorigin="anonymous"')
    defer: bool = Field(default=False, description="Emit a bare defer attribute (scripts only)")


class LibraryDefinition(BaseModel):
    """A named bundle of stylesheets and scripts."""

    id: str
    css: list[AssetTag] = Field(default_factory=list)
    js: list[AssetTag] = Field(default_factory=list)


class Registry:
    """Read-only mapping of library id -> ``LibraryDefinition``.

    The sentinel id ``"none"`` is never stored; looking it up returns
    ``None`` just like an unknown id.
    """

    def __init__(self, libraries: Mapping[str, LibraryDefinition]) -> None:
        self._libraries = MappingProxyType(dict(libraries))

    def get(self, library_id: str | None) -> LibraryDefinition | None:
        if not library_id or library_id == NONE_LIBRARY:
            return None
        return self._libraries.get(library_id)

    def ids(self) -> list[str]:
        """Library ids in alphabetical order."""
        return sorted(self._libraries)

    def choices(self) -> list[str]:
        """Selectable ids as offered to the user: sorted ids, then ``"none"``."""
        return [*self.ids(), NONE_LIBRARY]

    def __contains__(self, library_id: object) -> bool:
        return library_id in self._libraries

    def __iter__(self) -> Iterator[str]:
        return iter(self._libraries)

    def __len__(self) -> int:
        return len(self._libraries)

    def __repr__(self) -> str:
        return f"Registry({self.ids()!r})"


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def parse_registry(raw: str) -> Registry:
    """Parse registry JSON text into a ``Registry``.

    Raises:
        RegistryLoadError: If *raw* is not JSON, is not an object of objects,
            or an asset entry has no ``src``.
    """
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise RegistryLoadError(f"Failed to load libraries: {exc}") from exc

    if not isinstance(data, dict):
        raise RegistryLoadError(
            "Failed to load libraries: expected a JSON object keyed by library id, "
            f"got {type(data).__name__}"
        )

    libraries: dict[str, LibraryDefinition] = {}
    for library_id, definition in data.items():
        if not isinstance(definition, dict):
            raise RegistryLoadError(
                f"Failed to load libraries: entry '{library_id}' must be an object, "
                f"got {type(definition).__name__}"
            )
        try:
            libraries[library_id] = LibraryDefinition.model_validate(
                {**definition, "id": library_id}
            )
        except ValidationError as exc:
            raise RegistryLoadError(
                f"Failed to load libraries: invalid entry '{library_id}': {exc}"
            ) from exc

    return Registry(libraries)


def _is_url(source: str) -> bool:
    return source.startswith(("http://", "https://"))


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------


class LibraryRegistry:
    """Loads the registry from *source* through *cache*.

    Args:
        source: Path to a JSON file or an ``http(s)://`` URL.  Defaults to
            the ``libraries.json`` shipped with the package.
        cache: Cache the parsed registry is stored in.  A private cache is
            created when omitted.
        ttl: Optional per-key TTL override in milliseconds.
        transport: Optional ``httpx`` transport, used for URL sources.
    """

    def __init__(
        self,
        source: str | Path | None = None,
        cache: RegistryCache | None = None,
        *,
        ttl: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.source = str(source) if source is not None else str(_DEFAULT_REGISTRY_PATH)
        self.cache = cache if cache is not None else RegistryCache()
        self.ttl = ttl
        self._transport = transport

    async def load(self) -> Registry:
        """Return the registry, reading the source only on a cache miss."""
        return await self.cache.get(REGISTRY_CACHE_KEY, self._fetch, self.ttl)

    async def _fetch(self) -> Registry:
        raw = await self._read_source()
        return parse_registry(raw)

    async def _read_source(self) -> str:
        if _is_url(self.source):
            return await self._read_url()
        try:
            return await asyncio.to_thread(Path(self.source).read_text, encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise RegistryLoadError(f"Failed to load libraries: {exc}") from exc

    async def _read_url(self) -> str:
        kwargs: dict[str, Any] = {"timeout": httpx.Timeout(10.0, connect=5.0)}
        if self._transport is not None:
            kwargs["transport"] = self._transport
        try:
            async with httpx.AsyncClient(**kwargs) as client:
                response = await client.get(self.source)
                response.raise_for_status()
                return response.text
        except httpx.HTTPError as exc:
            raise RegistryLoadError(f"Failed to load libraries: {exc}") from exc
