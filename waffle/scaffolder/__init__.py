"""Scaffold-and-inject engine.

Components, leaf-first:

- ``RegistryCache``        -- TTL memoisation of registry reads.
- ``LibraryRegistry``      -- loads library id -> CSS/JS asset definitions.
- ``TemplateMaterializer`` -- copies the starter template into a directory.
- ``HtmlInjector``         -- splices ``<link>``/``<script>`` tags into HTML.
- ``set_package_name``     -- names the project in its ``package.json``.

``waffle.pipeline.ScaffoldPipeline`` composes them.
"""

from waffle.scaffolder.cache import DEFAULT_TTL_MS, RegistryCache
from waffle.scaffolder.errors import (
    InjectionIOError,
    MaterializeError,
    PackageDescriptorError,
    RegistryLoadError,
    ScaffoldError,
)
from waffle.scaffolder.injector import HtmlInjector, InjectionResult
from waffle.scaffolder.materializer import TemplateMaterializer
from waffle.scaffolder.package import set_package_name
from waffle.scaffolder.registry import (
    NONE_LIBRARY,
    AssetTag,
    LibraryDefinition,
    LibraryRegistry,
    Registry,
)

__all__ = [
    "DEFAULT_TTL_MS",
    "NONE_LIBRARY",
    "AssetTag",
    "HtmlInjector",
    "InjectionIOError",
    "InjectionResult",
    "LibraryDefinition",
    "LibraryRegistry",
    "MaterializeError",
    "PackageDescriptorError",
    "Registry",
    "RegistryCache",
    "RegistryLoadError",
    "ScaffoldError",
    "TemplateMaterializer",
    "set_package_name",
]
