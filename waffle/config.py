"""create-waffle configuration.

Centralised, typed configuration for a scaffold run.  Settings use Pydantic
v2 models so they are validated at construction time and can be serialised
to/from JSON or read from environment variables without boiler-plate.
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, Field

from waffle.scaffolder.cache import DEFAULT_TTL_MS

PACKAGE_ROOT = Path(__file__).resolve().parent
DEFAULT_TEMPLATE_DIR = PACKAGE_ROOT / "template"
DEFAULT_REGISTRY_PATH = PACKAGE_ROOT / "libraries.json"

_TRUTHY = {"1", "true", "yes", "on"}


class Config(BaseModel):
    """Global create-waffle configuration.

    Instances are typically created once by the CLI entry point and passed
    to ``ScaffoldPipeline``.
    """

    template_dir: Path = Field(default=DEFAULT_TEMPLATE_DIR)
    registry_source: str = Field(
        default=str(DEFAULT_REGISTRY_PATH),
        description="Path or http(s) URL of the library registry JSON",
    )
    cache_ttl_ms: int = Field(
        default=DEFAULT_TTL_MS, ge=0, description="Registry cache validity window in ms"
    )
    entry_html: str = Field(default="src/index.html")
    package_file: str = Field(default="package.json")
    customize_package: bool = Field(
        default=True, description="Set the package.json name to the target directory name"
    )
    default_folder: str = Field(default="my-app")
    overwrite: bool = Field(
        default=True, description="Silently replace files that already exist in the target"
    )
    escape_attributes: bool = Field(
        default=False, description="HTML-escape src/integrity values when injecting tags"
    )

    # ------------------------------------------------------------------
    # Derived paths
    # ------------------------------------------------------------------

    def entry_html_path(self, target_dir: str | Path) -> Path:
        """The HTML entry file inside a materialised project."""
        return Path(target_dir) / self.entry_html

    def package_path(self, target_dir: str | Path) -> Path:
        """The package descriptor inside a materialised project."""
        return Path(target_dir) / self.package_file

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    def save(self, path: Path) -> Path:
        """Persist the configuration to a JSON file and return its path."""
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        return target

    @classmethod
    def load(cls, path: Path) -> "Config":
        """Load a previously-saved configuration from JSON."""
        raw = Path(path).read_text(encoding="utf-8")
        return cls.model_validate_json(raw)

    @classmethod
    def from_env(cls) -> "Config":
        """Build a ``Config`` from environment variables.

        Recognised variables (all optional):
            WAFFLE_TEMPLATE_DIR, WAFFLE_REGISTRY, WAFFLE_CACHE_TTL_MS,
            WAFFLE_ENTRY_HTML, WAFFLE_OVERWRITE, WAFFLE_ESCAPE_ATTRIBUTES.
        """
        kwargs: dict[str, object] = {}
        if os.environ.get("WAFFLE_TEMPLATE_DIR"):
            kwargs["template_dir"] = Path(os.environ["WAFFLE_TEMPLATE_DIR"])
        if os.environ.get("WAFFLE_REGISTRY"):
            kwargs["registry_source"] = os.environ["WAFFLE_REGISTRY"]
        if os.environ.get("WAFFLE_CACHE_TTL_MS"):
            kwargs["cache_ttl_ms"] = int(os.environ["WAFFLE_CACHE_TTL_MS"])
        if os.environ.get("WAFFLE_ENTRY_HTML"):
            kwargs["entry_html"] = os.environ["WAFFLE_ENTRY_HTML"]
        if os.environ.get("WAFFLE_OVERWRITE"):
            kwargs["overwrite"] = os.environ["WAFFLE_OVERWRITE"].strip().lower() in _TRUTHY
        if os.environ.get("WAFFLE_ESCAPE_ATTRIBUTES"):
            kwargs["escape_attributes"] = (
                os.environ["WAFFLE_ESCAPE_ATTRIBUTES"].strip().lower() in _TRUTHY
            )
        return cls(**kwargs)
