"""Package descriptor customisation for a freshly materialised project."""

from __future__ import annotations

import asyncio
import json
import re
from pathlib import Path
from typing import Any

from .errors import PackageDescriptorError

PACKAGE_FILE = "package.json"


def npm_package_name(name: str) -> str:
    """Normalise *name* to something npm accepts as a package name.

    Lowercases, replaces characters outside ``a-z0-9._~-`` with hyphens and
    strips leading dots, underscores and hyphens.

    Examples::

        npm_package_name("My App") -> "my-app"
        npm_package_name("_waffle") -> "waffle"
    """
    slug = re.sub(r"[^a-z0-9._~-]+", "-", name.strip().lower())
    slug = re.sub(r"-+", "-", slug)
    return slug.lstrip("._-").rstrip("-")


async def set_package_name(
    target_dir: str | Path,
    name: str | None = None,
    *,
    package_file: str = PACKAGE_FILE,
) -> str:
    """Set the ``name`` field of the project's ``package.json``.

    Args:
        target_dir: Project root.
        name: Explicit name.  Defaults to the basename of *target_dir*.
        package_file: Descriptor path relative to *target_dir*.

    Returns:
        The name that was written.

    Raises:
        PackageDescriptorError: If the descriptor is missing, is not a JSON
            object, or cannot be written back.
    """
    root = Path(target_dir)
    path = root / package_file
    package_name = npm_package_name(name or root.resolve().name)
    if not package_name:
        raise PackageDescriptorError(f"Cannot derive a package name from {root}")

    try:
        raw = await asyncio.to_thread(path.read_text, encoding="utf-8")
        data: Any = json.loads(raw)
    except (OSError, json.JSONDecodeError) as exc:
        raise PackageDescriptorError(f"Failed to read {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise PackageDescriptorError(f"{path} must contain a JSON object")

    data["name"] = package_name
    content = json.dumps(data, indent=2, ensure_ascii=False) + "\n"
    try:
        await asyncio.to_thread(path.write_text, content, encoding="utf-8")
    except OSError as exc:
        raise PackageDescriptorError(f"Failed to write {path}: {exc}") from exc

    return package_name
