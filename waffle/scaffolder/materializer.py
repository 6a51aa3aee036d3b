"""Template materialisation: copy the starter project into a target directory.

The template is a plain directory tree (no rendering); every file is copied
byte-for-byte with its relative path preserved.  When the target already
contains files the default policy is to overwrite them silently.  Passing
``overwrite=False`` makes the copy refuse to start if any template file
would replace an existing one.
"""

from __future__ import annotations

import asyncio
import shutil
from pathlib import Path

from .errors import MaterializeError

_DEFAULT_TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "template"


class TemplateMaterializer:
    """Copies a fixed template tree into caller-chosen directories."""

    def __init__(
        self,
        template_dir: str | Path | None = None,
        *,
        overwrite: bool = True,
    ) -> None:
        if template_dir is None:
            template_dir = _DEFAULT_TEMPLATE_DIR
        self.template_dir = Path(template_dir)
        self.overwrite = overwrite

    # -- Public API --------------------------------------------------------

    async def materialize(self, target_dir: str | Path) -> Path:
        """Create *target_dir* (and parents) and copy the template into it.

        Returns:
            *target_dir* as a ``Path``.

        Raises:
            MaterializeError: If the template is missing, a file conflicts
                while ``overwrite`` is off, or any filesystem call fails.
                Files copied before the failure are left in place.
        """
        target = Path(target_dir)
        if not self.template_dir.is_dir():
            raise MaterializeError(f"Template directory not found: {self.template_dir}")

        if not self.overwrite:
            conflicts = await asyncio.to_thread(self.find_conflicts, target)
            if conflicts:
                raise MaterializeError(
                    f"Refusing to overwrite existing files in {target}: {', '.join(conflicts)}"
                )

        try:
            await asyncio.to_thread(target.mkdir, parents=True, exist_ok=True)
            await asyncio.to_thread(
                shutil.copytree, self.template_dir, target, dirs_exist_ok=True
            )
        except (OSError, shutil.Error) as exc:
            raise MaterializeError(f"Failed to create project in {target}: {exc}") from exc

        return target

    def list_files(self) -> list[str]:
        """Return every file the template produces, as sorted POSIX paths."""
        if not self.template_dir.is_dir():
            return []
        return sorted(
            p.relative_to(self.template_dir).as_posix()
            for p in self.template_dir.rglob("*")
            if p.is_file()
        )

    def find_conflicts(self, target_dir: str | Path) -> list[str]:
        """Template files that already exist under *target_dir*."""
        target = Path(target_dir)
        if not target.is_dir():
            return []
        return [rel for rel in self.list_files() if (target / rel).exists()]
