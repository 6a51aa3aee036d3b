"""Exception hierarchy for the scaffold-and-inject engine.

Each component wraps the low-level failure it hits (``OSError``,
``json.JSONDecodeError``, ``pydantic.ValidationError``...) into one of these
classes exactly once, chaining the original exception so the cause message
is never lost.  The pipeline propagates them unchanged; only the CLI turns
them into an exit status.
"""

from __future__ import annotations


class ScaffoldError(Exception):
    """Base class for every failure raised by the scaffolder."""


class RegistryLoadError(ScaffoldError):
    """The library registry is missing, unreadable, or has the wrong shape."""


class MaterializeError(ScaffoldError):
    """Copying the template tree into the target directory failed."""


class InjectionIOError(ScaffoldError):
    """The HTML entry file could not be read or written."""


class PackageDescriptorError(ScaffoldError):
    """``package.json`` in the target directory is missing or invalid."""
