"""create-waffle -- scaffold a starter web project and inject a CSS/JS library.

Quick usage::

    from waffle import run_scaffold

    project_path = await run_scaffold("./my-app", "bootstrap")
"""

from waffle.config import Config
from waffle.pipeline import ScaffoldPipeline, ScaffoldReport, run_scaffold, run_scaffold_sync

__version__ = "1.0.0"

__all__ = [
    "Config",
    "ScaffoldPipeline",
    "ScaffoldReport",
    "run_scaffold",
    "run_scaffold_sync",
]
