"""Command-line entry point for ``create-waffle``.

Usage::

    create-waffle                       # interactive
    create-waffle my-app --library bootstrap
    create-waffle --here --library none
    python -m waffle --list-libraries
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys
from pathlib import Path

from rich.prompt import Confirm, Prompt

from waffle.config import Config
from waffle.pipeline import ScaffoldPipeline
from waffle.scaffolder.cache import RegistryCache
from waffle.scaffolder.errors import ScaffoldError
from waffle.scaffolder.registry import NONE_LIBRARY, LibraryRegistry, Registry
from waffle.utils import (
    console,
    is_valid_folder_name,
    print_error,
    print_heading,
    print_success,
    print_warning,
    run_command,
)

BANNER = r"""
                        .d888  .d888 888
                       d88P"  d88P"  888
                       888    888    888
888  888  888  8888b.  888888 888888 888  .d88b.
888  888  888     "88b 888    888    888 d8P  Y8b
888  888  888 .d888888 888    888    888 88888888
Y88b 888 d88P 888  888 888    888    888 Y8b.
 "Y8888888P"  "Y888888 888    888    888  "Y8888
"""

INSTALL_COMMAND = "npm install"
START_COMMAND = "npm run dev"
UPGRADE_COMMAND = ["npx", "npm-check-updates", "-u"]


# ---------------------------------------------------------------------------
# Prompting
# ---------------------------------------------------------------------------


def prompt_target_dir(config: Config, cwd: Path) -> Path:
    """Ask whether to scaffold into *cwd* or a new named folder."""
    if Confirm.ask("Do you want to use the current directory?", default=False, console=console):
        return cwd

    while True:
        name = Prompt.ask("Project name", default=config.default_folder, console=console)
        if is_valid_folder_name(name):
            return cwd / name
        print_error("Please enter a valid folder name.")


def prompt_library(registry: Registry) -> str:
    """Ask which library to add; ``"none"`` is the default."""
    return Prompt.ask(
        "What would you like to add to your project?",
        choices=registry.choices(),
        default=NONE_LIBRARY,
        console=console,
    )


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------


def next_steps(project_path: Path, cwd: Path) -> list[str]:
    """Commands the user should run next.

    ``cd`` is only suggested when the project is not the current directory.
    """
    steps: list[str] = []
    if project_path.resolve() != cwd.resolve():
        steps.append(f"cd {os.path.relpath(project_path.resolve(), cwd.resolve())}")
    steps.extend([INSTALL_COMMAND, START_COMMAND])
    return steps


def show_success(project_path: Path, created_files: list[str], cwd: Path) -> None:
    print_success(f"Project created: {project_path}")
    print_heading("Created files:")
    for path in created_files:
        console.print(f"- [yellow]{path}[/yellow]", highlight=False)
    console.print()

    console.print("[bold blue]Next steps:[/bold blue]")
    for step in next_steps(project_path, cwd):
        console.print(f"  {step}", highlight=False)
    console.print()


# ---------------------------------------------------------------------------
# Main flow
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="create-waffle",
        description="Create a waffle starter project, optionally with a CSS/JS library",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  create-waffle my-app --library bootstrap\n"
            "  create-waffle --here --library none\n"
            "  create-waffle --list-libraries\n"
        ),
    )
    parser.add_argument("directory", nargs="?", help="Project folder to create")
    parser.add_argument(
        "--here", action="store_true", help="Scaffold into the current directory"
    )
    parser.add_argument(
        "--library", "-l", default=None, help="Library id to inject (or 'none')"
    )
    parser.add_argument(
        "--list-libraries", action="store_true", help="List available libraries and exit"
    )
    parser.add_argument(
        "--registry", default=None, help="Registry JSON path or URL (overrides WAFFLE_REGISTRY)"
    )
    parser.add_argument(
        "--no-overwrite",
        action="store_true",
        help="Fail instead of replacing files that already exist",
    )
    parser.add_argument(
        "--escape", action="store_true", help="HTML-escape attribute values in injected tags"
    )
    parser.add_argument(
        "--upgrade-deps",
        action="store_true",
        help="Run 'npx npm-check-updates -u' in the new project",
    )
    return parser


def config_from_args(args: argparse.Namespace) -> Config:
    config = Config.from_env()
    updates: dict[str, object] = {}
    if args.registry:
        updates["registry_source"] = args.registry
    if args.no_overwrite:
        updates["overwrite"] = False
    if args.escape:
        updates["escape_attributes"] = True
    return config.model_copy(update=updates) if updates else config


async def create_waffle(args: argparse.Namespace, cwd: Path) -> Path:
    """Resolve the inputs (prompting for any that are missing) and scaffold."""
    config = config_from_args(args)
    cache = RegistryCache(default_ttl=config.cache_ttl_ms)
    registry = await LibraryRegistry(config.registry_source, cache).load()

    if args.list_libraries:
        for library_id in registry.choices():
            console.print(library_id, highlight=False)
        return cwd

    console.print(BANNER, style="white", highlight=False)
    console.print("> create-waffle\n", highlight=False)

    if args.here:
        target_dir = cwd
    elif args.directory:
        if not is_valid_folder_name(Path(args.directory).name):
            raise ValueError(f"Invalid folder name: {args.directory}")
        target_dir = cwd / args.directory
    else:
        target_dir = await asyncio.to_thread(prompt_target_dir, config, cwd)

    library_id = args.library or await asyncio.to_thread(prompt_library, registry)
    if library_id not in registry.choices():
        raise ValueError(
            f"Unknown library: {library_id} (choose from {', '.join(registry.choices())})"
        )

    # The pipeline reuses the registry already in the cache and clears it.
    pipeline = ScaffoldPipeline(config, cache=cache)
    project_path = await pipeline.run(target_dir, library_id)

    if args.upgrade_deps:
        returncode, _, stderr = await run_command(UPGRADE_COMMAND, cwd=project_path, timeout=300)
        if returncode != 0:
            print_warning(f"Dependency upgrade failed: {stderr}")

    show_success(project_path, pipeline.materializer.list_files(), cwd)
    return project_path


def main(argv: list[str] | None = None) -> int:
    """CLI entry point for ``create-waffle`` and ``python -m waffle``."""
    args = build_parser().parse_args(argv)
    try:
        asyncio.run(create_waffle(args, Path.cwd()))
    except (ScaffoldError, ValueError) as exc:
        print_error(str(exc))
        return 1
    except KeyboardInterrupt:
        print_warning("Aborted.")
        return 1
    except Exception as exc:  # noqa: BLE001
        print_error(f"Fatal error: {exc}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
