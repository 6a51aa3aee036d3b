"""create-waffle scaffold pipeline.

Runs the four scaffold phases in order:

Phase 1: MATERIALIZE   -- Copy the template tree into the target directory.
Phase 2: CUSTOMIZE     -- Name the project in its ``package.json``.
Phase 3: LOAD REGISTRY -- Read the library registry (through the cache).
Phase 4: INJECT        -- Add the selected library's tags to ``src/index.html``.

Each phase fully completes before the next one starts.  The first failure
stops the run; nothing already written to disk is rolled back.  The
registry cache is cleared exactly once when the run ends, whatever the
outcome.

Usage::

    from waffle.pipeline import run_scaffold

    project = await run_scaffold("./my-app", "bootstrap")
"""

from __future__ import annotations

import asyncio
import time
import traceback
from pathlib import Path
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field

from waffle.config import Config
from waffle.scaffolder.cache import RegistryCache
from waffle.scaffolder.errors import ScaffoldError
from waffle.scaffolder.injector import HtmlInjector, InjectionResult
from waffle.scaffolder.materializer import TemplateMaterializer
from waffle.scaffolder.package import set_package_name
from waffle.scaffolder.registry import NONE_LIBRARY, LibraryRegistry, Registry
from waffle.utils import (
    PHASE_NAMES,
    console,
    format_duration,
    print_phase_header,
    print_success,
    print_summary_table,
    print_warning,
)

# ---------------------------------------------------------------------------
# Phase results
# ---------------------------------------------------------------------------


class PhaseResult(BaseModel):
    """Outcome of one pipeline phase."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    phase: int
    name: str
    success: bool
    duration: float = 0.0
    error: str | None = None
    exception: BaseException | None = Field(default=None, exclude=True)


class ScaffoldReport(BaseModel):
    """Everything a scaffold run did, phase by phase."""

    target_dir: Path
    library_id: str = NONE_LIBRARY
    phases: list[PhaseResult] = Field(default_factory=list)
    success: bool = False
    package_name: str | None = None
    injection: InjectionResult | None = None

    @property
    def failed_phase(self) -> PhaseResult | None:
        """The phase that stopped the run, if any."""
        for result in self.phases:
            if not result.success:
                return result
        return None

    @property
    def error(self) -> BaseException | None:
        """The exception raised by the failed phase, unchanged."""
        failed = self.failed_phase
        return failed.exception if failed is not None else None

    @property
    def completed_phases(self) -> list[int]:
        return [r.phase for r in self.phases if r.success]


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


class ScaffoldPipeline:
    """Materialise a project and inject the chosen library into it.

    Attributes:
        config: Run configuration.
        cache: Registry cache owned by this pipeline.  Pass a shared cache
            to reuse a registry that was already loaded (e.g. by the CLI
            while prompting); it is cleared when the run ends.
        quiet: Suppress per-phase console output.
    """

    _PHASE_METHODS: dict[int, str] = {
        1: "phase1_materialize",
        2: "phase2_customize",
        3: "phase3_load_registry",
        4: "phase4_inject",
    }

    def __init__(
        self,
        config: Config | None = None,
        *,
        cache: RegistryCache | None = None,
        quiet: bool = False,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config or Config()
        self.cache = cache if cache is not None else RegistryCache(
            default_ttl=self.config.cache_ttl_ms
        )
        self.quiet = quiet
        self.materializer = TemplateMaterializer(
            self.config.template_dir, overwrite=self.config.overwrite
        )
        self.registry_loader = LibraryRegistry(
            self.config.registry_source, self.cache, transport=transport
        )
        self.injector = HtmlInjector(escape_attributes=self.config.escape_attributes)
        self._registry: Registry | None = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def run(self, target_dir: str | Path, library_id: str = NONE_LIBRARY) -> Path:
        """Scaffold *target_dir* and return it.

        Raises:
            The exception of the failed phase, unchanged.
        """
        report = await self.execute(target_dir, library_id)
        if report.error is not None:
            raise report.error
        return report.target_dir

    async def execute(
        self, target_dir: str | Path, library_id: str = NONE_LIBRARY
    ) -> ScaffoldReport:
        """Run every phase and report the outcome instead of raising.

        Stops at the first failed phase.  The returned report records which
        phase failed and the exception it raised.
        """
        report = ScaffoldReport(target_dir=Path(target_dir), library_id=library_id or NONE_LIBRARY)
        run_start = time.monotonic()
        self._registry = None

        try:
            for phase_num in sorted(self._PHASE_METHODS):
                phase_name = PHASE_NAMES.get(phase_num, "UNKNOWN")
                if not self.quiet:
                    print_phase_header(phase_num, phase_name)

                phase_start = time.monotonic()
                try:
                    method = getattr(self, self._PHASE_METHODS[phase_num])
                    await method(report)
                except Exception as exc:
                    elapsed = time.monotonic() - phase_start
                    report.phases.append(
                        PhaseResult(
                            phase=phase_num,
                            name=phase_name,
                            success=False,
                            duration=elapsed,
                            error=str(exc),
                            exception=exc,
                        )
                    )
                    if not self.quiet:
                        console.print(
                            f"  [red]{phase_name} failed after {format_duration(elapsed)}[/red]"
                        )
                        if not _is_expected(exc):
                            console.print(traceback.format_exc(), style="dim", markup=False)
                    # Later phases depend on earlier ones.
                    break

                elapsed = time.monotonic() - phase_start
                report.phases.append(
                    PhaseResult(phase=phase_num, name=phase_name, success=True, duration=elapsed)
                )
        finally:
            self.cache.clear()
            self._registry = None

        report.success = report.failed_phase is None
        if report.success and not self.quiet:
            print_summary_table(
                {
                    "Project": str(report.target_dir),
                    "Package name": report.package_name or "-",
                    "Library": report.library_id,
                    "Phases": ", ".join(r.name for r in report.phases),
                },
                title="Scaffold Summary",
            )
            print_success(
                f"Scaffolded {report.target_dir} in {format_duration(time.monotonic() - run_start)}"
            )
        return report

    # ------------------------------------------------------------------
    # Phase 1: MATERIALIZE
    # ------------------------------------------------------------------

    async def phase1_materialize(self, report: ScaffoldReport) -> None:
        """Copy the template tree into the target directory."""
        target = await self.materializer.materialize(report.target_dir)
        self._say(f"  Copied template into [bold]{target}[/bold]")

    # ------------------------------------------------------------------
    # Phase 2: CUSTOMIZE
    # ------------------------------------------------------------------

    async def phase2_customize(self, report: ScaffoldReport) -> None:
        """Name the project after its directory in ``package.json``."""
        if not self.config.customize_package:
            self._say("  [dim]Package descriptor left unchanged[/dim]")
            return
        report.package_name = await set_package_name(
            report.target_dir, package_file=self.config.package_file
        )
        self._say(f"  Package name set to [bold]{report.package_name}[/bold]")

    # ------------------------------------------------------------------
    # Phase 3: LOAD REGISTRY
    # ------------------------------------------------------------------

    async def phase3_load_registry(self, report: ScaffoldReport) -> None:
        """Load the library registry through the cache."""
        self._registry = await self.registry_loader.load()
        self._say(f"  {len(self._registry)} libraries available")

    # ------------------------------------------------------------------
    # Phase 4: INJECT
    # ------------------------------------------------------------------

    async def phase4_inject(self, report: ScaffoldReport) -> None:
        """Inject the selected library's tags into the HTML entry file."""
        library = self._registry.get(report.library_id)
        if library is None and report.library_id != NONE_LIBRARY:
            if not self.quiet:
                print_warning(f"Unknown library '{report.library_id}'; nothing injected")

        html_path = self.config.entry_html_path(report.target_dir)
        report.injection = await self.injector.inject(html_path, library)

        if report.injection.skipped:
            self._say("  [dim]No library selected[/dim]")
            return
        if not self.quiet:
            if not report.injection.css_injected:
                print_warning(f"No </head> in {html_path}; stylesheets not added")
            if not report.injection.js_injected:
                print_warning(f"No </body> in {html_path}; scripts not added")
        self._say(f"  Injected [bold]{report.library_id}[/bold] into {html_path}")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _say(self, message: str) -> None:
        if not self.quiet:
            console.print(message)


def _is_expected(exc: BaseException) -> bool:
    return isinstance(exc, ScaffoldError)


# ---------------------------------------------------------------------------
# Caller-facing entry points
# ---------------------------------------------------------------------------


async def run_scaffold(
    target_dir: str | Path,
    library_id: str = NONE_LIBRARY,
    config: Config | None = None,
    **kwargs: Any,
) -> Path:
    """Scaffold *target_dir* with *library_id* and return the directory.

    Extra keyword arguments are passed to ``ScaffoldPipeline``.
    """
    pipeline = ScaffoldPipeline(config, **kwargs)
    return await pipeline.run(target_dir, library_id)


def run_scaffold_sync(
    target_dir: str | Path,
    library_id: str = NONE_LIBRARY,
    config: Config | None = None,
    **kwargs: Any,
) -> Path:
    """Blocking wrapper around :func:`run_scaffold`."""
    return asyncio.run(run_scaffold(target_dir, library_id, config, **kwargs))
