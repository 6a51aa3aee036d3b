"""Unit tests for the scaffold pipeline (waffle.pipeline).

Tests cover:
- ScaffoldPipeline.__init__ wiring from Config
- Phase order and per-phase results in ScaffoldReport
- Each phase in isolation (materialize, customize, load registry, inject)
- Failure handling: stop at the first failed phase, no rollback
- The registry cache is cleared exactly once per run
- run() re-raises the failed phase's exception unchanged
- run_scaffold / run_scaffold_sync entry points
"""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from waffle.config import Config
from waffle.pipeline import (
    PhaseResult,
    ScaffoldPipeline,
    ScaffoldReport,
    run_scaffold,
    run_scaffold_sync,
)
from waffle.scaffolder.cache import RegistryCache
from waffle.scaffolder.errors import (
    InjectionIOError,
    MaterializeError,
    RegistryLoadError,
)
from waffle.scaffolder.registry import REGISTRY_CACHE_KEY


CSS_LINE = '  <link rel="stylesheet" href="a.css">'
JS_LINE = '  <script src="a.js" defer></script>'


class SpyCache(RegistryCache):
    """RegistryCache that counts clear() calls."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.clear_calls = 0

    def clear(self) -> None:
        self.clear_calls += 1
        super().clear()


@pytest.fixture
def target(tmp_path: Path) -> Path:
    return tmp_path / "my-app"


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


class TestPipelineInit:
    @pytest.mark.unit
    def test_defaults(self):
        pipeline = ScaffoldPipeline()
        assert isinstance(pipeline.config, Config)
        assert isinstance(pipeline.cache, RegistryCache)
        assert pipeline.quiet is False

    @pytest.mark.unit
    def test_wired_from_config(self, config: Config):
        config = config.model_copy(
            update={"overwrite": False, "escape_attributes": True, "cache_ttl_ms": 42}
        )
        pipeline = ScaffoldPipeline(config)

        assert pipeline.materializer.template_dir == config.template_dir
        assert pipeline.materializer.overwrite is False
        assert pipeline.registry_loader.source == config.registry_source
        assert pipeline.registry_loader.cache is pipeline.cache
        assert pipeline.injector.renderer.escape_attributes is True
        assert pipeline.cache.default_ttl == 42

    @pytest.mark.unit
    def test_shared_cache_used(self, config: Config):
        cache = RegistryCache()
        pipeline = ScaffoldPipeline(config, cache=cache)
        assert pipeline.cache is cache
        assert pipeline.registry_loader.cache is cache


# ---------------------------------------------------------------------------
# Successful runs
# ---------------------------------------------------------------------------


class TestExecuteSuccess:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_all_phases_in_order(self, config: Config, target: Path):
        report = await ScaffoldPipeline(config, quiet=True).execute(target, "alpha")

        assert report.success
        assert report.failed_phase is None
        assert report.error is None
        assert report.completed_phases == [1, 2, 3, 4]
        assert [r.name for r in report.phases] == [
            "MATERIALIZE",
            "CUSTOMIZE",
            "LOAD REGISTRY",
            "INJECT",
        ]
        assert all(r.duration >= 0 for r in report.phases)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_library_injected(self, config: Config, target: Path):
        report = await ScaffoldPipeline(config, quiet=True).execute(target, "alpha")

        html = (target / "src" / "index.html").read_text(encoding="utf-8")
        assert f"{CSS_LINE}\n</head>" in html
        assert f"{JS_LINE}\n</body>" in html
        assert report.injection.css_injected
        assert report.injection.js_injected

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_package_named_after_directory(self, config: Config, target: Path):
        report = await ScaffoldPipeline(config, quiet=True).execute(target, "none")

        data = json.loads((target / "package.json").read_text(encoding="utf-8"))
        assert report.package_name == "my-app"
        assert data["name"] == "my-app"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_customize_disabled(
        self, config: Config, target: Path, template_files: dict[str, bytes]
    ):
        config = config.model_copy(update={"customize_package": False})
        report = await ScaffoldPipeline(config, quiet=True).execute(target, "none")

        assert report.success
        assert report.package_name is None
        assert (target / "package.json").read_bytes() == template_files["package.json"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    @pytest.mark.parametrize("library_id", ["none", "", "does-not-exist"])
    async def test_no_library_leaves_html_untouched(
        self, config: Config, target: Path, template_files: dict[str, bytes], library_id: str
    ):
        report = await ScaffoldPipeline(config, quiet=True).execute(target, library_id)

        assert report.success
        assert report.injection.skipped
        assert (target / "src" / "index.html").read_bytes() == template_files["src/index.html"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_markers_tolerated(self, config: Config, target: Path):
        html = config.template_dir / "src" / "index.html"
        html.write_text("<html><head></head></html>", encoding="utf-8")

        report = await ScaffoldPipeline(config, quiet=True).execute(target, "alpha")

        assert report.success
        assert report.injection.css_injected
        assert not report.injection.js_injected

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_console_output(self, config: Config, target: Path):
        from waffle.utils import console

        with console.capture() as capture:
            await ScaffoldPipeline(config).execute(target, "does-not-exist")
        output = capture.get()

        assert "1. MATERIALIZE" in output
        assert "4. INJECT" in output
        assert "Unknown library 'does-not-exist'" in output

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_report_serialises_without_exception(self, config: Config, target: Path):
        report = await ScaffoldPipeline(config, quiet=True).execute(target, "alpha")
        data = json.loads(report.model_dump_json())
        assert data["library_id"] == "alpha"
        assert "exception" not in data["phases"][0]


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------


class TestExecuteFailure:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_template_stops_at_phase_one(self, config: Config, target: Path):
        config = config.model_copy(update={"template_dir": target.parent / "missing"})
        report = await ScaffoldPipeline(config, quiet=True).execute(target, "alpha")

        assert not report.success
        assert report.failed_phase.phase == 1
        assert isinstance(report.error, MaterializeError)
        assert len(report.phases) == 1
        assert not target.exists()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_invalid_registry_keeps_materialized_files(
        self, config: Config, target: Path, registry_file: Path
    ):
        registry_file.write_text("{not json", encoding="utf-8")
        report = await ScaffoldPipeline(config, quiet=True).execute(target, "alpha")

        assert report.failed_phase.phase == 3
        assert report.failed_phase.name == "LOAD REGISTRY"
        assert isinstance(report.error, RegistryLoadError)
        assert report.failed_phase.error.startswith("Failed to load libraries: ")
        assert report.completed_phases == [1, 2]
        assert (target / "package.json").is_file()
        assert (target / "src" / "index.html").is_file()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_entry_html(self, config: Config, target: Path):
        config = config.model_copy(update={"entry_html": "src/nope.html"})
        report = await ScaffoldPipeline(config, quiet=True).execute(target, "alpha")

        assert report.failed_phase.phase == 4
        assert isinstance(report.error, InjectionIOError)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unexpected_error_captured(self, config: Config, target: Path):
        pipeline = ScaffoldPipeline(config, quiet=True)
        with patch.object(
            pipeline, "phase2_customize", AsyncMock(side_effect=RuntimeError("boom"))
        ):
            report = await pipeline.execute(target, "alpha")

        assert report.failed_phase.phase == 2
        assert isinstance(report.error, RuntimeError)
        assert report.completed_phases == [1]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unexpected_error_prints_traceback(self, config: Config, target: Path):
        from waffle.utils import console

        pipeline = ScaffoldPipeline(config)
        with patch.object(
            pipeline, "phase2_customize", AsyncMock(side_effect=RuntimeError("boom"))
        ), console.capture() as capture:
            await pipeline.execute(target, "alpha")

        output = capture.get()
        assert "CUSTOMIZE failed" in output
        assert "Traceback" in output


# ---------------------------------------------------------------------------
# Cache lifecycle
# ---------------------------------------------------------------------------


class TestCacheLifecycle:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_cleared_once_on_success(self, config: Config, target: Path):
        cache = SpyCache()
        await ScaffoldPipeline(config, cache=cache, quiet=True).execute(target, "alpha")

        assert cache.clear_calls == 1
        assert REGISTRY_CACHE_KEY not in cache

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_cleared_once_on_failure(self, config: Config, target: Path, registry_file: Path):
        registry_file.write_text("[]", encoding="utf-8")
        cache = SpyCache()
        report = await ScaffoldPipeline(config, cache=cache, quiet=True).execute(target, "alpha")

        assert not report.success
        assert cache.clear_calls == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_cleared_once_on_early_failure(self, config: Config, target: Path):
        config = config.model_copy(update={"template_dir": target.parent / "missing"})
        cache = SpyCache()
        await ScaffoldPipeline(config, cache=cache, quiet=True).execute(target, "alpha")
        assert cache.clear_calls == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_preloaded_registry_reused(self, config: Config, target: Path):
        pipeline = ScaffoldPipeline(config, quiet=True)
        preloaded = await pipeline.registry_loader.load()

        with patch.object(
            pipeline.registry_loader, "_fetch", AsyncMock(side_effect=AssertionError("refetched"))
        ):
            report = await pipeline.execute(target, "alpha")

        assert report.success
        assert "alpha" in preloaded

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_registry_fetched_once_per_run(self, config: Config, target: Path):
        pipeline = ScaffoldPipeline(config, quiet=True)
        fetch = AsyncMock(wraps=pipeline.registry_loader._fetch)

        with patch.object(pipeline.registry_loader, "_fetch", fetch):
            report = await pipeline.execute(target, "alpha")

        assert report.success
        assert fetch.await_count == 1
        assert report.injection.css_injected


# ---------------------------------------------------------------------------
# run() and module-level entry points
# ---------------------------------------------------------------------------


class TestRun:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_returns_target(self, config: Config, target: Path):
        assert await ScaffoldPipeline(config, quiet=True).run(target, "alpha") == target

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_reraises_original_exception(
        self, config: Config, target: Path, registry_file: Path
    ):
        registry_file.write_text("{not json", encoding="utf-8")
        pipeline = ScaffoldPipeline(config, quiet=True)

        with pytest.raises(RegistryLoadError, match="^Failed to load libraries: "):
            await pipeline.run(target, "alpha")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_run_scaffold(self, config: Config, target: Path):
        result = await run_scaffold(target, "alpha", config, quiet=True)
        assert result == target
        assert CSS_LINE in (target / "src" / "index.html").read_text(encoding="utf-8")

    @pytest.mark.unit
    def test_run_scaffold_sync(self, config: Config, target: Path):
        assert run_scaffold_sync(target, "none", config, quiet=True) == target
        assert (target / "package.json").is_file()


class TestReportModels:
    @pytest.mark.unit
    def test_failed_phase_picks_first_failure(self, tmp_path: Path):
        err = ValueError("x")
        report = ScaffoldReport(
            target_dir=tmp_path,
            phases=[
                PhaseResult(phase=1, name="MATERIALIZE", success=True),
                PhaseResult(phase=2, name="CUSTOMIZE", success=False, error="x", exception=err),
            ],
        )
        assert report.failed_phase.phase == 2
        assert report.error is err
        assert report.completed_phases == [1]
