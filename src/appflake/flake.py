"""Flake orchestrator: evaluates every platform and collects named outputs."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import cbor2

from appflake.artifacts import ArtifactCache
from appflake.backends import LocalBackend
from appflake.backends.base import BuildBackend
from appflake.cache import BuildCacheStore
from appflake.config import FlakeConfig, make_build_spec
from appflake.errors import AppFlakeError, ValidationError
from appflake.matrix import PlatformResult, for_each_platform
from appflake.models import AppEntry, BuildOutputSet, CheckResult, DevShell, Package, Platform
from appflake.observability import Level, StructuredLogger
from appflake.outputs import OutputAggregator, Overlay, PackageSet
from appflake.pipeline import BuildPipeline
from appflake.source import collect_source_tree
from appflake.version_gate import ensure_minimum_version

SCHEMA_VERSION = 1


@dataclass(slots=True)
class FlakeOutputs:
    description: str
    overlay_alias: str
    results: dict[Platform, PlatformResult[BuildOutputSet]] = field(default_factory=dict)

    def _successful(self) -> dict[Platform, BuildOutputSet]:
        return {
            platform: result.value
            for platform, result in self.results.items()
            if result.ok and result.value is not None
        }

    @property
    def packages(self) -> dict[Platform, dict[str, Package]]:
        return {platform: dict(out.packages) for platform, out in self._successful().items()}

    @property
    def dev_shells(self) -> dict[Platform, dict[str, DevShell]]:
        return {platform: {"default": out.dev_shell} for platform, out in self._successful().items()}

    @property
    def checks(self) -> dict[Platform, dict[str, CheckResult]]:
        return {platform: dict(out.checks) for platform, out in self._successful().items()}

    @property
    def apps(self) -> dict[Platform, dict[str, AppEntry]]:
        return {platform: {"default": out.app} for platform, out in self._successful().items()}

    @property
    def overlays(self) -> dict[str, Overlay]:
        return {"default": Overlay(alias=self.overlay_alias, packages=lambda: self.packages)}

    @property
    def failures(self) -> dict[Platform, AppFlakeError]:
        return {
            platform: result.error
            for platform, result in self.results.items()
            if result.error is not None
        }

    @property
    def ok(self) -> bool:
        return not self.failures

    @property
    def checks_passed(self) -> bool:
        return all(
            check.passed for platform_checks in self.checks.values() for check in platform_checks.values()
        )

    def package_set(self, system: Platform) -> PackageSet:
        """Return an empty package set for *system* extended with the default overlay."""
        return self.overlays["default"].apply(PackageSet(system))

    def to_dict(self) -> dict[str, Any]:
        return {
            "schema_version": SCHEMA_VERSION,
            "description": self.description,
            "packages": {
                platform: {name: pkg.to_dict() for name, pkg in sorted(pkgs.items())}
                for platform, pkgs in self.packages.items()
            },
            "devShells": {
                platform: {name: shell.to_dict() for name, shell in shells.items()}
                for platform, shells in self.dev_shells.items()
            },
            "checks": {
                platform: {name: check.to_dict() for name, check in sorted(checks.items())}
                for platform, checks in self.checks.items()
            },
            "apps": {
                platform: {name: app.to_dict() for name, app in apps.items()}
                for platform, apps in self.apps.items()
            },
            "overlays": {"default": {"alias": self.overlay_alias}},
            "failures": {platform: error.to_dict() for platform, error in self.failures.items()},
        }

    def to_json(self, path: str | Path | None = None) -> str:
        encoded = json.dumps(self.to_dict(), indent=2, sort_keys=True) + "\n"
        if path is not None:
            Path(path).write_text(encoded, encoding="utf-8")
        return encoded

    def to_cbor(self, path: str | Path | None = None) -> bytes:
        encoded = cbor2.dumps(self.to_dict(), canonical=True)
        if path is not None:
            Path(path).write_bytes(encoded)
        return encoded


@dataclass(slots=True)
class Flake:
    """Builds the application for each supported platform."""

    source_root: Path
    config: FlakeConfig = field(default_factory=FlakeConfig)
    backend: BuildBackend = field(default_factory=LocalBackend)
    build_dir: Path = field(default_factory=lambda: Path("build"))
    cache_dir: Path | None = None
    logger: StructuredLogger = field(default_factory=StructuredLogger)

    def __post_init__(self) -> None:
        # Commands run with cwd inside the work tree, so every derived path must be absolute.
        self.source_root = Path(self.source_root).resolve()
        self.build_dir = Path(self.build_dir).resolve()
        if self.cache_dir is not None:
            self.cache_dir = Path(self.cache_dir).resolve()

    @property
    def work_dir(self) -> Path:
        return self.build_dir / "work"

    @property
    def cache_root(self) -> Path:
        return Path(self.cache_dir) if self.cache_dir is not None else self.build_dir / "cache"

    def artifact_cache(self) -> ArtifactCache:
        return ArtifactCache(
            store=BuildCacheStore(self.cache_root),
            backend=self.backend,
            work_dir=self.work_dir,
            include_toolchain=self.config.cache_includes_toolchain,
            logger=self.logger,
        )

    def pipeline(self) -> BuildPipeline:
        return BuildPipeline(
            config=self.config,
            backend=self.backend,
            work_dir=self.work_dir,
            logger=self.logger,
        )

    def aggregator(self) -> OutputAggregator:
        return OutputAggregator(
            config=self.config,
            backend=self.backend,
            work_dir=self.work_dir,
            logger=self.logger,
        )

    def build_platform(self, platform: Platform) -> BuildOutputSet:
        if platform not in self.config.supported_platforms:
            raise ValidationError(
                f"Platform {platform!r} is not supported by this flake.",
                context={"platforms": ", ".join(self.config.supported_platforms)},
            )
        self._log(platform, "gate", "checking toolchain version")
        try:
            toolchain = ensure_minimum_version(
                self.backend.toolchain_version(),
                self.config.minimum_version,
                platform=platform,
            )
        except AppFlakeError as exc:
            self._log(platform, "gate", exc.message, level="error")
            raise

        library_dirs = {
            library: self.backend.library_dir(library)
            for library in sorted(set(self.config.library_env.values()))
        }
        spec = make_build_spec(self.config, platform, toolchain=toolchain, library_dirs=library_dirs)

        self._log(platform, "filter", "collecting source tree")
        tree = collect_source_tree(self.source_root, task_runner=self.config.task_runner_script)

        artifact = self.artifact_cache().build_dependency_artifact(spec, tree)
        package = self.pipeline().build(spec, tree, artifact)
        outputs = self.aggregator().assemble(spec, package, tree, artifact)
        self._log(platform, "outputs", "output set assembled")
        return outputs

    def evaluate(self, platforms: tuple[Platform, ...] | None = None) -> FlakeOutputs:
        selected = platforms or self.config.supported_platforms
        results = for_each_platform(
            selected,
            self.build_platform,
            max_workers=self.config.max_workers,
        )
        for platform, result in results.items():
            if result.error is not None:
                self._log(
                    platform,
                    None,
                    "platform failed",
                    level="error",
                    extra={"code": result.error.code},
                )
        return FlakeOutputs(
            description=self.config.description,
            overlay_alias=self.config.attr_name,
            results=results,
        )

    def _log(
        self,
        platform: Platform,
        phase: str | None,
        message: str,
        *,
        level: Level = "info",
        extra: dict[str, str] | None = None,
    ) -> None:
        self.logger.log(
            operation="evaluate",
            platform=platform,
            phase=phase,
            component="flake",
            message=message,
            level=level,
            extra=extra,
        )
