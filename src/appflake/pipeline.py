"""Application build: compile, install through the task runner, wrap, describe."""

from __future__ import annotations

import json
import shutil
from dataclasses import dataclass, field
from pathlib import Path

from appflake.backends.base import BuildBackend
from appflake.builders import CargoBuilder, JustInstaller
from appflake.config import FlakeConfig
from appflake.errors import ApplicationBuildError, InstallError, stderr_tail
from appflake.models import BuildSpec, DependencyArtifact, Package, SourceTree
from appflake.observability import Level, StructuredLogger
from appflake.source import materialize
from appflake.wrap import resolve_wrap_spec, wrap_bin_dir


@dataclass(slots=True)
class BuildPipeline:
    config: FlakeConfig
    backend: BuildBackend
    work_dir: Path
    cargo: CargoBuilder = field(default_factory=CargoBuilder)
    installer: JustInstaller | None = None
    logger: StructuredLogger = field(default_factory=StructuredLogger)

    def platform_dir(self, spec: BuildSpec) -> Path:
        return self.work_dir / spec.platform

    def build(
        self,
        spec: BuildSpec,
        source_tree: SourceTree,
        dependency_artifact: DependencyArtifact,
    ) -> Package:
        platform_dir = self.platform_dir(spec)
        src = materialize(source_tree, platform_dir / "src")
        target_dir = seed_target_dir(dependency_artifact, platform_dir / "target")

        main_bin, worker_bin = self._compile(spec, src, target_dir)

        self._log(spec, "wrap", "resolving runtime wrapper")
        wrap = resolve_wrap_spec(self.config.runtime_path_tools, self.backend.which)

        prefix = platform_dir / "out"
        self._install(spec, src, prefix, main_bin, worker_bin)
        executables = wrap_bin_dir(prefix / "bin", wrap)

        package = Package(
            attr_name=self.config.attr_name,
            pname=spec.pname,
            version=spec.version,
            platform=spec.platform,
            prefix=prefix,
            executables=executables,
            meta=self.config.package_meta(),
            native_build_inputs=spec.native_build_inputs + self.config.install_tools,
            build_inputs=spec.build_inputs,
            dependency_key=dependency_artifact.key,
        )
        metadata_path = platform_dir / "package.json"
        metadata_path.write_text(
            json.dumps(package.to_dict(), indent=2, sort_keys=True) + "\n",
            encoding="utf-8",
        )
        self._log(spec, "meta", "package metadata written", extra={"path": str(metadata_path)})
        return package

    def _compile(self, spec: BuildSpec, src: Path, target_dir: Path) -> tuple[Path, Path]:
        self._log(spec, "build", "compiling release binaries")
        result = self.backend.run(self.cargo.build(spec, src=src, target_dir=target_dir))
        if not result.ok:
            self._log(spec, "build", "application build failed", level="error")
            raise ApplicationBuildError(
                "Application build failed.",
                hint="Fix the compiler errors in the application sources.",
                context={
                    "operation": "build",
                    "platform": spec.platform,
                    "returncode": str(result.returncode),
                    "stderr": stderr_tail(result.stderr),
                },
            )

        release = self.cargo.release_dir(spec, target_dir)
        binaries = (release / self.config.main_binary, release / self.config.worker_binary)
        missing = [str(path) for path in binaries if not path.is_file()]
        if missing:
            raise ApplicationBuildError(
                "Build finished without producing the expected binaries.",
                hint="Check the [[bin]] targets declared in Cargo.toml.",
                context={
                    "operation": "build",
                    "platform": spec.platform,
                    "missing": ", ".join(missing),
                },
            )
        return binaries

    def _install(
        self,
        spec: BuildSpec,
        src: Path,
        prefix: Path,
        main_bin: Path,
        worker_bin: Path,
    ) -> None:
        if prefix.exists():
            shutil.rmtree(prefix)
        prefix.mkdir(parents=True)
        installer = self.installer or JustInstaller(tool=self.config.task_runner)
        command = installer.install(
            spec,
            src=src,
            prefix=prefix,
            bin_src=main_bin,
            webview_src=worker_bin,
        )
        self._log(spec, "install", "running task runner install")
        result = self.backend.run(command)
        if not result.ok:
            self._log(spec, "install", "install failed", level="error")
            raise InstallError(
                "Task runner install failed.",
                hint=f"Run `{' '.join(command.argv)}` manually to inspect the failure.",
                context={
                    "operation": "install",
                    "platform": spec.platform,
                    "returncode": str(result.returncode),
                    "stderr": stderr_tail(result.stderr),
                },
            )

    def _log(
        self,
        spec: BuildSpec,
        phase: str,
        message: str,
        *,
        level: Level = "info",
        extra: dict[str, str] | None = None,
    ) -> None:
        self.logger.log(
            operation="build",
            platform=spec.platform,
            phase=phase,
            component="pipeline",
            message=message,
            level=level,
            extra=extra,
        )


def seed_target_dir(artifact: DependencyArtifact, target_dir: Path) -> Path:
    """Start a fresh ``CARGO_TARGET_DIR`` from the cached dependency build."""
    if target_dir.exists():
        shutil.rmtree(target_dir)
    shutil.copytree(artifact.path, target_dir, symlinks=True)
    return target_dir
