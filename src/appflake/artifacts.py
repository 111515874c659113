"""Dependency-only builds cached by dependency manifest content."""

from __future__ import annotations

import shutil
from dataclasses import dataclass, field
from pathlib import Path

from appflake.backends.base import BuildBackend
from appflake.builders import CargoBuilder
from appflake.cache import BuildCacheStore, DependencyCacheInput, cache_key
from appflake.errors import DependencyBuildError, stderr_tail
from appflake.models import BuildSpec, DependencyArtifact, SourceTree
from appflake.observability import Level, StructuredLogger
from appflake.source import read_dependency_manifest, write_dummy_source


@dataclass(slots=True)
class ArtifactCache:
    store: BuildCacheStore
    backend: BuildBackend
    work_dir: Path
    cargo: CargoBuilder = field(default_factory=CargoBuilder)
    include_toolchain: bool = True
    logger: StructuredLogger = field(default_factory=StructuredLogger)

    def cache_inputs(self, spec: BuildSpec, source_tree: SourceTree) -> DependencyCacheInput:
        manifest = read_dependency_manifest(source_tree)
        return DependencyCacheInput(
            manifest_digest=manifest.digest,
            platform=spec.platform,
            target=spec.target_triple,
            toolchain=str(spec.toolchain) if self.include_toolchain else "",
            native_build_inputs=spec.native_build_inputs,
            build_inputs=spec.build_inputs,
            env=dict(spec.env),
            profile=self.cargo.profile,
        )

    def build_dependency_artifact(
        self,
        spec: BuildSpec,
        source_tree: SourceTree,
    ) -> DependencyArtifact:
        inputs = self.cache_inputs(spec, source_tree)
        key = cache_key(inputs)

        cached = self.store.load(key=key, expected_inputs=inputs)
        if cached is not None:
            self._log(spec, "cache hit", extra={"key": key})
            return DependencyArtifact(
                key=key,
                platform=spec.platform,
                path=cached,
                manifest_digest=inputs.manifest_digest,
                reused=True,
            )

        self._log(spec, "cache miss; building dependencies", extra={"key": key})
        staging = self.work_dir / spec.platform / f"deps-{key[:16]}"
        if staging.exists():
            shutil.rmtree(staging)
        try:
            src = write_dummy_source(source_tree, staging / "src")
            target_dir = staging / "target"
            command = self.cargo.build_deps(spec, src=src, target_dir=target_dir)
            result = self.backend.run(command)
            if not result.ok:
                self._log(spec, "dependency build failed", level="error", extra={"key": key})
                raise DependencyBuildError(
                    "Dependency build failed.",
                    hint="The third-party crate graph did not compile; see stderr.",
                    context={
                        "operation": "build_dependency_artifact",
                        "platform": spec.platform,
                        "returncode": str(result.returncode),
                        "stderr": stderr_tail(result.stderr),
                    },
                )
            target_dir.mkdir(parents=True, exist_ok=True)
            self.store.save(inputs=inputs, artifact_dir=target_dir)
        finally:
            if staging.exists():
                shutil.rmtree(staging)

        self._log(spec, "dependency artifact stored", extra={"key": key})
        return DependencyArtifact(
            key=key,
            platform=spec.platform,
            path=self.store.entry_path(key) / "artifact",
            manifest_digest=inputs.manifest_digest,
            reused=False,
        )

    def _log(
        self,
        spec: BuildSpec,
        message: str,
        *,
        level: Level = "info",
        extra: dict[str, str] | None = None,
    ) -> None:
        self.logger.log(
            operation="build_dependency_artifact",
            platform=spec.platform,
            phase="deps",
            component="artifact_cache",
            message=message,
            level=level,
            extra=extra,
        )
