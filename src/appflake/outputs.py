"""Per-platform output assembly and the package-set overlay."""

from __future__ import annotations

import shutil
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path

from appflake.backends.base import BuildBackend
from appflake.builders import CargoBuilder
from appflake.config import FlakeConfig
from appflake.errors import ValidationError
from appflake.models import (
    AppEntry,
    BuildOutputSet,
    BuildSpec,
    CheckResult,
    CommandSpec,
    DependencyArtifact,
    DevShell,
    Package,
    Platform,
    SourceTree,
)
from appflake.observability import StructuredLogger
from appflake.pipeline import seed_target_dir
from appflake.source import materialize


@dataclass(slots=True)
class OutputAggregator:
    config: FlakeConfig
    backend: BuildBackend
    work_dir: Path
    cargo: CargoBuilder = field(default_factory=CargoBuilder)
    logger: StructuredLogger = field(default_factory=StructuredLogger)

    def assemble(
        self,
        spec: BuildSpec,
        package: Package,
        source_tree: SourceTree,
        dependency_artifact: DependencyArtifact,
    ) -> BuildOutputSet:
        checks = {
            "lint": self.lint_check(spec, source_tree, dependency_artifact),
            "format": self.format_check(spec, source_tree),
        }
        return BuildOutputSet(
            platform=spec.platform,
            packages={self.config.attr_name: package, "default": package},
            dev_shell=self.dev_shell(spec, package),
            checks=checks,
            app=AppEntry(program=package.bin_path(self.config.app_program)),
        )

    def dev_shell(self, spec: BuildSpec, package: Package) -> DevShell:
        env = dict(spec.env)
        rust_src = self.backend.rust_src_path()
        if rust_src:
            env["RUST_SRC_PATH"] = rust_src
        else:
            self.logger.log(
                operation="assemble",
                platform=spec.platform,
                phase="shell",
                component="outputs",
                message="rust standard library sources not found; RUST_SRC_PATH unset",
                level="warning",
                extra={"hint": "rustup component add rust-src"},
            )
        return DevShell(
            packages=self.config.dev_shell_packages,
            inputs_from=package.native_build_inputs + package.build_inputs,
            env=env,
        )

    def lint_check(
        self,
        spec: BuildSpec,
        source_tree: SourceTree,
        dependency_artifact: DependencyArtifact,
    ) -> CheckResult:
        check_dir = self.work_dir / spec.platform / "checks" / "lint"
        src = materialize(source_tree, check_dir / "src")
        target_dir = seed_target_dir(dependency_artifact, check_dir / "target")
        command = self.cargo.clippy(
            spec,
            src=src,
            target_dir=target_dir,
            extra_args=self.config.lint_args,
        )
        try:
            return self._run_check(spec, "lint", command)
        finally:
            shutil.rmtree(target_dir, ignore_errors=True)

    def format_check(self, spec: BuildSpec, source_tree: SourceTree) -> CheckResult:
        check_dir = self.work_dir / spec.platform / "checks" / "format"
        src = materialize(source_tree, check_dir / "src")
        return self._run_check(spec, "format", self.cargo.fmt_check(spec, src=src))

    def _run_check(self, spec: BuildSpec, name: str, command: CommandSpec) -> CheckResult:
        result = self.backend.run(command)
        status = "pass" if result.ok else "fail"
        self.logger.log(
            operation="check",
            platform=spec.platform,
            phase=name,
            component="checks",
            message=f"{name} check {status}ed",
            level="info" if result.ok else "warning",
        )
        diagnostics = "\n".join(part for part in (result.stdout, result.stderr) if part)
        return CheckResult(name=name, status=status, command=command.argv, diagnostics=diagnostics)


PackageThunk = Callable[["PackageSet"], Package]


class PackageSet(Mapping[str, Package]):
    """A package collection for one system whose entries resolve on lookup.

    Thunk entries receive the set they are looked up in, mirroring the
    ``final`` argument of an overlay.
    """

    def __init__(
        self,
        system: Platform,
        entries: Mapping[str, Package | PackageThunk] | None = None,
    ) -> None:
        self.system = system
        self._entries: dict[str, Package | PackageThunk] = dict(entries or {})

    def __getitem__(self, name: str) -> Package:
        entry = self._entries[name]
        return entry if isinstance(entry, Package) else entry(self)

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def merged(self, extra: Mapping[str, Package | PackageThunk]) -> PackageSet:
        entries = dict(self._entries)
        entries.update(extra)
        return PackageSet(self.system, entries)

    def with_system(self, system: Platform) -> PackageSet:
        return PackageSet(system, self._entries)

    def __repr__(self) -> str:
        return f"PackageSet(system={self.system!r}, names={sorted(self._entries)!r})"


@dataclass(frozen=True, slots=True)
class Overlay:
    """Republish the selected system's default package under *alias*.

    ``packages`` is read at lookup time, so the alias always reflects the
    current build for whatever system the receiving set targets.
    """

    alias: str
    packages: Callable[[], Mapping[Platform, Mapping[str, Package]]]

    def __call__(
        self,
        final: PackageSet,
        prev: PackageSet | None = None,
    ) -> dict[str, Package | PackageThunk]:
        return {self.alias: lambda resolved: self.resolve(resolved.system)}

    def apply(self, package_set: PackageSet) -> PackageSet:
        return package_set.merged(self(package_set, package_set))

    def resolve(self, system: Platform) -> Package:
        packages = self.packages()
        try:
            return packages[system]["default"]
        except KeyError:
            raise ValidationError(
                f"No default package is available for {system!r}.",
                hint="Build the flake for this platform before using the overlay.",
                context={"operation": "overlay", "system": system, "alias": self.alias},
            ) from None
