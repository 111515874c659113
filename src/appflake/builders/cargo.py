"""Cargo command construction."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from appflake.models import BuildSpec, CommandSpec


@dataclass(slots=True)
class CargoBuilder:
    tool: str = "cargo"
    profile: str = "release"
    locked: bool = True

    def release_dir(self, spec: BuildSpec, target_dir: Path) -> Path:
        return target_dir / spec.target_triple / self.profile

    def build_deps(self, spec: BuildSpec, *, src: Path, target_dir: Path) -> CommandSpec:
        return self._command(spec, "build", src=src, target_dir=target_dir, label="deps")

    def build(self, spec: BuildSpec, *, src: Path, target_dir: Path) -> CommandSpec:
        return self._command(spec, "build", src=src, target_dir=target_dir, label="build")

    def clippy(
        self,
        spec: BuildSpec,
        *,
        src: Path,
        target_dir: Path,
        extra_args: tuple[str, ...] = (),
    ) -> CommandSpec:
        return self._command(
            spec,
            "clippy",
            src=src,
            target_dir=target_dir,
            label="clippy",
            extra_args=extra_args,
        )

    def fmt_check(self, spec: BuildSpec, *, src: Path) -> CommandSpec:
        return CommandSpec(
            argv=(self.tool, "fmt", "--all", "--check"),
            env=dict(spec.env),
            cwd=src,
            label="fmt",
        )

    def _command(
        self,
        spec: BuildSpec,
        subcommand: str,
        *,
        src: Path,
        target_dir: Path,
        label: str,
        extra_args: tuple[str, ...] = (),
    ) -> CommandSpec:
        argv = [self.tool, subcommand, f"--profile={self.profile}"]
        if self.locked:
            argv.append("--locked")
        argv.extend(["--target", spec.target_triple])
        # Arguments after "--" belong to the compiler driver.
        argv.extend(extra_args)
        env = dict(spec.env)
        env["CARGO_TARGET_DIR"] = str(target_dir)
        env["SOURCE_DATE_EPOCH"] = "0"
        return CommandSpec(argv=tuple(argv), env=env, cwd=src, label=label)
