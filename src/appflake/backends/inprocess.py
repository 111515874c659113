"""In-process backend for testing and dry runs.

Simulates cargo, clippy, rustfmt and ``just install`` deterministically
without invoking any external tool. Outputs are derived from the content of
the working directory, so identical inputs yield identical artifacts:
- deps builds write one placeholder rlib per locked package
- release builds write one placeholder binary per configured executable
- ``just install`` copies the binaries into ``$prefix/bin``
"""

from __future__ import annotations

import hashlib
import shutil
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from appflake.backends.base import just_variables, option_value
from appflake.errors import BackendExecutionError
from appflake.models import CommandResult, CommandSpec


@dataclass(slots=True)
class InProcessBackend:
    name: str = "inprocess"
    toolchain: str = "rustc 1.85.0 (4d91de4e4 2025-02-17)"
    binaries: tuple[str, ...] = ("dev-heppen-webapps", "dev-heppen-webapps-webview")
    install_names: Mapping[str, str] = field(
        default_factory=lambda: {
            "bin-src": "dev.heppen.webapps",
            "webview-src": "dev.heppen.webapps-webview",
        }
    )
    lint_warnings: tuple[str, ...] = ()
    unformatted: tuple[str, ...] = ()
    failures: Mapping[str, str] = field(default_factory=dict)
    missing_tools: tuple[str, ...] = ()
    rust_src: str | None = "/opt/inprocess/rust/lib/rustlib/src/rust/library"
    calls: list[CommandSpec] = field(default_factory=list)

    def run(self, command: CommandSpec) -> CommandResult:
        self.calls.append(command)
        if command.label in self.failures:
            return CommandResult(returncode=101, stderr=self.failures[command.label])
        handler = {
            "deps": self._build_deps,
            "build": self._build_release,
            "clippy": self._clippy,
            "fmt": self._fmt,
            "install": self._install,
        }.get(command.label)
        if handler is None:
            raise BackendExecutionError(
                f"In-process backend cannot simulate {command.argv[0]!r}.",
                context={"backend": self.name, "operation": command.label or "run"},
            )
        return handler(command)

    def calls_for(self, label: str) -> list[CommandSpec]:
        return [call for call in self.calls if call.label == label]

    def toolchain_version(self) -> str:
        return self.toolchain

    def which(self, tool: str) -> str | None:
        if tool in self.missing_tools:
            return None
        return f"/opt/inprocess/{tool}/bin/{tool}"

    def library_dir(self, library: str) -> str | None:
        if library in self.missing_tools:
            return None
        return f"/opt/inprocess/{library}/lib"

    def rust_src_path(self) -> str | None:
        return self.rust_src

    # ------------------------------------------------------------------
    # Simulated tools
    # ------------------------------------------------------------------

    def _build_deps(self, command: CommandSpec) -> CommandResult:
        src = _cwd(command)
        release = _release_dir(command)
        deps = release / "deps"
        deps.mkdir(parents=True, exist_ok=True)
        lock = tomllib.loads((src / "Cargo.lock").read_text(encoding="utf-8"))
        compiled = 0
        for entry in lock.get("package", []):
            if "source" not in entry:
                continue
            name = entry["name"].replace("-", "_")
            digest = _digest(f"{entry['name']}@{entry['version']}:{command.argv}")
            (deps / f"lib{name}-{digest[:16]}.rlib").write_text(digest + "\n", encoding="utf-8")
            compiled += 1
        return CommandResult(returncode=0, stderr=f"Compiling {compiled} dependencies\n")

    def _build_release(self, command: CommandSpec) -> CommandResult:
        src = _cwd(command)
        release = _release_dir(command)
        release.mkdir(parents=True, exist_ok=True)
        sources = _source_digest(src)
        for binary in self.binaries:
            path = release / binary
            path.write_text(f"#!/bin/sh\n# {binary} {sources}\n", encoding="utf-8")
            path.chmod(0o755)
        return CommandResult(returncode=0, stderr="Finished `release` profile\n")

    def _clippy(self, command: CommandSpec) -> CommandResult:
        if not self.lint_warnings:
            return CommandResult(returncode=0)
        lines = [f"warning: {message}" for message in self.lint_warnings]
        if "warnings" in command.argv and "--deny" in command.argv:
            lines.append(
                f"error: could not compile due to {len(self.lint_warnings)} previous warning(s)"
            )
            return CommandResult(returncode=101, stderr="\n".join(lines) + "\n")
        return CommandResult(returncode=0, stderr="\n".join(lines) + "\n")

    def _fmt(self, command: CommandSpec) -> CommandResult:
        if not self.unformatted:
            return CommandResult(returncode=0)
        src = _cwd(command)
        diff = "".join(f"Diff in {src / rel}:\n" for rel in self.unformatted)
        return CommandResult(returncode=1, stdout=diff)

    def _install(self, command: CommandSpec) -> CommandResult:
        variables = just_variables(command.argv)
        prefix = variables.get("prefix")
        if not prefix:
            return CommandResult(returncode=1, stderr="error: variable `prefix` not set\n")
        bin_dir = Path(prefix) / "bin"
        bin_dir.mkdir(parents=True, exist_ok=True)
        for variable, installed in sorted(self.install_names.items()):
            source = variables.get(variable)
            if source is None or not Path(source).exists():
                return CommandResult(
                    returncode=1,
                    stderr=f"error: {variable} does not exist: {source}\n",
                )
            shutil.copy2(source, bin_dir / installed)
        resources = _cwd(command) / "resources"
        if resources.is_dir():
            shutil.copytree(resources, Path(prefix) / "share" / "resources", dirs_exist_ok=True)
        return CommandResult(returncode=0)


def _cwd(command: CommandSpec) -> Path:
    if command.cwd is None:
        raise BackendExecutionError("In-process backend requires a working directory.")
    return command.cwd


def _release_dir(command: CommandSpec) -> Path:
    target_dir = Path(command.env["CARGO_TARGET_DIR"])
    triple = option_value(command.argv, "--target") or "host"
    profile = option_value(command.argv, "--profile") or "release"
    return target_dir / triple / profile


def _source_digest(src: Path) -> str:
    hasher = hashlib.sha256()
    for path in sorted(p for p in src.rglob("*") if p.is_file()):
        hasher.update(path.relative_to(src).as_posix().encode("utf-8"))
        hasher.update(path.read_bytes())
    return hasher.hexdigest()


def _digest(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()
