"""Core typed dataclasses for build specs, artifacts and flake outputs."""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from appflake.errors import CheckError, ValidationError, stderr_tail

Platform = str
CheckStatus = Literal["pass", "fail"]

TARGET_TRIPLES: dict[Platform, str] = {
    "x86_64-linux": "x86_64-unknown-linux-gnu",
    "aarch64-linux": "aarch64-unknown-linux-gnu",
    "x86_64-darwin": "x86_64-apple-darwin",
    "aarch64-darwin": "aarch64-apple-darwin",
}

_VERSION_RE = re.compile(r"(\d+)\.(\d+)(?:\.(\d+))?")


def target_triple(platform: Platform) -> str:
    try:
        return TARGET_TRIPLES[platform]
    except KeyError:
        raise ValidationError(
            f"Unknown platform {platform!r}.",
            hint="Use one of: " + ", ".join(sorted(TARGET_TRIPLES)),
            context={"platform": platform},
        ) from None


@dataclass(frozen=True, slots=True, order=True)
class ToolchainVersion:
    major: int
    minor: int
    patch: int = 0

    @classmethod
    def parse(cls, raw: str | ToolchainVersion) -> ToolchainVersion:
        """Parse ``1.85.0``, ``1.85`` or full ``rustc --version`` output."""
        if isinstance(raw, ToolchainVersion):
            return raw
        match = _VERSION_RE.search(raw)
        if match is None:
            raise ValidationError(
                f"Cannot parse toolchain version from {raw!r}.",
                hint="Expected a dotted version such as 1.85.0.",
                context={"version": raw},
            )
        major, minor, patch = match.groups()
        return cls(int(major), int(minor), int(patch or 0))

    def as_tuple(self) -> tuple[int, int, int]:
        return (self.major, self.minor, self.patch)

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"


@dataclass(frozen=True, slots=True)
class CommandSpec:
    argv: tuple[str, ...]
    env: Mapping[str, str] = field(default_factory=dict)
    cwd: Path | None = None
    label: str = ""


@dataclass(frozen=True, slots=True)
class CommandResult:
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


@dataclass(frozen=True, slots=True)
class BuildSpec:
    """Per-platform build configuration shared by the cache and the pipeline."""

    pname: str
    version: str
    platform: Platform
    target_triple: str
    toolchain: ToolchainVersion
    native_build_inputs: tuple[str, ...] = ()
    build_inputs: tuple[str, ...] = ()
    env: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class SourceTree:
    root: Path
    files: tuple[str, ...]
    digest: str

    def __contains__(self, path: object) -> bool:
        return path in self.files

    def __len__(self) -> int:
        return len(self.files)


@dataclass(frozen=True, slots=True)
class DependencyArtifact:
    key: str
    platform: Platform
    path: Path
    manifest_digest: str
    reused: bool = False


@dataclass(frozen=True, slots=True)
class PackageMeta:
    description: str
    homepage: str
    license: str
    platforms: tuple[Platform, ...]
    main_program: str
    maintainers: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, object]:
        return {
            "description": self.description,
            "homepage": self.homepage,
            "license": self.license,
            "platforms": list(self.platforms),
            "mainProgram": self.main_program,
            "maintainers": list(self.maintainers),
        }


@dataclass(frozen=True, slots=True)
class Package:
    attr_name: str
    pname: str
    version: str
    platform: Platform
    prefix: Path
    executables: tuple[str, ...]
    meta: PackageMeta
    native_build_inputs: tuple[str, ...] = ()
    build_inputs: tuple[str, ...] = ()
    dependency_key: str = ""

    @property
    def name(self) -> str:
        return f"{self.pname}-{self.version}"

    def bin_path(self, executable: str) -> Path:
        return self.prefix / "bin" / executable

    def to_dict(self) -> dict[str, object]:
        return {
            "name": self.name,
            "pname": self.pname,
            "version": self.version,
            "platform": self.platform,
            "prefix": str(self.prefix),
            "executables": list(self.executables),
            "meta": self.meta.to_dict(),
            "nativeBuildInputs": list(self.native_build_inputs),
            "buildInputs": list(self.build_inputs),
            "dependencyKey": self.dependency_key,
        }


@dataclass(frozen=True, slots=True)
class DevShell:
    packages: tuple[str, ...]
    inputs_from: tuple[str, ...]
    env: Mapping[str, str] = field(default_factory=dict)

    def to_shell(self) -> str:
        """Render the shell environment as POSIX ``export`` lines."""
        lines = [f"export {name}={_shell_quote(value)}" for name, value in sorted(self.env.items())]
        return "\n".join(lines) + "\n"

    def to_dict(self) -> dict[str, object]:
        return {
            "packages": list(self.packages),
            "inputsFrom": list(self.inputs_from),
            "env": dict(sorted(self.env.items())),
        }


@dataclass(frozen=True, slots=True)
class CheckResult:
    name: str
    status: CheckStatus
    command: tuple[str, ...] = ()
    diagnostics: str = ""

    @property
    def passed(self) -> bool:
        return self.status == "pass"

    def ensure_passed(self) -> None:
        if not self.passed:
            raise CheckError(
                f"Check {self.name!r} failed.",
                hint="Fix the reported diagnostics and re-run the checks.",
                context={"check": self.name, "diagnostics": stderr_tail(self.diagnostics)},
            )

    def to_dict(self) -> dict[str, object]:
        return {
            "name": self.name,
            "status": self.status,
            "command": list(self.command),
            "diagnostics": self.diagnostics,
        }


@dataclass(frozen=True, slots=True)
class AppEntry:
    program: Path
    type: Literal["app"] = "app"

    def to_dict(self) -> dict[str, object]:
        return {"type": self.type, "program": str(self.program)}


@dataclass(frozen=True, slots=True)
class BuildOutputSet:
    platform: Platform
    packages: Mapping[str, Package]
    dev_shell: DevShell
    checks: Mapping[str, CheckResult]
    app: AppEntry

    @property
    def default_package(self) -> Package:
        return self.packages["default"]

    def is_complete(self) -> bool:
        return bool(
            self.packages.get("default")
            and self.dev_shell.inputs_from
            and "lint" in self.checks
            and "format" in self.checks
            and self.app.program
        )


def _shell_quote(value: str) -> str:
    return "'" + value.replace("'", "'\"'\"'") + "'"


__all__ = [
    "AppEntry",
    "BuildOutputSet",
    "BuildSpec",
    "CheckResult",
    "CheckStatus",
    "CommandResult",
    "CommandSpec",
    "DependencyArtifact",
    "DevShell",
    "Package",
    "PackageMeta",
    "Platform",
    "SourceTree",
    "TARGET_TRIPLES",
    "ToolchainVersion",
    "target_triple",
]
