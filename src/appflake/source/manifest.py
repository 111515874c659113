"""Dependency manifest reading (``Cargo.toml`` / ``Cargo.lock``)."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from typing import Any

from appflake.cache.keys import digest_files
from appflake.errors import ValidationError
from appflake.models import SourceTree
from appflake.source.filter import CARGO_LOCKFILE, is_manifest_file


@dataclass(frozen=True, slots=True)
class LockedPackage:
    name: str
    version: str
    source: str | None = None
    checksum: str | None = None

    @property
    def is_third_party(self) -> bool:
        return self.source is not None


@dataclass(frozen=True, slots=True)
class DependencyManifest:
    digest: str
    files: tuple[str, ...]
    lock_version: int
    packages: tuple[LockedPackage, ...] = field(default_factory=tuple)

    @property
    def third_party(self) -> tuple[LockedPackage, ...]:
        return tuple(p for p in self.packages if p.is_third_party)


def read_dependency_manifest(tree: SourceTree) -> DependencyManifest:
    files = tuple(rel for rel in tree.files if is_manifest_file(rel))
    if CARGO_LOCKFILE not in files:
        raise ValidationError(
            "Cargo.lock is missing from the source tree.",
            hint="Run `cargo generate-lockfile` and commit Cargo.lock; builds run with --locked.",
            context={"operation": "read_dependency_manifest", "root": str(tree.root)},
        )
    lock_path = tree.root / CARGO_LOCKFILE
    try:
        raw = lock_path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise ValidationError(
            "Cargo.lock is not valid UTF-8.",
            hint=str(exc),
            context={"operation": "read_dependency_manifest", "path": str(lock_path)},
        ) from exc
    lock_version, packages = parse_cargo_lock(raw)
    return DependencyManifest(
        digest=digest_files(tree.root, files),
        files=files,
        lock_version=lock_version,
        packages=packages,
    )


def parse_cargo_lock(raw: str) -> tuple[int, tuple[LockedPackage, ...]]:
    try:
        payload = tomllib.loads(raw)
    except tomllib.TOMLDecodeError as exc:
        raise ValidationError("Invalid Cargo.lock TOML.", hint=str(exc)) from exc

    version = payload.get("version", 1)
    if not isinstance(version, int):
        raise ValidationError("Invalid Cargo.lock `version` value.")
    entries = payload.get("package", [])
    if not isinstance(entries, list):
        raise ValidationError("Invalid Cargo.lock `package` value.")
    packages = tuple(sorted(
        (_parse_locked_package(entry) for entry in entries),
        key=lambda p: (p.name, p.version),
    ))
    return version, packages


def _parse_locked_package(entry: Any) -> LockedPackage:
    if not isinstance(entry, dict):
        raise ValidationError("Invalid package entry in Cargo.lock.")
    name = entry.get("name")
    version = entry.get("version")
    if not isinstance(name, str) or not name:
        raise ValidationError("Invalid Cargo.lock package `name` value.")
    if not isinstance(version, str) or not version:
        raise ValidationError(
            "Invalid Cargo.lock package `version` value.",
            context={"package": name},
        )
    source = entry.get("source")
    checksum = entry.get("checksum")
    return LockedPackage(
        name=name,
        version=version,
        source=source if isinstance(source, str) else None,
        checksum=checksum if isinstance(checksum, str) else None,
    )
