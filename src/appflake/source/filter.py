"""Per-path inclusion predicate for the build source tree."""

from __future__ import annotations

from pathlib import PurePosixPath

CARGO_SOURCE_SUFFIXES = (".rs", ".toml")
CARGO_LOCKFILE = "Cargo.lock"
CARGO_CONFIG_NAMES = ("config", "config.toml")
ASSET_SEGMENTS = ("resources", "i18n")


def is_cargo_source(path: str | PurePosixPath) -> bool:
    """Return True for files cargo needs to build the crate graph."""
    pure = PurePosixPath(path)
    name = pure.name
    if name == CARGO_LOCKFILE or name.endswith(CARGO_SOURCE_SUFFIXES):
        return True
    return pure.parent.name == ".cargo" and name in CARGO_CONFIG_NAMES


def is_manifest_file(path: str | PurePosixPath) -> bool:
    """Return True for files that define the dependency graph."""
    pure = PurePosixPath(path)
    if pure.name in ("Cargo.toml", CARGO_LOCKFILE):
        return True
    return pure.parent.name == ".cargo" and pure.name in CARGO_CONFIG_NAMES


def include_path(path: str | PurePosixPath, *, task_runner: str = "justfile") -> bool:
    pure = PurePosixPath(path)
    return (
        is_cargo_source(pure)
        or any(segment in pure.parts for segment in ASSET_SEGMENTS)
        or pure.name == task_runner
    )
