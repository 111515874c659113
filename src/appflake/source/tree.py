"""Source tree collection, materialization, and dummy-source generation."""

from __future__ import annotations

import os
import shutil
from pathlib import Path, PurePosixPath

from appflake.cache.keys import digest_files
from appflake.errors import ValidationError
from appflake.models import SourceTree
from appflake.source.filter import include_path, is_manifest_file

IGNORED_DIRS = frozenset({".git", "target", "result"})

DUMMY_BIN = "#![allow(clippy::all)]\nfn main() {}\n"
DUMMY_LIB = "#![allow(clippy::all)]\n"


def collect_source_tree(root: str | Path, *, task_runner: str = "justfile") -> SourceTree:
    source_root = Path(root)
    if not source_root.is_dir():
        raise ValidationError(
            "Source root is not a directory.",
            context={"operation": "collect_source_tree", "path": str(source_root)},
        )

    selected: set[str] = set()
    for dirpath, dirnames, filenames in os.walk(source_root):
        dirnames[:] = sorted(d for d in dirnames if d not in IGNORED_DIRS)
        base = Path(dirpath)
        for filename in filenames:
            rel = (base / filename).relative_to(source_root).as_posix()
            if include_path(rel, task_runner=task_runner):
                selected.add(rel)

    files = tuple(sorted(selected))
    return SourceTree(root=source_root, files=files, digest=digest_files(source_root, files))


def materialize(tree: SourceTree, dest: Path) -> Path:
    """Copy the filtered tree into a fresh *dest* directory."""
    if dest.exists():
        shutil.rmtree(dest)
    dest.mkdir(parents=True)
    for rel in tree.files:
        target = dest / rel
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(tree.root / rel, target)
    return dest


def write_dummy_source(tree: SourceTree, dest: Path) -> Path:
    """Write a manifest-only copy of *tree* whose Rust sources are stubs.

    Compiling the stub tree builds exactly the third-party graph declared by
    the manifests, without any application code.
    """
    if dest.exists():
        shutil.rmtree(dest)
    dest.mkdir(parents=True)
    for rel in tree.files:
        target = dest / rel
        if is_manifest_file(rel):
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(tree.root / rel, target)
        elif rel.endswith(".rs"):
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(DUMMY_BIN if _is_binary_target(rel) else DUMMY_LIB, encoding="utf-8")
    return dest


def _is_binary_target(rel: str) -> bool:
    pure = PurePosixPath(rel)
    if pure.name in ("main.rs", "build.rs"):
        return True
    parts = pure.parts
    for index in range(len(parts) - 1):
        if parts[index] in ("bin", "examples", "benches", "tests"):
            # Only the crate entry point of a multi-file target is a binary root.
            tail = parts[index + 1 :]
            return len(tail) == 1 or tail[-1] == "main.rs"
    return False
