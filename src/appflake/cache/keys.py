"""Cache key derivation for dependency artifacts."""

from __future__ import annotations

import hashlib
import json
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


@dataclass(frozen=True, slots=True)
class DependencyCacheInput:
    manifest_digest: str
    platform: str
    target: str
    toolchain: str = ""
    native_build_inputs: tuple[str, ...] = ()
    build_inputs: tuple[str, ...] = ()
    env: dict[str, str] = field(default_factory=dict)
    profile: str = "release"


def cache_key(inputs: DependencyCacheInput) -> str:
    canonical = json.dumps(_to_payload(inputs), sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _to_payload(inputs: DependencyCacheInput) -> dict[str, Any]:
    return {
        "manifest_digest": inputs.manifest_digest,
        "platform": inputs.platform,
        "target": inputs.target,
        "toolchain": inputs.toolchain,
        "native_build_inputs": list(inputs.native_build_inputs),
        "build_inputs": list(inputs.build_inputs),
        "env": dict(sorted(inputs.env.items())),
        "profile": inputs.profile,
    }


def digest_files(root: Path, files: Iterable[str]) -> str:
    """Digest relative paths and contents of *files* under *root*."""
    hasher = hashlib.sha256()
    for rel in sorted(files):
        hasher.update(rel.encode("utf-8"))
        hasher.update(b"\0")
        hasher.update(hashlib.sha256((root / rel).read_bytes()).digest())
    return hasher.hexdigest()


def digest_tree(root: Path) -> str:
    """Digest every regular file below *root*."""
    files = [p.relative_to(root).as_posix() for p in root.rglob("*") if p.is_file()]
    return digest_files(root, files)
