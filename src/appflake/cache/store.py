"""Content-addressed, append-only artifact store with manifest verification."""

from __future__ import annotations

import json
import os
import shutil
import uuid
from pathlib import Path

from appflake.cache.keys import DependencyCacheInput, _to_payload, cache_key, digest_tree
from appflake.errors import ReproducibilityError

ARTIFACT_DIR = "artifact"
MANIFEST_NAME = "manifest.json"


class BuildCacheStore:
    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def entry_path(self, key: str) -> Path:
        return self.root / key

    def contains(self, key: str) -> bool:
        return (self.root / key / MANIFEST_NAME).exists()

    def load(self, *, key: str, expected_inputs: DependencyCacheInput) -> Path | None:
        entry = self.root / key
        artifact_path = entry / ARTIFACT_DIR
        manifest_path = entry / MANIFEST_NAME
        if not artifact_path.is_dir() or not manifest_path.exists():
            return None

        manifest = self._read_manifest(manifest_path)
        if manifest.get("key") != key:
            raise ReproducibilityError(
                "Cache manifest key mismatch.",
                hint="Remove the cache entry and rebuild.",
                context={"operation": "cache_load", "key": key},
            )
        if manifest.get("inputs") != _to_payload(expected_inputs):
            raise ReproducibilityError(
                "Cache manifest inputs do not match expected build inputs.",
                hint="Remove the cache entry and rebuild.",
                context={"operation": "cache_load", "key": key},
            )
        if manifest.get("artifact_sha256") != digest_tree(artifact_path):
            raise ReproducibilityError(
                "Cache artifact digest mismatch.",
                hint="Remove the cache entry and rebuild.",
                context={"operation": "cache_load", "key": key},
            )
        return artifact_path

    def save(self, *, inputs: DependencyCacheInput, artifact_dir: Path) -> str:
        """Copy *artifact_dir* into the store and publish it atomically.

        An entry that already exists under the same key is left untouched.
        """
        key = cache_key(inputs)
        entry = self.root / key
        if entry.exists():
            return key

        staging = self.root / f".tmp-{key[:16]}-{uuid.uuid4().hex}"
        try:
            shutil.copytree(artifact_dir, staging / ARTIFACT_DIR, symlinks=True)
            manifest = {
                "key": key,
                "inputs": _to_payload(inputs),
                "artifact_sha256": digest_tree(staging / ARTIFACT_DIR),
            }
            (staging / MANIFEST_NAME).write_text(
                json.dumps(manifest, indent=2, sort_keys=True) + "\n",
                encoding="utf-8",
            )
            try:
                os.replace(staging, entry)
            except OSError:
                # Another writer published the same key first.
                if not entry.exists():
                    raise
        finally:
            if staging.exists():
                shutil.rmtree(staging)
        return key

    def _read_manifest(self, path: Path) -> dict[str, object]:
        try:
            parsed = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ReproducibilityError(
                "Cache manifest is not valid JSON.",
                hint="Remove the cache entry and rebuild.",
                context={"operation": "cache_load", "path": str(path)},
            ) from exc
        if not isinstance(parsed, dict):
            raise ReproducibilityError(
                "Cache manifest has invalid structure.",
                hint="Remove the cache entry and rebuild.",
                context={"operation": "cache_load", "path": str(path)},
            )
        return parsed
