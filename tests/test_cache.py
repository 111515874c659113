import json
from pathlib import Path

import pytest

from appflake.cache import BuildCacheStore, DependencyCacheInput, cache_key
from appflake.errors import ReproducibilityError


def test_cache_key_includes_all_canonical_inputs() -> None:
    base = _inputs()

    assert cache_key(base) == cache_key(_inputs())
    assert cache_key(base) != cache_key(_inputs(manifest_digest="other"))
    assert cache_key(base) != cache_key(_inputs(platform="aarch64-linux"))
    assert cache_key(base) != cache_key(_inputs(toolchain="1.86.0"))
    assert cache_key(base) != cache_key(_inputs(env={"LIBCLANG_PATH": "/elsewhere"}))


def test_cache_key_ignores_env_ordering() -> None:
    first = _inputs(env={"A": "1", "B": "2"})
    second = _inputs(env={"B": "2", "A": "1"})

    assert cache_key(first) == cache_key(second)


def test_save_then_load_returns_artifact(tmp_path: Path) -> None:
    store = BuildCacheStore(tmp_path / "cache")
    inputs = _inputs()

    key = store.save(inputs=inputs, artifact_dir=_artifact(tmp_path))
    loaded = store.load(key=key, expected_inputs=inputs)

    assert store.contains(key)
    assert loaded == tmp_path / "cache" / key / "artifact"
    assert (loaded / "deps" / "libanyhow.rlib").read_text(encoding="utf-8") == "rlib\n"


def test_load_of_unknown_key_misses(tmp_path: Path) -> None:
    store = BuildCacheStore(tmp_path / "cache")

    assert store.load(key=cache_key(_inputs()), expected_inputs=_inputs()) is None


def test_save_is_append_only(tmp_path: Path) -> None:
    store = BuildCacheStore(tmp_path / "cache")
    inputs = _inputs()
    key = store.save(inputs=inputs, artifact_dir=_artifact(tmp_path))

    replacement = tmp_path / "replacement"
    (replacement / "deps").mkdir(parents=True)
    (replacement / "deps" / "libanyhow.rlib").write_text("different\n", encoding="utf-8")
    assert store.save(inputs=inputs, artifact_dir=replacement) == key

    loaded = store.load(key=key, expected_inputs=inputs)
    assert loaded is not None
    assert (loaded / "deps" / "libanyhow.rlib").read_text(encoding="utf-8") == "rlib\n"
    assert [p.name for p in (tmp_path / "cache").iterdir()] == [key]


def test_cache_manifest_verification_detects_mismatch(tmp_path: Path) -> None:
    store = BuildCacheStore(tmp_path / "cache")
    inputs = _inputs()
    key = store.save(inputs=inputs, artifact_dir=_artifact(tmp_path))

    manifest_path = tmp_path / "cache" / key / "manifest.json"
    manifest = json.loads(manifest_path.read_text(encoding="utf-8"))
    manifest["inputs"]["toolchain"] = "tampered"
    manifest_path.write_text(json.dumps(manifest), encoding="utf-8")

    with pytest.raises(ReproducibilityError):
        store.load(key=key, expected_inputs=inputs)


def test_cache_detects_tampered_artifact(tmp_path: Path) -> None:
    store = BuildCacheStore(tmp_path / "cache")
    inputs = _inputs()
    key = store.save(inputs=inputs, artifact_dir=_artifact(tmp_path))

    rlib = tmp_path / "cache" / key / "artifact" / "deps" / "libanyhow.rlib"
    rlib.write_text("tampered\n", encoding="utf-8")

    with pytest.raises(ReproducibilityError) as excinfo:
        store.load(key=key, expected_inputs=inputs)

    assert "digest" in str(excinfo.value)


def test_cache_rejects_corrupt_manifest(tmp_path: Path) -> None:
    store = BuildCacheStore(tmp_path / "cache")
    inputs = _inputs()
    key = store.save(inputs=inputs, artifact_dir=_artifact(tmp_path))

    (tmp_path / "cache" / key / "manifest.json").write_text("{not json", encoding="utf-8")

    with pytest.raises(ReproducibilityError):
        store.load(key=key, expected_inputs=inputs)


def _inputs(**overrides: object) -> DependencyCacheInput:
    values: dict[str, object] = {
        "manifest_digest": "manifest",
        "platform": "x86_64-linux",
        "target": "x86_64-unknown-linux-gnu",
        "toolchain": "1.85.0",
        "native_build_inputs": ("pkg-config",),
        "build_inputs": ("openssl",),
        "env": {"LIBCLANG_PATH": "/opt/libclang/lib"},
    }
    values.update(overrides)
    return DependencyCacheInput(**values)  # type: ignore[arg-type]


def _artifact(tmp_path: Path) -> Path:
    artifact = tmp_path / "artifact"
    (artifact / "deps").mkdir(parents=True)
    (artifact / "deps" / "libanyhow.rlib").write_text("rlib\n", encoding="utf-8")
    return artifact
