from pathlib import Path

import pytest

from appflake.errors import ValidationError
from appflake.source import collect_source_tree, parse_cargo_lock, read_dependency_manifest


def test_manifest_lists_third_party_packages(app_source: Path) -> None:
    manifest = read_dependency_manifest(collect_source_tree(app_source))

    assert manifest.lock_version == 4
    assert manifest.files == ("Cargo.lock", "Cargo.toml")
    assert [p.name for p in manifest.third_party] == ["anyhow"]
    assert {p.name for p in manifest.packages} == {"anyhow", "dev-heppen-webapps"}


def test_manifest_digest_ignores_application_sources(app_source: Path) -> None:
    before = read_dependency_manifest(collect_source_tree(app_source))

    (app_source / "src" / "main.rs").write_text("fn main() { loop {} }\n", encoding="utf-8")
    after_code = read_dependency_manifest(collect_source_tree(app_source))
    with (app_source / "Cargo.lock").open("a", encoding="utf-8") as handle:
        handle.write('\n[[package]]\nname = "url"\nversion = "2.5.4"\n'
                     'source = "registry+https://github.com/rust-lang/crates.io-index"\n')
    after_lock = read_dependency_manifest(collect_source_tree(app_source))

    assert after_code.digest == before.digest
    assert after_lock.digest != before.digest


def test_missing_lockfile_is_rejected(app_source: Path) -> None:
    (app_source / "Cargo.lock").unlink()

    with pytest.raises(ValidationError) as excinfo:
        read_dependency_manifest(collect_source_tree(app_source))

    assert "--locked" in str(excinfo.value)


def test_parse_cargo_lock_rejects_malformed_entries() -> None:
    with pytest.raises(ValidationError):
        parse_cargo_lock("[[package]\n")
    with pytest.raises(ValidationError):
        parse_cargo_lock('[[package]]\nname = "anyhow"\n')


def test_parse_cargo_lock_sorts_packages() -> None:
    version, packages = parse_cargo_lock(
        'version = 3\n[[package]]\nname = "zeta"\nversion = "1.0.0"\n'
        '[[package]]\nname = "alpha"\nversion = "0.1.0"\n'
    )

    assert version == 3
    assert [p.name for p in packages] == ["alpha", "zeta"]
    assert not any(p.is_third_party for p in packages)


def test_undecodable_lockfile_is_rejected(app_source: Path) -> None:
    (app_source / "Cargo.lock").write_bytes(b"version = 4\n# \xff\xfe\n")

    with pytest.raises(ValidationError) as excinfo:
        read_dependency_manifest(collect_source_tree(app_source))

    assert excinfo.value.context["path"] == str(app_source / "Cargo.lock")
