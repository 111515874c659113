"""Source filtering and dependency manifest helpers."""

from .filter import include_path, is_cargo_source, is_manifest_file
from .manifest import DependencyManifest, LockedPackage, parse_cargo_lock, read_dependency_manifest
from .tree import collect_source_tree, materialize, write_dummy_source

__all__ = [
    "DependencyManifest",
    "LockedPackage",
    "collect_source_tree",
    "include_path",
    "is_cargo_source",
    "is_manifest_file",
    "materialize",
    "parse_cargo_lock",
    "read_dependency_manifest",
    "write_dummy_source",
]
