"""Content-addressed cache APIs."""

from .keys import DependencyCacheInput, cache_key, digest_files, digest_tree
from .store import BuildCacheStore

__all__ = ["BuildCacheStore", "DependencyCacheInput", "cache_key", "digest_files", "digest_tree"]
