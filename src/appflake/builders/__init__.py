"""Command builders for the Rust toolchain and the task runner."""

from .cargo import CargoBuilder
from .just import JustInstaller

__all__ = ["CargoBuilder", "JustInstaller"]
