"""Command execution backends."""

from __future__ import annotations

from appflake.errors import ValidationError

from .base import BuildBackend
from .inprocess import InProcessBackend
from .local import LocalBackend
from .nix import NixBackend

BACKENDS: dict[str, type[LocalBackend] | type[InProcessBackend]] = {
    "local": LocalBackend,
    "nix": NixBackend,
    "inprocess": InProcessBackend,
}


def get_backend(name: str) -> BuildBackend:
    try:
        factory = BACKENDS[name]
    except KeyError:
        raise ValidationError(
            f"Unknown backend {name!r}.",
            hint="Use one of: " + ", ".join(sorted(BACKENDS)),
        ) from None
    return factory()


__all__ = ["BACKENDS", "BuildBackend", "InProcessBackend", "LocalBackend", "NixBackend", "get_backend"]
