"""Nix development-shell execution backend.

Wraps each command in ``nix develop {flake_ref} -c ...`` so cargo, rustc and
just come from the flake's dev shell. If the current process already runs
inside a Nix shell (``IN_NIX_SHELL`` or ``NIX_STORE`` set), commands are
executed directly.

This backend requires:
- Linux host
- ``nix`` available in PATH with flakes enabled
"""

from __future__ import annotations

import os
import shutil
import sys
from dataclasses import dataclass

from appflake.backends.local import LocalBackend
from appflake.errors import BackendExecutionError
from appflake.models import CommandResult, CommandSpec


@dataclass(slots=True)
class NixBackend(LocalBackend):
    name: str = "nix"
    flake_ref: str = "."

    def run(self, command: CommandSpec) -> CommandResult:
        self._ensure_prerequisites()
        return LocalBackend.run(self, command)

    def wrap_argv(self, argv: tuple[str, ...]) -> tuple[str, ...]:
        if self._in_nix_shell():
            return argv
        return ("nix", "develop", self.flake_ref, "-c", *argv)

    @staticmethod
    def _in_nix_shell() -> bool:
        return bool(os.environ.get("IN_NIX_SHELL") or os.environ.get("NIX_STORE"))

    def _ensure_prerequisites(self) -> None:
        if not sys.platform.startswith("linux"):
            raise BackendExecutionError(
                "Nix backend requires a Linux host.",
                hint="Use the local backend on other systems.",
                context={"backend": self.name, "operation": "prepare"},
            )
        if not self._in_nix_shell() and shutil.which("nix") is None:
            raise BackendExecutionError(
                "Nix backend requires `nix` in PATH.",
                hint="Install Nix: https://nixos.org/download.html",
                context={"backend": self.name, "operation": "prepare"},
            )
