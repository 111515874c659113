"""Protocol for command execution backends."""

from __future__ import annotations

from typing import Protocol

from appflake.models import CommandResult, CommandSpec


class BuildBackend(Protocol):
    name: str

    def run(self, command: CommandSpec) -> CommandResult:
        """Run one external tool invocation and return its outcome."""

    def toolchain_version(self) -> str:
        """Return the raw ``rustc --version`` output of the host toolchain."""

    def which(self, tool: str) -> str | None:
        """Return the absolute path of *tool*, or None when unavailable."""

    def library_dir(self, library: str) -> str | None:
        """Return the directory holding the shared objects of *library*."""

    def rust_src_path(self) -> str | None:
        """Return the toolchain's standard-library source directory."""


def option_value(argv: tuple[str, ...], option: str) -> str | None:
    """Return the value following *option* in *argv*."""
    for index, arg in enumerate(argv):
        if arg == option and index + 1 < len(argv):
            return argv[index + 1]
        if arg.startswith(option + "="):
            return arg.split("=", 1)[1]
    return None


def just_variables(argv: tuple[str, ...]) -> dict[str, str]:
    """Collect ``--set NAME VALUE`` pairs from a ``just`` invocation."""
    variables: dict[str, str] = {}
    index = 0
    while index < len(argv):
        if argv[index] == "--set" and index + 2 < len(argv):
            variables[argv[index + 1]] = argv[index + 2]
            index += 3
        else:
            index += 1
    return variables
