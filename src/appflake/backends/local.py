"""Host execution via ``subprocess``.

Runs cargo, rustc and just directly on the host with the build environment
layered over the current process environment.
"""

from __future__ import annotations

import os
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path

from appflake.errors import BackendExecutionError, stderr_tail
from appflake.models import CommandResult, CommandSpec

LIBRARY_PROBES: dict[str, tuple[str, ...]] = {
    "libclang": ("llvm-config", "--libdir"),
}


@dataclass(slots=True)
class LocalBackend:
    name: str = "local"

    def run(self, command: CommandSpec) -> CommandResult:
        argv = self.wrap_argv(command.argv)
        env = dict(os.environ)
        env.update(command.env)
        try:
            result = subprocess.run(
                list(argv),
                cwd=str(command.cwd) if command.cwd is not None else None,
                env=env,
                capture_output=True,
                text=True,
                check=False,
            )
        except FileNotFoundError as exc:
            raise BackendExecutionError(
                f"`{argv[0]}` is not available.",
                hint=f"Install {argv[0]} and make sure it is in PATH.",
                context={"backend": self.name, "operation": command.label or "run"},
            ) from exc
        return CommandResult(
            returncode=result.returncode,
            stdout=result.stdout or "",
            stderr=result.stderr or "",
        )

    def wrap_argv(self, argv: tuple[str, ...]) -> tuple[str, ...]:
        return argv

    def toolchain_version(self) -> str:
        result = self.run(CommandSpec(argv=("rustc", "--version"), label="toolchain_version"))
        if not result.ok:
            raise BackendExecutionError(
                "Could not determine the Rust toolchain version.",
                hint="Check that `rustc --version` works on this host.",
                context={
                    "backend": self.name,
                    "operation": "toolchain_version",
                    "returncode": str(result.returncode),
                    "stderr": stderr_tail(result.stderr),
                },
            )
        return result.stdout.strip()

    def which(self, tool: str) -> str | None:
        return shutil.which(tool)

    def library_dir(self, library: str) -> str | None:
        probe = LIBRARY_PROBES.get(library)
        if probe is None or shutil.which(probe[0]) is None:
            return None
        result = self.run(CommandSpec(argv=probe, label="library_dir"))
        location = result.stdout.strip()
        return location if result.ok and location else None

    def rust_src_path(self) -> str | None:
        result = self.run(CommandSpec(argv=("rustc", "--print", "sysroot"), label="rust_src_path"))
        if not result.ok or not result.stdout.strip():
            return None
        path = Path(result.stdout.strip()) / "lib" / "rustlib" / "src" / "rust" / "library"
        # Present only when the rust-src component is installed.
        return str(path) if path.is_dir() else None
