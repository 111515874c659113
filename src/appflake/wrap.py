"""Runtime wrappers for installed executables."""

from __future__ import annotations

import os
import shlex
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from appflake.errors import ValidationError


@dataclass(frozen=True, slots=True)
class WrapSpec:
    path_prefix: tuple[str, ...] = ()

    @property
    def empty(self) -> bool:
        return not self.path_prefix


def resolve_wrap_spec(tools: tuple[str, ...], locate: Callable[[str], str | None]) -> WrapSpec:
    """Locate each runtime *tool* and collect the directories to prepend to ``PATH``."""
    directories: list[str] = []
    for tool in tools:
        location = locate(tool)
        if not location:
            raise ValidationError(
                f"Runtime tool {tool!r} could not be located.",
                hint=f"Install {tool} so installed programs can invoke it.",
                context={"operation": "resolve_wrap_spec", "tool": tool},
            )
        directory = str(Path(location).parent)
        if directory not in directories:
            directories.append(directory)
    return WrapSpec(path_prefix=tuple(directories))


def wrap_program(executable: Path, spec: WrapSpec) -> Path:
    """Replace *executable* with a shell wrapper that prefixes ``PATH``.

    The binary itself moves to ``.<name>-wrapped`` next to it.
    """
    if spec.empty:
        return executable
    wrapped = executable.with_name(f".{executable.name}-wrapped")
    os.replace(executable, wrapped)
    search_path = ":".join(spec.path_prefix)
    script = (
        "#!/bin/sh\n"
        f"PATH={shlex.quote(search_path)}${{PATH:+:$PATH}}\n"
        "export PATH\n"
        f'exec "$(dirname "$0")/{wrapped.name}" "$@"\n'
    )
    executable.write_text(script, encoding="utf-8")
    executable.chmod(0o755)
    return wrapped


def wrap_bin_dir(bin_dir: Path, spec: WrapSpec) -> tuple[str, ...]:
    """Wrap every executable in *bin_dir*; return the wrapped program names."""
    if not bin_dir.is_dir():
        return ()
    names: list[str] = []
    for path in sorted(bin_dir.iterdir()):
        if path.name.startswith(".") or not path.is_file():
            continue
        wrap_program(path, spec)
        names.append(path.name)
    return tuple(names)
