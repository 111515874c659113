"""Task-runner (``just``) install invocation."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from appflake.models import BuildSpec, CommandSpec


@dataclass(slots=True)
class JustInstaller:
    tool: str = "just"
    recipe: str = "install"

    def install(
        self,
        spec: BuildSpec,
        *,
        src: Path,
        prefix: Path,
        bin_src: Path,
        webview_src: Path,
    ) -> CommandSpec:
        argv = (
            self.tool,
            "--set", "prefix", str(prefix),
            "--set", "bin-src", str(bin_src),
            "--set", "webview-src", str(webview_src),
            self.recipe,
        )
        return CommandSpec(argv=argv, env=dict(spec.env), cwd=src, label="install")
