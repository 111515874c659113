import subprocess
from pathlib import Path
from types import SimpleNamespace
from typing import Any

import pytest

from appflake.backends import InProcessBackend, LocalBackend, NixBackend, get_backend
from appflake.backends.base import just_variables, option_value
from appflake.errors import BackendExecutionError, ValidationError
from appflake.models import CommandSpec


def test_get_backend_by_name() -> None:
    assert isinstance(get_backend("local"), LocalBackend)
    assert isinstance(get_backend("nix"), NixBackend)
    assert isinstance(get_backend("inprocess"), InProcessBackend)
    with pytest.raises(ValidationError):
        get_backend("docker")


def test_local_backend_runs_with_layered_environment(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    seen = _fake_run(monkeypatch, stdout="ok\n")
    monkeypatch.setenv("HOME", "/home/builder")

    result = LocalBackend().run(
        CommandSpec(argv=("cargo", "build"), env={"CARGO_TARGET_DIR": "/t"}, cwd=tmp_path)
    )

    assert result.ok
    assert result.stdout == "ok\n"
    assert seen["argv"] == ["cargo", "build"]
    assert seen["cwd"] == str(tmp_path)
    assert seen["env"]["CARGO_TARGET_DIR"] == "/t"
    assert seen["env"]["HOME"] == "/home/builder"


def test_local_backend_reports_missing_executable(monkeypatch: pytest.MonkeyPatch) -> None:
    def missing(*args: Any, **kwargs: Any) -> None:
        raise FileNotFoundError(args[0][0])

    monkeypatch.setattr("appflake.backends.local.subprocess.run", missing)

    with pytest.raises(BackendExecutionError) as excinfo:
        LocalBackend().run(CommandSpec(argv=("cargo", "build"), label="build"))

    assert excinfo.value.context["operation"] == "build"


def test_local_backend_queries_toolchain(monkeypatch: pytest.MonkeyPatch) -> None:
    _fake_run(monkeypatch, stdout="rustc 1.85.0 (4d91de4e4 2025-02-17)\n")

    assert LocalBackend().toolchain_version() == "rustc 1.85.0 (4d91de4e4 2025-02-17)"


def test_local_backend_toolchain_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    _fake_run(monkeypatch, returncode=1, stderr="warning: " * 1000 + "rustup: no default toolchain\n")

    with pytest.raises(BackendExecutionError) as excinfo:
        LocalBackend().toolchain_version()

    assert "no default toolchain" in excinfo.value.context["stderr"]
    assert excinfo.value.context["stderr"].endswith("no default toolchain\n")
    assert len(excinfo.value.context["stderr"]) == 2000


def test_local_backend_rust_src_path(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    library = tmp_path / "lib" / "rustlib" / "src" / "rust" / "library"
    library.mkdir(parents=True)
    _fake_run(monkeypatch, stdout=f"{tmp_path}\n")

    assert LocalBackend().rust_src_path() == str(library)


def test_local_backend_rust_src_path_without_rust_src_component(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    _fake_run(monkeypatch, stdout=f"{tmp_path}\n")

    assert LocalBackend().rust_src_path() is None


def test_local_backend_library_dir_without_probe_tool(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("appflake.backends.local.shutil.which", lambda _: None)

    assert LocalBackend().library_dir("libclang") is None
    assert LocalBackend().library_dir("libunknown") is None


def test_nix_backend_wraps_commands_in_dev_shell(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("IN_NIX_SHELL", raising=False)
    monkeypatch.delenv("NIX_STORE", raising=False)
    monkeypatch.setattr("appflake.backends.nix.sys.platform", "linux")
    monkeypatch.setattr("appflake.backends.nix.shutil.which", lambda _: "/usr/bin/nix")
    seen = _fake_run(monkeypatch)

    NixBackend(flake_ref="github:cosmic-utils/web-apps").run(CommandSpec(argv=("cargo", "fmt")))

    assert seen["argv"] == ["nix", "develop", "github:cosmic-utils/web-apps", "-c", "cargo", "fmt"]


def test_nix_backend_runs_directly_inside_nix_shell(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("IN_NIX_SHELL", "impure")

    assert NixBackend().wrap_argv(("cargo", "fmt")) == ("cargo", "fmt")


def test_nix_backend_fails_on_non_linux(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("appflake.backends.nix.sys.platform", "darwin")

    with pytest.raises(BackendExecutionError) as excinfo:
        NixBackend().run(CommandSpec(argv=("cargo", "build")))

    assert "Linux" in str(excinfo.value)


def test_nix_backend_fails_when_nix_missing(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("IN_NIX_SHELL", raising=False)
    monkeypatch.delenv("NIX_STORE", raising=False)
    monkeypatch.setattr("appflake.backends.nix.sys.platform", "linux")
    monkeypatch.setattr("appflake.backends.nix.shutil.which", lambda _: None)

    with pytest.raises(BackendExecutionError) as excinfo:
        NixBackend().run(CommandSpec(argv=("cargo", "build")))

    assert "nix" in str(excinfo.value).lower()


def test_inprocess_backend_rejects_unknown_commands(inprocess_backend: InProcessBackend) -> None:
    with pytest.raises(BackendExecutionError):
        inprocess_backend.run(CommandSpec(argv=("cargo", "doc"), label="doc"))

    assert inprocess_backend.calls_for("doc")


def test_command_line_helpers() -> None:
    argv = ("cargo", "build", "--profile=release", "--target", "x86_64-unknown-linux-gnu")

    assert option_value(argv, "--profile") == "release"
    assert option_value(argv, "--target") == "x86_64-unknown-linux-gnu"
    assert option_value(argv, "--features") is None
    assert just_variables(("just", "--set", "prefix", "/out", "install")) == {"prefix": "/out"}


def _fake_run(
    monkeypatch: pytest.MonkeyPatch,
    *,
    returncode: int = 0,
    stdout: str = "",
    stderr: str = "",
) -> dict[str, Any]:
    seen: dict[str, Any] = {}

    def fake(argv: list[str], **kwargs: Any) -> SimpleNamespace:
        seen["argv"] = argv
        seen.update(kwargs)
        return SimpleNamespace(returncode=returncode, stdout=stdout, stderr=stderr)

    monkeypatch.setattr(subprocess, "run", fake)
    return seen
