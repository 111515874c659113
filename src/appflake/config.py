"""Immutable flake configuration and TOML loading.

Platform list, minimum toolchain, package identity and build inputs all live
on :class:`FlakeConfig`, so each platform pipeline can be built and tested in
isolation.
"""

from __future__ import annotations

import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

from appflake.errors import ValidationError
from appflake.models import BuildSpec, PackageMeta, Platform, ToolchainVersion, target_triple

DEFAULT_PLATFORMS: tuple[Platform, ...] = ("x86_64-linux", "aarch64-linux")
DEFAULT_MINIMUM_TOOLCHAIN = "1.85.0"

_SECTIONS = ("package", "toolchain", "build", "install", "shell", "checks", "meta", "cache")


@dataclass(frozen=True, slots=True)
class FlakeConfig:
    description: str = "Quick Web Apps - COSMIC desktop web app manager"
    supported_platforms: tuple[Platform, ...] = DEFAULT_PLATFORMS
    minimum_toolchain: str = DEFAULT_MINIMUM_TOOLCHAIN

    # package
    pname: str = "dev-heppen-webapps"
    version: str = "2.0.1"
    attr_name: str = "cosmic-ext-web-apps"
    main_binary: str = "dev-heppen-webapps"
    worker_binary: str = "dev-heppen-webapps-webview"
    app_program: str = "dev.heppen.webapps"

    # build
    native_build_inputs: tuple[str, ...] = ("pkg-config", "wrapGAppsHook3")
    build_inputs: tuple[str, ...] = (
        "openssl",
        "libxkbcommon",
        "wayland",
        "gtk3",
        "webkitgtk_4_1",
        "glib-networking",
    )
    library_env: Mapping[str, str] = field(default_factory=lambda: {"LIBCLANG_PATH": "libclang"})
    extra_env: Mapping[str, str] = field(default_factory=dict)

    # install
    task_runner: str = "just"
    task_runner_script: str = "justfile"
    install_tools: tuple[str, ...] = ("just",)
    runtime_path_tools: tuple[str, ...] = ("wget",)

    # shell
    dev_shell_packages: tuple[str, ...] = ("rust-analyzer", "cargo-watch", "just")

    # checks
    lint_args: tuple[str, ...] = ("--all-targets", "--", "--deny", "warnings")

    # meta
    meta_description: str = "Web applications at your fingertips - COSMIC desktop web app manager"
    homepage: str = "https://github.com/cosmic-utils/web-apps"
    license: str = "GPL-3.0-only"
    maintainers: tuple[str, ...] = ()

    # cache
    cache_includes_toolchain: bool = True
    max_workers: int = 1

    def __post_init__(self) -> None:
        if not self.supported_platforms:
            raise ValidationError("At least one supported platform is required.")
        if len(set(self.supported_platforms)) != len(self.supported_platforms):
            raise ValidationError(
                "Supported platforms must be unique.",
                context={"platforms": ", ".join(self.supported_platforms)},
            )
        for platform in self.supported_platforms:
            target_triple(platform)
        ToolchainVersion.parse(self.minimum_toolchain)
        if self.max_workers < 1:
            raise ValidationError("max_workers must be at least 1.")
        for attr in ("pname", "version", "attr_name", "main_binary", "worker_binary"):
            if not getattr(self, attr):
                raise ValidationError(f"Configuration value `{attr}` must be non-empty.")

    @property
    def minimum_version(self) -> ToolchainVersion:
        return ToolchainVersion.parse(self.minimum_toolchain)

    def package_meta(self) -> PackageMeta:
        return PackageMeta(
            description=self.meta_description,
            homepage=self.homepage,
            license=self.license,
            platforms=self.supported_platforms,
            main_program=self.main_binary,
            maintainers=self.maintainers,
        )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> FlakeConfig:
        """Build a config from a mapping shaped like ``appflake.toml``.

        Top-level keys and keys nested under the known sections
        (``[package]``, ``[build]``, ...) are flattened onto the dataclass
        fields. Unknown keys are rejected.
        """
        flat: dict[str, Any] = {}
        for key, value in data.items():
            if key in _SECTIONS:
                if not isinstance(value, Mapping):
                    raise ValidationError(f"Config section `{key}` must be a table.")
                flat.update(value)
            else:
                flat[key] = value

        known = {f.name: f for f in fields(cls)}
        unknown = sorted(set(flat) - set(known))
        if unknown:
            raise ValidationError(
                "Config contains unknown keys.",
                hint="Check spelling against the FlakeConfig fields.",
                context={"keys": ", ".join(unknown)},
            )

        kwargs: dict[str, Any] = {}
        for key, value in flat.items():
            default = getattr(cls(), key)
            if isinstance(default, tuple):
                if not isinstance(value, list | tuple) or not all(isinstance(v, str) for v in value):
                    raise ValidationError(f"Config value `{key}` must be a list of strings.")
                kwargs[key] = tuple(value)
            elif isinstance(default, Mapping):
                if not isinstance(value, Mapping):
                    raise ValidationError(f"Config value `{key}` must be a table.")
                kwargs[key] = {str(k): str(v) for k, v in value.items()}
            elif isinstance(default, bool):
                if not isinstance(value, bool):
                    raise ValidationError(f"Config value `{key}` must be a boolean.")
                kwargs[key] = value
            elif isinstance(default, int):
                if not isinstance(value, int) or isinstance(value, bool):
                    raise ValidationError(f"Config value `{key}` must be an integer.")
                kwargs[key] = value
            else:
                kwargs[key] = str(value)
        return cls(**kwargs)


def load_config(path: str | Path) -> FlakeConfig:
    config_path = Path(path)
    try:
        raw = config_path.read_bytes()
    except FileNotFoundError as exc:
        raise ValidationError(
            "Config file does not exist.",
            context={"path": str(config_path)},
        ) from exc
    try:
        data = tomllib.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, tomllib.TOMLDecodeError) as exc:
        raise ValidationError(
            "Config file is not valid UTF-8 TOML.",
            hint=str(exc),
            context={"path": str(config_path)},
        ) from exc
    return FlakeConfig.from_mapping(data)


def make_build_spec(
    config: FlakeConfig,
    platform: Platform,
    *,
    toolchain: ToolchainVersion,
    library_dirs: Mapping[str, str | None],
) -> BuildSpec:
    """Construct the per-platform build spec.

    ``library_dirs`` maps library names from ``config.library_env`` to their
    located directories; a missing library is a validation failure.
    """
    env: dict[str, str] = {}
    for variable, library in sorted(config.library_env.items()):
        if variable in config.extra_env:
            continue
        location = library_dirs.get(library)
        if not location:
            raise ValidationError(
                f"Required library {library!r} could not be located.",
                hint=f"Install {library} or set {variable} in extra_env.",
                context={"platform": platform, "variable": variable},
            )
        env[variable] = location
    env.update(config.extra_env)
    return BuildSpec(
        pname=config.pname,
        version=config.version,
        platform=platform,
        target_triple=target_triple(platform),
        toolchain=toolchain,
        native_build_inputs=config.native_build_inputs,
        build_inputs=config.build_inputs,
        env=env,
    )
