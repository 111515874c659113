"""Public package entrypoint for appflake."""

from .config import FlakeConfig, load_config
from .errors import (
    AppFlakeError,
    ApplicationBuildError,
    BackendExecutionError,
    CheckError,
    DependencyBuildError,
    InstallError,
    PreconditionError,
    ReproducibilityError,
    ValidationError,
)
from .flake import Flake, FlakeOutputs
from .models import (
    AppEntry,
    BuildOutputSet,
    BuildSpec,
    CheckResult,
    DependencyArtifact,
    DevShell,
    Package,
    PackageMeta,
    SourceTree,
    ToolchainVersion,
)
from .outputs import Overlay, PackageSet
from .version_gate import check_minimum_version, ensure_minimum_version

__all__ = [
    "AppEntry",
    "AppFlakeError",
    "ApplicationBuildError",
    "BackendExecutionError",
    "BuildOutputSet",
    "BuildSpec",
    "CheckError",
    "CheckResult",
    "DependencyArtifact",
    "DependencyBuildError",
    "DevShell",
    "Flake",
    "FlakeConfig",
    "FlakeOutputs",
    "InstallError",
    "Overlay",
    "Package",
    "PackageMeta",
    "PackageSet",
    "PreconditionError",
    "ReproducibilityError",
    "SourceTree",
    "ToolchainVersion",
    "ValidationError",
    "check_minimum_version",
    "ensure_minimum_version",
    "load_config",
]
