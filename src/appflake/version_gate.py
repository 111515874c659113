"""Minimum toolchain version gate."""

from __future__ import annotations

from dataclasses import dataclass

from appflake.errors import PreconditionError
from appflake.models import ToolchainVersion


@dataclass(frozen=True, slots=True)
class VersionCheck:
    ok: bool
    actual: ToolchainVersion
    minimum: ToolchainVersion
    message: str = ""


def check_minimum_version(
    actual: str | ToolchainVersion,
    minimum: str | ToolchainVersion,
) -> VersionCheck:
    actual_version = ToolchainVersion.parse(actual)
    minimum_version = ToolchainVersion.parse(minimum)
    if actual_version >= minimum_version:
        return VersionCheck(ok=True, actual=actual_version, minimum=minimum_version)
    return VersionCheck(
        ok=False,
        actual=actual_version,
        minimum=minimum_version,
        message=(
            f"Rust >= {minimum_version} required for edition 2024 "
            f"(found {actual_version})."
        ),
    )


def ensure_minimum_version(
    actual: str | ToolchainVersion,
    minimum: str | ToolchainVersion,
    *,
    platform: str | None = None,
) -> ToolchainVersion:
    """Return the parsed host version, or raise :class:`PreconditionError`."""
    result = check_minimum_version(actual, minimum)
    if not result.ok:
        raise PreconditionError(
            result.message,
            hint="Update the host Rust toolchain before building.",
            context={
                "operation": "version_gate",
                "platform": platform or "",
                "actual": str(result.actual),
                "minimum": str(result.minimum),
            },
        )
    return result.actual
