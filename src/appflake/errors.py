"""Typed error model with stable, machine-readable error codes."""

from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum
from typing import ClassVar

STDERR_TAIL = 2000


class ErrorCode(StrEnum):
    """Stable error identifiers used across API and CLI surfaces."""

    VALIDATION = "E_VALIDATION"
    PRECONDITION = "E_PRECONDITION"
    DEPENDENCY_BUILD = "E_DEPENDENCY_BUILD"
    APPLICATION_BUILD = "E_APPLICATION_BUILD"
    INSTALL = "E_INSTALL"
    CHECK = "E_CHECK"
    REPRODUCIBILITY = "E_REPRODUCIBILITY"
    BACKEND_EXECUTION = "E_BACKEND_EXECUTION"


class AppFlakeError(Exception):
    """Base error class that carries code, optional hint, and context."""

    default_code: ClassVar[ErrorCode] = ErrorCode.VALIDATION

    code: str
    hint: str | None
    context: Mapping[str, str]

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode | None = None,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = (code or self.default_code).value
        self.hint = hint
        self.context = dict(context or {})

    @property
    def message(self) -> str:
        return super().__str__()

    def __str__(self) -> str:
        parts = [self.message]
        if self.hint:
            parts.append(f"Hint: {self.hint}")
        for k, v in self.context.items():
            if v:
                parts.append(f"  {k}: {v}")
        return "\n".join(parts)

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "code": self.code,
            "message": self.message,
            "context": dict(self.context),
        }
        if self.hint is not None:
            payload["hint"] = self.hint
        return payload


class ValidationError(AppFlakeError):
    default_code = ErrorCode.VALIDATION


class PreconditionError(AppFlakeError):
    """Host toolchain does not satisfy the minimum version."""

    default_code = ErrorCode.PRECONDITION


class DependencyBuildError(AppFlakeError):
    """The deps-only compilation of the third-party graph failed."""

    default_code = ErrorCode.DEPENDENCY_BUILD


class ApplicationBuildError(AppFlakeError):
    """Application sources failed to compile against the cached dependencies."""

    default_code = ErrorCode.APPLICATION_BUILD


class InstallError(AppFlakeError):
    """The task runner exited non-zero during ``install``."""

    default_code = ErrorCode.INSTALL


class CheckError(AppFlakeError):
    default_code = ErrorCode.CHECK


class ReproducibilityError(AppFlakeError):
    default_code = ErrorCode.REPRODUCIBILITY


class BackendExecutionError(AppFlakeError):
    default_code = ErrorCode.BACKEND_EXECUTION


def stderr_tail(text: str | None) -> str:
    """Return the trailing part of compiler output kept in error context."""
    if not text:
        return ""
    return text[-STDERR_TAIL:]


__all__ = [
    "AppFlakeError",
    "ApplicationBuildError",
    "BackendExecutionError",
    "CheckError",
    "DependencyBuildError",
    "ErrorCode",
    "InstallError",
    "PreconditionError",
    "ReproducibilityError",
    "ValidationError",
    "stderr_tail",
]
