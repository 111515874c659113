import pytest

from appflake.errors import ErrorCode, PreconditionError, ValidationError
from appflake.models import ToolchainVersion
from appflake.version_gate import check_minimum_version, ensure_minimum_version


def test_exact_minimum_passes() -> None:
    assert ensure_minimum_version("1.85.0", "1.85.0") == ToolchainVersion(1, 85, 0)


def test_newer_toolchain_from_rustc_output_passes() -> None:
    version = ensure_minimum_version("rustc 1.86.0 (05f9846f8 2025-03-31)", "1.85.0")

    assert version == ToolchainVersion(1, 86, 0)


def test_two_component_version_is_padded() -> None:
    assert ensure_minimum_version("1.85", "1.85.0") == ToolchainVersion(1, 85, 0)


def test_older_toolchain_fails_with_precondition_error() -> None:
    with pytest.raises(PreconditionError) as excinfo:
        ensure_minimum_version("1.84.9", "1.85.0", platform="x86_64-linux")

    error = excinfo.value
    assert error.code == ErrorCode.PRECONDITION
    assert error.message == "Rust >= 1.85.0 required for edition 2024 (found 1.84.9)."
    assert error.context["actual"] == "1.84.9"
    assert error.context["minimum"] == "1.85.0"
    assert error.context["platform"] == "x86_64-linux"


def test_check_reports_without_raising() -> None:
    result = check_minimum_version(ToolchainVersion(1, 70), "1.85.0")

    assert not result.ok
    assert "found 1.70.0" in result.message


def test_unparseable_version_is_a_validation_error() -> None:
    with pytest.raises(ValidationError):
        ensure_minimum_version("nightly", "1.85.0")
