import pytest

from appflake.errors import PreconditionError, ValidationError
from appflake.matrix import for_each_platform

PLATFORMS = ("x86_64-linux", "aarch64-linux", "x86_64-darwin")


def test_failure_on_one_platform_does_not_affect_others() -> None:
    results = for_each_platform(PLATFORMS, _build)

    assert list(results) == list(PLATFORMS)
    assert results["x86_64-linux"].unwrap() == "built x86_64-linux"
    assert results["x86_64-darwin"].unwrap() == "built x86_64-darwin"
    assert not results["aarch64-linux"].ok
    assert isinstance(results["aarch64-linux"].error, PreconditionError)
    with pytest.raises(PreconditionError):
        results["aarch64-linux"].unwrap()


def test_parallel_evaluation_matches_sequential() -> None:
    sequential = for_each_platform(PLATFORMS, _build)
    parallel = for_each_platform(PLATFORMS, _build, max_workers=3)

    assert list(parallel) == list(sequential)
    assert [r.value for r in parallel.values()] == [r.value for r in sequential.values()]


def test_duplicate_platforms_are_rejected() -> None:
    with pytest.raises(ValidationError):
        for_each_platform(("x86_64-linux", "x86_64-linux"), _build)


def test_unexpected_exceptions_propagate() -> None:
    def broken(platform: str) -> str:
        raise RuntimeError(platform)

    with pytest.raises(RuntimeError):
        for_each_platform(("x86_64-linux",), broken)


def test_unwrap_returns_successful_none_value() -> None:
    results = for_each_platform(("x86_64-linux",), lambda platform: None)

    assert results["x86_64-linux"].ok
    assert results["x86_64-linux"].unwrap() is None


def _build(platform: str) -> str:
    if platform == "aarch64-linux":
        raise PreconditionError("toolchain too old")
    return f"built {platform}"
