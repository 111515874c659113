"""Independent per-platform evaluation."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Generic, TypeVar, cast

from appflake.errors import AppFlakeError, ValidationError
from appflake.models import Platform

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class PlatformResult(Generic[T]):
    platform: Platform
    value: T | None = None
    error: AppFlakeError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        if self.error is not None:
            raise self.error
        return cast(T, self.value)


def for_each_platform(
    platforms: Iterable[Platform],
    fn: Callable[[Platform], T],
    *,
    max_workers: int = 1,
) -> dict[Platform, PlatformResult[T]]:
    """Apply *fn* to every platform, isolating failures per platform.

    Only :class:`AppFlakeError` is captured; anything else is a bug and
    propagates. Results keep the order of *platforms*.
    """
    ordered = tuple(platforms)
    if len(set(ordered)) != len(ordered):
        raise ValidationError(
            "Platform list contains duplicates.",
            context={"platforms": ", ".join(ordered)},
        )

    def evaluate(platform: Platform) -> PlatformResult[T]:
        try:
            return PlatformResult(platform=platform, value=fn(platform))
        except AppFlakeError as exc:
            return PlatformResult(platform=platform, error=exc)

    if max_workers <= 1 or len(ordered) <= 1:
        results = [evaluate(platform) for platform in ordered]
    else:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            results = list(pool.map(evaluate, ordered))
    return {result.platform: result for result in results}
