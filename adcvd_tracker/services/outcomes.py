from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Generic, Iterable, TypeVar

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class Outcome(Generic[T]):
    """Result of one settled call: a value or the exception that ended it."""

    value: T | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def reason(self) -> str:
        if self.error is None:
            return ""
        return str(self.error) or type(self.error).__name__


async def with_timeout(awaitable: Awaitable[T], timeout_seconds: float) -> T:
    try:
        return await asyncio.wait_for(awaitable, timeout=max(timeout_seconds, 0.001))
    except asyncio.TimeoutError as exc:
        raise TimeoutError(f"Fetch timed out after {timeout_seconds:g} s") from exc


async def settle_all(awaitables: Iterable[Awaitable[T]]) -> list[Outcome[T]]:
    """Await every call and return one outcome per call, in input order."""
    raw = await asyncio.gather(*awaitables, return_exceptions=True)
    outcomes: list[Outcome[T]] = []
    for item in raw:
        if isinstance(item, Exception):
            outcomes.append(Outcome(error=item))
        elif isinstance(item, BaseException):
            raise item
        else:
            outcomes.append(Outcome(value=item))
    return outcomes
