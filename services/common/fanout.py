"""Concurrent fan-out/join with per-task error capture."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Hashable, Iterable
from dataclasses import dataclass, field
from typing import Generic, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class MissingResult(LookupError):
    """Recorded for a key whose fetch completed without producing a value."""


@dataclass(slots=True)
class FanOutResult(Generic[K, V]):
    """Values and failures for one fan-out, keyed by the requested key."""

    values: dict[K, V] = field(default_factory=dict)
    failures: dict[K, BaseException] = field(default_factory=dict)

    @property
    def complete(self) -> bool:
        return not self.failures


async def _bounded(fetch: Callable[[K], Awaitable[V | None]], key: K, timeout: float | None) -> V | None:
    if timeout is None:
        return await fetch(key)
    return await asyncio.wait_for(fetch(key), timeout)


async def fan_out(
    keys: Iterable[K],
    fetch: Callable[[K], Awaitable[V | None]],
    *,
    timeout: float | None = None,
) -> FanOutResult[K, V]:
    """Run ``fetch`` once per distinct key concurrently and wait for all of them.

    A task that raises, exceeds ``timeout`` or returns ``None`` is recorded in
    ``failures`` for its key; the other tasks still run to completion. Timeouts
    are recorded as :class:`asyncio.TimeoutError`, ``None`` results as
    :class:`MissingResult`. Cancellation of the caller is not captured.
    """

    ordered = list(dict.fromkeys(keys))
    result: FanOutResult[K, V] = FanOutResult()
    if not ordered:
        return result

    outcomes = await asyncio.gather(
        *(_bounded(fetch, key, timeout) for key in ordered),
        return_exceptions=True,
    )
    for key, outcome in zip(ordered, outcomes):
        if isinstance(outcome, asyncio.CancelledError):
            raise outcome
        if isinstance(outcome, BaseException):
            result.failures[key] = outcome
        elif outcome is None:
            result.failures[key] = MissingResult(key)
        else:
            result.values[key] = outcome
    return result
