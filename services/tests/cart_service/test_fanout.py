import asyncio

import pytest

from services.common.fanout import MissingResult, fan_out


@pytest.mark.asyncio
async def test_fan_out_collects_values_and_failures_per_key() -> None:
    started: list[str] = []

    async def fetch(key: str) -> str | None:
        started.append(key)
        await asyncio.sleep(0)
        if key == "boom":
            raise RuntimeError("lookup failed")
        if key == "gone":
            return None
        return key.upper()

    result = await fan_out(["a", "boom", "gone", "b"], fetch)

    assert sorted(started) == ["a", "b", "boom", "gone"]
    assert result.values == {"a": "A", "b": "B"}
    assert set(result.failures) == {"boom", "gone"}
    assert isinstance(result.failures["boom"], RuntimeError)
    assert isinstance(result.failures["gone"], MissingResult)
    assert not result.complete


@pytest.mark.asyncio
async def test_fan_out_deduplicates_keys() -> None:
    calls: list[str] = []

    async def fetch(key: str) -> str:
        calls.append(key)
        return key

    result = await fan_out(["x", "y", "x"], fetch)

    assert calls == ["x", "y"]
    assert list(result.values) == ["x", "y"]
    assert result.complete


@pytest.mark.asyncio
async def test_fan_out_times_out_slow_tasks_without_blocking_others() -> None:
    async def fetch(key: str) -> str:
        if key == "slow":
            await asyncio.sleep(5)
        return key

    result = await fan_out(["fast", "slow"], fetch, timeout=0.05)

    assert result.values == {"fast": "fast"}
    assert isinstance(result.failures["slow"], asyncio.TimeoutError)


@pytest.mark.asyncio
async def test_fan_out_with_no_keys() -> None:
    async def fetch(key: str) -> str:  # pragma: no cover - never awaited
        return key

    result = await fan_out([], fetch)

    assert result.values == {}
    assert result.complete
