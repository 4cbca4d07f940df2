import pytest

from config import ConfigurationError
from core import retry


@pytest.fixture
def no_sleep(monkeypatch):
    delays: list[tuple[int, float, float]] = []

    async def fake_backoff(attempt: int, base: float, step: float) -> None:
        delays.append((attempt, base, step))

    monkeypatch.setattr(retry, "_backoff_delay", fake_backoff)
    return delays


@pytest.mark.asyncio
async def test_always_failing_operation_runs_budget_plus_one_and_raises_last(no_sleep):
    calls = 0

    async def op() -> str:
        nonlocal calls
        calls += 1
        raise ValueError(f"failure {calls}")

    with pytest.raises(ValueError, match="failure 3"):
        await retry.with_retries(op, 2, base_delay=0.5, delay_step=0.8)

    assert calls == 3
    assert no_sleep == [(0, 0.5, 0.8), (1, 0.5, 0.8)]


@pytest.mark.asyncio
async def test_success_short_circuits(no_sleep):
    calls = 0

    async def op() -> str:
        nonlocal calls
        calls += 1
        if calls == 1:
            raise RuntimeError("transient")
        return "done"

    assert await retry.with_retries(op, 5) == "done"
    assert calls == 2
    assert len(no_sleep) == 1


@pytest.mark.asyncio
async def test_zero_retries_is_a_single_attempt(no_sleep):
    calls = 0

    async def op() -> str:
        nonlocal calls
        calls += 1
        raise RuntimeError("nope")

    with pytest.raises(RuntimeError):
        await retry.with_retries(op, 0)
    assert calls == 1
    assert no_sleep == []


@pytest.mark.asyncio
async def test_retry_on_predicate_stops_non_retryable_errors(no_sleep):
    calls = 0

    async def op() -> str:
        nonlocal calls
        calls += 1
        raise PermissionError("bad key")

    with pytest.raises(PermissionError):
        await retry.with_retries(
            op, 3, retry_on=lambda exc: not isinstance(exc, PermissionError)
        )
    assert calls == 1


@pytest.mark.asyncio
async def test_backoff_delay_grows_linearly(monkeypatch):
    slept: list[float] = []

    async def fake_sleep(seconds: float) -> None:
        slept.append(seconds)

    monkeypatch.setattr(retry.asyncio, "sleep", fake_sleep)
    for attempt in range(3):
        await retry._backoff_delay(attempt, 0.5, 0.8)
    assert slept == pytest.approx([0.5, 1.3, 2.1])


@pytest.mark.asyncio
async def test_invalid_budget_raises_configuration_error():
    async def op() -> str:
        return "x"

    with pytest.raises(ConfigurationError):
        await retry.with_retries(op, -1)
    with pytest.raises(ConfigurationError):
        await retry.with_retries(op, 1, base_delay=-0.1)
