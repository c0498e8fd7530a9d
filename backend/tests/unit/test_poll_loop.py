"""
Unit Tests for PollLoop
"""

from unittest.mock import AsyncMock, Mock

import pytest

from swapvid.core.poll_loop import DeadlineExceededError, PollLoop
from swapvid.core.provider_client import ProviderStatus, ProviderTransportError, StatusReport


class FakeClock:
    """Virtual clock advanced only by the loop's sleep calls"""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def _report(status, error=None):
    return StatusReport(run_ref="R1", status=status, error=error)


def _provider(*results):
    provider = Mock()
    provider.poll_status = AsyncMock(side_effect=list(results))
    return provider


@pytest.mark.asyncio
async def test_poll_until_completed():
    clock = FakeClock()
    provider = _provider(
        _report(ProviderStatus.QUEUED),
        _report(ProviderStatus.RUNNING),
        _report(ProviderStatus.COMPLETED),
    )
    loop = PollLoop(provider, interval_s=30, deadline_s=900, sleep=clock.sleep, clock=clock)

    outcome = await loop.poll("R1", job_id="job-1")

    assert outcome.completed is True
    assert outcome.timed_out is False
    assert outcome.polls == 3
    assert clock.sleeps == [30, 30]
    provider.poll_status.assert_awaited_with("R1")


@pytest.mark.asyncio
async def test_poll_provider_failed():
    clock = FakeClock()
    provider = _provider(_report(ProviderStatus.FAILED, error=[{"msg": "bad size"}]))
    loop = PollLoop(provider, interval_s=30, deadline_s=900, sleep=clock.sleep, clock=clock)

    outcome = await loop.poll("R1")

    assert outcome.failed is True
    assert outcome.report.error == [{"msg": "bad size"}]
    assert clock.sleeps == []


@pytest.mark.asyncio
async def test_deadline_hits_at_900_seconds_not_before():
    """Provider stuck in RUNNING times out exactly at the deadline."""
    clock = FakeClock()
    provider = Mock()
    provider.poll_status = AsyncMock(return_value=_report(ProviderStatus.RUNNING))
    loop = PollLoop(provider, interval_s=30, deadline_s=900, sleep=clock.sleep, clock=clock)
    start = clock.now

    outcome = await loop.poll("R1")

    assert outcome.timed_out is True
    assert outcome.completed is False
    assert outcome.failed is False
    assert outcome.elapsed_s == 900
    assert clock.now - start == 900
    assert provider.poll_status.await_count == 31

    error = outcome.deadline_error(loop.deadline_s)
    assert isinstance(error, DeadlineExceededError)
    assert error.deadline_s == 900


@pytest.mark.asyncio
async def test_last_sleep_is_clipped_to_deadline():
    clock = FakeClock()
    provider = Mock()
    provider.poll_status = AsyncMock(return_value=_report(ProviderStatus.RUNNING))
    loop = PollLoop(provider, interval_s=30, deadline_s=45, sleep=clock.sleep, clock=clock)

    outcome = await loop.poll("R1")

    assert outcome.timed_out is True
    assert clock.sleeps == [30, 15]


@pytest.mark.asyncio
async def test_transport_errors_are_unknown_and_do_not_fail():
    """A flaky poll does not fail the run or reset the deadline origin."""
    clock = FakeClock()
    provider = _provider(
        ProviderTransportError("Network error calling provider"),
        ProviderTransportError("Network error calling provider"),
        _report(ProviderStatus.COMPLETED),
    )
    loop = PollLoop(provider, interval_s=30, deadline_s=900, sleep=clock.sleep, clock=clock)

    outcome = await loop.poll("R1")

    assert outcome.completed is True
    assert outcome.polls == 3
    assert outcome.elapsed_s == 60


@pytest.mark.asyncio
async def test_resume_uses_recorded_origin():
    clock = FakeClock()
    provider = Mock()
    provider.poll_status = AsyncMock(return_value=_report(ProviderStatus.RUNNING))
    loop = PollLoop(provider, interval_s=30, deadline_s=900, sleep=clock.sleep, clock=clock)

    outcome = await loop.poll("R1", started_at=clock.now - 890)

    assert outcome.timed_out is True
    assert clock.sleeps == [10]
    assert provider.poll_status.await_count == 2


@pytest.mark.asyncio
async def test_tick_in_flight():
    clock = FakeClock()
    provider = _provider(_report(ProviderStatus.UNKNOWN))
    loop = PollLoop(provider, interval_s=30, deadline_s=900, sleep=clock.sleep, clock=clock)

    outcome = await loop.tick("R1", started_at=clock.now - 120, attempt=5)

    assert outcome.in_flight is True
    assert outcome.status == ProviderStatus.UNKNOWN
    assert outcome.polls == 5
    assert outcome.elapsed_s == 120
