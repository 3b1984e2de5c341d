"""Tests for bounded job polling."""

import asyncio

import pytest

from ritz.errors import ProviderError
from ritz.pipeline import PollResult, poll_until
from ritz.services import JobPoll, JobStatus


def _sequence(*polls):
    remaining = list(polls)
    calls = []

    async def check():
        calls.append(1)
        return remaining.pop(0) if len(remaining) > 1 else remaining[0]

    return check, calls


class TestPollUntil:
    async def test_success_after_pending_polls(self):
        check, calls = _sequence(
            JobPoll(JobStatus.QUEUED),
            JobPoll(JobStatus.RUNNING),
            JobPoll(JobStatus.DONE, result_url="https://cdn/x.mp4"),
        )
        outcome = await poll_until(check, 0, 10)

        assert outcome.result is PollResult.SUCCESS
        assert outcome.ok
        assert outcome.attempts == 3
        assert outcome.result_url == "https://cdn/x.mp4"
        assert len(calls) == 3

    async def test_done_without_result_is_failure(self):
        check, _ = _sequence(JobPoll(JobStatus.DONE))
        outcome = await poll_until(check, 0, 5)

        assert outcome.result is PollResult.FAILURE
        assert outcome.error_message == "finished without a result"

    async def test_failed_status(self):
        check, _ = _sequence(
            JobPoll(JobStatus.RUNNING),
            JobPoll(JobStatus.FAILED, error_message="content policy"),
        )
        outcome = await poll_until(check, 0, 5)

        assert outcome.result is PollResult.FAILURE
        assert outcome.error_message == "content policy"
        assert outcome.attempts == 2

    async def test_timeout(self):
        check, calls = _sequence(JobPoll(JobStatus.RUNNING))
        outcome = await poll_until(check, 0, 4)

        assert outcome.result is PollResult.TIMEOUT
        assert outcome.attempts == 4
        assert len(calls) == 4

    async def test_abort_stops_before_polling(self):
        abort = asyncio.Event()
        abort.set()
        check, calls = _sequence(JobPoll(JobStatus.DONE, result_url="x"))
        outcome = await poll_until(check, 0, 5, abort)

        assert outcome.result is PollResult.CANCELLED
        assert outcome.attempts == 0
        assert calls == []

    async def test_check_errors_propagate(self):
        async def check():
            raise ProviderError("HTTP 500", provider="upscaler")

        with pytest.raises(ProviderError, match="HTTP 500"):
            await poll_until(check, 0, 3)
