"""Bounded polling of provider jobs."""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional

from ..services.base import JobPoll, JobStatus

logger = logging.getLogger(__name__)


class PollResult(str, Enum):
    """How a polling loop ended."""

    SUCCESS = "success"
    FAILURE = "failure"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"


@dataclass
class PollOutcome:
    """Tagged result of a polling loop."""

    result: PollResult
    attempts: int
    poll: Optional[JobPoll] = None

    @property
    def ok(self) -> bool:
        return self.result is PollResult.SUCCESS

    @property
    def result_url(self) -> Optional[str]:
        return self.poll.result_url if self.poll else None

    @property
    def error_message(self) -> Optional[str]:
        return self.poll.error_message if self.poll else None


async def poll_until(
    check: Callable[[], Awaitable[JobPoll]],
    interval: float,
    max_attempts: int,
    abort: Optional[asyncio.Event] = None,
    label: str = "job",
) -> PollOutcome:
    """Poll a job until it reaches a terminal status.

    Sleeps ``interval`` seconds before every poll. Expected endings
    (done, failed, too many attempts, abort) come back as a tagged
    outcome; exceptions raised by ``check`` propagate.

    Args:
        check: Coroutine function returning the job's current status.
        interval: Seconds between polls.
        max_attempts: Polls allowed before giving up.
        abort: When set, the loop exits at its next wake-up.
        label: Name used in log messages.

    Returns:
        PollOutcome tagged SUCCESS, FAILURE, TIMEOUT or CANCELLED.
    """
    last: Optional[JobPoll] = None

    for attempt in range(1, max_attempts + 1):
        await asyncio.sleep(interval)

        if abort is not None and abort.is_set():
            logger.info(f"{label}: polling cancelled after {attempt - 1} attempts")
            return PollOutcome(PollResult.CANCELLED, attempt - 1, last)

        last = await check()
        logger.debug(f"{label}: poll #{attempt} status={last.status.value}")

        if last.status is JobStatus.DONE:
            if last.result_url:
                return PollOutcome(PollResult.SUCCESS, attempt, last)
            last.error_message = last.error_message or "finished without a result"
            return PollOutcome(PollResult.FAILURE, attempt, last)

        if last.status is JobStatus.FAILED:
            return PollOutcome(PollResult.FAILURE, attempt, last)

    logger.warning(f"{label}: no result after {max_attempts} polls")
    return PollOutcome(PollResult.TIMEOUT, max_attempts, last)
