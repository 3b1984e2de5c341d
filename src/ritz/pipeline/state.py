"""Single-writer owner of the pipeline run state."""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from ..models import PipelineRunState

logger = logging.getLogger(__name__)


@dataclass
class StateUpdate:
    """A change to one shot (``index`` set) or to the run itself."""

    index: Optional[int]
    changes: Dict[str, Any] = field(default_factory=dict)


class RunStateWriter:
    """Serializes every mutation of a PipelineRunState through one queue.

    Concurrent shot tasks call ``update_shot``; a single consumer task
    applies the updates in arrival order. Use as an async context manager
    so the consumer starts and drains with the run.
    """

    def __init__(self, state: PipelineRunState) -> None:
        self._state = state
        self._queue: "asyncio.Queue[Optional[StateUpdate]]" = asyncio.Queue()
        self._consumer: Optional[asyncio.Task] = None

    @property
    def state(self) -> PipelineRunState:
        """Live state. Read it, never assign to it."""
        return self._state

    async def __aenter__(self) -> "RunStateWriter":
        self._consumer = asyncio.create_task(self._consume())
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self._queue.put(None)
        if self._consumer is not None:
            await self._consumer
            self._consumer = None

    def update_shot(self, index: int, **changes: Any) -> None:
        """Queue field changes for the shot with ``index``."""
        self._queue.put_nowait(StateUpdate(index, changes))

    def update_run(self, **changes: Any) -> None:
        """Queue run-level changes (stage, progress, music fields, error)."""
        self._queue.put_nowait(StateUpdate(None, changes))

    async def flush(self) -> None:
        """Wait until every queued update has been applied."""
        await self._queue.join()

    async def snapshot(self) -> PipelineRunState:
        """Flush, then return a deep copy safe to persist or hand out."""
        await self.flush()
        return self._state.model_copy(deep=True)

    async def _consume(self) -> None:
        while True:
            update = await self._queue.get()
            try:
                if update is None:
                    return
                self._apply(update)
            finally:
                self._queue.task_done()

    def _apply(self, update: StateUpdate) -> None:
        if update.index is None:
            target = self._state
            changes = dict(update.changes)
            if "progress" in changes:
                # Progress never moves backwards within a run
                changes["progress"] = max(self._state.progress, int(changes["progress"]))
        else:
            try:
                target = self._state.shot(update.index)
            except KeyError:
                logger.error(f"Dropping update for unknown shot {update.index}")
                return
            changes = update.changes

        for name, value in changes.items():
            setattr(target, name, value)
        self._state.updated_at = datetime.now(timezone.utc)
