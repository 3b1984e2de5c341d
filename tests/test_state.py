"""Tests for the single-writer run state."""

import asyncio

from ritz.models import PipelineRunState, PipelineStage, Shot, ShotState
from ritz.pipeline import RunStateWriter


def _state(count=3):
    return PipelineRunState(
        project_id="proj1",
        shots=[Shot(index=i, name=f"shot {i}") for i in range(count)],
    )


class TestRunStateWriter:
    async def test_concurrent_shot_updates_all_land(self):
        state = _state()

        async def worker(writer, index):
            for step in (ShotState.IMAGE_REQUESTED, ShotState.IMAGE_READY):
                writer.update_shot(index, state=step)
                await asyncio.sleep(0)
            writer.update_shot(index, video_url=f"url-{index}", state=ShotState.ANIMATE_READY)

        async with RunStateWriter(state) as writer:
            await asyncio.gather(*(worker(writer, i) for i in range(3)))
            snapshot = await writer.snapshot()

        assert [shot.video_url for shot in snapshot.shots] == ["url-0", "url-1", "url-2"]
        assert all(shot.state is ShotState.ANIMATE_READY for shot in snapshot.shots)

    async def test_progress_never_moves_backwards(self):
        async with RunStateWriter(_state()) as writer:
            writer.update_run(progress=40, stage=PipelineStage.UPSCALING)
            writer.update_run(progress=16, stage=PipelineStage.ANIMATING)
            snapshot = await writer.snapshot()

        assert snapshot.progress == 40
        assert snapshot.stage is PipelineStage.ANIMATING

    async def test_unknown_shot_is_dropped(self):
        async with RunStateWriter(_state(2)) as writer:
            writer.update_shot(7, failed=True)
            writer.update_shot(1, failed=True)
            snapshot = await writer.snapshot()

        assert [shot.failed for shot in snapshot.shots] == [False, True]

    async def test_snapshot_is_a_copy(self):
        async with RunStateWriter(_state(1)) as writer:
            snapshot = await writer.snapshot()
            snapshot.shots[0].name = "edited"
            writer.update_run(error="boom")
            later = await writer.snapshot()

        assert later.shots[0].name == "shot 0"
        assert later.error == "boom"
        assert snapshot.error is None

    async def test_exit_drains_queue(self):
        state = _state(1)
        async with RunStateWriter(state) as writer:
            writer.update_shot(0, image_url="img")

        assert state.shots[0].image_url == "img"
