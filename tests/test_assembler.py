"""Tests for final montage assembly."""

from pathlib import Path

import pytest

from ritz.editor import MontageAssembler
from ritz.errors import PersistenceError, PipelineError, TranscodeError
from ritz.models import (
    AspectFormat,
    PipelineRunState,
    PipelineStage,
    ProjectMeta,
    ProjectStatus,
    Shot,
    ShotState,
)


class FakeProber:
    def __init__(self, video=5.0, audio=15.0, audio_error=False):
        self.video = video
        self.audio = audio
        self.audio_error = audio_error

    async def video_duration(self, path):
        return self.video

    async def audio_duration(self, path):
        if self.audio_error:
            raise TranscodeError(f"Cannot probe {path}")
        return self.audio


class FakeTranscoder:
    def __init__(self, error=None):
        self.error = error
        self.cmd = None
        self.timeout = None
        self.script = None

    async def __call__(self, cmd, timeout):
        self.cmd = cmd
        self.timeout = timeout
        self.script = Path(cmd[cmd.index("-filter_complex_script") + 1]).read_text()
        if self.error is not None:
            raise self.error
        Path(cmd[-1]).write_bytes(b"final-video")


async def _seed(store, keys, clips=4, failed=(), music=True):
    shots = []
    for i in range(clips):
        if i in failed:
            shots.append(Shot(index=i, failed=True, state=ShotState.FAILED, fail_error="boom"))
            continue
        url = await store.put(keys.video(i), f"clip-{i}".encode(), "video/mp4")
        shots.append(Shot(index=i, video_url=url, state=ShotState.ANIMATE_READY))

    music_url = None
    if music:
        music_url = await store.put(keys.music(), b"track", "audio/mpeg")

    state = PipelineRunState(
        project_id=keys.project_id,
        stage=PipelineStage.MONTAGE,
        shots=shots,
        music_url=music_url,
        format=AspectFormat.WIDE,
        progress=85,
    )
    await store.put_json(keys.state(), state.to_document())
    meta = ProjectMeta(id=keys.project_id, theme="lighthouse", status=ProjectStatus.GENERATING)
    await store.put_json(keys.project(), meta.to_document())


class TestAssemble:
    async def test_successful_assembly(self, store, settings, keys):
        await _seed(store, keys)
        transcoder = FakeTranscoder()
        assembler = MontageAssembler(store, settings, FakeProber(), transcoder)

        result = await assembler.assemble(keys.project_id)

        assert result.duration == pytest.approx(20.0)
        assert result.clips == 4
        assert result.has_audio
        assert result.format is AspectFormat.WIDE
        assert result.size == len(b"final-video")
        assert await store.get(keys.final()) == b"final-video"

        assert "aloop=loop=1:" in transcoder.script
        assert "scale=1920:1080" in transcoder.script
        assert transcoder.timeout == pytest.approx(200.0)

        state = PipelineRunState.from_document(await store.get_json(keys.state()))
        assert state.stage is PipelineStage.DONE
        assert state.progress == 100
        meta = await store.get_json(keys.project())
        assert meta["status"] == ProjectStatus.FINALIZED.value
        assert meta["finalVideoUrl"] == result.url

    async def test_failed_shots_are_skipped(self, store, settings, keys):
        await _seed(store, keys, clips=4, failed=(1,))
        transcoder = FakeTranscoder()
        result = await MontageAssembler(store, settings, FakeProber(), transcoder).assemble(
            keys.project_id
        )

        assert result.clips == 3
        inputs = [transcoder.cmd[i + 1] for i, arg in enumerate(transcoder.cmd) if arg == "-i"]
        clip_inputs = [Path(p).name for p in inputs if p.endswith(".mp4")]
        assert clip_inputs == ["shot_0.mp4", "shot_2.mp4", "shot_3.mp4"]

    async def test_without_music(self, store, settings, keys):
        await _seed(store, keys, music=False)
        transcoder = FakeTranscoder()
        result = await MontageAssembler(store, settings, FakeProber(), transcoder).assemble(
            keys.project_id
        )

        assert not result.has_audio
        assert "-an" in transcoder.cmd

    async def test_unreadable_music_gives_silent_video(self, store, settings, keys):
        await _seed(store, keys)
        transcoder = FakeTranscoder()
        prober = FakeProber(audio_error=True)
        result = await MontageAssembler(store, settings, prober, transcoder).assemble(
            keys.project_id
        )

        assert not result.has_audio
        assert "[aout]" not in transcoder.cmd

    async def test_transcode_failure(self, store, settings, keys):
        await _seed(store, keys)
        transcoder = FakeTranscoder(error=TranscodeError("ffmpeg exited with code 1", "bad filter"))
        assembler = MontageAssembler(store, settings, FakeProber(), transcoder)

        with pytest.raises(TranscodeError, match="bad filter"):
            await assembler.assemble(keys.project_id)

        state = PipelineRunState.from_document(await store.get_json(keys.state()))
        assert state.stage is PipelineStage.ERROR
        assert state.error.startswith("Montage failed: ffmpeg exited with code 1")
        # Shot outputs survive for another attempt
        assert await store.exists(keys.video(0))
        assert not await store.exists(keys.final())

    async def test_clip_shorter_than_crossfade(self, store, settings, keys):
        await _seed(store, keys)
        transcoder = FakeTranscoder()
        assembler = MontageAssembler(store, settings, FakeProber(video=0.5), transcoder)

        with pytest.raises(PipelineError, match="not longer than the 0.7s crossfade"):
            await assembler.assemble(keys.project_id)

        assert transcoder.cmd is None
        state = PipelineRunState.from_document(await store.get_json(keys.state()))
        assert state.stage is PipelineStage.ERROR
        assert "crossfade" in state.error

    async def test_missing_clip_asset(self, store, settings, keys):
        await _seed(store, keys)
        (store.root / keys.video(2)).unlink()
        assembler = MontageAssembler(store, settings, FakeProber(), FakeTranscoder())

        with pytest.raises(PersistenceError, match="shot_2.mp4"):
            await assembler.assemble(keys.project_id)

        state = PipelineRunState.from_document(await store.get_json(keys.state()))
        assert state.stage is PipelineStage.ERROR
        assert state.error.startswith("Montage failed: Missing asset")

    async def test_no_finished_clips(self, store, settings, keys):
        await _seed(store, keys, clips=2, failed=(0, 1))

        with pytest.raises(PipelineError, match="no finished clips"):
            await MontageAssembler(store, settings, FakeProber(), FakeTranscoder()).assemble(
                keys.project_id
            )

    async def test_missing_project(self, store, settings):
        with pytest.raises(PipelineError, match="No pipeline state"):
            await MontageAssembler(store, settings, FakeProber(), FakeTranscoder()).assemble(
                "ghost"
            )
