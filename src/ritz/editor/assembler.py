"""Final montage assembly for a project."""

import logging
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, List, Optional

from ..config import Config, config
from ..errors import PersistenceError, PipelineError, TranscodeError
from ..models import AspectFormat, PipelineRunState, PipelineStage, ProjectStatus
from ..storage import AssetStore, ProjectKeys
from .montage import MediaClip, MontagePlan, build_montage_plan, ffmpeg_command
from .probe import MediaProber
from .transcoder import run_ffmpeg

logger = logging.getLogger(__name__)

# Transcode budget per second of output, on top of the configured floor
TIMEOUT_PER_SECOND = 10.0

Transcoder = Callable[[List[str], float], Awaitable[None]]


@dataclass
class AssemblyResult:
    """Outcome of a successful assembly."""

    url: str
    duration: float
    clips: int
    format: AspectFormat
    has_audio: bool
    size: int


class MontageAssembler:
    """Stitches a project's finished clips and music into ``final.mp4``.

    Reads the pipeline state document (the most current record of the
    run), downloads the successful clips, probes their real durations,
    builds the crossfade plan and runs ffmpeg once. A transcode failure
    leaves every shot output in place so assembly can simply be retried.
    """

    def __init__(
        self,
        store: AssetStore,
        settings: Optional[Config] = None,
        prober: Optional[MediaProber] = None,
        transcoder: Transcoder = run_ffmpeg,
    ) -> None:
        self.store = store
        self.settings = settings or config
        self.prober = prober or MediaProber()
        self._transcode = transcoder

    def keys(self, project_id: str) -> ProjectKeys:
        return ProjectKeys(project_id, self.settings.key_prefix)

    async def assemble(self, project_id: str) -> AssemblyResult:
        """Assemble and upload the final video.

        Raises:
            PipelineError: If there is no run state, no finished clip, or a
                clip is too short to crossfade.
            TranscodeError: If probing or ffmpeg fails.
            PersistenceError: If a clip cannot be read from the store.

        Every failure after planning starts moves the run to the Error
        stage with the diagnostic message.
        """
        keys = self.keys(project_id)
        document = await self.store.get_json(keys.state())
        if document is None:
            raise PipelineError(f"No pipeline state for project {project_id}")
        state = PipelineRunState.from_document(document)

        shots = state.complete_shots()
        if not shots:
            raise PipelineError(f"Project {project_id} has no finished clips to assemble")

        logger.info(
            f"Assembling {project_id}: {len(shots)} clips, format={state.format.value}"
        )
        await self._save_state(keys, state, PipelineStage.MONTAGE)

        with tempfile.TemporaryDirectory(prefix="ritz-montage-") as tmp:
            workdir = Path(tmp)
            try:
                plan = await self._plan(keys, state, workdir)
                output = workdir / "final.mp4"
                script = workdir / "filter.txt"
                script.write_text(plan.filter_script)

                cmd = ffmpeg_command(plan, output, script, self.settings.ffmpeg_path)
                timeout = max(
                    self.settings.transcode_timeout, plan.total_duration * TIMEOUT_PER_SECOND
                )
                await self._transcode(cmd, timeout)

                if not output.is_file() or output.stat().st_size == 0:
                    raise TranscodeError("ffmpeg reported success but wrote no output")
                data = output.read_bytes()
            except (TranscodeError, PersistenceError, ValueError) as e:
                state.error = f"Montage failed: {e}"
                await self._save_state(keys, state, PipelineStage.ERROR)
                if isinstance(e, ValueError):
                    raise PipelineError(str(e)) from e
                raise

        url = await self.store.put(keys.final(), data, "video/mp4")
        await self._mark_finalized(keys, url)

        state.error = None
        state.progress = 100
        await self._save_state(keys, state, PipelineStage.DONE)

        logger.info(f"Montage ready: {url} ({plan.total_duration:.2f}s)")
        return AssemblyResult(
            url=url,
            duration=round(plan.total_duration, 2),
            clips=len(plan.clips),
            format=state.format,
            has_audio=plan.has_audio,
            size=len(data),
        )

    async def _plan(
        self, keys: ProjectKeys, state: PipelineRunState, workdir: Path
    ) -> MontagePlan:
        """Download inputs, probe them and build the plan."""
        clips: List[MediaClip] = []
        for shot in state.complete_shots():
            path = workdir / f"shot_{shot.index}.mp4"
            path.write_bytes(await self.store.get(keys.video(shot.index)))
            duration = await self.prober.video_duration(path)
            logger.debug(f"Shot {shot.index}: {duration:.3f}s")
            clips.append(MediaClip(path, duration))

        track = await self._load_track(keys, state, workdir)
        plan = build_montage_plan(clips, track, state.format, self.settings)
        logger.info(
            f"Plan: {len(plan.joins)} joins, total {plan.total_duration:.3f}s, "
            f"audio={'looped x' + str(plan.audio_loops) if plan.audio_loops else plan.has_audio}"
        )
        return plan

    async def _load_track(
        self, keys: ProjectKeys, state: PipelineRunState, workdir: Path
    ) -> Optional[MediaClip]:
        """Fetch and probe the music track. Any problem means a silent montage."""
        if not state.music_url:
            logger.info("No music track, assembling without audio")
            return None

        try:
            data = await self.store.get(keys.music())
        except PersistenceError as e:
            logger.warning(f"Music track unavailable, assembling without audio: {e}")
            return None

        path = workdir / "track.mp3"
        path.write_bytes(data)
        try:
            duration = await self.prober.audio_duration(path)
        except TranscodeError as e:
            logger.warning(f"Could not probe music track, assembling without audio: {e}")
            return None
        return MediaClip(path, duration)

    async def _save_state(
        self, keys: ProjectKeys, state: PipelineRunState, stage: PipelineStage
    ) -> None:
        state.stage = stage
        try:
            await self.store.put_json(keys.state(), state.to_document())
        except PersistenceError as e:
            logger.warning(f"Could not record stage {stage.value}: {e}")

    async def _mark_finalized(self, keys: ProjectKeys, url: str) -> None:
        document = await self.store.get_json(keys.project())
        if document is None:
            return
        document["status"] = ProjectStatus.FINALIZED.value
        document["finalVideoUrl"] = url
        await self.store.put_json(keys.project(), document)
