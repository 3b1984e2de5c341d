"""Pipeline orchestrator: storyboard, review pause, shot batches, music."""

import asyncio
import contextlib
import logging
import uuid
from dataclasses import dataclass
from typing import List, Optional, Sequence

from ..agents.base import BaseAgent
from ..config import Config, config
from ..errors import PersistenceError, PipelineCancelled, PipelineError, RitzError
from ..models import (
    AspectFormat,
    PipelineRunState,
    PipelineStage,
    ProjectMeta,
    ProjectStatus,
    Shot,
    ShotState,
    Storyboard,
)
from ..services.base import (
    MusicGenerator,
    ReferenceImage,
    StoryboardGenerator,
    sniff_image_type,
)
from ..services.http import download_bytes
from ..storage import AssetStore, ProjectKeys
from .polling import poll_until
from .progress import STAGE_PROGRESS, batch_progress, stage_for_batch
from .shot import Downloader, ShotContext, ShotRunner
from .state import RunStateWriter

logger = logging.getLogger(__name__)

DEFAULT_MUSIC_STYLE = "Cinematic, Orchestral, Instrumental"


@dataclass
class MontageClip:
    """A finished shot ready for assembly."""

    index: int
    key: str
    url: str


@dataclass
class MontageInputs:
    """Everything the montage assembler needs from a run."""

    project_id: str
    clips: List[MontageClip]
    music_key: Optional[str]
    format: AspectFormat


class PipelineOrchestrator:
    """Runs every shot of a project and the music track to completion.

    The run pauses after the storyboard for human review; ``confirm``
    continues it. Shots go through the ShotRunner in fixed-size batches
    while music generates concurrently. The run state is checkpointed
    after every batch so ``resume`` can pick up only the unfinished shots.
    """

    def __init__(
        self,
        store: AssetStore,
        storyboard_generator: StoryboardGenerator,
        shot_runner: ShotRunner,
        music_generator: Optional[MusicGenerator] = None,
        style_analyzer: Optional[BaseAgent[str, str]] = None,
        settings: Optional[Config] = None,
        downloader: Downloader = download_bytes,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            store: Asset store holding every project artifact.
            storyboard_generator: Produces the shot list.
            shot_runner: Drives single shots through their stages.
            music_generator: Optional music provider. Without one the
                montage is silent.
            style_analyzer: Optional agent turning a reference video
                description into a style analysis (``await run(text)``).
            settings: Configuration. Defaults to the global config.
            downloader: Fetches provider result URLs.
        """
        self.store = store
        self.storyboard_generator = storyboard_generator
        self.shot_runner = shot_runner
        self.music_generator = music_generator
        self.style_analyzer = style_analyzer
        self.settings = settings or config
        self._download = downloader
        self._abort = asyncio.Event()

    def keys(self, project_id: str) -> ProjectKeys:
        return ProjectKeys(project_id, self.settings.key_prefix)

    def abort(self) -> None:
        """Signal the current run to stop at its next checkpoint."""
        logger.info("Abort requested")
        self._abort.set()

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def create_project(
        self,
        theme: str,
        reference_images: Sequence[ReferenceImage] = (),
        aspect: AspectFormat = AspectFormat.TALL,
        num_shots: Optional[int] = None,
        video_description: Optional[str] = None,
        project_id: Optional[str] = None,
    ) -> PipelineRunState:
        """Create a project and generate its storyboard, then pause for review.

        Returns:
            Run state in the StoryboardReview stage.

        Raises:
            PipelineError: If storyboard generation fails. The run is left
                in the Error stage.
            PersistenceError: If the initial project metadata cannot be written.
        """
        project_id = project_id or uuid.uuid4().hex[:12]
        keys = self.keys(project_id)
        num_shots = num_shots or self.settings.default_num_shots
        references = list(reference_images)
        self._abort.clear()

        logger.info(f"Creating project {project_id}: '{theme}' ({aspect.value}, {num_shots} shots)")
        state = PipelineRunState(project_id=project_id, format=aspect)

        async with RunStateWriter(state) as writer:
            self._enter_stage(writer, PipelineStage.UPLOADING)
            ref_urls = [
                await self.store.put(keys.reference(i), ref.data, ref.mime_type)
                for i, ref in enumerate(references)
            ]
            meta = ProjectMeta(
                id=project_id,
                theme=theme,
                ref_urls=ref_urls,
                ref_mime_types=[ref.mime_type for ref in references],
                video_description=video_description,
                format=aspect,
            )
            await self.store.put_json(keys.project(), meta.to_document())

            self._enter_stage(writer, PipelineStage.STORYBOARD)
            await self._checkpoint(writer, keys)

            try:
                analysis = None
                if video_description and self.style_analyzer is not None:
                    analysis = await self.style_analyzer.run(video_description)
                storyboard = await self.storyboard_generator.generate(
                    theme, num_shots, references, analysis
                )
            except RitzError as e:
                message = f"Storyboard generation failed: {e}"
                await self._fail(writer, keys, message)
                raise PipelineError(message) from e

            storyboard = storyboard.reindexed()
            await self._save_storyboard(keys, storyboard)

            writer.update_run(shots=[shot.model_copy(deep=True) for shot in storyboard.shots])
            self._enter_stage(writer, PipelineStage.STORYBOARD_REVIEW)
            await self._checkpoint(writer, keys)
            logger.info(f"Project {project_id}: {len(storyboard.shots)} shots awaiting review")
            return await writer.snapshot()

    async def confirm(
        self, project_id: str, storyboard: Optional[Storyboard] = None
    ) -> PipelineRunState:
        """Accept the reviewed storyboard and generate every shot.

        Args:
            project_id: Project paused in StoryboardReview.
            storyboard: Edited, reordered or trimmed storyboard. Defaults to
                the stored one.

        Returns:
            Run state in the Montage stage.

        Raises:
            PipelineError: If the project is not awaiting review, has no shots,
                or every shot failed.
            PipelineCancelled: If the run was aborted.
        """
        keys = self.keys(project_id)
        state = await self.load_state(project_id)
        if state.stage is not PipelineStage.STORYBOARD_REVIEW:
            raise PipelineError(
                f"Project {project_id} is not awaiting review (stage: {state.stage.value})"
            )

        if storyboard is None:
            storyboard = await self._load_storyboard(keys, state)
        storyboard = storyboard.reindexed()
        if not storyboard.shots:
            raise PipelineError(f"Project {project_id} has no shots to generate")
        await self._save_storyboard(keys, storyboard)

        # Confirmed shots start clean
        state.shots = [
            Shot(
                index=shot.index,
                name=shot.name,
                image_prompt=shot.image_prompt,
                motion_prompt=shot.motion_prompt,
                music_cue=shot.music_cue,
            )
            for shot in storyboard.shots
        ]
        logger.info(f"Project {project_id}: confirmed {len(state.shots)} shots")
        return await self._execute(state, storyboard, list(state.shots))

    async def resume(self, project_id: str) -> PipelineRunState:
        """Continue a checkpointed run with only its unfinished shots.

        Completed shots are left untouched. When every shot is already
        complete the run moves straight to the Montage stage without
        calling any provider.

        Raises:
            PersistenceError: If the checkpoint cannot be read.
            PipelineError: If there is nothing to resume or every shot failed.
        """
        keys = self.keys(project_id)
        state = await self.load_state(project_id)

        if state.stage is PipelineStage.STORYBOARD_REVIEW:
            logger.info(f"Project {project_id} is awaiting storyboard review")
            return state
        if state.stage is PipelineStage.DONE:
            logger.info(f"Project {project_id} is already done")
            return state
        if not state.shots:
            raise PipelineError(f"Project {project_id} has no shots to resume")

        pending = state.incomplete_shots()
        if not pending:
            logger.info(f"Project {project_id}: all {len(state.shots)} shots complete")
            async with RunStateWriter(state) as writer:
                writer.update_run(error=None)
                self._enter_stage(writer, PipelineStage.MONTAGE)
                await self._checkpoint(writer, keys)
                return await writer.snapshot()

        logger.info(
            f"Project {project_id}: resuming {len(pending)} of {len(state.shots)} shots"
        )
        storyboard = await self._load_storyboard(keys, state)
        return await self._execute(state, storyboard, pending)

    async def retry_shot(self, project_id: str, index: int) -> PipelineRunState:
        """Re-run one shot from Image generation, leaving siblings alone.

        Raises:
            PipelineError: If the shot does not exist or the storyboard is
                still under review.
        """
        keys = self.keys(project_id)
        state = await self.load_state(project_id)
        if state.stage is PipelineStage.STORYBOARD_REVIEW:
            raise PipelineError(f"Project {project_id} is still awaiting review")
        try:
            shot = state.shot(index)
        except KeyError:
            raise PipelineError(f"Project {project_id} has no shot {index}")

        self._abort.clear()
        ctx = await self._context(keys, state)

        logger.info(f"Project {project_id}: retrying shot {index}")
        async with RunStateWriter(state) as writer:
            await self.shot_runner.run(
                ctx, shot, writer.update_shot, self._abort, from_scratch=True
            )
            current = await writer.snapshot()
            if not current.complete_shots():
                await self._fail(
                    writer, keys, f"All {len(current.shots)} shots failed for {project_id}"
                )
                return await writer.snapshot()
            if current.stage is PipelineStage.ERROR:
                writer.update_run(error=None)
                self._enter_stage(writer, PipelineStage.MONTAGE)
            await self._checkpoint(writer, keys)
            return await writer.snapshot()

    async def load_state(self, project_id: str) -> PipelineRunState:
        """Read the checkpointed run state.

        Raises:
            PersistenceError: If the store read fails.
            PipelineError: If the project has no run state.
        """
        keys = self.keys(project_id)
        document = await self.store.get_json(keys.state())
        if document is None:
            raise PipelineError(f"No pipeline state for project {project_id}")
        return PipelineRunState.from_document(document)

    async def load_storyboard(self, project_id: str) -> Storyboard:
        """Read the stored storyboard, falling back to the run state's shots."""
        return await self._load_storyboard(self.keys(project_id), await self.load_state(project_id))

    def montage_inputs(self, state: PipelineRunState) -> MontageInputs:
        """Select the successful shots, in order, plus the music track."""
        keys = self.keys(state.project_id)
        clips = [
            MontageClip(index=shot.index, key=keys.video(shot.index), url=shot.video_url)
            for shot in state.complete_shots()
        ]
        return MontageInputs(
            project_id=state.project_id,
            clips=clips,
            music_key=keys.music() if state.music_url else None,
            format=state.format,
        )

    # ------------------------------------------------------------------
    # Run internals
    # ------------------------------------------------------------------

    async def _execute(
        self, state: PipelineRunState, storyboard: Storyboard, pending: List[Shot]
    ) -> PipelineRunState:
        keys = self.keys(state.project_id)
        ctx = await self._context(keys, state)
        meta = await self._load_meta(keys)
        self._abort.clear()

        async with RunStateWriter(state) as writer:
            for shot in pending:
                writer.update_shot(
                    shot.index, failed=False, fail_error=None, state=ShotState.PENDING
                )
            writer.update_run(error=None)
            self._enter_stage(writer, PipelineStage.GENERATING)
            await self._set_project_status(keys, ProjectStatus.GENERATING)
            await self._checkpoint(writer, keys)

            music_task: Optional[asyncio.Task] = None
            if self.music_generator is not None and not state.music_url:
                title = meta.theme if meta else state.project_id
                music_task = asyncio.create_task(
                    self._run_music(writer, keys, storyboard, title)
                )

            try:
                await self._run_batches(ctx, writer, keys, pending)
            except PipelineCancelled:
                await self._stop_music(music_task)
                await self._checkpoint(writer, keys)
                raise

            current = await writer.snapshot()
            if not current.complete_shots():
                await self._stop_music(music_task)
                message = f"All {len(current.shots)} shots failed. Check your API keys."
                await self._fail(writer, keys, message)
                raise PipelineError(message)

            failed = current.failed_shots()
            if failed:
                logger.warning(
                    f"{len(failed)} shot(s) failed: "
                    + ", ".join(f"#{shot.index} ({shot.fail_error})" for shot in failed)
                )

            self._enter_stage(writer, PipelineStage.MUSIC)
            await self._checkpoint(writer, keys)
            if music_task is not None:
                await music_task

            self._enter_stage(writer, PipelineStage.MONTAGE)
            await self._checkpoint(writer, keys)
            return await writer.snapshot()

    async def _run_batches(
        self,
        ctx: ShotContext,
        writer: RunStateWriter,
        keys: ProjectKeys,
        pending: List[Shot],
    ) -> None:
        total = len(pending)
        size = self.settings.batch_size

        for start in range(0, total, size):
            if self._abort.is_set():
                raise PipelineCancelled(f"Run aborted before shot batch at {start}")

            batch = pending[start:start + size]
            writer.update_run(stage=stage_for_batch(start, total))
            logger.info(
                f"Batch {start // size + 1}: shots "
                + ", ".join(str(shot.index) for shot in batch)
            )

            results = await asyncio.gather(
                *(
                    self.shot_runner.run(ctx, shot, writer.update_shot, self._abort)
                    for shot in batch
                ),
                return_exceptions=True,
            )
            for shot, result in zip(batch, results):
                if isinstance(result, BaseException):
                    logger.error(f"Shot {shot.index} crashed: {result!r}")
                    writer.update_shot(
                        shot.index,
                        failed=True,
                        fail_error=str(result) or type(result).__name__,
                        state=ShotState.FAILED,
                    )

            writer.update_run(progress=batch_progress(start + len(batch), total))
            await self._checkpoint(writer, keys)

        if self._abort.is_set():
            raise PipelineCancelled("Run aborted during the last shot batch")

    async def _run_music(
        self,
        writer: RunStateWriter,
        keys: ProjectKeys,
        storyboard: Storyboard,
        title: str,
    ) -> None:
        """Generate the track. Failures only cost the montage its audio."""
        music = self.music_generator
        try:
            job_id = writer.state.music_task_id
            if not job_id:
                prompt = storyboard.music_prompt or f"Cinematic instrumental score for: {title}"
                job_id = await music.submit(
                    prompt, storyboard.music_style or DEFAULT_MUSIC_STYLE, title[:80]
                )
                writer.update_run(music_task_id=job_id)
                logger.info(f"Music submitted to {music.name} (job {job_id})")

            outcome = await poll_until(
                lambda: music.poll(job_id),
                self.settings.music_poll_interval,
                self.settings.music_max_attempts,
                self._abort,
                label="music",
            )
            if not outcome.ok:
                logger.warning(
                    f"Music unavailable ({outcome.result.value}): "
                    f"{outcome.error_message or 'no detail'}"
                )
                return

            data = await self._download(outcome.result_url)
            url = await self.store.put(keys.music(), data, "audio/mpeg")
            writer.update_run(music_url=url)
            logger.info(f"Music ready: {url}")

        except RitzError as e:
            logger.warning(f"Music generation failed, montage will be silent: {e}")

    @staticmethod
    async def _stop_music(task: Optional[asyncio.Task]) -> None:
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    # ------------------------------------------------------------------
    # Persistence helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _enter_stage(writer: RunStateWriter, stage: PipelineStage) -> None:
        changes = {"stage": stage}
        if stage in STAGE_PROGRESS:
            changes["progress"] = STAGE_PROGRESS[stage]
        writer.update_run(**changes)

    async def _checkpoint(self, writer: RunStateWriter, keys: ProjectKeys) -> None:
        """Persist the run state. Best-effort: failures are logged only."""
        snapshot = await writer.snapshot()
        try:
            await self.store.put_json(keys.state(), snapshot.to_document())
        except PersistenceError as e:
            logger.warning(f"Checkpoint write failed for {snapshot.project_id}: {e}")

    async def _fail(self, writer: RunStateWriter, keys: ProjectKeys, message: str) -> None:
        logger.error(message)
        writer.update_run(stage=PipelineStage.ERROR, error=message)
        await self._checkpoint(writer, keys)
        await self._set_project_status(keys, ProjectStatus.ERROR)

    async def _set_project_status(self, keys: ProjectKeys, status: ProjectStatus) -> None:
        try:
            document = await self.store.get_json(keys.project())
            if document is None:
                return
            document["status"] = status.value
            await self.store.put_json(keys.project(), document)
        except PersistenceError as e:
            logger.warning(f"Could not update project status to {status.value}: {e}")

    async def _save_storyboard(self, keys: ProjectKeys, storyboard: Storyboard) -> None:
        await self.store.put_json(
            keys.storyboard(), storyboard.model_dump(mode="json", by_alias=True)
        )

    async def _load_storyboard(
        self, keys: ProjectKeys, state: PipelineRunState
    ) -> Storyboard:
        document = await self.store.get_json(keys.storyboard())
        if document is None:
            return Storyboard(shots=[shot.model_copy(deep=True) for shot in state.shots])
        return Storyboard.model_validate(document)

    async def _load_meta(self, keys: ProjectKeys) -> Optional[ProjectMeta]:
        document = await self.store.get_json(keys.project())
        return ProjectMeta.model_validate(document) if document else None

    async def _context(self, keys: ProjectKeys, state: PipelineRunState) -> ShotContext:
        """Rebuild the shared shot inputs, reloading reference images."""
        meta = await self._load_meta(keys)
        references = []
        if meta is not None:
            for i, _ in enumerate(meta.ref_urls):
                data = await self.store.get(keys.reference(i))
                if i < len(meta.ref_mime_types):
                    mime_type = meta.ref_mime_types[i]
                else:
                    mime_type = sniff_image_type(data)
                references.append(ReferenceImage(data=data, mime_type=mime_type))
        return ShotContext(
            project_id=keys.project_id,
            keys=keys,
            format=state.format,
            reference_images=references,
        )
