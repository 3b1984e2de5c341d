"""Per-shot state machine: Image -> Upscale -> Animate."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional, Protocol, Tuple

from ..config import Config, config
from ..errors import (
    PipelineCancelled,
    ProviderError,
    ProviderFailedError,
    ProviderSubmitError,
    ProviderTimeoutError,
    RitzError,
)
from ..models import AspectFormat, Shot, ShotState
from ..services.base import Animator, ImageAsset, ImageGenerator, ReferenceImage, Upscaler
from ..services.http import download_bytes
from ..storage import AssetStore, ProjectKeys
from .polling import PollOutcome, PollResult, poll_until

logger = logging.getLogger(__name__)

Downloader = Callable[[str], Awaitable[bytes]]


class ShotSink(Protocol):
    """Receives field changes for one shot, keyed by shot index."""

    def __call__(self, index: int, **changes: Any) -> None:
        ...


@dataclass
class ShotContext:
    """Project-wide inputs every shot of a run shares."""

    project_id: str
    keys: ProjectKeys
    format: AspectFormat = AspectFormat.TALL
    reference_images: List[ReferenceImage] = field(default_factory=list)


class ShotRunner:
    """Drives one shot through its three stages with local fault isolation.

    Every stage submits a job, polls it to a terminal status and persists
    the result under a deterministic key. Any stage failure retries the
    whole sequence after a short delay; once retries are exhausted the
    shot is marked failed. Nothing raised by a stage escapes ``run``.
    """

    def __init__(
        self,
        store: AssetStore,
        image_generator: ImageGenerator,
        upscaler: Upscaler,
        animators: List[Animator],
        settings: Optional[Config] = None,
        downloader: Downloader = download_bytes,
    ) -> None:
        self.store = store
        self.image_generator = image_generator
        self.upscaler = upscaler
        self.animators = list(animators)
        self.settings = settings or config
        self._download = downloader

    async def run(
        self,
        ctx: ShotContext,
        shot: Shot,
        sink: ShotSink,
        abort: Optional[asyncio.Event] = None,
        from_scratch: bool = False,
    ) -> bool:
        """Run the shot to success or failure.

        Args:
            ctx: Shared project inputs.
            shot: Shot to process. Not mutated; changes go to ``sink``.
            sink: Receives every field change, keyed by shot index.
            abort: When set, the shot stops at its next checkpoint.
            from_scratch: Regenerate every stage even when resuming from the
                last completed stage is enabled.

        Returns:
            True if the shot reached a video asset.
        """
        work = shot.model_copy(deep=True)

        def record(**changes: Any) -> None:
            for name, value in changes.items():
                setattr(work, name, value)
            sink(work.index, **changes)

        record(failed=False, fail_error=None, state=ShotState.PENDING)
        attempts = 1 + self.settings.shot_retries
        reuse = self.settings.resume_from_stage and not from_scratch

        for attempt in range(1, attempts + 1):
            try:
                await self._run_stages(ctx, work, record, abort, reuse)
                logger.info(f"Shot {work.index} complete: {work.video_url}")
                return True

            except PipelineCancelled:
                logger.info(f"Shot {work.index} stopped by abort signal")
                record(state=ShotState.PENDING)
                return False

            # Stage failures never escape the shot
            except Exception as e:
                error = str(e) or type(e).__name__
                if not isinstance(e, RitzError):
                    logger.exception(f"Shot {work.index} hit an unexpected error")
                logger.warning(
                    f"Shot {work.index} attempt {attempt}/{attempts} failed: {error}"
                )
                if attempt < attempts:
                    await asyncio.sleep(self.settings.shot_retry_delay)
                    if abort is not None and abort.is_set():
                        record(state=ShotState.PENDING)
                        return False
                    continue

                # A failed rerun drops any clip from an earlier success
                record(failed=True, fail_error=error, state=ShotState.FAILED, video_url=None)
                return False

        return False

    async def _run_stages(
        self,
        ctx: ShotContext,
        work: Shot,
        record: Callable[..., None],
        abort: Optional[asyncio.Event],
        reuse: bool,
    ) -> None:
        index = work.index
        keys = ctx.keys

        # Image
        fresh_image = False
        if reuse and work.image_url and await self.store.exists(keys.image(index)):
            logger.info(f"Shot {index}: reusing stored image")
            image = await self.store.get(keys.image(index))
        else:
            self._check_abort(abort)
            record(state=ShotState.IMAGE_REQUESTED)
            image = await self.image_generator.generate(
                work.image_prompt, ctx.reference_images, ctx.format.value
            )
            if not image:
                raise ProviderFailedError("empty image payload", provider=self.image_generator.name)
            url = await self.store.put(keys.image(index), image, "image/png")
            fresh_image = True
            record(image_url=url, state=ShotState.IMAGE_READY)

        # Upscale, skipped when its output already exists for this image
        if (
            not fresh_image
            and work.upscaled_url
            and await self.store.exists(keys.upscaled(index))
        ):
            logger.info(f"Shot {index}: reusing stored upscale")
            upscaled = await self.store.get(keys.upscaled(index))
        else:
            self._check_abort(abort)
            record(state=ShotState.UPSCALE_REQUESTED, upscale_task_id=None)
            job_id = await self.upscaler.submit(image)
            record(upscale_task_id=job_id)
            outcome = await poll_until(
                lambda: self.upscaler.poll(job_id),
                self.settings.upscale_poll_interval,
                self.settings.upscale_max_attempts,
                abort,
                label=f"shot {index} upscale",
            )
            upscaled = await self._collect(outcome, self.upscaler.name, "upscale")
            url = await self.store.put(keys.upscaled(index), upscaled, "image/png")
            record(upscaled_url=url, state=ShotState.UPSCALE_READY)

        # Animate
        self._check_abort(abort)
        record(state=ShotState.ANIMATE_REQUESTED, animate_task_id=None, animate_provider=None)
        animator, job_id = await self._submit_animation(
            ImageAsset(url=work.upscaled_url, data=upscaled),
            work.motion_prompt or work.image_prompt,
            index,
        )
        record(animate_task_id=job_id, animate_provider=animator.name)
        outcome = await poll_until(
            lambda: animator.poll(job_id),
            self.settings.animate_poll_interval,
            self.settings.animate_max_attempts,
            abort,
            label=f"shot {index} animate",
        )
        video = await self._collect(outcome, animator.name, "animation")
        url = await self.store.put(keys.video(index), video, "video/mp4")
        record(video_url=url, state=ShotState.ANIMATE_READY)

    async def _submit_animation(
        self, image: ImageAsset, prompt: str, index: int
    ) -> Tuple[Animator, str]:
        """Submit to the first animator in the chain that accepts the job.

        Only submission failures move on to the next animator. Once a job
        is accepted, its provider owns the rest of the attempt.

        Raises:
            ProviderSubmitError: If every animator rejected the submission.
        """
        errors: List[str] = []
        for animator in self.animators:
            try:
                job_id = await animator.submit(image, prompt, self.settings.clip_duration)
            except ProviderError as e:
                logger.warning(f"Shot {index}: {animator.name} rejected submission: {e}")
                errors.append(str(e))
                continue
            logger.info(f"Shot {index}: animating with {animator.name} (job {job_id})")
            return animator, job_id

        detail = "; ".join(errors) if errors else "no animators configured"
        raise ProviderSubmitError(f"every animator failed: {detail}", provider="animate")

    async def _collect(self, outcome: PollOutcome, provider: str, stage: str) -> bytes:
        """Turn a polling outcome into the result's bytes."""
        if outcome.result is PollResult.CANCELLED:
            raise PipelineCancelled(f"{stage} polling cancelled")
        if outcome.result is PollResult.TIMEOUT:
            raise ProviderTimeoutError(
                f"{stage} timed out after {outcome.attempts} polls", provider=provider
            )
        if outcome.result is PollResult.FAILURE:
            raise ProviderFailedError(
                f"{stage} failed: {outcome.error_message or 'unknown error'}", provider=provider
            )
        return await self._download(outcome.result_url)

    @staticmethod
    def _check_abort(abort: Optional[asyncio.Event]) -> None:
        if abort is not None and abort.is_set():
            raise PipelineCancelled("run aborted")
