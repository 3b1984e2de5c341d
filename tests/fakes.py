"""In-memory stand-ins for the generation providers."""

import asyncio
from typing import Callable, Iterable, List, Optional, Set

from ritz.errors import ProviderFailedError, ProviderSubmitError
from ritz.models import Shot, Storyboard
from ritz.services.base import (
    Animator,
    ImageAsset,
    ImageGenerator,
    JobPoll,
    JobStatus,
    MusicGenerator,
    ReferenceImage,
    StoryboardGenerator,
    Upscaler,
)


async def fake_download(url: str) -> bytes:
    return f"bytes:{url}".encode()


class FakeStoryboard(StoryboardGenerator):
    def __init__(self, count: int = 3, error: Optional[Exception] = None) -> None:
        self.count = count
        self.error = error
        self.calls: List[dict] = []

    async def generate(
        self,
        theme: str,
        num_shots: int,
        reference_images: List[ReferenceImage],
        prior_style_analysis: Optional[str] = None,
    ) -> Storyboard:
        self.calls.append({
            "theme": theme,
            "num_shots": num_shots,
            "refs": len(reference_images),
            "style": prior_style_analysis,
        })
        if self.error is not None:
            raise self.error
        return Storyboard(
            shots=[
                Shot(
                    index=i,
                    name=f"shot {i}",
                    image_prompt=f"prompt {i}",
                    motion_prompt=f"motion {i}",
                )
                for i in range(self.count)
            ],
            music_prompt="[Intro] soft strings",
            music_style="Cinematic, Orchestral",
        )


class FakeImageGenerator(ImageGenerator):
    name = "fake-image"

    def __init__(
        self,
        fail_on: Iterable[str] = (),
        fail_times: int = 0,
        on_generate: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.fail_on = set(fail_on)
        self.fail_times = fail_times
        self.on_generate = on_generate
        self.calls: List[str] = []
        self.reference_types: List[str] = []
        self.active = 0
        self.peak = 0

    async def generate(
        self,
        prompt: str,
        reference_images: List[ReferenceImage],
        aspect_ratio: str,
    ) -> bytes:
        self.calls.append(prompt)
        self.reference_types.extend(ref.mime_type for ref in reference_images)
        if self.on_generate is not None:
            self.on_generate(prompt)
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            await asyncio.sleep(0)
        finally:
            self.active -= 1

        if prompt in self.fail_on:
            raise ProviderFailedError("no image returned", provider=self.name)
        if self.fail_times > 0:
            self.fail_times -= 1
            raise ProviderFailedError("temporary outage", provider=self.name)
        return f"image:{prompt}".encode()


class FakeUpscaler(Upscaler):
    name = "fake-upscaler"

    def __init__(self) -> None:
        self.submitted: List[bytes] = []

    async def submit(self, image: bytes) -> str:
        self.submitted.append(image)
        return f"up-{len(self.submitted)}"

    async def poll(self, job_id: str) -> JobPoll:
        return JobPoll(JobStatus.DONE, result_url=f"fake://upscaled/{job_id}")


class FakeAnimator(Animator):
    def __init__(
        self,
        name: str,
        reject: bool = False,
        fail_render: bool = False,
        never_finish: bool = False,
        fail_prompts: Iterable[str] = (),
    ) -> None:
        self.name = name
        self.fail_prompts = set(fail_prompts)
        self.failing_jobs: Set[str] = set()
        self.reject = reject
        self.fail_render = fail_render
        self.never_finish = never_finish
        self.submissions: List[ImageAsset] = []

    async def submit(self, image: ImageAsset, prompt: str, duration: int) -> str:
        self.submissions.append(image)
        if self.reject:
            raise ProviderSubmitError("submission rejected", provider=self.name)
        job_id = f"{self.name}-{len(self.submissions)}"
        if prompt in self.fail_prompts:
            self.failing_jobs.add(job_id)
        return job_id

    async def poll(self, job_id: str) -> JobPoll:
        if self.never_finish:
            return JobPoll(JobStatus.RUNNING)
        if self.fail_render or job_id in self.failing_jobs:
            return JobPoll(JobStatus.FAILED, error_message="render failed")
        return JobPoll(JobStatus.DONE, result_url=f"fake://video/{job_id}")


class FakeMusic(MusicGenerator):
    name = "fake-music"

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.submitted: List[dict] = []

    async def submit(self, prompt: str, style: str, title: str) -> str:
        self.submitted.append({"prompt": prompt, "style": style, "title": title})
        return f"music-{len(self.submitted)}"

    async def poll(self, job_id: str) -> JobPoll:
        if self.fail:
            return JobPoll(JobStatus.FAILED, error_message="quota exceeded")
        return JobPoll(JobStatus.DONE, result_url=f"fake://music/{job_id}", duration=95.0)
