"""Contracts for the external generation providers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from ..models import Storyboard


class JobStatus(str, Enum):
    """Normalized status of an asynchronous provider job."""

    QUEUED = "queued"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"


@dataclass
class JobPoll:
    """One poll of a provider job."""

    status: JobStatus
    result_url: Optional[str] = None
    duration: Optional[float] = None
    error_message: Optional[str] = None


@dataclass
class ReferenceImage:
    """User-supplied reference image."""

    data: bytes
    mime_type: str = "image/png"


def sniff_image_type(data: bytes) -> str:
    """Guess an image MIME type from its magic bytes, defaulting to PNG."""
    if data.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if data.startswith(b"RIFF") and data[8:12] == b"WEBP":
        return "image/webp"
    if data.startswith((b"GIF87a", b"GIF89a")):
        return "image/gif"
    return "image/png"


@dataclass
class ImageAsset:
    """A stored image, available both as bytes and as a public URL."""

    url: str
    data: bytes


class StoryboardGenerator(ABC):
    """Turns a theme and reference images into shot descriptions."""

    @abstractmethod
    async def generate(
        self,
        theme: str,
        num_shots: int,
        reference_images: List[ReferenceImage],
        prior_style_analysis: Optional[str] = None,
    ) -> Storyboard:
        """Generate a storyboard.

        Raises:
            ProviderError: On a malformed or refused response.
        """
        ...


class ImageGenerator(ABC):
    """Synthesizes one image from a prompt."""

    name: str = "image"

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        reference_images: List[ReferenceImage],
        aspect_ratio: str,
    ) -> bytes:
        """Return image bytes.

        Raises:
            ProviderError: If no image payload is present in the response.
        """
        ...


class Upscaler(ABC):
    """Asynchronous image upscaling job."""

    name: str = "upscaler"

    @abstractmethod
    async def submit(self, image: bytes) -> str:
        """Submit an image and return the job id."""
        ...

    @abstractmethod
    async def poll(self, job_id: str) -> JobPoll:
        """Return the current job status."""
        ...


class Animator(ABC):
    """Asynchronous image-to-video job. Several form a fallback chain."""

    name: str = "animator"

    @abstractmethod
    async def submit(self, image: ImageAsset, prompt: str, duration: int) -> str:
        """Submit an animation and return the job id."""
        ...

    @abstractmethod
    async def poll(self, job_id: str) -> JobPoll:
        """Return the current job status."""
        ...


class MusicGenerator(ABC):
    """Asynchronous music generation job."""

    name: str = "music"

    @abstractmethod
    async def submit(self, prompt: str, style: str, title: str) -> str:
        """Submit a track request and return the job id."""
        ...

    @abstractmethod
    async def poll(self, job_id: str) -> JobPoll:
        """Return the current job status."""
        ...
