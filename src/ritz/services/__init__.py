"""External service integrations."""

from .anthropic import AnthropicClient
from .base import (
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
from .freepik import FreepikKlingAnimator, FreepikUpscaler
from .gemini import GeminiImageGenerator
from .http import download_bytes
from .kling import KlingAnimator
from .suno import SunoMusicGenerator

__all__ = [
    "AnthropicClient",
    "Animator",
    "ImageAsset",
    "ImageGenerator",
    "JobPoll",
    "JobStatus",
    "MusicGenerator",
    "ReferenceImage",
    "StoryboardGenerator",
    "Upscaler",
    "FreepikKlingAnimator",
    "FreepikUpscaler",
    "GeminiImageGenerator",
    "download_bytes",
    "KlingAnimator",
    "SunoMusicGenerator",
]
