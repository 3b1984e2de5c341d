"""Shot data model."""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel


class ShotState(str, Enum):
    """Per-shot progress through Image -> Upscale -> Animate."""
    PENDING = "pending"
    IMAGE_REQUESTED = "image-requested"
    IMAGE_READY = "image-ready"
    UPSCALE_REQUESTED = "upscale-requested"
    UPSCALE_READY = "upscale-ready"
    ANIMATE_REQUESTED = "animate-requested"
    ANIMATE_READY = "animate-ready"
    FAILED = "failed"


class Shot(BaseModel):
    """One storyboard unit, becoming one video clip."""

    index: int = Field(..., description="Stable 0-based position among shots", ge=0)
    name: str = Field(default="", description="Short label")
    image_prompt: str = Field(default="", description="Image generation prompt")
    motion_prompt: str = Field(default="", description="Camera and motion prompt")
    music_cue: str = Field(default="", description="What the music does here")
    image_url: Optional[str] = Field(None, description="Generated image asset")
    upscaled_url: Optional[str] = Field(None, description="Upscaled image asset")
    video_url: Optional[str] = Field(None, description="Animated clip asset")
    upscale_task_id: Optional[str] = Field(None, description="Upscaler job handle")
    animate_task_id: Optional[str] = Field(None, description="Animator job handle")
    animate_provider: Optional[str] = Field(None, description="Animator that accepted the job")
    state: ShotState = Field(default=ShotState.PENDING, description="Per-shot state")
    failed: bool = Field(default=False, description="Shot ended in failure")
    fail_error: Optional[str] = Field(None, description="Human-readable failure cause")

    class Config:
        """Pydantic config."""
        frozen = False
        alias_generator = to_camel
        populate_by_name = True

    @property
    def is_complete(self) -> bool:
        """A shot with a video asset that has not since failed is terminal-success."""
        return self.video_url is not None and not self.failed

