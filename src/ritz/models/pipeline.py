"""Pipeline run state model."""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Tuple
from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from .shot import Shot


class PipelineStage(str, Enum):
    """Project-wide pipeline stage."""
    IDLE = "idle"
    UPLOADING = "uploading"
    STORYBOARD = "storyboard"
    STORYBOARD_REVIEW = "storyboard-review"
    GENERATING = "generating"
    UPSCALING = "upscaling"
    ANIMATING = "animating"
    MUSIC = "music"
    MONTAGE = "montage"
    DONE = "done"
    ERROR = "error"


class AspectFormat(str, Enum):
    """Target aspect ratio of the final video."""
    WIDE = "16:9"
    TALL = "9:16"
    SQUARE = "1:1"

    @property
    def resolution(self) -> Tuple[int, int]:
        """Return (width, height) in pixels."""
        if self is AspectFormat.TALL:
            return (1080, 1920)
        if self is AspectFormat.SQUARE:
            return (1080, 1080)
        return (1920, 1080)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PipelineRunState(BaseModel):
    """Checkpointed state of one project's run."""

    project_id: str = Field(..., description="Project identifier")
    stage: PipelineStage = Field(default=PipelineStage.IDLE, description="Current stage")
    shots: List[Shot] = Field(default_factory=list, description="Ordered shots")
    music_task_id: Optional[str] = Field(None, description="Music job handle")
    music_url: Optional[str] = Field(None, description="Final music asset")
    progress: int = Field(default=0, description="Advisory progress percentage", ge=0, le=100)
    format: AspectFormat = Field(default=AspectFormat.TALL, description="Target aspect ratio")
    error: Optional[str] = Field(None, description="Message for the Error stage")
    updated_at: datetime = Field(default_factory=_utcnow, description="Last mutation time")

    class Config:
        """Pydantic config."""
        frozen = False
        alias_generator = to_camel
        populate_by_name = True

    def shot(self, index: int) -> Shot:
        """Return the shot with the given index.

        Raises:
            KeyError: If no shot has that index.
        """
        for shot in self.shots:
            if shot.index == index:
                return shot
        raise KeyError(f"No shot with index {index}")

    def complete_shots(self) -> List[Shot]:
        """Shots that reached a final video asset, in montage order."""
        return [shot for shot in self.shots if shot.is_complete]

    def incomplete_shots(self) -> List[Shot]:
        """Shots that still need processing."""
        return [shot for shot in self.shots if not shot.is_complete]

    def failed_shots(self) -> List[Shot]:
        """Shots that ended in failure."""
        return [shot for shot in self.shots if shot.failed]

    def to_document(self) -> dict:
        """Serialize for the asset store."""
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_document(cls, data: dict) -> "PipelineRunState":
        """Rebuild from an asset store document."""
        return cls.model_validate(data)
