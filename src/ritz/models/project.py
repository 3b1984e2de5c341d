"""Project metadata model."""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from .pipeline import AspectFormat


class ProjectStatus(str, Enum):
    """Coarse status label shown in project listings."""
    CREATED = "created"
    GENERATING = "generating"
    FINALIZED = "finalized"
    ERROR = "error"


class ProjectMeta(BaseModel):
    """Static project metadata."""

    id: str = Field(..., description="Project identifier")
    theme: str = Field(..., description="Creative theme")
    ref_urls: List[str] = Field(default_factory=list, description="Reference image assets")
    ref_mime_types: List[str] = Field(
        default_factory=list, description="MIME type of each reference image"
    )
    video_description: Optional[str] = Field(None, description="Reference video description")
    format: AspectFormat = Field(default=AspectFormat.TALL, description="Target aspect ratio")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation time"
    )
    status: ProjectStatus = Field(default=ProjectStatus.CREATED, description="Status label")
    final_video_url: Optional[str] = Field(None, description="Final montage asset")

    class Config:
        """Pydantic config."""
        frozen = False
        alias_generator = to_camel
        populate_by_name = True

    def to_document(self) -> dict:
        """Serialize for the asset store."""
        return self.model_dump(mode="json", by_alias=True)
