"""Data models for the pipeline."""

from .shot import Shot, ShotState
from .storyboard import Storyboard
from .pipeline import AspectFormat, PipelineStage, PipelineRunState
from .project import ProjectMeta, ProjectStatus

__all__ = [
    "Shot",
    "ShotState",
    "Storyboard",
    "AspectFormat",
    "PipelineStage",
    "PipelineRunState",
    "ProjectMeta",
    "ProjectStatus",
]
