"""Pipeline orchestration core."""

from .polling import PollOutcome, PollResult, poll_until
from .state import RunStateWriter, StateUpdate
from .shot import ShotContext, ShotRunner
from .orchestrator import MontageClip, MontageInputs, PipelineOrchestrator
from .projects import ProjectCatalog, ProjectSummary

__all__ = [
    "PollOutcome",
    "PollResult",
    "poll_until",
    "RunStateWriter",
    "StateUpdate",
    "ShotContext",
    "ShotRunner",
    "MontageClip",
    "MontageInputs",
    "PipelineOrchestrator",
    "ProjectCatalog",
    "ProjectSummary",
]
