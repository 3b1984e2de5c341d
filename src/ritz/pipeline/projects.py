"""Project listing and deletion."""

import logging
from dataclasses import dataclass
from typing import List, Optional

from ..config import Config, config
from ..errors import PersistenceError
from ..models import PipelineRunState, ProjectMeta
from ..storage import AssetStore, ProjectKeys

logger = logging.getLogger(__name__)


@dataclass
class ProjectSummary:
    """One row of the project listing."""

    id: str
    theme: str
    status: str
    stage: Optional[str] = None
    progress: Optional[int] = None
    final_video_url: Optional[str] = None
    created_at: Optional[str] = None


class ProjectCatalog:
    """Lists and deletes projects in an asset store."""

    def __init__(self, store: AssetStore, settings: Optional[Config] = None) -> None:
        self.store = store
        self.settings = settings or config

    @property
    def prefix(self) -> str:
        return f"{self.settings.key_prefix.strip('/')}/" if self.settings.key_prefix else ""

    async def list_projects(self) -> List[ProjectSummary]:
        """Summaries for every project, newest first.

        The pipeline state document wins over project metadata for the
        stage and progress, being written more often.
        """
        summaries: List[ProjectSummary] = []
        for project_id in await self.store.list_prefixes(self.prefix):
            summaries.append(await self._summarize(project_id))
        summaries.sort(key=lambda s: s.created_at or "", reverse=True)
        return summaries

    async def _summarize(self, project_id: str) -> ProjectSummary:
        keys = ProjectKeys(project_id, self.settings.key_prefix)
        try:
            meta_doc = await self.store.get_json(keys.project())
            state_doc = await self.store.get_json(keys.state())
        except PersistenceError as e:
            logger.warning(f"Could not read project {project_id}: {e}")
            return ProjectSummary(id=project_id, theme="Error loading project", status="error")

        if meta_doc is None:
            summary = ProjectSummary(id=project_id, theme="Unknown", status="unknown")
        else:
            meta = ProjectMeta.model_validate(meta_doc)
            summary = ProjectSummary(
                id=project_id,
                theme=meta.theme,
                status=meta.status.value,
                final_video_url=meta.final_video_url,
                created_at=meta.created_at.isoformat(),
            )

        if state_doc is not None:
            state = PipelineRunState.from_document(state_doc)
            summary.stage = state.stage.value
            summary.progress = state.progress
        return summary

    async def delete_project(self, project_id: str) -> int:
        """Delete every asset of a project and return how many were removed."""
        keys = ProjectKeys(project_id, self.settings.key_prefix)
        return await self.store.delete_prefix(keys.root)
