"""Storyboard data model."""

from typing import List
from pathlib import Path
from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel
import yaml

from .shot import Shot

# Fields a reviewer may edit while the run is paused for review
EDITABLE_FIELDS = {"index", "name", "image_prompt", "motion_prompt", "music_cue"}


class Storyboard(BaseModel):
    """Shot list plus the music brief for the whole track."""

    shots: List[Shot] = Field(default_factory=list, description="Ordered shots")
    music_prompt: str = Field(default="", description="Music generation prompt")
    music_style: str = Field(default="", description="Genre, instruments and mood")

    class Config:
        """Pydantic config."""
        frozen = False
        alias_generator = to_camel
        populate_by_name = True

    def reindexed(self) -> "Storyboard":
        """Return a copy whose shot indices are contiguous and follow list order."""
        shots = [
            shot.model_copy(update={"index": i})
            for i, shot in enumerate(self.shots)
        ]
        return self.model_copy(update={"shots": shots})

    @classmethod
    def from_yaml(cls, path: Path) -> "Storyboard":
        """Load a (possibly edited) storyboard from YAML file."""
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
        shots = [Shot(index=i, **shot) for i, shot in enumerate(data.get("shots", []))]
        return cls(
            shots=shots,
            music_prompt=data.get("music_prompt", ""),
            music_style=data.get("music_style", ""),
        )

    def to_yaml(self, path: Path) -> None:
        """Save the editable parts of the storyboard to YAML file."""
        data = {
            "music_prompt": self.music_prompt,
            "music_style": self.music_style,
            "shots": [
                shot.model_dump(include=EDITABLE_FIELDS - {"index"})
                for shot in self.shots
            ],
        }
        with open(path, "w") as f:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
