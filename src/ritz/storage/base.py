"""Asset store contract and key layout."""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, List, Optional

from ..errors import PersistenceError

logger = logging.getLogger(__name__)


class ProjectKeys:
    """Deterministic keys for every artifact of one project.

    Keys are hierarchical: ``{prefix}/{project}/{category}/{artifact}``.
    """

    def __init__(self, project_id: str, prefix: str = "ritz") -> None:
        self.project_id = project_id
        self.prefix = prefix.strip("/")

    @property
    def root(self) -> str:
        """Prefix under which all of the project's keys live."""
        if self.prefix:
            return f"{self.prefix}/{self.project_id}/"
        return f"{self.project_id}/"

    def image(self, index: int) -> str:
        return f"{self.root}images/shot_{index}.png"

    def upscaled(self, index: int) -> str:
        return f"{self.root}upscaled/shot_{index}.png"

    def video(self, index: int) -> str:
        return f"{self.root}videos/shot_{index}.mp4"

    def reference(self, index: int) -> str:
        return f"{self.root}refs/ref_{index}.png"

    def music(self) -> str:
        return f"{self.root}music/track.mp3"

    def storyboard(self) -> str:
        return f"{self.root}storyboard.json"

    def project(self) -> str:
        return f"{self.root}project.json"

    def state(self) -> str:
        return f"{self.root}pipeline-state.json"

    def final(self) -> str:
        return f"{self.root}final.mp4"


class AssetStore(ABC):
    """Key/value store for binary blobs and JSON documents."""

    @abstractmethod
    async def put(self, key: str, data: bytes, content_type: str) -> str:
        """Write a blob and return its public URL.

        Raises:
            PersistenceError: If the write fails.
        """
        ...

    @abstractmethod
    async def get(self, key: str) -> bytes:
        """Read a blob.

        Raises:
            PersistenceError: If the key is missing or the read fails.
        """
        ...

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Return whether a key is present."""
        ...

    @abstractmethod
    def public_url(self, key: str) -> str:
        """Return the URL under which a key is served."""
        ...

    @abstractmethod
    async def list_prefixes(self, prefix: str) -> List[str]:
        """Return the names of the immediate children under a prefix."""
        ...

    @abstractmethod
    async def delete_prefix(self, prefix: str) -> int:
        """Delete every key under a prefix and return how many were removed."""
        ...

    async def put_json(self, key: str, obj: Any) -> None:
        """Write a JSON document."""
        payload = json.dumps(obj, indent=2).encode("utf-8")
        await self.put(key, payload, "application/json")

    async def get_json(self, key: str) -> Optional[Any]:
        """Read a JSON document, or None when the key is absent.

        Raises:
            PersistenceError: If the key exists but cannot be read or parsed.
        """
        if not await self.exists(key):
            return None
        raw = await self.get(key)
        try:
            return json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise PersistenceError(f"Corrupt JSON document at {key}: {e}", key=key) from e
