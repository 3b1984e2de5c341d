"""Filesystem-backed asset store for development and tests."""

import logging
import shutil
from pathlib import Path
from typing import List, Optional

from ..errors import PersistenceError
from .base import AssetStore

logger = logging.getLogger(__name__)


class LocalAssetStore(AssetStore):
    """Asset store rooted at a local directory."""

    def __init__(self, root: Path, public_base: Optional[str] = None) -> None:
        """Initialize the store.

        Args:
            root: Directory holding every key as a relative path.
            public_base: Base URL that serves ``root``. Defaults to file URIs.
        """
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)
        self._public_base = public_base.rstrip("/") if public_base else None

    def _path(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if self.root.resolve() not in path.parents and path != self.root.resolve():
            raise PersistenceError(f"Key escapes the store root: {key}", key=key)
        return path

    def public_url(self, key: str) -> str:
        if self._public_base:
            return f"{self._public_base}/{key}"
        return self._path(key).as_uri()

    async def put(self, key: str, data: bytes, content_type: str) -> str:
        path = self._path(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp = path.with_name(path.name + ".tmp")
            tmp.write_bytes(data)
            tmp.replace(path)
        except OSError as e:
            raise PersistenceError(f"Failed to write {key}: {e}", key=key) from e
        logger.debug(f"Stored {key} ({len(data)} bytes, {content_type})")
        return self.public_url(key)

    async def get(self, key: str) -> bytes:
        path = self._path(key)
        try:
            return path.read_bytes()
        except FileNotFoundError as e:
            raise PersistenceError(f"Missing asset: {key}", key=key) from e
        except OSError as e:
            raise PersistenceError(f"Failed to read {key}: {e}", key=key) from e

    async def exists(self, key: str) -> bool:
        return self._path(key).is_file()

    async def list_prefixes(self, prefix: str) -> List[str]:
        base = self._path(prefix) if prefix else self.root
        if not base.is_dir():
            return []
        return sorted(child.name for child in base.iterdir() if child.is_dir())

    async def delete_prefix(self, prefix: str) -> int:
        base = self._path(prefix)
        if not base.exists():
            return 0
        count = sum(1 for p in base.rglob("*") if p.is_file())
        try:
            shutil.rmtree(base)
        except OSError as e:
            raise PersistenceError(f"Failed to delete {prefix}: {e}", key=prefix) from e
        logger.info(f"Deleted {count} assets under {prefix}")
        return count
