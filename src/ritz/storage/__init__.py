"""Durable asset storage."""

from .base import AssetStore, ProjectKeys
from .local import LocalAssetStore
from .r2 import R2AssetStore
from .factory import create_store

__all__ = ["AssetStore", "ProjectKeys", "LocalAssetStore", "R2AssetStore", "create_store"]
