"""Asset store selection from configuration."""

from ..config import config
from .base import AssetStore
from .local import LocalAssetStore
from .r2 import R2AssetStore


def create_store() -> AssetStore:
    """Build the store named by ``RITZ_STORAGE``.

    Raises:
        ValueError: If the backend is unknown or R2 is not configured.
    """
    backend = config.storage_backend.lower()
    if backend == "local":
        return LocalAssetStore(config.workspace)
    if backend == "r2":
        config.validate_r2_required()
        return R2AssetStore()
    raise ValueError(f"Unknown storage backend: {config.storage_backend}")
