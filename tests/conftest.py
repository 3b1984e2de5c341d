"""Shared fixtures."""

import pytest

from ritz.config import Config
from ritz.storage import LocalAssetStore, ProjectKeys


@pytest.fixture
def settings(tmp_path):
    """Configuration with instant polling and retries."""
    return Config(
        anthropic_api_key="test-key",
        workspace=tmp_path / "store",
        key_prefix="ritz",
        batch_size=3,
        default_num_shots=3,
        shot_retries=1,
        shot_retry_delay=0,
        resume_from_stage=False,
        upscale_poll_interval=0,
        upscale_max_attempts=3,
        animate_poll_interval=0,
        animate_max_attempts=3,
        music_poll_interval=0,
        music_max_attempts=3,
        transcode_timeout=60,
    )


@pytest.fixture
def store(tmp_path):
    return LocalAssetStore(tmp_path / "store")


@pytest.fixture
def keys():
    return ProjectKeys("proj1", "ritz")
