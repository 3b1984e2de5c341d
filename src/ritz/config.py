"""Configuration management."""

import os
from pathlib import Path
from pydantic import BaseModel, Field
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value else default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value else default


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if not value:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config(BaseModel):
    """Application configuration."""

    # API Keys
    anthropic_api_key: str = Field(
        default_factory=lambda: os.getenv("ANTHROPIC_API_KEY", "").strip(),
        description="Anthropic API key (storyboard generation)"
    )
    gemini_api_key: str = Field(
        default_factory=lambda: os.getenv("GEMINI_API_KEY", "").strip(),
        description="Gemini API key (image generation)"
    )
    freepik_api_key: str = Field(
        default_factory=lambda: os.getenv("FREEPIK_API_KEY", "").strip(),
        description="Freepik API key (upscaling and fallback animation)"
    )
    kling_access_key: str = Field(
        default_factory=lambda: os.getenv("KLING_ACCESS_KEY", "").strip(),
        description="Kling access key"
    )
    kling_secret_key: str = Field(
        default_factory=lambda: os.getenv("KLING_SECRET_KEY", "").strip(),
        description="Kling secret key used to sign request tokens"
    )
    suno_api_key: str = Field(
        default_factory=lambda: os.getenv("SUNO_API_KEY", "").strip(),
        description="Suno API key (music generation)"
    )

    # Storage
    storage_backend: str = Field(
        default_factory=lambda: os.getenv("RITZ_STORAGE", "local"),
        description="Asset store backend: 'r2' or 'local'"
    )
    workspace: Path = Field(
        default_factory=lambda: Path(os.getenv("RITZ_WORKSPACE", "./ritz-data")),
        description="Root directory for the local asset store"
    )
    key_prefix: str = Field(
        default_factory=lambda: os.getenv("RITZ_KEY_PREFIX", "ritz"),
        description="Namespace prepended to every asset key"
    )
    r2_account_id: str = Field(
        default_factory=lambda: os.getenv("R2_ACCOUNT_ID", ""),
        description="Cloudflare account ID"
    )
    r2_access_key_id: str = Field(
        default_factory=lambda: os.getenv("R2_ACCESS_KEY_ID", ""),
        description="R2 API access key"
    )
    r2_secret_access_key: str = Field(
        default_factory=lambda: os.getenv("R2_SECRET_ACCESS_KEY", ""),
        description="R2 API secret key"
    )
    r2_bucket_name: str = Field(
        default_factory=lambda: os.getenv("R2_BUCKET_NAME", ""),
        description="R2 bucket name"
    )
    r2_public_url: str = Field(
        default_factory=lambda: os.getenv("R2_PUBLIC_URL", ""),
        description="Public base URL serving the bucket"
    )

    # Model settings
    default_model: str = Field(
        default="claude-sonnet-4-5-20250929",
        description="Default Claude model"
    )
    image_model: str = Field(
        default="gemini-3-pro-image-preview",
        description="Gemini image model"
    )

    # Pipeline tunables
    batch_size: int = Field(
        default_factory=lambda: _env_int("RITZ_BATCH_SIZE", 3),
        description="Shots processed concurrently per batch",
        ge=1,
    )
    default_num_shots: int = Field(default=6, description="Storyboard shot count", ge=1)
    clip_duration: int = Field(default=5, description="Requested clip length in seconds")
    shot_retries: int = Field(default=1, description="Automatic full retries per shot", ge=0)
    shot_retry_delay: float = Field(
        default_factory=lambda: _env_float("RITZ_SHOT_RETRY_DELAY", 3.0),
        description="Seconds to wait before retrying a failed shot"
    )
    resume_from_stage: bool = Field(
        default_factory=lambda: _env_bool("RITZ_RESUME_FROM_STAGE"),
        description="Retry a shot from its last completed stage instead of from Image"
    )
    upscale_poll_interval: float = Field(
        default_factory=lambda: _env_float("RITZ_UPSCALE_POLL_INTERVAL", 5.0),
        description="Seconds between upscale polls"
    )
    upscale_max_attempts: int = Field(
        default_factory=lambda: _env_int("RITZ_UPSCALE_MAX_ATTEMPTS", 120),
        description="Maximum upscale polls"
    )
    animate_poll_interval: float = Field(
        default_factory=lambda: _env_float("RITZ_ANIMATE_POLL_INTERVAL", 15.0),
        description="Seconds between animation polls"
    )
    animate_max_attempts: int = Field(
        default_factory=lambda: _env_int("RITZ_ANIMATE_MAX_ATTEMPTS", 80),
        description="Maximum animation polls"
    )
    music_poll_interval: float = Field(
        default_factory=lambda: _env_float("RITZ_MUSIC_POLL_INTERVAL", 10.0),
        description="Seconds between music polls"
    )
    music_max_attempts: int = Field(
        default_factory=lambda: _env_int("RITZ_MUSIC_MAX_ATTEMPTS", 60),
        description="Maximum music polls"
    )

    # Montage settings
    crossfade: float = Field(default=0.7, description="Crossfade length of every join")
    intro_duration: float = Field(default=1.5, description="Solid-color intro length")
    outro_duration: float = Field(default=2.0, description="Solid-color outro length")
    video_fade: float = Field(default=1.2, description="Video fade in/out length")
    audio_fade_in: float = Field(default=1.5, description="Audio fade-in length")
    audio_fade_out: float = Field(default=2.5, description="Audio fade-out length")
    fps: int = Field(default=30, description="Output frame rate")
    background_color: str = Field(default="black", description="Intro/outro color")
    transcode_timeout: float = Field(
        default_factory=lambda: _env_float("RITZ_TRANSCODE_TIMEOUT", 300.0),
        description="Wall-clock budget for one ffmpeg invocation"
    )
    ffmpeg_path: str = Field(
        default_factory=lambda: os.getenv("FFMPEG_PATH", "ffmpeg"),
        description="ffmpeg executable"
    )

    class Config:
        """Pydantic config."""
        frozen = False

    def validate_required(self) -> None:
        """Validate that required credentials are set."""
        if not self.anthropic_api_key:
            raise ValueError("ANTHROPIC_API_KEY not set")

    def validate_generation_required(self) -> None:
        """Validate that every generation provider has credentials.

        Raises:
            ValueError: If any required provider key is missing.
        """
        missing: list[str] = []

        if not self.gemini_api_key:
            missing.append("GEMINI_API_KEY")
        if not self.freepik_api_key:
            missing.append("FREEPIK_API_KEY")
        if not self.suno_api_key:
            missing.append("SUNO_API_KEY")

        if missing:
            raise ValueError(
                f"Missing required provider configuration: {', '.join(missing)}. "
                "Set the corresponding environment variables."
            )

    def validate_r2_required(self) -> None:
        """Validate that R2 storage is configured.

        Raises:
            ValueError: If any required R2 setting is missing.
        """
        missing: list[str] = []

        if not self.r2_account_id:
            missing.append("R2_ACCOUNT_ID")
        if not self.r2_access_key_id:
            missing.append("R2_ACCESS_KEY_ID")
        if not self.r2_secret_access_key:
            missing.append("R2_SECRET_ACCESS_KEY")
        if not self.r2_bucket_name:
            missing.append("R2_BUCKET_NAME")
        if not self.r2_public_url:
            missing.append("R2_PUBLIC_URL")

        if missing:
            raise ValueError(
                f"Missing required R2 configuration: {', '.join(missing)}. "
                "Set the corresponding environment variables."
            )


# Global config instance
config = Config()
