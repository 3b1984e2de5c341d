"""Media duration probing."""

import asyncio
import logging
from pathlib import Path

from moviepy import AudioFileClip, VideoFileClip

from ..errors import TranscodeError

logger = logging.getLogger(__name__)


def get_video_duration(video_path: Path) -> float:
    """Get the duration of a video file.

    Args:
        video_path: Path to video file.

    Returns:
        Duration in seconds.

    Raises:
        TranscodeError: If the file cannot be read or reports no duration.
    """
    try:
        clip = VideoFileClip(str(video_path), audio=False)
    except (OSError, KeyError, ValueError) as e:
        raise TranscodeError(f"Cannot probe {video_path}", diagnostics=str(e)) from e

    duration = clip.duration
    clip.close()

    if not duration or duration <= 0:
        raise TranscodeError(f"No duration reported for {video_path}")
    return float(duration)


def get_audio_duration(audio_path: Path) -> float:
    """Get the duration of an audio file.

    Args:
        audio_path: Path to audio file.

    Returns:
        Duration in seconds.

    Raises:
        TranscodeError: If the file cannot be read or reports no duration.
    """
    try:
        audio = AudioFileClip(str(audio_path))
    except (OSError, KeyError, ValueError) as e:
        raise TranscodeError(f"Cannot probe {audio_path}", diagnostics=str(e)) from e

    duration = audio.duration
    audio.close()

    if not duration or duration <= 0:
        raise TranscodeError(f"No duration reported for {audio_path}")
    return float(duration)


class MediaProber:
    """Measures real clip and track durations off the event loop."""

    async def video_duration(self, path: Path) -> float:
        return await asyncio.to_thread(get_video_duration, path)

    async def audio_duration(self, path: Path) -> float:
        return await asyncio.to_thread(get_audio_duration, path)
