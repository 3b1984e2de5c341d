"""Montage planning and assembly."""

from .montage import (
    TRANSITIONS,
    Join,
    MediaClip,
    MontagePlan,
    build_montage_plan,
    ffmpeg_command,
)
from .transcoder import run_ffmpeg
from .probe import MediaProber, get_audio_duration, get_video_duration
from .assembler import AssemblyResult, MontageAssembler

__all__ = [
    # Montage
    "TRANSITIONS",
    "Join",
    "MediaClip",
    "MontagePlan",
    "build_montage_plan",
    "ffmpeg_command",
    # Transcoder
    "run_ffmpeg",
    # Probe
    "MediaProber",
    "get_audio_duration",
    "get_video_duration",
    # Assembly
    "AssemblyResult",
    "MontageAssembler",
]
