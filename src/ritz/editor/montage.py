"""Crossfade montage planning.

Builds the complete composition for one assembly run: normalized inputs,
the xfade chain between intro, clips and outro, video fades, and the
looped/trimmed audio track. Every offset and fade timestamp is derived
from one running accumulator so video and audio agree on the length.
"""

import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

from ..config import Config, config
from ..models import AspectFormat

# Rotating palette for clip-to-clip joins
TRANSITIONS = ("fade", "dissolve", "fadeblack", "fadewhite", "slideleft")

# Intro and outro joins always use a plain fade
EDGE_TRANSITION = "fade"

# Largest sample count ffmpeg's aloop accepts, i.e. the whole track
ALOOP_SIZE = 2147483647


def _ts(value: float) -> str:
    """Format a timestamp with millisecond precision."""
    return f"{value:.3f}"


@dataclass
class MediaClip:
    """A local media file and its probed duration in seconds."""

    path: Path
    duration: float


@dataclass
class Join:
    """One xfade instruction."""

    left: str
    right: str
    output: str
    transition: str
    offset: float
    duration: float

    def to_filter(self) -> str:
        return (
            f"[{self.left}][{self.right}]xfade=transition={self.transition}:"
            f"duration={_ts(self.duration)}:offset={_ts(self.offset)}[{self.output}]"
        )


@dataclass
class MontagePlan:
    """Declarative composition handed to the transcoder."""

    width: int
    height: int
    clips: List[MediaClip]
    track: Optional[MediaClip]
    inputs: List[List[str]] = field(default_factory=list)
    filters: List[str] = field(default_factory=list)
    joins: List[Join] = field(default_factory=list)
    total_duration: float = 0.0
    audio_loops: int = 0

    @property
    def has_audio(self) -> bool:
        return self.track is not None

    @property
    def filter_script(self) -> str:
        return ";\n".join(self.filters)


def resolution_for(aspect: AspectFormat) -> tuple:
    """Return (width, height) for an aspect ratio."""
    return aspect.resolution


def build_montage_plan(
    clips: Sequence[MediaClip],
    track: Optional[MediaClip],
    aspect: AspectFormat,
    settings: Optional[Config] = None,
) -> MontagePlan:
    """Compute the crossfade composition for a montage.

    Args:
        clips: Ordered clips with measured durations.
        track: Optional music track with measured duration.
        aspect: Target aspect ratio.
        settings: Montage constants. Defaults to the global config.

    Returns:
        MontagePlan whose ``total_duration`` is the output length.

    Raises:
        ValueError: If there are no clips or a clip is too short to crossfade.
    """
    settings = settings or config
    if not clips:
        raise ValueError("No clips to assemble")

    xfade = settings.crossfade
    for clip in clips:
        if clip.duration <= xfade:
            raise ValueError(
                f"Clip {clip.path} lasts {clip.duration:.3f}s, not longer than the "
                f"{xfade}s crossfade"
            )

    width, height = resolution_for(aspect)
    plan = MontagePlan(width=width, height=height, clips=list(clips), track=track)
    count = len(clips)

    # Inputs: intro, clips, outro, then the optional track
    plan.inputs.append(_color_input(settings.intro_duration, width, height, settings))
    for clip in clips:
        plan.inputs.append(["-i", str(clip.path)])
    plan.inputs.append(_color_input(settings.outro_duration, width, height, settings))
    if track is not None:
        plan.inputs.append(["-i", str(track.path)])

    # Intro and outro are generated at target size; clips are normalized
    plan.filters.append("[0:v]setsar=1,format=yuv420p[intro]")
    for i in range(count):
        plan.filters.append(
            f"[{i + 1}:v]scale={width}:{height}:force_original_aspect_ratio=decrease,"
            f"pad={width}:{height}:(ow-iw)/2:(oh-ih)/2,fps={settings.fps},"
            f"setsar=1,format=yuv420p[norm{i}]"
        )
    plan.filters.append(f"[{count + 1}:v]setsar=1,format=yuv420p[outro]")

    # Crossfade chain. ``offset`` is where the next join starts.
    offset = settings.intro_duration - xfade
    previous = "intro"
    for i, clip in enumerate(clips):
        transition = EDGE_TRANSITION if i == 0 else TRANSITIONS[i % len(TRANSITIONS)]
        join = Join(previous, f"norm{i}", f"xf{i}", transition, round(offset, 3), xfade)
        plan.joins.append(join)
        offset += clip.duration - xfade
        previous = join.output

    plan.joins.append(
        Join(previous, "outro", "vjoin", EDGE_TRANSITION, round(offset, 3), xfade)
    )
    # Nothing overlaps the outro's end, so it counts in full
    offset += settings.outro_duration
    total = round(offset, 3)
    plan.total_duration = total

    plan.filters.extend(join.to_filter() for join in plan.joins)

    fade = settings.video_fade
    plan.filters.append(
        f"[vjoin]fade=t=in:st=0:d={fade},"
        f"fade=t=out:st={_ts(max(0.0, total - fade))}:d={fade}[vout]"
    )

    if track is not None:
        plan.filters.append(_audio_filter(track, count + 2, total, plan, settings))

    return plan


def _color_input(duration: float, width: int, height: int, settings: Config) -> List[str]:
    return [
        "-f", "lavfi",
        "-t", str(duration),
        "-i", f"color=c={settings.background_color}:s={width}x{height}:"
              f"r={settings.fps}:d={duration}",
    ]


def _audio_filter(
    track: MediaClip, input_index: int, total: float, plan: MontagePlan, settings: Config
) -> str:
    """Loop a short track to cover ``total``, trim to exactly ``total`` and fade."""
    steps = []
    if 0 < track.duration < total:
        plan.audio_loops = math.ceil(total / track.duration)
        # aloop counts repeats after the first play
        steps.append(f"aloop=loop={plan.audio_loops - 1}:size={ALOOP_SIZE}")

    fade_out_start = max(0.0, total - settings.audio_fade_out)
    steps.extend([
        f"atrim=0:{_ts(total)}",
        f"afade=t=in:st=0:d={settings.audio_fade_in}",
        f"afade=t=out:st={_ts(fade_out_start)}:d={settings.audio_fade_out}",
    ])
    return f"[{input_index}:a]" + ",".join(steps) + "[aout]"


def ffmpeg_command(
    plan: MontagePlan,
    output_path: Path,
    script_path: Path,
    ffmpeg: str = "ffmpeg",
) -> List[str]:
    """Build the ffmpeg argv for a plan.

    The filter graph is read from ``script_path``, which must contain
    ``plan.filter_script``. Without a track no audio stream is mapped.
    """
    cmd = [ffmpeg, "-y"]
    for input_args in plan.inputs:
        cmd.extend(input_args)
    cmd.extend(["-filter_complex_script", str(script_path), "-map", "[vout]"])

    if plan.has_audio:
        cmd.extend(["-map", "[aout]", "-c:a", "aac", "-b:a", "192k"])
    else:
        cmd.append("-an")

    cmd.extend([
        "-c:v", "libx264",
        "-preset", "fast",
        "-crf", "20",
        "-pix_fmt", "yuv420p",
        "-movflags", "+faststart",
    ])
    if plan.has_audio:
        cmd.append("-shortest")
    cmd.append(str(output_path))
    return cmd
