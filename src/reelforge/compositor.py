"""Timeline compositor -- fit an ordered list of media items to a target length.

Takes media items (each with its own natural length in frames), a target
duration, and a dissolve length, and lays the items out as overlapping
segments on a single timeline.

Layout rules:
  - Adjacent segments overlap by exactly `dissolve_frames` (crossfade).
    The first segment does not fade in, the last does not fade out.
  - Every item is scaled by the same stretch factor
    (target / natural duration) and rounded independently. Rounding drift
    is not redistributed, so the total may miss the target by up to one
    frame per item.
  - No segment is shorter than the dissolve, so short targets overshoot
    instead of producing negative visible spans.
  - Video clips shorter than their slot are slowed down to fill it; longer
    clips play at normal speed and are trimmed at the slot end.

Everything here is a pure function of its inputs. Callers recompute the
schedule whenever items, durations, target, or dissolve change, and
replace the old schedule wholesale.
"""

import math
from bisect import bisect_right
from typing import Sequence

import numpy as np

from .errors import InvalidInputError
from .models import (
    AUDIO_FADE_SECONDS,
    DEFAULT_FIXED_SECONDS,
    END_TAIL_SECONDS,
    VIDEO_FPS,
    BaseReelModel,
    DurationMode,
    MediaItem,
    MediaKind,
    Project,
    Schedule,
    Segment,
    Transform,
)


# Minimum length of a text-only reel (no media items).
MIN_TEXT_FRAMES = 30

# Ken Burns zoom range applied to still images.
IMAGE_ZOOM_RANGE = (1.0, 1.08)


def round_frames(value: float) -> int:
    """Round a frame count half away from zero."""
    if value < 0:
        return -math.floor(-value + 0.5)
    return math.floor(value + 0.5)


def dissolve_seconds_to_frames(seconds: float, fps: int = VIDEO_FPS) -> int:
    if seconds < 0:
        raise InvalidInputError(f"dissolve must be >= 0 seconds, got {seconds!r}")
    return round_frames(seconds * fps)


# ── Durations ──────────────────────────────────────────────────────


def compute_natural_duration(items: Sequence[MediaItem], dissolve_frames: int) -> int:
    """Unstretched timeline length: sum of item lengths minus the overlaps.

    Returns 0 for an empty list and never goes below 0.
    """
    if not items:
        return 0
    total = sum(item.natural_duration_frames for item in items)
    total -= (len(items) - 1) * dissolve_frames
    return max(0, total)


def resolve_target_frames(
    items: Sequence[MediaItem],
    dissolve_frames: int,
    duration_mode: DurationMode,
    fit_to_audio: bool,
    audio_seconds: float | None,
    fps: int = VIDEO_FPS,
) -> int:
    """Target timeline length for a project's settings.

    Decision order:
      1. fit_to_audio with a known audio length -> the audio length.
      2. Media items present -> their natural (unstretched) duration.
      3. Otherwise the duration mode: audio length when matching audio
         and one is known, else the fixed seconds. Never below
         MIN_TEXT_FRAMES.

    When there are media items, an END_TAIL_SECONDS tail is appended so
    the last item and the audio fade-out have room to finish.
    """
    audio_seconds = audio_seconds or 0.0
    if fit_to_audio and audio_seconds > 0:
        base = math.ceil(audio_seconds * fps)
    elif items:
        base = compute_natural_duration(items, dissolve_frames)
    else:
        if duration_mode.match_audio and audio_seconds > 0:
            seconds = audio_seconds
        else:
            seconds = duration_mode.seconds or DEFAULT_FIXED_SECONDS
        base = max(MIN_TEXT_FRAMES, math.ceil(seconds * fps))

    tail = END_TAIL_SECONDS * fps if items else 0
    return base + tail


# ── Scheduling ─────────────────────────────────────────────────────


def playback_rate(original_frames: int, retimed_frames: int) -> float:
    """Slow-down factor for a clip placed in a slot of retimed_frames.

    Only ever slows down: a clip longer than its slot keeps rate 1.0 and
    is trimmed instead.
    """
    if retimed_frames > 0 and original_frames < retimed_frames:
        return original_frames / retimed_frames
    return 1.0


def compute_schedule(
    items: Sequence[MediaItem],
    target_frames: int,
    dissolve_frames: int,
) -> Schedule:
    """Lay items out on a timeline of (approximately) target_frames.

    The algorithm walks the items left-to-right with a running cursor:
      1. Scale each natural length by target / natural, round it, and
         floor it at the dissolve length.
      2. Place the segment at the cursor.
      3. Move the cursor to this segment's end minus the dissolve, so
         the next segment starts inside this one's fade-out.

    Args:
        items: Ordered media items.
        target_frames: Requested timeline length in frames.
        dissolve_frames: Crossfade length in frames.

    Returns:
        Schedule with one segment per item, or an empty schedule when
        the natural duration is 0.

    Raises:
        InvalidInputError: Negative target or dissolve.
    """
    if target_frames < 0:
        raise InvalidInputError(f"target duration must be >= 0 frames, got {target_frames}")
    if dissolve_frames < 0:
        raise InvalidInputError(f"dissolve must be >= 0 frames, got {dissolve_frames}")

    natural = compute_natural_duration(items, dissolve_frames)
    if natural == 0:
        return Schedule(dissolve_frames=dissolve_frames, target_frames=target_frames)

    # < 1 compresses, > 1 stretches.
    stretch = target_frames / natural

    segments = []
    cursor = 0
    for item in items:
        retimed = max(dissolve_frames, round_frames(item.natural_duration_frames * stretch))
        segment = Segment(
            item=item,
            start_frame=cursor,
            end_frame=cursor + retimed,
            retimed_duration_frames=retimed,
            original_duration_frames=item.natural_duration_frames,
        )
        segments.append(segment)
        cursor = segment.end_frame - dissolve_frames

    return Schedule(
        segments=tuple(segments),
        dissolve_frames=dissolve_frames,
        target_frames=target_frames,
    )


def schedule_project(project: Project) -> Schedule:
    """Schedule a project's items against its own target duration and fps."""
    audio_seconds = project.audio.duration_seconds if project.audio else None
    target = resolve_target_frames(
        project.items,
        project.dissolve_frames,
        project.duration_mode,
        project.fit_to_audio,
        audio_seconds,
        fps=project.fps,
    )
    return compute_schedule(project.items, target, project.dissolve_frames)


def frame_to_active_segment_index(schedule: Schedule, frame: int) -> int | None:
    """Index of the segment showing at `frame`, for UI highlighting.

    The frame is clamped into [0, total_frames - 1]. Inside a crossfade
    the earlier (outgoing) segment wins. Returns None for an empty
    schedule.
    """
    segments = schedule.segments
    if not segments:
        return None
    clamped = max(0, min(schedule.total_frames - 1, frame))

    # End frames never decrease and each start is at or before the previous
    # end, so the first segment ending after the frame contains it.
    ends = [seg.end_frame for seg in segments]
    index = bisect_right(ends, clamped)
    if index < len(segments) and segments[index].contains(clamped):
        return index
    return len(segments) - 1


def seek_frame(schedule: Schedule, index: int) -> int:
    """Frame to seek to so that item `index` is fully faded in."""
    segment = schedule.segments[index]
    last_frame = max(segment.start_frame, segment.end_frame - 1)
    return min(segment.start_frame + schedule.dissolve_frames, last_frame)


# ── Crossfade and audio curves ─────────────────────────────────────


def opacity_at(
    segment: Segment,
    local_frame: float,
    dissolve_frames: int,
    is_first: bool,
    is_last: bool,
) -> float:
    """Crossfade opacity of a segment at a frame relative to its start.

    Ramps 0 -> 1 over the first dissolve_frames (unless first) and
    1 -> 0 over the last dissolve_frames (unless last). Where both
    windows overlap, the fade-in applies.
    """
    if dissolve_frames <= 0:
        return 1.0
    duration = segment.retimed_duration_frames
    if not is_first and local_frame < dissolve_frames:
        return _clamp01(local_frame / dissolve_frames)
    if not is_last and local_frame > duration - dissolve_frames:
        return _clamp01((duration - local_frame) / dissolve_frames)
    return 1.0


def opacity_curve(
    segment: Segment,
    dissolve_frames: int,
    is_first: bool,
    is_last: bool,
) -> np.ndarray:
    """Opacity for every local frame of a segment, as a float array."""
    frames = np.arange(segment.retimed_duration_frames, dtype=float)
    curve = np.ones_like(frames)
    if dissolve_frames <= 0:
        return curve
    duration = segment.retimed_duration_frames

    fade_in = np.zeros_like(frames, dtype=bool)
    if not is_first:
        fade_in = frames < dissolve_frames
        curve[fade_in] = frames[fade_in] / dissolve_frames
    if not is_last:
        fade_out = ~fade_in & (frames > duration - dissolve_frames)
        curve[fade_out] = (duration - frames[fade_out]) / dissolve_frames
    return np.clip(curve, 0.0, 1.0)


def audio_gain_at(frame: float, total_frames: int, fps: int = VIDEO_FPS) -> float:
    """Music gain: 1.0 until the last AUDIO_FADE_SECONDS, then linear to 0."""
    fade_start = max(0.0, total_frames - AUDIO_FADE_SECONDS * fps)
    if frame <= fade_start:
        return 1.0
    if frame >= total_frames:
        return 0.0
    return (total_frames - frame) / (total_frames - fade_start)


def audio_gain_curve(total_frames: int, fps: int = VIDEO_FPS) -> np.ndarray:
    """audio_gain_at for every frame of a timeline."""
    fade_start = max(0.0, total_frames - AUDIO_FADE_SECONDS * fps)
    frames = np.arange(total_frames, dtype=float)
    if total_frames == 0:
        return frames
    return np.interp(frames, [fade_start, total_frames], [1.0, 0.0])


def image_zoom_at(index: int, local_frame: float, duration_frames: int) -> float:
    """Ken Burns scale for a still image.

    Even positions zoom in across the segment, odd positions zoom out,
    so consecutive stills alternate direction.
    """
    low, high = IMAGE_ZOOM_RANGE
    start, end = (low, high) if index % 2 == 0 else (high, low)
    if duration_frames <= 0:
        return start
    t = _clamp01(local_frame / duration_frames)
    return start + (end - start) * t


def _clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


# ── Render plan ────────────────────────────────────────────────────


class RenderInstruction(BaseReelModel):
    """Everything an external renderer needs to paint one segment."""

    index: int
    segment: Segment
    is_first: bool
    is_last: bool
    playback_rate: float
    transform: Transform


def render_plan(schedule: Schedule) -> list[RenderInstruction]:
    """Per-segment parameters for the renderer, in timeline order."""
    last = len(schedule.segments) - 1
    plan = []
    for i, seg in enumerate(schedule.segments):
        rate = 1.0
        if seg.item.kind is MediaKind.VIDEO:
            rate = playback_rate(seg.original_duration_frames, seg.retimed_duration_frames)
        plan.append(RenderInstruction(
            index=i,
            segment=seg,
            is_first=i == 0,
            is_last=i == last,
            playback_rate=rate,
            transform=seg.item.transform,
        ))
    return plan
