"""Data model: media items, schedules, and persisted projects.

All models are frozen. A Schedule is produced once by the compositor and
replaced wholesale on any input change; projects are rewritten in full on
save. Use model_copy(update=...) to derive a changed copy.
"""

import math
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .common import format_css_position, parse_css_position


VIDEO_FPS = 30
IMAGE_DURATION_FRAMES = 120
DEFAULT_DISSOLVE_SECONDS = 0.5
END_TAIL_SECONDS = 5
AUDIO_FADE_SECONDS = 1.5
DEFAULT_FIXED_SECONDS = 90


class BaseReelModel(BaseModel):
    """Base model with the defaults shared by every reelforge entity."""

    model_config = ConfigDict(
        frozen=True,
        revalidate_instances="always",
        validate_assignment=True,
        populate_by_name=True,
    )


class MediaKind(str, Enum):
    IMAGE = "image"
    VIDEO = "video"


# ── Platform presets ───────────────────────────────────────────────

class Platform(str, Enum):
    """Output format presets. Value is the persisted id."""

    TIKTOK = "tiktok"
    FB_SQUARE = "fb-square"
    FB_VIDEO = "fb-video"

    @property
    def width(self) -> int:
        return PLATFORM_SIZES[self][0]

    @property
    def height(self) -> int:
        return PLATFORM_SIZES[self][1]

    @property
    def label(self) -> str:
        return PLATFORM_LABELS[self]


PLATFORM_SIZES = {
    Platform.TIKTOK: (1080, 1920),
    Platform.FB_SQUARE: (1080, 1080),
    Platform.FB_VIDEO: (1920, 1080),
}

PLATFORM_LABELS = {
    Platform.TIKTOK: "Vertical Video",
    Platform.FB_SQUARE: "Square",
    Platform.FB_VIDEO: "Horizontal Video",
}


# ── Media items ────────────────────────────────────────────────────

class Transform(BaseReelModel):
    """Crop/pan/zoom applied by the renderer.

    position_x / position_y are percentage offsets within the frame
    (CSS object-position semantics); scale is a zoom factor.
    """

    position_x: float = Field(default=50.0, ge=0, le=100)
    position_y: float = Field(default=50.0, ge=0, le=100)
    scale: float = Field(default=1.0, ge=0.5, le=2.0)

    @classmethod
    def from_css(cls, position: str, scale: float = 1.0) -> "Transform":
        x, y = parse_css_position(position)
        return cls(position_x=x, position_y=y, scale=scale)

    @property
    def css_position(self) -> str:
        return format_css_position(self.position_x, self.position_y)


class MediaItem(BaseReelModel):
    """One photo or clip in the timeline.

    source_ref is a local file path before the project is saved and a
    content key (see blob_store) afterwards.
    """

    kind: MediaKind
    source_ref: str
    natural_duration_frames: int = Field(ge=1)
    transform: Transform = Field(default_factory=Transform)
    original_file_name: str = ""

    @classmethod
    def image(cls, source_ref: str, original_file_name: str = "",
              transform: Transform | None = None) -> "MediaItem":
        return cls(
            kind=MediaKind.IMAGE,
            source_ref=source_ref,
            natural_duration_frames=IMAGE_DURATION_FRAMES,
            transform=transform or Transform(),
            original_file_name=original_file_name,
        )

    @classmethod
    def video(cls, source_ref: str, duration_seconds: float,
              original_file_name: str = "", transform: Transform | None = None,
              fps: int = VIDEO_FPS) -> "MediaItem":
        """Video item whose natural length is ceil(duration * fps) frames."""
        frames = max(1, math.ceil(duration_seconds * fps))
        return cls(
            kind=MediaKind.VIDEO,
            source_ref=source_ref,
            natural_duration_frames=frames,
            transform=transform or Transform(),
            original_file_name=original_file_name,
        )


# ── Schedules ──────────────────────────────────────────────────────

class Segment(BaseReelModel):
    """One item's placed span [start_frame, end_frame) on the timeline."""

    item: MediaItem
    start_frame: int = Field(ge=0)
    end_frame: int = Field(ge=0)
    retimed_duration_frames: int = Field(ge=0)
    original_duration_frames: int = Field(ge=1)

    @property
    def playback_rate(self) -> float:
        """Video playback rate for this slot; always 1.0 for stills.

        Clips shorter than their slot are slowed down to fill it. Longer
        clips keep normal speed and are trimmed at the slot end.
        """
        if self.item.kind is not MediaKind.VIDEO:
            return 1.0
        if self.original_duration_frames < self.retimed_duration_frames:
            return self.original_duration_frames / self.retimed_duration_frames
        return 1.0

    def contains(self, frame: int) -> bool:
        return self.start_frame <= frame < self.end_frame


class Schedule(BaseReelModel):
    """Ordered segments produced by one compositor pass."""

    segments: tuple[Segment, ...] = ()
    dissolve_frames: int = Field(default=0, ge=0)
    target_frames: int = Field(default=0, ge=0)

    @property
    def total_frames(self) -> int:
        if not self.segments:
            return 0
        return self.segments[-1].end_frame

    @property
    def is_empty(self) -> bool:
        return not self.segments


# ── Projects ───────────────────────────────────────────────────────

class DurationMode(BaseReelModel):
    """Either match the audio length or use a fixed number of seconds."""

    match_audio: bool = False
    seconds: int | None = Field(default=DEFAULT_FIXED_SECONDS, gt=0)

    @model_validator(mode="after")
    def _check_seconds(self):
        if not self.match_audio and self.seconds is None:
            raise ValueError("fixed duration mode requires seconds")
        return self

    @classmethod
    def matching_audio(cls) -> "DurationMode":
        return cls(match_audio=True, seconds=None)

    @classmethod
    def fixed(cls, seconds: int) -> "DurationMode":
        return cls(match_audio=False, seconds=seconds)


class AudioRef(BaseReelModel):
    source_ref: str
    file_name: str = ""
    duration_seconds: float = Field(default=0.0, ge=0)


class Project(BaseReelModel):
    """The persisted unit: ordered media, settings, and audio."""

    title: str
    platform: Platform = Platform.TIKTOK
    duration_mode: DurationMode = Field(default_factory=DurationMode)
    fit_to_audio: bool = False
    items: tuple[MediaItem, ...] = ()
    audio: AudioRef | None = None
    dissolve_frames: int = Field(
        default=round(DEFAULT_DISSOLVE_SECONDS * VIDEO_FPS), ge=0,
    )
    fps: int = Field(default=VIDEO_FPS, gt=0)
    saved_at: datetime | None = None


class ProjectSummary(BaseReelModel):
    name: str
    title: str
    saved_at: datetime | None = None
