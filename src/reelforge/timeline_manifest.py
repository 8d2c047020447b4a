"""Timeline manifest loader — a reel described in YAML.

Parses YAML manifests that list the photos and clips of a reel, in order,
with their crop/zoom and the music track. The loaded config is turned
into a Project (reading media durations) for scheduling or saving.

Timeline manifest schema:
  video:
    platform: tiktok          # tiktok | fb-square | fb-video
    fps: 30
    dissolve: 0.5             # crossfade length in seconds
    duration: 90              # fixed seconds, or "music"
    fit_to_audio: false
  paths:
    media: "/path/to/shoot"
  audio:                      # optional
    path: "${media}/song.mp3"
  items:
    - path: "${media}/beach.jpg"
      position: "30% 70%"     # CSS object-position, default "center center"
      scale: 1.2              # 0.5 .. 2.0, default 1.0
    - path: "${media}/waves.mp4"
      kind: video             # optional, inferred from the extension
"""

from pathlib import Path
from typing import Callable

import yaml

from .common import (
    kind_for_path,
    audio_duration_seconds,
    video_duration_seconds,
    resolve_path_vars,
    verify_image,
)
from .compositor import dissolve_seconds_to_frames
from .models import (
    DEFAULT_DISSOLVE_SECONDS,
    DEFAULT_FIXED_SECONDS,
    VIDEO_FPS,
    AudioRef,
    DurationMode,
    MediaItem,
    Platform,
    Project,
    Transform,
)


VALID_PLATFORMS = {p.value for p in Platform}

VALID_KINDS = {"image", "video"}

MATCH_AUDIO = "music"


def load_timeline_manifest(manifest_path: str | Path) -> dict:
    """Load, validate, and normalize a timeline manifest.

    Processing pipeline:
      1. Parse YAML.
      2. Validate video settings, applying defaults.
      3. Resolve ${path} variables in item and audio paths.
      4. Infer or validate each item's kind, position, and scale.

    Args:
        manifest_path: Path to the YAML timeline manifest.

    Returns:
        Normalized config dict with resolved paths and applied defaults.

    Raises:
        ValueError: Missing/invalid fields.
    """
    with open(manifest_path) as f:
        raw = yaml.safe_load(f) or {}

    video = dict(raw.get("video") or {})

    platform = video.get("platform", Platform.TIKTOK.value)
    if platform not in VALID_PLATFORMS:
        raise ValueError(
            f"Timeline manifest: invalid video.platform '{platform}'. "
            f"Valid: {sorted(VALID_PLATFORMS)}"
        )
    video["platform"] = platform

    fps = video.get("fps", VIDEO_FPS)
    if isinstance(fps, bool) or not isinstance(fps, int) or fps <= 0:
        raise ValueError(f"Timeline manifest: video.fps must be a positive integer, got {fps!r}")
    video["fps"] = fps

    dissolve = video.get("dissolve", DEFAULT_DISSOLVE_SECONDS)
    if isinstance(dissolve, bool) or not isinstance(dissolve, (int, float)) or dissolve < 0:
        raise ValueError(f"Timeline manifest: video.dissolve must be >= 0, got {dissolve!r}")
    video["dissolve"] = dissolve

    duration = video.get("duration", DEFAULT_FIXED_SECONDS)
    if duration != MATCH_AUDIO and (
        isinstance(duration, bool) or not isinstance(duration, int) or duration <= 0
    ):
        raise ValueError(
            f"Timeline manifest: video.duration must be a positive number of "
            f"seconds or '{MATCH_AUDIO}', got {duration!r}"
        )
    video["duration"] = duration
    video["fit_to_audio"] = bool(video.get("fit_to_audio", False))

    config = {"video": video}

    # Path variables for ${name} substitution.
    paths = raw.get("paths") or {}

    audio = raw.get("audio")
    if audio is not None:
        if not isinstance(audio, dict) or "path" not in audio:
            raise ValueError("Timeline manifest: audio requires a 'path'")
        audio = {"path": resolve_path_vars(str(audio["path"]), paths)}
    config["audio"] = audio

    items = []
    for i, item in enumerate(raw.get("items") or []):
        if not isinstance(item, dict) or "path" not in item:
            raise ValueError(f"Timeline item {i}: missing required field 'path'")
        path = resolve_path_vars(str(item["path"]), paths)

        kind = item.get("kind")
        if kind is None:
            kind = kind_for_path(path)
        elif kind not in VALID_KINDS:
            raise ValueError(
                f"Timeline item {i}: invalid kind '{kind}'. Valid: {sorted(VALID_KINDS)}"
            )

        position = item.get("position", "center center")
        if not isinstance(position, str):
            raise ValueError(f"Timeline item {i}: position must be a string, got {position!r}")

        scale = item.get("scale", 1.0)
        if isinstance(scale, bool) or not isinstance(scale, (int, float)) or not 0.5 <= scale <= 2.0:
            raise ValueError(f"Timeline item {i}: scale must be between 0.5 and 2.0, got {scale!r}")

        items.append({"path": path, "kind": kind, "position": position, "scale": float(scale)})

    config["items"] = items
    return config


def validate_timeline_paths(config: dict) -> None:
    """Check that every item and the audio file exist on disk.

    Raises:
        FileNotFoundError: Lists all missing files.
    """
    wanted = [item["path"] for item in config["items"]]
    if config.get("audio"):
        wanted.append(config["audio"]["path"])
    missing = [p for p in wanted if not Path(p).exists()]

    if missing:
        msg = f"Missing {len(missing)} media file(s):\n"
        for p in missing:
            msg += f"  - {p}\n"
        raise FileNotFoundError(msg)


def build_project(
    config: dict,
    title: str,
    video_seconds: Callable[[str], float] = video_duration_seconds,
    audio_seconds: Callable[[str], float] = audio_duration_seconds,
) -> Project:
    """Turn a loaded timeline config into a Project.

    Video and audio lengths are read from the files; still images are
    checked to decode. Source refs are the local file paths.
    """
    video = config["video"]
    fps = video["fps"]

    items = []
    for item in config["items"]:
        transform = Transform.from_css(item["position"], item["scale"])
        name = Path(item["path"]).name
        if item["kind"] == "video":
            seconds = video_seconds(item["path"])
            items.append(MediaItem.video(item["path"], seconds, name, transform, fps=fps))
        else:
            verify_image(item["path"])
            items.append(MediaItem.image(item["path"], name, transform))

    audio = None
    if config.get("audio"):
        audio_path = config["audio"]["path"]
        audio = AudioRef(
            source_ref=audio_path,
            file_name=Path(audio_path).name,
            duration_seconds=audio_seconds(audio_path),
        )

    if video["duration"] == MATCH_AUDIO:
        duration_mode = DurationMode.matching_audio()
    else:
        duration_mode = DurationMode.fixed(video["duration"])

    return Project(
        title=title,
        platform=Platform(video["platform"]),
        duration_mode=duration_mode,
        fit_to_audio=video["fit_to_audio"],
        items=tuple(items),
        audio=audio,
        dissolve_frames=dissolve_seconds_to_frames(video["dissolve"], fps),
        fps=fps,
    )
