"""reelforge.common — shared helpers for manifests, storage, and ingest.

Contains: path variable resolution, title/extension normalization,
CSS object-position parsing, and media reading (moviepy for durations,
Pillow for still images).
"""

import re
from pathlib import Path

from PIL import Image, UnidentifiedImageError
from moviepy import AudioFileClip, VideoFileClip


# ── File kinds ─────────────────────────────────────────────────────

IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp"}

VIDEO_EXTENSIONS = {".mp4", ".webm", ".mov"}

AUDIO_EXTENSIONS = {".mp3", ".wav", ".m4a"}

# Used when the original file name carries no extension.
DEFAULT_EXTENSIONS = {"image": ".jpg", "video": ".mp4", "audio": ".mp3"}

_EXTENSION_RE = re.compile(r"\.[a-z0-9]+")


# ── Path utilities ─────────────────────────────────────────────────

def resolve_path_vars(text: str, paths: dict[str, str]) -> str:
    """Replace ${name} variables in a string using the paths dict."""
    def _replace(match):
        key = match.group(1)
        if key not in paths:
            raise ValueError(f"Unknown path variable: ${{{key}}}")
        return paths[key]
    return re.sub(r"\$\{(\w+)\}", _replace, text)


# ── Names and keys ─────────────────────────────────────────────────

def sanitize_title(title: str) -> str:
    """Map any project title to a storage-safe identifier.

    Characters outside [A-Za-z0-9_-] become '-', runs of '-' collapse,
    leading/trailing '-' are dropped. Falls back to 'untitled'.
    The mapping is idempotent: sanitize_title(sanitize_title(t)) is
    sanitize_title(t).
    """
    safe = re.sub(r"[^A-Za-z0-9_-]", "-", title or "")
    safe = re.sub(r"-+", "-", safe).strip("-")
    return safe or "untitled"


def normalize_extension(extension: str) -> str | None:
    """Lower-case an extension and give it a leading dot.

    Returns None when the result is not a plain alphanumeric suffix.
    """
    ext = (extension or "").strip().lower()
    if ext and not ext.startswith("."):
        ext = "." + ext
    if not _EXTENSION_RE.fullmatch(ext):
        return None
    return ext


def extension_for(file_name: str, kind: str) -> str:
    """Pick the storage extension for an upload.

    Uses the original file name's suffix when it is usable, otherwise
    the default for the kind ('image', 'video', or 'audio').
    """
    ext = normalize_extension(Path(file_name or "").suffix)
    return ext or DEFAULT_EXTENSIONS[kind]


def kind_for_path(path: str | Path) -> str:
    """Infer 'image' or 'video' from a file extension.

    Raises:
        ValueError: Extension is neither a known image nor video type.
    """
    suffix = Path(path).suffix.lower()
    if suffix in IMAGE_EXTENSIONS:
        return "image"
    if suffix in VIDEO_EXTENSIONS:
        return "video"
    raise ValueError(
        f"Cannot infer media kind from '{path}'. "
        f"Known: {sorted(IMAGE_EXTENSIONS | VIDEO_EXTENSIONS)}"
    )


# ── CSS positions ──────────────────────────────────────────────────

_PERCENT_POSITION_RE = re.compile(r"^(\d+(?:\.\d+)?)%\s+(\d+(?:\.\d+)?)%$")


def parse_css_position(position: str) -> tuple[float, float]:
    """Parse a CSS object-position value into (x, y) percentages.

    Accepts "30% 70%" or keyword pairs like "top center" / "left".
    Keywords: left/top -> 0, right/bottom -> 100, anything else -> 50.
    """
    text = (position or "").strip()
    match = _PERCENT_POSITION_RE.match(text)
    if match:
        return float(match.group(1)), float(match.group(2))
    parts = text.lower().split()
    y = 0.0 if "top" in parts else 100.0 if "bottom" in parts else 50.0
    x = 0.0 if "left" in parts else 100.0 if "right" in parts else 50.0
    return x, y


def format_css_position(x: float, y: float) -> str:
    """Inverse of parse_css_position, rounded to whole percentages."""
    return f"{round(x)}% {round(y)}%"


# ── Media durations ──────────────────────────────────────────────────

def video_duration_seconds(path: str | Path) -> float:
    """Decoded duration of a video file in seconds."""
    with VideoFileClip(str(path), audio=False) as clip:
        return float(clip.duration)


def audio_duration_seconds(path: str | Path) -> float:
    """Decoded duration of an audio file in seconds."""
    with AudioFileClip(str(path)) as clip:
        return float(clip.duration)


def verify_image(path: str | Path) -> tuple[int, int]:
    """Check that a file decodes as an image and return (width, height).

    Raises:
        ValueError: The file is not a readable image.
    """
    try:
        with Image.open(path) as img:
            size = img.size
            img.verify()
    except (UnidentifiedImageError, OSError) as exc:
        raise ValueError(f"Not a readable image: {path}") from exc
    return size
