"""Project manifest store -- one JSON record per project.

Layout under the store root:

  <sanitized-title>/
    project.json      # the manifest record
    media/            # optional private media copies (legacy projects)

Manifest record schema:
  title: "My Reel!"
  platform: tiktok
  duration_mode: {match_audio: false, seconds: 90}
  fit_to_audio: false
  dissolve_frames: 15
  fps: 30
  items:
    - order: 0
      kind: image
      duration_frames: 120
      file_name: a.jpg
      position: [50.0, 50.0]
      scale: 1.0
      content_key: 0123456789abcdef.jpg
  audio: {file_name: song.mp3, duration_seconds: 42.5, content_key: ...}  # or null
  saved_at: 2026-10-18T12:00:00+00:00

The manifest holds content keys only; media bytes live in the blob store.
A save replaces the whole record; there are no partial updates.
"""

import logging
import os
import shutil
import tempfile
from datetime import datetime, timezone
from pathlib import Path

from pydantic import Field, ValidationError

from .common import sanitize_title
from .errors import CorruptManifestError, NotFoundError, storage_errors
from .models import (
    VIDEO_FPS,
    AudioRef,
    BaseReelModel,
    DurationMode,
    MediaItem,
    MediaKind,
    Platform,
    Project,
    ProjectSummary,
    Transform,
)

logger = logging.getLogger(__name__)

MANIFEST_NAME = "project.json"
PRIVATE_MEDIA_DIR = "media"


# ── Record schema ──────────────────────────────────────────────────


class ManifestItem(BaseReelModel):
    order: int = Field(ge=0)
    kind: MediaKind
    duration_frames: int = Field(ge=1)
    file_name: str = ""
    position: tuple[float, float] = (50.0, 50.0)
    scale: float = 1.0
    content_key: str


class ManifestAudio(BaseReelModel):
    file_name: str = ""
    duration_seconds: float = Field(default=0.0, ge=0)
    content_key: str


class ManifestRecord(BaseReelModel):
    title: str
    platform: Platform
    duration_mode: DurationMode
    fit_to_audio: bool = False
    dissolve_frames: int = Field(ge=0)
    fps: int = Field(default=VIDEO_FPS, gt=0)
    items: list[ManifestItem] = Field(default_factory=list)
    audio: ManifestAudio | None = None
    saved_at: datetime | None = None


def project_to_record(project: Project) -> ManifestRecord:
    items = [
        ManifestItem(
            order=i,
            kind=item.kind,
            duration_frames=item.natural_duration_frames,
            file_name=item.original_file_name,
            position=(item.transform.position_x, item.transform.position_y),
            scale=item.transform.scale,
            content_key=item.source_ref,
        )
        for i, item in enumerate(project.items)
    ]
    audio = None
    if project.audio is not None:
        audio = ManifestAudio(
            file_name=project.audio.file_name,
            duration_seconds=project.audio.duration_seconds,
            content_key=project.audio.source_ref,
        )
    return ManifestRecord(
        title=project.title,
        platform=project.platform,
        duration_mode=project.duration_mode,
        fit_to_audio=project.fit_to_audio,
        dissolve_frames=project.dissolve_frames,
        fps=project.fps,
        items=items,
        audio=audio,
        saved_at=project.saved_at,
    )


def record_to_project(record: ManifestRecord) -> Project:
    """Rebuild a Project; items come back in `order` sequence."""
    items = []
    for entry in sorted(record.items, key=lambda e: e.order):
        x, y = entry.position
        items.append(MediaItem(
            kind=entry.kind,
            source_ref=entry.content_key,
            natural_duration_frames=entry.duration_frames,
            transform=Transform(position_x=x, position_y=y, scale=entry.scale),
            original_file_name=entry.file_name,
        ))
    audio = None
    if record.audio is not None:
        audio = AudioRef(
            source_ref=record.audio.content_key,
            file_name=record.audio.file_name,
            duration_seconds=record.audio.duration_seconds,
        )
    return Project(
        title=record.title,
        platform=record.platform,
        duration_mode=record.duration_mode,
        fit_to_audio=record.fit_to_audio,
        items=tuple(items),
        audio=audio,
        dissolve_frames=record.dissolve_frames,
        fps=record.fps,
        saved_at=record.saved_at,
    )


# ── Store ──────────────────────────────────────────────────────────


class ProjectStore:
    """Directory-per-project manifest store."""

    def __init__(self, root: str | Path):
        self.root = Path(root)

    def project_dir(self, title: str) -> Path:
        return self.root / sanitize_title(title)

    def manifest_path(self, title: str) -> Path:
        return self.project_dir(title) / MANIFEST_NAME

    def save(self, project: Project) -> Path:
        """Write (or fully replace) a project's manifest.

        Stamps saved_at with the current UTC time when the project has
        none. Returns the project directory.
        """
        if project.saved_at is None:
            project = project.model_copy(update={"saved_at": datetime.now(timezone.utc)})
        payload = project_to_record(project).model_dump_json(indent=2)

        project_dir = self.project_dir(project.title)
        with storage_errors(f"saving project {project_dir.name}"):
            project_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=".project-", suffix=".json", dir=project_dir)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(payload)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_name, project_dir / MANIFEST_NAME)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise

        logger.info("saved project %s (%d items)", project_dir.name, len(project.items))
        return project_dir

    def load(self, title: str) -> Project:
        """Read a project by (unsanitized) title.

        Raises:
            NotFoundError: No manifest for the title.
            CorruptManifestError: Manifest is not a well-formed project.
        """
        path = self.manifest_path(title)
        with storage_errors(f"loading project {path.parent.name}"):
            try:
                raw = path.read_bytes()
            except FileNotFoundError as exc:
                raise NotFoundError(f"Project not found: {title!r}") from exc

        try:
            record = ManifestRecord.model_validate_json(raw)
            return record_to_project(record)
        except ValidationError as exc:
            raise CorruptManifestError(
                f"Invalid project file for {path.parent.name}: "
                f"{exc.error_count()} problem(s)"
            ) from exc

    def list(self) -> list[ProjectSummary]:
        """Summaries of every stored project, sorted by storage name.

        A missing store is empty. Projects whose manifest cannot be read
        are still listed, titled by their directory name.
        """
        if not self.root.is_dir():
            return []

        summaries = []
        with storage_errors("listing projects"):
            entries = sorted(p for p in self.root.iterdir() if p.is_dir())
        for entry in entries:
            try:
                project = self.load(entry.name)
            except (NotFoundError, CorruptManifestError) as exc:
                logger.warning("listing %s without manifest details: %s", entry.name, exc)
                summaries.append(ProjectSummary(name=entry.name, title=entry.name))
                continue
            summaries.append(ProjectSummary(
                name=entry.name, title=project.title, saved_at=project.saved_at,
            ))
        return summaries

    def delete(self, title: str) -> None:
        """Remove a project's manifest and private media.

        Shared blobs are untouched.

        Raises:
            NotFoundError: No manifest for the title.
        """
        project_dir = self.project_dir(title)
        if not (project_dir / MANIFEST_NAME).is_file():
            raise NotFoundError(f"Project not found: {title!r}")
        with storage_errors(f"deleting project {project_dir.name}"):
            shutil.rmtree(project_dir)
        logger.info("deleted project %s", project_dir.name)

    def private_media_path(self, title: str, file_name: str) -> Path:
        """Path of a per-project media copy (legacy layout).

        Only the basename of file_name is used.

        Raises:
            NotFoundError: No such file for the project.
        """
        safe_name = Path(file_name).name
        path = self.project_dir(title) / PRIVATE_MEDIA_DIR / safe_name
        if not safe_name or not path.is_file():
            raise NotFoundError(f"Media not found: {title!r}/{file_name!r}")
        return path
