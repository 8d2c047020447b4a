"""Media library — saves and loads whole projects with their media.

Ties the blob store and the manifest store together under one data root:

  <root>/media/             # shared content-addressed blobs
  <root>/projects/<name>/   # manifests (+ legacy private media)
  <root>/transforms.json    # last-used per-item transforms

Save ordering: every referenced blob is written (and fsynced) before the
manifest is written. A crash in between leaves orphan blobs, never a
manifest pointing at missing media.

The async variants run the blocking operation in a worker thread so an
event loop driving the UI or a server is never blocked.
"""

import asyncio
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import NamedTuple

from .blob_store import BlobStore
from .common import extension_for
from .errors import InvalidInputError, NotFoundError, storage_errors
from .manifest_store import ProjectStore
from .models import AudioRef, MediaItem, Project, ProjectSummary

logger = logging.getLogger(__name__)

TRANSFORMS_NAME = "transforms.json"


class SavedProject(NamedTuple):
    location: Path
    project: Project


class MediaLibrary:
    """Project persistence over a single data directory."""

    def __init__(self, root: str | Path):
        self.root = Path(root)
        self.media = BlobStore(self.root / "media")
        self.projects = ProjectStore(self.root / "projects")

    # ── Projects ───────────────────────────────────────────────────

    def save_project(self, project: Project) -> SavedProject:
        """Store all media for a project, then its manifest.

        Each item's source_ref is either a key already in the media
        store (kept as is) or a path to a local file (read and stored).
        The returned project carries content keys only.

        Raises:
            NotFoundError: A local source file is missing.
            StorageExhaustedError / UnknownStorageError: Write failures.
        """
        items = tuple(self._ingest_item(item) for item in project.items)
        audio = self._ingest_audio(project.audio) if project.audio else None

        stored = project.model_copy(update={"items": items, "audio": audio, "saved_at": None})
        location = self.projects.save(stored)
        # Re-read so the caller gets exactly what a later load returns.
        return SavedProject(location, self.projects.load(stored.title))

    def load_project(self, title: str) -> Project:
        return self.projects.load(title)

    def list_projects(self) -> list[ProjectSummary]:
        return self.projects.list()

    def delete_project(self, title: str) -> None:
        self.projects.delete(title)

    def read_media(self, key: str) -> bytes:
        return self.media.get(key)

    def missing_media(self, project: Project) -> list[str]:
        """Content keys a project references that the store lacks."""
        keys = [item.source_ref for item in project.items]
        if project.audio is not None:
            keys.append(project.audio.source_ref)
        return [key for key in keys if not self.media.exists(key)]

    def _store_source(self, source_ref: str, extension: str) -> str:
        if self.media.exists(source_ref):
            return source_ref
        with storage_errors(f"reading {source_ref}"):
            data = Path(source_ref).read_bytes()
        return self.media.put(data, extension)

    def _ingest_item(self, item: MediaItem) -> MediaItem:
        file_name = item.original_file_name or Path(item.source_ref).name
        key = self._store_source(item.source_ref, extension_for(file_name, item.kind.value))
        return item.model_copy(update={"source_ref": key})

    def _ingest_audio(self, audio: AudioRef) -> AudioRef:
        file_name = audio.file_name or Path(audio.source_ref).name
        key = self._store_source(audio.source_ref, extension_for(file_name, "audio"))
        return audio.model_copy(update={"source_ref": key})

    # ── Transforms ─────────────────────────────────────────────────

    def save_transforms(self, transforms) -> None:
        """Persist the last-used transform list.

        Expects a list of {"position": str, "scale": number} mappings.

        Raises:
            InvalidInputError: Payload is not such a list.
        """
        if not isinstance(transforms, list):
            raise InvalidInputError("Expected a list of transforms")
        for i, entry in enumerate(transforms):
            if not isinstance(entry, dict):
                raise InvalidInputError(f"Transform {i}: expected a mapping")
            if not isinstance(entry.get("position"), str):
                raise InvalidInputError(f"Transform {i}: 'position' must be a string")
            scale = entry.get("scale")
            if isinstance(scale, bool) or not isinstance(scale, (int, float)):
                raise InvalidInputError(f"Transform {i}: 'scale' must be a number")

        path = self.root / TRANSFORMS_NAME
        with storage_errors("saving transforms"):
            self.root.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=".transforms-", dir=self.root)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(transforms, f, indent=2)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise

    def load_transforms(self) -> list[dict]:
        """Last-used transforms; an empty list when none were saved.

        Raises:
            InvalidInputError: Stored file is not a JSON list.
        """
        path = self.root / TRANSFORMS_NAME
        try:
            with storage_errors("loading transforms"):
                raw = path.read_text(encoding="utf-8")
        except NotFoundError:
            return []
        try:
            transforms = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise InvalidInputError(f"Invalid transforms file: {exc}") from exc
        if not isinstance(transforms, list):
            raise InvalidInputError("Invalid transforms file: expected a list")
        return transforms

    # ── Async facade ───────────────────────────────────────────────

    async def asave_project(self, project: Project) -> SavedProject:
        return await asyncio.to_thread(self.save_project, project)

    async def aload_project(self, title: str) -> Project:
        return await asyncio.to_thread(self.load_project, title)

    async def alist_projects(self) -> list[ProjectSummary]:
        return await asyncio.to_thread(self.list_projects)

    async def adelete_project(self, title: str) -> None:
        await asyncio.to_thread(self.delete_project, title)

    async def aread_media(self, key: str) -> bytes:
        return await asyncio.to_thread(self.read_media, key)
