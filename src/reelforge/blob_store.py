"""Content-addressed, write-once media store.

Blobs live as flat files under the store root, named by their key:

    <first 16 hex chars of sha256(bytes)><.ext>

Identical bytes with the same extension collapse to one file. A key,
once published, is never rewritten: later puts of the same key are
successful no-ops. Publishing uses a hard link from a fully written
temp file, which fails atomically if the key already exists, so
concurrent puts of the same content race safely to a single winner.

No delete is exposed: blobs are shared between projects.
"""

import hashlib
import logging
import os
import re
import tempfile
from pathlib import Path

from .common import normalize_extension
from .errors import InvalidInputError, NotFoundError, storage_errors

logger = logging.getLogger(__name__)

HASH_LENGTH = 16

# Keys never contain separators or "..": a name plus one or more suffixes.
KEY_RE = re.compile(r"[A-Za-z0-9_-]+(\.[A-Za-z0-9_-]+)+")

_TEMP_PREFIX = ".tmp-"


def content_key(data: bytes, extension: str) -> str:
    """Deterministic storage key for bytes with the given extension.

    Raises:
        InvalidInputError: Extension is empty or not alphanumeric.
    """
    ext = normalize_extension(extension)
    if ext is None:
        raise InvalidInputError(f"Invalid media extension: {extension!r}")
    digest = hashlib.sha256(data).hexdigest()[:HASH_LENGTH]
    return f"{digest}{ext}"


def is_valid_key(key: str) -> bool:
    return bool(key) and KEY_RE.fullmatch(key) is not None


class BlobStore:
    """Write-once blob store rooted at a directory."""

    def __init__(self, root: str | Path):
        self.root = Path(root)

    def path_for(self, key: str) -> Path:
        """Validated on-disk path of a key (the file may not exist).

        Raises:
            NotFoundError: Key fails validation.
        """
        if not is_valid_key(key):
            raise NotFoundError(f"Media not found: {key!r}")
        return self.root / key

    def exists(self, key: str) -> bool:
        if not is_valid_key(key):
            return False
        return (self.root / key).is_file()

    def put(self, data: bytes, extension: str) -> str:
        """Store bytes and return their key; no-op if already stored.

        Raises:
            InvalidInputError: Bad extension.
            StorageExhaustedError: Out of disk space.
            UnknownStorageError: Any other I/O failure.
        """
        key = content_key(data, extension)
        target = self.root / key

        with storage_errors(f"storing {key}"):
            self.root.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=_TEMP_PREFIX, dir=self.root)
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(data)
                    f.flush()
                    os.fsync(f.fileno())
                try:
                    os.link(tmp_name, target)
                except FileExistsError:
                    logger.debug("blob %s already stored", key)
                else:
                    logger.info("stored blob %s (%d bytes)", key, len(data))
            finally:
                os.unlink(tmp_name)
        return key

    def get(self, key: str) -> bytes:
        """Read a blob's bytes.

        Raises:
            NotFoundError: Unknown or invalid key.
        """
        path = self.path_for(key)
        with storage_errors(f"reading {key}"):
            try:
                return path.read_bytes()
            except (FileNotFoundError, IsADirectoryError) as exc:
                raise NotFoundError(f"Media not found: {key!r}") from exc

    def keys(self) -> list[str]:
        """All published keys, sorted. In-flight temp files are skipped."""
        if not self.root.is_dir():
            return []
        return sorted(
            p.name for p in self.root.iterdir()
            if p.is_file() and is_valid_key(p.name)
        )
