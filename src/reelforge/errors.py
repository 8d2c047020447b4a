"""Error taxonomy for the media and manifest stores.

Callers see a small set of typed errors instead of raw OSErrors:
  - NotFoundError: missing project, blob, or invalid key.
  - InvalidInputError: malformed manifest, bad transform payload,
    impossible durations.
  - StorageExhaustedError: disk full / quota hit.
  - UnknownStorageError: any other underlying I/O failure.

A blob that already exists is not an error (put is idempotent).
Nothing here retries; retry policy belongs to the caller.
"""

import errno
from contextlib import contextmanager


class ReelForgeError(Exception):
    """Base class for all errors raised by reelforge."""


class NotFoundError(ReelForgeError, LookupError):
    """A project, blob, or file does not exist."""


class InvalidInputError(ReelForgeError, ValueError):
    """Input that cannot be accepted as given."""


class CorruptManifestError(InvalidInputError):
    """A project manifest exists but does not parse as a project."""


class StorageExhaustedError(ReelForgeError):
    """The storage device is out of space."""

    def __str__(self):
        base = super().__str__()
        return base or "No space left on device. Free up disk space and try again."


class UnknownStorageError(ReelForgeError):
    """Wrapped I/O failure that fits no other category."""


_EXHAUSTED_ERRNOS = {errno.ENOSPC, errno.EDQUOT}


@contextmanager
def storage_errors(action: str):
    """Translate OSErrors raised inside the block into the taxonomy.

    FileNotFoundError becomes NotFoundError, ENOSPC/EDQUOT become
    StorageExhaustedError, everything else UnknownStorageError.
    Errors already in the taxonomy pass through untouched.
    """
    try:
        yield
    except ReelForgeError:
        raise
    except FileNotFoundError as exc:
        raise NotFoundError(f"{action}: {exc.filename or exc}") from exc
    except OSError as exc:
        if exc.errno in _EXHAUSTED_ERRNOS:
            raise StorageExhaustedError() from exc
        raise UnknownStorageError(f"{action}: {exc}") from exc
