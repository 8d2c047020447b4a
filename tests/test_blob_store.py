"""Tests for the content-addressed media store."""

import errno
import hashlib
import os
from concurrent.futures import ThreadPoolExecutor

import pytest

from reelforge.blob_store import BlobStore, content_key, is_valid_key
from reelforge.errors import (
    InvalidInputError,
    NotFoundError,
    StorageExhaustedError,
    UnknownStorageError,
)


@pytest.fixture
def store(tmp_path):
    return BlobStore(tmp_path / "media")


class TestContentKey:
    def test_hash_prefix_and_extension(self):
        data = b"hello reel"
        expected = hashlib.sha256(data).hexdigest()[:16] + ".jpg"
        assert content_key(data, ".jpg") == expected

    def test_extension_is_normalized(self):
        assert content_key(b"x", "JPG") == content_key(b"x", ".jpg")

    def test_extension_distinguishes_keys(self):
        assert content_key(b"x", ".jpg") != content_key(b"x", ".png")

    def test_invalid_extension_raises(self):
        with pytest.raises(InvalidInputError, match="extension"):
            content_key(b"x", "")

    def test_key_is_valid(self):
        assert is_valid_key(content_key(b"abc", ".mp4"))


class TestIsValidKey:
    @pytest.mark.parametrize("key", ["0123456789abcdef.jpg", "a_b-c.tar.gz"])
    def test_accepts(self, key):
        assert is_valid_key(key)

    @pytest.mark.parametrize("key", [
        "", "noext", "../etc.jpg", "a/b.jpg", "..", ".jpg", ".tmp-abc", "a..jpg",
    ])
    def test_rejects(self, key):
        assert not is_valid_key(key)


class TestPutGet:
    def test_round_trip(self, store):
        key = store.put(b"pixels", ".jpg")
        assert store.get(key) == b"pixels"
        assert store.exists(key)

    def test_creates_root(self, store):
        assert not store.root.exists()
        store.put(b"pixels", ".jpg")
        assert store.root.is_dir()

    def test_same_bytes_stored_once(self, store):
        first = store.put(b"same", ".png")
        second = store.put(b"same", ".png")
        assert first == second
        assert store.keys() == [first]

    def test_existing_blob_is_not_rewritten(self, store):
        key = store.put(b"original", ".jpg")
        mtime = (store.root / key).stat().st_mtime_ns
        store.put(b"original", ".jpg")
        assert (store.root / key).stat().st_mtime_ns == mtime

    def test_no_temp_files_left_behind(self, store):
        store.put(b"a", ".jpg")
        store.put(b"a", ".jpg")
        assert sorted(os.listdir(store.root)) == store.keys()

    def test_empty_bytes(self, store):
        key = store.put(b"", ".jpg")
        assert store.get(key) == b""

    def test_concurrent_puts_converge(self, store):
        data = os.urandom(64 * 1024)
        with ThreadPoolExecutor(max_workers=8) as pool:
            keys = list(pool.map(lambda _: store.put(data, ".mp4"), range(16)))
        assert len(set(keys)) == 1
        assert store.get(keys[0]) == data
        assert store.keys() == [keys[0]]


class TestMissingAndInvalid:
    def test_get_unknown_key(self, store):
        with pytest.raises(NotFoundError):
            store.get("0123456789abcdef.jpg")

    @pytest.mark.parametrize("key", ["../secret.txt", "a/b.jpg", ""])
    def test_get_invalid_key_is_not_found(self, store, key):
        with pytest.raises(NotFoundError):
            store.get(key)

    def test_exists_invalid_key(self, store):
        assert not store.exists("../x.jpg")

    def test_keys_of_missing_root(self, store):
        assert store.keys() == []

    def test_keys_skip_temp_files(self, store):
        key = store.put(b"a", ".jpg")
        (store.root / ".tmp-abc123").write_bytes(b"partial")
        assert store.keys() == [key]


class TestStorageErrors:
    def test_disk_full(self, store, monkeypatch):
        def _full(fd):
            raise OSError(errno.ENOSPC, "No space left on device")

        monkeypatch.setattr(os, "fsync", _full)
        with pytest.raises(StorageExhaustedError, match="No space left"):
            store.put(b"x" * 10, ".jpg")

    def test_other_os_error(self, store, monkeypatch):
        def _denied(src, dst, **kwargs):
            raise PermissionError(errno.EACCES, "Permission denied")

        monkeypatch.setattr(os, "link", _denied)
        with pytest.raises(UnknownStorageError):
            store.put(b"x", ".jpg")
        assert store.keys() == []
        assert os.listdir(store.root) == []
