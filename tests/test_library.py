"""Tests for the media library (blob store + manifest store together)."""

import asyncio
import errno
import os

import pytest

from reelforge.blob_store import content_key
from reelforge.errors import (
    InvalidInputError,
    NotFoundError,
    StorageExhaustedError,
    UnknownStorageError,
)
from reelforge.models import AudioRef, DurationMode, MediaItem, Project, Transform


def _write_images(directory, count):
    """Write `count` small files with distinct bytes, return their paths."""
    directory.mkdir(parents=True, exist_ok=True)
    paths = []
    for i in range(count):
        path = directory / f"img{i}.jpg"
        path.write_bytes(f"image bytes {i}".encode())
        paths.append(path)
    return paths


def _project(paths, title="Beach Day", audio_path=None):
    items = tuple(
        MediaItem.image(str(p), p.name, Transform.from_css("30% 70%", 1.2)) for p in paths
    )
    audio = None
    if audio_path is not None:
        audio = AudioRef(source_ref=str(audio_path), file_name=audio_path.name,
                         duration_seconds=12.0)
    return Project(title=title, items=items, audio=audio,
                   duration_mode=DurationMode.matching_audio())


class TestSaveProject:
    def test_source_refs_become_content_keys(self, library, tmp_path):
        paths = _write_images(tmp_path / "in", 2)
        saved = library.save_project(_project(paths))
        keys = [item.source_ref for item in saved.project.items]
        assert keys == [content_key(p.read_bytes(), ".jpg") for p in paths]
        for key, path in zip(keys, paths):
            assert library.read_media(key) == path.read_bytes()

    def test_location_is_project_directory(self, library, tmp_path):
        saved = library.save_project(_project(_write_images(tmp_path / "in", 1)))
        assert saved.location == library.root / "projects" / "Beach-Day"

    def test_returns_what_load_returns(self, library, tmp_path):
        saved = library.save_project(_project(_write_images(tmp_path / "in", 3)))
        assert library.load_project("Beach Day") == saved.project
        assert saved.project.saved_at is not None

    def test_metadata_survives(self, library, tmp_path):
        paths = _write_images(tmp_path / "in", 2)
        saved = library.save_project(_project(paths))
        loaded = library.load_project("Beach Day")
        assert loaded.title == "Beach Day"
        assert loaded.duration_mode.match_audio
        assert [i.original_file_name for i in loaded.items] == ["img0.jpg", "img1.jpg"]
        assert loaded.items[0].transform == Transform(position_x=30, position_y=70, scale=1.2)
        assert saved.project.items == loaded.items

    def test_audio_is_stored(self, library, tmp_path, music_file):
        saved = library.save_project(
            _project(_write_images(tmp_path / "in", 1), audio_path=music_file)
        )
        audio = saved.project.audio
        assert audio.source_ref.endswith(".wav")
        assert audio.file_name == "song.wav"
        assert library.read_media(audio.source_ref) == music_file.read_bytes()

    def test_duplicate_files_share_one_blob(self, library, tmp_path):
        a = tmp_path / "a.jpg"
        b = tmp_path / "b.jpg"
        a.write_bytes(b"same pixels")
        b.write_bytes(b"same pixels")
        saved = library.save_project(_project([a, b]))
        assert saved.project.items[0].source_ref == saved.project.items[1].source_ref
        assert len(library.media.keys()) == 1

    def test_resave_reuses_existing_keys(self, library, tmp_path):
        saved = library.save_project(_project(_write_images(tmp_path / "in", 2)))
        again = library.save_project(saved.project.model_copy(update={"title": "Copy"}))
        assert again.project.items == saved.project.items
        assert len(library.media.keys()) == 2

    def test_missing_source_file(self, library, tmp_path):
        with pytest.raises(NotFoundError):
            library.save_project(_project([tmp_path / "nope.jpg"]))
        assert library.list_projects() == []

    def test_extension_falls_back_to_kind_default(self, library, tmp_path):
        path = tmp_path / "noext"
        path.write_bytes(b"pixels")
        project = Project(title="t", items=(MediaItem.image(str(path), ""),))
        saved = library.save_project(project)
        assert saved.project.items[0].source_ref.endswith(".jpg")

    def test_media_written_before_manifest(self, library, tmp_path, monkeypatch):
        paths = _write_images(tmp_path / "in", 2)
        original_save = library.projects.save

        def _checking_save(project):
            assert all(library.media.exists(i.source_ref) for i in project.items)
            return original_save(project)

        monkeypatch.setattr(library.projects, "save", _checking_save)
        library.save_project(_project(paths))

    def test_disk_full_leaves_no_manifest(self, library, tmp_path, monkeypatch):
        paths = _write_images(tmp_path / "in", 2)

        def _full(fd):
            raise OSError(errno.ENOSPC, "No space left on device")

        monkeypatch.setattr(os, "fsync", _full)
        with pytest.raises(StorageExhaustedError):
            library.save_project(_project(paths))
        monkeypatch.undo()
        with pytest.raises(NotFoundError):
            library.load_project("Beach Day")


class TestProjects:
    def test_list(self, library, tmp_path):
        paths = _write_images(tmp_path / "in", 1)
        library.save_project(_project(paths, title="one"))
        library.save_project(_project(paths, title="two"))
        assert [s.name for s in library.list_projects()] == ["one", "two"]

    def test_delete_keeps_shared_media(self, library, tmp_path):
        paths = _write_images(tmp_path / "in", 1)
        library.save_project(_project(paths, title="one"))
        saved = library.save_project(_project(paths, title="two"))
        library.delete_project("one")
        key = saved.project.items[0].source_ref
        assert library.read_media(key) == paths[0].read_bytes()
        assert library.missing_media(library.load_project("two")) == []

    def test_delete_missing(self, library):
        with pytest.raises(NotFoundError):
            library.delete_project("nope")

    def test_missing_media(self, library):
        project = Project(
            title="t",
            items=(MediaItem.image("0123456789abcdef.jpg"),),
            audio=AudioRef(source_ref="00112233aabbccdd.mp3"),
        )
        assert library.missing_media(project) == ["0123456789abcdef.jpg", "00112233aabbccdd.mp3"]

    def test_read_media_invalid_key(self, library):
        with pytest.raises(NotFoundError):
            library.read_media("../../etc/passwd")


class TestTransforms:
    def test_none_saved(self, library):
        assert library.load_transforms() == []

    def test_round_trip(self, library):
        transforms = [{"position": "30% 70%", "scale": 1.2}, {"position": "center", "scale": 1}]
        library.save_transforms(transforms)
        assert library.load_transforms() == transforms

    def test_overwrite(self, library):
        library.save_transforms([{"position": "top", "scale": 1.0}])
        library.save_transforms([])
        assert library.load_transforms() == []

    @pytest.mark.parametrize("payload", [
        {"position": "top", "scale": 1.0},
        ["top"],
        [{"position": 5, "scale": 1.0}],
        [{"position": "top", "scale": "big"}],
        [{"position": "top", "scale": True}],
        [{"position": "top"}],
    ])
    def test_rejects_malformed(self, library, payload):
        with pytest.raises(InvalidInputError):
            library.save_transforms(payload)
        assert library.load_transforms() == []

    def test_failed_write_leaves_no_temp_file(self, library, monkeypatch):
        def _denied(src, dst):
            raise PermissionError(errno.EACCES, "Permission denied")

        monkeypatch.setattr(os, "replace", _denied)
        with pytest.raises(UnknownStorageError):
            library.save_transforms([{"position": "top", "scale": 1.0}])
        assert list(library.root.iterdir()) == []

    def test_corrupt_file(self, library):
        library.root.mkdir(parents=True)
        (library.root / "transforms.json").write_text("{oops")
        with pytest.raises(InvalidInputError):
            library.load_transforms()

    def test_file_not_a_list(self, library):
        library.root.mkdir(parents=True)
        (library.root / "transforms.json").write_text('{"position": "top"}')
        with pytest.raises(InvalidInputError, match="expected a list"):
            library.load_transforms()


class TestAsyncFacade:
    def test_save_load_list_delete(self, library, tmp_path):
        paths = _write_images(tmp_path / "in", 2)

        async def scenario():
            saved = await library.asave_project(_project(paths))
            loaded = await library.aload_project("Beach Day")
            data = await library.aread_media(loaded.items[0].source_ref)
            summaries = await library.alist_projects()
            await library.adelete_project("Beach Day")
            return saved, loaded, data, summaries

        saved, loaded, data, summaries = asyncio.run(scenario())
        assert loaded == saved.project
        assert data == paths[0].read_bytes()
        assert [s.title for s in summaries] == ["Beach Day"]
        assert library.list_projects() == []

    def test_concurrent_saves_of_shared_media(self, library, tmp_path):
        paths = _write_images(tmp_path / "in", 3)

        async def scenario():
            await asyncio.gather(*(
                library.asave_project(_project(paths, title=f"reel {i}")) for i in range(5)
            ))

        asyncio.run(scenario())
        assert len(library.list_projects()) == 5
        assert len(library.media.keys()) == 3

    def test_errors_propagate(self, library):
        with pytest.raises(NotFoundError):
            asyncio.run(library.aload_project("nope"))
