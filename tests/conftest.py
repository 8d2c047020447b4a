"""Shared test fixtures for reelforge tests."""

import subprocess

import pytest
import imageio_ffmpeg
from PIL import Image

from reelforge.library import MediaLibrary

_FFMPEG = imageio_ffmpeg.get_ffmpeg_exe()


@pytest.fixture
def source_video(tmp_path):
    """Create a 5-second test video (320x240, 10fps) with audio using ffmpeg.

    Shared by the duration and manifest-building tests.
    """
    out = tmp_path / "source.mp4"
    subprocess.run(
        [
            _FFMPEG, "-y",
            "-f", "lavfi", "-i", "color=c=blue:s=320x240:d=5:r=10",
            "-f", "lavfi", "-i", "anullsrc=r=44100:cl=mono",
            "-shortest",
            "-c:v", "libx264", "-crf", "28", "-pix_fmt", "yuv420p",
            "-c:a", "aac", "-b:a", "32k",
            str(out),
        ],
        check=True,
        capture_output=True,
    )
    return out


@pytest.fixture
def music_file(tmp_path):
    """Create a 3-second sine tone as a wav file."""
    out = tmp_path / "song.wav"
    subprocess.run(
        [
            _FFMPEG, "-y",
            "-f", "lavfi", "-i", "sine=frequency=440:duration=3",
            "-c:a", "pcm_s16le",
            str(out),
        ],
        check=True,
        capture_output=True,
    )
    return out


@pytest.fixture
def still_image(tmp_path):
    """Write a small solid-color JPEG and return its path."""
    out = tmp_path / "still.jpg"
    Image.new("RGB", (64, 48), (200, 40, 40)).save(out)
    return out


@pytest.fixture
def library(tmp_path):
    return MediaLibrary(tmp_path / "data")

