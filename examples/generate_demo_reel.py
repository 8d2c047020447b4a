#!/usr/bin/env python3
"""Generate synthetic media and a timeline manifest for a reelforge demo.

Creates numbered photos, a few short clips, and a music track in
examples/demo-media/, then writes examples/demo-reel.yaml listing them.
Each photo shows its position in the reel so the order and the
crossfades are easy to check. Clips are shorter than a photo, so the
schedule slows them down to fill their slots.

Usage:
    python examples/generate_demo_reel.py
    # Then:
    reelforge schedule --manifest examples/demo-reel.yaml
    reelforge save --manifest examples/demo-reel.yaml --title "Demo Reel"
"""

import numpy as np
import yaml
from moviepy import AudioArrayClip, ColorClip
from pathlib import Path
from PIL import Image, ImageDraw, ImageFont

EXAMPLES_DIR = Path(__file__).resolve().parent
OUTPUT_DIR = EXAMPLES_DIR / "demo-media"
MANIFEST_PATH = EXAMPLES_DIR / "demo-reel.yaml"
SIZE = (540, 960)
FPS = 30

# (name, color, clip duration in seconds or None for a photo)
MEDIA = [
    ("01-photo", (180, 60, 60),   None),
    ("02-clip",  (60, 60, 180),   1.5),
    ("03-photo", (60, 160, 60),   None),
    ("04-photo", (200, 130, 40),  None),
    ("05-clip",  (130, 60, 180),  2.5),
    ("06-photo", (40, 170, 170),  None),
]

MUSIC_SECONDS = 20.0
MUSIC_RATE = 44100


def _load_font(size):
    try:
        return ImageFont.truetype("/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf", size)
    except OSError:
        return ImageFont.load_default()


def _make_photo(label: str, color: tuple[int, int, int]) -> Image.Image:
    """Solid-color frame with the item label centered in white."""
    img = Image.new("RGB", SIZE, color)
    draw = ImageDraw.Draw(img)
    font = _load_font(72)
    bbox = draw.textbbox((0, 0), label, font=font)
    tw, th = bbox[2] - bbox[0], bbox[3] - bbox[1]
    draw.text(((SIZE[0] - tw) / 2, (SIZE[1] - th) / 2), label, fill=(255, 255, 255), font=font)
    return img


def _write_music(out: Path):
    """Two alternating tones, a half-second each, so beats are audible."""
    t = np.arange(int(MUSIC_SECONDS * MUSIC_RATE)) / MUSIC_RATE
    freq = np.where((t * 2).astype(int) % 2 == 0, 440.0, 660.0)
    tone = 0.2 * np.sin(2 * np.pi * freq * t)
    clip = AudioArrayClip(np.column_stack([tone, tone]), fps=MUSIC_RATE)
    clip.write_audiofile(str(out), logger=None)


def main():
    OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
    items = []
    for name, color, duration in MEDIA:
        if duration is None:
            out = OUTPUT_DIR / f"{name}.jpg"
            if not out.exists():
                _make_photo(name.split("-")[0], color).save(out, quality=90)
                print(f"  wrote {out.name}")
            items.append({"path": f"${{media}}/{out.name}", "position": "center center"})
        else:
            out = OUTPUT_DIR / f"{name}.mp4"
            if not out.exists():
                clip = ColorClip(size=SIZE, color=color, duration=duration)
                clip.write_videofile(str(out), fps=FPS, logger=None)
                print(f"  wrote {out.name} ({duration}s)")
            items.append({"path": f"${{media}}/{out.name}", "scale": 1.2})

    music = OUTPUT_DIR / "music.mp3"
    if not music.exists():
        _write_music(music)
        print(f"  wrote {music.name} ({MUSIC_SECONDS}s)")

    manifest = {
        "video": {"platform": "tiktok", "fps": FPS, "dissolve": 0.5, "fit_to_audio": True},
        "paths": {"media": str(OUTPUT_DIR)},
        "audio": {"path": "${media}/music.mp3"},
        "items": items,
    }
    MANIFEST_PATH.write_text(yaml.safe_dump(manifest, sort_keys=False))
    print(f"\nDone. {len(items)} items in {OUTPUT_DIR}, manifest at {MANIFEST_PATH}")


if __name__ == "__main__":
    main()
