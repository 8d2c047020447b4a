"""CLI for scheduling -- print the timeline a manifest produces.

Loads a YAML timeline manifest, reads media durations, resolves the
target length from the video settings, and prints one row per segment.

Usage:
    reelforge schedule --manifest reel.yaml
    reelforge schedule --manifest reel.yaml --json > schedule.json
    reelforge schedule --manifest reel.yaml --target 45
"""

import argparse

from .compositor import compute_schedule, render_plan, schedule_project
from .timeline_manifest import build_project, load_timeline_manifest, validate_timeline_paths


def format_schedule(schedule, fps: int) -> str:
    """Human-readable table of a schedule."""
    lines = [
        f"{len(schedule.segments)} segments, "
        f"{schedule.total_frames} frames ({schedule.total_frames / fps:.1f}s), "
        f"target {schedule.target_frames}, dissolve {schedule.dissolve_frames}",
    ]
    for step in render_plan(schedule):
        seg = step.segment
        lines.append(
            f"  [{step.index}] {seg.item.kind.value:<5} "
            f"{seg.start_frame:>6} -> {seg.end_frame:<6} "
            f"retimed {seg.retimed_duration_frames:>5} / orig {seg.original_duration_frames:<5} "
            f"rate {step.playback_rate:.3f}  {seg.item.original_file_name}"
        )
    return "\n".join(lines)


def main(args=None):
    parser = argparse.ArgumentParser(
        description="Compute the timeline schedule for a YAML manifest.",
    )
    parser.add_argument(
        "--manifest", required=True,
        help="Path to YAML timeline manifest",
    )
    parser.add_argument(
        "--target", type=float, default=None,
        help="Override the target duration (seconds)",
    )
    parser.add_argument(
        "--json", action="store_true",
        help="Print the schedule as JSON instead of a table",
    )
    parsed = parser.parse_args(args)

    config = load_timeline_manifest(parsed.manifest)
    validate_timeline_paths(config)
    fps = config["video"]["fps"]

    project = build_project(config, title="schedule")
    if parsed.target is not None:
        if parsed.target <= 0:
            parser.error("--target must be > 0 seconds")
        schedule = compute_schedule(
            project.items, round(parsed.target * fps), project.dissolve_frames,
        )
    else:
        schedule = schedule_project(project)

    if parsed.json:
        print(schedule.model_dump_json(indent=2))
    else:
        print(format_schedule(schedule, fps))


if __name__ == "__main__":
    main()
