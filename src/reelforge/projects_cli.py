"""CLI for saved projects: save, list, show, delete.

Usage:
    reelforge save --manifest reel.yaml --title "My Reel" [--data-dir data]
    reelforge projects list [--data-dir data]
    reelforge projects show "My Reel"
    reelforge projects delete "My Reel"

Exit codes: 0 ok, 1 project not found, 2 storage or input failure.
"""

import argparse
import sys

from .compositor import schedule_project
from .errors import NotFoundError, ReelForgeError
from .library import MediaLibrary
from .schedule_cli import format_schedule
from .timeline_manifest import build_project, load_timeline_manifest, validate_timeline_paths


DEFAULT_DATA_DIR = "data"


def _fail(message: str, code: int):
    print(message, file=sys.stderr)
    sys.exit(code)


def save_main(args=None):
    parser = argparse.ArgumentParser(
        description="Save a YAML timeline manifest and its media as a project.",
    )
    parser.add_argument("--manifest", required=True, help="Path to YAML timeline manifest")
    parser.add_argument("--title", required=True, help="Project title")
    parser.add_argument("--data-dir", default=DEFAULT_DATA_DIR, help="Library data directory")
    parsed = parser.parse_args(args)

    config = load_timeline_manifest(parsed.manifest)
    validate_timeline_paths(config)
    project = build_project(config, title=parsed.title.strip() or "untitled")

    library = MediaLibrary(parsed.data_dir)
    print(f"Saving {len(project.items)} items to {parsed.data_dir}")
    try:
        saved = library.save_project(project)
    except ReelForgeError as exc:
        _fail(f"save failed: {exc}", 2)
    print(f"Done: {saved.location}")


def main(args=None):
    parser = argparse.ArgumentParser(
        description="List, show, or delete saved projects.",
    )
    parser.add_argument("--data-dir", default=DEFAULT_DATA_DIR, help="Library data directory")
    actions = parser.add_subparsers(dest="action", required=True)
    actions.add_parser("list", help="List saved projects")
    show = actions.add_parser("show", help="Show a project and its schedule")
    show.add_argument("title")
    delete = actions.add_parser("delete", help="Delete a project (shared media is kept)")
    delete.add_argument("title")
    parsed = parser.parse_args(args)

    library = MediaLibrary(parsed.data_dir)
    try:
        if parsed.action == "list":
            summaries = library.list_projects()
            if not summaries:
                print("No saved projects.")
            for summary in summaries:
                saved_at = summary.saved_at.isoformat() if summary.saved_at else "-"
                print(f"  {summary.name:<30} {saved_at}  {summary.title}")

        elif parsed.action == "show":
            project = library.load_project(parsed.title)
            print(f"{project.title}  ({project.platform.label}, "
                  f"{project.platform.width}x{project.platform.height})")
            missing = library.missing_media(project)
            if missing:
                print(f"  WARNING: {len(missing)} media file(s) missing from the store")
            print(format_schedule(schedule_project(project), project.fps))

        elif parsed.action == "delete":
            library.delete_project(parsed.title)
            print(f"Deleted: {parsed.title}")

    except NotFoundError:
        _fail(f"project not found: {getattr(parsed, 'title', '')}", 1)
    except ReelForgeError as exc:
        _fail(f"something went wrong: {exc}", 2)


if __name__ == "__main__":
    main()
