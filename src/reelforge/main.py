"""Subcommand dispatcher for reelforge.

Usage:
    reelforge schedule --manifest reel.yaml
    reelforge save     --manifest reel.yaml --title "My Reel"
    reelforge projects list
    reelforge projects show "My Reel"
    reelforge projects delete "My Reel"
"""

import argparse
import logging
import sys


def main(args=None):
    parser = argparse.ArgumentParser(
        prog="reelforge",
        description="Fit photos and clips to a music-length reel, and save reel projects.",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Log storage activity to stderr",
    )
    subparsers = parser.add_subparsers(dest="command")

    # Register subcommands. Each delegates to its own module's main().
    subparsers.add_parser("schedule", help="Compute the timeline schedule for a YAML manifest")
    subparsers.add_parser("save", help="Save a YAML manifest and its media as a project")
    subparsers.add_parser("projects", help="List, show, or delete saved projects")

    # Parse only the subcommand name, pass the rest to the subcommand's parser.
    parsed, remaining = parser.parse_known_args(args)

    if parsed.command is None:
        # No subcommand given at all: show help and exit with error.
        parser.print_help()
        sys.exit(1)

    logging.basicConfig(
        level=logging.DEBUG if parsed.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if parsed.command == "schedule":
        from .schedule_cli import main as schedule_main
        schedule_main(remaining)
    elif parsed.command == "save":
        from .projects_cli import save_main
        save_main(remaining)
    elif parsed.command == "projects":
        from .projects_cli import main as projects_main
        projects_main(remaining)


if __name__ == "__main__":
    main()
