# main.py
"""CLI entry point for the Author House manuscript pipeline."""

from __future__ import annotations

import argparse
import sys

from orchestration.cli_runner import run


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="author-house",
        description="Chunked, cached, rate-limited manuscript review.",
    )
    parser.add_argument("--log-level", default=None, help="Override HOUSE_LOG_LEVEL")
    commands = parser.add_subparsers(dest="command", required=True)

    pipeline = commands.add_parser("pipeline", help="Run the publishing-house review")
    pipeline.add_argument("path", help="Chapter file or directory of chapters")
    pipeline.add_argument("--scope", choices=["project", "chapter"], default="project")
    pipeline.add_argument("--chapter", default=None, help="Chapter id (file stem)")
    pipeline.add_argument("--brief", default=None, help="Instructions for all roles")
    pipeline.add_argument("--output", default=None, help="Report file name")

    for name, help_text in (
        ("style-guide", "Extract a style guide from the project"),
        ("character-bible", "Build a character bible from the project"),
        ("clear-cache", "Drop cached results for the project"),
    ):
        sub = commands.add_parser(name, help=help_text)
        sub.add_argument("path", help="Chapter file or directory of chapters")

    for name, help_text in (
        ("summary", "Summarize a chapter with a fact table"),
        ("line-edit", "Line edit a chapter"),
        ("continue", "Continue writing from the end of a chapter"),
    ):
        sub = commands.add_parser(name, help=help_text)
        sub.add_argument("path", help="Chapter file or directory of chapters")
        sub.add_argument("--chapter", default=None, help="Chapter id (file stem)")

    research = commands.add_parser("research", help="Ask the research provider")
    research.add_argument("question")

    plan = commands.add_parser("plan", help="Chat with the book planner")
    plan.add_argument("message", nargs="?", default=None)
    plan.add_argument("--session", default="planner", help="Planner chat name")
    plan.add_argument("--reset", action="store_true", help="Start a new chat")

    book = commands.add_parser(
        "generate-book", help="Create a book project from the planner chat"
    )
    book.add_argument("--session", default="planner", help="Planner chat name")
    book.add_argument("--write", action="store_true", help="Write every chapter")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Parse command-line arguments and run the requested command."""
    args = build_parser().parse_args(argv)
    return run(args)


if __name__ == "__main__":
    sys.exit(main())
