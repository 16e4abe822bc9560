#!/usr/bin/env python3
from __future__ import annotations

import argparse
import os
import sys

from loguru import logger

from .core.git_client import GitDiffSource, is_git_repo
from .core.models import Diff, line_kind_tag
from .core.settings_store import get_settings_path, load_settings
from .session import FileDiffSession

MARKERS = {True: "[x]", False: "[ ]"}


def parse_range(value: str) -> tuple[int, int]:
    start, sep, end = value.partition(":")
    try:
        if not sep:
            return int(start), int(start)
        return int(start), int(end)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid range {value!r}, expected START:END") from None


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Pick the lines of a file diff to stage in a git repository.")
    parser.add_argument("path", help="File path relative to the repository root")
    parser.add_argument(
        "--repo",
        default=os.getcwd(),
        help="Path of the git repository (default: current directory)",
    )
    parser.add_argument("--commit", default=None, help="Show the file diff of this commit (read-only)")
    parser.add_argument("--context", type=int, default=None, help="Context lines around each change")
    parser.add_argument("--none", action="store_true", help="Start with no line included")
    parser.add_argument("--toggle", type=int, action="append", default=[], help="Toggle a line by global index")
    parser.add_argument("--range", type=parse_range, action="append", default=[], help="Toggle START:END lines")
    parser.add_argument("--stage", action="store_true", help="Stage the included lines")
    parser.add_argument("--verbose", action="store_true", help="Log debug messages")
    return parser.parse_args(argv)


def format_diff(diff: Diff, read_only: bool) -> list[str]:
    if diff.is_binary:
        return ["(binary file)"]
    if not diff.hunks:
        return ["(no diff)"]
    output: list[str] = []
    for index, line in diff.iter_lines():
        tag = line_kind_tag(line.kind)
        if tag == "meta":
            output.append(f"{index:>5}     {line.text}")
            continue
        marker = MARKERS[line.included] if line.selectable and not read_only else "   "
        number = line.new_line_number if tag == "added" else line.old_line_number
        output.append(f"{index:>5} {marker} {number:>6} {line.text}")
    return output


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    settings = load_settings(get_settings_path())
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if args.verbose else str(settings["log_level"]))

    repo_path = os.path.abspath(args.repo)
    if not is_git_repo(repo_path):
        print(f"Not a git repository: {repo_path}", file=sys.stderr)
        return 2

    context_lines = args.context if args.context is not None else int(settings["context_lines"])
    default_include = settings["default_include"] == "all" and not args.none
    session = FileDiffSession(default_include=default_include)
    session.load(GitDiffSource(repo_path, context_lines), args.path, args.commit)

    for index in args.toggle:
        session.toggle_line(index)
    for start, end in args.range:
        session.toggle_range(start, end)

    print("\n".join(format_diff(session.diff, session.read_only)))
    if not session.read_only and session.diff.hunks:
        print(f"selection: {session.summary.value}")

    if args.stage:
        try:
            staged = session.stage(repo_path)
        except RuntimeError as exc:
            print(str(exc), file=sys.stderr)
            return 1
        print("staged" if staged else "nothing to stage")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
