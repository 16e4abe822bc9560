#!/usr/bin/env python3
from __future__ import annotations

import subprocess

from loguru import logger

from .diff_utils import parse_diff
from .models import Diff

NO_INDEX_DIFF_FOUND = 1


def run_git(repo_path: str, args: list[str], input_text: str | None = None, ok_codes: tuple[int, ...] = (0,)) -> str:
    result = subprocess.run(
        ["git", "-C", repo_path, *args],
        check=False,
        input=input_text,
        capture_output=True,
        text=True,
        errors="replace",
    )
    if result.returncode not in ok_codes:
        stderr = result.stderr.strip() or "(no details)"
        raise RuntimeError(f"git failed: {stderr}")
    return result.stdout


def is_git_repo(path: str) -> bool:
    result = subprocess.run(
        ["git", "-C", path, "rev-parse", "--git-dir"],
        check=False,
        capture_output=True,
        text=True,
    )
    return result.returncode == 0


def build_diff_args(path: str, commit: str | None, context_lines: int, untracked: bool = False) -> list[str]:
    unified = f"--unified={context_lines}"
    if untracked:
        return ["diff", "--no-color", "--no-index", unified, "--", "/dev/null", path]
    if commit:
        return ["show", "--no-color", "--format=", unified, commit, "--", path]
    return ["diff", "--no-color", unified, "--", path]


def load_file_diff(
    repo_path: str,
    path: str,
    commit: str | None = None,
    context_lines: int = 3,
    untracked: bool = False,
) -> Diff:
    ok_codes = (0, NO_INDEX_DIFF_FOUND) if untracked else (0,)
    output = run_git(repo_path, build_diff_args(path, commit, context_lines, untracked), ok_codes=ok_codes)
    return parse_diff(output)


def fetch_file_diff(
    repo_path: str,
    path: str,
    commit: str | None = None,
    context_lines: int = 3,
    untracked: bool = False,
) -> Diff:
    try:
        return load_file_diff(repo_path, path, commit, context_lines, untracked)
    except (RuntimeError, OSError) as exc:
        logger.warning(f"No diff available for {path} at {commit or 'working tree'}: {exc}")
        return Diff.empty()


def apply_patch(repo_path: str, patch: str, reverse: bool = False) -> None:
    args = ["apply", "--cached", "--recount", "--unidiff-zero", "--whitespace=nowarn"]
    if reverse:
        args.append("-R")
    run_git(repo_path, args, input_text=patch)


def list_untracked(repo_path: str) -> set[str]:
    output = run_git(repo_path, ["ls-files", "--others", "--exclude-standard"])
    return {line for line in output.splitlines() if line.strip()}


class GitDiffSource:
    """Diff source for :class:`diffselect.session.FileDiffSession` backed by git."""

    def __init__(self, repo_path: str, context_lines: int = 3) -> None:
        self.repo_path = repo_path
        self.context_lines = context_lines

    def __call__(self, path: str, commit: str | None) -> Diff:
        untracked = False
        if commit is None:
            try:
                untracked = path in list_untracked(self.repo_path)
            except RuntimeError as exc:
                logger.warning(f"Could not list untracked files: {exc}")
        return fetch_file_diff(self.repo_path, path, commit, self.context_lines, untracked)
