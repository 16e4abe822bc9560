#!/usr/bin/env python3
from __future__ import annotations

import dataclasses
import threading
from typing import Callable

from loguru import logger

from .core.diff_utils import build_partial_patch
from .core.git_client import apply_patch
from .core.models import Diff, DiffSelection, SelectionSummary
from .core.selection import (
    apply_selection,
    included_indices,
    reset_selection,
    set_line_included,
    set_range_included,
    summarize,
    toggle_line,
    toggle_range,
)

DiffSource = Callable[[str, str | None], Diff]


@dataclasses.dataclass
class WorkingFileChange:
    path: str
    selection: DiffSelection = dataclasses.field(default_factory=DiffSelection)


@dataclasses.dataclass(frozen=True)
class DiffRequest:
    path: str
    commit: str | None
    token: int


class FileDiffSession:
    """Owns the diff currently shown for one file and that file's selection.

    Loads are tagged with a token; a result whose token is no longer the
    active one is dropped. Only working-tree diffs (no commit) are selectable,
    commit diffs are read-only.
    """

    def __init__(self, default_include: bool = True) -> None:
        self.default_include = default_include
        self.file: WorkingFileChange | None = None
        self.commit: str | None = None
        self.diff = Diff.empty()
        self._token = 0
        self._active: DiffRequest | None = None
        self._lock = threading.Lock()

    @property
    def read_only(self) -> bool:
        return self.file is None or self.commit is not None

    @property
    def selection(self) -> DiffSelection | None:
        return self.file.selection if self.file else None

    @property
    def summary(self) -> SelectionSummary:
        if self.file is None:
            return SelectionSummary.NONE
        return summarize(self.file.selection)

    def _open_file(self, path: str) -> WorkingFileChange:
        if self.file is None or self.file.path != path:
            self.file = WorkingFileChange(path=path, selection=reset_selection(self.default_include))
        return self.file

    def begin_load(self, path: str, commit: str | None = None) -> DiffRequest | None:
        with self._lock:
            same_file = self.file is not None and self.file.path == path
            same_commit = commit is not None and commit == self.commit
            if same_file and same_commit:
                # Going back to the shown diff still supersedes any pending load.
                self._active = None
                return None
            self._token += 1
            request = DiffRequest(path=path, commit=commit, token=self._token)
            self._active = request
            return request

    def complete_load(self, request: DiffRequest, diff: Diff) -> bool:
        with self._lock:
            if self._active != request:
                logger.debug(f"Dropping superseded diff for {request.path} ({request.commit or 'working tree'})")
                return False
            self._active = None
            change = self._open_file(request.path)
            self.commit = request.commit
            self.diff = diff
            if request.commit is None:
                apply_selection(diff, change.selection)
            return True

    def load(self, source: DiffSource, path: str, commit: str | None = None) -> bool:
        request = self.begin_load(path, commit)
        if request is None:
            return False
        return self.complete_load(request, source(path, commit))

    def load_in_background(
        self,
        source: DiffSource,
        path: str,
        commit: str | None = None,
        on_loaded: Callable[[Diff], None] | None = None,
    ) -> threading.Thread | None:
        request = self.begin_load(path, commit)
        if request is None:
            return None

        def worker() -> None:
            try:
                diff = source(path, commit)
            except Exception as exc:
                logger.warning(f"Diff source failed for {path}: {exc}")
                diff = Diff.empty()
            if self.complete_load(request, diff) and on_loaded:
                on_loaded(diff)

        thread = threading.Thread(target=worker, daemon=True)
        thread.start()
        return thread

    def _update(self, change: Callable[[Diff, DiffSelection], DiffSelection]) -> DiffSelection | None:
        with self._lock:
            if self.file is None or self.read_only:
                logger.debug("Ignoring selection change on a read-only diff")
                return self.selection
            self.file.selection = change(self.diff, self.file.selection)
            apply_selection(self.diff, self.file.selection)
            return self.file.selection

    def toggle_line(self, index: int) -> DiffSelection | None:
        return self._update(lambda diff, selection: toggle_line(diff, selection, index))

    def toggle_range(self, start: int, end: int) -> DiffSelection | None:
        return self._update(lambda diff, selection: toggle_range(diff, selection, start, end))

    def set_line_included(self, index: int, included: bool) -> DiffSelection | None:
        return self._update(lambda diff, selection: set_line_included(diff, selection, index, included))

    def set_range_included(self, start: int, end: int, included: bool) -> DiffSelection | None:
        return self._update(lambda diff, selection: set_range_included(diff, selection, start, end, included))

    def select_all(self, included: bool) -> DiffSelection | None:
        with self._lock:
            if self.file is None or self.read_only:
                return self.selection
            self.diff.set_all_lines(included)
            self.file.selection = reset_selection(included)
            return self.file.selection

    def included_indices(self) -> list[int]:
        if self.file is None:
            return []
        return included_indices(self.diff, self.file.selection)

    def build_patch(self) -> str | None:
        if self.file is None or self.read_only:
            return None
        return build_partial_patch(self.diff, self.file.selection, self.file.path)

    def stage(self, repo_path: str) -> bool:
        """Apply the included lines to the index.

        The diff this selection was made against is stale afterwards, so the
        selection goes back to the default and the caller should reload.
        """
        patch = self.build_patch()
        if patch is None:
            return False
        apply_patch(repo_path, patch)
        with self._lock:
            if self.file is not None:
                self.file.selection = reset_selection(self.default_include)
                apply_selection(self.diff, self.file.selection)
        return True
