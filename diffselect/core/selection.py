#!/usr/bin/env python3
from __future__ import annotations

from loguru import logger

from .models import Diff, DiffSelection, SelectionSummary


def summarize(selection: DiffSelection) -> SelectionSummary:
    if not selection.overrides:
        return selection.default_include
    values = set(selection.overrides.values())
    if values == {True}:
        return SelectionSummary.ALL
    if values == {False}:
        return SelectionSummary.NONE
    return SelectionSummary.PARTIAL


def reset_selection(included: bool) -> DiffSelection:
    default = SelectionSummary.ALL if included else SelectionSummary.NONE
    return DiffSelection(default_include=default)


def effective_include(selection: DiffSelection, index: int) -> bool:
    if index in selection.overrides:
        return selection.overrides[index]
    return selection.default_include is SelectionSummary.ALL


def seed_selection(diff: Diff, selection: DiffSelection) -> DiffSelection:
    """Expand ``selection`` to one explicit entry per selectable line of ``diff``.

    Keys that do not address a selectable line of ``diff`` are dropped. Without
    this expansion a single override would hide the implied state of every
    other line from :func:`summarize`.
    """
    seeded = {index: effective_include(selection, index) for index in diff.selectable_indices()}
    return DiffSelection(default_include=selection.default_include, overrides=seeded)


def _selectable_in_range(diff: Diff, start: int, end: int) -> list[int]:
    if start > end:
        start, end = end, start
    indices: list[int] = []
    for index in range(max(start, 0), min(end, diff.total_lines - 1) + 1):
        line = diff.line_at(index)
        if line is not None and line.selectable:
            indices.append(index)
    return indices


def _set_many(diff: Diff, selection: DiffSelection, indices: list[int], included: bool) -> DiffSelection:
    seeded = seed_selection(diff, selection)
    overrides = dict(seeded.overrides)
    for index in indices:
        overrides[index] = included
    return DiffSelection(default_include=selection.default_include, overrides=overrides)


def set_range_included(
    diff: Diff,
    selection: DiffSelection,
    start: int,
    end: int,
    included: bool,
) -> DiffSelection:
    indices = _selectable_in_range(diff, start, end)
    if not indices:
        logger.debug(f"No selectable lines in [{start}, {end}], selection unchanged")
        return selection
    return _set_many(diff, selection, indices, included)


def set_line_included(diff: Diff, selection: DiffSelection, index: int, included: bool) -> DiffSelection:
    return set_range_included(diff, selection, index, index, included)


def toggle_range(diff: Diff, selection: DiffSelection, start: int, end: int) -> DiffSelection:
    indices = _selectable_in_range(diff, start, end)
    if not indices:
        logger.debug(f"No selectable lines in [{start}, {end}], selection unchanged")
        return selection
    target = not effective_include(selection, indices[0])
    return _set_many(diff, selection, indices, target)


def toggle_line(diff: Diff, selection: DiffSelection, index: int) -> DiffSelection:
    return toggle_range(diff, selection, index, index)


def apply_selection(diff: Diff, selection: DiffSelection) -> None:
    """Write the effective state of ``selection`` into the line flags of ``diff``."""
    if not selection.overrides:
        diff.set_all_lines(selection.default_include is SelectionSummary.ALL)
        return
    for index, line in diff.iter_lines():
        if line.selectable:
            line.included = effective_include(selection, index)


def included_indices(diff: Diff, selection: DiffSelection) -> list[int]:
    return [index for index in diff.selectable_indices() if effective_include(selection, index)]
