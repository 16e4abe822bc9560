#!/usr/bin/env python3
from __future__ import annotations

import bisect
import dataclasses
import enum
from collections.abc import Iterator, Mapping
from types import MappingProxyType


class DiffInvariantError(AssertionError):
    """A diff was built with broken global addressing or an unknown line kind."""


class LineKind(enum.Enum):
    CONTEXT = "context"
    ADD = "add"
    DELETE = "delete"
    HUNK = "hunk"

    @property
    def selectable(self) -> bool:
        return self in (LineKind.ADD, LineKind.DELETE)


class SelectionSummary(enum.Enum):
    ALL = "all"
    PARTIAL = "partial"
    NONE = "none"


@dataclasses.dataclass(eq=False)
class DiffLine:
    text: str
    kind: LineKind
    old_line_number: int | None
    new_line_number: int | None
    has_trailing_newline: bool = True
    included: bool = False

    def __setattr__(self, name: str, value: object) -> None:
        # Only the display flag may change once the line exists.
        if name != "included" and name in self.__dict__:
            raise dataclasses.FrozenInstanceError(f"cannot assign to field {name!r}")
        super().__setattr__(name, value)

    @property
    def selectable(self) -> bool:
        return self.kind.selectable

    @property
    def content(self) -> str:
        if self.kind is LineKind.HUNK:
            return self.text
        return self.text[1:]

    def with_trailing_newline(self, has_trailing_newline: bool) -> DiffLine:
        return DiffLine(
            text=self.text,
            kind=self.kind,
            old_line_number=self.old_line_number,
            new_line_number=self.new_line_number,
            has_trailing_newline=has_trailing_newline,
            included=self.included,
        )


@dataclasses.dataclass(frozen=True)
class DiffHunkHeader:
    old_start: int
    old_count: int
    new_start: int
    new_count: int

    def render(self) -> str:
        return f"@@ -{self.old_start},{self.old_count} +{self.new_start},{self.new_count} @@"


@dataclasses.dataclass(frozen=True)
class DiffHunk:
    header: DiffHunkHeader
    lines: tuple[DiffLine, ...]
    global_start: int
    global_end: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "lines", tuple(self.lines))
        if self.global_end - self.global_start + 1 != len(self.lines):
            raise DiffInvariantError(
                f"hunk range [{self.global_start}, {self.global_end}] does not match {len(self.lines)} lines"
            )

    def contains(self, index: int) -> bool:
        return self.global_start <= index <= self.global_end

    def selectable_indices(self) -> list[int]:
        return [self.global_start + offset for offset, line in enumerate(self.lines) if line.selectable]


@dataclasses.dataclass(frozen=True)
class Diff:
    hunks: tuple[DiffHunk, ...] = ()
    is_binary: bool = False
    header_lines: tuple[str, ...] = ()
    _starts: tuple[int, ...] = dataclasses.field(default=(), init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "hunks", tuple(self.hunks))
        object.__setattr__(self, "header_lines", tuple(self.header_lines))
        expected = 0
        for hunk in self.hunks:
            if hunk.global_start != expected:
                raise DiffInvariantError(
                    f"hunk starts at {hunk.global_start}, expected {expected}; ranges must be contiguous from 0"
                )
            expected = hunk.global_end + 1
        object.__setattr__(self, "_starts", tuple(hunk.global_start for hunk in self.hunks))

    @classmethod
    def empty(cls) -> Diff:
        return cls()

    @property
    def total_lines(self) -> int:
        if not self.hunks:
            return 0
        return self.hunks[-1].global_end + 1

    def hunk_at(self, index: int) -> DiffHunk | None:
        if index < 0 or index >= self.total_lines:
            return None
        position = bisect.bisect_right(self._starts, index) - 1
        return self.hunks[position]

    def line_at(self, index: int) -> DiffLine | None:
        hunk = self.hunk_at(index)
        if hunk is None:
            return None
        relative = index - hunk.global_start
        if not 0 <= relative < len(hunk.lines):
            raise DiffInvariantError(f"index {index} resolved outside hunk starting at {hunk.global_start}")
        return hunk.lines[relative]

    def iter_lines(self) -> Iterator[tuple[int, DiffLine]]:
        for hunk in self.hunks:
            for offset, line in enumerate(hunk.lines):
                yield hunk.global_start + offset, line

    def selectable_indices(self) -> list[int]:
        indices: list[int] = []
        for hunk in self.hunks:
            indices.extend(hunk.selectable_indices())
        return indices

    def set_all_lines(self, included: bool) -> None:
        for hunk in self.hunks:
            for line in hunk.lines:
                if line.selectable:
                    line.included = included


@dataclasses.dataclass(frozen=True)
class DiffSelection:
    """Which lines of one working-file change go into the next stage.

    ``default_include`` applies to every line while ``overrides`` is empty.
    Once a line is toggled, ``overrides`` holds an explicit value for each
    selectable line (keyed by global index) and the default no longer matters.
    """

    default_include: SelectionSummary = SelectionSummary.ALL
    overrides: Mapping[int, bool] = dataclasses.field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.default_include is SelectionSummary.PARTIAL:
            raise ValueError("default_include must be ALL or NONE")
        object.__setattr__(self, "overrides", MappingProxyType(dict(self.overrides)))


def line_kind_tag(kind: LineKind) -> str:
    if kind is LineKind.ADD:
        return "added"
    if kind is LineKind.DELETE:
        return "removed"
    if kind is LineKind.CONTEXT:
        return "context"
    if kind is LineKind.HUNK:
        return "meta"
    raise DiffInvariantError(f"unknown line kind {kind!r}")
