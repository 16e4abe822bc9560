#!/usr/bin/env python3
from __future__ import annotations

from .models import Diff, DiffHunk, DiffHunkHeader, DiffLine, DiffSelection, LineKind
from .selection import effective_include

NO_NEWLINE_MARKER = "\\ No newline at end of file"
BINARY_MARKERS = ("Binary files ", "GIT binary patch")


def parse_hunk_header_full(header: str) -> tuple[int, int, int, int]:
    # Example: @@ -77,4 +77,5 @@ def foo():
    parts = header.split()
    if len(parts) < 3:
        return 0, 0, 0, 0

    def parse_range(value: str) -> tuple[int, int]:
        if "," in value:
            start, count = value.split(",", 1)
            return int(start), int(count)
        return int(value), 1

    try:
        old_start, old_count = parse_range(parts[1].lstrip("-"))
        new_start, new_count = parse_range(parts[2].lstrip("+"))
    except ValueError:
        return 0, 0, 0, 0
    return old_start, old_count, new_start, new_count


def _close_hunk(
    hunks: list[DiffHunk],
    header: DiffHunkHeader | None,
    lines: list[DiffLine],
) -> None:
    if header is None:
        return
    global_start = hunks[-1].global_end + 1 if hunks else 0
    hunks.append(
        DiffHunk(
            header=header,
            lines=tuple(lines),
            global_start=global_start,
            global_end=global_start + len(lines) - 1,
        )
    )


def parse_diff(diff_text: str) -> Diff:
    """Parse the unified diff of a single file.

    Every hunk starts with its ``@@`` line as a ``HUNK`` kind line, so global
    indices line up with a listing that prints the header lines too.
    """
    header_lines: list[str] = []
    hunks: list[DiffHunk] = []
    header: DiffHunkHeader | None = None
    lines: list[DiffLine] = []
    old_line = 0
    new_line = 0
    seen_file = False

    for raw in diff_text.splitlines():
        if raw.startswith("diff --git"):
            if seen_file:
                break
            seen_file = True
            header_lines.append(raw)
            continue
        if raw.startswith(BINARY_MARKERS):
            return Diff(is_binary=True, header_lines=tuple(header_lines))
        if raw.startswith("@@"):
            _close_hunk(hunks, header, lines)
            old_start, old_count, new_start, new_count = parse_hunk_header_full(raw)
            header = DiffHunkHeader(old_start, old_count, new_start, new_count)
            lines = [DiffLine(text=raw, kind=LineKind.HUNK, old_line_number=None, new_line_number=None)]
            old_line = old_start
            new_line = new_start
            continue
        if header is None:
            header_lines.append(raw)
            continue
        if raw.startswith(NO_NEWLINE_MARKER):
            if len(lines) > 1:
                lines[-1] = lines[-1].with_trailing_newline(False)
            continue
        if raw.startswith("-"):
            line = DiffLine(text=raw, kind=LineKind.DELETE, old_line_number=old_line, new_line_number=None)
            old_line += 1
        elif raw.startswith("+"):
            line = DiffLine(text=raw, kind=LineKind.ADD, old_line_number=None, new_line_number=new_line)
            new_line += 1
        elif raw.startswith(" "):
            line = DiffLine(text=raw, kind=LineKind.CONTEXT, old_line_number=old_line, new_line_number=new_line)
            old_line += 1
            new_line += 1
        else:
            continue
        lines.append(line)

    _close_hunk(hunks, header, lines)
    return Diff(hunks=tuple(hunks), header_lines=tuple(header_lines))


def build_file_header(path: str, new_file: bool = False) -> list[str]:
    old_name = "/dev/null" if new_file else f"a/{path}"
    return [f"diff --git a/{path} b/{path}", f"--- {old_name}", f"+++ b/{path}"]


def _included_add_follows(hunk: DiffHunk, selection: DiffSelection, offset: int) -> bool:
    for later, line in enumerate(hunk.lines[offset + 1 :], start=offset + 1):
        if line.kind is LineKind.ADD and effective_include(selection, hunk.global_start + later):
            return True
    return False


def _hunk_patch_lines(hunk: DiffHunk, selection: DiffSelection) -> tuple[list[str], int, int, bool]:
    body: list[str] = []
    old_count = 0
    new_count = 0
    changed = False
    for offset, line in enumerate(hunk.lines):
        index = hunk.global_start + offset
        if line.kind is LineKind.HUNK:
            continue
        if line.kind is LineKind.CONTEXT:
            body.append(line.text)
            old_count += 1
            new_count += 1
        elif line.kind is LineKind.DELETE:
            if effective_include(selection, index):
                body.append(line.text)
                changed = True
            elif not line.has_trailing_newline and _included_add_follows(hunk, selection, offset):
                # The kept last line needs a newline before the staged additions.
                body.extend([line.text, NO_NEWLINE_MARKER, f"+{line.content}"])
                old_count += 1
                new_count += 1
                changed = True
                continue
            else:
                # An unstaged deletion stays in the index as context.
                body.append(f" {line.content}")
                new_count += 1
            old_count += 1
        elif line.kind is LineKind.ADD:
            if not effective_include(selection, index):
                continue
            body.append(line.text)
            new_count += 1
            changed = True
        if not line.has_trailing_newline:
            body.append(NO_NEWLINE_MARKER)
    return body, old_count, new_count, changed


def build_partial_patch(diff: Diff, selection: DiffSelection, path: str | None = None) -> str | None:
    """Build a patch holding only the included changes of ``diff``.

    Hunks without any included change are left out and the new-side start of
    each remaining hunk is shifted by the net line change of the hunks before it.
    """
    if diff.is_binary or not diff.hunks:
        return None
    header_lines = list(diff.header_lines)
    if not header_lines:
        if not path:
            return None
        header_lines = build_file_header(path)

    patch_lines: list[str] = []
    delta = 0
    for hunk in diff.hunks:
        body, old_count, new_count, changed = _hunk_patch_lines(hunk, selection)
        if not changed:
            continue
        old_start = hunk.header.old_start
        new_start = old_start + delta
        if old_count == 0:
            new_start += 1
        elif new_count == 0:
            new_start -= 1
        patch_lines.append(DiffHunkHeader(old_start, old_count, new_start, new_count).render())
        patch_lines.extend(body)
        delta += new_count - old_count

    if not patch_lines:
        return None
    return "\n".join([*header_lines, *patch_lines]) + "\n"
