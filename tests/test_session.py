import threading
import unittest
from unittest import mock

from diffselect.core.diff_utils import parse_diff
from diffselect.core.models import Diff, SelectionSummary
from diffselect.session import FileDiffSession

DIFF_TEXT = (
    "diff --git a/file.txt b/file.txt\n"
    "--- a/file.txt\n"
    "+++ b/file.txt\n"
    "@@ -1,3 +1,3 @@\n"
    " line1\n"
    "+line2-new\n"
    "-line2\n"
    " line3\n"
    "@@ -10,1 +10,2 @@\n"
    "+line10-new\n"
    " line10\n"
)


class RecordingSource:
    def __init__(self) -> None:
        self.calls: list[tuple[str, str | None]] = []

    def __call__(self, path: str, commit: str | None) -> Diff:
        self.calls.append((path, commit))
        return parse_diff(DIFF_TEXT)


class TestSupersession(unittest.TestCase):
    def test_stale_result_is_dropped(self) -> None:
        session = FileDiffSession()
        first = session.begin_load("a.txt")
        second = session.begin_load("b.txt")
        self.assertFalse(session.complete_load(first, parse_diff(DIFF_TEXT)))
        self.assertIsNone(session.file)
        self.assertTrue(session.complete_load(second, parse_diff(DIFF_TEXT)))
        self.assertEqual(session.file.path, "b.txt")

    def test_returning_to_shown_diff_drops_pending_load(self) -> None:
        source = RecordingSource()
        session = FileDiffSession()
        session.load(source, "a.txt", "c1")
        shown = session.diff
        pending = session.begin_load("b.txt", "c2")
        self.assertIsNone(session.begin_load("a.txt", "c1"))
        self.assertFalse(session.complete_load(pending, parse_diff(DIFF_TEXT)))
        self.assertEqual(session.file.path, "a.txt")
        self.assertEqual(session.commit, "c1")
        self.assertIs(session.diff, shown)

    def test_background_load_superseded(self) -> None:
        session = FileDiffSession()
        release = threading.Event()
        slow_diff = parse_diff(DIFF_TEXT)
        fast_diff = parse_diff(DIFF_TEXT)
        loaded: list[Diff] = []

        def slow_source(path: str, commit: str | None) -> Diff:
            release.wait(5)
            return slow_diff

        thread = session.load_in_background(slow_source, "slow.txt", on_loaded=loaded.append)
        self.assertTrue(session.load(lambda path, commit: fast_diff, "fast.txt"))
        release.set()
        thread.join(5)

        self.assertEqual(loaded, [])
        self.assertIs(session.diff, fast_diff)
        self.assertEqual(session.file.path, "fast.txt")

    def test_background_source_failure(self) -> None:
        session = FileDiffSession()

        def broken(path: str, commit: str | None) -> Diff:
            raise OSError("unreadable object")

        thread = session.load_in_background(broken, "a.txt")
        thread.join(5)
        self.assertEqual(session.diff.hunks, ())
        self.assertEqual(session.file.path, "a.txt")

    def test_same_file_and_commit_is_noop(self) -> None:
        source = RecordingSource()
        session = FileDiffSession()
        self.assertTrue(session.load(source, "a.txt", "abc"))
        self.assertFalse(session.load(source, "a.txt", "abc"))
        self.assertEqual(source.calls, [("a.txt", "abc")])

    def test_working_tree_always_reloads(self) -> None:
        source = RecordingSource()
        session = FileDiffSession()
        session.load(source, "a.txt")
        session.load(source, "a.txt")
        self.assertEqual(len(source.calls), 2)


class TestSessionSelection(unittest.TestCase):
    def setUp(self) -> None:
        self.source = RecordingSource()
        self.session = FileDiffSession(default_include=False)
        self.session.load(self.source, "file.txt")

    def test_loaded_diff_reflects_default(self) -> None:
        self.assertEqual(self.session.summary, SelectionSummary.NONE)
        self.assertFalse(any(line.included for _, line in self.session.diff.iter_lines()))

    def test_toggle_updates_flags(self) -> None:
        self.session.toggle_line(2)
        self.session.toggle_line(3)
        self.assertEqual(self.session.summary, SelectionSummary.PARTIAL)
        self.assertTrue(self.session.diff.line_at(2).included)
        self.assertFalse(self.session.diff.line_at(6).included)
        self.assertEqual(self.session.included_indices(), [2, 3])

    def test_selection_survives_reload_of_same_file(self) -> None:
        self.session.toggle_line(6)
        self.session.load(self.source, "file.txt")
        self.assertEqual(dict(self.session.selection.overrides), {2: False, 3: False, 6: True})
        self.assertTrue(self.session.diff.line_at(6).included)

    def test_selection_resets_on_other_file(self) -> None:
        self.session.toggle_line(6)
        self.session.load(self.source, "other.txt")
        self.assertEqual(dict(self.session.selection.overrides), {})
        self.assertEqual(self.session.summary, SelectionSummary.NONE)

    def test_select_all_keeps_both_representations(self) -> None:
        self.session.toggle_line(2)
        self.session.select_all(True)
        self.assertEqual(self.session.summary, SelectionSummary.ALL)
        self.assertEqual(dict(self.session.selection.overrides), {})
        self.assertTrue(all(line.included for _, line in self.session.diff.iter_lines() if line.selectable))

    def test_set_range_included(self) -> None:
        self.session.set_range_included(0, 4, True)
        self.assertEqual(self.session.included_indices(), [2, 3])

    def test_build_patch_with_nothing_included(self) -> None:
        self.assertIsNone(self.session.build_patch())
        self.assertFalse(self.session.stage("/nonexistent"))

    def test_stage_resets_flags_with_selection(self) -> None:
        self.session.toggle_line(2)
        with mock.patch("diffselect.session.apply_patch") as apply_patch:
            self.assertTrue(self.session.stage("/repo"))
        apply_patch.assert_called_once()
        self.assertEqual(self.session.summary, SelectionSummary.NONE)
        flags = [line.included for _, line in self.session.diff.iter_lines() if line.selectable]
        self.assertEqual(flags, [False, False, False])

    def test_commit_diff_is_read_only(self) -> None:
        self.session.load(self.source, "file.txt", "abc")
        self.assertTrue(self.session.read_only)
        before = self.session.selection
        self.assertIs(self.session.toggle_line(2), before)
        self.assertIsNone(self.session.build_patch())


if __name__ == "__main__":
    unittest.main()
