import os
import sys
import unittest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from working_copy import UncommittedState, WorkingCopyChange, map_git_status_char, parse_git_status_output


class TestMapGitStatusChar(unittest.TestCase):
    def test_known_letters(self):
        for letter in "AMDRCT":
            self.assertEqual(map_git_status_char(letter), letter)

    def test_untracked_becomes_u(self):
        self.assertEqual(map_git_status_char("?"), "U")

    def test_unknown_defaults_to_modified(self):
        self.assertEqual(map_git_status_char("X"), "M")
        self.assertEqual(map_git_status_char("!"), "M")


class TestParseGitStatusOutput(unittest.TestCase):
    def test_empty_output(self):
        state = parse_git_status_output("")
        self.assertTrue(state.is_empty)
        self.assertEqual(state.file_count, 0)

    def test_staged_and_unstaged(self):
        output = "M  staged.txt\n M unstaged.txt\nMM both.txt\n?? new.txt\nA  added.txt\n D removed.txt"
        state = parse_git_status_output(output)

        self.assertEqual(
            state.staged,
            [
                WorkingCopyChange("staged.txt", "M"),
                WorkingCopyChange("both.txt", "M"),
                WorkingCopyChange("added.txt", "A"),
            ],
        )
        self.assertEqual(
            state.unstaged,
            [
                WorkingCopyChange("unstaged.txt", "M"),
                WorkingCopyChange("both.txt", "M"),
                WorkingCopyChange("new.txt", "U"),
                WorkingCopyChange("removed.txt", "D"),
            ],
        )
        self.assertEqual(state.file_count, 6)
        self.assertFalse(state.is_empty)

    def test_rename_keeps_old_path(self):
        state = parse_git_status_output("R  old/name.py -> new/name.py")
        self.assertEqual(state.staged, [WorkingCopyChange("new/name.py", "R", old_path="old/name.py")])
        self.assertEqual(state.unstaged, [])

    def test_arrow_in_plain_modified_path_is_kept(self):
        state = parse_git_status_output(" M a -> b.txt")
        self.assertEqual(state.unstaged, [WorkingCopyChange("a -> b.txt", "M")])

    def test_short_lines_and_crlf(self):
        state = parse_git_status_output("M\r\n\r\nM  file.txt\r\n")
        self.assertEqual(state.staged, [WorkingCopyChange("file.txt", "M")])

    def test_default_state_is_empty(self):
        self.assertTrue(UncommittedState().is_empty)


if __name__ == "__main__":
    unittest.main()
