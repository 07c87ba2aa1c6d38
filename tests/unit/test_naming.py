import unittest

from reorganize_library.naming import invalid_name_reason, split_name, unique_child_name


class TestUniqueChildName(unittest.TestCase):
    def test_free_name_is_kept(self):
        self.assertEqual(unique_child_name({"b.txt"}, "a.txt"), "a.txt")

    def test_clash_numbers_before_extension(self):
        self.assertEqual(unique_child_name({"report.pdf"}, "report.pdf"), "report (2).pdf")

    def test_picks_smallest_free_number(self):
        existing = {"report.pdf", "report (2).pdf", "report (3).pdf"}
        self.assertEqual(unique_child_name(existing, "report.pdf"), "report (4).pdf")

    def test_gap_is_reused(self):
        existing = {"report.pdf", "report (3).pdf"}
        self.assertEqual(unique_child_name(existing, "report.pdf"), "report (2).pdf")

    def test_directory_with_dot_is_not_split(self):
        self.assertEqual(unique_child_name({"Photos.2020"}, "Photos.2020", is_dir=True), "Photos.2020 (2)")

    def test_only_last_extension_is_kept(self):
        self.assertEqual(unique_child_name({"a.tar.gz"}, "a.tar.gz"), "a.tar (2).gz")

    def test_dotfile_has_no_extension(self):
        self.assertEqual(unique_child_name({".bashrc"}, ".bashrc"), ".bashrc (2)")

    def test_result_never_in_existing(self):
        existing = {"x"} | {f"x ({n})" for n in range(2, 50)}
        name = unique_child_name(existing, "x")
        self.assertNotIn(name, existing)
        self.assertEqual(name, "x (50)")

    def test_case_only_clash_on_case_insensitive_volume(self):
        self.assertEqual(unique_child_name({"A.txt"}, "a.txt"), "a.txt")
        self.assertEqual(unique_child_name({"A.txt"}, "a.txt", ignore_case=True), "a (2).txt")
        existing = ["Notes.md", "NOTES (2).md"]
        self.assertEqual(unique_child_name(existing, "notes.md", ignore_case=True), "notes (3).md")


class TestSplitName(unittest.TestCase):
    def test_split(self):
        self.assertEqual(split_name("song.mp3"), ("song", ".mp3"))
        self.assertEqual(split_name("README"), ("README", ""))
        self.assertEqual(split_name("trailing."), ("trailing.", ""))


class TestInvalidNameReason(unittest.TestCase):
    def test_valid_names(self):
        for name in ("Music", "Photos 2020", "Rock & Roll", None):
            self.assertIsNone(invalid_name_reason(name), name)

    def test_depth_problems(self):
        for name in ("", "  ", ".", "..", "a/b", "a\\b"):
            self.assertEqual(invalid_name_reason(name), "depth", name)

    def test_name_problems(self):
        for name in ("what?", "a:b", "star*", "pipe|", "trailing.", "trailing ", "CON", "nul.txt", "tab\there"):
            self.assertEqual(invalid_name_reason(name), "name", name)


if __name__ == "__main__":
    unittest.main()
