"""Tests for unified diff line-range parsing."""

from gauntlet.lib.diff_ranges import coerce_line, is_valid_violation_location, parse_diff

SAMPLE_DIFF = """diff --git a/src/app.py b/src/app.py
index 1111111..2222222 100644
--- a/src/app.py
+++ b/src/app.py
@@ -1,4 +1,5 @@
 import os
+import sys
 
 def main():
-    pass
+    run()
@@ -20,2 +21,3 @@ def helper():
     x = 1
+    y = 2
     return x
diff --git a/README.md b/README.md
new file mode 100644
--- /dev/null
+++ b/README.md
@@ -0,0 +1,2 @@
+# Title
+text
"""


class TestParseDiff:
    """Tests for parse_diff."""

    def test_records_added_lines(self):
        """Added lines map to new-file line numbers."""
        ranges = parse_diff(SAMPLE_DIFF)
        assert ranges["src/app.py"] == {2, 5, 22}

    def test_new_file(self):
        """A new file's hunk starts at line 1."""
        ranges = parse_diff(SAMPLE_DIFF)
        assert ranges["README.md"] == {1, 2}

    def test_removed_lines_do_not_advance(self):
        """Deleted lines don't shift later additions."""
        diff = (
            "diff --git a/f.py b/f.py\n"
            "@@ -1,3 +1,2 @@\n"
            "-a\n"
            "-b\n"
            "+c\n"
            " d\n"
        )
        assert parse_diff(diff) == {"f.py": {1}}

    def test_ignores_git_internal_paths(self):
        """Paths under .git/ never get ranges."""
        diff = "diff --git a/.git/config b/.git/config\n@@ -1 +1 @@\n+x\n"
        assert parse_diff(diff) == {}

    def test_empty_diff(self):
        assert parse_diff("") == {}

    def test_removing_hunks_never_adds_lines(self):
        """Dropping hunks or whole files only shrinks the valid set."""
        full = parse_diff(SAMPLE_DIFF)
        second_hunk = "@@ -20,2 +21,3 @@ def helper():\n     x = 1\n+    y = 2\n     return x\n"
        readme = SAMPLE_DIFF[SAMPLE_DIFF.index("diff --git a/README.md"):]

        for reduced in (
            SAMPLE_DIFF.replace(second_hunk, ""),
            SAMPLE_DIFF.replace(readme, ""),
            SAMPLE_DIFF.replace(second_hunk, "").replace(readme, ""),
        ):
            assert reduced != SAMPLE_DIFF
            for file, lines in parse_diff(reduced).items():
                assert lines <= full[file]


class TestCoerceLine:
    """Tests for coerce_line."""

    def test_int(self):
        assert coerce_line(7) == 7

    def test_digit_string(self):
        assert coerce_line(" 12 ") == 12

    def test_whole_float(self):
        """JSON numbers like 12.0 are line 12."""
        assert coerce_line(12.0) == 12
        assert is_valid_violation_location("a.py", 3.0, {"a.py": {3}})

    def test_rejects_other_values(self):
        """Non-numeric strings, bools, fractional floats and None give None."""
        assert coerce_line("abc") is None
        assert coerce_line(True) is None
        assert coerce_line(3.5) is None
        assert coerce_line(None) is None


class TestIsValidViolationLocation:
    """Tests for is_valid_violation_location."""

    def test_no_ranges_means_everything_valid(self):
        assert is_valid_violation_location("any.py", None, None)

    def test_changed_line_is_valid(self):
        ranges = {"a.py": {3, 4}}
        assert is_valid_violation_location("a.py", 3, ranges)
        assert is_valid_violation_location("a.py", "4", ranges)

    def test_unchanged_line_is_invalid(self):
        assert not is_valid_violation_location("a.py", 10, {"a.py": {3}})

    def test_unknown_file_is_invalid(self):
        assert not is_valid_violation_location("b.py", 3, {"a.py": {3}})

    def test_missing_line_is_invalid(self):
        assert not is_valid_violation_location("a.py", None, {"a.py": {3}})
