import unittest

from sahne.core.rules.glob import glob_to_regex, match_glob


class TestGlob(unittest.TestCase):
    def test_deep_wildcard_spans_segments(self):
        self.assertTrue(match_glob("http://x/a/**/z", "http://x/a/b/c/z"))
        self.assertTrue(match_glob("http://x/a/**/z", "http://x/a/z"))
        self.assertTrue(match_glob("http://x/**", "http://x/a/b/c.js"))

    def test_single_star_stays_in_segment(self):
        self.assertTrue(match_glob("a/*/z", "a/b/z"))
        self.assertFalse(match_glob("a/*/z", "a/b/c/z"))

    def test_double_star_inside_segment_is_not_deep(self):
        self.assertTrue(match_glob("a**b", "aXXb"))
        self.assertFalse(match_glob("a**b", "a/b"))

    def test_question_mark_matches_one_character(self):
        self.assertTrue(match_glob("fi?e.js", "file.js"))
        self.assertFalse(match_glob("fi?e.js", "fie.js"))

    def test_alternatives(self):
        pattern = "**/*.{png,jpg}"
        self.assertTrue(match_glob(pattern, "http://x/img/a.png"))
        self.assertTrue(match_glob(pattern, "http://x/img/a.jpg"))
        self.assertFalse(match_glob(pattern, "http://x/img/a.gif"))

    def test_comma_outside_group_is_literal(self):
        self.assertTrue(match_glob("a,b", "a,b"))

    def test_regex_metacharacters_are_literal(self):
        self.assertTrue(match_glob("http://x/a.b", "http://x/a.b"))
        self.assertFalse(match_glob("http://x/a.b", "http://x/aXb"))
        self.assertTrue(match_glob("(x)+[y]", "(x)+[y]"))

    def test_backslash_escapes_wildcards(self):
        self.assertTrue(match_glob(r"a\*b", "a*b"))
        self.assertFalse(match_glob(r"a\*b", "aXb"))

    def test_pattern_is_anchored(self):
        self.assertFalse(match_glob("http://x/a", "http://x/a/b"))
        self.assertFalse(match_glob("x/a", "http://x/a"))

    def test_compiled_patterns_are_cached(self):
        self.assertIs(glob_to_regex("**/*.css"), glob_to_regex("**/*.css"))


if __name__ == '__main__':
    unittest.main()
