"""
Tests for inclusion pattern compilation and glob matching.
"""

import pytest

from droidsync.core.errors import ConfigInvalid
from droidsync.core.folder.patterns import GlobMatcher, compile_patterns, validate_pattern


class TestCompilePatterns:
    """Tests for compile_patterns."""

    def test_directory_name_matches_subtree(self):
        """A plain directory reference gets a recursive suffix."""
        assert compile_patterns(["Photos"], "/sdcard") == ["Photos/**/*"]

    def test_root_prefix_stripped(self):
        assert compile_patterns(["/sdcard/Photos/*.jpg"], "/sdcard") == ["Photos/*.jpg"]

    def test_root_itself_matches_everything(self):
        assert compile_patterns(["/sdcard"], "/sdcard") == ["**/*"]
        assert compile_patterns(["/sdcard/"], "/sdcard/") == ["**/*"]

    def test_root_stripped_only_on_path_boundary(self):
        """'/sdcardX' is not below '/sdcard'."""
        assert compile_patterns(["/sdcardX/a"], "/sdcard") == ["sdcardX/a/**/*"]

    def test_alternate_root_stripped(self):
        patterns = compile_patterns(["/home/me/Phone/Music"], "/sdcard", "/home/me/Phone")
        assert patterns == ["Music/**/*"]

    def test_filesystem_root(self):
        assert compile_patterns(["/DCIM/*.jpg"], "/") == ["DCIM/*.jpg"]

    def test_backslashes_normalized(self):
        assert compile_patterns(["Photos\\2024"], "/sdcard") == ["Photos/2024/**/*"]

    def test_blank_and_duplicate_patterns_dropped(self):
        patterns = compile_patterns(["Photos", " Photos/ ", "", "   ", "*.mp3"], "/sdcard")
        assert patterns == ["Photos/**/*", "*.mp3"]

    def test_empty_input(self):
        assert compile_patterns([], "/sdcard") == []

    @pytest.mark.parametrize("pattern", [
        "Photos/[abc",
        "Photos/[]x",
        "Photos/[!]x",
        "../secret",
        "Photos/../../etc",
    ])
    def test_malformed_pattern_rejected(self, pattern):
        with pytest.raises(ConfigInvalid):
            compile_patterns([pattern], "/sdcard")

    def test_validate_accepts_classes(self):
        validate_pattern("IMG_[0-9][!a].jpg")


class TestGlobMatcher:
    """Tests for GlobMatcher."""

    def test_empty_matches_everything(self):
        matcher = GlobMatcher([])
        assert matcher.matches_everything
        assert matcher.matches("any/path/at/all.txt")

    def test_single_star_stays_in_directory(self):
        matcher = GlobMatcher(["Photos/*.jpg"])
        assert matcher.matches("Photos/a.jpg")
        assert not matcher.matches("Photos/sub/a.jpg")
        assert not matcher.matches("Photos/a.png")

    def test_case_sensitive(self):
        assert not GlobMatcher(["Photos/*.jpg"]).matches("photos/a.jpg")

    def test_double_star_spans_directories(self):
        matcher = GlobMatcher(["**/*.jpg"])
        assert matcher.matches("a.jpg")
        assert matcher.matches("x/y/a.jpg")
        assert not matcher.matches("x/y/a.jpeg")

    def test_recursive_directory_pattern(self):
        matcher = GlobMatcher(["Photos/**/*"])
        assert matcher.matches("Photos/a.jpg")
        assert matcher.matches("Photos/2024/05/a.jpg")
        assert not matcher.matches("Photos")
        assert not matcher.matches("PhotosOld/a.jpg")

    def test_question_mark(self):
        matcher = GlobMatcher(["IMG_????.jpg"])
        assert matcher.matches("IMG_0001.jpg")
        assert not matcher.matches("IMG_01.jpg")

    def test_character_classes(self):
        assert GlobMatcher(["[a-c].txt"]).matches("b.txt")
        assert not GlobMatcher(["[a-c].txt"]).matches("d.txt")
        assert GlobMatcher(["[!a]*.txt"]).matches("b.txt")
        assert not GlobMatcher(["[!a]*.txt"]).matches("a.txt")

    def test_regex_characters_are_literal(self):
        matcher = GlobMatcher(["a+b (1).txt"])
        assert matcher.matches("a+b (1).txt")
        assert not matcher.matches("aab (1).txt")

    def test_any_pattern_matches(self):
        matcher = GlobMatcher(["*.mp3", "Music/**/*"])
        assert matcher.matches("song.mp3")
        assert matcher.matches("Music/album/cover.png")
        assert not matcher.matches("Videos/clip.mp4")
