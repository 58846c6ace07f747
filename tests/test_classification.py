"""
Unit tests for category rules and classification.
"""

import pytest

from sortify.classification.classifier import CategoryClassifier, FileFilter
from sortify.config.categories import CategoryRules, normalize_extension
from sortify.registry.paths import WatchedPath
from sortify.utils.exceptions import ClassificationAmbiguity, ConfigError


class TestNormalizeExtension:
    """Tests for extension normalization."""

    @pytest.mark.parametrize("raw,expected", [
        (".jpg", ".jpg"),
        ("JPG", ".jpg"),
        (".Tar", ".tar"),
        (" mp3 ", ".mp3"),
    ])
    def test_normalizes(self, raw, expected):
        assert normalize_extension(raw) == expected

    @pytest.mark.parametrize("raw", ["", ".", ".tar.gz", ".j pg", "*.jpg", 5])
    def test_rejects_malformed(self, raw):
        with pytest.raises(ConfigError):
            normalize_extension(raw)


class TestCategoryRules:
    """Tests for CategoryRules."""

    def test_fallback_always_present(self):
        rules = CategoryRules({"Images": [".jpg"]})

        assert rules.names == ["Images", "Others"]
        assert rules.extensions("Others") == set()

    def test_fallback_cannot_own_extensions(self):
        with pytest.raises(ConfigError):
            CategoryRules({"Others": [".txt"]})

    def test_duplicate_extension_rejected_on_add(self, rules):
        with pytest.raises(ClassificationAmbiguity):
            rules.add_category("Photos", [".JPG"])

        assert "Photos" not in rules

    def test_add_merges_into_existing(self, rules):
        rules.add_category("Images", [".gif"])

        assert rules.extensions("Images") == {".jpg", ".png", ".gif"}
        assert rules.lookup(".gif") == "Images"

    def test_update_replaces_extensions(self, rules):
        assert rules.update_category("Images", [".webp"]) is True

        assert rules.lookup(".jpg") is None
        assert rules.lookup(".webp") == "Images"

    def test_update_unknown_returns_false(self, rules):
        assert rules.update_category("Nope", [".x"]) is False

    def test_remove_category(self, rules):
        assert rules.remove_category("Docs") is True
        assert rules.lookup(".pdf") is None
        assert rules.remove_category("Docs") is False

    def test_cannot_remove_fallback(self, rules):
        assert rules.remove_category("Others") is False
        assert "Others" in rules

    def test_remove_extension(self, rules):
        assert rules.remove_extension("Images", "PNG") is True
        assert rules.lookup(".png") is None
        assert rules.remove_extension("Images", ".png") is False

    def test_add_extension(self, rules):
        assert rules.add_extension("Docs", "TXT") is True
        assert rules.lookup(".txt") == "Docs"
        assert rules.extensions("Docs") == {".pdf", ".txt"}
        assert rules.add_extension("Docs", ".txt") is False

    def test_add_extension_owned_elsewhere(self, rules):
        with pytest.raises(ClassificationAmbiguity):
            rules.add_extension("Docs", ".jpg")

        assert rules.lookup(".jpg") == "Images"
        assert rules.extensions("Docs") == {".pdf"}

    @pytest.mark.parametrize("category,extension", [
        ("Docs", ".tar.gz"),
        ("Docs", "*.md"),
        ("Missing", ".md"),
        ("Others", ".md"),
    ])
    def test_add_extension_rejected(self, rules, category, extension):
        with pytest.raises(ConfigError):
            rules.add_extension(category, extension)

        assert rules.lookup(".md") is None

    def test_overlay_releases_global_extensions(self, rules):
        overlaid = rules.overlay({"Screenshots": [".png"]})

        assert overlaid.lookup(".png") == "Screenshots"
        assert overlaid.lookup(".jpg") == "Images"
        # Original table untouched
        assert rules.lookup(".png") == "Images"

    def test_invalid_category_name(self):
        with pytest.raises(ConfigError):
            CategoryRules({"a/b": [".jpg"]})


class TestCategoryClassifier:
    """Tests for CategoryClassifier."""

    @pytest.mark.parametrize("name,expected", [
        ("a.jpg", "Images"),
        ("PHOTO.JPG", "Images"),
        ("scan.Pdf", "Docs"),
        ("notes.txt", "Others"),
        ("archive.tar.gz", "Others"),
        ("README", "Others"),
        (".bashrc", "Others"),
        ("trailing.", "Others"),
    ])
    def test_classify(self, classifier, name, expected):
        assert classifier.classify(name) == expected

    def test_uses_last_extension(self, rules):
        rules.add_category("Archives", [".gz"])
        classifier = CategoryClassifier(rules)

        assert classifier.classify("archive.tar.gz") == "Archives"

    def test_follows_rule_mutations(self, rules, classifier):
        rules.add_category("Text", [".txt"])

        assert classifier.classify("notes.txt") == "Text"

    def test_for_path_applies_custom_categories(self, classifier, tmp_path):
        watched = WatchedPath(
            id="p1", path=str(tmp_path), name="tmp",
            custom_categories={"Scans": [".pdf"]},
        )

        assert classifier.for_path(watched).classify("x.pdf") == "Scans"
        assert classifier.classify("x.pdf") == "Docs"


class TestFileFilter:
    """Tests for FileFilter."""

    def test_hidden_files_ineligible(self, file_filter):
        assert file_filter.is_eligible(".DS_Store") is False

    def test_ignore_patterns(self, file_filter):
        assert file_filter.is_eligible("movie.mp4.crdownload") is False
        assert file_filter.is_eligible("draft.tmp") is False
        assert file_filter.is_eligible("movie.mp4") is True

    def test_exclude_patterns_per_path(self, file_filter, tmp_path):
        watched = WatchedPath(id="p1", path=str(tmp_path), name="tmp", exclude_patterns=["keep_*"])
        path_filter = file_filter.for_path(watched)

        assert path_filter.is_eligible("keep_me.pdf") is False
        assert file_filter.is_eligible("keep_me.pdf") is True
