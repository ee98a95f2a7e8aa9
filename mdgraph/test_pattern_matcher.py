#!/usr/bin/env python3
"""
Test suite for pattern_matcher module.

Tests segment-wise glob matching, brace expansion and collection membership.
"""

import pytest

from mdgraph.config import CollectionConfig
from mdgraph.pattern_matcher import (
    compile_patterns,
    expand_braces,
    expand_pattern,
    get_collections_for_file,
    is_root_level_pattern,
    matches_collection,
    matches_glob_pattern,
)


# ============================================================================
# Glob Matching Tests
# ============================================================================

@pytest.mark.parametrize("path,pattern,expected", [
    ("docs/a.md", "**/*.md", True),
    ("a.md", "**/*.md", True),
    ("docs/sub/a.md", "docs/*.md", False),
    ("docs/sub/a.md", "docs/**/*.md", True),
    ("docs/a.md", "docs/**/*.md", True),
    ("docs/a.json", "**/*.md", False),
    ("x/schema.json", "**/*.{md,json}", True),
    ("node_modules/pkg/readme.md", "**/node_modules/**", True),
    ("docs/A.md", "docs/a.md", False),
    ("docs/a1.md", "docs/a?.md", True),
])
def test_matches_glob_pattern(path, pattern, expected):
    """Patterns match whole paths segment by segment."""
    assert matches_glob_pattern(path, pattern) is expected


def test_matches_glob_pattern_backslash_paths():
    """Windows separators are normalized before matching."""
    assert matches_glob_pattern("docs\\guide\\a.md", "docs/**/*.md")


def test_star_does_not_cross_segments():
    """A single star stays within one path segment."""
    assert not matches_glob_pattern("a/b.md", "*.md")


def test_expand_braces_nested():
    """Multiple brace groups expand to their cartesian product."""
    assert sorted(expand_braces("{a,b}/*.{md,json}")) == sorted([
        "a/*.md", "a/*.json", "b/*.md", "b/*.json",
    ])


def test_compile_patterns_empty_matches_nothing():
    """An empty pattern list matches no path."""
    matcher = compile_patterns([])
    assert not matcher("a.md")


def test_compile_patterns_any():
    """A compiled matcher is true when any pattern matches."""
    matcher = compile_patterns(["**/*.json", "docs/**"])
    assert matcher("x/y.json")
    assert matcher("docs/readme.txt")
    assert not matcher("src/main.md")


# ============================================================================
# Collection Pattern Tests
# ============================================================================

@pytest.mark.parametrize("entry,expanded", [
    ("docs", "**/docs/**/*.{md,json}"),
    ("docs/", "**/docs/**/*.{md,json}"),
    ("guides/*.md", "**/guides/*.md"),
    ("*.md", "*.md"),
    ("**/api/**", "**/api/**"),
])
def test_expand_pattern(entry, expanded):
    """Collection entries expand to recursive globs."""
    assert expand_pattern(entry) == expanded


def test_is_root_level_pattern():
    """Only single-star leading patterns are root level."""
    assert is_root_level_pattern("*.md")
    assert not is_root_level_pattern("**/*.md")
    assert not is_root_level_pattern("docs/*.md")


def test_matches_collection_directory_entry():
    """A plain directory entry includes markdown and JSON below it."""
    assert matches_collection("guides/intro.md", ["guides"])
    assert matches_collection("guides/deep/data.json", ["guides"])
    assert not matches_collection("other/intro.md", ["guides"])
    assert not matches_collection("guides/image.png", ["guides"])


def test_matches_collection_exclude_wins():
    """Exclude patterns take precedence over includes."""
    assert not matches_collection("guides/wip.draft.md", ["guides"], ["*.draft.md"])
    assert matches_collection("guides/final.md", ["guides"], ["*.draft.md"])


def test_matches_collection_root_level_uses_file_name():
    """Root-level patterns match the file name anywhere in the tree."""
    assert matches_collection("deep/nested/x.md", ["*.md"])


def test_get_collections_for_file():
    """Every matching collection is reported in configuration order."""
    collections = {
        "guides": CollectionConfig(include=["guides"]),
        "all-docs": CollectionConfig(include=["**/*.md"]),
        "api": CollectionConfig(include=["api"]),
    }
    assert get_collections_for_file("guides/intro.md", collections) == ["guides", "all-docs"]
    assert get_collections_for_file("misc/data.json", collections) == []
