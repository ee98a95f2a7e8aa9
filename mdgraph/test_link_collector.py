#!/usr/bin/env python3
"""
Test suite for link_collector module.

Tests the bundle/exclude decision for links reachable from a root document:
depth budget, exclude rule precedence, non-markdown assets, cycles and the
package boundary.
"""

import math
import os
import tempfile
import unittest

import pytest

from mdgraph.errors import InvalidRootError
from mdgraph.link_collector import (
    DEPTH_EXCEEDED,
    NAVIGATION_FILE,
    PATTERN_MATCHED,
    DefaultRule,
    ExcludeRule,
    LinkCollectionOptions,
    LinkResolution,
    collect_links,
    render_exclusion_message,
)


def _write(path, content):
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        f.write(content)
    return path


class TestDepthBudget(unittest.TestCase):
    """
    Chain fixture:

        SKILL.md -> level1.md -> level2.md -> level3.md
        SKILL.md -> schema.json
        level1.md -> schema.json
    """

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root_dir = self.temp_dir.name
        self.skill = _write(self.path("SKILL.md"), "# Skill\n\n[Level 1](./level1.md)\n\n[Schema](./schema.json)\n")
        _write(self.path("level1.md"), "# Level 1\n\n[Level 2](./level2.md)\n\n[Schema](./schema.json)\n")
        _write(self.path("level2.md"), "# Level 2\n\n[Level 3](./level3.md)\n")
        _write(self.path("level3.md"), "# Level 3\n")
        _write(self.path("schema.json"), "{}\n")

    def tearDown(self):
        self.temp_dir.cleanup()

    def path(self, name):
        return os.path.join(self.root_dir, name)

    def collect(self, max_depth, **kwargs):
        return collect_links(self.skill, LinkCollectionOptions(max_depth=max_depth, **kwargs))

    def test_depth_two(self):
        """Two hops bundle level1 and level2; level3 is excluded once."""
        result = self.collect(2)

        self.assertEqual(set(result.bundled_files),
                         {self.path("level1.md"), self.path("level2.md"), self.path("schema.json")})
        self.assertEqual(len(result.bundled_files), 3)
        self.assertEqual([(r.path, r.exclude_reason) for r in result.excluded_references],
                         [(self.path("level3.md"), DEPTH_EXCEEDED)])
        self.assertEqual(result.excluded_references[0].source_path, self.path("level2.md"))
        self.assertEqual(result.max_bundled_depth, 2)

    def test_depth_one(self):
        """One hop bundles level1 and the schema only."""
        result = self.collect(1)

        self.assertEqual(set(result.bundled_files), {self.path("level1.md"), self.path("schema.json")})
        self.assertEqual([(r.path, r.exclude_reason) for r in result.excluded_references],
                         [(self.path("level2.md"), DEPTH_EXCEEDED)])
        self.assertEqual(result.max_bundled_depth, 1)

    def test_depth_zero(self):
        """Depth zero still bundles the root's non-markdown assets."""
        result = self.collect(0)

        self.assertEqual(result.bundled_files, [self.path("schema.json")])
        self.assertEqual([r.path for r in result.excluded_references], [self.path("level1.md")])
        self.assertEqual(result.max_bundled_depth, 0)

    def test_full_depth(self):
        """An unbounded depth bundles the whole chain."""
        result = self.collect(math.inf)

        self.assertEqual(len(result.bundled_files), 4)
        self.assertEqual(result.excluded_references, [])
        self.assertEqual(result.max_bundled_depth, 3)

    def test_bundled_files_are_unique(self):
        """A target linked from several documents is bundled once."""
        result = self.collect(math.inf)
        self.assertEqual(result.bundled_files.count(self.path("schema.json")), 1)

    def test_exclude_rule_takes_precedence(self):
        """Exclude rules win over the non-markdown bypass."""
        result = self.collect(2, exclude_rules=[ExcludeRule(patterns=["**/*.json"])])

        self.assertEqual(set(result.bundled_files), {self.path("level1.md"), self.path("level2.md")})
        reasons = sorted(r.exclude_reason for r in result.excluded_references)
        self.assertEqual(reasons, [DEPTH_EXCEEDED, PATTERN_MATCHED, PATTERN_MATCHED])

    def test_exclude_rule_beats_depth(self):
        """A pattern match is reported instead of depth-exceeded."""
        result = self.collect(2, exclude_rules=[ExcludeRule(patterns=["level3.md"])])
        self.assertEqual([r.exclude_reason for r in result.excluded_references], [PATTERN_MATCHED])

    def test_first_matching_rule_wins(self):
        """The first matching rule is recorded on the exclusion."""
        first = ExcludeRule(patterns=["level1.md"], template="first")
        second = ExcludeRule(patterns=["**/*.md"], template="second")
        result = self.collect(2, exclude_rules=[first, second])

        level1 = [r for r in result.excluded_references if r.path == self.path("level1.md")]
        self.assertEqual(len(level1), 1)
        self.assertIs(level1[0].matched_rule, first)


# ============================================================================
# Graph Shape Tests
# ============================================================================

def test_cycle_terminates(tmp_path):
    """Mutually linked documents are each bundled once."""
    a = _write(str(tmp_path / "a.md"), "[b](./b.md) ![a](./a.png)\n")
    b = _write(str(tmp_path / "b.md"), "[a](./a.md) ![b](./b.png)\n")
    a_png = _write(str(tmp_path / "a.png"), "png")
    b_png = _write(str(tmp_path / "b.png"), "png")

    result = collect_links(a, LinkCollectionOptions(max_depth=5))

    assert sorted(result.bundled_files) == sorted([a, b, a_png, b_png])
    assert len(result.bundled_files) == len(set(result.bundled_files))
    assert result.excluded_references == []


def test_diamond_first_discovery_depth_wins(tmp_path):
    """A document reached first at depth two keeps that depth."""
    root = _write(str(tmp_path / "root.md"), "[a](./a.md) [shared](./shared.md)\n")
    a = _write(str(tmp_path / "a.md"), "[shared](./shared.md)\n")
    shared = _write(str(tmp_path / "shared.md"), "[deep](./deep.md)\n")
    deep = _write(str(tmp_path / "deep.md"), "# Deep\n")

    result = collect_links(root, LinkCollectionOptions(max_depth=2))

    assert result.bundled_files == [a, shared]
    assert [(r.path, r.exclude_reason) for r in result.excluded_references] == [(deep, DEPTH_EXCEEDED)]
    assert result.excluded_references[0].source_path == shared
    assert result.max_bundled_depth == 2


def test_self_link(tmp_path):
    """A document linking to itself does not loop."""
    a = _write(str(tmp_path / "a.md"), "[me](./a.md)\n")
    result = collect_links(a, LinkCollectionOptions(max_depth=3))
    assert result.bundled_files == [a]


def test_non_markdown_at_depth_limit(tmp_path):
    """Assets of a document at the depth limit are still bundled."""
    root = _write(str(tmp_path / "root.md"), "[one](./one.md)\n")
    one = _write(str(tmp_path / "one.md"), "![img](./img.png) [two](./two.md)\n")
    img = _write(str(tmp_path / "img.png"), "png")
    _write(str(tmp_path / "two.md"), "# Two\n")

    result = collect_links(root, LinkCollectionOptions(max_depth=1))

    assert result.bundled_files == [one, img]
    assert [r.exclude_reason for r in result.excluded_references] == [DEPTH_EXCEEDED]


def test_missing_and_directory_targets_dropped(tmp_path):
    """Missing files and directories are neither bundled nor excluded."""
    (tmp_path / "docs").mkdir()
    root = _write(str(tmp_path / "root.md"), "[gone](./gone.md) [dir](./docs) [site](https://example.com)\n")

    result = collect_links(root)

    assert result.bundled_files == []
    assert result.excluded_references == []


def test_anchor_links(tmp_path):
    """Anchors are stripped; bare anchors are ignored."""
    root = _write(str(tmp_path / "root.md"), "# Root\n\n[top](#root) [guide](./guide.md#setup)\n")
    guide = _write(str(tmp_path / "guide.md"), "# Guide\n## Setup\n")

    result = collect_links(root)

    assert result.bundled_files == [guide]


def test_package_root_boundary(tmp_path):
    """Targets outside the package root are dropped."""
    _write(str(tmp_path / "outside.md"), "# Outside\n")
    root = _write(str(tmp_path / "pkg" / "root.md"), "[out](../outside.md) [in](./inside.md)\n")
    inside = _write(str(tmp_path / "pkg" / "inside.md"), "# Inside\n")

    result = collect_links(root, LinkCollectionOptions(package_root=str(tmp_path / "pkg")))

    assert result.bundled_files == [inside]
    assert result.excluded_references == []


def test_navigation_files(tmp_path):
    """Navigation files are excluded when requested."""
    root = _write(str(tmp_path / "root.md"), "[readme](./README.md) [guide](./guide.md)\n")
    readme = _write(str(tmp_path / "README.md"), "# Readme\n")
    guide = _write(str(tmp_path / "guide.md"), "# Guide\n")

    assert set(collect_links(root).bundled_files) == {readme, guide}

    result = collect_links(root, LinkCollectionOptions(exclude_navigation_files=True))
    assert result.bundled_files == [guide]
    assert [(r.path, r.exclude_reason) for r in result.excluded_references] == [(readme, NAVIGATION_FILE)]


def test_root_linked_back(tmp_path):
    """The root is only bundled when a document links back to it."""
    root = _write(str(tmp_path / "root.md"), "[child](./child.md)\n")
    child = _write(str(tmp_path / "child.md"), "# Child\n")

    assert collect_links(root).bundled_files == [child]

    _write(child, "[back](./root.md)\n")
    assert collect_links(root).bundled_files == [child, root]


def test_invalid_root(tmp_path):
    """A missing root raises InvalidRootError."""
    with pytest.raises(InvalidRootError):
        collect_links(str(tmp_path / "missing.md"))


def test_unparsable_root(tmp_path):
    """A root that cannot be decoded raises InvalidRootError."""
    root = tmp_path / "root.md"
    root.write_bytes(b"\xff\xfe\x00bad")
    with pytest.raises(InvalidRootError):
        collect_links(str(root))


# ============================================================================
# Exclusion Message Tests
# ============================================================================

def _resolution(rule=None):
    return LinkResolution(path="/pkg/ref.md", bundled=False, exclude_reason=PATTERN_MATCHED,
                          matched_rule=rule, link_text="Reference", link_href="./ref.md")


def test_render_default_template():
    """Without templates the built-in message is used."""
    assert render_exclusion_message(_resolution()) == "Reference (not bundled: pattern-matched)"


def test_render_rule_template_wins():
    """A rule template wins over the default rule."""
    rule = ExcludeRule(patterns=["*"], template="See {path} ({href})")
    message = render_exclusion_message(_resolution(rule), DefaultRule("unused"))
    assert message == "See /pkg/ref.md (./ref.md)"


def test_render_default_rule():
    """The default rule covers rules without their own template."""
    rule = ExcludeRule(patterns=["*"])
    assert render_exclusion_message(_resolution(rule), DefaultRule("{text}: {reason}")) == \
        "Reference: pattern-matched"


def test_render_unknown_placeholder_kept():
    """Unknown placeholders are left verbatim."""
    assert render_exclusion_message(_resolution(), DefaultRule("{text} {missing}")) == "Reference {missing}"
