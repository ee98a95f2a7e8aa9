#!/usr/bin/env python3
"""
Test suite for config module.

Tests configuration discovery, schema validation of the config file and
conversion into dataclasses.
"""

import math
import os
import tempfile
import unittest

import pytest
from jsonschema import Draft7Validator

from mdgraph.config import (
    CONFIG_FILENAME,
    load_config,
    load_config_schema,
    find_config_file,
    parse_config_data,
    parse_config_file,
    parse_link_follow_depth,
)
from mdgraph.errors import ConfigError


FULL_CONFIG = """\
version: 1
resources:
  include: ["docs/**/*.md"]
  exclude: ["**/drafts/**"]
  collections:
    guides:
      include: ["guides"]
      exclude: ["*.draft.md"]
      validation:
        frontmatter_schema: schemas/guide.json
        mode: strict
    notes:
      include: ["notes/*.md"]
packaging:
  link_follow_depth: full
  exclude_navigation_files: true
  exclude_references:
    rules:
      - patterns: ["**/internal/**"]
        template: "See {path} in the repository"
      - patterns: ["**/*.json"]
    default_template: "{text} (excluded)"
"""


class TestConfigFile(unittest.TestCase):
    """Tests for reading mdgraph.config.yaml from disk."""

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = self.temp_dir.name

    def tearDown(self):
        self.temp_dir.cleanup()

    def write_config(self, content, directory=None):
        path = os.path.join(directory or self.root, CONFIG_FILENAME)
        with open(path, 'w', encoding='utf-8') as f:
            f.write(content)
        return path

    def test_find_config_walks_upward(self):
        """The nearest config file above the start directory is found."""
        config_path = self.write_config("version: 1\n")
        nested = os.path.join(self.root, "a", "b")
        os.makedirs(nested)

        self.assertEqual(find_config_file(nested), config_path)

    def test_full_config(self):
        """Every section is converted into dataclasses."""
        config_path = self.write_config(FULL_CONFIG)
        config = parse_config_file(config_path)

        self.assertEqual(config.config_path, config_path)
        self.assertEqual(config.project_root, self.root)
        self.assertEqual(config.include, ["docs/**/*.md"])
        self.assertEqual(config.exclude, ["**/drafts/**"])
        self.assertEqual(list(config.collections), ["guides", "notes"])

        guides = config.collections["guides"]
        self.assertEqual(guides.include, ["guides"])
        self.assertEqual(guides.exclude, ["*.draft.md"])
        self.assertEqual(guides.frontmatter_schema, "schemas/guide.json")
        self.assertEqual(guides.mode, "strict")

        notes = config.collections["notes"]
        self.assertIsNone(notes.frontmatter_schema)
        self.assertEqual(notes.mode, "permissive")

        packaging = config.packaging
        self.assertEqual(packaging.link_follow_depth, "full")
        self.assertTrue(packaging.exclude_navigation_files)
        self.assertEqual(len(packaging.exclude_rules), 2)
        self.assertEqual(packaging.exclude_rules[0].template, "See {path} in the repository")
        self.assertIsNone(packaging.exclude_rules[1].template)
        self.assertEqual(packaging.default_template, "{text} (excluded)")

    def test_empty_config_uses_defaults(self):
        """An empty file yields default settings."""
        config = parse_config_file(self.write_config(""))
        self.assertEqual(config.collections, {})
        self.assertEqual(config.packaging.link_follow_depth, 2)
        self.assertFalse(config.packaging.exclude_navigation_files)

    def test_load_config_none_when_absent(self):
        """load_config returns None when no file exists up the tree."""
        nested = os.path.join(self.root, "empty")
        os.makedirs(nested)
        self.assertIsNone(load_config(nested))

    def test_invalid_yaml(self):
        """Malformed YAML raises ConfigError."""
        with self.assertRaises(ConfigError):
            parse_config_file(self.write_config("resources: [unclosed\n"))

    def test_missing_file(self):
        """An unreadable file raises ConfigError."""
        with self.assertRaises(ConfigError):
            parse_config_file(os.path.join(self.root, "missing.yaml"))


# ============================================================================
# Schema Validation Tests
# ============================================================================

def test_config_schema_is_valid_draft7():
    """The bundled configuration schema is itself a valid schema."""
    Draft7Validator.check_schema(load_config_schema())


@pytest.mark.parametrize("data", [
    {"unknown": True},
    {"version": 2},
    {"resources": {"collections": {"guides": {"exclude": ["x"]}}}},
    {"resources": {"collections": {"guides": {"include": ["x"], "validation": {"mode": "lenient"}}}}},
    {"packaging": {"link_follow_depth": -1}},
    {"packaging": {"link_follow_depth": "deep"}},
    {"packaging": {"exclude_references": {"rules": [{"patterns": []}]}}},
])
def test_invalid_config_data(data):
    """Data that violates the configuration schema raises ConfigError."""
    with pytest.raises(ConfigError):
        parse_config_data(data, "mdgraph.config.yaml")


def test_config_error_names_field():
    """Schema errors name the offending field."""
    with pytest.raises(ConfigError) as exc_info:
        parse_config_data({"packaging": {"link_follow_depth": "deep"}})
    assert "packaging.link_follow_depth" in exc_info.value.message


def test_inline_config_has_no_project_root():
    """Configs built without a file have no project root."""
    assert parse_config_data({"version": 1}).project_root is None


# ============================================================================
# Link Follow Depth Tests
# ============================================================================

def test_parse_link_follow_depth():
    """'full' is unbounded, integers pass through."""
    assert parse_link_follow_depth("full") == math.inf
    assert parse_link_follow_depth(0) == 0
    assert parse_link_follow_depth(3) == 3


@pytest.mark.parametrize("value", [-1, "deep", True, None])
def test_parse_link_follow_depth_invalid(value):
    """Negative or non-numeric depths raise ConfigError."""
    with pytest.raises(ConfigError):
        parse_link_follow_depth(value)
