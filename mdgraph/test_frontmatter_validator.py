#!/usr/bin/env python3
"""
Test suite for frontmatter_validator module.
"""

import copy

from mdgraph.frontmatter_validator import (
    FRONTMATTER_MISSING,
    FRONTMATTER_SCHEMA_ERROR,
    make_schema_permissive,
    validate_frontmatter,
)


GUIDE_SCHEMA = {
    "type": "object",
    "required": ["title"],
    "properties": {
        "title": {"type": "string"},
        "count": {"type": "integer"},
        "meta": {
            "type": "object",
            "properties": {"owner": {"type": "string"}},
            "additionalProperties": False,
        },
    },
    "additionalProperties": False,
}


# ============================================================================
# Permissive Schema Tests
# ============================================================================

def test_make_schema_permissive_does_not_mutate():
    """The input schema is left unchanged."""
    original = copy.deepcopy(GUIDE_SCHEMA)
    relaxed = make_schema_permissive(GUIDE_SCHEMA)
    assert GUIDE_SCHEMA == original
    assert relaxed["additionalProperties"] is True
    assert relaxed["properties"]["meta"]["additionalProperties"] is True


def test_make_schema_permissive_combinators():
    """Object schemas inside combinators and items are relaxed."""
    schema = {
        "allOf": [{"type": "object", "additionalProperties": False}],
        "properties": {"list": {"type": "array", "items": {"type": "object", "additionalProperties": False}}},
        "definitions": {"ref": {"type": "object", "additionalProperties": False}},
    }
    relaxed = make_schema_permissive(schema)
    assert relaxed["allOf"][0]["additionalProperties"] is True
    assert relaxed["properties"]["list"]["items"]["additionalProperties"] is True
    assert relaxed["definitions"]["ref"]["additionalProperties"] is True


# ============================================================================
# Validation Tests
# ============================================================================

def test_valid_frontmatter():
    """Conforming frontmatter produces no issues."""
    assert validate_frontmatter({"title": "Guide", "count": 3}, GUIDE_SCHEMA, "doc.md") == []


def test_strict_rejects_unknown_fields():
    """Strict mode keeps additionalProperties false."""
    issues = validate_frontmatter({"title": "Guide", "extra": 1}, GUIDE_SCHEMA, "doc.md", "strict")
    assert len(issues) == 1
    assert issues[0].issue_type == FRONTMATTER_SCHEMA_ERROR
    assert "extra" in issues[0].message
    assert issues[0].severity == "error"


def test_permissive_accepts_unknown_fields():
    """Permissive mode allows unknown fields at every level."""
    frontmatter = {"title": "Guide", "extra": 1, "meta": {"owner": "me", "team": "docs"}}
    assert validate_frontmatter(frontmatter, GUIDE_SCHEMA, "doc.md", "permissive") == []


def test_permissive_still_checks_types():
    """Permissive mode still enforces declared constraints."""
    issues = validate_frontmatter({"title": "Guide", "count": "five"}, GUIDE_SCHEMA, "doc.md", "permissive")
    assert len(issues) == 1
    assert issues[0].message.startswith("Frontmatter validation: count ")
    assert issues[0].expected == 'type: "integer"'
    assert issues[0].found == '"five"'


def test_all_errors_reported():
    """Every violation is reported, not just the first."""
    issues = validate_frontmatter({"count": "five", "extra": True}, GUIDE_SCHEMA, "doc.md")
    assert len(issues) == 3
    assert all(issue.resource_path == "doc.md" for issue in issues)


def test_missing_frontmatter_with_required_fields():
    """No frontmatter against a schema with required fields is one issue."""
    issues = validate_frontmatter(None, GUIDE_SCHEMA, "doc.md")
    assert len(issues) == 1
    assert issues[0].issue_type == FRONTMATTER_MISSING
    assert "title" in issues[0].message


def test_missing_frontmatter_without_required_fields():
    """No frontmatter is fine when nothing is required."""
    assert validate_frontmatter(None, {"type": "object"}, "doc.md") == []


def test_invalid_schema():
    """A malformed schema is reported as a single issue."""
    issues = validate_frontmatter({"title": "x"}, {"type": "not-a-type"}, "doc.md")
    assert len(issues) == 1
    assert issues[0].message.startswith("Invalid schema:")


def test_invalid_required_checked_before_missing_frontmatter():
    """A malformed "required" is a schema error even without frontmatter."""
    issues = validate_frontmatter(None, {"type": "object", "required": "title"}, "doc.md")
    assert len(issues) == 1
    assert issues[0].issue_type == FRONTMATTER_SCHEMA_ERROR
    assert issues[0].message.startswith("Invalid schema:")


def test_unresolvable_ref_is_reported():
    """A $ref that cannot be resolved is an issue, not an exception."""
    schema = {"$ref": "defs.json#/definitions/title"}
    issues = validate_frontmatter({"title": "x"}, schema, "doc.md")
    assert len(issues) == 1
    assert issues[0].issue_type == FRONTMATTER_SCHEMA_ERROR
    assert issues[0].message.startswith("Schema could not be applied:")


def test_non_string_keys_with_pattern_properties():
    """Integer keys against patternProperties are reported, not raised."""
    schema = {"type": "object", "patternProperties": {"^x-": {"type": "string"}}}
    issues = validate_frontmatter({2024: "launch", "title": "x"}, schema, "doc.md")
    assert len(issues) == 1
    assert issues[0].message.startswith("Schema could not be applied:")
