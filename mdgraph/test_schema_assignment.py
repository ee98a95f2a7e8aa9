#!/usr/bin/env python3
"""
Test suite for schema_assignment module.
"""

from mdgraph.config import CollectionConfig
from mdgraph.resources import SchemaReference
from mdgraph.schema_assignment import (
    add_cli_schema,
    add_collection_schema,
    assign_schemas,
    extract_self_asserted_schemas,
)


def test_self_asserted_single():
    """A string $schema yields one self reference."""
    refs = extract_self_asserted_schemas({"$schema": "schemas/a.json", "title": "x"})
    assert [(r.schema, r.source) for r in refs] == [("schemas/a.json", "self")]
    assert refs[0].applied is False
    assert refs[0].valid is None


def test_self_asserted_list_deduplicated():
    """A list of locators is deduplicated in order."""
    refs = extract_self_asserted_schemas({"$schema": ["a.json", "b.json", "a.json"]})
    assert [r.schema for r in refs] == ["a.json", "b.json"]


def test_self_asserted_absent_or_invalid():
    """Missing frontmatter or non-string values yield nothing."""
    assert extract_self_asserted_schemas(None) == []
    assert extract_self_asserted_schemas({"title": "x"}) == []
    assert extract_self_asserted_schemas({"$schema": 42}) == []


def test_add_collection_schema_without_schema():
    """Collections without a schema add nothing."""
    existing = [SchemaReference(schema="a.json", source="self")]
    assert add_collection_schema(existing, "notes", CollectionConfig(include=["notes"])) == existing


def test_first_source_wins():
    """A locator already assigned keeps its original source."""
    existing = [SchemaReference(schema="a.json", source="self")]
    updated = add_collection_schema(existing, "guides", CollectionConfig(include=["guides"], frontmatter_schema="a.json"))
    assert [(r.schema, r.source) for r in updated] == [("a.json", "self")]
    assert add_cli_schema(updated, "a.json") == updated


def test_add_does_not_mutate_input():
    """Adding a schema returns a new list."""
    existing = []
    updated = add_cli_schema(existing, "cli.json")
    assert existing == []
    assert [(r.schema, r.source) for r in updated] == [("cli.json", "cli")]


def test_assign_schemas_order():
    """References are ordered self, collections, cli."""
    config = {
        "guides": CollectionConfig(include=["guides"], frontmatter_schema="guide.json"),
        "all": CollectionConfig(include=["**/*.md"], frontmatter_schema="base.json"),
        "plain": CollectionConfig(include=["plain"]),
    }
    refs = assign_schemas(
        extract_self_asserted_schemas({"$schema": "own.json"}),
        ["guides", "all", "plain", "unknown"],
        config,
        cli_schema="cli.json",
    )
    assert [(r.schema, r.source) for r in refs] == [
        ("own.json", "self"),
        ("guide.json", "guides"),
        ("base.json", "all"),
        ("cli.json", "cli"),
    ]
