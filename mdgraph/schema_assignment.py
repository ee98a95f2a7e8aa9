#!/usr/bin/env python3
"""
Schema assignment for resources.

A resource may be checked against several schemas at once: the one its own
frontmatter asserts with a "$schema" key, one per collection it belongs to,
and one imposed from the command line. References are deduplicated by schema
locator; the first source to name a schema keeps it.
"""

from typing import Any, Dict, List, Optional

from mdgraph.config import CollectionConfig
from mdgraph.resources import SOURCE_CLI, SOURCE_SELF, SchemaReference


def _already_assigned(schemas: List[SchemaReference], locator: str) -> bool:
    return any(ref.schema == locator for ref in schemas)


def extract_self_asserted_schemas(frontmatter: Optional[Dict[str, Any]]) -> List[SchemaReference]:
    """
    Read the schema(s) a document asserts for itself.

    "$schema" may be a single locator or a list of locators.

    Example:
        >>> [ref.schema for ref in extract_self_asserted_schemas({"$schema": "schemas/guide.json"})]
        ['schemas/guide.json']
    """
    if not frontmatter:
        return []

    declared = frontmatter.get("$schema")
    if isinstance(declared, str):
        declared = [declared]
    if not isinstance(declared, list):
        return []

    schemas: List[SchemaReference] = []
    for locator in declared:
        if isinstance(locator, str) and locator and not _already_assigned(schemas, locator):
            schemas.append(SchemaReference(schema=locator, source=SOURCE_SELF))
    return schemas


def add_collection_schema(
    existing: List[SchemaReference],
    collection_name: str,
    collection: CollectionConfig,
) -> List[SchemaReference]:
    """Return existing plus the collection's schema, unless it is already there."""
    locator = collection.frontmatter_schema
    if not locator or _already_assigned(existing, locator):
        return existing
    return existing + [SchemaReference(schema=locator, source=collection_name)]


def add_cli_schema(existing: List[SchemaReference], locator: str) -> List[SchemaReference]:
    """Return existing plus an externally imposed schema, unless it is already there."""
    if _already_assigned(existing, locator):
        return existing
    return existing + [SchemaReference(schema=locator, source=SOURCE_CLI)]


def assign_schemas(
    resource_schemas: List[SchemaReference],
    collections: List[str],
    collections_config: Dict[str, CollectionConfig],
    cli_schema: Optional[str] = None,
) -> List[SchemaReference]:
    """
    Combine all schema sources for one resource.

    Args:
        resource_schemas: Self-asserted references (see extract_self_asserted_schemas)
        collections: Names of the collections the resource belongs to
        collections_config: Collection configuration by name
        cli_schema: Externally imposed schema locator, if any

    Returns:
        Ordered references: self, then collections, then cli
    """
    schemas = list(resource_schemas)

    for name in collections:
        collection = collections_config.get(name)
        if collection is not None:
            schemas = add_collection_schema(schemas, name, collection)

    if cli_schema:
        schemas = add_cli_schema(schemas, cli_schema)

    return schemas
