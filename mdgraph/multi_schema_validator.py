#!/usr/bin/env python3
"""
Multi-schema frontmatter validation.

Validates one resource's frontmatter against an ordered list of schema
references. Each reference is loaded and validated on its own and gets its own
outcome; schemas are never merged. A schema that cannot be loaded fails only
its own reference.
"""

import json
import logging
import os
from dataclasses import replace
from typing import Any, Dict, List, Optional

import yaml

from mdgraph.errors import SchemaLoadError
from mdgraph.frontmatter_validator import validate_frontmatter
from mdgraph.resources import MODE_STRICT, SchemaReference, ValidationIssue

logger = logging.getLogger(__name__)

SCHEMA_LOAD_ERROR = "schema_load_error"


def resolve_schema_path(locator: str, project_root: Optional[str] = None) -> str:
    if os.path.isabs(locator):
        return locator
    return os.path.abspath(os.path.join(project_root or os.getcwd(), locator))


def load_schema(locator: str, project_root: Optional[str] = None) -> Dict[str, Any]:
    """
    Load a schema from a file.

    Args:
        locator: Schema file path, absolute or relative to project_root
        project_root: Base directory for relative locators (default: cwd)

    Returns:
        Schema as a dict

    Raises:
        SchemaLoadError: If the file is missing, unreadable, malformed, or
            does not contain a JSON object
    """
    path = resolve_schema_path(locator, project_root)

    try:
        with open(path, 'r', encoding='utf-8') as f:
            content = f.read()
    except OSError as e:
        raise SchemaLoadError(f"Cannot read schema {locator}: {e.strerror or e}",
                              {"schema": locator, "path": path}) from e

    try:
        if path.lower().endswith(('.yaml', '.yml')):
            schema = yaml.safe_load(content)
        else:
            schema = json.loads(content)
    except (yaml.YAMLError, ValueError) as e:
        raise SchemaLoadError(f"Cannot parse schema {locator}: {e}",
                              {"schema": locator, "path": path}) from e

    if not isinstance(schema, dict):
        raise SchemaLoadError(f"Schema {locator} is not an object", {"schema": locator, "path": path})

    return schema


def validate_frontmatter_multi_schema(
    frontmatter: Optional[Dict[str, Any]],
    schemas: List[SchemaReference],
    resource_path: str,
    mode: str = MODE_STRICT,
    project_root: Optional[str] = None,
) -> List[SchemaReference]:
    """
    Validate frontmatter against each schema reference independently.

    Args:
        frontmatter: Parsed frontmatter, None when the resource has none
        schemas: References to validate, in order
        resource_path: Path of the resource, attached to every issue
        mode: "strict" or "permissive", applied to every schema
        project_root: Base directory for relative schema locators

    Returns:
        New SchemaReference objects (inputs are not modified), one per input,
        with applied, valid and errors filled in
    """
    results: List[SchemaReference] = []

    for ref in schemas:
        try:
            schema = load_schema(ref.schema, project_root)
        except SchemaLoadError as e:
            logger.warning("Schema %s for %s could not be loaded: %s", ref.schema, resource_path, e.message)
            results.append(replace(ref, applied=True, valid=False, errors=[ValidationIssue(
                resource_path=resource_path,
                line=1,
                issue_type=SCHEMA_LOAD_ERROR,
                link="",
                message=f"Failed to load schema {ref.schema}: {e.message}",
                suggestion="Check that the schema path is correct and the file is valid JSON or YAML",
            )]))
            continue

        issues = validate_frontmatter(frontmatter, schema, resource_path, mode)
        logger.debug("Schema %s (%s) on %s: %d issues", ref.schema, ref.source, resource_path, len(issues))
        results.append(replace(ref, applied=True, valid=not issues, errors=issues))

    return results


def has_schema_errors(schemas: List[SchemaReference]) -> bool:
    return any(ref.valid is False for ref in schemas)


def get_all_schema_errors(schemas: List[SchemaReference]) -> List[ValidationIssue]:
    return [issue for ref in schemas for issue in ref.errors]
