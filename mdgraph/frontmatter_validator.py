#!/usr/bin/env python3
"""
Frontmatter validation against a single JSON Schema.

Key Features:
- Validator class picked from the schema's "$schema" (Draft 7 by default)
- All errors reported, each with the field path, expected constraint and found value
- Permissive mode that lets any object schema accept unknown properties
- Missing frontmatter reported as frontmatter_missing when the schema requires fields
"""

import copy
import json
from typing import Any, Dict, List, Optional

from jsonschema import Draft7Validator
from jsonschema.exceptions import SchemaError
from jsonschema.validators import validator_for
from referencing.exceptions import Unresolvable

from mdgraph.resources import MODE_PERMISSIVE, MODE_STRICT, ValidationIssue

FRONTMATTER_SCHEMA_ERROR = "frontmatter_schema_error"
FRONTMATTER_MISSING = "frontmatter_missing"

# Keywords whose values are subschemas (or lists/maps of subschemas)
_SUBSCHEMA_LIST_KEYS = ('allOf', 'anyOf', 'oneOf')
_SUBSCHEMA_MAP_KEYS = ('properties', 'definitions', '$defs')


def make_schema_permissive(schema: Dict[str, Any]) -> Dict[str, Any]:
    """
    Return a copy of schema where every object schema allows unknown properties.

    The input schema is never modified.

    Args:
        schema: JSON Schema as a dict

    Returns:
        Deep copy with additionalProperties set to true on object schemas

    Example:
        >>> strict = {"type": "object", "additionalProperties": False}
        >>> make_schema_permissive(strict)["additionalProperties"]
        True
        >>> strict["additionalProperties"]
        False
    """
    relaxed = copy.deepcopy(schema)
    _relax(relaxed)
    return relaxed


def _relax(node: Any) -> None:
    if not isinstance(node, dict):
        return

    if node.get('type') == 'object' or 'properties' in node:
        node['additionalProperties'] = True

    for key in _SUBSCHEMA_MAP_KEYS:
        children = node.get(key)
        if isinstance(children, dict):
            for child in children.values():
                _relax(child)

    for key in _SUBSCHEMA_LIST_KEYS:
        children = node.get(key)
        if isinstance(children, list):
            for child in children:
                _relax(child)

    items = node.get('items')
    if isinstance(items, list):
        for child in items:
            _relax(child)
    else:
        _relax(items)


def _format_value(value: Any) -> str:
    try:
        return json.dumps(value, default=str)
    except (TypeError, ValueError):
        return repr(value)


def _schema_issue(resource_path: str, message: str) -> ValidationIssue:
    return ValidationIssue(
        resource_path=resource_path,
        line=1,
        issue_type=FRONTMATTER_SCHEMA_ERROR,
        link="",
        message=message,
    )


def _describe_expected(error) -> str:
    if error.validator == 'additionalProperties':
        return "no properties beyond those declared"
    return f"{error.validator}: {_format_value(error.validator_value)}"


def validate_frontmatter(
    frontmatter: Optional[Dict[str, Any]],
    schema: Dict[str, Any],
    resource_path: str,
    mode: str = MODE_STRICT,
) -> List[ValidationIssue]:
    """
    Validate one resource's frontmatter against one schema.

    Args:
        frontmatter: Parsed frontmatter, None when the resource has none
        schema: JSON Schema as a dict
        resource_path: Path of the resource, attached to every issue
        mode: "strict" or "permissive"

    Returns:
        List of issues (empty when the frontmatter is valid)

    Example:
        >>> schema = {"type": "object", "required": ["title"]}
        >>> [i.issue_type for i in validate_frontmatter(None, schema, "doc.md")]
        ['frontmatter_missing']
    """
    effective = make_schema_permissive(schema) if mode == MODE_PERMISSIVE else schema

    try:
        validator_class = validator_for(effective, default=Draft7Validator)
        validator_class.check_schema(effective)
    except (SchemaError, TypeError) as e:
        return [_schema_issue(resource_path, f"Invalid schema: {getattr(e, 'message', e)}")]

    if frontmatter is None:
        required = schema.get('required')
        if not isinstance(required, list) or not required:
            return []
        names = ', '.join(str(name) for name in required)
        return [ValidationIssue(
            resource_path=resource_path,
            line=1,
            issue_type=FRONTMATTER_MISSING,
            link="",
            message=f"Missing required frontmatter (schema requires: {names})",
            expected=f"frontmatter with {names}",
            found="no frontmatter",
        )]

    validator = validator_class(effective)
    try:
        errors = sorted(validator.iter_errors(frontmatter), key=lambda e: [str(p) for p in e.absolute_path])
    except (Unresolvable, TypeError) as e:
        return [_schema_issue(resource_path, f"Schema could not be applied: {e}")]

    issues = []
    for error in errors:
        field_path = ".".join(str(p) for p in error.absolute_path) or "root"
        issues.append(ValidationIssue(
            resource_path=resource_path,
            line=1,
            issue_type=FRONTMATTER_SCHEMA_ERROR,
            link="",
            message=f"Frontmatter validation: {field_path} {error.message}",
            expected=_describe_expected(error),
            found=_format_value(error.instance),
        ))

    return issues
