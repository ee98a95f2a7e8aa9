#!/usr/bin/env python3
"""
Exception hierarchy for mdgraph.

Only whole-call failures are raised. Problems with individual links, resources
or schema references are reported as ValidationIssue data instead.
"""

from typing import Any, Dict, Optional


class MdGraphError(Exception):
    """Base exception for all mdgraph errors."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}


class ParseError(MdGraphError):
    """Raised when a markdown file cannot be read or decoded."""
    pass


class DuplicateResourceIdError(MdGraphError):
    """Raised when a registry is built from resources sharing an identifier."""
    pass


class ConfigError(MdGraphError):
    """Raised when a project configuration file is unreadable or invalid."""
    pass


class SchemaLoadError(MdGraphError):
    """Raised when a schema locator cannot be loaded or decoded."""
    pass


class InvalidRootError(MdGraphError):
    """Raised when link collection is given a root that is not a readable file."""
    pass
