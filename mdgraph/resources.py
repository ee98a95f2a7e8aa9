#!/usr/bin/env python3
"""
Resource model shared by the registry, validators and link collector.

Key Types:
- ResourceLink / HeadingNode: what the parser finds inside one document
- Resource: one parsed, checksummed, identified document
- ValidationIssue / ValidationResult: diagnostics produced by validation
- SchemaReference: one schema assigned to one resource, with its own outcome

Resources and links are frozen once created. Link resolution results live in a
separate ResolvedLinkIndex produced by the registry.
"""

import os
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import unquote


# Link kinds assigned by the parser
LOCAL_FILE = "local_file"
ANCHOR = "anchor"
EXTERNAL_URL = "external_url"
EMAIL = "email"
UNKNOWN = "unknown"

LINK_KINDS = (LOCAL_FILE, ANCHOR, EXTERNAL_URL, EMAIL, UNKNOWN)

# Issue severities
SEVERITY_ERROR = "error"
SEVERITY_WARNING = "warning"
SEVERITY_INFO = "info"

# Frontmatter validation modes
MODE_STRICT = "strict"
MODE_PERMISSIVE = "permissive"

VALIDATION_MODES = (MODE_STRICT, MODE_PERMISSIVE)

# Schema reference sources (collection names are used verbatim)
SOURCE_SELF = "self"
SOURCE_CLI = "cli"

MARKDOWN_EXTENSIONS = (".md", ".markdown")


@dataclass(frozen=True)
class HeadingNode:
    """
    One heading in a document's heading tree.

    Attributes:
        level: Heading level (1 for H1, 2 for H2, ...)
        text: Heading text as written
        slug: GitHub-style anchor slug
        line: 1-based source line, if known
        children: Headings nested under this one
    """
    level: int
    text: str
    slug: str
    line: Optional[int] = None
    children: Tuple["HeadingNode", ...] = ()


@dataclass(frozen=True)
class ResourceLink:
    """
    One reference found inside a resource.

    Attributes:
        href: Raw link target
        link_type: One of LINK_KINDS
        text: Display text (alt text for images)
        line: 1-based source line, if known
    """
    href: str
    link_type: str
    text: str = ""
    line: Optional[int] = None


@dataclass(frozen=True)
class Resource:
    """
    One parsed markdown document tracked by a registry.

    Attributes:
        id: Unique identifier within the owning registry
        file_path: Absolute path (unique key)
        links: Links in source order
        headings: Top-level headings, children nested by level
        frontmatter: Parsed frontmatter mapping, if any
        frontmatter_error: YAML error text when the frontmatter block is malformed
        size_bytes: File size in bytes
        estimated_token_count: Rough token estimate of the content
        modified_at: Last modification time
        checksum: SHA-256 hex digest of the file bytes
        collections: Names of configured collections this resource belongs to
    """
    id: str
    file_path: str
    links: Tuple[ResourceLink, ...]
    headings: Tuple[HeadingNode, ...]
    frontmatter: Optional[Dict[str, Any]]
    frontmatter_error: Optional[str]
    size_bytes: int
    estimated_token_count: int
    modified_at: datetime
    checksum: str
    collections: Tuple[str, ...] = ()

    @property
    def name(self) -> str:
        """Filename of the resource (index key for name lookups)."""
        return os.path.basename(self.file_path)


@dataclass
class ValidationIssue:
    """
    Structured validation issue.

    Attributes:
        resource_path: Path to the resource the issue belongs to
        line: Line number where the issue occurred (None for file-level issues)
        issue_type: Issue identifier, e.g. "broken_file" or "frontmatter_missing"
        link: The offending link href (empty when not link related)
        message: Human-readable description
        severity: "error", "warning" or "info"
        expected: What was expected (empty string if not applicable)
        found: What was actually found (empty string if not applicable)
        suggestion: Optional hint for fixing the issue
    """
    resource_path: str
    line: Optional[int]
    issue_type: str
    link: str
    message: str
    severity: str = SEVERITY_ERROR
    expected: str = ""
    found: str = ""
    suggestion: str = ""

    def format_issue(self) -> str:
        """
        Format the issue for console output.

        Returns:
            Formatted issue string

        Example:
            [ERROR] /docs/guide.md:12: broken_file
              Detail: File not found: /docs/missing.md
              Link: ./missing.md
        """
        severity_tag = f"[{self.severity.upper()}]"
        file_line = f"{self.resource_path}:{self.line}" if self.line else self.resource_path
        header = f"{severity_tag} {file_line}: {self.issue_type}"

        parts = [header]
        if self.message:
            parts.append(f"  Detail: {self.message}")
        if self.link:
            parts.append(f"  Link: {self.link}")
        if self.expected:
            parts.append(f"  Expected: {self.expected}")
        if self.found:
            parts.append(f"  Found: {self.found}")
        if self.suggestion:
            parts.append(f"  Suggestion: {self.suggestion}")

        return "\n".join(parts)


@dataclass
class ValidationResult:
    """Aggregate outcome of validating every resource in a registry."""
    total_resources: int
    total_links: int
    links_by_type: Dict[str, int]
    issues: List[ValidationIssue]
    error_count: int
    warning_count: int
    info_count: int
    passed: bool
    duration_ms: float
    timestamp: datetime

    @property
    def status(self) -> str:
        """Tri-state summary: "error", "warning" or "success"."""
        if self.error_count > 0:
            return "error"
        if self.warning_count > 0:
            return "warning"
        return "success"


@dataclass
class RegistryStats:
    total_resources: int
    total_links: int
    links_by_type: Dict[str, int]


@dataclass
class SchemaReference:
    """
    Assignment of one schema to one resource.

    Attributes:
        schema: Schema locator (file path)
        source: "self", "cli", or the name of the imposing collection
        applied: Whether validation was attempted
        valid: Outcome once applied (None before validation)
        errors: Issues produced by this schema alone
    """
    schema: str
    source: str
    applied: bool = False
    valid: Optional[bool] = None
    errors: List[ValidationIssue] = field(default_factory=list)


@dataclass
class ResolvedLinkIndex:
    """
    Link resolution results keyed by source resource path.

    Each entry is aligned with the source resource's link tuple: position i
    holds the id of the registered resource link i points at, or None.
    """
    entries: Dict[str, List[Optional[str]]] = field(default_factory=dict)

    def resolved_id(self, source_path: str, index: int) -> Optional[str]:
        ids = self.entries.get(source_path)
        if ids is None or index >= len(ids):
            return None
        return ids[index]

    def resolved_count(self) -> int:
        return sum(1 for ids in self.entries.values() for rid in ids if rid is not None)


def split_href_anchor(href: str) -> Tuple[str, Optional[str]]:
    """
    Split an href into its path part and anchor.

    Args:
        href: Link target, e.g. "./guide.md#setup"

    Returns:
        Tuple of (path, anchor); anchor is None when absent or empty

    Example:
        >>> split_href_anchor("./guide.md#setup")
        ('./guide.md', 'setup')
        >>> split_href_anchor("./guide.md")
        ('./guide.md', None)
    """
    path, sep, anchor = href.partition("#")
    return path, (anchor if sep and anchor else None)


def resolve_link_target(href: str, source_path: str) -> str:
    """
    Resolve a local link href to an absolute path.

    The anchor is stripped, percent-escapes are decoded and the remainder is
    resolved against the directory of the source document.

    Args:
        href: Link target as written in the source document
        source_path: Absolute path of the document containing the link

    Returns:
        Absolute, normalized target path
    """
    path, _ = split_href_anchor(href)
    path = unquote(path.split("?", 1)[0])
    source_dir = os.path.dirname(source_path)
    return os.path.normpath(os.path.join(source_dir, path))


def is_markdown_path(path: str) -> bool:
    return path.lower().endswith(MARKDOWN_EXTENSIONS)
