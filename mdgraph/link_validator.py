#!/usr/bin/env python3
"""
Link validation rules.

Each link found in a resource is checked on its own:

- local_file: the target must be an indexed resource or an existing file, and
  an anchor on the link must match a heading slug of the indexed target
- anchor: the slug must exist in the source resource's own headings
- external_url: never checked, reported as info
- email: always valid
- unknown: reported as a warning

Anchor slugs are compared case-sensitively.
"""

import os
from typing import Callable, Dict, Optional, Sequence

from mdgraph.markdown_parser import iter_headings
from mdgraph.resources import (
    ANCHOR,
    EMAIL,
    EXTERNAL_URL,
    LOCAL_FILE,
    SEVERITY_INFO,
    SEVERITY_WARNING,
    HeadingNode,
    ResourceLink,
    ValidationIssue,
    resolve_link_target,
    split_href_anchor,
)

BROKEN_FILE = "broken_file"
BROKEN_ANCHOR = "broken_anchor"
EXTERNAL_URL_ISSUE = "external_url"
UNKNOWN_LINK = "unknown_link"

HeadingsByFile = Dict[str, Sequence[HeadingNode]]


def has_heading_slug(headings: Sequence[HeadingNode], slug: str) -> bool:
    return any(heading.slug == slug for heading in iter_headings(headings))


def validate_link(
    link: ResourceLink,
    source_path: str,
    headings_by_file: HeadingsByFile,
    is_ignored: Optional[Callable[[str], bool]] = None,
) -> Optional[ValidationIssue]:
    """
    Validate one link.

    Args:
        link: Link to validate
        source_path: Absolute path of the resource containing the link
        headings_by_file: Heading trees of every indexed resource, by absolute path
        is_ignored: Optional predicate over absolute paths; ignored targets are
            reported as broken because they are not part of the repository

    Returns:
        ValidationIssue, or None when the link is valid
    """
    if link.link_type == LOCAL_FILE:
        return _validate_local_file_link(link, source_path, headings_by_file, is_ignored)

    if link.link_type == ANCHOR:
        return _validate_anchor_link(link, source_path, headings_by_file)

    if link.link_type == EXTERNAL_URL:
        return ValidationIssue(
            resource_path=source_path,
            line=link.line,
            issue_type=EXTERNAL_URL_ISSUE,
            link=link.href,
            message="External URL not validated",
            severity=SEVERITY_INFO,
        )

    if link.link_type == EMAIL:
        return None

    return ValidationIssue(
        resource_path=source_path,
        line=link.line,
        issue_type=UNKNOWN_LINK,
        link=link.href,
        message="Unknown link type",
        severity=SEVERITY_WARNING,
    )


def _validate_local_file_link(
    link: ResourceLink,
    source_path: str,
    headings_by_file: HeadingsByFile,
    is_ignored: Optional[Callable[[str], bool]],
) -> Optional[ValidationIssue]:
    path_part, anchor = split_href_anchor(link.href)
    target = resolve_link_target(link.href, source_path) if path_part else source_path

    if target not in headings_by_file and not os.path.exists(target):
        return ValidationIssue(
            resource_path=source_path,
            line=link.line,
            issue_type=BROKEN_FILE,
            link=link.href,
            message=f"File not found: {target}",
            suggestion="Check that the file path is correct and the file exists",
        )

    if is_ignored is not None and is_ignored(target):
        return ValidationIssue(
            resource_path=source_path,
            line=link.line,
            issue_type=BROKEN_FILE,
            link=link.href,
            message=f"File is gitignored: {target}",
            suggestion="Ignored files are local-only; remove this link or unignore the target file",
        )

    if anchor is not None:
        headings = headings_by_file.get(target)
        if headings is None or not has_heading_slug(headings, anchor):
            return ValidationIssue(
                resource_path=source_path,
                line=link.line,
                issue_type=BROKEN_ANCHOR,
                link=link.href,
                message=f"Anchor not found: #{anchor} in {target}",
                expected=f"heading with slug '{anchor}'",
                found="no matching heading" if headings is not None else "target is not an indexed resource",
                suggestion="Check that the heading exists in the target file",
            )

    return None


def _validate_anchor_link(
    link: ResourceLink,
    source_path: str,
    headings_by_file: HeadingsByFile,
) -> Optional[ValidationIssue]:
    anchor = link.href[1:] if link.href.startswith('#') else link.href
    headings = headings_by_file.get(source_path, ())

    if anchor and has_heading_slug(headings, anchor):
        return None

    return ValidationIssue(
        resource_path=source_path,
        line=link.line,
        issue_type=BROKEN_ANCHOR,
        link=link.href,
        message=f"Anchor not found: {link.href}",
        suggestion="Check that the heading exists in this file",
    )
