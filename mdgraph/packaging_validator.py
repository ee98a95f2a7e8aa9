#!/usr/bin/env python3
"""
Packaging readiness checks for one root document.

Runs the link collector over the root, optionally validates the root's
frontmatter against schema references, and applies size and structure
heuristics. Threshold findings are warnings; schema failures are errors.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from mdgraph.config import DEFAULT_LINK_FOLLOW_DEPTH, PackagingConfig, parse_link_follow_depth
from mdgraph.errors import InvalidRootError, ParseError
from mdgraph.link_collector import (
    NAVIGATION_FILE_NAMES,
    DefaultRule,
    ExcludeRule,
    LinkCollectionOptions,
    LinkResolution,
    collect_links,
)
from mdgraph.markdown_parser import ParseResult, parse_resource_file
from mdgraph.multi_schema_validator import get_all_schema_errors, validate_frontmatter_multi_schema
from mdgraph.pattern_matcher import to_forward_slash
from mdgraph.resources import (
    LOCAL_FILE,
    MODE_STRICT,
    SEVERITY_ERROR,
    SEVERITY_WARNING,
    SOURCE_CLI,
    SchemaReference,
    ValidationIssue,
    is_markdown_path,
    resolve_link_target,
    split_href_anchor,
)

logger = logging.getLogger(__name__)


# Packaging thresholds
PACKAGING_THRESHOLDS = {
    'recommended_root_lines': 500,
    'max_total_lines': 2000,
    'max_file_count': 6,
    'max_reference_depth': 2,
    'min_description_length': 50,
}

# Rule code -> (severity, message template, fix)
PACKAGING_RULES = {
    'DOCUMENT_TOO_LONG': (
        SEVERITY_WARNING,
        "Root document is {lines} lines (recommended <= {limit})",
        "Move detailed content to linked reference files",
    ),
    'BUNDLE_TOO_LARGE': (
        SEVERITY_WARNING,
        "Bundle totals {total_lines} lines (recommended <= {limit})",
        "Split into several focused packages",
    ),
    'TOO_MANY_FILES': (
        SEVERITY_WARNING,
        "Bundle includes {file_count} files (recommended <= {limit})",
        "Split into focused packages or exclude rarely needed references",
    ),
    'REFERENCE_TOO_DEEP': (
        SEVERITY_WARNING,
        "Links are followed {depth} levels deep (recommended <= {limit})",
        "Shorten link chains or lower link_follow_depth",
    ),
    'LINKS_TO_NAVIGATION_FILES': (
        SEVERITY_WARNING,
        "Links to navigation files: {files}",
        "Link directly to topic documents instead of navigation indexes",
    ),
    'DESCRIPTION_TOO_VAGUE': (
        SEVERITY_WARNING,
        "Description is {length} characters (recommended >= {limit})",
        "Write a descriptive summary in the frontmatter description",
    ),
    'NO_PROGRESSIVE_DISCLOSURE': (
        SEVERITY_WARNING,
        "Root document is {lines} lines with no reference files",
        "Move detailed content into linked reference files",
    ),
}


@dataclass
class PackagingOptions:
    """
    Options for validate_for_packaging().

    Attributes:
        link_follow_depth: Hops to follow, or "full"
        exclude_rules: Ordered exclude rules for the link collector
        default_rule: Fallback exclusion message template
        exclude_navigation_files: Keep README/index/toc/overview out of the bundle
        package_root: Boundary directory (default: the root document's directory)
        schemas: Schema locators to validate the root frontmatter against
        validation_mode: Mode for those schemas
        project_root: Base for relative schema locators
    """
    link_follow_depth: Union[int, str] = DEFAULT_LINK_FOLLOW_DEPTH
    exclude_rules: List[ExcludeRule] = field(default_factory=list)
    default_rule: DefaultRule = field(default_factory=DefaultRule)
    exclude_navigation_files: bool = False
    package_root: Optional[str] = None
    schemas: List[str] = field(default_factory=list)
    validation_mode: str = MODE_STRICT
    project_root: Optional[str] = None

    @classmethod
    def from_config(cls, packaging: PackagingConfig, **kwargs) -> "PackagingOptions":
        """Build options from the packaging section of a project configuration."""
        return cls(
            link_follow_depth=packaging.link_follow_depth,
            exclude_rules=[ExcludeRule(patterns=list(r.patterns), template=r.template)
                           for r in packaging.exclude_rules],
            default_rule=DefaultRule(template=packaging.default_template),
            exclude_navigation_files=packaging.exclude_navigation_files,
            **kwargs,
        )


@dataclass
class ExcludedReferenceDetail:
    path: str
    reason: str
    matched_pattern: Optional[str] = None


@dataclass
class PackagingMetadata:
    root_lines: int
    total_lines: int
    file_count: int
    direct_file_count: int
    max_link_depth: int
    excluded_references: List[ExcludedReferenceDetail] = field(default_factory=list)

    @property
    def excluded_reference_count(self) -> int:
        return len(self.excluded_references)


@dataclass
class PackagingReport:
    """Packaging readiness of one root document."""
    root_path: str
    name: str
    issues: List[ValidationIssue]
    metadata: PackagingMetadata
    bundled_files: List[str] = field(default_factory=list)
    schemas: List[SchemaReference] = field(default_factory=list)

    @property
    def error_count(self) -> int:
        return sum(1 for issue in self.issues if issue.severity == SEVERITY_ERROR)

    @property
    def warning_count(self) -> int:
        return sum(1 for issue in self.issues if issue.severity == SEVERITY_WARNING)

    @property
    def status(self) -> str:
        if self.error_count:
            return "error"
        if self.warning_count:
            return "warning"
        return "success"


def create_issue(code: str, root_path: str, **context: Any) -> ValidationIssue:
    """Build a ValidationIssue for one packaging rule."""
    severity, template, fix = PACKAGING_RULES[code]
    return ValidationIssue(
        resource_path=root_path,
        line=None,
        issue_type=code,
        link="",
        message=template.format(**context),
        severity=severity,
        suggestion=fix,
    )


def count_lines(text: str) -> int:
    return text.count('\n') + 1


def _count_file_lines(path: str) -> int:
    try:
        with open(path, 'r', encoding='utf-8') as f:
            return count_lines(f.read())
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Cannot count lines of %s: %s", path, e)
        return 0


def extract_document_name(parsed: ParseResult, root_path: str) -> str:
    """Name from frontmatter "name", else the first H1, else the file stem."""
    if parsed.frontmatter:
        name = parsed.frontmatter.get('name')
        if isinstance(name, str) and name.strip():
            return name.strip()
    for heading in parsed.headings:
        if heading.level == 1 and heading.text.strip():
            return heading.text.strip()
    return os.path.splitext(os.path.basename(root_path))[0]


def deduplicate_excluded_references(references: List[LinkResolution],
                                    root_path: str) -> List[ExcludedReferenceDetail]:
    """
    Collapse excluded link occurrences to one entry per (path, reason).

    Paths are reported relative to the root document's directory.
    """
    root_dir = os.path.dirname(root_path)
    seen = set()
    details = []
    for ref in references:
        key = (ref.path, ref.exclude_reason)
        if key in seen:
            continue
        seen.add(key)
        details.append(ExcludedReferenceDetail(
            path=to_forward_slash(os.path.relpath(ref.path, root_dir)),
            reason=ref.exclude_reason or "",
            matched_pattern=ref.matched_rule.patterns[0] if ref.matched_rule and ref.matched_rule.patterns else None,
        ))
    return details


def _direct_markdown_targets(parsed: ParseResult, root_path: str) -> List[str]:
    targets = []
    for link in parsed.links:
        if link.link_type != LOCAL_FILE or not split_href_anchor(link.href)[0]:
            continue
        target = resolve_link_target(link.href, root_path)
        if is_markdown_path(target) and os.path.isfile(target):
            targets.append(target)
    return targets


def _navigation_links(parsed: ParseResult, root_path: str) -> List[str]:
    found = []
    for link in parsed.links:
        path_part = split_href_anchor(link.href)[0]
        if link.link_type != LOCAL_FILE or not path_part:
            continue
        if os.path.basename(path_part) in NAVIGATION_FILE_NAMES:
            location = resolve_link_target(link.href, root_path)
            found.append(f"{location}:{link.line}" if link.line else location)
    return found


def validate_for_packaging(root_path: str, options: Optional[PackagingOptions] = None) -> PackagingReport:
    """
    Check whether a root document is ready to be packaged.

    Args:
        root_path: Path of the root markdown document
        options: Packaging options (defaults apply when omitted)

    Returns:
        PackagingReport with issues, status and bundle metadata

    Raises:
        InvalidRootError: If the root document is missing or unparsable
    """
    options = options or PackagingOptions()
    root = os.path.abspath(root_path)

    try:
        parsed = parse_resource_file(root)
    except ParseError as e:
        raise InvalidRootError(f"Root document cannot be parsed: {e.message}", {"path": root}) from e

    collection = collect_links(root, LinkCollectionOptions(
        max_depth=parse_link_follow_depth(options.link_follow_depth),
        exclude_rules=options.exclude_rules,
        default_rule=options.default_rule,
        root_dir=os.path.dirname(root),
        package_root=options.package_root,
        exclude_navigation_files=options.exclude_navigation_files,
    ))

    issues: List[ValidationIssue] = []

    if parsed.frontmatter_error:
        issues.append(ValidationIssue(
            resource_path=root,
            line=1,
            issue_type="frontmatter_invalid_yaml",
            link="",
            message=f"Invalid YAML syntax in frontmatter: {parsed.frontmatter_error}",
        ))

    schema_results: List[SchemaReference] = []
    if options.schemas:
        schema_results = validate_frontmatter_multi_schema(
            parsed.frontmatter,
            [SchemaReference(schema=locator, source=SOURCE_CLI) for locator in options.schemas],
            root,
            options.validation_mode,
            options.project_root,
        )
        issues.extend(get_all_schema_errors(schema_results))

    root_lines = count_lines(parsed.content)
    bundled = collection.bundled_files
    total_lines = root_lines + sum(
        _count_file_lines(path) for path in bundled if is_markdown_path(path) and path != root
    )
    file_count = len([path for path in bundled if path != root]) + 1
    bundled_set = set(bundled)
    direct_file_count = sum(1 for target in _direct_markdown_targets(parsed, root) if target in bundled_set)

    limits = PACKAGING_THRESHOLDS
    if root_lines > limits['recommended_root_lines']:
        issues.append(create_issue('DOCUMENT_TOO_LONG', root, lines=root_lines,
                                   limit=limits['recommended_root_lines']))
    if total_lines > limits['max_total_lines']:
        issues.append(create_issue('BUNDLE_TOO_LARGE', root, total_lines=total_lines,
                                   limit=limits['max_total_lines']))
    if file_count > limits['max_file_count']:
        issues.append(create_issue('TOO_MANY_FILES', root, file_count=file_count,
                                   limit=limits['max_file_count']))
    if collection.max_bundled_depth > limits['max_reference_depth']:
        issues.append(create_issue('REFERENCE_TOO_DEEP', root, depth=collection.max_bundled_depth,
                                   limit=limits['max_reference_depth']))

    navigation = _navigation_links(parsed, root)
    if navigation:
        issues.append(create_issue('LINKS_TO_NAVIGATION_FILES', root, files=", ".join(navigation)))

    description = (parsed.frontmatter or {}).get('description')
    if isinstance(description, str) and description and len(description) < limits['min_description_length']:
        issues.append(create_issue('DESCRIPTION_TOO_VAGUE', root, length=len(description),
                                   limit=limits['min_description_length']))

    if root_lines > limits['recommended_root_lines'] and not bundled:
        issues.append(create_issue('NO_PROGRESSIVE_DISCLOSURE', root, lines=root_lines))

    metadata = PackagingMetadata(
        root_lines=root_lines,
        total_lines=total_lines,
        file_count=file_count,
        direct_file_count=direct_file_count,
        max_link_depth=collection.max_bundled_depth,
        excluded_references=deduplicate_excluded_references(collection.excluded_references, root),
    )

    return PackagingReport(
        root_path=root,
        name=extract_document_name(parsed, root),
        issues=issues,
        metadata=metadata,
        bundled_files=bundled,
        schemas=schema_results,
    )


def report_to_dict(report: PackagingReport) -> Dict[str, Any]:
    """Plain-data view of a report for YAML output."""
    return {
        'name': report.name,
        'root': report.root_path,
        'status': report.status,
        'metadata': {
            'root_lines': report.metadata.root_lines,
            'total_lines': report.metadata.total_lines,
            'file_count': report.metadata.file_count,
            'direct_file_count': report.metadata.direct_file_count,
            'max_link_depth': report.metadata.max_link_depth,
            'excluded_reference_count': report.metadata.excluded_reference_count,
            'excluded_references': [
                {k: v for k, v in (('path', d.path), ('reason', d.reason), ('matched_pattern', d.matched_pattern))
                 if v is not None}
                for d in report.metadata.excluded_references
            ],
        },
        'issues': [
            {'code': issue.issue_type, 'severity': issue.severity, 'message': issue.message}
            for issue in report.issues
        ],
    }
