#!/usr/bin/env python3
"""
Link Collector

Walks the local links reachable from one root markdown document and decides,
for each link, whether its target is bundled or excluded.

Key Features:
- Depth budget measured in link hops from the root ("full" disables it)
- Ordered exclude rules, first match wins, checked before anything else
- Non-markdown assets always bundled unless a rule excludes them
- Cycle safe: each document is expanded once, at the depth it is first reached
- Explicit work stack instead of recursion

Per-link rule order:
1. navigation file (when enabled) -> excluded, reason "navigation-file"
2. first matching exclude rule -> excluded, reason "pattern-matched"
3. non-markdown target -> bundled, never followed
4. markdown target beyond the depth budget -> excluded, reason "depth-exceeded"
5. otherwise -> bundled and followed

Missing targets, directories and targets outside the package root are
dropped without a record.
"""

import logging
import os
import re
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional

from mdgraph.errors import InvalidRootError, ParseError
from mdgraph.markdown_parser import parse_resource_file
from mdgraph.pattern_matcher import compile_patterns, to_forward_slash
from mdgraph.resources import LOCAL_FILE, ResourceLink, is_markdown_path, resolve_link_target, split_href_anchor

logger = logging.getLogger(__name__)

DEPTH_EXCEEDED = "depth-exceeded"
PATTERN_MATCHED = "pattern-matched"
NAVIGATION_FILE = "navigation-file"

NAVIGATION_FILE_NAMES = (
    'README.md', 'readme.md',
    'index.md', 'INDEX.md',
    'toc.md', 'TOC.md',
    'overview.md', 'OVERVIEW.md',
)

DEFAULT_EXCLUSION_TEMPLATE = "{text} (not bundled: {reason})"

_PLACEHOLDER = re.compile(r'\{(\w+)\}')


@dataclass
class ExcludeRule:
    """
    Pattern set that keeps matching targets out of the bundle.

    Attributes:
        patterns: Globs matched against the root-relative forward-slash path
        template: Message template for links excluded by this rule
    """
    patterns: List[str]
    template: Optional[str] = None


@dataclass
class DefaultRule:
    """Message template for exclusions that no rule template covers."""
    template: Optional[str] = None


@dataclass
class LinkCollectionOptions:
    """
    Options for collect_links().

    Attributes:
        max_depth: Markdown hops to follow from the root (math.inf for "full")
        exclude_rules: Ordered rules, first match wins
        default_rule: Fallback message template
        root_dir: Base for glob matching (default: the root document's directory)
        package_root: Boundary directory; also the glob base when set
        exclude_navigation_files: Exclude README/index/toc/overview links
    """
    max_depth: float = 2
    exclude_rules: List[ExcludeRule] = field(default_factory=list)
    default_rule: DefaultRule = field(default_factory=DefaultRule)
    root_dir: Optional[str] = None
    package_root: Optional[str] = None
    exclude_navigation_files: bool = False


@dataclass
class LinkResolution:
    """
    Outcome for one link occurrence found during collection.

    Attributes:
        path: Absolute target path
        bundled: Whether the target is bundled
        exclude_reason: Why the link was not bundled (None when bundled)
        matched_rule: Rule responsible for a pattern-matched exclusion
        link_text: Link text in the source document
        link_href: Link target as written
        source_path: Document the link was found in
    """
    path: str
    bundled: bool
    exclude_reason: Optional[str] = None
    matched_rule: Optional[ExcludeRule] = None
    link_text: str = ""
    link_href: str = ""
    source_path: str = ""


@dataclass
class LinkCollectionResult:
    """
    Bundle decision for one root document.

    Attributes:
        bundled_files: Absolute paths to bundle, deduplicated, in discovery order
        excluded_references: One entry per excluded link occurrence, in discovery order
        max_bundled_depth: Deepest hop count at which a markdown file was bundled
    """
    bundled_files: List[str]
    excluded_references: List[LinkResolution]
    max_bundled_depth: int


@dataclass
class _LocalLink:
    path: str
    is_markdown: bool
    text: str
    href: str


@dataclass
class _Frame:
    path: str
    depth: int
    links: Iterator[_LocalLink]


def render_exclusion_message(resolution: LinkResolution, default_rule: Optional[DefaultRule] = None) -> str:
    """
    Render the message that replaces an excluded link.

    The matched rule's template is used when present, then the default rule's,
    then DEFAULT_EXCLUSION_TEMPLATE. Placeholders: {text}, {href}, {path},
    {reason}; any other placeholder is left as written.

    Example:
        >>> res = LinkResolution(path="/p/a.md", bundled=False, exclude_reason="depth-exceeded",
        ...                      link_text="A", link_href="./a.md")
        >>> render_exclusion_message(res, DefaultRule("See {href}"))
        'See ./a.md'
    """
    template = None
    if resolution.matched_rule is not None:
        template = resolution.matched_rule.template
    if template is None and default_rule is not None:
        template = default_rule.template
    if template is None:
        template = DEFAULT_EXCLUSION_TEMPLATE

    values = {
        'text': resolution.link_text,
        'href': resolution.link_href,
        'path': resolution.path,
        'reason': resolution.exclude_reason or "",
    }
    return _PLACEHOLDER.sub(lambda m: values.get(m.group(1), m.group(0)), template)


def _exclusion(link: _LocalLink, source_path: str, reason: str,
               rule: Optional[ExcludeRule] = None) -> LinkResolution:
    return LinkResolution(path=link.path, bundled=False, exclude_reason=reason, matched_rule=rule,
                          link_text=link.text, link_href=link.href, source_path=source_path)


def _is_within(path: str, directory: str) -> bool:
    return not os.path.relpath(path, directory).startswith(os.pardir)


def resolve_local_links(links: List[ResourceLink], source_path: str,
                        package_root: Optional[str] = None) -> List[_LocalLink]:
    """
    Keep the local_file links that point at an existing file.

    Anchors are stripped and paths resolved against the source document.
    Missing targets, directories and targets outside package_root are dropped.
    """
    resolved = []
    for link in links:
        if link.link_type != LOCAL_FILE:
            continue
        path_part, _ = split_href_anchor(link.href)
        if not path_part:
            continue

        target = resolve_link_target(link.href, source_path)
        if not os.path.isfile(target):
            continue
        if package_root is not None and not _is_within(target, package_root):
            logger.debug("Dropping %s from %s: outside %s", link.href, source_path, package_root)
            continue

        resolved.append(_LocalLink(path=target, is_markdown=is_markdown_path(target),
                                   text=link.text, href=link.href))
    return resolved


class LinkCollector:
    """Single-use walker behind collect_links()."""

    def __init__(self, options: LinkCollectionOptions):
        self.options = options
        self._package_root = os.path.abspath(options.package_root) if options.package_root else None
        self._matchers = [(rule, compile_patterns(rule.patterns)) for rule in options.exclude_rules]

    def _local_links(self, path: str) -> List[_LocalLink]:
        try:
            parsed = parse_resource_file(path)
        except ParseError as e:
            logger.warning("Cannot follow links in %s: %s", path, e.message)
            return []
        return resolve_local_links(parsed.links, path, self._package_root)

    def _match_rule(self, target: str, match_base: str) -> Optional[ExcludeRule]:
        rel_path = to_forward_slash(os.path.relpath(target, match_base))
        for rule, matcher in self._matchers:
            if matcher(rel_path):
                return rule
        return None

    def collect(self, root_path: str) -> LinkCollectionResult:
        root = os.path.abspath(root_path)
        if not os.path.isfile(root):
            raise InvalidRootError(f"Root document does not exist or is not a file: {root}", {"path": root})

        try:
            root_links = resolve_local_links(parse_resource_file(root).links, root, self._package_root)
        except ParseError as e:
            raise InvalidRootError(f"Root document cannot be parsed: {e.message}", {"path": root}) from e

        match_base = self._package_root or os.path.abspath(self.options.root_dir or os.path.dirname(root))
        max_depth = self.options.max_depth

        visited = {os.path.realpath(root)}
        bundled: Dict[str, None] = {}
        excluded: List[LinkResolution] = []
        max_bundled_depth = 0

        stack = [_Frame(path=root, depth=0, links=iter(root_links))]

        while stack:
            frame = stack[-1]
            link = next(frame.links, None)
            if link is None:
                stack.pop()
                continue

            if self.options.exclude_navigation_files and os.path.basename(link.path) in NAVIGATION_FILE_NAMES:
                excluded.append(_exclusion(link, frame.path, NAVIGATION_FILE))
                continue

            rule = self._match_rule(link.path, match_base)
            if rule is not None:
                excluded.append(_exclusion(link, frame.path, PATTERN_MATCHED, rule))
                continue

            if not link.is_markdown:
                bundled[link.path] = None
                continue

            if frame.depth >= max_depth:
                excluded.append(_exclusion(link, frame.path, DEPTH_EXCEEDED))
                continue

            bundled[link.path] = None
            child_depth = frame.depth + 1
            max_bundled_depth = max(max_bundled_depth, child_depth)

            key = os.path.realpath(link.path)
            if key in visited:
                continue
            visited.add(key)
            stack.append(_Frame(path=link.path, depth=child_depth, links=iter(self._local_links(link.path))))

        logger.debug("Collected %s: %d bundled, %d excluded, depth %d",
                     root, len(bundled), len(excluded), max_bundled_depth)
        return LinkCollectionResult(
            bundled_files=list(bundled),
            excluded_references=excluded,
            max_bundled_depth=max_bundled_depth,
        )


def collect_links(root_path: str, options: Optional[LinkCollectionOptions] = None) -> LinkCollectionResult:
    """
    Classify every local link reachable from a root document.

    Args:
        root_path: Path of the root markdown document
        options: Collection options (default: depth 2, no rules)

    Returns:
        LinkCollectionResult

    Raises:
        InvalidRootError: If the root is missing, not a file, or unparsable

    Example:
        >>> result = collect_links("skill/SKILL.md", LinkCollectionOptions(max_depth=1))
        >>> result.max_bundled_depth <= 1
        True
    """
    return LinkCollector(options or LinkCollectionOptions()).collect(root_path)
