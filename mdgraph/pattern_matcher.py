#!/usr/bin/env python3
"""
Glob pattern matching over forward-slash paths.

Patterns are matched segment by segment: "**" spans zero or more whole
segments, every other segment is matched with fnmatch.fnmatchcase so "*", "?"
and "[...]" never cross a "/". Brace groups such as "*.{md,json}" are expanded
before matching.

Also holds the pattern expansion and collection membership helpers used when
assigning resources to configured collections.
"""

import fnmatch
import os
import re
from typing import Callable, Dict, Iterable, List, Optional

DEFAULT_EXTENSIONS = '**/*.{md,json}'

_BRACE_PATTERN = re.compile(r'\{([^{}]*)\}')
_GLOB_CHARS = re.compile(r'[*?\[\]{}]')


def to_forward_slash(path: str) -> str:
    """Normalize path separators to "/" regardless of host convention."""
    return path.replace(os.sep, '/').replace('\\', '/')


def expand_braces(pattern: str) -> List[str]:
    """
    Expand brace alternatives in a glob pattern.

    Example:
        >>> expand_braces("docs/*.{md,json}")
        ['docs/*.md', 'docs/*.json']
    """
    match = _BRACE_PATTERN.search(pattern)
    if not match:
        return [pattern]

    expanded = []
    for option in match.group(1).split(','):
        candidate = pattern[:match.start()] + option + pattern[match.end():]
        expanded.extend(expand_braces(candidate))
    return expanded


def _segments(path: str) -> List[str]:
    return [segment for segment in path.split('/') if segment]


def _match_segments(pattern_segments: List[str], path_segments: List[str]) -> bool:
    # Set of path positions reachable after consuming each pattern segment
    positions = {0}
    for segment in pattern_segments:
        reached = set()
        if segment == '**':
            for index in positions:
                reached.update(range(index, len(path_segments) + 1))
        else:
            for index in positions:
                if index < len(path_segments) and fnmatch.fnmatchcase(path_segments[index], segment):
                    reached.add(index + 1)
        if not reached:
            return False
        positions = reached
    return len(path_segments) in positions


def matches_glob_pattern(path: str, pattern: str) -> bool:
    """
    Check whether a path matches one glob pattern.

    Args:
        path: Candidate path (any separator convention)
        pattern: Glob pattern using "/" separators

    Returns:
        True if the whole path matches the pattern

    Example:
        >>> matches_glob_pattern("docs/guide/intro.md", "**/*.md")
        True
        >>> matches_glob_pattern("docs/guide/intro.md", "docs/*.md")
        False
    """
    path_segments = _segments(to_forward_slash(path))
    return any(
        _match_segments(_segments(expanded), path_segments)
        for expanded in expand_braces(pattern)
    )


def compile_patterns(patterns: Iterable[str]) -> Callable[[str], bool]:
    """
    Build a predicate that is true when a path matches any of the patterns.

    Args:
        patterns: Glob patterns; an empty list matches nothing

    Returns:
        Callable taking a forward-slash path
    """
    compiled = [_segments(expanded) for pattern in patterns for expanded in expand_braces(pattern)]

    def matcher(path: str) -> bool:
        path_segments = _segments(to_forward_slash(path))
        return any(_match_segments(segments, path_segments) for segments in compiled)

    return matcher


def is_glob_pattern(pattern: str) -> bool:
    return _GLOB_CHARS.search(pattern) is not None


def expand_pattern(path_or_pattern: str) -> str:
    """
    Expand a collection include/exclude entry into a glob pattern.

    Plain directory names become recursive markdown/JSON globs, globs without a
    leading "**/" gain one, and root-level "*.ext" globs are kept as written.

    Example:
        >>> expand_pattern("docs")
        '**/docs/**/*.{md,json}'
        >>> expand_pattern("guides/*.md")
        '**/guides/*.md'
        >>> expand_pattern("*.md")
        '*.md'
    """
    if path_or_pattern.startswith(('**/', '/')):
        return path_or_pattern

    if is_glob_pattern(path_or_pattern):
        if path_or_pattern.startswith('*'):
            return path_or_pattern
        return f'**/{path_or_pattern}'

    directory = path_or_pattern.rstrip('/')
    return f'**/{directory}/{DEFAULT_EXTENSIONS}'


def expand_patterns(patterns: Iterable[str]) -> List[str]:
    return [expand_pattern(pattern) for pattern in patterns]


def is_root_level_pattern(pattern: str) -> bool:
    """Patterns such as "*.md" apply to the file name only."""
    return pattern.startswith('*') and not pattern.startswith('**')


def matches_collection(file_path: str, include: List[str], exclude: Optional[List[str]] = None) -> bool:
    """
    Check whether a file belongs to a collection.

    Exclude patterns win over include patterns. Root-level patterns are
    matched against the file name, all others against the full path.

    Args:
        file_path: Path of the file (relative to the project root when known)
        include: Collection include entries (expanded with expand_pattern)
        exclude: Collection exclude entries

    Returns:
        True if the file is included and not excluded
    """
    normalized = to_forward_slash(file_path)
    name = normalized.rsplit('/', 1)[-1]

    include_patterns = expand_patterns(include)
    exclude_patterns = expand_patterns(exclude or [])

    for pattern in exclude_patterns:
        candidate = name if is_root_level_pattern(pattern) else normalized
        if matches_glob_pattern(candidate, pattern):
            return False

    for pattern in include_patterns:
        candidate = name if is_root_level_pattern(pattern) else normalized
        if matches_glob_pattern(candidate, pattern):
            return True

    return False


def get_collections_for_file(file_path: str, collections: Dict[str, object]) -> List[str]:
    """
    Names of every collection the file belongs to, in configuration order.

    Args:
        file_path: Path of the file
        collections: Mapping of collection name to an object with include and
            exclude attributes (see mdgraph.config.CollectionConfig)

    Returns:
        Matching collection names
    """
    return [
        name for name, collection in collections.items()
        if matches_collection(file_path, collection.include, collection.exclude)
    ]
