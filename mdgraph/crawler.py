#!/usr/bin/env python3
"""
Directory crawler for markdown resources.

Walks a base directory and returns the absolute paths of files whose
base-relative, forward-slash path matches the include patterns and none of
the exclude patterns. Paths ignored by the .gitignore at the base directory
are dropped before pattern matching.
"""

import logging
import os
from dataclasses import dataclass
from typing import Callable, List, Optional

from mdgraph.errors import InvalidRootError
from mdgraph.pattern_matcher import compile_patterns, to_forward_slash

logger = logging.getLogger(__name__)

DEFAULT_INCLUDE = ['**/*.md']
DEFAULT_EXCLUDE = ['**/node_modules/**', '**/.git/**', '**/dist/**']


@dataclass
class CrawlOptions:
    """
    Options for crawl_directory().

    Attributes:
        base_dir: Directory to walk
        include_patterns: Globs a file must match (default: **/*.md)
        exclude_patterns: Globs that drop a file (default: node_modules, .git, dist)
        follow_symlinks: Descend into symlinked directories
        respect_gitignore: Drop paths ignored by base_dir/.gitignore
    """
    base_dir: str
    include_patterns: Optional[List[str]] = None
    exclude_patterns: Optional[List[str]] = None
    follow_symlinks: bool = False
    respect_gitignore: bool = True


def gitignore_to_globs(line: str) -> List[str]:
    """
    Translate one .gitignore line into glob patterns.

    Negations are not supported and produce no patterns.

    Example:
        >>> gitignore_to_globs("build/")
        ['**/build/**']
        >>> gitignore_to_globs("/notes.md")
        ['notes.md', 'notes.md/**']
        >>> gitignore_to_globs("*.log")
        ['**/*.log', '**/*.log/**']
    """
    pattern = line.strip()
    if not pattern or pattern.startswith(('#', '!')):
        return []

    directory_only = pattern.endswith('/')
    pattern = pattern.rstrip('/')
    anchored = '/' in pattern
    pattern = pattern.lstrip('/')
    if not pattern:
        return []

    base = pattern if anchored or pattern.startswith('**/') else f'**/{pattern}'
    if directory_only:
        return [f'{base}/**']
    return [base, f'{base}/**']


def load_gitignore_matcher(base_dir: str) -> Optional[Callable[[str], bool]]:
    """
    Build a matcher for base_dir/.gitignore.

    Args:
        base_dir: Directory that may contain a .gitignore file

    Returns:
        Predicate over base-relative forward-slash paths, or None when there is
        no readable .gitignore
    """
    gitignore_path = os.path.join(base_dir, '.gitignore')
    try:
        with open(gitignore_path, 'r', encoding='utf-8') as f:
            lines = f.read().splitlines()
    except FileNotFoundError:
        return None
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Ignoring unreadable %s: %s", gitignore_path, e)
        return None

    globs = [glob for line in lines for glob in gitignore_to_globs(line)]
    if not globs:
        return None
    return compile_patterns(globs)


def crawl_directory(options: CrawlOptions) -> List[str]:
    """
    Enumerate candidate files under a base directory.

    Args:
        options: Crawl options

    Returns:
        Sorted absolute file paths

    Raises:
        InvalidRootError: If base_dir does not exist or is not a directory
    """
    base_dir = os.path.abspath(options.base_dir)
    if not os.path.isdir(base_dir):
        raise InvalidRootError(f"Base directory does not exist or is not a directory: {base_dir}",
                               {"base_dir": base_dir})

    include = options.include_patterns or DEFAULT_INCLUDE
    exclude = DEFAULT_EXCLUDE if options.exclude_patterns is None else options.exclude_patterns
    is_included = compile_patterns(include)
    is_excluded = compile_patterns(exclude)
    is_ignored = load_gitignore_matcher(base_dir) if options.respect_gitignore else None

    results: List[str] = []
    visited_dirs = set()

    for dirpath, dirnames, filenames in os.walk(base_dir, followlinks=options.follow_symlinks):
        real_dir = os.path.realpath(dirpath)
        if real_dir in visited_dirs:
            logger.debug("Skipping symlink loop at %s", dirpath)
            dirnames[:] = []
            continue
        visited_dirs.add(real_dir)
        dirnames.sort()

        for filename in sorted(filenames):
            full_path = os.path.join(dirpath, filename)
            if not options.follow_symlinks and os.path.islink(full_path):
                continue
            if not os.path.isfile(full_path):
                continue

            rel_path = to_forward_slash(os.path.relpath(full_path, base_dir))
            if is_ignored is not None and is_ignored(rel_path):
                continue
            if is_excluded(rel_path) or not is_included(rel_path):
                continue
            results.append(full_path)

    logger.debug("Crawled %s: %d files", base_dir, len(results))
    return sorted(results)
