#!/usr/bin/env python3
"""
Markdown Resource Parser

This module turns one markdown file into the raw material of a Resource: its
frontmatter, links, heading tree and size figures. Markdown is tokenized with
markdown-it-py; frontmatter is loaded with PyYAML.

Key Features:
- Inline links, reference links, autolinks and images, in source order
- Link classification (local_file, anchor, external_url, email, unknown)
- GitHub-style heading slugs nested into a tree by level
- Frontmatter YAML errors recorded instead of raised
- Line numbers relative to the file, frontmatter included
"""

import math
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import yaml
from markdown_it import MarkdownIt
from markdown_it.token import Token

from mdgraph.errors import ParseError
from mdgraph.resources import (
    ANCHOR,
    EMAIL,
    EXTERNAL_URL,
    LOCAL_FILE,
    UNKNOWN,
    HeadingNode,
    ResourceLink,
)


FRONTMATTER_PATTERN = re.compile(r'\A---[ \t]*\r?\n(.*?)^---[ \t]*(?:\r?\n|\Z)', re.DOTALL | re.MULTILINE)

_URI_SCHEME_PATTERN = re.compile(r'^[A-Za-z][A-Za-z0-9+.\-]*:')


class _FrontmatterLoader(yaml.SafeLoader):
    """SafeLoader that keeps dates and timestamps as plain strings."""


_FrontmatterLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag != 'tag:yaml.org,2002:timestamp']
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


@dataclass
class ParseResult:
    """
    Everything the parser extracts from one markdown file.

    Attributes:
        content: Full file text
        links: Links in source order
        headings: Top-level heading nodes (children nested)
        frontmatter: Parsed frontmatter mapping, None when absent or empty
        frontmatter_error: YAML error text when the frontmatter block is malformed
        size_bytes: Size of the file in bytes
        estimated_token_count: ceil(len(content) / 4)
    """
    content: str
    links: List[ResourceLink]
    headings: List[HeadingNode]
    frontmatter: Optional[Dict[str, Any]]
    frontmatter_error: Optional[str]
    size_bytes: int
    estimated_token_count: int


class MarkdownParser:
    """
    Markdown document parser built on markdown-it-py.

    Uses the CommonMark preset with GFM tables enabled so links inside table
    cells are found as well.
    """

    def __init__(self):
        """Initialize parser with markdown-it-py instance."""
        self._md = MarkdownIt("commonmark").enable("table")

    def parse_markdown(self, text: str) -> List[Token]:
        """
        Parse markdown text to AST tokens.

        Args:
            text: Markdown text to parse

        Returns:
            List of markdown-it-py tokens representing the AST

        Example:
            >>> parser = MarkdownParser()
            >>> tokens = parser.parse_markdown("# Title\\n\\nSee [guide](./guide.md).")
            >>> len(tokens) > 0
            True
        """
        return self._md.parse(text)

    def parse_text(self, text: str) -> ParseResult:
        """
        Parse markdown text (with optional frontmatter) into a ParseResult.

        Args:
            text: Full document text

        Returns:
            ParseResult; size_bytes is the UTF-8 length of text
        """
        frontmatter, frontmatter_error, body = split_frontmatter(text)
        tokens = self.parse_markdown(body)

        return ParseResult(
            content=text,
            links=extract_links(tokens),
            headings=build_heading_tree(extract_headings(tokens)),
            frontmatter=frontmatter,
            frontmatter_error=frontmatter_error,
            size_bytes=len(text.encode('utf-8')),
            estimated_token_count=math.ceil(len(text) / 4),
        )


# Global parser instance for module-level functions
_parser = MarkdownParser()


def parse_markdown(text: str) -> List[Token]:
    """Parse markdown text to AST tokens (module-level function)."""
    return _parser.parse_markdown(text)


def parse_resource_file(file_path: str) -> ParseResult:
    """
    Read and parse one markdown file.

    Args:
        file_path: Path to the markdown file

    Returns:
        ParseResult with links, headings, frontmatter and size figures

    Raises:
        ParseError: If the file cannot be read or is not valid UTF-8
    """
    try:
        with open(file_path, 'rb') as f:
            raw = f.read()
        text = raw.decode('utf-8')
    except OSError as e:
        raise ParseError(f"Cannot read {file_path}: {e.strerror or e}", {"path": file_path}) from e
    except UnicodeDecodeError as e:
        raise ParseError(f"Cannot decode {file_path} as UTF-8: {e.reason}", {"path": file_path}) from e

    result = _parser.parse_text(text)
    result.size_bytes = len(raw)
    return result


def split_frontmatter(text: str) -> Tuple[Optional[Dict[str, Any]], Optional[str], str]:
    """
    Separate the frontmatter block from the markdown body.

    The block is replaced by blank lines in the returned body so token line
    numbers still match the file.

    Args:
        text: Full document text

    Returns:
        Tuple of (frontmatter, frontmatter_error, body)

    Example:
        >>> fm, err, body = split_frontmatter("---\\ntitle: Guide\\n---\\n# Guide\\n")
        >>> fm
        {'title': 'Guide'}
        >>> body.splitlines()[3]
        '# Guide'
    """
    match = FRONTMATTER_PATTERN.match(text)
    if not match:
        return None, None, text

    body = "\n" * match.group(0).count("\n") + text[match.end():]
    yaml_block = match.group(1)

    if not yaml_block.strip():
        return None, None, body

    try:
        data = yaml.load(yaml_block, Loader=_FrontmatterLoader)
    except yaml.YAMLError as e:
        return None, str(e), body

    if not isinstance(data, dict):
        return None, None, body

    return _stringify_keys(data), None, body


def _stringify_keys(value: Any) -> Any:
    # JSON object keys are strings
    if isinstance(value, dict):
        return {str(key): _stringify_keys(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_stringify_keys(item) for item in value]
    return value


def classify_link(href: str) -> str:
    """
    Classify a link target.

    Args:
        href: Raw link target

    Returns:
        One of local_file, anchor, external_url, email, unknown

    Example:
        >>> classify_link("https://example.com")
        'external_url'
        >>> classify_link("./guide.md#setup")
        'local_file'
        >>> classify_link("#setup")
        'anchor'
    """
    if href.startswith(('http://', 'https://')):
        return EXTERNAL_URL
    if href.startswith('mailto:'):
        return EMAIL
    if href.startswith('#'):
        return ANCHOR
    if _URI_SCHEME_PATTERN.match(href):
        return UNKNOWN
    if '#' in href:
        return LOCAL_FILE
    if href.endswith('.md'):
        return LOCAL_FILE
    if href.startswith(('./', '../', '/')):
        return LOCAL_FILE

    # Paths without an extension
    last_slash = href.rfind('/')
    last_dot = href.rfind('.')
    if last_dot == -1 or last_dot < last_slash:
        return LOCAL_FILE

    return UNKNOWN


def extract_links(tokens: List[Token]) -> List[ResourceLink]:
    """
    Extract every link and image from a token stream, in source order.

    Reference-style links arrive already resolved by markdown-it, so they are
    reported with the definition's target.

    Args:
        tokens: Markdown AST tokens from parse_markdown()

    Returns:
        List of classified ResourceLink objects
    """
    links: List[ResourceLink] = []
    block_line = 0

    for token in tokens:
        if token.map is not None:
            block_line = token.map[0]

        if token.type != "inline" or not token.children:
            continue

        line = block_line + 1
        pending: Optional[Tuple[str, int, List[str]]] = None

        for child in token.children:
            if child.type in ("softbreak", "hardbreak"):
                line += 1
            elif child.type == "link_open":
                pending = (str(child.attrGet("href") or ""), line, [])
            elif child.type == "link_close" and pending is not None:
                href, link_line, text_parts = pending
                links.append(_make_link(href, "".join(text_parts), link_line))
                pending = None
            elif child.type == "image":
                src = str(child.attrGet("src") or "")
                links.append(_make_link(src, child.content, line))
            elif pending is not None and child.type in ("text", "code_inline"):
                pending[2].append(child.content)

    return links


def _make_link(href: str, text: str, line: int) -> ResourceLink:
    return ResourceLink(href=href, link_type=classify_link(href), text=text, line=line)


def generate_slug(text: str) -> str:
    """
    Generate a GitHub-style anchor slug from heading text.

    Example:
        >>> generate_slug("Hello World")
        'hello-world'
        >>> generate_slug("API Reference (v2)")
        'api-reference-v2'
    """
    slug = text.lower().strip()
    slug = re.sub(r'[^\w\s-]', '', slug)
    slug = re.sub(r'\s+', '-', slug)
    return re.sub(r'-+', '-', slug)


def extract_headings(tokens: List[Token]) -> List[HeadingNode]:
    """
    Collect headings in document order as a flat list (no children).

    Args:
        tokens: Markdown AST tokens from parse_markdown()

    Returns:
        Flat list of HeadingNode objects
    """
    headings: List[HeadingNode] = []
    pending: Optional[Token] = None

    for token in tokens:
        if token.type == "heading_open":
            pending = token
        elif token.type == "inline" and pending is not None:
            text = _inline_text(token)
            headings.append(HeadingNode(
                level=int(pending.tag[1]),
                text=text,
                slug=generate_slug(text),
                line=pending.map[0] + 1 if pending.map else None,
            ))
            pending = None

    return headings


def _inline_text(token: Token) -> str:
    if not token.children:
        return token.content
    return "".join(
        child.content for child in token.children
        if child.type in ("text", "code_inline", "image")
    )


def build_heading_tree(flat: List[HeadingNode]) -> List[HeadingNode]:
    """
    Nest a flat heading list by level.

    Each heading becomes a child of the nearest preceding heading with a
    lower level. Headings are immutable, so the tree is assembled from
    mutable child lists and frozen at the end.

    Args:
        flat: Headings in document order

    Returns:
        Top-level headings with children attached
    """
    roots: List[Dict[str, Any]] = []
    stack: List[Dict[str, Any]] = []

    for heading in flat:
        entry = {"heading": heading, "children": []}
        while stack and stack[-1]["heading"].level >= heading.level:
            stack.pop()
        if stack:
            stack[-1]["children"].append(entry)
        else:
            roots.append(entry)
        stack.append(entry)

    return [_freeze_heading(entry) for entry in roots]


def _freeze_heading(entry: Dict[str, Any]) -> HeadingNode:
    heading = entry["heading"]
    return HeadingNode(
        level=heading.level,
        text=heading.text,
        slug=heading.slug,
        line=heading.line,
        children=tuple(_freeze_heading(child) for child in entry["children"]),
    )


def iter_headings(headings) -> List[HeadingNode]:
    """Flatten a heading tree back into document order."""
    flat: List[HeadingNode] = []
    stack = list(reversed(headings))
    while stack:
        heading = stack.pop()
        flat.append(heading)
        stack.extend(reversed(heading.children))
    return flat
