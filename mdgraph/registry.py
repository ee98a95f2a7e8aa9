#!/usr/bin/env python3
"""
Resource Registry

Authoritative index of parsed markdown resources plus whole-corpus link and
frontmatter validation.

Key Features:
- Resources indexed by absolute path, id, file name and checksum
- Short kebab-case ids with -2, -3, ... suffixes on collision
- Parallel parse/checksum for batches, sequential id allocation
- Link resolution into a side table (resources are never mutated)
- Validation of YAML errors, links, collection schemas and a global schema
- Duplicate detection by content checksum

Example:
    >>> registry = ResourceRegistry(base_dir="docs")
    >>> batch = registry.crawl(CrawlOptions(base_dir="docs"))
    >>> result = registry.validate()
    >>> result.status
    'success'
"""

import hashlib
import logging
import os
import re
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional

from mdgraph.config import ProjectConfig
from mdgraph.crawler import CrawlOptions, crawl_directory, load_gitignore_matcher
from mdgraph.errors import DuplicateResourceIdError, MdGraphError, ParseError
from mdgraph.frontmatter_validator import validate_frontmatter
from mdgraph.link_validator import validate_link
from mdgraph.markdown_parser import ParseResult, parse_resource_file
from mdgraph.multi_schema_validator import get_all_schema_errors, validate_frontmatter_multi_schema
from mdgraph.pattern_matcher import get_collections_for_file, matches_glob_pattern, to_forward_slash
from mdgraph.resources import (
    LOCAL_FILE,
    MODE_STRICT,
    SEVERITY_ERROR,
    SEVERITY_INFO,
    SEVERITY_WARNING,
    RegistryStats,
    ResolvedLinkIndex,
    Resource,
    SchemaReference,
    ValidationIssue,
    ValidationResult,
    resolve_link_target,
)
from mdgraph.schema_assignment import assign_schemas, extract_self_asserted_schemas

logger = logging.getLogger(__name__)

FRONTMATTER_INVALID_YAML = "frontmatter_invalid_yaml"

DEFAULT_ID = "resource"

_CHECKSUM_CHUNK_SIZE = 65536


@dataclass
class ResourceFailure:
    path: str
    message: str


@dataclass
class BatchResult:
    """Outcome of add_resources() or crawl(): added resources plus per-file failures."""
    resources: List[Resource] = field(default_factory=list)
    failures: List[ResourceFailure] = field(default_factory=list)


@dataclass
class CollectionStat:
    resource_count: int
    has_schema: bool
    validation_mode: Optional[str] = None


@dataclass
class CollectionStats:
    total_collections: int
    resources_in_collections: int
    collections: Dict[str, CollectionStat]


@dataclass
class _LoadedFile:
    path: str
    parsed: ParseResult
    checksum: str
    modified_at: datetime


def generate_id_from_filename(file_path: str) -> str:
    """
    Derive a kebab-case identifier from a file name.

    Args:
        file_path: Path of the file

    Returns:
        Identifier; "resource" when nothing usable remains

    Example:
        >>> generate_id_from_filename("/docs/Getting_Started Guide.md")
        'getting-started-guide'
        >>> generate_id_from_filename("/docs/API (v2).md")
        'api-v2'
    """
    stem = os.path.splitext(os.path.basename(file_path))[0].lower()
    stem = re.sub(r'[\s_]+', '-', stem)
    stem = re.sub(r'[^a-z0-9-]', '', stem)
    stem = re.sub(r'-+', '-', stem).strip('-')
    return stem or DEFAULT_ID


def calculate_checksum(file_path: str) -> str:
    """SHA-256 hex digest of a file's bytes."""
    digest = hashlib.sha256()
    with open(file_path, 'rb') as f:
        for chunk in iter(lambda: f.read(_CHECKSUM_CHUNK_SIZE), b''):
            digest.update(chunk)
    return digest.hexdigest()


def _load_file(file_path: str) -> _LoadedFile:
    """Parse, checksum and stat one file. Touches no registry state."""
    parsed = parse_resource_file(file_path)
    try:
        checksum = calculate_checksum(file_path)
        modified_at = datetime.fromtimestamp(os.stat(file_path).st_mtime)
    except OSError as e:
        raise ParseError(f"Cannot read {file_path}: {e.strerror or e}", {"path": file_path}) from e
    return _LoadedFile(path=file_path, parsed=parsed, checksum=checksum, modified_at=modified_at)


class ResourceRegistry:
    """
    Indexed collection of resources.

    Indices:
        by path: exactly one resource per absolute path
        by id: exactly one resource per identifier
        by name: file name to every resource with that name, in insertion order
        by checksum: digest to every resource with that content, in insertion order

    Not safe for concurrent mutation; add_resources() parallelizes only the
    per-file parsing and indexes sequentially.
    """

    def __init__(self, base_dir: Optional[str] = None, id_field: Optional[str] = None,
                 config: Optional[ProjectConfig] = None):
        self.base_dir = os.path.abspath(base_dir) if base_dir else None
        self.id_field = id_field
        self.config = config

        self._by_path: Dict[str, Resource] = {}
        self._by_id: Dict[str, Resource] = {}
        self._by_name: Dict[str, List[Resource]] = {}
        self._by_checksum: Dict[str, List[Resource]] = {}

    # ========================================================================
    # Construction
    # ========================================================================

    @classmethod
    def empty(cls, base_dir: str, **kwargs) -> "ResourceRegistry":
        return cls(base_dir=base_dir, **kwargs)

    @classmethod
    def from_resources(cls, base_dir: str, resources: Iterable[Resource], **kwargs) -> "ResourceRegistry":
        """
        Build a registry from already-built resources, keeping their ids.

        Raises:
            DuplicateResourceIdError: If two resources share an id
        """
        registry = cls(base_dir=base_dir, **kwargs)
        for resource in resources:
            existing = registry._by_id.get(resource.id)
            if existing is not None:
                raise DuplicateResourceIdError(
                    f"Duplicate resource ID '{resource.id}': '{resource.file_path}' "
                    f"conflicts with '{existing.file_path}'",
                    {"id": resource.id, "paths": [existing.file_path, resource.file_path]},
                )
            registry._index(resource)
        return registry

    @classmethod
    def from_crawl(cls, crawl_options: CrawlOptions, **kwargs) -> "ResourceRegistry":
        registry = cls(base_dir=crawl_options.base_dir, **kwargs)
        registry.crawl(crawl_options)
        return registry

    # ========================================================================
    # Adding resources
    # ========================================================================

    def add_resource(self, file_path: str) -> Resource:
        """
        Parse, checksum, identify and index one file.

        Args:
            file_path: Path to a markdown file

        Returns:
            The indexed Resource

        Raises:
            ParseError: If the file cannot be read or decoded; nothing is indexed
        """
        loaded = _load_file(os.path.abspath(file_path))
        return self._add_loaded(loaded)

    def add_resources(self, file_paths: Iterable[str], max_workers: Optional[int] = None) -> BatchResult:
        """
        Add many files; one failing file does not stop the others.

        Parsing and checksumming run on a thread pool. Ids are allocated and
        indices updated in input order once all files are loaded.

        Args:
            file_paths: Paths to add
            max_workers: Thread pool size (default chosen by ThreadPoolExecutor)

        Returns:
            BatchResult with added resources and per-file failures
        """
        paths = [os.path.abspath(p) for p in file_paths]
        result = BatchResult()
        if not paths:
            return result

        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            outcomes = list(executor.map(self._try_load, paths))

        for path, outcome in zip(paths, outcomes):
            if isinstance(outcome, ParseError):
                logger.warning("Skipping %s: %s", path, outcome.message)
                result.failures.append(ResourceFailure(path=path, message=outcome.message))
                continue
            result.resources.append(self._add_loaded(outcome))

        return result

    @staticmethod
    def _try_load(file_path: str):
        try:
            return _load_file(file_path)
        except ParseError as e:
            return e

    def crawl(self, options: CrawlOptions) -> BatchResult:
        """Discover files with the crawler and add every match."""
        files = crawl_directory(options)
        logger.debug("Crawl of %s found %d files", options.base_dir, len(files))
        return self.add_resources(files)

    def _add_loaded(self, loaded: _LoadedFile) -> Resource:
        existing = self._by_path.get(loaded.path)
        resource_id = existing.id if existing is not None else self._allocate_id(
            self._id_base(loaded.path, loaded.parsed.frontmatter))

        parsed = loaded.parsed
        resource = Resource(
            id=resource_id,
            file_path=loaded.path,
            links=tuple(parsed.links),
            headings=tuple(parsed.headings),
            frontmatter=parsed.frontmatter,
            frontmatter_error=parsed.frontmatter_error,
            size_bytes=parsed.size_bytes,
            estimated_token_count=parsed.estimated_token_count,
            modified_at=loaded.modified_at,
            checksum=loaded.checksum,
            collections=tuple(self._collections_for(loaded.path)),
        )

        if existing is not None:
            self._replace(existing, resource)
        else:
            self._index(resource)
        logger.debug("Indexed %s as %s", resource.file_path, resource.id)
        return resource

    def _id_base(self, file_path: str, frontmatter: Optional[Dict[str, Any]]) -> str:
        if self.id_field and frontmatter:
            value = frontmatter.get(self.id_field)
            if isinstance(value, (str, int)) and not isinstance(value, bool) and str(value).strip():
                return str(value).strip()
        return generate_id_from_filename(file_path)

    def _allocate_id(self, base: str) -> str:
        if base not in self._by_id:
            return base
        suffix = 2
        while f"{base}-{suffix}" in self._by_id:
            suffix += 1
        return f"{base}-{suffix}"

    def _index(self, resource: Resource) -> None:
        self._by_path[resource.file_path] = resource
        self._by_id[resource.id] = resource
        self._by_name.setdefault(resource.name, []).append(resource)
        self._by_checksum.setdefault(resource.checksum, []).append(resource)

    def _replace(self, old: Resource, new: Resource) -> None:
        """Swap a re-added resource into every index, keeping its positions."""
        self._by_path[new.file_path] = new
        self._by_id[new.id] = new
        self._by_name[new.name] = [new if r.file_path == new.file_path else r for r in self._by_name[new.name]]

        if old.checksum == new.checksum:
            self._by_checksum[new.checksum] = [
                new if r.file_path == new.file_path else r for r in self._by_checksum[new.checksum]
            ]
            return

        remaining = [r for r in self._by_checksum.get(old.checksum, []) if r.file_path != old.file_path]
        if remaining:
            self._by_checksum[old.checksum] = remaining
        else:
            self._by_checksum.pop(old.checksum, None)
        self._by_checksum.setdefault(new.checksum, []).append(new)

    # ========================================================================
    # Collections
    # ========================================================================

    @property
    def project_root(self) -> str:
        """Directory used for relative schema locators and collection matching."""
        if self.config is not None and self.config.project_root:
            return self.config.project_root
        return self.base_dir or os.getcwd()

    def _relative_path(self, file_path: str) -> str:
        root = self.project_root
        rel = os.path.relpath(file_path, root)
        if rel.startswith(os.pardir):
            return to_forward_slash(file_path)
        return to_forward_slash(rel)

    def _collections_for(self, file_path: str) -> List[str]:
        if self.config is None or not self.config.collections:
            return []
        return get_collections_for_file(self._relative_path(file_path), self.config.collections)

    def get_collection_stats(self) -> Optional[CollectionStats]:
        """Per-collection membership counts, or None without configured collections."""
        if self.config is None or not self.config.collections:
            return None

        stats = {
            name: CollectionStat(
                resource_count=0,
                has_schema=bool(collection.frontmatter_schema),
                validation_mode=collection.mode if collection.frontmatter_schema else None,
            )
            for name, collection in self.config.collections.items()
        }
        in_any = 0
        for resource in self._by_path.values():
            if resource.collections:
                in_any += 1
            for name in resource.collections:
                if name in stats:
                    stats[name].resource_count += 1

        return CollectionStats(total_collections=len(stats), resources_in_collections=in_any, collections=stats)

    # ========================================================================
    # Link resolution
    # ========================================================================

    def resolve_links(self) -> ResolvedLinkIndex:
        """
        Map every local_file link to the id of the indexed resource it targets.

        Returns:
            ResolvedLinkIndex keyed by source path; non-local and unresolved
            links map to None. Calling this twice on an unchanged registry
            yields equal results.
        """
        index = ResolvedLinkIndex()
        for resource in self._by_path.values():
            ids: List[Optional[str]] = []
            for link in resource.links:
                target = None
                if link.link_type == LOCAL_FILE:
                    target = self._by_path.get(resolve_link_target(link.href, resource.file_path))
                ids.append(target.id if target is not None else None)
            index.entries[resource.file_path] = ids
        return index

    # ========================================================================
    # Validation
    # ========================================================================

    def _ignore_predicate(self) -> Optional[Callable[[str], bool]]:
        if not self.base_dir:
            return None
        matcher = load_gitignore_matcher(self.base_dir)
        if matcher is None:
            return None
        base_dir = self.base_dir

        def is_ignored(path: str) -> bool:
            rel = os.path.relpath(path, base_dir)
            return not rel.startswith(os.pardir) and matcher(to_forward_slash(rel))

        return is_ignored

    def _collect_yaml_errors(self) -> List[ValidationIssue]:
        return [
            ValidationIssue(
                resource_path=resource.file_path,
                line=1,
                issue_type=FRONTMATTER_INVALID_YAML,
                link="",
                message=f"Invalid YAML syntax in frontmatter: {resource.frontmatter_error}",
            )
            for resource in self._by_path.values()
            if resource.frontmatter_error
        ]

    def _validate_all_links(self) -> List[ValidationIssue]:
        headings_by_file = {path: resource.headings for path, resource in self._by_path.items()}
        is_ignored = self._ignore_predicate()

        issues = []
        for resource in self._by_path.values():
            for link in resource.links:
                issue = validate_link(link, resource.file_path, headings_by_file, is_ignored)
                if issue is not None:
                    issues.append(issue)
        return issues

    def _validate_collection_frontmatter(self) -> List[ValidationIssue]:
        if self.config is None or not self.config.collections:
            return []

        issues = []
        for resource in self._by_path.values():
            for name in resource.collections:
                collection = self.config.collections.get(name)
                if collection is None or not collection.frontmatter_schema:
                    continue
                results = validate_frontmatter_multi_schema(
                    resource.frontmatter,
                    [SchemaReference(schema=collection.frontmatter_schema, source=name)],
                    resource.file_path,
                    collection.mode,
                    self.project_root,
                )
                issues.extend(get_all_schema_errors(results))
        return issues

    def _validate_all_frontmatter(self, schema: Dict[str, Any], mode: str) -> List[ValidationIssue]:
        issues = []
        for resource in self._by_path.values():
            issues.extend(validate_frontmatter(resource.frontmatter, schema, resource.file_path, mode))
        return issues

    def validate(self, frontmatter_schema: Optional[Dict[str, Any]] = None,
                 validation_mode: str = MODE_STRICT, validate_collections: bool = True) -> ValidationResult:
        """
        Validate every resource.

        Checks, in order: frontmatter YAML errors, every link, collection
        schemas (each with its collection's mode), then the global schema if
        one is given.

        Args:
            frontmatter_schema: JSON Schema applied to every resource's frontmatter
            validation_mode: Mode for the global schema
            validate_collections: Whether to apply configured collection schemas

        Returns:
            ValidationResult; passed is True when there are no errors
        """
        start = time.perf_counter()

        issues: List[ValidationIssue] = []
        issues.extend(self._collect_yaml_errors())
        issues.extend(self._validate_all_links())
        if validate_collections:
            issues.extend(self._validate_collection_frontmatter())
        if frontmatter_schema is not None:
            issues.extend(self._validate_all_frontmatter(frontmatter_schema, validation_mode))

        stats = self.get_stats()
        error_count = sum(1 for issue in issues if issue.severity == SEVERITY_ERROR)
        warning_count = sum(1 for issue in issues if issue.severity == SEVERITY_WARNING)
        info_count = sum(1 for issue in issues if issue.severity == SEVERITY_INFO)

        result = ValidationResult(
            total_resources=stats.total_resources,
            total_links=stats.total_links,
            links_by_type=stats.links_by_type,
            issues=issues,
            error_count=error_count,
            warning_count=warning_count,
            info_count=info_count,
            passed=error_count == 0,
            duration_ms=(time.perf_counter() - start) * 1000,
            timestamp=datetime.now(),
        )
        logger.debug("Validated %d resources: %d errors, %d warnings",
                     result.total_resources, error_count, warning_count)
        return result

    def validate_resource_schemas(self, file_path: str, cli_schema: Optional[str] = None,
                                  mode: str = MODE_STRICT) -> List[SchemaReference]:
        """
        Validate one resource against every schema assigned to it.

        Schemas come from the resource's own "$schema" frontmatter, then its
        collections, then cli_schema. Each is validated independently.

        Raises:
            MdGraphError: If the path is not indexed
        """
        resource = self.get_resource(file_path)
        if resource is None:
            raise MdGraphError(f"Resource is not indexed: {file_path}", {"path": file_path})

        collections_config = self.config.collections if self.config is not None else {}
        schemas = assign_schemas(
            extract_self_asserted_schemas(resource.frontmatter),
            list(resource.collections),
            collections_config,
            cli_schema,
        )
        return validate_frontmatter_multi_schema(
            resource.frontmatter, schemas, resource.file_path, mode, self.project_root)

    # ========================================================================
    # Queries
    # ========================================================================

    def get_resource(self, file_path: str) -> Optional[Resource]:
        return self._by_path.get(os.path.abspath(file_path))

    def get_resource_by_id(self, resource_id: str) -> Optional[Resource]:
        return self._by_id.get(resource_id)

    def get_all_resources(self) -> List[Resource]:
        return list(self._by_path.values())

    def get_resources_by_name(self, name: str) -> List[Resource]:
        return list(self._by_name.get(name, []))

    def get_resources_by_checksum(self, checksum: str) -> List[Resource]:
        return list(self._by_checksum.get(checksum, []))

    def get_resources_by_pattern(self, pattern: str) -> List[Resource]:
        """
        Resources whose path matches a glob pattern.

        The pattern is tried against the forward-slash absolute path and, when
        the registry has a base directory, the base-relative path.
        """
        matched = []
        for resource in self._by_path.values():
            candidates: List[str] = [to_forward_slash(resource.file_path)]
            if self.base_dir:
                rel = os.path.relpath(resource.file_path, self.base_dir)
                if not rel.startswith(os.pardir):
                    candidates.append(to_forward_slash(rel))
            if any(matches_glob_pattern(candidate, pattern) for candidate in candidates):
                matched.append(resource)
        return matched

    def get_duplicates(self) -> List[List[Resource]]:
        """Groups of two or more resources with identical content."""
        return [list(group) for group in self._by_checksum.values() if len(group) >= 2]

    def get_unique_by_checksum(self) -> List[Resource]:
        """First-added resource of each distinct checksum."""
        return [group[0] for group in self._by_checksum.values() if group]

    def get_stats(self) -> RegistryStats:
        total_links = 0
        links_by_type: Dict[str, int] = {}
        for resource in self._by_path.values():
            total_links += len(resource.links)
            for link in resource.links:
                links_by_type[link.link_type] = links_by_type.get(link.link_type, 0) + 1
        return RegistryStats(total_resources=len(self._by_path), total_links=total_links,
                             links_by_type=links_by_type)

    def size(self) -> int:
        return len(self._by_path)

    def is_empty(self) -> bool:
        return not self._by_path

    def clear(self) -> None:
        self._by_path.clear()
        self._by_id.clear()
        self._by_name.clear()
        self._by_checksum.clear()
