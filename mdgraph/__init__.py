"""
mdgraph: index, validate and package graphs of interlinked markdown documents.
"""

from mdgraph.config import ProjectConfig, find_config_file, load_config, parse_link_follow_depth
from mdgraph.crawler import CrawlOptions, crawl_directory
from mdgraph.errors import (
    ConfigError,
    DuplicateResourceIdError,
    InvalidRootError,
    MdGraphError,
    ParseError,
    SchemaLoadError,
)
from mdgraph.link_collector import (
    DefaultRule,
    ExcludeRule,
    LinkCollectionOptions,
    LinkCollectionResult,
    LinkResolution,
    collect_links,
)
from mdgraph.multi_schema_validator import (
    get_all_schema_errors,
    has_schema_errors,
    validate_frontmatter_multi_schema,
)
from mdgraph.packaging_validator import PackagingOptions, PackagingReport, validate_for_packaging
from mdgraph.registry import BatchResult, ResourceFailure, ResourceRegistry
from mdgraph.resources import (
    HeadingNode,
    ResolvedLinkIndex,
    Resource,
    ResourceLink,
    SchemaReference,
    ValidationIssue,
    ValidationResult,
)

__version__ = "0.1.0"
