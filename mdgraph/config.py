#!/usr/bin/env python3
"""
Project configuration loading.

The configuration lives in mdgraph.config.yaml, found by walking up from a
start directory. The file is parsed with PyYAML and checked against the JSON
Schema shipped beside this module before it is turned into dataclasses.

Example mdgraph.config.yaml:

    version: 1
    resources:
      include: ["docs"]
      collections:
        guides:
          include: ["guides/*.md"]
          validation:
            frontmatter_schema: schemas/guide.json
            mode: strict
    packaging:
      link_follow_depth: 2
      exclude_references:
        rules:
          - patterns: ["**/internal/**"]
            template: "See {path} in the repository"
"""

import json
import math
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

import yaml
from jsonschema import Draft7Validator

from mdgraph.errors import ConfigError
from mdgraph.resources import MODE_PERMISSIVE

CONFIG_FILENAME = "mdgraph.config.yaml"
SCHEMA_PATH = os.path.join(os.path.dirname(os.path.abspath(__file__)), "project_config_schema.json")

DEFAULT_LINK_FOLLOW_DEPTH = 2

_schema_cache: Dict[str, Any] = {}


@dataclass
class CollectionConfig:
    """
    One named collection of resources.

    Attributes:
        include: Include entries (directories or globs)
        exclude: Exclude entries, checked before include
        frontmatter_schema: Schema locator applied to members, if any
        mode: Validation mode for the collection schema
    """
    include: List[str]
    exclude: List[str] = field(default_factory=list)
    frontmatter_schema: Optional[str] = None
    mode: str = MODE_PERMISSIVE


@dataclass
class ExcludeReferenceRule:
    patterns: List[str]
    template: Optional[str] = None


@dataclass
class PackagingConfig:
    link_follow_depth: Union[int, str] = DEFAULT_LINK_FOLLOW_DEPTH
    exclude_navigation_files: bool = False
    exclude_rules: List[ExcludeReferenceRule] = field(default_factory=list)
    default_template: Optional[str] = None


@dataclass
class ProjectConfig:
    """
    Parsed project configuration.

    Attributes:
        config_path: File the configuration was loaded from (None when built in code)
        include: Resource include globs for crawling
        exclude: Resource exclude globs for crawling
        collections: Named collections in file order
        packaging: Packaging settings
    """
    config_path: Optional[str] = None
    include: List[str] = field(default_factory=list)
    exclude: List[str] = field(default_factory=list)
    collections: Dict[str, CollectionConfig] = field(default_factory=dict)
    packaging: PackagingConfig = field(default_factory=PackagingConfig)

    @property
    def project_root(self) -> Optional[str]:
        """Directory holding the configuration file."""
        return os.path.dirname(self.config_path) if self.config_path else None


def load_config_schema() -> Dict[str, Any]:
    """Load the bundled configuration schema (cached)."""
    if SCHEMA_PATH not in _schema_cache:
        with open(SCHEMA_PATH, "r", encoding="utf-8") as f:
            _schema_cache[SCHEMA_PATH] = json.load(f)
    return _schema_cache[SCHEMA_PATH]


def find_config_file(start_dir: Optional[str] = None) -> Optional[str]:
    """
    Walk up from start_dir looking for mdgraph.config.yaml.

    Args:
        start_dir: Directory to start from (default: current directory)

    Returns:
        Absolute path to the configuration file, or None if none is found
    """
    current = os.path.abspath(start_dir or os.getcwd())
    while True:
        candidate = os.path.join(current, CONFIG_FILENAME)
        if os.path.isfile(candidate):
            return candidate
        parent = os.path.dirname(current)
        if parent == current:
            return None
        current = parent


def parse_config_data(data: Any, config_path: Optional[str] = None) -> ProjectConfig:
    """
    Validate raw configuration data and build a ProjectConfig.

    Args:
        data: Result of loading the YAML file (None for an empty file)
        config_path: Path the data came from, used in error messages

    Returns:
        ProjectConfig

    Raises:
        ConfigError: If the data does not match the configuration schema
    """
    if data is None:
        data = {}

    validator = Draft7Validator(load_config_schema())
    errors = sorted(validator.iter_errors(data), key=lambda e: [str(p) for p in e.absolute_path])
    if errors:
        details = ", ".join(
            f"{'.'.join(str(p) for p in error.absolute_path) or '<root>'}: {error.message}"
            for error in errors
        )
        raise ConfigError(f"Invalid config file {config_path or '<inline>'}: {details}",
                          {"path": config_path, "errors": [e.message for e in errors]})

    resources = data.get("resources", {})
    collections = {}
    for name, raw in resources.get("collections", {}).items():
        validation = raw.get("validation", {})
        collections[name] = CollectionConfig(
            include=list(raw["include"]),
            exclude=list(raw.get("exclude", [])),
            frontmatter_schema=validation.get("frontmatter_schema"),
            mode=validation.get("mode", MODE_PERMISSIVE),
        )

    packaging_raw = data.get("packaging", {})
    references = packaging_raw.get("exclude_references", {})
    packaging = PackagingConfig(
        link_follow_depth=packaging_raw.get("link_follow_depth", DEFAULT_LINK_FOLLOW_DEPTH),
        exclude_navigation_files=packaging_raw.get("exclude_navigation_files", False),
        exclude_rules=[
            ExcludeReferenceRule(patterns=list(rule["patterns"]), template=rule.get("template"))
            for rule in references.get("rules", [])
        ],
        default_template=references.get("default_template"),
    )

    return ProjectConfig(
        config_path=config_path,
        include=list(resources.get("include", [])),
        exclude=list(resources.get("exclude", [])),
        collections=collections,
        packaging=packaging,
    )


def parse_config_file(config_path: str) -> ProjectConfig:
    """
    Read and validate one configuration file.

    Raises:
        ConfigError: If the file cannot be read, is not valid YAML, or does
            not match the configuration schema
    """
    config_path = os.path.abspath(config_path)
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            content = f.read()
    except OSError as e:
        raise ConfigError(f"Cannot read config file {config_path}: {e}", {"path": config_path}) from e

    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file {config_path}: {e}", {"path": config_path}) from e

    return parse_config_data(data, config_path)


def load_config(start_dir: Optional[str] = None) -> Optional[ProjectConfig]:
    """Find and parse the nearest configuration file, or return None."""
    config_path = find_config_file(start_dir)
    if config_path is None:
        return None
    return parse_config_file(config_path)


def parse_link_follow_depth(value: Union[int, float, str]) -> float:
    """
    Convert a link_follow_depth setting to a numeric depth budget.

    Example:
        >>> parse_link_follow_depth("full")
        inf
        >>> parse_link_follow_depth(2)
        2
    """
    if value == "full":
        return math.inf
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"link_follow_depth must be a non-negative integer or 'full', got {value!r}")
    if value < 0:
        raise ConfigError(f"link_follow_depth must be non-negative, got {value}")
    return value
