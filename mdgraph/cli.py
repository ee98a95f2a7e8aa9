#!/usr/bin/env python3
"""Command line interface for mdgraph."""

import argparse
import logging
import os
import sys
from typing import Any, Dict, List, Optional

import yaml

from mdgraph.config import ProjectConfig, load_config, parse_config_file, parse_link_follow_depth
from mdgraph.crawler import CrawlOptions
from mdgraph.errors import MdGraphError
from mdgraph.link_collector import (
    DefaultRule,
    ExcludeRule,
    LinkCollectionOptions,
    collect_links,
    render_exclusion_message,
)
from mdgraph.multi_schema_validator import load_schema
from mdgraph.packaging_validator import PackagingOptions, report_to_dict, validate_for_packaging
from mdgraph.registry import ResourceRegistry
from mdgraph.resources import SEVERITY_INFO, VALIDATION_MODES


def _depth_arg(value: str):
    if value == "full":
        return value
    try:
        depth = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected a non-negative integer or 'full', got {value!r}")
    if depth < 0:
        raise argparse.ArgumentTypeError(f"depth must be non-negative, got {depth}")
    return depth


def _load_project_config(args, start_dir: str) -> Optional[ProjectConfig]:
    if args.config:
        return parse_config_file(args.config)
    return load_config(start_dir)


def _print_yaml(data: Dict[str, Any]) -> None:
    print(yaml.dump(data, default_flow_style=False, sort_keys=False), end="")


def _build_registry(args, directory: str) -> ResourceRegistry:
    config = _load_project_config(args, directory)
    registry = ResourceRegistry(base_dir=directory, config=config)

    include = getattr(args, 'include', None) or (config.include if config and config.include else None)
    exclude = getattr(args, 'exclude', None) or (config.exclude if config and config.exclude else None)
    batch = registry.crawl(CrawlOptions(base_dir=directory, include_patterns=include, exclude_patterns=exclude))

    for failure in batch.failures:
        print(f"[ERROR] {failure.path}: {failure.message}", file=sys.stderr)
    return registry


def validate_command(args) -> int:
    """Validate links and frontmatter of every resource under a directory.

    Args:
        args: Command-line arguments from argparse

    Returns:
        Exit code: 0 on success or warnings, 1 on errors
    """
    directory = os.path.abspath(args.directory)
    registry = _build_registry(args, directory)

    schema = load_schema(args.frontmatter_schema) if args.frontmatter_schema else None
    result = registry.validate(frontmatter_schema=schema, validation_mode=args.mode)

    for issue in result.issues:
        if issue.severity == SEVERITY_INFO and not args.verbose:
            continue
        print(issue.format_issue(), file=sys.stderr)

    print(f"Validated {result.total_resources} resources, {result.total_links} links: "
          f"{result.error_count} errors, {result.warning_count} warnings, {result.info_count} info "
          f"({result.duration_ms:.0f}ms) [{result.status}]")

    return 0 if result.passed else 1


def scan_command(args) -> int:
    """Print registry statistics and duplicate groups as YAML."""
    directory = os.path.abspath(args.directory)
    registry = _build_registry(args, directory)

    stats = registry.get_stats()
    output: Dict[str, Any] = {
        'total_resources': stats.total_resources,
        'total_links': stats.total_links,
        'links_by_type': stats.links_by_type,
        'duplicates': [[resource.file_path for resource in group] for group in registry.get_duplicates()],
    }

    collection_stats = registry.get_collection_stats()
    if collection_stats is not None:
        output['collections'] = {
            name: {
                'resource_count': stat.resource_count,
                'has_schema': stat.has_schema,
                **({'validation_mode': stat.validation_mode} if stat.validation_mode else {}),
            }
            for name, stat in collection_stats.collections.items()
        }

    _print_yaml(output)
    return 0


def collect_command(args) -> int:
    """Print the bundle decision for one root document as YAML."""
    root = os.path.abspath(args.root)
    config = _load_project_config(args, os.path.dirname(root))

    packaging = config.packaging if config is not None else None
    rules: List[ExcludeRule] = []
    if packaging is not None:
        rules.extend(ExcludeRule(patterns=list(r.patterns), template=r.template) for r in packaging.exclude_rules)
    if args.exclude:
        rules.append(ExcludeRule(patterns=list(args.exclude)))

    depth = args.depth if args.depth is not None else (packaging.link_follow_depth if packaging else 2)
    default_rule = DefaultRule(template=packaging.default_template if packaging else None)

    result = collect_links(root, LinkCollectionOptions(
        max_depth=parse_link_follow_depth(depth),
        exclude_rules=rules,
        default_rule=default_rule,
        root_dir=os.path.dirname(root),
        package_root=os.path.abspath(args.package_root) if args.package_root else None,
        exclude_navigation_files=packaging.exclude_navigation_files if packaging else False,
    ))

    _print_yaml({
        'root': root,
        'max_bundled_depth': result.max_bundled_depth,
        'bundled_files': result.bundled_files,
        'excluded_references': [
            {
                'path': ref.path,
                'reason': ref.exclude_reason,
                'source': ref.source_path,
                'message': render_exclusion_message(ref, default_rule),
            }
            for ref in result.excluded_references
        ],
    })
    return 0


def check_package_command(args) -> int:
    """Check one root document for packaging readiness.

    Returns:
        Exit code: 0 on success or warnings, 1 on errors
    """
    root = os.path.abspath(args.root)
    config = _load_project_config(args, os.path.dirname(root))

    extra = {
        'package_root': os.path.abspath(args.package_root) if args.package_root else None,
        'schemas': list(args.schema or []),
        'validation_mode': args.mode,
        'project_root': config.project_root if config is not None else None,
    }
    if config is not None:
        options = PackagingOptions.from_config(config.packaging, **extra)
    else:
        options = PackagingOptions(**extra)
    if args.depth is not None:
        options.link_follow_depth = args.depth

    report = validate_for_packaging(root, options)

    for issue in report.issues:
        print(issue.format_issue(), file=sys.stderr)
    _print_yaml(report_to_dict(report))

    return 1 if report.status == "error" else 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the mdgraph tool."""
    parser = argparse.ArgumentParser(
        prog='mdgraph',
        description="Index, validate and package interlinked markdown documents",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s validate docs/
  %(prog)s validate docs/ --frontmatter-schema schemas/doc.json --mode permissive
  %(prog)s scan docs/
  %(prog)s collect skills/pdf/SKILL.md --depth full --exclude '**/internal/**'
  %(prog)s check-package skills/pdf/SKILL.md
        """
    )
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable debug logging')
    parser.add_argument('--config', help='Path to mdgraph.config.yaml (default: search upward)')

    subparsers = parser.add_subparsers(
        dest='command',
        required=True,
        help='Command to run'
    )

    # validate subcommand
    parser_validate = subparsers.add_parser(
        'validate',
        help='Validate links and frontmatter of every markdown file in a directory'
    )
    parser_validate.add_argument('directory', help='Directory to crawl')
    parser_validate.add_argument('--frontmatter-schema', help='JSON or YAML schema applied to every document')
    parser_validate.add_argument('--mode', choices=VALIDATION_MODES, default='strict',
                                 help='Frontmatter validation mode (default: strict)')
    parser_validate.add_argument('--include', action='append', help='Include glob (repeatable)')
    parser_validate.add_argument('--exclude', action='append', help='Exclude glob (repeatable)')

    # scan subcommand
    parser_scan = subparsers.add_parser(
        'scan',
        help='Print resource statistics and duplicate groups'
    )
    parser_scan.add_argument('directory', help='Directory to crawl')
    parser_scan.add_argument('--include', action='append', help='Include glob (repeatable)')
    parser_scan.add_argument('--exclude', action='append', help='Exclude glob (repeatable)')

    # collect subcommand
    parser_collect = subparsers.add_parser(
        'collect',
        help='Show which linked files would be bundled with a root document'
    )
    parser_collect.add_argument('root', help='Root markdown document')
    parser_collect.add_argument('--depth', type=_depth_arg, help="Link follow depth (integer or 'full')")
    parser_collect.add_argument('--exclude', action='append', help='Exclude glob (repeatable, one rule)')
    parser_collect.add_argument('--package-root', help='Boundary directory for followed links')

    # check-package subcommand
    parser_package = subparsers.add_parser(
        'check-package',
        help='Check a root document for packaging readiness'
    )
    parser_package.add_argument('root', help='Root markdown document')
    parser_package.add_argument('--depth', type=_depth_arg, help="Link follow depth (integer or 'full')")
    parser_package.add_argument('--schema', action='append', help='Frontmatter schema for the root (repeatable)')
    parser_package.add_argument('--mode', choices=VALIDATION_MODES, default='strict',
                                help='Frontmatter validation mode (default: strict)')
    parser_package.add_argument('--package-root', help='Boundary directory for followed links')

    # Parse arguments
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(levelname)s %(name)s: %(message)s',
    )

    # Dispatch to handler functions
    handlers: Dict[str, Any] = {
        'validate': validate_command,
        'scan': scan_command,
        'collect': collect_command,
        'check-package': check_package_command,
    }

    handler = handlers.get(args.command)
    if handler is None:
        print(f"Error: Unknown command '{args.command}'", file=sys.stderr)
        return 1

    try:
        return handler(args)
    except MdGraphError as e:
        print(f"[ERROR] {e.message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
