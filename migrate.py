#!/usr/bin/env python3
"""
Wiki Topic Migration Tool - Main CLI Entry Point

This script provides the command-line interface for moving wiki topics, with
their full version history, into and out of MediaWiki XML export files.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

# Add project root to Python path for relative imports
current_dir = Path(__file__).parent
sys.path.insert(0, str(current_dir))

# Project imports
from config_loader import ConfigLoader, get_nested
from converters import apply_alias_overrides
from errors import MigrationError
from logger import setup_logging, log_section, log_config
from orchestrator import MigrationOrchestrator
from repository import InMemoryTopicRepository

# Version
__version__ = "1.0.0"


def create_argument_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser for CLI."""
    parser = argparse.ArgumentParser(
        description="Import and export wiki topics as MediaWiki XML",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Import a MediaWiki dump into the default virtual wiki
  python migrate.py import dump.xml

  # Import as a known user, recording an import marker version
  python migrate.py import dump.xml --user Admin --record-import-version

  # Export two topics with full history
  python migrate.py export out.xml --topics "Main Page" "Template:Infobox"

  # Export every topic, current versions only
  python migrate.py export out.xml --all --exclude-history

  # Verbose logging with a custom repository snapshot
  python migrate.py -vv --repository wiki.json import dump.xml
        """
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}'
    )

    parser.add_argument(
        '--config',
        type=str,
        help='Path to configuration YAML file (defaults are used when omitted)'
    )

    parser.add_argument(
        '--repository',
        type=str,
        help='Path to the repository snapshot (default: repository.snapshot_path)'
    )

    parser.add_argument(
        '--virtual-wiki',
        type=str,
        help='Virtual wiki to import into or export from (default: migration.virtual_wiki)'
    )

    parser.add_argument(
        '--report',
        type=str,
        help='Write a JSON report of the run to this path'
    )

    parser.add_argument(
        '--log-file',
        type=str,
        help='Also write log output to this file'
    )

    parser.add_argument(
        '--progress',
        action=argparse.BooleanOptionalAction,
        default=None,
        help='Show a progress bar while importing'
    )

    parser.add_argument(
        '-v', '--verbose',
        action='count',
        default=0,
        help='Increase verbosity (-v for INFO, -vv for DEBUG)'
    )

    subparsers = parser.add_subparsers(dest='command', required=True)

    import_parser = subparsers.add_parser('import', help='Import a MediaWiki XML file')
    import_parser.add_argument('file', type=str, help='MediaWiki XML file to import')
    import_parser.add_argument(
        '--user',
        type=str,
        help='Existing wiki user performing the import'
    )
    import_parser.add_argument(
        '--author-display',
        type=str,
        help='Author text for revisions without a contributor (default: migration.author_display_fallback)'
    )
    import_parser.add_argument(
        '--locale',
        type=str,
        help='Locale of the import marker comment, e.g. de_DE (default: migration.locale)'
    )
    import_parser.add_argument(
        '--record-import-version',
        action=argparse.BooleanOptionalAction,
        default=None,
        help='Append a version noting the import to every imported topic'
    )

    export_parser = subparsers.add_parser('export', help='Export topics to a MediaWiki XML file')
    export_parser.add_argument('file', type=str, help='Output file')
    selection = export_parser.add_mutually_exclusive_group(required=True)
    selection.add_argument(
        '--topics',
        nargs='+',
        metavar='NAME',
        help='Topic names to export, in output order'
    )
    selection.add_argument(
        '--all',
        action='store_true',
        help='Export every topic of the virtual wiki'
    )
    export_parser.add_argument(
        '--exclude-history',
        action=argparse.BooleanOptionalAction,
        default=None,
        help='Export only the current version of each topic'
    )

    return parser


def load_repository(config: dict, logger: logging.Logger) -> InMemoryTopicRepository:
    """Load the repository snapshot, or start an empty repository when none exists."""
    snapshot_path = Path(get_nested(config, 'repository.snapshot_path'))

    if snapshot_path.exists():
        repository = InMemoryTopicRepository.load_snapshot(snapshot_path, logger=logger)
    else:
        logger.info(f"No repository snapshot at {snapshot_path}, starting with an empty repository")
        repository = InMemoryTopicRepository(logger=logger)

    overrides = get_nested(config, 'namespaces', {}) or {}
    if overrides:
        virtual_wiki = get_nested(config, 'migration.virtual_wiki')
        namespaces = apply_alias_overrides(repository.lookup_namespaces(virtual_wiki), overrides)
        repository.set_namespaces(virtual_wiki, namespaces)
        logger.debug(f"Applied namespace alias overrides for {sorted(overrides)}")

    return repository


def run_import(
    config: dict,
    args: argparse.Namespace,
    orchestrator: MigrationOrchestrator,
    repository: InMemoryTopicRepository,
    logger: logging.Logger
) -> List[str]:
    """Run the import subcommand."""
    user = None
    if args.user:
        user = repository.lookup_user(args.user)
        if user is None:
            raise ValueError(f"Unknown user '{args.user}': the importing user must already exist in the repository")

    return orchestrator.import_from_file(
        args.file,
        get_nested(config, 'migration.virtual_wiki'),
        user=user,
        author_display_fallback=get_nested(config, 'migration.author_display_fallback'),
        locale=get_nested(config, 'migration.locale')
    )


def run_export(
    config: dict,
    args: argparse.Namespace,
    orchestrator: MigrationOrchestrator,
    repository: InMemoryTopicRepository,
    logger: logging.Logger
) -> None:
    """Run the export subcommand."""
    virtual_wiki = get_nested(config, 'migration.virtual_wiki')
    topic_names = repository.topic_names(virtual_wiki) if args.all else args.topics
    logger.info(f"Exporting {len(topic_names)} topics from virtual wiki '{virtual_wiki}'")

    orchestrator.export_to_file(
        args.file,
        virtual_wiki,
        topic_names,
        exclude_history=get_nested(config, 'migration.exclude_history', False)
    )


def run_migration(config: dict, args: argparse.Namespace, logger: logging.Logger) -> int:
    """Execute the selected subcommand and report the outcome."""
    repository = load_repository(config, logger)
    orchestrator = MigrationOrchestrator(config, repository, logger)
    snapshot_path = get_nested(config, 'repository.snapshot_path')
    exit_code = 0

    try:
        if args.command == 'import':
            imported = run_import(config, args, orchestrator, repository, logger)
            logger.info(f"Imported {len(imported)} topics")
        else:
            run_export(config, args, orchestrator, repository, logger)
    except MigrationError as e:
        logger.error(f"Migration failed: {e}")
        exit_code = 1

    if args.command == 'import':
        # Pages committed before a failure are kept
        repository.save_snapshot(snapshot_path)

    if orchestrator.last_report is not None:
        print("\n" + orchestrator.format_last_report())
        if args.report:
            orchestrator.report_generator.export_json_report(orchestrator.last_report, args.report)

    return exit_code


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    try:
        # Minimal logging for config loading
        setup_logging(verbosity=args.verbose)
        logger = logging.getLogger('wiki_topic_migrator.migrate')

        log_section("Wiki Topic Migration Tool")
        logger.info(f"Version: {__version__}")

        if args.config:
            logger.info(f"Loading configuration from {args.config}")
        config = ConfigLoader.load(args.config)

        # CLI takes precedence over the config file
        config = ConfigLoader.merge_with_args(config, args)
        ConfigLoader.validate(config)

        # Reconfigure logging with config file settings
        setup_logging(
            verbosity=args.verbose,
            log_file=get_nested(config, 'logging.file'),
            level=get_nested(config, 'logging.level') if not args.verbose else None
        )
        log_config(config)

        return run_migration(config, args, logger)

    except FileNotFoundError as e:
        print(f"ERROR: File not found: {e}", file=sys.stderr)
        return 2
    except ValueError as e:
        print(f"ERROR: Configuration error: {e}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        print("\nMigration interrupted by user", file=sys.stderr)
        return 130
    except Exception as e:
        print(f"ERROR: Unexpected error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
