#!/usr/bin/env python3
"""
Cross-Database Migrator CLI
===========================

Copies table structures (columns, primary keys, indexes, comments) and rows
from a source datasource to a target datasource of a possibly different
engine.

Supported targets: Oracle, SQL Server, PostgreSQL, VastBase, KingBase V8,
MySQL and SQLite. Any engine SQLAlchemy can reflect works as a source.

Datasources and the default strategy come from a JSON config file; secrets
are read from the environment with ${VAR} / ${VAR:default} placeholders.

Usage:
    # One table, only recent rows
    crossdb-migrate --config migration.json --source src --target dst \
        --table orders --condition "created_at > '2024-01-01'"

    # Every table whose name contains "user" or "role", four workers
    crossdb-migrate --config migration.json --source src --target dst --tables user,role --workers 4

    # Whole schema, structures only, keep existing target tables
    crossdb-migrate --config migration.json --source src --target dst --all --no-data --build-mode skip_when_exist

    # Print the DDL without touching the target
    crossdb-migrate --config migration.json --source src --target dst --all --dry-run
"""

import argparse
import dataclasses
import logging
import sys
from pathlib import Path

from sqlalchemy.exc import SQLAlchemyError

# Add parent directory to path to import the migrator core
sys.path.insert(0, str(Path(__file__).parent.parent.resolve()))

from config.secure_config import load_config_file
from core.errors import MigrationError, MigrationRunError
from core.migration import DEFAULT_ALL_TABLES_WORKERS, MigrationOrchestrator
from core.strategy import BuildMode

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'

logger = logging.getLogger(__name__)


def setup_logging(level: str = 'INFO', log_file: str = None):
    """Console logging plus an optional log file with the same format"""
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
    if log_file:
        file_handler = logging.FileHandler(log_file, mode='a')
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logging.getLogger().addHandler(file_handler)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Cross-Database Schema and Data Migrator")
    parser.add_argument("--config", help="JSON config with datasources and strategy (default: $MIGRATOR_CONFIG)")
    parser.add_argument("--source", required=True, help="Source datasource id from the config")
    parser.add_argument("--target", required=True, help="Target datasource id from the config")

    selection = parser.add_mutually_exclusive_group(required=True)
    selection.add_argument("--table", help="Migrate exactly this table")
    selection.add_argument("--tables", help="Comma-separated name fragments; every matching table is migrated")
    selection.add_argument("--all", action="store_true", help="Migrate every table of the source schema")
    parser.add_argument("--condition", help="WHERE clause for the rows copied with --table")

    parser.add_argument("--workers", type=int, help="Number of parallel worker buckets")
    parser.add_argument("--build-mode", choices=[m.value for m in BuildMode],
                        help="What to do with tables that already exist on the target")
    parser.add_argument("--max-records", type=int, help="Skip tables with more rows than this (-1 for no limit)")
    parser.add_argument("--no-data", action="store_true", help="Create structures only, copy no rows")
    parser.add_argument("--ignore", action="append", default=[], metavar="PATTERN",
                        help="Regex of table names to skip (repeatable)")
    parser.add_argument("--stop-on-error", action="store_true", help="Abort a worker bucket on its first failed table")
    parser.add_argument("--page-size", type=int, help="Rows read and inserted per page")
    parser.add_argument("--debug", action="store_true", help="Echo every SQL statement")
    parser.add_argument("--dry-run", action="store_true", help="Print the target DDL and exit without changes")
    parser.add_argument("--log-level", default="INFO", choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help="Console log level")
    parser.add_argument("--log-file", help="Also append log output to this file")
    return parser


def build_strategy(base, args):
    """Apply command line overrides on top of the configured strategy"""
    overrides = {}
    if args.build_mode:
        overrides['build_mode'] = args.build_mode
    if args.max_records is not None:
        overrides['max_record_count'] = args.max_records
    if args.no_data:
        overrides['include_data'] = False
    if args.ignore:
        overrides['ignored_table_patterns'] = tuple(base.ignored_table_patterns) + tuple(args.ignore)
    if args.stop_on_error:
        overrides['continue_when_error'] = False
    if args.page_size is not None:
        overrides['page_size'] = args.page_size
    if args.debug:
        overrides['debug'] = True
    return dataclasses.replace(base, **overrides) if overrides else base


def split_names(value: str):
    return [name.strip() for name in value.split(',') if name.strip()]


def run(args) -> int:
    settings = load_config_file(args.config)
    source_config = settings.get_datasource(args.source)
    target_config = settings.get_datasource(args.target)
    strategy = build_strategy(settings.strategy, args)
    logger.info(f"Source: {source_config!r}")
    logger.info(f"Target: {target_config!r}")
    logger.info(f"Strategy: {strategy.to_dict()}")

    with MigrationOrchestrator.from_configs(source_config, target_config, strategy) as orchestrator:
        if args.dry_run:
            names = [args.table] if args.table else (split_names(args.tables) if args.tables else [])
            preview = orchestrator.preview_ddl(*names)
            for table_name, statements in preview.items():
                print(f"-- {table_name}")
                for statement in statements:
                    print(f"{statement};")
            logger.info(f"Dry run: DDL for {len(preview)} table(s), target untouched")
            return 0

        if args.table:
            report = orchestrator.sync_single_table(args.table, args.condition)
        elif args.tables:
            report = orchestrator.sync_table_list(*split_names(args.tables), worker_count=args.workers or 1)
        else:
            report = orchestrator.sync_all_tables(worker_count=args.workers or DEFAULT_ALL_TABLES_WORKERS)

    print(report.export("text"))
    return 0 if report.ok else 1


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.condition and not args.table:
        parser.error("--condition can only be used with --table")
    if args.workers is not None and args.workers < 1:
        parser.error("--workers must be at least 1")

    setup_logging(args.log_level, args.log_file)

    try:
        return run(args)
    except MigrationRunError as e:
        logger.error(f"Migration failed: {e}")
        if e.report is not None:
            print(e.report.export("text"))
        return 1
    except (MigrationError, SQLAlchemyError) as e:
        logger.error(f"Fatal error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
