#!/usr/bin/env python3
"""
couchsweep command line.

Usage:
    # Write a sample task file
    couchsweep init --tasks-file couchsweep_tasks.py

    # Preview what the tasks would change
    couchsweep run --tasks-file couchsweep_tasks.py --couchdb-database mydb --dry-run

    # Migrate the first 10 pages of 500 documents
    couchsweep run --tasks-file couchsweep_tasks.py --couchdb-database mydb \\
        --page-size 500 --num-pages 10
"""

import argparse
import sys
from typing import List, Optional

from .couchdb_io import CouchDBConnection
from .env_config import get_couchdb_config, get_env_config
from .log import configure_logging
from .runner import UPDATE_ERROR_STAT, report, run_tasks
from .tasks import DEFAULT_TASKS_FILE, TaskFileError, load_tasks, write_sample_tasks
from .util import TaskUtil

CONFIG_HELP = """
Configuration options (also read from environment variables, then the env file
$COUCHSWEEP_ENV_FILE, default ~/.couchsweep_env):
  --couchdb-url URL         $COUCHDB_URL (default: http://localhost:5984)
  --couchdb-username NAME   $COUCHDB_USER
  --couchdb-password PASS   $COUCHDB_PASSWORD
  --couchdb-database NAME   $COUCHDB_DATABASE (required for run)
  --view NAME               $COUCHSWEEP_VIEW (default: _all_docs)
  --page-size N             $PAGE_SIZE (default: 1000)
  --num-pages N             $NUM_PAGES (default: all pages)
  --interval SECONDS        $INTERVAL (default: 0)
  --skip N                  $SKIP (default: 0)
  --start-key KEY           $START_KEY (document ID, or view key with --view)
  --end-key KEY             $END_KEY (document ID, or view key with --view)
  --log-file PATH           $LOG_FILE (default: couchsweep.log)
  --audit-file PATH         $AUDIT_FILE (default: couchsweep-audit.json)
  --verbosity N             $VERBOSITY (0=silent, 1=info, 2=debug)
  --dry-run                 $DRY_RUN
"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='couchsweep',
        description='Run task functions over every document of a CouchDB database',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=CONFIG_HELP
    )
    subparsers = parser.add_subparsers(dest='command')
    subparsers.required = True

    init_parser = subparsers.add_parser('init', help='Write a sample task file')
    init_parser.add_argument(
        '--tasks-file',
        default=DEFAULT_TASKS_FILE,
        help=f'Task file to create (default: {DEFAULT_TASKS_FILE})'
    )

    run_parser = subparsers.add_parser(
        'run',
        help='Run a task file against a database',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=CONFIG_HELP
    )
    run_parser.add_argument(
        '--tasks-file',
        default=DEFAULT_TASKS_FILE,
        help=f'Task file to run (default: {DEFAULT_TASKS_FILE})'
    )
    return parser


def init_command(tasks_file: str) -> int:
    try:
        path = write_sample_tasks(tasks_file)
    except FileExistsError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    print(f"Created {path}")
    return 0


def run_command(parser: argparse.ArgumentParser, tasks_file: str, argv: List[str]) -> int:
    config = get_env_config(argv)
    verbosity = config['verbosity']

    if not config['couchdb_database']:
        parser.error("--couchdb-database is required (or set $COUCHDB_DATABASE)")
    if config['page_size'] < 1:
        parser.error("--page-size must be a positive integer")

    configure_logging(config['log_file'], verbosity)

    try:
        tasks = load_tasks(tasks_file)
    except TaskFileError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    if verbosity >= 1:
        print(f"\n{'='*70}")
        print("couchsweep")
        print(f"{'='*70}")
        print(f"CouchDB: {config['couchdb_url']}")
        print(f"Database: {config['couchdb_database']}")
        print(f"Tasks: {', '.join(tasks)}")
        print(f"Page size: {config['page_size']}")
        if config['num_pages']:
            print(f"Pages: {config['num_pages']}")
        if config['dry_run']:
            print("Mode: DRY RUN (no changes will be made)")
        print()

    couchdb_config = get_couchdb_config(argv)
    connection = CouchDBConnection(
        couchdb_url=couchdb_config['url'],
        database=couchdb_config['database'],
        username=couchdb_config['username'],
        password=couchdb_config['password'],
        view=config['view']
    )
    util = TaskUtil(driver=connection)

    try:
        run_tasks(
            connection,
            tasks,
            page_size=config['page_size'],
            num_pages=config['num_pages'],
            skip=config['skip'],
            start_key=config['start_key'],
            end_key=config['end_key'],
            interval=config['interval'],
            dry_run=config['dry_run'],
            util=util,
            verbosity=verbosity
        )
    except Exception as e:
        print(f"ERROR: {e}", file=sys.stderr)
        report(util, config['audit_file'], verbosity)
        return 1

    report(util, config['audit_file'], verbosity)

    # Exit with error code if any document failed to update
    if util.get_stat().get(UPDATE_ERROR_STAT, 0) > 0:
        return 1
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    if argv is None:
        argv = sys.argv[1:]
    parser = build_parser()
    args, _ = parser.parse_known_args(argv)

    if args.command == 'init':
        return init_command(args.tasks_file)
    return run_command(parser, args.tasks_file, argv)


if __name__ == '__main__':
    sys.exit(main())
