from __future__ import annotations

import argparse
import dataclasses
import logging
from typing import List, Optional

import psycopg2

from .catalog import Catalog
from .config import creds_from_env, load_env, load_settings
from .db import close_connection, create_pg_connection
from .engine import Seeder
from .errors import ConfigError, ConnectionFailedError
from .report import format_report, format_tree

logger = logging.getLogger("fkseed")

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2
EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fkseed",
        description="Insert one synthetic row into a table, creating the rows its foreign keys need first.",
    )
    parser.add_argument("--config", help="YAML settings file")
    parser.add_argument("--env-file", help=".env file with DB_HOST, DB_PORT, DB_NAME, DB_USER, DB_PASS")
    parser.add_argument("--table", help="start table (prompted for when omitted)")
    parser.add_argument("--max-depth", type=int, help="override the dependency depth cap")
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("-v", "--verbose", action="store_true", help="log every column decision")
    verbosity.add_argument("-q", "--quiet", action="store_true", help="only log warnings and errors")

    sub = parser.add_subparsers(dest="command")
    sub.add_parser("seed", help="seed a start table (default)")
    sub.add_parser("scan-types", help="list the distinct column types used in the database")
    return parser


def configure_logging(verbose: bool = False, quiet: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.WARNING if quiet else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def prompt_table_name() -> str:
    try:
        return input("Start table name: ").strip()
    except EOFError:
        return ""


def run_scan_types(catalog: Catalog) -> int:
    for data_type, limit in catalog.scan_types():
        print(f"{data_type}\t{'' if limit is None else limit}", flush=True)
    return EXIT_OK


def run_seed(seeder: Seeder, table_name: str) -> int:
    print(f"Processing table: {table_name}", flush=True)
    result = seeder.run(table_name)

    if result.tree:
        print("Dependency tree:", flush=True)
        print(format_tree(result.tree), flush=True)
    print(format_report(result), flush=True)

    if not result.found or result.failed:
        return EXIT_FAILED
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose, args.quiet)

    try:
        load_env(args.env_file)
        settings = load_settings(args.config)
        if args.max_depth is not None:
            if args.max_depth < 1:
                raise ConfigError("--max-depth must be a positive integer")
            settings = dataclasses.replace(settings, max_depth=args.max_depth)
        creds = creds_from_env()
    except (ConfigError, FileNotFoundError) as e:
        print(f"Configuration error: {e}", flush=True)
        return EXIT_USAGE

    try:
        conn = create_pg_connection(creds)
    except ConnectionFailedError as e:
        print(f"Connection error: {e}", flush=True)
        return EXIT_FAILED

    print("Connected to the database", flush=True)
    try:
        catalog = Catalog(conn)
        if args.command == "scan-types":
            return run_scan_types(catalog)

        print(f"Schemas found: {', '.join(catalog.discover_schemas())}", flush=True)
        table_name = args.table.strip() if args.table else prompt_table_name()
        if not table_name:
            print("Table name cannot be empty", flush=True)
            return EXIT_USAGE

        seeder = Seeder(catalog, settings)
        return run_seed(seeder, table_name)
    except KeyboardInterrupt:
        print("\nInterrupted by user", flush=True)
        return EXIT_INTERRUPTED
    except psycopg2.Error as e:
        logger.error("Unexpected database error: %s", e)
        print(f"Error while processing: {e}", flush=True)
        return EXIT_FAILED
    finally:
        close_connection(conn)
        print("Finished", flush=True)
