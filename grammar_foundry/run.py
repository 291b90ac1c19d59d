from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import List, Set

from . import log
from .catalog import PARSER_LIST_URL, ParserCatalog, scrape_parsers
from .coordinator import run_pipeline, select_entries, validate_config
from .errors import CatalogError, ConfigurationError, MergeError
from .models import CatalogEntry, RunConfig
from .registry import LanguageRegistry

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_CATALOG_FAILURE = 1
EXIT_CONFIGURATION_ERROR = 2


def _split_languages(raw: str) -> List[str]:
    return [name.strip() for name in raw.split(",") if name.strip()]


def _load_catalog(args: argparse.Namespace) -> Set[CatalogEntry]:
    if args.catalog:
        return ParserCatalog.from_file(args.catalog).entries()
    return scrape_parsers(args.url)


def config_from_args(args: argparse.Namespace) -> RunConfig:
    return RunConfig(
        output_dir=Path(args.output),
        source_dir=Path(args.source_destination),
        registry_path=Path(args.config_destination),
        pool_size=args.threads,
        languages=frozenset(args.languages),
        compiler=args.compiler,
    )


def cmd_list(args: argparse.Namespace) -> int:
    if args.registered:
        return _list_registered(Path(args.config_destination))
    try:
        entries = _load_catalog(args)
    except CatalogError as exc:
        logger.error("catalog discovery failed: %s", exc)
        print(f"Error scraping parsers: {exc}", file=sys.stderr)
        return EXIT_CATALOG_FAILURE
    for entry in select_entries(entries, args.languages):
        print(f"{entry.name}\t{entry.source_locator}")
    return EXIT_OK


def _list_registered(registry_path: Path) -> int:
    try:
        languages = LanguageRegistry(registry_path).load()
    except MergeError as exc:
        logger.error("%s", exc)
        print(f"Registry error: {exc}", file=sys.stderr)
        return EXIT_CONFIGURATION_ERROR
    for name in sorted(languages):
        entry = languages[name] if isinstance(languages[name], dict) else {}
        print(f"{name}\t{entry.get('extension', '')}\t{entry.get('path', '')}")
    return EXIT_OK


def cmd_build(args: argparse.Namespace) -> int:
    config = config_from_args(args)
    try:
        validate_config(config)
    except ConfigurationError as exc:
        logger.error("%s", exc)
        print(f"Configuration error: {exc}", file=sys.stderr)
        return EXIT_CONFIGURATION_ERROR
    try:
        entries = _load_catalog(args)
    except CatalogError as exc:
        logger.error("catalog discovery failed: %s", exc)
        print(f"Error scraping parsers: {exc}", file=sys.stderr)
        return EXIT_CATALOG_FAILURE
    summary = run_pipeline(entries, config, show_progress=not args.quiet)
    logger.info("built %d of %d grammars", len(summary.successes), summary.completed)
    logger.info("run summary: %s", json.dumps(summary.to_dict(), sort_keys=True))
    # Per-job failures are reported in the summary, never through the exit status.
    return EXIT_OK


def _add_catalog_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--url",
        default=PARSER_LIST_URL,
        help="Wiki page listing the Tree-sitter parsers.",
    )
    parser.add_argument(
        "--catalog",
        default=None,
        help="Read parsers from a local JSON/YAML catalog instead of scraping the wiki.",
    )
    parser.add_argument(
        "-l",
        "--languages",
        type=_split_languages,
        default=[],
        help="Comma-separated allow-list of grammar names; all grammars when omitted.",
    )


def _add_registry_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-c",
        "--config-destination",
        default="./config.json",
        help="Registry document updated with every built grammar.",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Fetch and compile Tree-sitter grammars")
    parser.add_argument(
        "--log-file",
        default=str(log.DEFAULT_LOG_FILE),
        help="File receiving the detailed run log.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log at DEBUG level.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    list_parser = subparsers.add_parser("list", help="List the grammars in the catalog")
    _add_catalog_arguments(list_parser)
    list_parser.add_argument(
        "--registered",
        action="store_true",
        help="List the grammars already recorded in the registry document instead of the catalog.",
    )
    _add_registry_argument(list_parser)
    list_parser.set_defaults(func=cmd_list)

    build_cmd = subparsers.add_parser("build", help="Clone and compile the grammars")
    _add_catalog_arguments(build_cmd)
    build_cmd.add_argument("-o", "--output", default="./shared_libs/", help="Directory for compiled libraries.")
    build_cmd.add_argument(
        "-s",
        "--source-destination",
        default="./shared_libs_src/",
        help="Directory receiving the grammar checkouts.",
    )
    _add_registry_argument(build_cmd)
    build_cmd.add_argument(
        "-t",
        "--threads",
        type=int,
        default=int(os.environ.get("GRAMMAR_FOUNDRY_THREADS", "10")),
        help="Number of grammars built in parallel.",
    )
    build_cmd.add_argument(
        "--compiler",
        default=os.environ.get("GRAMMAR_FOUNDRY_CC", "gcc"),
        help="C compiler used to link the grammar libraries.",
    )
    build_cmd.add_argument("-q", "--quiet", action="store_true", help="Hide the progress display.")
    build_cmd.set_defaults(func=cmd_build)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    log.configure(args.log_file, level=logging.DEBUG if args.verbose else logging.INFO)
    return args.func(args)


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
