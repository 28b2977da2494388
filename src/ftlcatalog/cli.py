"""Command line interface.

Usage:
    ftlcatalog validate --usages usages.json [--root l10n] [--format json]
    ftlcatalog locales [--root l10n]

Exit Codes:
    0: Validation passed
    1: Validation found errors
    2: Configuration, locale declarations or resources are invalid

Python 3.13+.
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence
from pathlib import Path

from .catalog import ResourceCatalog
from .config import Config, load_config, read_config
from .errors import L10nError
from .usage import load_usages
from .validation import FindingKind, Validator

__all__ = ["main"]

logger = logging.getLogger("ftlcatalog.cli")

EXIT_OK = 0
EXIT_FINDINGS = 1
EXIT_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ftlcatalog",
        description="Validate Fluent resource catalogs against message usages.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Validate call sites listed in a JSON feed:
  ftlcatalog validate --usages build/usages.json

  # Custom functions registered by the application:
  ftlcatalog validate --usages build/usages.json --function TIME --function UPPER

  # Show fallback chains of the configured locales:
  ftlcatalog locales
""",
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    common.add_argument(
        "--config", type=Path, help="Configuration file (default: l10n.toml or config.toml)"
    )
    common.add_argument("--root", type=Path, help="Resource root (overrides the configuration)")
    common.add_argument("--environment", help="Named path environment from the configuration")
    subparsers = parser.add_subparsers(dest="command", required=True)

    validate = subparsers.add_parser(
        "validate", parents=[common], help="Check usages against the catalog"
    )
    validate.add_argument("--usages", type=Path, required=True, help="JSON usage feed")
    validate.add_argument(
        "--function",
        dest="functions",
        action="append",
        default=[],
        metavar="NAME",
        help="Function registered at runtime (repeatable)",
    )
    validate.add_argument(
        "--lenient",
        action="append",
        default=[],
        type=FindingKind,
        choices=list(FindingKind),
        metavar="KIND",
        help="Report a finding kind as warning (repeatable)",
    )
    validate.add_argument(
        "--consistency",
        action="store_true",
        help="Require every named resource in every mandatory locale",
    )
    validate.add_argument("--jobs", type=int, default=1, help="Worker threads")
    validate.add_argument("--format", choices=("text", "json"), default="text")

    subparsers.add_parser("locales", parents=[common], help="Print locale fallback chains")
    return parser


def _load_catalog(args: argparse.Namespace) -> ResourceCatalog:
    config: Config = read_config(args.config) if args.config else load_config()
    root = args.root if args.root is not None else config.resolve_path(args.environment)
    logger.debug("Loading catalog from %s", root)
    return ResourceCatalog.load(root, config.locale_graph())


def _run_validate(args: argparse.Namespace, catalog: ResourceCatalog) -> int:
    usages = load_usages(args.usages)
    validator = Validator(
        catalog,
        functions=args.functions,
        lenient=args.lenient,
        consistency=args.consistency,
    )
    report = validator.validate(usages, max_workers=args.jobs)
    if args.format == "json":
        print(report.to_json())
    else:
        print(report.format())
    return EXIT_OK if report.is_valid else EXIT_FINDINGS


def _run_locales(catalog: ResourceCatalog) -> int:
    graph = catalog.graph
    for line in graph.describe():
        print(line)
    print("mandatory: " + ", ".join(str(locale) for locale in sorted(graph.mandatory_locales)))
    return EXIT_OK


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        catalog = _load_catalog(args)
        if args.command == "validate":
            return _run_validate(args, catalog)
        return _run_locales(catalog)
    except L10nError as exc:
        print(f"[ERROR] {exc}", file=sys.stderr)
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
