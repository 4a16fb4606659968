"""Command-line entry point for the catalog builder."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from collections.abc import Sequence
from pathlib import Path

from catalog_builder.config import ConfigError
from catalog_builder.download import FetchError
from catalog_builder.generate import GenerateError, run

PROG = "lintel-catalog-builder"
VERSION = "0.0.3"
LOG_ENV_VAR = "LINTEL_LOG"

_LOG_LEVELS = {
    "trace": logging.DEBUG,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "off": logging.CRITICAL + 1,
}


def _non_negative_int(text: str) -> int:
    try:
        value = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected a number, got {text!r}") from None
    if value < 0:
        raise argparse.ArgumentTypeError(f"expected a non-negative number, got {value}")
    return value


def build_parser() -> argparse.ArgumentParser:
    """Return the argument parser for the command line."""
    parser = argparse.ArgumentParser(
        prog=PROG,
        description="Build a custom schema catalog from local schemas and external sources",
    )
    parser.add_argument("-V", "--version", action="version", version=f"{PROG} {VERSION}")
    commands = parser.add_subparsers(dest="command", metavar="COMMAND")

    generate = commands.add_parser(
        "generate", help="Generate catalog.json and download schemas"
    )
    generate.add_argument(
        "--config",
        metavar="PATH",
        type=Path,
        default=Path("lintel-catalog.toml"),
        help="Path to lintel-catalog.toml config file",
    )
    generate.add_argument(
        "--target",
        metavar="NAME",
        default=None,
        help="Build only a specific target (default: all targets)",
    )
    generate.add_argument(
        "--concurrency",
        metavar="N",
        type=_non_negative_int,
        default=20,
        help="Maximum concurrent downloads",
    )
    generate.add_argument(
        "--no-cache",
        action="store_true",
        help="Skip reading from cache (still writes fetched schemas to cache)",
    )

    commands.add_parser("version", help="Print version information")
    return parser


def _configure_logging() -> None:
    setting = os.environ.get(LOG_ENV_VAR)
    if setting is None:
        return
    # Accept filters such as "debug" or "catalog_builder=info"; the last level wins.
    level = logging.INFO
    for directive in filter(None, (part.strip() for part in setting.split(","))):
        name = directive.rpartition("=")[2].lower()
        level = _LOG_LEVELS.get(name, level)
    logging.basicConfig(
        level=level,
        stream=sys.stderr,
        format="%(relativeCreated)8.0fms %(levelname)-7s %(name)s: %(message)s",
    )


def main(argv: Sequence[str] | None = None) -> int:
    """Run the command line and return the process exit status."""
    _configure_logging()
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_usage(sys.stderr)
        return 1

    if args.command == "version":
        print(f"{PROG} {VERSION}")
        return 0

    try:
        run(args.config, args.target, args.concurrency, args.no_cache)
    except (GenerateError, ConfigError, FetchError, OSError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())