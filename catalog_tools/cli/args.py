"""Argument parsing helpers for the catalog-tools CLI."""

from __future__ import annotations

import argparse
from typing import Optional, Sequence


def _add_shared_arguments(parser: argparse.ArgumentParser) -> argparse.ArgumentParser:
    parser.add_argument(
        "--config",
        default=None,
        help="Path to a configuration JSON file (defaults to $CATALOG_CONFIG_FILE if set).",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging output.")
    return parser


def build_inspect_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="catalog-inspect",
        description="Parse a PDF, EPUB or audiobook and print its catalog record as JSON.",
    )
    parser.add_argument("file", help="Path to the book file to inspect.")
    parser.add_argument(
        "--extract-cover",
        action="store_true",
        help="Include the cover image as a data URL.",
    )
    parser.add_argument(
        "--max-text-length",
        type=int,
        default=None,
        help="Truncate extracted text to this many characters.",
    )
    parser.add_argument(
        "--media-type",
        default=None,
        help="Declared media type; guessed from the file name when omitted.",
    )
    parser.add_argument(
        "--enrich",
        action="store_true",
        help="Query the configured authority resolvers and merge their results.",
    )
    parser.add_argument(
        "--indent",
        type=int,
        default=2,
        help="JSON indentation (0 for compact output).",
    )
    return _add_shared_arguments(parser)


def parse_inspect_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    return build_inspect_parser().parse_args(argv)


__all__ = ["build_inspect_parser", "parse_inspect_args"]
