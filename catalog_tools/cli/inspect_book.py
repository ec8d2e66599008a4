"""Inspect a single book file from the command line.

Usage::

    python -m catalog_tools.cli.inspect_book FILE [--extract-cover]
        [--max-text-length N] [--enrich]
"""

from __future__ import annotations

import json
import mimetypes
import sys
from pathlib import Path
from typing import Optional, Sequence, TextIO

from catalog_tools import config_manager as cfg
from catalog_tools import logging_manager
from catalog_tools.parsers.exceptions import BookParseError
from catalog_tools.services.analysis_service import BookAnalysisService
from catalog_tools.services.metadata.exceptions import EnrichmentCancelledError

from .args import parse_inspect_args

logger = logging_manager.get_logger().getChild("cli.inspect_book")


def run_inspect(argv: Optional[Sequence[str]] = None, *, stdout: Optional[TextIO] = None) -> int:
    stdout = stdout or sys.stdout
    args = parse_inspect_args(argv)
    settings = cfg.load_configuration(args.config)
    if args.debug or settings.debug:
        logging_manager.configure_logging_level(debug_enabled=True)

    path = Path(args.file).expanduser()
    try:
        data = path.read_bytes()
    except OSError as exc:
        logger.error("Unable to read %s: %s", path, exc, extra={"event": "cli.file.unreadable"})
        return 2

    service = BookAnalysisService(settings)
    options = service.default_options(
        extract_cover=args.extract_cover,
        filename=path.name,
        media_type=args.media_type or mimetypes.guess_type(path.name)[0],
    )
    if args.max_text_length is not None:
        options.max_text_length = max(0, args.max_text_length)

    try:
        analysis = service.analyze(data, options, enrich=args.enrich)
    except BookParseError as exc:
        logger.error("Could not parse %s: %s", path, exc, extra={"event": "cli.parse.failed"})
        return 1
    except EnrichmentCancelledError as exc:
        logger.error("Enrichment cancelled: %s", exc, extra={"event": "cli.enrichment.cancelled"})
        return 130

    payload = analysis.to_dict()
    if not args.enrich:
        payload.pop("enrichment", None)
    json.dump(payload, stdout, ensure_ascii=False, indent=args.indent or None)
    stdout.write("\n")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Entry point for the ``catalog-inspect`` console script."""

    return run_inspect(argv)


if __name__ == "__main__":  # pragma: no cover - manual execution
    sys.exit(main())
