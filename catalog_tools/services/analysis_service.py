"""Parse-then-enrich workflow for uploaded books."""

from __future__ import annotations

import hashlib
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from catalog_tools import config_manager as cfg
from catalog_tools import logging_manager
from catalog_tools.config_manager.settings import CatalogToolsSettings
from catalog_tools.parsers import parse_book
from catalog_tools.parsers.exceptions import BookParseError, NoTextContentError
from catalog_tools.parsers.types import CanonicalMetadata, ParseOptions, ParseResult, SourceFormat

from .metadata.cache import ResultCache, build_cache_key
from .metadata.merge import merge_contexts
from .metadata.orchestrator import EnrichmentOrchestrator
from .metadata.registry import ResolverRegistry
from .metadata.types import EnrichmentReport, ResolverInput

logger = logging_manager.get_logger().getChild("services.analysis")

TEXT_BEARING_FORMATS = frozenset({SourceFormat.PDF, SourceFormat.EPUB})


@dataclass(slots=True)
class BookAnalysis:
    """Parse result plus the merged metadata and the enrichment report."""

    parse_result: ParseResult
    metadata: CanonicalMetadata
    report: Optional[EnrichmentReport] = None
    file_hash: str = ""
    cached: bool = field(default=False, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        payload = self.parse_result.to_dict()
        payload["metadata"] = self.metadata.to_dict()
        payload["enrichment"] = self.report.to_dict() if self.report is not None else None
        return payload


class BookAnalysisService:
    """Parse uploaded bytes, enrich the parsed metadata and merge the result.

    Results are cached by file hash, parse options and the enrichment
    feature key, so flipping a resolver's mode invalidates earlier entries.
    """

    def __init__(
        self,
        settings: Optional[CatalogToolsSettings] = None,
        *,
        orchestrator: Optional[EnrichmentOrchestrator] = None,
        cache: Optional[ResultCache[BookAnalysis]] = None,
    ) -> None:
        self._settings = settings or cfg.get_settings()
        self._orchestrator = orchestrator or EnrichmentOrchestrator(
            ResolverRegistry(self._settings.enrichment)
        )
        self._cache = cache if cache is not None else ResultCache(self._settings.enrichment.cache_ttl_seconds)

    @property
    def cache(self) -> ResultCache[BookAnalysis]:
        return self._cache

    def default_options(self, **overrides: Any) -> ParseOptions:
        options = ParseOptions(max_text_length=self._settings.parser.max_text_length)
        for key, value in overrides.items():
            setattr(options, key, value)
        return options

    def _cache_key(self, file_hash: str, options: ParseOptions, enrich: bool) -> str:
        return build_cache_key(
            [
                file_hash,
                options.extract_cover,
                options.max_text_length,
                options.media_type,
                enrich,
                self._orchestrator.feature_cache_key() if enrich else "enrichment:off",
            ]
        )

    def _validate_upload(self, data: bytes) -> None:
        if not data:
            raise BookParseError("No file data was supplied.")
        limit = self._settings.parser.max_upload_bytes
        if len(data) > limit:
            raise BookParseError(
                f"File is {len(data)} bytes; the upload limit is {limit} bytes."
            )

    def analyze(
        self,
        data: bytes,
        options: Optional[ParseOptions] = None,
        *,
        enrich: bool = True,
        cancel_event: Optional[threading.Event] = None,
    ) -> BookAnalysis:
        """Return the analysis for ``data``, reusing a cached one when available.

        Raises:
            BookParseError: The file is empty, too large, unreadable, or a
                PDF/EPUB without any extractable text.
            EnrichmentCancelledError: ``cancel_event`` was set mid-enrichment.
        """

        self._validate_upload(data)
        options = options or self.default_options()
        file_hash = hashlib.md5(data).hexdigest()
        cache_key = self._cache_key(file_hash, options, enrich)

        cached = self._cache.get(cache_key)
        if cached is not None:
            logger.info(
                "Returning cached analysis",
                extra={"event": "analysis.cache.hit", "attributes": {"file_hash": file_hash}},
            )
            cached.cached = True
            return cached

        with logging_manager.log_context(correlation_id=file_hash[:12]):
            started = time.perf_counter()
            parse_result = parse_book(
                data, options, timeout_seconds=self._settings.parser.parse_timeout_seconds
            )
            source_format = parse_result.metadata.source_format
            if source_format in TEXT_BEARING_FORMATS and not parse_result.text.strip():
                raise NoTextContentError(
                    f"No readable text could be extracted from this {source_format.value.upper()} file."
                )

            metadata = parse_result.metadata
            report: Optional[EnrichmentReport] = None
            if enrich:
                report = self._orchestrator.enrich(
                    ResolverInput.from_metadata(metadata), cancel_event=cancel_event
                )
                metadata = merge_contexts(metadata, report.contexts)

            analysis = BookAnalysis(
                parse_result=parse_result,
                metadata=metadata,
                report=report,
                file_hash=file_hash,
            )
            logger.info(
                "Book analysed",
                extra={
                    "event": "analysis.completed",
                    "source_format": source_format.value,
                    "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                },
            )

        self._cache.set(cache_key, analysis)
        return analysis


__all__ = ["BookAnalysis", "BookAnalysisService", "TEXT_BEARING_FORMATS"]
