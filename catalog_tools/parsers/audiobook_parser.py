"""Audiobook parsing for Readium Web Publication Manifests and bare audio files."""

from __future__ import annotations

import io
import json
import mimetypes
import posixpath
import zipfile
from pathlib import PurePath
from typing import Any, Dict, List, Mapping, Optional

from catalog_tools import logging_manager

from .base import BookParser, clean_text, format_publication_date, truncate_text
from .exceptions import CorruptContainerError, MissingContainerEntryError
from .identifiers import find_isbn
from .types import (
    CanonicalMetadata,
    CoverImage,
    Identifier,
    IdentifierSource,
    ParseOptions,
    ParseResult,
    SourceFormat,
)

logger = logging_manager.get_logger().getChild("parsers.audiobook")

MANIFEST_ENTRY = "manifest.json"
AUDIO_EXTENSIONS = (".mp3", ".m4a", ".m4b", ".aac", ".ogg", ".opus", ".flac", ".wav")
PACKAGE_MEDIA_TYPES = (
    "application/audiobook+zip",
    "application/audiobook+json",
    "application/webpub+json",
    "application/webpub+zip",
)


def format_duration(total_seconds: float) -> str:
    """Render a duration as ``Hh Mm Ss``."""

    seconds = max(0, int(round(total_seconds)))
    hours, remainder = divmod(seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours}h {minutes}m {secs}s"


def localized_value(value: Any) -> Optional[str]:
    """Return a plain string, or the first locale of a localized-string map."""

    if value is None:
        return None
    if isinstance(value, str):
        return clean_text(value)
    if isinstance(value, Mapping):
        for candidate in value.values():
            text = localized_value(candidate)
            if text:
                return text
        return None
    return clean_text(str(value))


def contributor_names(value: Any) -> List[str]:
    """Flatten an RWPM contributor field (string, object or list) into names."""

    if value is None:
        return []
    if isinstance(value, list):
        names: List[str] = []
        for entry in value:
            names.extend(contributor_names(entry))
        return names
    if isinstance(value, Mapping):
        if "name" in value:
            name = localized_value(value.get("name"))
        else:
            name = localized_value(value)
        return [name] if name else []
    text = localized_value(value)
    return [text] if text else []


def _join_names(value: Any) -> Optional[str]:
    names = contributor_names(value)
    return ", ".join(names) if names else None


def _as_seconds(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        return None
    return seconds if seconds >= 0 else None


def _is_zip(data: bytes) -> bool:
    return data[:4] == b"PK\x03\x04"


def looks_like_manifest(data: bytes) -> bool:
    return data[:64].lstrip().startswith(b"{")


class AudiobookParser(BookParser):
    """Parse RWPM audiobook packages and standalone audio files."""

    kind = SourceFormat.AUDIOBOOK
    media_types = PACKAGE_MEDIA_TYPES
    extensions = (".audiobook", ".lcpa", ".json") + AUDIO_EXTENSIONS

    @classmethod
    def accepts(cls, media_type: Optional[str], filename: Optional[str]) -> bool:
        if media_type and media_type.strip().lower().startswith("audio/"):
            return True
        return super().accepts(media_type, filename)

    def parse(self, data: bytes, options: ParseOptions) -> ParseResult:
        if _is_zip(data):
            return self._parse_package(data, options)
        if looks_like_manifest(data):
            manifest = self._decode_manifest(data)
            return self._build_result(manifest, options, archive=None)
        return self._parse_standalone(options)

    def _decode_manifest(self, payload: bytes) -> Dict[str, Any]:
        try:
            manifest = json.loads(payload.decode("utf-8-sig"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise CorruptContainerError(f"Audiobook manifest is not valid JSON: {exc}") from exc
        if not isinstance(manifest, dict):
            raise CorruptContainerError("Audiobook manifest must be a JSON object.")
        return manifest

    def _parse_package(self, data: bytes, options: ParseOptions) -> ParseResult:
        try:
            archive = zipfile.ZipFile(io.BytesIO(data))
        except zipfile.BadZipFile as exc:
            raise CorruptContainerError(f"Failed to open the audiobook package: {exc}") from exc
        with archive:
            if MANIFEST_ENTRY not in archive.namelist():
                raise MissingContainerEntryError(MANIFEST_ENTRY)
            manifest = self._decode_manifest(archive.read(MANIFEST_ENTRY))
            return self._build_result(manifest, options, archive=archive)

    def _build_result(
        self,
        manifest: Dict[str, Any],
        options: ParseOptions,
        *,
        archive: Optional[zipfile.ZipFile],
    ) -> ParseResult:
        meta = manifest.get("metadata") if isinstance(manifest.get("metadata"), dict) else {}
        reading_order = [
            track for track in manifest.get("readingOrder") or [] if isinstance(track, dict)
        ]

        duration_seconds = _as_seconds(meta.get("duration"))
        if duration_seconds is None and reading_order:
            track_durations = [_as_seconds(track.get("duration")) for track in reading_order]
            known = [value for value in track_durations if value is not None]
            duration_seconds = sum(known) if known else None

        audio_format = None
        if reading_order:
            audio_format = clean_text(reading_order[0].get("type"))

        identifier = None
        found = find_isbn(localized_value(meta.get("identifier")) or "")
        if found:
            identifier = Identifier(value=found, source=IdentifierSource.METADATA)

        title = localized_value(meta.get("title")) or _title_from_filename(options.filename) or ""
        subject = meta.get("subject")
        metadata = CanonicalMetadata(
            title=title,
            author=_join_names(meta.get("author")) or "",
            source_format=SourceFormat.AUDIOBOOK,
            narrator=_join_names(meta.get("narrator") or meta.get("readBy")),
            subject=_join_names(subject),
            publisher=_join_names(meta.get("publisher")),
            publication_date=format_publication_date(localized_value(meta.get("published"))),
            language=_first_language(meta.get("language")),
            description=localized_value(meta.get("description")),
            duration=format_duration(duration_seconds) if duration_seconds is not None else None,
            duration_seconds=duration_seconds,
            audio_format=audio_format,
            audio_track_count=len(reading_order),
            identifier=identifier,
        )
        cover = None
        if options.extract_cover and archive is not None:
            cover = self._extract_cover(manifest, archive)
        text = metadata.description or ""
        return ParseResult(
            metadata=metadata,
            text=truncate_text(text, options.max_text_length, source_format=self.kind),
            cover=cover,
        )

    def _parse_standalone(self, options: ParseOptions) -> ParseResult:
        media_type = options.media_type
        if not media_type and options.filename:
            media_type = mimetypes.guess_type(options.filename)[0]
        metadata = CanonicalMetadata(
            title=_title_from_filename(options.filename) or "",
            author="",
            source_format=SourceFormat.AUDIOBOOK,
            audio_format=media_type,
            audio_track_count=1,
        )
        return ParseResult(metadata=metadata, text="")

    def _extract_cover(
        self, manifest: Dict[str, Any], archive: zipfile.ZipFile
    ) -> Optional[CoverImage]:
        links = list(manifest.get("resources") or []) + list(manifest.get("links") or [])
        for link in links:
            if not isinstance(link, dict):
                continue
            rel = link.get("rel")
            rels = rel if isinstance(rel, list) else [rel]
            if "cover" not in rels:
                continue
            href = posixpath.normpath(str(link.get("href") or "").lstrip("/"))
            try:
                payload = archive.read(href)
            except (KeyError, RuntimeError, zipfile.BadZipFile) as exc:
                logger.warning(
                    "Unable to read audiobook cover %s: %s",
                    href,
                    exc,
                    extra={"event": "parser.audiobook.cover_failed", "source_format": "audiobook"},
                )
                return None
            media_type = link.get("type") or mimetypes.guess_type(href)[0] or "image/jpeg"
            return CoverImage(media_type=media_type, data=payload)
        return None


def _first_language(value: Any) -> Optional[str]:
    if isinstance(value, list):
        return next((clean_text(str(item)) for item in value if item), None)
    return localized_value(value)


def _title_from_filename(filename: Optional[str]) -> Optional[str]:
    if not filename:
        return None
    return clean_text(PurePath(filename).stem.replace("_", " "))


__all__ = [
    "AudiobookParser",
    "contributor_names",
    "format_duration",
    "localized_value",
    "looks_like_manifest",
]
