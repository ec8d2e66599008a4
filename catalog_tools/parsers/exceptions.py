"""Exception hierarchy for format parsers."""

from __future__ import annotations


class BookParseError(RuntimeError):
    """Base exception for fatal parse failures; no partial result is returned."""


class CorruptContainerError(BookParseError):
    """Raised when an archive or document cannot be decoded at all."""


class MissingContainerEntryError(BookParseError):
    """Raised when a required entry (container.xml, OPF, manifest) is absent."""

    def __init__(self, entry: str, detail: str | None = None) -> None:
        self.entry = entry
        message = f"Required container entry is missing: {entry}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class EncryptedDocumentError(BookParseError):
    """Raised for password-protected documents."""


class UnsupportedFormatError(BookParseError):
    """Raised when no parser variant accepts the supplied file."""


class ParseTimeoutError(BookParseError):
    """Raised when a parse does not settle within the wall-clock limit."""

    def __init__(self, timeout_seconds: float) -> None:
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Parsing did not finish within {timeout_seconds:g} seconds")


class NoTextContentError(BookParseError):
    """Raised when a text-bearing format yields no readable text."""


__all__ = [
    "BookParseError",
    "CorruptContainerError",
    "EncryptedDocumentError",
    "MissingContainerEntryError",
    "NoTextContentError",
    "ParseTimeoutError",
    "UnsupportedFormatError",
]
