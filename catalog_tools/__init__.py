"""Ebook and audiobook metadata extraction with authority enrichment."""

__version__ = "0.4.0"
