"""Authority resolver implementations."""

from __future__ import annotations

from .base import BaseResolver, ResolutionTrace, sanitize_identifier
from .hardcover import HardcoverResolver, build_contribution_candidate
from .loc_authority import LocAuthorityResolver
from .openlibrary import OpenLibraryResolver
from .tool_bridge import ToolBridgeMixin, build_tool_call, extract_tool_result

__all__ = [
    "BaseResolver",
    "HardcoverResolver",
    "LocAuthorityResolver",
    "OpenLibraryResolver",
    "ResolutionTrace",
    "ToolBridgeMixin",
    "build_contribution_candidate",
    "build_tool_call",
    "extract_tool_result",
    "sanitize_identifier",
]
