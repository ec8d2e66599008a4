"""Service layer modules for catalog-tools."""

from .analysis_service import BookAnalysis, BookAnalysisService

__all__ = ["BookAnalysis", "BookAnalysisService"]
