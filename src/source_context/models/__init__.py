"""Data models and transfer objects."""

from .cache import CacheEntry, CacheKey, CacheStats
from .context import (
    AnalysisContext,
    BuildDiagnostics,
    SourceLine,
    SourceWindow,
    WindowLocation,
)
from .trace import CanonicalFrame, ContextRange, ErrorLocation, ParsedTrace

__all__ = [
    # Trace models
    "CanonicalFrame",
    "ErrorLocation",
    "ParsedTrace",
    "ContextRange",
    # Cache models
    "CacheKey",
    "CacheEntry",
    "CacheStats",
    # Context models
    "SourceLine",
    "WindowLocation",
    "SourceWindow",
    "AnalysisContext",
    "BuildDiagnostics",
]
