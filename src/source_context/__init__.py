"""Source context reconstruction for error reports.

Turns a raw error report into windowed excerpts of the repository files its
stack trace passes through.
"""

from source_context.adapters import DeferredFileFetcher, GitHubFileFetcher
from source_context.config import EngineConfig, load_config
from source_context.core import (
    BoundedFileCache,
    SourceContextBuilder,
    StackTraceInterpreter,
    create_builder,
)
from source_context.interfaces import FileFetcher
from source_context.models import AnalysisContext, ParsedTrace, SourceWindow

__all__ = [
    "AnalysisContext",
    "BoundedFileCache",
    "DeferredFileFetcher",
    "EngineConfig",
    "FileFetcher",
    "GitHubFileFetcher",
    "ParsedTrace",
    "SourceContextBuilder",
    "SourceWindow",
    "StackTraceInterpreter",
    "create_builder",
    "load_config",
]
