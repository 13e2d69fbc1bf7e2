"""Core engine components.

- StackTraceInterpreter: Turns raw error reports into canonical traces
- BoundedFileCache: Byte/count/TTL-bounded cache of repository files
- SourceContextBuilder: Fetches files and assembles source windows
"""

from source_context.core.context_builder import SourceContextBuilder, create_builder
from source_context.core.file_cache import BoundedFileCache
from source_context.core.trace_interpreter import StackTraceInterpreter

__all__ = [
    "BoundedFileCache",
    "SourceContextBuilder",
    "StackTraceInterpreter",
    "create_builder",
]
