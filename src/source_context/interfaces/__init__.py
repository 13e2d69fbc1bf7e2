"""Protocol definitions for pluggable adapters."""

from .fetcher import FileFetcher

__all__ = ["FileFetcher"]
