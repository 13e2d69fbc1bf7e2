"""Concrete implementations of the FileFetcher interface."""

from .deferred import DeferredFileFetcher, Ready, Uninitialized
from .github import GitHubFileFetcher

__all__ = [
    "DeferredFileFetcher",
    "GitHubFileFetcher",
    "Ready",
    "Uninitialized",
]
