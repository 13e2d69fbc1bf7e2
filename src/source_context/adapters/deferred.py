"""File fetcher whose backing fetcher arrives after construction.

Repository access usually depends on an authorization step (an installation
token, an OAuth grant) that completes after the builder is wired up. The
DeferredFileFetcher stands in for the real fetcher until then.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from source_context.interfaces.fetcher import FileFetcher
from source_context.utils.async_helpers import FetcherNotReadyError
from source_context.utils.logging import LogEventNames

log = structlog.get_logger()


@dataclass(frozen=True)
class Uninitialized:
    """No fetcher has been activated yet."""


@dataclass(frozen=True)
class Ready:
    """A fetcher is active and receives every call."""

    fetcher: FileFetcher


FetcherState = Uninitialized | Ready


class DeferredFileFetcher:
    """FileFetcher that delegates once activated.

    Example:
        deferred = DeferredFileFetcher()
        builder = SourceContextBuilder(deferred, "owner/repo")
        ...
        deferred.activate(GitHubFileFetcher(config.github))
    """

    def __init__(self) -> None:
        self._state: FetcherState = Uninitialized()

    @property
    def state(self) -> FetcherState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return isinstance(self._state, Ready)

    def activate(self, fetcher: FileFetcher) -> None:
        """Route subsequent calls to ``fetcher``, replacing any previous one."""
        self._state = Ready(fetcher)
        log.info(LogEventNames.FETCHER_READY, fetcher=type(fetcher).__name__)

    def reset(self) -> None:
        """Return to the uninitialized state, e.g. after a revoked grant."""
        self._state = Uninitialized()
        log.info(LogEventNames.FETCHER_RESET)

    def _require(self) -> FileFetcher:
        state = self._state
        if isinstance(state, Ready):
            return state.fetcher
        raise FetcherNotReadyError("File fetcher has not been authorized yet")

    async def fetch_file(self, path: str, revision: str) -> str | None:
        return await self._require().fetch_file(path, revision)

    async def get_latest_revision(self, branch: str | None = None) -> str:
        return await self._require().get_latest_revision(branch)
