"""Assembly of source context for error reports.

This module implements the SourceContextBuilder class that turns a raw
error report into an AnalysisContext: windowed excerpts of the files on the
stack, fetched from the repository host at the revision the error happened
on. It handles:
- Revision resolution from report tags/release, falling back to the branch head
- Concurrent, cache-first fetching with per-file failure isolation
- Primary file selection and bounded source windows
- Secret redaction of excerpts
"""

from __future__ import annotations

import asyncio
import math
import re
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any

import structlog

from source_context.config.schema import MAX_CANDIDATE_FILES, ContextConfig
from source_context.core.file_cache import BoundedFileCache
from source_context.core.languages import language_for_path
from source_context.core.trace_interpreter import StackTraceInterpreter
from source_context.models.context import (
    AnalysisContext,
    BuildDiagnostics,
    SourceLine,
    SourceWindow,
    WindowLocation,
)
from source_context.utils.async_helpers import (
    NoApplicationFilesError,
    NoFilesRetrievedError,
    NoStackTraceError,
    TransportError,
)
from source_context.utils.logging import LogEventNames, configure_logging
from source_context.utils.metrics import MetricsRegistry, Timer, get_metrics
from source_context.utils.security import SecretRedactor

if TYPE_CHECKING:
    from source_context.config.schema import EngineConfig
    from source_context.interfaces.fetcher import FileFetcher
    from source_context.models.trace import ParsedTrace

log = structlog.get_logger()

REVISION_PATTERN = re.compile(r"^[0-9a-f]{6,40}$", re.IGNORECASE)
REVISION_TAG_KEYS = ("commit", "revision", "sha", "version")


class SourceContextBuilder:
    """Builds source excerpts for the stack trace of an error report.

    Responsibilities:
    - Interpret the report's stack trace into candidate repository paths
    - Resolve the revision to read files at
    - Fetch candidates concurrently through the file cache
    - Choose a primary file and cut bounded windows around the error

    Example:
        builder = SourceContextBuilder(fetcher, "owner/repo")
        try:
            context = await builder.build(event)
        except SourceContextError:
            ...  # continue without source context
        print(builder.last_diagnostics)
    """

    def __init__(
        self,
        fetcher: FileFetcher,
        repository_id: str,
        cache: BoundedFileCache | None = None,
        config: ContextConfig | None = None,
        interpreter: StackTraceInterpreter | None = None,
        metrics: MetricsRegistry | None = None,
    ) -> None:
        """Initialize the SourceContextBuilder.

        Args:
            fetcher: Remote file access for the repository
            repository_id: Identifier of the repository (e.g., "owner/repo"),
                also used as the cache namespace
            cache: File cache, possibly shared with other builders
            config: Window and fan-out configuration
            interpreter: Stack trace interpreter
            metrics: Metrics registry (default: process-wide registry)
        """
        self._fetcher = fetcher
        self._repository_id = repository_id
        self._cache = cache if cache is not None else BoundedFileCache()
        self._config = config or ContextConfig()
        self._interpreter = interpreter or StackTraceInterpreter()
        self._metrics = metrics or get_metrics()
        self._redactor = SecretRedactor() if self._config.redact_secrets else None
        self._last_diagnostics: BuildDiagnostics | None = None

    @property
    def repository_id(self) -> str:
        return self._repository_id

    @property
    def cache(self) -> BoundedFileCache:
        return self._cache

    @property
    def last_diagnostics(self) -> BuildDiagnostics | None:
        """Requested vs retrieved counts and cache hit rate of the last build."""
        return self._last_diagnostics

    async def build(self, raw_event: Any) -> AnalysisContext:
        """Build the analysis context for an error report.

        Args:
            raw_event: Error report (decoded Sentry event JSON)

        Returns:
            AnalysisContext with a primary window and related windows

        Raises:
            NoStackTraceError: If the report carries no stack trace
            NoApplicationFilesError: If every frame is vendor or runtime code
            NoFilesRetrievedError: If none of the candidate files could be fetched
            TransportError: If the revision could not be resolved
        """
        event_id = self._event_id(raw_event)
        requested = 0
        retrieved = 0
        revision: str | None = None
        outcome = "success"

        log.info(LogEventNames.CONTEXT_BUILD_START, event_id=event_id, repo=self._repository_id)

        timer = Timer(self._metrics.build_duration)
        try:
            with timer:
                trace = self._interpreter.parse(raw_event)
                if trace is None:
                    raise NoStackTraceError(f"No stack trace in event {event_id}")

                candidates = list(trace.repository_paths[: self._max_files])
                requested = len(candidates)
                if not candidates:
                    raise NoApplicationFilesError(
                        f"No application files among {len(trace.frames)} frames"
                    )

                log.info(
                    "application_files_found",
                    event_id=event_id,
                    file_paths=candidates,
                    has_error_location=trace.error_location is not None,
                )

                revision = await self.resolve_revision(raw_event)
                contents = await self.fetch_files(candidates, revision)
                retrieved = len(contents)

                if not contents:
                    raise NoFilesRetrievedError(
                        f"None of {requested} files could be fetched at {revision[:8]}"
                    )

                context = self._assemble(trace, contents, revision, event_id)
        except Exception as e:
            outcome = type(e).__name__
            raise
        finally:
            self._record(requested, retrieved, revision, outcome, timer)

        log.info(
            LogEventNames.CONTEXT_BUILT,
            event_id=event_id,
            primary_file=context.primary.file_path,
            related_count=len(context.related),
            revision=revision[:8],
        )
        return context

    async def try_build(self, raw_event: Any) -> AnalysisContext | None:
        """Build the analysis context, or return None so callers can degrade.

        The surrounding pipeline uses this to fall back to an analysis
        without source context instead of aborting error processing.
        """
        try:
            return await self.build(raw_event)
        except (NoStackTraceError, NoApplicationFilesError) as e:
            log.warning(
                LogEventNames.CONTEXT_UNAVAILABLE,
                event_id=self._event_id(raw_event),
                reason=type(e).__name__,
                error=str(e),
            )
        except (NoFilesRetrievedError, TransportError) as e:
            log.error(
                LogEventNames.CONTEXT_UNAVAILABLE,
                event_id=self._event_id(raw_event),
                reason=type(e).__name__,
                error=str(e),
            )
        return None

    async def resolve_revision(self, raw_event: Any) -> str:
        """Pick the revision to read files at.

        Prefers a commit-shaped tag (commit, revision, sha, version) or
        release on the report; otherwise asks the fetcher for the head of
        the default branch.

        Raises:
            TransportError: If the latest revision cannot be fetched
        """
        revision = self._revision_from_event(raw_event)
        if revision is not None:
            log.debug(LogEventNames.REVISION_RESOLVED, source="event", revision=revision[:8])
            return revision

        self._metrics.revision_lookups.inc()
        try:
            revision = await self._fetcher.get_latest_revision()
        except TransportError:
            log.error(LogEventNames.REVISION_ERROR, repo=self._repository_id)
            raise
        except Exception as e:
            log.error(LogEventNames.REVISION_ERROR, repo=self._repository_id, error=str(e))
            raise TransportError(f"Failed to resolve latest revision: {e}") from e

        log.debug(LogEventNames.REVISION_RESOLVED, source="latest", revision=revision[:8])
        return revision

    async def fetch_files(self, paths: Sequence[str], revision: str) -> dict[str, str]:
        """Fetch files concurrently, omitting absent and failed ones.

        Args:
            paths: Repository-relative paths
            revision: Commit to read at

        Returns:
            Mapping of path to content, in the order of ``paths``
        """
        results = await asyncio.gather(*(self._fetch_one(path, revision) for path in paths))
        contents = {path: content for path, content in zip(paths, results) if content is not None}

        log.info(
            LogEventNames.FILES_FETCHED,
            requested=len(paths),
            retrieved=len(contents),
            revision=revision[:8],
        )
        return contents

    async def _fetch_one(self, path: str, revision: str) -> str | None:
        """Fetch one file cache-first; never raises."""
        cached = self._cache.get(self._repository_id, path, revision)
        if cached is not None:
            self._metrics.cache_hits.inc()
            return cached
        self._metrics.cache_misses.inc()

        try:
            content = await self._fetcher.fetch_file(path, revision)
        except Exception as e:
            self._metrics.file_fetch_errors.inc()
            log.warning(
                LogEventNames.FILE_FETCH_ERROR,
                file_path=path,
                revision=revision[:8],
                error_type=type(e).__name__,
                error=str(e),
            )
            return None

        if content is None:
            log.debug(LogEventNames.FILE_NOT_FOUND, file_path=path, revision=revision[:8])
            return None

        self._cache.set(self._repository_id, path, revision, content)
        return content

    def create_window(
        self,
        file_path: str,
        content: str,
        revision: str,
        location: WindowLocation | None = None,
    ) -> SourceWindow:
        """Cut a symmetric window around the error line or the file's midpoint.

        Only the error line (if any) is highlighted.
        """
        lines = _split_lines(content)
        total = len(lines)
        radius = self._config.context_lines

        if location and location.line > 0:
            center = location.line
        else:
            center = max(1, math.ceil(total / 2))
        start_line = max(1, center - radius)
        end_line = min(total, center + radius)
        error_line = location.line if location else None

        window_lines = tuple(
            SourceLine(
                number=number,
                text=self._redact(lines[number - 1]),
                is_error_line=number == error_line,
            )
            for number in range(start_line, end_line + 1)
        )

        return SourceWindow(
            file_path=file_path,
            revision=revision,
            start_line=start_line,
            end_line=end_line,
            lines=window_lines,
            size_bytes=len(content.encode("utf-8")),
            language_hint=language_for_path(file_path),
            error_location=location,
        )

    def cache_stats(self) -> dict[str, Any]:
        """Cache statistics for diagnostics logging."""
        stats = self._cache.stats()
        return {
            "entries": stats.entries,
            "bytes": stats.total_bytes,
            "hits": stats.hits,
            "misses": stats.misses,
            "hit_rate": stats.hit_rate,
            "miss_rate": stats.miss_rate,
        }

    def clear_cache(self) -> None:
        """Drop every cached file."""
        self._cache.clear()

    @property
    def _max_files(self) -> int:
        return min(self._config.max_files, MAX_CANDIDATE_FILES)

    def _assemble(
        self,
        trace: ParsedTrace,
        contents: dict[str, str],
        revision: str,
        event_id: str | None,
    ) -> AnalysisContext:
        error = trace.error_location
        if error is not None and error.filename in contents:
            primary_path = error.filename
            location: WindowLocation | None = WindowLocation(
                line=error.lineno,
                column=error.colno,
                function=error.function,
            )
        else:
            primary_path = next(iter(contents))
            location = None
            log.warning(
                LogEventNames.PRIMARY_FALLBACK,
                event_id=event_id,
                primary_file=primary_path,
                reason="file_not_fetched" if error else "no_error_location",
            )

        primary = self.create_window(primary_path, contents[primary_path], revision, location)
        related = tuple(
            self.create_window(path, content, revision)
            for path, content in contents.items()
            if path != primary_path
        )

        return AnalysisContext(
            primary=primary,
            related=related,
            repository_id=self._repository_id,
            revision=revision,
            trace=trace,
        )

    def _redact(self, text: str) -> str:
        return self._redactor.redact(text) if self._redactor else text

    def _record(
        self,
        requested: int,
        retrieved: int,
        revision: str | None,
        outcome: str,
        timer: Timer,
    ) -> None:
        stats = self._cache.stats()
        self._metrics.context_builds.inc(labels={"outcome": outcome})
        self._metrics.files_requested.inc(requested)
        self._metrics.files_retrieved.inc(retrieved)
        self._metrics.cache_entries.set(stats.entries)
        self._metrics.cache_bytes.set(stats.total_bytes)
        self._last_diagnostics = BuildDiagnostics(
            requested_files=requested,
            retrieved_files=retrieved,
            cache_hit_rate=stats.hit_rate,
            revision=revision,
            duration_seconds=timer.elapsed,
            outcome=outcome,
        )

    def _revision_from_event(self, raw_event: Any) -> str | None:
        if not isinstance(raw_event, Mapping):
            return None

        for key, value in _iter_tags(raw_event.get("tags")):
            if key.lower() in REVISION_TAG_KEYS and _is_revision(value):
                return value

        release = raw_event.get("release")
        if isinstance(release, Mapping):
            release = release.get("version")
        if _is_revision(release):
            return release
        return None

    @staticmethod
    def _event_id(raw_event: Any) -> str | None:
        if isinstance(raw_event, Mapping):
            event_id = (
                raw_event.get("id") or raw_event.get("event_id") or raw_event.get("eventID")
            )
            return event_id if isinstance(event_id, str) else None
        return None


def _is_revision(value: Any) -> bool:
    return isinstance(value, str) and bool(REVISION_PATTERN.match(value))


def _split_lines(content: str) -> list[str]:
    """Split on ``\\n`` only, the way stack frame line numbers count lines.

    ``str.splitlines`` also breaks on form feeds and Unicode separators,
    which would shift every later line number.
    """
    lines = content.split("\n")
    if lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


def _iter_tags(tags: Any) -> list[tuple[str, Any]]:
    """Normalize the tag shapes Sentry uses into (key, value) pairs."""
    if isinstance(tags, Mapping):
        return [(key, value) for key, value in tags.items() if isinstance(key, str)]

    pairs: list[tuple[str, Any]] = []
    if isinstance(tags, list):
        for tag in tags:
            if isinstance(tag, Mapping) and isinstance(tag.get("key"), str):
                pairs.append((tag["key"], tag.get("value")))
            elif isinstance(tag, (list, tuple)) and len(tag) == 2 and isinstance(tag[0], str):
                pairs.append((tag[0], tag[1]))
    return pairs


def create_builder(
    config: EngineConfig,
    cache: BoundedFileCache | None = None,
    metrics: MetricsRegistry | None = None,
    configure_logs: bool = True,
) -> SourceContextBuilder:
    """Factory function to create a SourceContextBuilder backed by GitHub.

    Args:
        config: Engine configuration
        cache: Shared file cache (default: a new cache from ``config.cache``)
        metrics: Metrics registry (default: process-wide registry)
        configure_logs: Apply ``config.logging`` to structlog before wiring.
            Pass False when the host application owns logging setup.

    Returns:
        Configured SourceContextBuilder
    """
    # Import here to avoid circular imports
    from source_context.adapters.github import GitHubFileFetcher

    if configure_logs:
        configure_logging(
            level=config.logging.level,
            log_format=config.logging.format,
            file_path=config.logging.file.path if config.logging.file.enabled else None,
            file_enabled=config.logging.file.enabled,
        )

    fetcher = GitHubFileFetcher(config.github, retry_config=config.retry)
    return SourceContextBuilder(
        fetcher,
        repository_id=config.github.repository,
        cache=cache if cache is not None else BoundedFileCache.from_config(config.cache),
        config=config.context,
        metrics=metrics,
    )
