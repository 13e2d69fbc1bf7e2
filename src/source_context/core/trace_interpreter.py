"""Interpreter for stack traces carried by error reports.

This module implements the StackTraceInterpreter class that turns a raw,
loosely structured error report (Sentry event JSON) into a ParsedTrace. It
handles:
- API event shape (``entries[type=exception]``) and ingest shape (``exception``)
- Filename normalization for URLs, bundler prefixes and build directories
- Classification of application code vs vendored/runtime code
- Selection of the error location

Malformed input never raises; it degrades to None or empty collections.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from typing import Any
from urllib.parse import urlsplit

import structlog

from source_context.core.languages import dominant_language
from source_context.models.trace import (
    CanonicalFrame,
    ContextRange,
    ErrorLocation,
    ParsedTrace,
)
from source_context.utils.logging import LogEventNames

log = structlog.get_logger()


def _optional_str(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


def _optional_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value) or None
    if isinstance(value, str) and value.strip().isdigit():
        return int(value) or None
    return None


def _str_tuple(value: Any) -> tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    return tuple(item for item in value if isinstance(item, str))


class StackTraceInterpreter:
    """Interpreter for error-report stack traces.

    Example:
        interpreter = StackTraceInterpreter()
        trace = interpreter.parse(event)
        if trace is not None:
            print(trace.repository_paths)
    """

    # Stripped repeatedly from the front, in this priority order
    PREFIXES_TO_STRIP: tuple[str, ...] = (
        "webpack:///",
        "webpack://",
        "app/",
        "src/",
        "dist/",
        "build/",
    )

    # Substrings marking vendored, bundler, transpiler and polyfill code
    VENDOR_MARKERS: tuple[str, ...] = (
        "node_modules",
        "site-packages",
        "dist-packages",
        "webpack",
        "babel",
        "core-js",
        "regenerator-runtime",
        "lodash",
    )
    MINIFIED_PATTERN = re.compile(r"\.(?:min|bundle)\.")
    INTERNAL_PREFIXES: tuple[str, ...] = ("internal/", "node:", "fs.", "path.", "util.")

    DEFAULT_CONTEXT_LINES = 10

    def parse(self, raw_event: Any) -> ParsedTrace | None:
        """Parse the stack trace of the first exception in an error report.

        Args:
            raw_event: Error report, typically decoded Sentry event JSON

        Returns:
            ParsedTrace, or None when the report carries no stack trace.
            A trace whose frame list is present but empty yields an empty
            ParsedTrace rather than None.
        """
        try:
            raw_frames = self._find_raw_frames(raw_event)
            if raw_frames is None:
                log.debug(LogEventNames.TRACE_NOT_FOUND, event_id=self._event_id(raw_event))
                return None

            frames = tuple(
                frame
                for frame in (self._canonical_frame(raw) for raw in raw_frames)
                if frame is not None
            )
        except (AttributeError, TypeError, ValueError, KeyError, IndexError, OverflowError) as e:
            log.warning(LogEventNames.TRACE_PARSE_ERROR, error=str(e))
            return None

        repository_paths = tuple(
            dict.fromkeys(
                frame.filename for frame in frames if self.is_application_file(frame.filename)
            )
        )

        error_frame = next(
            (
                frame
                for frame in frames
                if frame.in_app and self.is_application_file(frame.filename)
            ),
            None,
        )
        error_location = (
            ErrorLocation(
                filename=error_frame.filename,
                lineno=error_frame.lineno,
                colno=error_frame.colno,
                function=error_frame.function,
            )
            if error_frame
            else None
        )

        log.debug(
            LogEventNames.TRACE_PARSED,
            frames_count=len(frames),
            repository_paths_count=len(repository_paths),
            has_error_location=error_location is not None,
        )

        return ParsedTrace(
            frames=frames,
            repository_paths=repository_paths,
            error_location=error_location,
        )

    def _find_raw_frames(self, raw_event: Any) -> list[Any] | None:
        """Return the frame list of the first exception, or None if absent."""
        if not isinstance(raw_event, Mapping):
            return None

        exception: Any = None
        entries = raw_event.get("entries")
        if isinstance(entries, list):
            exception = next(
                (
                    entry.get("data")
                    for entry in entries
                    if isinstance(entry, Mapping) and entry.get("type") == "exception"
                ),
                None,
            )
        if exception is None:
            exception = raw_event.get("exception")

        if not isinstance(exception, Mapping):
            return None

        values = exception.get("values")
        if not isinstance(values, list) or not values or not isinstance(values[0], Mapping):
            return None

        stacktrace = values[0].get("stacktrace")
        if not isinstance(stacktrace, Mapping):
            return None

        frames = stacktrace.get("frames")
        return frames if isinstance(frames, list) else None

    def _canonical_frame(self, raw: Any) -> CanonicalFrame | None:
        """Build a CanonicalFrame, or None for frames lacking a filename."""
        if not isinstance(raw, Mapping):
            return None

        filename = _optional_str(raw.get("filename"))
        if filename is None:
            return None

        return CanonicalFrame(
            filename=self.normalize_filename(filename),
            lineno=_optional_int(raw.get("lineno")) or 0,
            in_app=bool(raw.get("in_app")),
            function=_optional_str(raw.get("function")),
            colno=_optional_int(raw.get("colno")),
            module=_optional_str(raw.get("module")),
            package=_optional_str(raw.get("package")),
            abs_path=_optional_str(raw.get("abs_path")),
            context_line=_optional_str(raw.get("context_line")),
            pre_context=_str_tuple(raw.get("pre_context")),
            post_context=_str_tuple(raw.get("post_context")),
        )

    @staticmethod
    def _event_id(raw_event: Any) -> str | None:
        if isinstance(raw_event, Mapping):
            return _optional_str(
                raw_event.get("id") or raw_event.get("event_id") or raw_event.get("eventID")
            )
        return None

    @classmethod
    def normalize_filename(cls, filename: str) -> str:
        """Turn a raw frame filename into a repository-relative path.

        Examples:
            "https://cdn.example.com/static/js/app.js" -> "static/js/app.js"
            "webpack:///src/app/x.js" -> "x.js"
        """
        if not filename:
            return ""

        if filename.startswith(("http://", "https://")):
            try:
                filename = urlsplit(filename).path
            except ValueError:
                pass

        path = filename.replace("\\", "/")

        changed = True
        while changed:
            stripped = path.lstrip("/")
            changed = stripped != path
            path = stripped
            for prefix in cls.PREFIXES_TO_STRIP:
                if path.startswith(prefix):
                    path = path[len(prefix) :]
                    changed = True
                    break

        return path

    @classmethod
    def is_application_file(cls, path: str) -> bool:
        """True unless the path looks like vendored, bundled or runtime code.

        Matching is by substring anywhere in the path, so an application
        file named e.g. ``my_lodash_helpers.js`` is treated as vendor code.
        """
        if not path:
            return False
        if any(marker in path for marker in cls.VENDOR_MARKERS):
            return False
        if cls.MINIFIED_PATTERN.search(path):
            return False
        return not path.startswith(cls.INTERNAL_PREFIXES)

    @staticmethod
    def detect_language(frames: Iterable[CanonicalFrame]) -> str | None:
        """Dominant source language among the frames' file extensions."""
        return dominant_language(frame.filename for frame in frames)

    @classmethod
    def context_range(cls, lineno: int, context_lines: int | None = None) -> ContextRange:
        """Symmetric line range around ``lineno``; the start never drops below 1."""
        if context_lines is None:
            context_lines = cls.DEFAULT_CONTEXT_LINES
        return ContextRange(
            start_line=max(1, lineno - context_lines),
            end_line=lineno + context_lines,
        )
