"""Data models for parsed stack traces."""

from dataclasses import dataclass


@dataclass(frozen=True)
class CanonicalFrame:
    """A single stack frame with a normalized, repository-relative filename."""

    filename: str
    lineno: int
    in_app: bool
    function: str | None = None
    colno: int | None = None
    module: str | None = None
    package: str | None = None
    abs_path: str | None = None
    context_line: str | None = None
    pre_context: tuple[str, ...] = ()
    post_context: tuple[str, ...] = ()


@dataclass(frozen=True)
class ErrorLocation:
    """Where the failure happened in application code."""

    filename: str
    lineno: int
    colno: int | None = None
    function: str | None = None


@dataclass(frozen=True)
class ParsedTrace:
    """Canonical form of the stack trace carried by an error report."""

    frames: tuple[CanonicalFrame, ...]
    repository_paths: tuple[str, ...]  # Application files, unique, first-seen order
    error_location: ErrorLocation | None = None

    @property
    def is_empty(self) -> bool:
        """True when the report had an exception entry but no usable frames."""
        return not self.frames

    @property
    def application_frames(self) -> tuple[CanonicalFrame, ...]:
        """Frames whose file is one of the repository paths."""
        paths = set(self.repository_paths)
        return tuple(frame for frame in self.frames if frame.filename in paths)


@dataclass(frozen=True)
class ContextRange:
    """Inclusive, 1-indexed line range around a point of interest."""

    start_line: int
    end_line: int

    @property
    def line_count(self) -> int:
        """Number of lines covered by the range."""
        return max(0, self.end_line - self.start_line + 1)
