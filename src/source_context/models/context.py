"""Data models for assembled source context."""

from dataclasses import dataclass

from .trace import ParsedTrace


@dataclass(frozen=True)
class SourceLine:
    """One line of a source window."""

    number: int  # 1-indexed
    text: str
    is_error_line: bool = False


@dataclass(frozen=True)
class WindowLocation:
    """Error position attached to a source window."""

    line: int
    column: int | None = None
    function: str | None = None


@dataclass(frozen=True)
class SourceWindow:
    """A bounded run of consecutive lines from one file at one revision."""

    file_path: str
    revision: str
    start_line: int
    end_line: int
    lines: tuple[SourceLine, ...]
    size_bytes: int = 0  # Size of the whole file, not the window
    language_hint: str | None = None
    error_location: WindowLocation | None = None

    @property
    def line_count(self) -> int:
        """Number of lines in this window."""
        return len(self.lines)

    @property
    def highlighted_line(self) -> int | None:
        """Number of the highlighted error line, if it falls in the window."""
        for line in self.lines:
            if line.is_error_line:
                return line.number
        return None

    def render(self) -> str:
        """Render the window as numbered text, marking the error line with '>'."""
        width = len(str(self.end_line)) if self.lines else 1
        return "\n".join(
            f"{'>' if line.is_error_line else ' '} {line.number:>{width}} | {line.text}"
            for line in self.lines
        )


@dataclass(frozen=True)
class AnalysisContext:
    """Source excerpts assembled for one error report."""

    primary: SourceWindow
    related: tuple[SourceWindow, ...]
    repository_id: str
    revision: str
    trace: ParsedTrace | None = None

    @property
    def windows(self) -> tuple[SourceWindow, ...]:
        """All windows, primary first."""
        return (self.primary, *self.related)


@dataclass(frozen=True)
class BuildDiagnostics:
    """What happened during the most recent context build."""

    requested_files: int
    retrieved_files: int
    cache_hit_rate: float
    revision: str | None = None
    duration_seconds: float = 0.0
    outcome: str = "success"
