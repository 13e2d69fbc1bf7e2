"""File-extension based language detection."""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from pathlib import PurePosixPath

LANGUAGE_BY_EXTENSION: dict[str, str] = {
    "js": "javascript",
    "jsx": "javascript",
    "mjs": "javascript",
    "cjs": "javascript",
    "ts": "typescript",
    "tsx": "typescript",
    "py": "python",
    "java": "java",
    "go": "go",
    "rb": "ruby",
    "php": "php",
    "cs": "csharp",
    "cpp": "cpp",
    "cc": "cpp",
    "hpp": "cpp",
    "c": "c",
    "h": "c",
    "rs": "rust",
    "kt": "kotlin",
    "swift": "swift",
    "dart": "dart",
    "scala": "scala",
    "clj": "clojure",
    "ex": "elixir",
    "exs": "elixir",
    "hs": "haskell",
    "ml": "ocaml",
    "fs": "fsharp",
    "vb": "vbnet",
    "lua": "lua",
    "r": "r",
    "jl": "julia",
    "zig": "zig",
}


def file_extension(path: str) -> str | None:
    """Return the lowercased extension of ``path`` without the dot.

    Dotfiles such as ``.eslintrc`` have no extension.
    """
    suffix = PurePosixPath(path).suffix
    return suffix[1:].lower() if len(suffix) > 1 else None


def language_for_extension(extension: str) -> str:
    """Map an extension to a language name, falling back to the extension."""
    return LANGUAGE_BY_EXTENSION.get(extension, extension)


def language_for_path(path: str) -> str | None:
    """Language hint for a single file."""
    extension = file_extension(path)
    return language_for_extension(extension) if extension else None


def dominant_language(paths: Iterable[str]) -> str | None:
    """Language of the most frequent extension; ties go to the first seen."""
    counts = Counter(ext for ext in map(file_extension, paths) if ext)
    if not counts:
        return None
    # most_common keeps first-insertion order among equal counts
    extension, _ = counts.most_common(1)[0]
    return language_for_extension(extension)
