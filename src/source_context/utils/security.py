"""Secret redaction and input validation.

Redaction is fail-closed: if a pattern cannot be compiled or applied, a
RedactionError is raised instead of returning text that may still carry a
secret. Source excerpts pulled from repositories and every log entry pass
through SecretRedactor before they leave the process.
"""

from __future__ import annotations

import posixpath
import re
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from collections.abc import Sequence

log = structlog.get_logger()


class SecurityError(Exception):
    """Base exception for security-related errors."""


class RedactionError(SecurityError):
    """Raised when secret redaction fails."""


class ValidationError(SecurityError):
    """Raised when input validation fails."""


REPO_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9_.-]+/[a-zA-Z0-9_.-]+$")

# Characters that never belong in a repository identifier or a file path
# sent to the repository host.
FORBIDDEN_CHARACTERS = frozenset([";", "|", "&", "`", "$", "<", ">", "\n", "\r", "\t", "\x00"])


class SecretRedactor:
    """Detects and redacts secrets from text.

    Usage:
        redactor = SecretRedactor()
        safe_text = redactor.redact(source_line)
    """

    DEFAULT_PATTERNS: tuple[tuple[str, str], ...] = (
        (
            r"(?i)(api[_-]?key|secret|token|password|credential)\s*[=:]\s*[\"']?[\w-]{16,}",
            "Generic secret",
        ),
        (r"xox[baprs]-[\w-]+", "Slack token"),
        (r"ghp_[a-zA-Z0-9]{36}", "GitHub PAT"),
        (r"github_pat_[a-zA-Z0-9_]{22,}", "GitHub fine-grained PAT"),
        (r"gh[osur]_[a-zA-Z0-9]{36}", "GitHub app token"),
        (r"sk-[a-zA-Z0-9]{48}", "OpenAI legacy API key"),
        (r"sk-proj-[a-zA-Z0-9]{20,}", "OpenAI project API key"),
        (r"sk-ant-[\w-]{40,}", "Anthropic API key"),
        (r"AKIA[0-9A-Z]{16}", "AWS access key ID"),
        (r"AIza[0-9A-Za-z\-_]{35}", "Google API key"),
        (r"sk_live_[a-zA-Z0-9]{24,}", "Stripe secret key"),
        (
            r"(?i)(postgres(?:ql)?|mysql|mongodb(?:\+srv)?|redis|amqp)://[^:\s]+:[^@\s]+@[^\s]+",
            "Database connection string",
        ),
        (
            r"-----BEGIN (?:RSA |EC |DSA |OPENSSH )?PRIVATE KEY-----",
            "Private key header",
        ),
        (r"eyJ[a-zA-Z0-9_-]*\.eyJ[a-zA-Z0-9_-]*\.[a-zA-Z0-9_-]*", "JWT token"),
        (r"https://[^/\s]+@sentry\.io/\d+", "Sentry DSN"),
    )

    def __init__(
        self,
        placeholder: str = "[REDACTED]",
        custom_patterns: Sequence[tuple[str, str]] | None = None,
    ) -> None:
        """Initialize the SecretRedactor.

        Args:
            placeholder: String to replace detected secrets with.
            custom_patterns: Additional (pattern, name) tuples to detect.

        Raises:
            RedactionError: If any pattern fails to compile.
        """
        self.placeholder = placeholder
        self._pattern_names: dict[re.Pattern[str], str] = {}

        all_patterns = list(self.DEFAULT_PATTERNS)
        if custom_patterns:
            all_patterns.extend(custom_patterns)

        for pattern_str, name in all_patterns:
            try:
                self._pattern_names[re.compile(pattern_str)] = name
            except re.error as e:
                log.error("pattern_compilation_failed", pattern=pattern_str, error=str(e))
                raise RedactionError(f"Failed to compile secret pattern '{pattern_str}': {e}") from e

    @property
    def patterns(self) -> list[re.Pattern[str]]:
        """Return the list of compiled patterns."""
        return list(self._pattern_names)

    def redact(self, text: str) -> str:
        """Replace every detected secret in ``text`` with the placeholder.

        Raises:
            RedactionError: If redaction fails for any reason.
        """
        if not text:
            return text

        try:
            for pattern in self._pattern_names:
                text = pattern.sub(self.placeholder, text)
            return text
        except Exception as e:
            log.error("redaction_failed", error=str(e))
            raise RedactionError(f"Redaction failed: {e}") from e

    def has_secrets(self, text: str) -> bool:
        """Check if text contains any secrets."""
        if not text:
            return False
        return any(pattern.search(text) for pattern in self._pattern_names)


def validate_repo_name(repo: str) -> bool:
    """Validate that a repository name looks like ``owner/repo``.

    Args:
        repo: The repository name to validate.

    Returns:
        True if the repository name is valid, False otherwise.
    """
    if not repo:
        return False

    if any(char in repo for char in FORBIDDEN_CHARACTERS):
        return False

    return bool(REPO_NAME_PATTERN.match(repo))


def validate_file_path(file_path: str) -> str:
    """Validate a repository-relative file path before it is sent upstream.

    Args:
        file_path: Path relative to the repository root.

    Returns:
        The normalized path.

    Raises:
        ValidationError: If the path is empty, absolute, escapes the
            repository root, or carries control characters.
    """
    if not file_path or any(char in file_path for char in FORBIDDEN_CHARACTERS):
        raise ValidationError(f"Invalid file path: {file_path!r}")

    normalized = posixpath.normpath(file_path)
    if normalized.startswith(("/", "..")) or normalized == ".":
        raise ValidationError(f"Path traversal detected: {file_path!r}")

    return normalized


def mask_config_value(key: str, value: str) -> str:
    """Mask sensitive config values for logging."""
    sensitive_keys = {"token", "key", "secret", "password", "credential"}

    if any(s in key.lower() for s in sensitive_keys):
        if len(value) > 8:
            return f"{value[:4]}...{value[-4:]}"
        return "***"

    return value
