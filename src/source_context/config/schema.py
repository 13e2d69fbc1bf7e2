"""Pydantic models for configuration schema."""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Remote fan-out per report never exceeds this many files
MAX_CANDIDATE_FILES = 10


class GitHubConfig(BaseModel):
    """GitHub-specific configuration."""

    repository: str
    default_branch: str = "main"
    api_url: str = "https://api.github.com"
    token: str | None = None
    timeout: float = Field(30.0, gt=0, le=300)
    revision_cache_ttl: int = Field(60, ge=0, description="Seconds to memoize latest revision")

    @field_validator("repository")
    @classmethod
    def validate_repository(cls, v: str) -> str:
        """Validate repository name format."""
        from ..utils.security import validate_repo_name

        if not validate_repo_name(v):
            raise ValueError(f"Invalid repository format: {v}. Expected: owner/repo")
        return v

    @field_validator("api_url")
    @classmethod
    def validate_api_url(cls, v: str) -> str:
        """Require an http(s) API base URL without a trailing slash."""
        if not v.startswith(("https://", "http://")):
            raise ValueError(f"API URL must be http(s): {v}")
        return v.rstrip("/")


class CacheConfig(BaseModel):
    """File cache bounds."""

    max_bytes: int = Field(50 * 1024 * 1024, ge=1024)
    max_entries: int = Field(1000, ge=1)
    ttl_seconds: float = Field(30 * 60, gt=0)


class ContextConfig(BaseModel):
    """Source window configuration."""

    context_lines: int = Field(10, ge=1, le=100)
    max_files: int = Field(MAX_CANDIDATE_FILES, ge=1, le=MAX_CANDIDATE_FILES)
    redact_secrets: bool = True


class FileLoggingConfig(BaseModel):
    """File logging configuration."""

    enabled: bool = False
    path: Path = Path("/var/log/source-context/engine.log")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["json", "console"] = "json"
    file: FileLoggingConfig = FileLoggingConfig()


class RetryConfig(BaseModel):
    """Retry configuration for transient transport failures."""

    max_attempts: int = Field(3, ge=1, le=10)
    initial_delay: float = Field(1.0, ge=0.0, le=10.0)
    max_delay: float = Field(30.0, ge=0.0, le=300.0)


class EngineConfig(BaseSettings):
    """Root configuration for the source context engine."""

    github: GitHubConfig
    cache: CacheConfig = CacheConfig()
    context: ContextConfig = ContextConfig()
    logging: LoggingConfig = LoggingConfig()
    retry: RetryConfig = RetryConfig()

    model_config = SettingsConfigDict(
        env_prefix="SOURCE_CONTEXT_",
        env_file=".env",
        env_nested_delimiter="__",
    )
