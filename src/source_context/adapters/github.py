"""GitHub file fetcher using the REST API.

This module implements the FileFetcher protocol for GitHub on top of
httpx. Features:
- Repository name and file path validation before any request
- Missing files (404, directories, submodules) reported as None, never raised
- Retries with exponential backoff on timeouts and network errors
- Rate limit and authentication failures mapped to typed transport errors
- Short-lived memoization of branch heads to avoid repeated lookups
"""

from __future__ import annotations

import asyncio
import base64
import binascii
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import httpx
import structlog
from cachetools import TTLCache

from source_context.config.schema import GitHubConfig, RetryConfig
from source_context.utils.async_helpers import (
    AuthenticationError,
    RateLimitError,
    TransportError,
    create_retry,
)
from source_context.utils.logging import LogEventNames
from source_context.utils.security import (
    SecurityError,
    ValidationError,
    mask_config_value,
    validate_file_path,
    validate_repo_name,
)

if TYPE_CHECKING:
    from types import TracebackType

log = structlog.get_logger()

API_VERSION = "2022-11-28"
JSON_MEDIA_TYPE = "application/vnd.github+json"
RAW_MEDIA_TYPE = "application/vnd.github.raw+json"
USER_AGENT = "source-context-engine"


class GitHubFileFetcher:
    """GitHub implementation of the FileFetcher protocol.

    Example:
        config = GitHubConfig(repository="owner/repo", token="...")
        async with GitHubFileFetcher(config) as fetcher:
            sha = await fetcher.get_latest_revision()
            content = await fetcher.fetch_file("utils/helper.js", sha)
    """

    def __init__(
        self,
        config: GitHubConfig,
        retry_config: RetryConfig | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the fetcher.

        Args:
            config: GitHub-specific configuration.
            retry_config: Retry policy for transient errors. Defaults apply if None.
            client: HTTP client to use. If None, one is created and owned by
                the fetcher.

        Raises:
            SecurityError: If the repository name is invalid.
        """
        if not validate_repo_name(config.repository):
            raise SecurityError(f"Invalid repository name: {config.repository}")

        self._config = config
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=config.timeout)

        self._headers = {
            "Accept": JSON_MEDIA_TYPE,
            "X-GitHub-Api-Version": API_VERSION,
            "User-Agent": USER_AGENT,
        }
        if config.token:
            self._headers["Authorization"] = f"Bearer {config.token}"

        retry_config = retry_config or RetryConfig()
        self._get = create_retry(
            max_attempts=retry_config.max_attempts,
            min_wait=retry_config.initial_delay,
            max_wait=retry_config.max_delay,
        )(self._get_once)

        # branch -> head commit sha
        self._revision_cache: TTLCache[str, str] = TTLCache(
            maxsize=32,
            ttl=config.revision_cache_ttl,
        )
        self._revision_lock = asyncio.Lock()

        log.debug(
            "github_fetcher_initialized",
            repo=config.repository,
            api_url=config.api_url,
            token=mask_config_value("token", config.token or ""),
        )

    @property
    def repository(self) -> str:
        """Repository identifier in owner/repo form."""
        return self._config.repository

    async def __aenter__(self) -> GitHubFileFetcher:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the HTTP client if the fetcher created it."""
        if self._owns_client:
            await self._client.aclose()

    def _url(self, *parts: str) -> str:
        return "/".join([self._config.api_url, "repos", self._config.repository, *parts])

    async def _get_once(
        self,
        url: str,
        params: dict[str, str] | None = None,
        accept: str = JSON_MEDIA_TYPE,
    ) -> httpx.Response:
        headers = {**self._headers, "Accept": accept}
        return await self._client.get(url, params=params, headers=headers)

    async def _request(
        self,
        url: str,
        params: dict[str, str] | None = None,
        accept: str = JSON_MEDIA_TYPE,
    ) -> httpx.Response:
        """GET with retries; transport exceptions become TransportError."""
        try:
            return await self._get(url, params=params, accept=accept)
        except httpx.HTTPError as e:
            log.error("github_request_failed", url=url, error_type=type(e).__name__, error=str(e))
            raise TransportError(f"GitHub request failed: {e}") from e

    def _raise_for_status(self, response: httpx.Response) -> None:
        """Map an error response to a typed transport error.

        Raises:
            AuthenticationError: On 401.
            RateLimitError: On 429, or 403 with an exhausted rate limit.
            TransportError: On any other error status.
        """
        status = response.status_code
        if status < 400:
            return

        if status == 401:
            raise AuthenticationError(f"GitHub authentication failed: {response.text[:200]}")

        if status == 429 or (
            status == 403
            and (
                response.headers.get("x-ratelimit-remaining") == "0"
                or "retry-after" in response.headers
            )
        ):
            retry_after = self._retry_after(response)
            log.warning(
                "rate_limit_hit",
                repo=self._config.repository,
                retry_after=retry_after,
            )
            raise RateLimitError("GitHub rate limit exceeded", retry_after=retry_after)

        raise TransportError(f"GitHub returned {status}: {response.text[:200]}")

    @staticmethod
    def _retry_after(response: httpx.Response) -> int | None:
        value = response.headers.get("retry-after")
        if value and value.isdigit():
            return int(value)
        return None

    async def fetch_file(self, path: str, revision: str) -> str | None:
        """Fetch the text of a file at a revision.

        Args:
            path: Path relative to the repository root.
            revision: Commit SHA (or any git ref).

        Returns:
            File contents, or None if the path is not a file at that revision.

        Raises:
            TransportError: On authentication, rate limit or network failure.
        """
        try:
            safe_path = validate_file_path(path)
        except ValidationError as e:
            log.warning("invalid_file_path_rejected", file_path=path, error=str(e))
            return None

        url = self._url("contents", quote(safe_path, safe="/"))
        response = await self._request(url, params={"ref": revision})

        if response.status_code == 404:
            log.debug(LogEventNames.FILE_NOT_FOUND, file_path=path, revision=revision[:8])
            return None
        self._raise_for_status(response)

        data = response.json()
        if not isinstance(data, dict) or data.get("type") != "file":
            # Directory listings, symlinks and submodules are not source files
            return None

        content = self._decode_content(data)
        if content is None:
            # Files over 1 MB come back without inline content
            raw = await self._request(url, params={"ref": revision}, accept=RAW_MEDIA_TYPE)
            if raw.status_code == 404:
                return None
            self._raise_for_status(raw)
            content = raw.text

        log.debug(
            LogEventNames.FILE_FETCHED,
            file_path=path,
            revision=revision[:8],
            size=len(content),
        )
        return content

    @staticmethod
    def _decode_content(data: dict[str, Any]) -> str | None:
        """Decode inline base64 content, or None when GitHub omitted it."""
        encoded = data.get("content")
        if data.get("encoding") != "base64" or not isinstance(encoded, str):
            return None
        try:
            return base64.b64decode(encoded).decode("utf-8", errors="replace")
        except (binascii.Error, ValueError):
            return None

    async def get_latest_revision(self, branch: str | None = None) -> str:
        """Resolve the head commit of a branch.

        Args:
            branch: Branch name. Uses the configured default branch if None.

        Returns:
            Full commit SHA.

        Raises:
            TransportError: If the branch cannot be resolved.
        """
        ref = branch or self._config.default_branch

        cached = self._revision_cache.get(ref)
        if cached is not None:
            return cached

        async with self._revision_lock:
            cached = self._revision_cache.get(ref)
            if cached is not None:
                return cached

            response = await self._request(self._url("commits", quote(ref, safe="")))
            self._raise_for_status(response)

            sha = response.json().get("sha")
            if not isinstance(sha, str) or not sha:
                raise TransportError(f"GitHub returned no commit SHA for {ref}")

            self._revision_cache[ref] = sha
            log.info("latest_revision_fetched", repo=self._config.repository, branch=ref, sha=sha[:8])
            return sha
