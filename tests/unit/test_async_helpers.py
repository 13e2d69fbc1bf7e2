"""Tests for the error taxonomy and retry helpers."""

from __future__ import annotations

import httpx
import pytest

from source_context.utils.async_helpers import (
    AuthenticationError,
    EngineError,
    FetcherNotReadyError,
    NoApplicationFilesError,
    NoFilesRetrievedError,
    NoStackTraceError,
    RateLimitError,
    SourceContextError,
    TransportError,
    create_retry,
)


class TestCustomExceptions:
    """Test the exception hierarchy."""

    @pytest.mark.parametrize(
        "exc_type",
        [NoStackTraceError, NoApplicationFilesError, NoFilesRetrievedError],
    )
    def test_build_errors(self, exc_type: type[Exception]) -> None:
        """Test build failures share SourceContextError."""
        error = exc_type("nope")
        assert isinstance(error, SourceContextError)
        assert isinstance(error, EngineError)
        assert not isinstance(error, TransportError)

    @pytest.mark.parametrize(
        "exc_type",
        [AuthenticationError, RateLimitError, FetcherNotReadyError],
    )
    def test_transport_errors(self, exc_type: type[Exception]) -> None:
        """Test fetcher failures share TransportError."""
        assert issubclass(exc_type, TransportError)
        assert issubclass(exc_type, EngineError)
        assert not issubclass(exc_type, SourceContextError)

    def test_rate_limit_error_with_retry_after(self) -> None:
        """Test RateLimitError carries retry_after."""
        error = RateLimitError("Rate limited", retry_after=60)
        assert str(error) == "Rate limited"
        assert error.retry_after == 60

    def test_rate_limit_error_without_retry_after(self) -> None:
        """Test RateLimitError without retry_after."""
        assert RateLimitError("Rate limited").retry_after is None


class TestRetryDecorator:
    """Test retry decorator functionality."""

    async def test_retries_on_network_error(self) -> None:
        """Test retry on httpx.NetworkError."""
        call_count = 0

        @create_retry(max_attempts=3, min_wait=0, max_wait=0)
        async def flaky_call() -> str:
            nonlocal call_count
            call_count += 1
            if call_count < 3:
                raise httpx.NetworkError("network error")
            return "success"

        assert await flaky_call() == "success"
        assert call_count == 3

    async def test_gives_up_after_max_attempts(self) -> None:
        """Test that retry stops after max attempts and reraises."""
        call_count = 0

        @create_retry(max_attempts=2, min_wait=0, max_wait=0)
        async def always_fails() -> str:
            nonlocal call_count
            call_count += 1
            raise httpx.ReadTimeout("always timeout")

        with pytest.raises(httpx.TimeoutException):
            await always_fails()
        assert call_count == 2

    async def test_does_not_retry_http_status(self) -> None:
        """Test that mapped transport errors are not retried."""
        call_count = 0

        @create_retry(max_attempts=3, min_wait=0, max_wait=0)
        async def unauthorized() -> str:
            nonlocal call_count
            call_count += 1
            raise AuthenticationError("bad credentials")

        with pytest.raises(AuthenticationError):
            await unauthorized()
        assert call_count == 1

    async def test_custom_retry_on(self) -> None:
        """Test retrying on caller-chosen exception types."""
        call_count = 0

        @create_retry(max_attempts=2, min_wait=0, max_wait=0, retry_on=(ValueError,))
        async def custom_flaky() -> str:
            nonlocal call_count
            call_count += 1
            if call_count < 2:
                raise ValueError("retry me")
            return "success"

        assert await custom_flaky() == "success"
        assert call_count == 2
