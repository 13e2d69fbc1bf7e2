"""Tests for the deferred file fetcher."""

from __future__ import annotations

import pytest
from conftest import HEAD_REVISION, FakeFetcher

from source_context.adapters.deferred import DeferredFileFetcher, Ready, Uninitialized
from source_context.interfaces.fetcher import FileFetcher
from source_context.utils.async_helpers import FetcherNotReadyError, TransportError


class TestDeferredFileFetcher:
    """Test state transitions of the deferred fetcher."""

    def test_starts_uninitialized(self) -> None:
        """Test a new fetcher is not ready."""
        deferred = DeferredFileFetcher()

        assert deferred.state == Uninitialized()
        assert not deferred.is_ready
        assert isinstance(deferred, FileFetcher)

    async def test_calls_fail_before_activation(self) -> None:
        """Test both operations raise FetcherNotReadyError while uninitialized."""
        deferred = DeferredFileFetcher()

        with pytest.raises(FetcherNotReadyError):
            await deferred.fetch_file("a.js", "abc1234")
        with pytest.raises(FetcherNotReadyError):
            await deferred.get_latest_revision()

    def test_not_ready_is_transport_error(self) -> None:
        """Test builders treat the not-ready state like any transport failure."""
        assert issubclass(FetcherNotReadyError, TransportError)

    async def test_delegates_after_activation(self) -> None:
        """Test calls reach the activated fetcher."""
        inner = FakeFetcher(files={"a.js": "let a = 1"})
        deferred = DeferredFileFetcher()

        deferred.activate(inner)

        assert deferred.is_ready
        assert deferred.state == Ready(inner)
        assert await deferred.fetch_file("a.js", "abc1234") == "let a = 1"
        assert await deferred.get_latest_revision("main") == HEAD_REVISION
        assert inner.fetch_calls == [("a.js", "abc1234")]

    async def test_reactivation_replaces_fetcher(self) -> None:
        """Test activating again swaps the delegate."""
        first = FakeFetcher(files={"a.js": "first"})
        second = FakeFetcher(files={"a.js": "second"})
        deferred = DeferredFileFetcher()

        deferred.activate(first)
        deferred.activate(second)

        assert await deferred.fetch_file("a.js", "abc1234") == "second"
        assert first.fetch_calls == []

    async def test_reset(self) -> None:
        """Test reset returns to the uninitialized state."""
        deferred = DeferredFileFetcher()
        deferred.activate(FakeFetcher())

        deferred.reset()

        assert not deferred.is_ready
        with pytest.raises(FetcherNotReadyError):
            await deferred.fetch_file("a.js", "abc1234")
