"""Unit tests for the Throttler decorator."""

from __future__ import annotations

import asyncio

import pytest
from conftest import FakeGeocoder, make_address

from gittrends_geocoder.pipeline.throttler import Throttler
from gittrends_geocoder.utils.cancellation import CancellationToken
from gittrends_geocoder.utils.errors import QueueTimeoutError, RequestCancelledError


async def _settle() -> None:
    for _ in range(5):
        await asyncio.sleep(0)


class TestThrottler:
    @pytest.mark.asyncio
    async def test_passes_results_through(self) -> None:
        address = make_address()
        throttler = Throttler(FakeGeocoder(results={"brazil": address}))
        assert await throttler.search("brazil") is address
        assert await throttler.search("unknown") is None

    @pytest.mark.asyncio
    async def test_limits_concurrency(self) -> None:
        inner = FakeGeocoder(delay=0.01)
        throttler = Throttler(inner, concurrency=2)
        await asyncio.gather(*(throttler.search(f"q{i}") for i in range(6)))
        assert inner.max_in_flight == 2
        assert len(inner.calls) == 6

    @pytest.mark.asyncio
    async def test_exposes_queue_counters(self) -> None:
        gate = asyncio.Event()
        throttler = Throttler(FakeGeocoder(name="photon", gate=gate), concurrency=1)
        tasks = [asyncio.create_task(throttler.search(q)) for q in ("a", "b", "c")]
        await _settle()

        assert throttler.pending == 1
        assert throttler.size == 2
        stats = throttler.get_stats()
        assert stats.name == "photon"

        gate.set()
        await asyncio.gather(*tasks)
        assert throttler.get_stats().completed == 3

    def test_provider_name_comes_from_wrapped_geocoder(self) -> None:
        throttler = Throttler(FakeGeocoder(name="openstreetmap"))
        assert throttler.get_provider_name() == "openstreetmap"

    @pytest.mark.asyncio
    async def test_cancelled_token_is_rejected_before_queueing(self) -> None:
        inner = FakeGeocoder()
        throttler = Throttler(inner)
        token = CancellationToken()
        token.cancel()
        with pytest.raises(RequestCancelledError):
            await throttler.search("brazil", cancellation=token)
        assert inner.calls == []

    @pytest.mark.asyncio
    async def test_request_cancelled_while_queued_never_runs(self) -> None:
        gate = asyncio.Event()
        inner = FakeGeocoder(gate=gate)
        throttler = Throttler(inner, concurrency=1)

        first = asyncio.create_task(throttler.search("first"))
        token = CancellationToken()
        second = asyncio.create_task(throttler.search("second", cancellation=token))
        await _settle()

        token.cancel("caller left")
        gate.set()
        await first
        with pytest.raises(RequestCancelledError):
            await second
        assert inner.calls == ["first"]

    @pytest.mark.asyncio
    async def test_timeout(self) -> None:
        throttler = Throttler(FakeGeocoder(delay=1), timeout=0.01)
        with pytest.raises(QueueTimeoutError):
            await throttler.search("slow")
        assert throttler.get_stats().timeouts == 1
