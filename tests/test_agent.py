"""Tests for TelemetryAgent assembly, status view and lifecycle."""

import asyncio
from collections.abc import AsyncIterator

from aiohttp import web
from aiohttp.test_utils import TestServer
import pytest
import pytest_asyncio

from perfagent.agent import TelemetryAgent
from perfagent.collectors import HostSnapshotSource
from perfagent.config import Config, DeliveryConfig, SamplingConfig
from perfagent.delivery import SentCounter, Transmitter
from perfagent.models import BufferStatus
from tests.conftest import StubSource, build_snapshot


@pytest_asyncio.fixture
async def collector_url() -> AsyncIterator[str]:
    """Run a collector that accepts everything."""

    async def accept(request: web.Request) -> web.Response:
        await request.read()
        return web.Response(status=200)

    app = web.Application()
    app.router.add_post("/api/monitor", accept)
    server = TestServer(app)
    await server.start_server()
    try:
        yield str(server.make_url("/api/monitor"))
    finally:
        await server.close()


def _config(url: str = "http://127.0.0.1:1/api/monitor", *, batch_size: int = 3, interval: float = 60.0) -> Config:
    return Config(
        sampling=SamplingConfig(interval=interval, batch_size=batch_size),
        delivery=DeliveryConfig(server_url=url),
    )


class TestAgentAssembly:
    """Tests for building the pipeline from config."""

    @pytest.mark.asyncio
    async def test_default_parts(self) -> None:
        """Test the agent builds a host source and a configured transmitter."""
        config = Config(
            sampling=SamplingConfig(include_network=False, batch_size=7, interval=2),
            delivery=DeliveryConfig(server_url="http://collector.test/ingest", compress=False),
        )
        agent = TelemetryAgent(config)

        assert isinstance(agent.source, HostSnapshotSource)
        assert agent.source.include_network is False
        assert agent.transmitter.server_url == "http://collector.test/ingest"
        assert agent.transmitter.compress is False
        assert agent.transmitter.counter is agent.counter
        assert agent.scheduler.batch_size == 7
        assert agent.scheduler.interval == 2
        assert agent.running is False

    @pytest.mark.asyncio
    async def test_injected_transmitter_counter(self) -> None:
        """Test the status view reads the injected transmitter's counter."""
        counter = SentCounter()
        await counter.add(11)
        transmitter = Transmitter("http://collector.test/ingest", counter)

        agent = TelemetryAgent(_config(), source=StubSource(), transmitter=transmitter)

        assert (await agent.status()).total_sent == 11


class TestStatusView:
    """Tests for the status and fresh-snapshot queries."""

    @pytest.mark.asyncio
    async def test_empty_status(self) -> None:
        """Test the status of an agent that has not sampled yet."""
        agent = TelemetryAgent(_config(), source=StubSource())

        assert await agent.status() == BufferStatus(last_item=None, buffer_size=0, total_sent=0)

    @pytest.mark.asyncio
    async def test_status_after_delivery(self, collector_url: str) -> None:
        """Test buffered length, last item and total sent after one batch."""
        agent = TelemetryAgent(_config(collector_url, batch_size=3), source=StubSource())

        for _ in range(4):
            await agent.scheduler.tick()
        await agent.scheduler.wait_for_deliveries(timeout=5)
        status = await agent.status()
        await agent.stop()

        assert status.buffer_size == 1
        assert status.last_item == build_snapshot(3)
        assert status.total_sent == 3

    @pytest.mark.asyncio
    async def test_failed_delivery_not_counted(self) -> None:
        """Test a batch the collector never received is not counted or requeued."""
        agent = TelemetryAgent(_config(batch_size=2), source=StubSource())

        for _ in range(2):
            await agent.scheduler.tick()
        await agent.scheduler.wait_for_deliveries(timeout=10)
        status = await agent.status()
        await agent.stop()

        assert status.total_sent == 0
        assert status.buffer_size == 0
        assert agent.transmitter.recent_outcomes[0].success is False

    @pytest.mark.asyncio
    async def test_current_snapshot_leaves_buffer_alone(self) -> None:
        """Test a fresh snapshot is captured without buffering it."""
        source = StubSource()
        agent = TelemetryAgent(_config(), source=source)

        snapshot = await agent.current_snapshot()

        assert snapshot == build_snapshot(0)
        assert source.calls == 1
        assert (await agent.status()).buffer_size == 0


class TestLifecycle:
    """Tests for start/stop and run_forever."""

    @pytest.mark.asyncio
    async def test_start_stop(self) -> None:
        """Test start runs the loop and stop ends it."""
        agent = TelemetryAgent(_config(), source=StubSource())

        await agent.start()
        assert agent.running is True
        await agent.stop()
        assert agent.running is False

    @pytest.mark.asyncio
    async def test_run_forever_until_requested(self, collector_url: str) -> None:
        """Test run_forever reports status periodically and returns on request."""
        agent = TelemetryAgent(_config(collector_url, batch_size=2, interval=0.1), source=StubSource())
        statuses: list[BufferStatus] = []

        def on_status(status: BufferStatus) -> None:
            statuses.append(status)
            if len(statuses) >= 3:
                agent.request_stop()

        await asyncio.wait_for(agent.run_forever(on_status=on_status, status_every=0.25), timeout=10)

        assert len(statuses) >= 3
        assert agent.running is False
        stats = await agent.scheduler.get_stats()
        assert stats.ticks > 0

    @pytest.mark.asyncio
    async def test_request_stop_before_run_is_noop(self) -> None:
        """Test request_stop outside run_forever does nothing."""
        agent = TelemetryAgent(_config(), source=StubSource())
        agent.request_stop()
        assert agent.running is False
