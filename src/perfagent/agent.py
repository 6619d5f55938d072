"""Telemetry agent assembly.

TelemetryAgent wires the pipeline together from a Config: one snapshot
source, one shared buffer, one sent counter, one transmitter and one
sampling scheduler. There is no module-level state; every collaborator is
owned by the agent instance and passed explicitly.

Example:
    agent = TelemetryAgent(load_config())
    await agent.run_forever()
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
import logging
import signal

from perfagent.collectors import HostSnapshotSource, SamplingScheduler, SnapshotBuffer, SnapshotSource
from perfagent.config import Config
from perfagent.delivery import SentCounter, Transmitter
from perfagent.models import BufferStatus, Snapshot

logger = logging.getLogger(__name__)

StatusCallback = Callable[[BufferStatus], None]


class TelemetryAgent:
    """Owns and runs the sample-buffer-deliver pipeline.

    Attributes:
        config: Effective configuration
        source: Snapshot source sampled every tick
        buffer: Shared snapshot buffer
        counter: Total of successfully delivered snapshots
        transmitter: HTTP delivery of batches
        scheduler: Sampling loop
    """

    def __init__(
        self,
        config: Config,
        *,
        source: SnapshotSource | None = None,
        transmitter: Transmitter | None = None,
    ) -> None:
        """Build the pipeline.

        Args:
            config: Agent configuration
            source: Snapshot source (default: HostSnapshotSource)
            transmitter: Batch transmitter (default: built from config.delivery)
        """
        self.config = config
        self.buffer = SnapshotBuffer()
        self.source = source or HostSnapshotSource(include_network=config.sampling.include_network)

        if transmitter is None:
            self.counter = SentCounter()
            transmitter = Transmitter(
                config.delivery.server_url,
                self.counter,
                compress=config.delivery.compress,
                timeout=config.delivery.timeout,
                history_size=config.delivery.history_size,
            )
        else:
            self.counter = transmitter.counter
        self.transmitter = transmitter

        self.scheduler = SamplingScheduler(
            self.source,
            self.buffer,
            self.transmitter.deliver,
            interval=config.sampling.interval,
            batch_size=config.sampling.batch_size,
        )
        self._stop_event: asyncio.Event | None = None

    @property
    def running(self) -> bool:
        """Check if the sampling loop is running."""
        return self.scheduler.running

    async def start(self) -> None:
        """Start sampling (warm-up capture, then the scheduled loop)."""
        logger.info(
            "Agent starting: server=%s interval=%ss batch_size=%d compress=%s",
            self.config.delivery.server_url,
            self.config.sampling.interval,
            self.config.sampling.batch_size,
            self.config.delivery.compress,
        )
        await self.scheduler.start()

    async def stop(self) -> None:
        """Stop sampling and close the HTTP session.

        Buffered snapshots and in-flight deliveries are abandoned.
        """
        await self.scheduler.stop()
        await self.transmitter.close()
        logger.info("Agent stopped")

    def request_stop(self) -> None:
        """Ask run_forever() to return. Safe to call from a signal handler."""
        if self._stop_event is not None and not self._stop_event.is_set():
            logger.info("Shutdown requested")
            self._stop_event.set()

    async def current_snapshot(self) -> Snapshot:
        """Capture one fresh snapshot without touching the buffer.

        Raises:
            Exception: Whatever the source raised if capture failed
        """
        return await self.source.collect()

    async def status(self) -> BufferStatus:
        """Report the last buffered snapshot, buffer length and total sent.

        Last item and length come from one buffer lock acquisition; the
        total is read separately and may be from a slightly different moment.
        """
        last, size = await self.buffer.snapshot_state()
        total = await self.counter.value()
        logger.debug("Status read: buffer_size=%d total_sent=%d", size, total)
        return BufferStatus(last_item=last, buffer_size=size, total_sent=total)

    async def run_forever(
        self,
        *,
        on_status: StatusCallback | None = None,
        status_every: float | None = None,
    ) -> None:
        """Run until SIGINT/SIGTERM or request_stop().

        Args:
            on_status: Called with the Status View every status_every seconds
            status_every: Reporting period in seconds (None disables reporting)
        """
        self._stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        installed: list[signal.Signals] = []
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.request_stop)
                installed.append(sig)
            except (NotImplementedError, RuntimeError):
                # Not available on this platform or outside the main thread
                logger.debug("Cannot install handler for %s", sig.name)

        await self.start()
        try:
            while not self._stop_event.is_set():
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=status_every)
                except TimeoutError:
                    if on_status is not None:
                        on_status(await self.status())
        finally:
            for sig in installed:
                loop.remove_signal_handler(sig)
            await self.stop()
            self._stop_event = None
