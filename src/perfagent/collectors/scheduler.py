"""Sampling scheduler driving the telemetry pipeline.

This module provides the sampling loop: a single long-running asyncio task
that captures a snapshot every interval, appends it to the shared buffer,
and hands off a batch whenever the buffer reaches the batch size.

Key features:
- One unconditional warm-up capture before the schedule starts
- Fixed sleep between ticks, measured from the end of the previous tick
- At most one batch extracted per tick
- Batches delivered by detached tasks the loop never waits on
- Per-tick failures are logged and counted, never fatal to the loop
"""

import asyncio
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from enum import Enum
import logging
from typing import Any

from perfagent.collectors.base import SnapshotSource
from perfagent.collectors.buffer import SnapshotBuffer
from perfagent.models.base import Snapshot

logger = logging.getLogger(__name__)

# Type alias for the batch handler (e.g. Transmitter.deliver)
BatchHandler = Callable[[list[Snapshot]], Coroutine[Any, Any, Any]]


class SamplerState(str, Enum):
    """States of the sampling loop."""

    STOPPED = "stopped"
    IDLE = "idle"
    SAMPLING = "sampling"


@dataclass
class SamplerStats:
    """Statistics about the sampling loop.

    Attributes:
        running: Whether the loop is currently running
        state: Current loop state
        ticks: Number of completed ticks
        capture_failures: Ticks whose snapshot capture failed
        consecutive_capture_failures: Current run of failed captures
        batches_dispatched: Batches handed to the batch handler
        deliveries_in_flight: Dispatched batches whose handler has not finished
    """

    running: bool = False
    state: SamplerState = SamplerState.STOPPED
    ticks: int = 0
    capture_failures: int = 0
    consecutive_capture_failures: int = 0
    batches_dispatched: int = 0
    deliveries_in_flight: int = 0


class SamplingScheduler:
    """Runs the sample-buffer-dispatch loop.

    Example:
        scheduler = SamplingScheduler(source, buffer, transmitter.deliver,
                                      interval=60.0, batch_size=30)
        await scheduler.start()
        # ... later ...
        await scheduler.stop()
    """

    def __init__(
        self,
        source: SnapshotSource,
        buffer: SnapshotBuffer,
        handler: BatchHandler,
        *,
        interval: float = 60.0,
        batch_size: int = 30,
    ) -> None:
        """Initialize the scheduler.

        Args:
            source: Where snapshots come from
            buffer: Shared buffer snapshots are appended to
            handler: Coroutine function run as a detached task per batch
            interval: Seconds to sleep between ticks (must be positive)
            batch_size: Buffer length that triggers a batch (must be positive)

        Raises:
            ValueError: If interval or batch_size is not positive
        """
        if interval <= 0:
            raise ValueError("Interval must be positive")
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")

        self._source = source
        self._buffer = buffer
        self._handler = handler
        self._interval = interval
        self._batch_size = batch_size

        self._running = False
        self._state = SamplerState.STOPPED
        self._task: asyncio.Task[None] | None = None
        self._in_flight: set[asyncio.Task[None]] = set()

        # Statistics
        self._ticks = 0
        self._capture_failures = 0
        self._batches_dispatched = 0

    @property
    def running(self) -> bool:
        """Check if the sampling loop is running."""
        return self._running

    @property
    def state(self) -> SamplerState:
        """Get the current loop state."""
        return self._state

    @property
    def interval(self) -> float:
        """Get the sleep between ticks in seconds."""
        return self._interval

    @property
    def batch_size(self) -> int:
        """Get the batch size."""
        return self._batch_size

    async def start(self) -> None:
        """Take the warm-up sample and start the sampling loop.

        Does nothing if already running.
        """
        if self._running:
            return

        # Primes CPU deltas; this sample is not buffered
        result = await self._source.safe_collect()
        if not result.success:
            logger.warning("Warm-up capture failed: %s", result.error)

        self._running = True
        self._state = SamplerState.IDLE
        self._task = asyncio.create_task(self._sampling_loop(), name="sampling-loop")
        logger.info(
            "Sampling loop started (interval=%ss, batch_size=%d)",
            self._interval,
            self._batch_size,
        )

    async def stop(self, timeout: float = 5.0) -> None:
        """Stop the sampling loop.

        Deliveries already in flight are left running; they are abandoned
        if the process exits before they finish.

        Args:
            timeout: Maximum seconds to wait for the loop task to finish
        """
        if not self._running:
            return

        self._running = False

        if self._task is not None and not self._task.done():
            self._task.cancel()
            await asyncio.wait([self._task], timeout=timeout)
        self._task = None
        self._state = SamplerState.STOPPED

        logger.info(
            "Sampling loop stopped after %d ticks (%d deliveries in flight)",
            self._ticks,
            len(self._in_flight),
        )

    async def tick(self) -> list[Snapshot] | None:
        """Run one tick: capture, append, and dispatch a batch if due.

        Returns:
            The dispatched batch, or None if no batch was due this tick
        """
        self._state = SamplerState.SAMPLING
        try:
            result = await self._source.safe_collect()
            if not result.success or result.data is None:
                self._capture_failures += 1
                return None

            await self._buffer.append(result.data)

            batch = await self._buffer.take_batch(self._batch_size)
            if batch is not None:
                self._dispatch(batch)
            return batch
        finally:
            self._ticks += 1
            self._state = SamplerState.IDLE if self._running else SamplerState.STOPPED

    async def wait_for_deliveries(self, timeout: float | None = None) -> None:
        """Wait until the deliveries currently in flight have finished.

        Args:
            timeout: Maximum seconds to wait (None waits indefinitely)
        """
        if self._in_flight:
            await asyncio.wait(set(self._in_flight), timeout=timeout)

    async def get_stats(self) -> SamplerStats:
        """Get sampling loop statistics."""
        return SamplerStats(
            running=self._running,
            state=self._state,
            ticks=self._ticks,
            capture_failures=self._capture_failures,
            consecutive_capture_failures=self._source.consecutive_failures,
            batches_dispatched=self._batches_dispatched,
            deliveries_in_flight=len(self._in_flight),
        )

    async def _sampling_loop(self) -> None:
        """Sleep, tick, repeat until stopped."""
        while self._running:
            try:
                await asyncio.sleep(self._interval)
            except asyncio.CancelledError:
                break

            try:
                await self.tick()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Sampling tick failed")

    def _dispatch(self, batch: list[Snapshot]) -> None:
        """Hand a batch to the handler as a detached task."""
        self._batches_dispatched += 1
        task = asyncio.create_task(
            self._run_handler(batch),
            name=f"deliver-batch-{self._batches_dispatched}",
        )
        # Keep a reference so the task is not garbage collected mid-flight
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)
        logger.info("Dispatched batch %d (%d snapshots)", self._batches_dispatched, len(batch))

    async def _run_handler(self, batch: list[Snapshot]) -> None:
        """Run the batch handler; its failures stay inside this task."""
        try:
            await self._handler(batch)
        except Exception:
            logger.exception("Batch handler failed for batch of %d", len(batch))
