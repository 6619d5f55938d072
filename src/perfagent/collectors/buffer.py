"""In-memory snapshot buffer shared by the sampling and draining paths.

This module provides an asyncio-safe FIFO buffer for captured snapshots.
Appends happen at the back, batches are drained from the front, and every
operation runs under a single lock so the length check and the drain that
depends on it can never interleave with an append.
"""

import asyncio
from collections import deque
from dataclasses import dataclass
from datetime import datetime
import logging

from perfagent.models.base import Snapshot

logger = logging.getLogger(__name__)


class InsufficientDataError(Exception):
    """Raised when draining more snapshots than the buffer holds."""

    def __init__(self, requested: int, available: int) -> None:
        self.requested = requested
        self.available = available
        super().__init__(
            f"Cannot drain {requested} snapshots, only {available} buffered"
        )


@dataclass
class BufferStats:
    """Statistics about buffer state and usage.

    Attributes:
        current_size: Number of snapshots currently buffered
        total_added: Total snapshots ever appended
        total_drained: Total snapshots removed by drains
        oldest_timestamp: Capture time of the oldest snapshot (if any)
        newest_timestamp: Capture time of the newest snapshot (if any)
    """

    current_size: int = 0
    total_added: int = 0
    total_drained: int = 0
    oldest_timestamp: datetime | None = None
    newest_timestamp: datetime | None = None


class SnapshotBuffer:
    """Asyncio-safe FIFO buffer of snapshots.

    The buffer has no capacity limit: under a sustained delivery backlog it
    grows until batches are extracted again.

    All public methods are async and take the same lock, so exactly one
    operation runs against the buffer at a time.

    Example:
        buffer = SnapshotBuffer()
        await buffer.append(snapshot)
        batch = await buffer.take_batch(30)  # None until 30 are buffered
    """

    def __init__(self) -> None:
        """Initialize an empty buffer."""
        self._buffer: deque[Snapshot] = deque()
        self._lock = asyncio.Lock()

        # Statistics
        self._total_added = 0
        self._total_drained = 0

    async def append(self, snapshot: Snapshot) -> None:
        """Add a snapshot to the end of the buffer.

        Args:
            snapshot: The snapshot to store
        """
        async with self._lock:
            self._buffer.append(snapshot)
            self._total_added += 1

    async def drain_front(self, n: int) -> list[Snapshot]:
        """Remove and return the first n snapshots.

        Args:
            n: Number of snapshots to remove (must be positive)

        Returns:
            The removed snapshots, oldest first

        Raises:
            ValueError: If n is not positive
            InsufficientDataError: If fewer than n snapshots are buffered;
                the buffer is left unchanged
        """
        if n <= 0:
            raise ValueError("n must be positive")

        async with self._lock:
            return self._drain_front(n)

    async def take_batch(self, batch_size: int) -> list[Snapshot] | None:
        """Extract one batch if the buffer has reached the threshold.

        The length check and the drain run in one critical section.

        Args:
            batch_size: Threshold and batch length (must be positive)

        Returns:
            A detached list of batch_size snapshots, or None if fewer are buffered
        """
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")

        async with self._lock:
            if len(self._buffer) < batch_size:
                return None
            batch = self._drain_front(batch_size)
            remaining = len(self._buffer)

        logger.debug("Extracted batch of %d snapshots, %d remain buffered", len(batch), remaining)
        return batch

    async def size(self) -> int:
        """Get the current number of buffered snapshots."""
        async with self._lock:
            return len(self._buffer)

    async def peek_last(self) -> Snapshot | None:
        """Get the most recently appended snapshot.

        Returns:
            The newest Snapshot, or None if the buffer is empty
        """
        async with self._lock:
            if not self._buffer:
                return None
            return self._buffer[-1]

    async def snapshot_state(self) -> tuple[Snapshot | None, int]:
        """Get the newest snapshot and the length in one consistent read."""
        async with self._lock:
            last = self._buffer[-1] if self._buffer else None
            return last, len(self._buffer)

    async def get_stats(self) -> BufferStats:
        """Get buffer statistics.

        Returns:
            BufferStats with current state and usage info
        """
        async with self._lock:
            oldest = self._buffer[0].time if self._buffer else None
            newest = self._buffer[-1].time if self._buffer else None

            return BufferStats(
                current_size=len(self._buffer),
                total_added=self._total_added,
                total_drained=self._total_drained,
                oldest_timestamp=oldest,
                newest_timestamp=newest,
            )

    def _drain_front(self, n: int) -> list[Snapshot]:
        """Pop the first n snapshots (must be called with lock held)."""
        available = len(self._buffer)
        if available < n:
            raise InsufficientDataError(n, available)

        batch = [self._buffer.popleft() for _ in range(n)]
        self._total_drained += n
        return batch
