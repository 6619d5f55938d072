"""Abstract base class for snapshot sources.

This module defines the SnapshotSource interface the sampling loop pulls
from. A source produces one immutable Snapshot per call, synchronously;
the sampling loop runs it in a worker thread so a slow process scan does
not stall the event loop.
"""

from abc import ABC, abstractmethod
import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime
import logging

from perfagent.models.base import Snapshot

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(UTC)


@dataclass
class CollectionResult:
    """Result of a capture attempt.

    Attributes:
        success: Whether the capture succeeded
        data: The captured Snapshot (None if failed)
        error: Error message if capture failed
        collection_time_ms: How long the capture took in milliseconds
        timestamp: When the capture was attempted
        source_name: Name of the source that produced this result
    """

    success: bool
    data: Snapshot | None = None
    error: str | None = None
    collection_time_ms: float = 0.0
    timestamp: datetime = field(default_factory=_utcnow)
    source_name: str = ""

    def __post_init__(self) -> None:
        """Validate result consistency."""
        if self.success and self.data is None:
            raise ValueError("Successful capture must include data")
        if not self.success and self.error is None:
            raise ValueError("Failed capture must include error message")


class SnapshotSource(ABC):
    """Abstract base class for snapshot sources.

    Implementations must be safe to call repeatedly; each call refreshes
    the source's view of the host and returns a new Snapshot.

    Class Attributes:
        name: Identifier used in logs and results

    Example:
        class FixedSource(SnapshotSource):
            name = "fixed"

            def capture(self) -> Snapshot:
                return Snapshot(memory=MemoryInfo(total=1, used=0, total_swap=0, used_swap=0))
    """

    name: str = "unnamed_source"

    def __init__(self) -> None:
        """Initialize the source with empty statistics."""
        self._last_collection: datetime | None = None
        self._consecutive_failures: int = 0

    @property
    def last_collection(self) -> datetime | None:
        """Get the timestamp of the last successful capture."""
        return self._last_collection

    @property
    def consecutive_failures(self) -> int:
        """Get the count of consecutive capture failures."""
        return self._consecutive_failures

    @abstractmethod
    def capture(self) -> Snapshot:
        """Capture one snapshot of the host.

        Individual unreadable records are skipped; an exception here means
        the snapshot as a whole could not be built.

        Returns:
            A new, immutable Snapshot
        """
        ...

    async def collect(self) -> Snapshot:
        """Capture a snapshot without blocking the event loop."""
        return await asyncio.to_thread(self.capture)

    async def safe_collect(self) -> CollectionResult:
        """Capture with error handling and timing.

        Wraps collect() with try/except and measures capture time.
        Updates the failure streak and last-success time.

        Returns:
            CollectionResult with data or error information
        """
        start_time = _utcnow()

        try:
            data = await self.collect()
        except Exception as e:
            elapsed_ms = (_utcnow() - start_time).total_seconds() * 1000
            self._consecutive_failures += 1
            logger.warning("Snapshot capture failed in '%s': %s", self.name, e)

            return CollectionResult(
                success=False,
                error=f"{type(e).__name__}: {e!s}",
                collection_time_ms=elapsed_ms,
                timestamp=start_time,
                source_name=self.name,
            )

        elapsed_ms = (_utcnow() - start_time).total_seconds() * 1000
        self._last_collection = _utcnow()
        self._consecutive_failures = 0

        return CollectionResult(
            success=True,
            data=data,
            collection_time_ms=elapsed_ms,
            timestamp=start_time,
            source_name=self.name,
        )
