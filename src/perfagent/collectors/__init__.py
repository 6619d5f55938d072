"""Data collection framework for perfagent.

This module provides the sampling side of the pipeline:

- SnapshotSource: Abstract base class for snapshot sources
- HostSnapshotSource: psutil-backed source for the local host
- SnapshotBuffer: Shared FIFO buffer with batch extraction
- SamplingScheduler: Async loop that samples, buffers and dispatches batches

All buffer and scheduler operations are asyncio-based.
"""

from perfagent.collectors.base import CollectionResult, SnapshotSource
from perfagent.collectors.buffer import BufferStats, InsufficientDataError, SnapshotBuffer
from perfagent.collectors.host import HostSnapshotSource
from perfagent.collectors.scheduler import (
    BatchHandler,
    SamplerState,
    SamplerStats,
    SamplingScheduler,
)

__all__ = [
    "BatchHandler",
    "BufferStats",
    "CollectionResult",
    "HostSnapshotSource",
    "InsufficientDataError",
    "SamplerState",
    "SamplerStats",
    "SamplingScheduler",
    "SnapshotBuffer",
    "SnapshotSource",
]
