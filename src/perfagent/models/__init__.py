"""Pydantic data models for perfagent.

This module provides the core data models used throughout perfagent:
- MetricData: Base class for all captured records
- Snapshot: Point-in-time host state
- BufferStatus: Point-in-time pipeline state
"""

from perfagent.models.base import (
    BufferStatus,
    MemoryInfo,
    MetricData,
    NetworkCounters,
    ProcessInfo,
    Snapshot,
    SystemInfo,
)

__all__ = [
    # Base models
    "MetricData",
    "Snapshot",
    "SystemInfo",
    "MemoryInfo",
    "ProcessInfo",
    "NetworkCounters",
    "BufferStatus",
]
