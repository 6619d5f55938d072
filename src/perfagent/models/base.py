"""Base Pydantic models for perfagent data types.

This module defines the data models that flow through the telemetry pipeline:
- MetricData: Base class for all captured records (timestamped, immutable)
- Snapshot: Complete host state at a point in time
- SystemInfo, MemoryInfo, ProcessInfo, NetworkCounters: Snapshot parts
- BufferStatus: Point-in-time view of the pipeline state
"""

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field

# Process ids travel as signed 32-bit integers on the wire
PID_MIN = -(2**31)
PID_MAX = 2**31 - 1


def _utcnow() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(UTC)


class MetricData(BaseModel):
    """Base class for all records captured by perfagent.

    Records are immutable once created: the sampling loop, the buffer and
    the transmitter all share the same instance without copying.

    Attributes:
        time: When this data was captured (UTC)
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        str_strip_whitespace=True,
    )

    time: datetime = Field(default_factory=_utcnow)


class SystemInfo(BaseModel):
    """Identity of the sampled host.

    Attributes:
        name: Operating system name (e.g. "Linux", "Darwin")
        hostname: Network host name
        uptime_seconds: Seconds since boot, if known
        os_version: OS release string, if known
        kernel_version: Kernel version string, if known
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(default="", description="Operating system name")
    hostname: str = Field(default="", description="Host name")
    uptime_seconds: int | None = Field(default=None, ge=0, description="Seconds since boot")
    os_version: str | None = Field(default=None, description="OS release")
    kernel_version: str | None = Field(default=None, description="Kernel version")


class MemoryInfo(BaseModel):
    """Physical and swap memory totals, in bytes."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    total: int = Field(..., ge=0, description="Total physical memory in bytes")
    used: int = Field(..., ge=0, description="Used physical memory in bytes")
    total_swap: int = Field(..., ge=0, description="Total swap in bytes")
    used_swap: int = Field(..., ge=0, description="Used swap in bytes")


class ProcessInfo(BaseModel):
    """One process record.

    Attributes:
        pid: Process ID (signed 32-bit)
        name: Process name
        cpu_usage: CPU usage percentage (may exceed 100 on multi-core hosts)
        memory: Resident memory in bytes
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    pid: int = Field(..., ge=PID_MIN, le=PID_MAX, description="Process ID")
    name: str = Field(default="", description="Process name")
    cpu_usage: float = Field(default=0.0, ge=0.0, description="CPU usage percentage")
    memory: int = Field(default=0, ge=0, description="Resident memory in bytes")


class NetworkCounters(BaseModel):
    """Traffic counters for a single network interface.

    ``received``/``transmitted`` cover the interval since the previous
    capture; the ``total_`` fields are cumulative since boot.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    received: int = Field(default=0, ge=0, description="Bytes received since the previous capture")
    transmitted: int = Field(default=0, ge=0, description="Bytes sent since the previous capture")
    total_received: int = Field(default=0, ge=0, description="Bytes received since boot")
    total_transmitted: int = Field(default=0, ge=0, description="Bytes sent since boot")


class Snapshot(MetricData):
    """One immutable point-in-time capture of host telemetry.

    Attributes:
        system: Host identity
        cpu: Per-core CPU utilization percentages
        memory: Memory totals
        processes: Per-process records
        network: Per-interface counters (None when network stats are disabled)
    """

    system: SystemInfo = Field(default_factory=SystemInfo, description="Host identity")
    cpu: list[float] = Field(default_factory=list, description="Per-core CPU usage percentages")
    memory: MemoryInfo = Field(..., description="Memory totals")
    processes: list[ProcessInfo] = Field(default_factory=list, description="Process records")
    network: dict[str, NetworkCounters] | None = Field(
        default=None, description="Per-interface network counters"
    )

    @property
    def core_count(self) -> int:
        """Return the number of CPU cores sampled."""
        return len(self.cpu)

    @property
    def process_count(self) -> int:
        """Return the number of process records."""
        return len(self.processes)


class BufferStatus(BaseModel):
    """Point-in-time view of the pipeline: what is buffered and what was sent.

    Attributes:
        last_item: Most recently buffered snapshot, if any
        buffer_size: Number of snapshots waiting in the buffer
        total_sent: Snapshots accepted by the remote collector so far
    """

    model_config = ConfigDict(frozen=True)

    last_item: Snapshot | None = None
    buffer_size: int = Field(default=0, ge=0)
    total_sent: int = Field(default=0, ge=0)
