"""psutil-backed snapshot source for the local host.

This module provides HostSnapshotSource, which builds one Snapshot per call
from:
- Host identity (OS name, hostname, uptime, OS and kernel versions)
- Per-core CPU usage percentages
- Physical and swap memory totals
- Per-process CPU and resident memory
- Per-interface network counters (optional)

CPU percentages reported by psutil are deltas since the previous call, so
the very first capture after construction reports meaningless values. The
sampling loop takes one warm-up capture before its schedule starts.
"""

from __future__ import annotations

from functools import lru_cache
import logging
import platform
import socket
import threading
import time

import psutil
from pydantic import ValidationError

from perfagent.collectors.base import SnapshotSource
from perfagent.models.base import (
    PID_MAX,
    MemoryInfo,
    NetworkCounters,
    ProcessInfo,
    Snapshot,
    SystemInfo,
)

logger = logging.getLogger(__name__)

# Errors that mean a single process record is unreadable right now
_PROCESS_ERRORS = (
    psutil.NoSuchProcess,
    psutil.AccessDenied,
    psutil.ZombieProcess,
    ValidationError,
    AttributeError,
    KeyError,
)



def _clean_text(value: str) -> str:
    """Replace undecodable characters psutil passes through as surrogates."""
    return value.encode("utf-8", "replace").decode("utf-8")


# Host identity never changes while the agent runs
@lru_cache(maxsize=1)
def _get_static_system_info() -> tuple[str, str, str, str]:
    """Return (os name, hostname, os version, kernel version) (cached)."""
    return (
        platform.system(),
        socket.gethostname(),
        platform.version(),
        platform.release(),
    )


class HostSnapshotSource(SnapshotSource):
    """Snapshot source reading the local host through psutil.

    Safe to call from several threads: captures are serialized so the
    network delta bookkeeping stays consistent.

    Class Attributes:
        name: Source identifier
        PROCESS_ATTRS: Attributes fetched per process by psutil
    """

    name: str = "host"

    PROCESS_ATTRS = ["pid", "name", "cpu_percent", "memory_info"]

    def __init__(self, include_network: bool = True) -> None:
        """Initialize the source.

        Args:
            include_network: Whether snapshots carry per-interface counters
        """
        super().__init__()
        self.include_network = include_network
        self._lock = threading.Lock()
        self._prev_net: dict[str, tuple[int, int]] = {}  # name -> (bytes_recv, bytes_sent)

    def capture(self) -> Snapshot:
        """Capture one snapshot of the local host.

        Returns:
            Snapshot with system, CPU, memory, process and optional network data
        """
        with self._lock:
            snapshot = Snapshot(
                system=self._get_system_info(),
                cpu=self._get_cpu(),
                memory=self._get_memory(),
                processes=self._get_processes(),
                network=self._get_network() if self.include_network else None,
            )

        logger.debug(
            "Captured snapshot: %d processes, %d CPU cores",
            snapshot.process_count,
            snapshot.core_count,
        )
        return snapshot

    def _get_system_info(self) -> SystemInfo:
        """Build host identity, including uptime when available."""
        os_name, hostname, os_version, kernel_version = _get_static_system_info()

        uptime: int | None = None
        try:
            uptime = max(0, int(time.time() - psutil.boot_time()))
        except (OSError, RuntimeError):
            uptime = None

        return SystemInfo(
            name=os_name,
            hostname=hostname,
            uptime_seconds=uptime,
            os_version=os_version or None,
            kernel_version=kernel_version or None,
        )

    def _get_cpu(self) -> list[float]:
        """Get per-core CPU usage since the previous call."""
        # Clamp: some platforms report tiny negative values or >100 on the first read
        return [min(100.0, max(0.0, float(pct))) for pct in psutil.cpu_percent(percpu=True)]

    def _get_memory(self) -> MemoryInfo:
        """Get physical and swap memory totals."""
        vm = psutil.virtual_memory()
        swap = psutil.swap_memory()
        return MemoryInfo(
            total=vm.total,
            used=vm.used,
            total_swap=swap.total,
            used_swap=swap.used,
        )

    def _get_processes(self) -> list[ProcessInfo]:
        """Get per-process records.

        Processes that exit between enumeration and field read, or that we
        may not inspect, are dropped from the list.
        """
        processes: list[ProcessInfo] = []
        skipped = 0

        for proc in psutil.process_iter(attrs=self.PROCESS_ATTRS):
            try:
                info = proc.info
                if info is None:
                    continue

                memory_info = info.get("memory_info")
                rss = 0
                if memory_info is not None:
                    rss = getattr(memory_info, "rss", 0) or 0

                pid = int(info.get("pid", 0) or 0)
                if pid > PID_MAX:
                    # Same wrap-around as a u32 -> i32 cast
                    pid -= 2**32

                processes.append(
                    ProcessInfo(
                        pid=pid,
                        name=_clean_text(info.get("name", "") or ""),
                        cpu_usage=info.get("cpu_percent", 0.0) or 0.0,
                        memory=rss,
                    )
                )
            except _PROCESS_ERRORS:
                skipped += 1
                continue

        if skipped:
            logger.debug("Skipped %d unreadable process records", skipped)
        return processes

    def _get_network(self) -> dict[str, NetworkCounters]:
        """Get per-interface counters with deltas since the previous call."""
        try:
            io_counters = psutil.net_io_counters(pernic=True)
        except (OSError, RuntimeError) as e:
            logger.debug("Network counters unavailable: %s", e)
            return {}

        network: dict[str, NetworkCounters] = {}
        for name, counters in io_counters.items():
            received = 0
            transmitted = 0
            if name in self._prev_net:
                prev_recv, prev_sent = self._prev_net[name]
                # Counter reset (e.g. interface restart) reports a zero delta
                received = max(0, counters.bytes_recv - prev_recv)
                transmitted = max(0, counters.bytes_sent - prev_sent)

            self._prev_net[name] = (counters.bytes_recv, counters.bytes_sent)
            network[_clean_text(name)] = NetworkCounters(
                received=received,
                transmitted=transmitted,
                total_received=counters.bytes_recv,
                total_transmitted=counters.bytes_sent,
            )

        return network
