"""Shared fixtures for perfagent tests."""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
import itertools

import pytest

from perfagent.collectors import SnapshotSource
from perfagent.models import MemoryInfo, NetworkCounters, ProcessInfo, Snapshot, SystemInfo

_BASE_TIME = datetime(2026, 1, 1, 12, 0, 0, tzinfo=UTC)


def build_snapshot(seq: int = 0, *, with_network: bool = True) -> Snapshot:
    """Build a deterministic snapshot whose fields encode ``seq``."""
    return Snapshot(
        time=_BASE_TIME + timedelta(seconds=seq),
        system=SystemInfo(
            name="Linux",
            hostname="test-host",
            uptime_seconds=1000 + seq,
            os_version="#1 SMP",
            kernel_version="6.1.0",
        ),
        cpu=[float(seq % 100), 12.5],
        memory=MemoryInfo(total=8_000_000_000, used=1_000_000 + seq, total_swap=2_000_000_000, used_swap=0),
        processes=[
            ProcessInfo(pid=1, name="init", cpu_usage=0.0, memory=4096),
            ProcessInfo(pid=100 + seq, name=f"worker-{seq}", cpu_usage=3.5, memory=1_048_576),
        ],
        network=(
            {"eth0": NetworkCounters(received=seq, transmitted=2 * seq, total_received=10_000, total_transmitted=20_000)}
            if with_network
            else None
        ),
    )


class StubSource(SnapshotSource):
    """Source returning numbered snapshots; optionally failing on given calls."""

    name = "stub"

    def __init__(self, fail_on: set[int] | None = None) -> None:
        super().__init__()
        self.calls = 0
        self.fail_on = fail_on or set()
        self._seq = itertools.count()

    def capture(self) -> Snapshot:
        self.calls += 1
        if self.calls in self.fail_on:
            raise RuntimeError(f"capture {self.calls} failed")
        return build_snapshot(next(self._seq))


@pytest.fixture
def make_snapshot() -> Callable[..., Snapshot]:
    """Factory fixture for deterministic snapshots."""
    return build_snapshot


@pytest.fixture
def stub_source() -> StubSource:
    """A source that never fails."""
    return StubSource()
