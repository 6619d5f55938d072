"""Counter of snapshots accepted by the remote collector."""

import asyncio


class SentCounter:
    """Asyncio-safe, monotonically increasing count of delivered snapshots.

    Detached delivery tasks finish in any order; each successful one adds
    its batch length here. The total is never decremented.
    """

    def __init__(self) -> None:
        self._total = 0
        self._lock = asyncio.Lock()

    async def add(self, n: int) -> int:
        """Increase the total by n.

        Args:
            n: Number of snapshots delivered (must be non-negative)

        Returns:
            The new total

        Raises:
            ValueError: If n is negative
        """
        if n < 0:
            raise ValueError("n must be non-negative")

        async with self._lock:
            self._total += n
            return self._total

    async def value(self) -> int:
        """Get the current total."""
        async with self._lock:
            return self._total
