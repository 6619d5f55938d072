"""HTTP delivery of snapshot batches to the remote collector.

This module provides the Transmitter, which performs exactly one POST per
batch:

1. Serialize the batch to a JSON array
2. gzip-compress the payload (optional)
3. POST it with Content-Type (and Content-Encoding when compressed)
4. Treat any 2xx as success and advance the sent counter

Failures of any kind (encoding, compression, transport, non-2xx status) are
logged and returned as a failed DeliveryOutcome. Nothing is retried or put
back into the buffer.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Callable, Coroutine, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
import logging
import time
from typing import Any, Self

import aiohttp

from perfagent.delivery.counter import SentCounter
from perfagent.formatters.json_formatter import BatchJsonFormatter, EncodingError
from perfagent.models.base import Snapshot

logger = logging.getLogger(__name__)

DEFAULT_SERVER_URL = "http://yourserver.com/api/monitor"


def _utcnow() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(UTC)


class DeliveryError(Exception):
    """The remote collector did not accept a batch.

    Attributes:
        status: HTTP status code, or None for transport failures
    """

    def __init__(self, message: str, status: int | None = None) -> None:
        self.status = status
        super().__init__(message)


@dataclass
class DeliveryOutcome:
    """Record of one delivery attempt.

    Attributes:
        batch_size: Number of snapshots in the batch
        success: Whether the collector accepted the batch
        status: HTTP status code (None if no response was received)
        error: Error message if the delivery failed
        payload_bytes: Size of the serialized JSON
        compressed_bytes: Size of the request body after compression (None if uncompressed)
        elapsed_ms: Wall time of the attempt in milliseconds
        timestamp: When the attempt started
    """

    batch_size: int
    success: bool
    status: int | None = None
    error: str | None = None
    payload_bytes: int = 0
    compressed_bytes: int | None = None
    elapsed_ms: float = 0.0
    timestamp: datetime = field(default_factory=_utcnow)


# Type alias for outcome callbacks
OutcomeCallback = Callable[[DeliveryOutcome], Coroutine[Any, Any, None]]


class Transmitter:
    """Sends snapshot batches to the remote collector over HTTP.

    One aiohttp session is opened lazily on first delivery and reused by
    every concurrent delivery task until close().

    Example:
        async with Transmitter("http://collector/api/monitor", counter) as tx:
            outcome = await tx.deliver(batch)
            if not outcome.success:
                print(outcome.error)
    """

    def __init__(
        self,
        server_url: str,
        counter: SentCounter,
        *,
        compress: bool = True,
        timeout: float = 30.0,
        formatter: BatchJsonFormatter | None = None,
        history_size: int = 100,
    ) -> None:
        """Initialize the transmitter.

        Args:
            server_url: Collector endpoint receiving the POST
            counter: Counter advanced by the length of each delivered batch
            compress: gzip the request body and send Content-Encoding: gzip
            timeout: Total request timeout in seconds
            formatter: Payload formatter (default: BatchJsonFormatter)
            history_size: Number of recent outcomes kept for inspection
        """
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        if history_size <= 0:
            raise ValueError("history_size must be positive")

        self.server_url = server_url
        self.compress = compress
        self._counter = counter
        self._timeout = timeout
        self._formatter = formatter or BatchJsonFormatter(pretty_print=False)
        self._session: aiohttp.ClientSession | None = None
        self._outcomes: deque[DeliveryOutcome] = deque(maxlen=history_size)
        self._callbacks: list[OutcomeCallback] = []

    async def __aenter__(self) -> Self:
        """Enter async context manager."""
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        """Exit async context manager and close the HTTP session."""
        await self.close()

    @property
    def counter(self) -> SentCounter:
        """Get the counter advanced by successful deliveries."""
        return self._counter

    @property
    def recent_outcomes(self) -> list[DeliveryOutcome]:
        """Get recent delivery outcomes, oldest first."""
        return list(self._outcomes)

    def add_callback(self, callback: OutcomeCallback) -> None:
        """Add a callback invoked with every DeliveryOutcome.

        Args:
            callback: Async function(outcome) to call
        """
        self._callbacks.append(callback)

    async def close(self) -> None:
        """Close the HTTP session, if one was opened."""
        if self._session is not None:
            await self._session.close()
            self._session = None

    def _get_session(self) -> aiohttp.ClientSession:
        """Return the shared session, creating it on first use."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._timeout),
            )
        return self._session

    def build_request(self, batch: Sequence[Snapshot]) -> tuple[bytes, dict[str, str], int]:
        """Serialize (and compress) a batch into a request body.

        Args:
            batch: Snapshots to send

        Returns:
            Tuple of (body, headers, serialized payload size)

        Raises:
            EncodingError: If serialization or compression fails
        """
        payload = self._formatter.encode_batch(batch)
        headers = {"Content-Type": self._formatter.content_type}

        if not self.compress:
            return payload, headers, len(payload)

        body = self._formatter.compress(payload)
        headers["Content-Encoding"] = self._formatter.content_encoding
        logger.debug("Prepared payload: %d -> %d bytes", len(payload), len(body))
        return body, headers, len(payload)

    async def deliver(self, batch: Sequence[Snapshot]) -> DeliveryOutcome:
        """Deliver one batch with a single POST.

        Never raises for delivery problems; the returned outcome says what
        happened. On success the sent counter grows by len(batch).

        Args:
            batch: Snapshots to send, in capture order

        Returns:
            DeliveryOutcome describing the attempt
        """
        started = time.monotonic()
        outcome = DeliveryOutcome(batch_size=len(batch), success=False)

        try:
            body, headers, payload_size = self.build_request(batch)
            outcome.payload_bytes = payload_size
            if self.compress:
                outcome.compressed_bytes = len(body)

            outcome.status = await self._post(body, headers)
            outcome.success = True
        except EncodingError as e:
            outcome.error = str(e)
        except DeliveryError as e:
            outcome.status = e.status
            outcome.error = str(e)
        except TimeoutError:
            outcome.error = f"Request timed out after {self._timeout}s"
        except aiohttp.ClientError as e:
            outcome.error = f"{type(e).__name__}: {e!s}"

        outcome.elapsed_ms = (time.monotonic() - started) * 1000

        if outcome.success:
            total = await self._counter.add(len(batch))
            logger.info(
                "Batch of %d delivered (status %s), total sent: %d",
                len(batch),
                outcome.status,
                total,
            )
        else:
            logger.error("Batch of %d not delivered: %s", len(batch), outcome.error)

        self._outcomes.append(outcome)
        await self._notify(outcome)
        return outcome

    async def _post(self, body: bytes, headers: dict[str, str]) -> int:
        """POST a prepared body and classify the response.

        Returns:
            The 2xx status code

        Raises:
            DeliveryError: If the collector answered with a non-2xx status
            aiohttp.ClientError: For connection issues
            TimeoutError: If the request exceeds the timeout
        """
        session = self._get_session()
        async with session.post(self.server_url, data=body, headers=headers) as response:
            if 200 <= response.status < 300:
                return response.status
            raise DeliveryError(
                f"Collector answered HTTP {response.status}",
                status=response.status,
            )

    async def _notify(self, outcome: DeliveryOutcome) -> None:
        """Invoke outcome callbacks; a failing callback does not affect delivery."""
        for callback in self._callbacks:
            try:
                await callback(outcome)
            except Exception:
                logger.exception("Delivery outcome callback failed")
