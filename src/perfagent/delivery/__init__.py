"""Delivery of snapshot batches to the remote collector.

- SentCounter: Count of snapshots the collector accepted
- Transmitter: One gzip-compressed JSON POST per batch
- DeliveryOutcome: Record of a single delivery attempt
"""

from perfagent.delivery.counter import SentCounter
from perfagent.delivery.transmitter import (
    DEFAULT_SERVER_URL,
    DeliveryError,
    DeliveryOutcome,
    OutcomeCallback,
    Transmitter,
)

__all__ = [
    "DEFAULT_SERVER_URL",
    "DeliveryError",
    "DeliveryOutcome",
    "OutcomeCallback",
    "SentCounter",
    "Transmitter",
]
