"""JSON wire formatter for snapshot batches.

This module turns batches of snapshots into the request body the remote
collector expects, and back. It uses Pydantic's model_dump() for
serialization with proper datetime handling.

Features:
- Serializes a batch as a JSON array of snapshot objects
- Optional gzip compression of the serialized payload
- Decoding of (optionally compressed) payloads back into Snapshots
- Pretty-printed output of single snapshots for the command line
"""

from __future__ import annotations

from collections.abc import Sequence
import gzip
import json
import zlib

from pydantic import TypeAdapter, ValidationError

from perfagent.models.base import Snapshot

_BATCH_ADAPTER: TypeAdapter[list[Snapshot]] = TypeAdapter(list[Snapshot])


class PayloadError(Exception):
    """Base exception for payload encoding and decoding problems."""


class EncodingError(PayloadError):
    """A batch could not be serialized or compressed."""


class DecodingError(PayloadError):
    """A payload could not be decompressed, parsed or validated."""


class BatchJsonFormatter:
    """JSON formatter for delivery payloads.

    Timestamps are written in ISO 8601 format with UTC timezone, byte counts
    as plain integers.

    Class Attributes:
        name: Formatter identifier
        content_type: Value for the Content-Type header
        content_encoding: Value for the Content-Encoding header when compressing

    Instance Attributes:
        pretty_print: Whether single snapshots are indented (default: True)
        compresslevel: gzip compression level (0-9)
    """

    name: str = "json"
    content_type: str = "application/json"
    content_encoding: str = "gzip"

    def __init__(self, pretty_print: bool = True, compresslevel: int = 6) -> None:
        """Initialize the formatter.

        Args:
            pretty_print: If True, format_snapshot() indents its output.
                Batch payloads are always compact.
            compresslevel: gzip level used by compress()
        """
        if not 0 <= compresslevel <= 9:
            raise ValueError("compresslevel must be between 0 and 9")
        self.pretty_print = pretty_print
        self.compresslevel = compresslevel

    def encode_batch(self, batch: Sequence[Snapshot]) -> bytes:
        """Serialize a batch as a compact JSON array.

        Args:
            batch: Snapshots in capture order

        Returns:
            UTF-8 encoded JSON bytes

        Raises:
            EncodingError: If any snapshot cannot be serialized
        """
        try:
            records = [snapshot.model_dump(mode="json") for snapshot in batch]
            text = json.dumps(records, ensure_ascii=False, separators=(",", ":"))
            return text.encode("utf-8")
        except (TypeError, UnicodeEncodeError, ValueError) as e:
            raise EncodingError(f"Failed to serialize batch: {e}") from e

    def compress(self, payload: bytes) -> bytes:
        """gzip-compress a serialized payload.

        Raises:
            EncodingError: If compression fails
        """
        try:
            return gzip.compress(payload, compresslevel=self.compresslevel)
        except (OSError, zlib.error) as e:
            raise EncodingError(f"Failed to compress payload: {e}") from e

    def decode_batch(self, payload: bytes, compressed: bool = False) -> list[Snapshot]:
        """Parse a payload produced by encode_batch() (and compress()).

        This is what the receiving side of the wire does.

        Args:
            payload: Request body bytes
            compressed: Whether the body is gzip-compressed

        Returns:
            The decoded snapshots, in payload order

        Raises:
            DecodingError: If the payload is not a valid batch
        """
        try:
            if compressed:
                payload = gzip.decompress(payload)
            records = json.loads(payload.decode("utf-8"))
            return _BATCH_ADAPTER.validate_python(records)
        except (OSError, EOFError, zlib.error, UnicodeDecodeError, ValueError, ValidationError) as e:
            raise DecodingError(f"Invalid batch payload: {e}") from e

    def format_snapshot(self, snapshot: Snapshot) -> str:
        """Format a single snapshot as a JSON string for display.

        Args:
            snapshot: The snapshot to format

        Returns:
            JSON string, indented if pretty_print is set
        """
        data = snapshot.model_dump(mode="json")
        if self.pretty_print:
            return json.dumps(data, indent=2, ensure_ascii=False)
        return json.dumps(data, ensure_ascii=False, separators=(",", ":"))
