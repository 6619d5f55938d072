"""Formatters package for perfagent.

This package contains the wire formatter that converts snapshot batches to
delivery payloads:

- BatchJsonFormatter: JSON array payloads, optionally gzip-compressed
"""

from perfagent.formatters.json_formatter import (
    BatchJsonFormatter,
    DecodingError,
    EncodingError,
    PayloadError,
)

__all__ = [
    "BatchJsonFormatter",
    "DecodingError",
    "EncodingError",
    "PayloadError",
]
