"""Utility modules for the transfer service."""

from .headers import (
    CACHE_HIT_HEADER,
    IDEMPOTENCY_KEY_HEADER,
    RECOVERED_HEADER,
    VOLATILE_HEADERS,
    add_marker_headers,
    filter_response_headers,
    get_header_value,
)

__all__ = [
    "CACHE_HIT_HEADER",
    "IDEMPOTENCY_KEY_HEADER",
    "RECOVERED_HEADER",
    "VOLATILE_HEADERS",
    "add_marker_headers",
    "filter_response_headers",
    "get_header_value",
]
