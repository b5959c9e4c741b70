"""Header utilities for the transfer service.

This module provides functions for:
- Case-insensitive header lookup
- Filtering volatile headers before a response is cached
- Adding the idempotency marker headers to every response
"""

from collections.abc import Mapping

IDEMPOTENCY_KEY_HEADER = "Idempotency-Key"

# Set to "true" only on responses served verbatim from the response cache
CACHE_HIT_HEADER = "X-Idempotency-Hit"

# Set to "true" only on responses synthesized from the durable record
RECOVERED_HEADER = "X-Db-Hit"

# Headers that must not be stored with a cached response
VOLATILE_HEADERS = {
    "date",
    "server",
    "connection",
    "transfer-encoding",
    "keep-alive",
    "content-length",
    "idempotency-key",
    "x-idempotency-hit",
    "x-db-hit",
}


def get_header_value(
    headers: Mapping[str, str],
    header_name: str,
    default: str | None = None,
) -> str | None:
    """Get header value with case-insensitive lookup.

    Example:
        >>> get_header_value({"Content-Type": "application/json"}, "content-type")
        'application/json'
        >>> get_header_value({}, "missing", "default")
        'default'
    """
    header_name_lower = header_name.lower()

    for key, value in headers.items():
        if key.lower() == header_name_lower:
            return value

    return default


def filter_response_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Drop volatile and marker headers so a cached copy can be replayed.

    Example:
        >>> filter_response_headers({"Content-Type": "application/json", "Date": "x"})
        {'Content-Type': 'application/json'}
    """
    return {key: value for key, value in headers.items() if key.lower() not in VOLATILE_HEADERS}


def add_marker_headers(
    headers: Mapping[str, str],
    idempotency_key: str | None,
    cache_hit: bool = False,
    recovered: bool = False,
) -> dict[str, str]:
    """Add the idempotency marker headers to a response.

    Args:
        headers: Existing response headers
        idempotency_key: Key used for this request, echoed back when present
        cache_hit: Whether the response came from the response cache
        recovered: Whether the response was synthesized from the durable record

    Returns:
        A new headers dict; the input is not modified.

    Example:
        >>> add_marker_headers({}, "abc-123", cache_hit=True)
        {'X-Idempotency-Hit': 'true', 'Idempotency-Key': 'abc-123'}
    """
    result = dict(headers)
    result[CACHE_HIT_HEADER] = "true" if cache_hit else "false"
    if recovered:
        result[RECOVERED_HEADER] = "true"
    if idempotency_key:
        result[IDEMPOTENCY_KEY_HEADER] = idempotency_key
    return result
