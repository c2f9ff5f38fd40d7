"""Utility modules for the idempotency engine."""

from .headers import (
    DEFAULT_RESPONSE_HEADER_WHITELIST,
    filter_response_headers,
    get_header_value,
    normalize_headers,
)

__all__ = [
    "filter_response_headers",
    "get_header_value",
    "normalize_headers",
    "DEFAULT_RESPONSE_HEADER_WHITELIST",
]
