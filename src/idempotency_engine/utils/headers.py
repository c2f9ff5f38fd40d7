"""Header utilities for the idempotency engine.

This module provides functions for:
- Case-insensitive header lookup
- Normalizing request headers for snapshots
- Reducing response headers to the whitelist retained for replay
"""

from collections.abc import Iterable

# Response headers retained for replay unless configured otherwise
DEFAULT_RESPONSE_HEADER_WHITELIST = ["content-type"]


def get_header_value(
    headers: dict[str, str],
    header_name: str,
    default: str | None = None,
) -> str | None:
    """Get header value with case-insensitive lookup.

    Args:
        headers: Headers dictionary
        header_name: Name of header to find (case-insensitive)
        default: Default value if header not found

    Returns:
        Header value or default

    Example:
        >>> headers = {"Content-Type": "application/json"}
        >>> get_header_value(headers, "content-type")
        'application/json'
        >>> get_header_value(headers, "missing", "default")
        'default'
    """
    header_name_lower = header_name.lower()

    for key, value in headers.items():
        if key.lower() == header_name_lower:
            return value

    return default


def normalize_headers(headers: dict[str, str]) -> dict[str, str]:
    """Lowercase header names and strip surrounding whitespace from values.

    Example:
        >>> normalize_headers({"Content-Type": "application/json  "})
        {'content-type': 'application/json'}
    """
    return {key.lower(): value.strip() for key, value in headers.items()}


def filter_response_headers(
    headers: Iterable[tuple[str, str]],
    whitelist: Iterable[str] | None = None,
) -> dict[str, str]:
    """Keep only whitelisted response headers.

    Names are compared case-insensitively and returned lowercased. Repeated
    headers are folded into a single comma-separated value.

    Args:
        headers: Response headers as (name, value) pairs, in wire order
        whitelist: Header names to retain. Defaults to content-type only.

    Returns:
        Filtered headers dictionary

    Example:
        >>> filter_response_headers(
        ...     [("Content-Type", "application/json"), ("Date", "Mon, 01 Oct 2025")]
        ... )
        {'content-type': 'application/json'}
    """
    if whitelist is None:
        whitelist = DEFAULT_RESPONSE_HEADER_WHITELIST
    allowed = {name.lower() for name in whitelist}

    filtered: dict[str, str] = {}
    for name, value in headers:
        name_lower = name.lower()
        if name_lower not in allowed:
            continue
        if name_lower in filtered:
            filtered[name_lower] = f"{filtered[name_lower]}, {value}"
        else:
            filtered[name_lower] = value

    return filtered
