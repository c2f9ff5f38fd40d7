"""Transport-neutral request representation and key lookup.

Framework adapters convert their own request objects into ``Request``
before handing them to the engine. The engine extracts the idempotency key
with a ``KeyExtractor``; the default one reads a single header.
"""

from collections.abc import Callable

from idempotency_engine.utils.headers import get_header_value

DEFAULT_KEY_HEADER = "idempotency-key"

KeyExtractor = Callable[["Request"], str | None]


class Request:
    """Abstract request representation.

    Attributes:
        method: HTTP method (GET, POST, etc.)
        path: URL path
        query_string: Query string without leading '?'
        headers: Request headers as dict
        body: Request body as bytes
        hit: Set by the engine when the response was replayed from a
            completed resource. Downstream processing reads it through
            ``IdempotencyEngine.is_hit`` to skip real work.
    """

    def __init__(
        self,
        method: str,
        path: str,
        query_string: str = "",
        headers: dict[str, str] | None = None,
        body: bytes = b"",
    ) -> None:
        self.method = method
        self.path = path
        self.query_string = query_string
        self.headers = headers or {}
        self.body = body
        self.hit = False

    def __repr__(self) -> str:
        return f"Request(method={self.method!r}, path={self.path!r}, hit={self.hit})"


class HeaderKeyExtractor:
    """Reads the idempotency key from a request header.

    Header names are matched case-insensitively. Surrounding whitespace is
    stripped and a blank value counts as no key at all.

    Examples:
        >>> extract = HeaderKeyExtractor("Idempotency-Key")
        >>> extract(Request("POST", "/", headers={"idempotency-key": " abc "}))
        'abc'
        >>> extract(Request("POST", "/")) is None
        True
    """

    def __init__(self, header_name: str = DEFAULT_KEY_HEADER) -> None:
        self.header_name = header_name.lower()

    def __call__(self, request: Request) -> str | None:
        value = get_header_value(request.headers, self.header_name)
        if value is None:
            return None
        value = value.strip()
        return value or None
