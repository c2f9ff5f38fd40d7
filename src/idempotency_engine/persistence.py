"""Persistence policies for captured responses.

Once an admitted operation completes, its captured response is offered to a
persistence policy. Accepted responses are attached to the resource and
replayed for later requests with the same key; rejected ones cause the
resource to be deleted so the client can retry with the same key.
"""

from typing import Protocol, runtime_checkable

from idempotency_engine.models import ResponseSnapshot


@runtime_checkable
class PersistencePolicy(Protocol):
    """Decides whether a completed operation's outcome is retained."""

    def should_persist(self, response: ResponseSnapshot) -> bool:
        ...


class SuccessfulResponsePolicy:
    """Retain only responses with a status code in [200, 299].

    Client errors, server errors and redirects are not worth replaying.

    Examples:
        >>> policy = SuccessfulResponsePolicy()
        >>> policy.should_persist(ResponseSnapshot(status=201))
        True
        >>> policy.should_persist(ResponseSnapshot(status=404))
        False
    """

    def should_persist(self, response: ResponseSnapshot) -> bool:
        return 200 <= response.status <= 299
