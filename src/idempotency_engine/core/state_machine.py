"""State machine decisions for keyed requests.

A key is in one of three states::

    ABSENT --admit--> PENDING --outcome accepted--> COMPLETED
                         |
                         +--outcome rejected / error reported--> ABSENT

When a request arrives for a key that already has a resource, the decision
depends on both the resource state and the request's intent:

    ============  ===============  ==================
    State         Intent matches   Intent differs
    ============  ===============  ==================
    PENDING       ConflictError    InvalidIntentError
    COMPLETED     replay           InvalidIntentError
    ============  ===============  ==================

Intent is checked first in every branch: a reused key must never leak the
stored response of a different request, nor be reported as "retry later"
when the request can never succeed under that key.

This module only decides; the engine performs the transitions.
"""

from idempotency_engine.exceptions import ConflictError, InvalidIntentError
from idempotency_engine.intent import IntentComparator
from idempotency_engine.models import IdempotencyResource, ResourceState
from idempotency_engine.request import Request


def resolve_state(resource: IdempotencyResource | None) -> ResourceState:
    """Map a lookup result to the key's state.

    Examples:
        >>> resolve_state(None)
        <ResourceState.ABSENT: 'ABSENT'>
    """
    if resource is None:
        return ResourceState.ABSENT
    return resource.state


def decide(
    key: str,
    resource: IdempotencyResource | None,
    request: Request,
    comparator: IntentComparator,
) -> ResourceState:
    """Decide what to do with a keyed request.

    Args:
        key: The idempotency key of the request
        resource: The resource found for the key, if any
        request: The request being admitted
        comparator: Intent comparator used when a resource exists

    Returns:
        ResourceState.ABSENT when the request should be admitted as new,
        ResourceState.COMPLETED when the stored response should be replayed

    Raises:
        InvalidIntentError: The resource was created by a different request
        ConflictError: An identical request is still in flight
    """
    state = resolve_state(resource)
    if resource is None:
        return state

    if not comparator.matches(resource.request, request):
        raise InvalidIntentError(
            message=f"Idempotency key {key} was used for a different request",
            key=key,
        )

    if state == ResourceState.PENDING:
        raise ConflictError(
            message=f"A previous request is still in progress for key {key}",
            key=key,
        )

    return state
