"""Response capture and replay.

Two directions of the same conversion:

1. Capture: an ``ObservedResponse`` delivered to the original caller becomes
   a ``ResponseSnapshot``, keeping the status, the whitelisted headers and
   the body.
2. Replay: the snapshot of a completed resource is written to a later
   caller's sink, so that caller receives the same status, headers and body
   as the original one did.

Examples:
    Capturing then replaying::

        snapshot = build_response_snapshot(observed, ["content-type"])
        completed = resource.with_response(snapshot)

        # later, for a request with the same key and intent
        await replay_response(completed, sink)
"""

from collections.abc import Iterable

from idempotency_engine.core.interceptor import ObservedResponse, ResponseSink
from idempotency_engine.models import IdempotencyResource, ResponseSnapshot
from idempotency_engine.utils.headers import filter_response_headers


def build_response_snapshot(
    observed: ObservedResponse,
    header_whitelist: Iterable[str] | None = None,
) -> ResponseSnapshot:
    """Build the snapshot retained for replay from an observed response.

    Args:
        observed: The response as delivered to the original caller
        header_whitelist: Response headers to keep (case-insensitive)

    Returns:
        ResponseSnapshot with only whitelisted headers

    Raises:
        ValidationError: If the observed status is not a valid HTTP status
    """
    return ResponseSnapshot.build(
        status=observed.status,
        headers=filter_response_headers(observed.headers, header_whitelist),
        body=observed.body,
    )


async def replay_response(resource: IdempotencyResource, sink: ResponseSink) -> None:
    """Write the stored response of a completed resource to a sink.

    Args:
        resource: A completed resource
        sink: The caller's sink

    Raises:
        ValueError: If the resource has no stored response
    """
    if resource.response is None:
        raise ValueError(f"Resource {resource.key} has no stored response")

    stored = resource.response
    await sink.start(stored.status, list(stored.headers.items()))
    await sink.write(stored.get_body_bytes(), more_body=False)
