"""End-to-end scenarios for the idempotency engine.

Each scenario drives the engine directly and through a FastAPI application
wrapped in the ASGI middleware.
"""
