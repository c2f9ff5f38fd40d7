"""Configuration module for the idempotency engine.

This module provides the IdempotencyConfig class holding the scalar settings
of the engine: where the idempotency key is read from, which response
headers survive into a replay, and how cache hits are handled.
Collaborator objects (resource store, persistence policy, intent comparator,
custom key extractor) are passed to ``IdempotencyEngine`` directly.

Example:
    Basic usage with defaults:

        >>> config = IdempotencyConfig()
        >>> config.key_header
        'idempotency-key'

    Custom configuration:

        >>> config = IdempotencyConfig(
        ...     key_header="X-Request-Key",
        ...     response_header_whitelist=["Content-Type", "Location"],
        ...     invoke_downstream_on_hit=False,
        ... )

    Loading from environment:

        >>> import os
        >>> os.environ['IDEMPOTENCY_KEY_HEADER'] = 'x-request-key'
        >>> os.environ['IDEMPOTENCY_INVOKE_DOWNSTREAM_ON_HIT'] = 'false'
        >>> config = IdempotencyConfig.from_env()
"""

import os
from typing import Any

from pydantic import BaseModel, Field, field_validator

from idempotency_engine.request import DEFAULT_KEY_HEADER
from idempotency_engine.utils.headers import DEFAULT_RESPONSE_HEADER_WHITELIST

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


class IdempotencyConfig(BaseModel):
    """Configuration for the idempotency engine.

    Attributes:
        key_header: Request header carrying the idempotency key. Matched
            case-insensitively. Default is "idempotency-key".
        max_key_length: Longest key accepted, between 1 and 1024. Longer
            keys are rejected before touching the store. Default is 255.
        response_header_whitelist: Response headers retained in the stored
            snapshot and replayed on a hit. Default is ["content-type"].
        invoke_downstream_on_hit: Whether downstream processing still runs
            (with the hit flag set and its output discarded) after a stored
            response is replayed. Default is True.
        echo_key_header: Whether transport adapters echo the idempotency key
            on responses to keyed requests. Default is True.

    Note:
        This class is immutable (frozen=True). Create a new instance if you
        need different settings.
    """

    key_header: str = Field(
        default=DEFAULT_KEY_HEADER,
        description="Request header carrying the idempotency key",
    )
    max_key_length: int = Field(
        default=255,
        description="Maximum idempotency key length (1-1024)",
    )
    response_header_whitelist: list[str] | str = Field(
        default=DEFAULT_RESPONSE_HEADER_WHITELIST,
        description="Response headers retained for replay",
    )
    invoke_downstream_on_hit: bool = Field(
        default=True,
        description="Run downstream processing after replaying a stored response",
    )
    echo_key_header: bool = Field(
        default=True,
        description="Echo the idempotency key header on responses",
    )

    model_config = {"frozen": True}

    @field_validator("key_header")
    @classmethod
    def validate_key_header(cls, v: str) -> str:
        """Normalize the key header name to lowercase.

        Raises:
            ValueError: If the header name is blank.

        Example:
            >>> IdempotencyConfig(key_header=" X-Request-Key ").key_header
            'x-request-key'
        """
        v = v.strip().lower()
        if not v:
            raise ValueError("key_header must not be empty")
        return v

    @field_validator("max_key_length")
    @classmethod
    def validate_max_key_length(cls, v: int) -> int:
        if not (1 <= v <= 1024):
            raise ValueError(f"max_key_length must be between 1 and 1024, got {v}")
        return v

    @field_validator("response_header_whitelist", mode="before")
    @classmethod
    def validate_response_header_whitelist(cls, v: Any) -> list[str]:
        """Validate and normalize the response header whitelist.

        Args:
            v: List of header names or comma-separated string.

        Returns:
            List of lowercase header names, blanks dropped.

        Example:
            >>> IdempotencyConfig(
            ...     response_header_whitelist="Content-Type, Location"
            ... ).response_header_whitelist
            ['content-type', 'location']
        """
        if isinstance(v, str):
            # Handle comma-separated string (from environment variables)
            v = v.split(",")

        if not isinstance(v, list):
            raise ValueError("response_header_whitelist must be a list or comma-separated string")

        return [header.strip().lower() for header in v if header.strip()]

    @field_validator("invoke_downstream_on_hit", "echo_key_header", mode="before")
    @classmethod
    def validate_flag(cls, v: Any) -> Any:
        if isinstance(v, str):
            lowered = v.strip().lower()
            if lowered in _TRUE_VALUES:
                return True
            if lowered in _FALSE_VALUES:
                return False
            raise ValueError(f"Invalid boolean value: {v!r}")
        return v

    @classmethod
    def from_env(cls, prefix: str = "IDEMPOTENCY_") -> "IdempotencyConfig":
        """Create configuration from environment variables.

        Variable names are uppercase field names with the prefix, e.g.
        ``IDEMPOTENCY_KEY_HEADER``. Missing variables use the defaults.

        Args:
            prefix: Prefix for environment variable names. Default is "IDEMPOTENCY_".

        Returns:
            IdempotencyConfig instance populated from environment variables.
        """
        config_dict: dict[str, Any] = {}

        # Map of field names to their types for proper conversion
        field_types = {
            "key_header": str,
            "max_key_length": int,
            "response_header_whitelist": list,
            "invoke_downstream_on_hit": bool,
            "echo_key_header": bool,
        }

        for field_name, field_type in field_types.items():
            env_var = f"{prefix}{field_name.upper()}"
            env_value = os.environ.get(env_var)

            if env_value is not None:
                if field_type is int:
                    config_dict[field_name] = int(env_value)
                else:
                    # Lists and booleans are parsed by the field validators
                    config_dict[field_name] = env_value

        return cls(**config_dict)

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> "IdempotencyConfig":
        """Create configuration from a dictionary.

        Raises:
            ValidationError: If the dictionary contains invalid values.
        """
        return cls(**config_dict)
