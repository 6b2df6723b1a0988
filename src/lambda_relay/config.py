"""
Environment variable models for type-safe relay configuration.

This module defines the Pydantic model read from the Lambda environment by
clients: target resolution, default timeout, retry and backoff settings.
"""

import json
from typing import Annotated, Any, Dict

from aws_lambda_env_modeler import get_environment_variables
from pydantic import BaseModel, Field, field_validator, model_validator


class RelayEnvVars(BaseModel):
    """Environment variables recognized by the invocation client."""

    # Logical target name -> function name or ARN, as a JSON object
    RELAY_TARGETS: Annotated[Dict[str, str], Field(
        default_factory=dict,
        description='JSON mapping of logical target names to invokable function identifiers'
    )]

    RELAY_DEFAULT_TIMEOUT_MS: Annotated[int, Field(
        default=10000,
        description='Default per-attempt invocation timeout in milliseconds',
        ge=1,
        le=900000
    )] = 10000

    RELAY_DEFAULT_MAX_RETRIES: Annotated[int, Field(
        default=2,
        description='Default number of retries after the first attempt',
        ge=0,
        le=10
    )] = 2

    RELAY_BACKOFF_BASE_MS: Annotated[int, Field(
        default=100,
        description='Delay before the first retry in milliseconds',
        ge=0
    )] = 100

    RELAY_BACKOFF_MULTIPLIER: Annotated[float, Field(
        default=2.0,
        description='Growth factor applied to the delay after every retry',
        ge=1.0
    )] = 2.0

    RELAY_BACKOFF_MAX_MS: Annotated[int, Field(
        default=5000,
        description='Upper bound for a single backoff delay in milliseconds',
        ge=0
    )] = 5000

    RELAY_MIN_REMAINING_MS: Annotated[int, Field(
        default=200,
        description='Minimum remaining invocation time required to start an attempt',
        ge=0
    )] = 200

    AWS_REGION: Annotated[str, Field(
        default='us-east-1',
        description='AWS region of the Lambda client'
    )] = 'us-east-1'

    @field_validator('RELAY_TARGETS', mode='before')
    @classmethod
    def parse_targets(cls, v: Any) -> Any:
        """Decode the target mapping from its JSON environment representation."""
        if isinstance(v, str):
            if not v.strip():
                return {}
            try:
                return json.loads(v)
            except json.JSONDecodeError as exc:
                raise ValueError(f'RELAY_TARGETS is not valid JSON: {exc.msg}') from exc
        return v

    @model_validator(mode='after')
    def check_backoff_bounds(self) -> 'RelayEnvVars':
        if self.RELAY_BACKOFF_MAX_MS < self.RELAY_BACKOFF_BASE_MS:
            raise ValueError('RELAY_BACKOFF_MAX_MS must not be lower than RELAY_BACKOFF_BASE_MS')
        return self

    def resolve_target(self, target_name: str) -> str:
        """Map a logical target name to its function identifier, unmapped names pass through."""
        return self.RELAY_TARGETS.get(target_name, target_name)


def get_relay_env_vars() -> RelayEnvVars:
    """
    Get typed relay configuration from the environment.

    Returns:
        Validated environment variables model instance
    """
    return get_environment_variables(model=RelayEnvVars)
