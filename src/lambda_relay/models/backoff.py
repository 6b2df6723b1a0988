"""
Backoff policy applied between client retries.
"""

import random
from typing import Annotated, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from lambda_relay.config import RelayEnvVars


class BackoffPolicy(BaseModel):
    """Exponential backoff: base_ms * multiplier ** (retry - 1), capped at max_ms."""

    model_config = ConfigDict(frozen=True)

    base_ms: Annotated[int, Field(default=100, ge=0, description='Delay before the first retry')] = 100
    multiplier: Annotated[float, Field(default=2.0, ge=1.0, description='Growth factor per retry')] = 2.0
    max_ms: Annotated[int, Field(default=5000, ge=0, description='Upper bound of a single delay')] = 5000
    jitter: Annotated[bool, Field(
        default=True,
        description='Randomize each delay between half and all of its nominal value'
    )] = True

    @model_validator(mode='after')
    def check_bounds(self) -> 'BackoffPolicy':
        if self.max_ms < self.base_ms:
            raise ValueError('max_ms must not be lower than base_ms')
        return self

    @classmethod
    def from_settings(cls, settings: RelayEnvVars) -> 'BackoffPolicy':
        return cls(
            base_ms=settings.RELAY_BACKOFF_BASE_MS,
            multiplier=settings.RELAY_BACKOFF_MULTIPLIER,
            max_ms=settings.RELAY_BACKOFF_MAX_MS,
        )

    def nominal_delay_ms(self, retry: int) -> float:
        """Delay before the given retry (1-based) without jitter."""
        if retry < 1:
            raise ValueError('retry numbers start at 1')
        return min(float(self.max_ms), self.base_ms * self.multiplier ** (retry - 1))

    def delay_ms(self, retry: int, rng: Optional[Callable[[], float]] = None) -> float:
        """Delay before the given retry (1-based), jittered when enabled."""
        nominal = self.nominal_delay_ms(retry)
        if not self.jitter:
            return nominal
        rng = rng or random.random
        return nominal / 2 + rng() * nominal / 2
