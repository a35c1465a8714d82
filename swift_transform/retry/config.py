"""
Retry configuration and exponential backoff calculation.
"""

import random

from pydantic import BaseModel, Field, field_validator

from swift_transform.core.models import DEFAULT_RETRYABLE_STATUSES, TransformationStatus
from swift_transform.observability.logger import get_logger

logger = get_logger(__name__)

DEFAULT_DEAD_LETTER_QUEUE = "swift/transformation/dead-letter"
JITTER_FRACTION = 0.3


class RetryConfig(BaseModel):
    """
    Retry policy for failed transformations.

    Attributes:
        enabled: Master switch; when False failures are never retried
        max_attempts: Number of retries allowed per message
        initial_interval_ms: Delay before the first retry
        max_interval_ms: Upper bound for any delay (before jitter)
        multiplier: Backoff growth factor per attempt
        use_jitter: Spread delays by up to +/-30 %
        retryable_statuses: Failure statuses eligible for retry
        send_to_dead_letter_on_failure: Publish exhausted records to dead_letter_queue
        store_retry_attempts: Persist a RETRY snapshot each time a retry is rescheduled
        dead_letter_queue: Destination for exhausted records
        worker_pool_size: Worker threads running deferred retries
        shutdown_grace_seconds: How long close() lets due retries finish
    """

    enabled: bool = False
    max_attempts: int = Field(3, ge=0)
    initial_interval_ms: int = Field(1000, gt=0)
    max_interval_ms: int = Field(60000, gt=0)
    multiplier: float = Field(2.0, ge=1.0)
    use_jitter: bool = True
    retryable_statuses: frozenset[TransformationStatus] = DEFAULT_RETRYABLE_STATUSES
    send_to_dead_letter_on_failure: bool = True
    store_retry_attempts: bool = False
    dead_letter_queue: str = DEFAULT_DEAD_LETTER_QUEUE
    worker_pool_size: int = Field(5, ge=1)
    shutdown_grace_seconds: float = Field(60.0, ge=0)

    @field_validator("retryable_statuses", mode="before")
    @classmethod
    def parse_statuses(cls, value):
        """Accept a comma separated string or a list; unknown names are skipped."""
        if isinstance(value, str):
            value = value.split(",")

        statuses = set()
        for item in value or []:
            if isinstance(item, TransformationStatus):
                statuses.add(item)
                continue
            name = str(item).strip().upper()
            if not name:
                continue
            try:
                statuses.add(TransformationStatus(name))
            except ValueError:
                logger.warning("Ignoring unknown retryable status", extra={"status": name})
        return frozenset(statuses)

    def is_retryable(self, status: TransformationStatus | None) -> bool:
        return status is not None and status in self.retryable_statuses

    def is_valid(self) -> bool:
        """Whether the policy can actually retry anything."""
        return (
            self.enabled
            and self.max_attempts > 0
            and self.max_interval_ms >= self.initial_interval_ms
            and bool(self.retryable_statuses)
        )

    def calculate_delay_ms(self, attempt: int, rng: random.Random | None = None) -> int:
        """
        Delay before retry number `attempt` (1-based).

        initial * multiplier^(attempt-1), capped at max_interval_ms, then spread
        uniformly by +/-30 % when jitter is on. Attempt 0 or less gives 0.
        """
        if attempt <= 0:
            return 0

        try:
            base_delay = self.initial_interval_ms * self.multiplier ** (attempt - 1)
        except OverflowError:
            base_delay = self.max_interval_ms
        delay = int(min(base_delay, self.max_interval_ms))

        if self.use_jitter:
            jitter_range = delay * JITTER_FRACTION
            jitter = (rng or random).uniform(-jitter_range, jitter_range)
            delay = max(0, delay + int(jitter))

        return delay
