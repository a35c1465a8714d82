"""
TransformationStatus enumeration tracking the lifecycle of a transformation.
"""

from enum import Enum


class TransformationStatus(str, Enum):
    """
    Lifecycle status of a message transformation.

    RETRY is the initial status of every record and the status of a record
    whose retry is in flight. SUCCESS, PARTIAL_SUCCESS and DEAD_LETTER are
    terminal. The remaining statuses are failures evaluated for retry.
    """

    SUCCESS = "SUCCESS"
    PARTIAL_SUCCESS = "PARTIAL_SUCCESS"
    FAILED = "FAILED"
    PARSE_ERROR = "PARSE_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    TIMEOUT = "TIMEOUT"
    RETRY = "RETRY"
    DEAD_LETTER = "DEAD_LETTER"

    @property
    def description(self) -> str:
        return _DESCRIPTIONS[self]

    def is_success(self) -> bool:
        return self in (TransformationStatus.SUCCESS, TransformationStatus.PARTIAL_SUCCESS)

    def is_failure(self) -> bool:
        return not self.is_success() and self is not TransformationStatus.RETRY

    def is_terminal(self) -> bool:
        return self in (
            TransformationStatus.SUCCESS,
            TransformationStatus.PARTIAL_SUCCESS,
            TransformationStatus.DEAD_LETTER,
        )


_DESCRIPTIONS = {
    TransformationStatus.SUCCESS: "Transformation completed successfully",
    TransformationStatus.PARTIAL_SUCCESS: "Transformation completed with warnings",
    TransformationStatus.FAILED: "Transformation failed",
    TransformationStatus.PARSE_ERROR: "Failed to parse input message",
    TransformationStatus.VALIDATION_ERROR: "Output message validation failed",
    TransformationStatus.TIMEOUT: "Transformation timed out",
    TransformationStatus.RETRY: "Queued for retry",
    TransformationStatus.DEAD_LETTER: "Sent to dead-letter queue",
}

# Statuses retried when no explicit configuration is given
DEFAULT_RETRYABLE_STATUSES = frozenset({
    TransformationStatus.TIMEOUT,
    TransformationStatus.FAILED,
    TransformationStatus.VALIDATION_ERROR,
})
