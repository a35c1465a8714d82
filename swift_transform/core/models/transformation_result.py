"""
TransformationResult model representing the outcome of a single transformation (ephemeral).
"""

import traceback

from pydantic import BaseModel, Field

from .transformation_status import TransformationStatus


class TransformationResult(BaseModel):
    """
    Outcome of transforming one message (ephemeral, never persisted directly).

    Attributes:
        transformed_message: Output message text (None on failure)
        output_message_type: Output type, e.g. "MT202" or "NORMALIZED"
        status: Result status
        error_message: Reason for a failure status
        error_stack_trace: Formatted traceback when an exception caused the failure
        warnings: Non-blocking issues (derived fields, simplified mappings)
        confidence_score: 1.0 success, 0.8 partial success, 0.0 failure
    """

    transformed_message: str | None = None
    output_message_type: str | None = None
    status: TransformationStatus
    error_message: str | None = None
    error_stack_trace: str | None = None
    warnings: list[str] = Field(default_factory=list)
    confidence_score: float | None = Field(None, ge=0.0, le=1.0)

    class Config:
        json_schema_extra = {
            "example": {
                "transformed_message": "{1:F01BANKUS33AXXX0000000000}{2:I202BANKDE55XXXXN}...",
                "output_message_type": "MT202",
                "status": "PARTIAL_SUCCESS",
                "warnings": ["Ordering institution derived from customer field :50K:"],
                "confidence_score": 0.8,
            }
        }

    def is_successful(self) -> bool:
        return self.status.is_success()

    def is_failed(self) -> bool:
        return self.status.is_failure()

    def has_warnings(self) -> bool:
        return bool(self.warnings)

    def add_warning(self, warning: str) -> None:
        self.warnings.append(warning)

    @classmethod
    def success(cls, transformed_message: str, output_type: str) -> "TransformationResult":
        return cls(
            transformed_message=transformed_message,
            output_message_type=output_type,
            status=TransformationStatus.SUCCESS,
            confidence_score=1.0,
        )

    @classmethod
    def partial_success(
        cls,
        transformed_message: str,
        output_type: str,
        warnings: list[str] | None = None,
    ) -> "TransformationResult":
        return cls(
            transformed_message=transformed_message,
            output_message_type=output_type,
            status=TransformationStatus.PARTIAL_SUCCESS,
            warnings=list(warnings or []),
            confidence_score=0.8,
        )

    @classmethod
    def failure(
        cls,
        status: TransformationStatus | None,
        error_message: str,
        exception: BaseException | None = None,
    ) -> "TransformationResult":
        """
        Build a failure result.

        Args:
            status: Failure status (defaults to FAILED)
            error_message: Human-readable reason
            exception: Exception that caused the failure, if any

        Returns:
            TransformationResult with a zero confidence score
        """
        stack_trace = None
        if exception is not None:
            stack_trace = "".join(
                traceback.format_exception(type(exception), exception, exception.__traceback__)
            )
        return cls(
            status=status or TransformationStatus.FAILED,
            error_message=error_message,
            error_stack_trace=stack_trace,
            confidence_score=0.0,
        )

    @classmethod
    def parse_error(cls, error_message: str, exception: BaseException | None = None) -> "TransformationResult":
        return cls.failure(TransformationStatus.PARSE_ERROR, error_message, exception)

    @classmethod
    def validation_error(cls, error_message: str) -> "TransformationResult":
        return cls.failure(TransformationStatus.VALIDATION_ERROR, error_message)

    @classmethod
    def timeout(cls) -> "TransformationResult":
        return cls.failure(TransformationStatus.TIMEOUT, "Transformation timed out")
