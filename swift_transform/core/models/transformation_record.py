"""
TransformationRecord model: the persisted audit record of a transformation lineage.
"""

import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, Field, model_validator

from .encrypted_data import EncryptedData
from .transformation_result import TransformationResult
from .transformation_status import TransformationStatus
from .transformation_type import TransformationType


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ProcessingTimings(BaseModel):
    """Breakdown of processing time in milliseconds."""

    parse_time_ms: float | None = None
    transform_time_ms: float | None = None
    validate_time_ms: float | None = None
    encrypt_time_ms: float | None = None
    publish_time_ms: float | None = None
    store_time_ms: float | None = None


class TransformationRecord(BaseModel):
    """
    Audit record for one transformation lineage (one per message, not per retry).

    The record is created on the first attempt, mutated in place across
    retries and persisted once it reaches a terminal status. Before
    persistence it holds plaintext payloads; after persistence it holds one
    EncryptedData bundle per present payload and no plaintext.

    Attributes:
        transformation_id: Unique record id, also the storage key suffix
        input_message_id: Id of the inbound message (retry state key)
        output_message_id: Id assigned to the published output message
        correlation_id: Caller correlation id
        input_message: Plaintext input (transient)
        output_message: Plaintext output (transient)
        input_encryption: Bundle for the input payload once encrypted
        output_encryption: Bundle for the output payload once encrypted
        encrypted: Whether payloads have been replaced by bundles
        transformation_type: Source/target pair that was applied
        status: Current lifecycle status
        input_queue: Queue the message was consumed from
        output_queue: Queue the result was (or will be) published to
        error_message: Accumulated failure history
        warnings: Warnings from the last attempt
        confidence_score: Coarse confidence signal in [0, 1]
        timings: Per-stage processing times
        attempt_count: Number of retries scheduled so far
        max_attempts: Retry budget in effect
    """

    transformation_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    input_message_id: str = Field(..., min_length=1)
    output_message_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    correlation_id: str | None = None

    input_message: str | None = None
    input_message_type: str | None = None
    output_message: str | None = None
    output_message_type: str | None = None

    input_encryption: EncryptedData | None = None
    output_encryption: EncryptedData | None = None
    encrypted: bool = False

    transformation_type: TransformationType | None = None
    status: TransformationStatus = TransformationStatus.RETRY

    input_queue: str | None = None
    output_queue: str | None = None

    error_message: str | None = None
    error_stack_trace: str | None = None
    warnings: list[str] = Field(default_factory=list)
    confidence_score: float | None = Field(None, ge=0.0, le=1.0)

    transformation_timestamp: datetime = Field(default_factory=utc_now)
    processing_time_ms: float | None = None
    timings: ProcessingTimings = Field(default_factory=ProcessingTimings)

    attempt_count: int = Field(0, ge=0)
    max_attempts: int | None = None

    @model_validator(mode="after")
    def check_no_plaintext_when_encrypted(self):
        """Persisted encrypted records must not carry plaintext payloads."""
        if self.encrypted and (self.input_message is not None or self.output_message is not None):
            raise ValueError("encrypted record must not carry plaintext payloads")
        return self

    class Config:
        json_schema_extra = {
            "example": {
                "transformation_id": "0f0c7c1e-7f55-4a1d-9b43-3f3cf2e8a0b1",
                "input_message_id": "MSG-0001",
                "correlation_id": "CORR-0001",
                "input_message_type": "MT103",
                "output_message_type": "MT202",
                "encrypted": True,
                "transformation_type": "MT103_TO_MT202",
                "status": "PARTIAL_SUCCESS",
                "input_queue": "swift/mt103/inbound",
                "output_queue": "swift/mt202/outbound",
                "warnings": ["Ordering institution derived from customer field :50K:"],
                "confidence_score": 0.8,
                "attempt_count": 0,
                "max_attempts": 3,
            }
        }

    @classmethod
    def create_new(
        cls,
        input_message_id: str,
        input_message: str | None,
        input_message_type: str | None,
        transformation_type: TransformationType | None,
        correlation_id: str | None = None,
    ) -> "TransformationRecord":
        """Create a fresh record in the initial RETRY status."""
        return cls(
            input_message_id=input_message_id,
            input_message=input_message,
            input_message_type=input_message_type,
            transformation_type=transformation_type,
            correlation_id=correlation_id,
        )

    def apply_result(self, result: TransformationResult) -> None:
        """Copy the outcome of a transformation attempt onto the record."""
        self.output_message = result.transformed_message
        self.output_message_type = result.output_message_type
        self.status = result.status
        self.error_message = result.error_message
        self.error_stack_trace = result.error_stack_trace
        self.warnings = list(result.warnings)
        self.confidence_score = result.confidence_score

    @property
    def storage_key(self) -> str:
        return storage_key_for(self.transformation_id)

    def is_successful(self) -> bool:
        return self.status.is_success()

    def is_failed(self) -> bool:
        return self.status.is_failure()

    def append_error(self, message: str) -> None:
        """Append to the failure history, keeping earlier entries."""
        if self.error_message:
            self.error_message = f"{self.error_message}; {message}"
        else:
            self.error_message = message

    def summary(self) -> str:
        kind = self.transformation_type.value if self.transformation_type else "UNKNOWN"
        return (
            f"[{self.transformation_id}] {kind} "
            f"({self.input_message_type} -> {self.output_message_type}) "
            f"{self.status.value} in {self.processing_time_ms or 0:.1f}ms"
        )


STORAGE_KEY_PREFIX = "transformation-"


def storage_key_for(transformation_id: str) -> str:
    return f"{STORAGE_KEY_PREFIX}{transformation_id}"
