"""
Exception hierarchy for the transformation pipeline.

ParseError, ValidationError, TransformationTimeout and TransformationFailure
are raised inside the engine and its transformers and converted to
TransformationResult statuses before they reach callers. The remaining
exceptions are raised for hard failures in the encryption, storage and
scheduling layers.
"""


class PipelineError(Exception):
    """Base class for all pipeline errors."""


class ParseError(PipelineError):
    """Raised when an input message cannot be read at all."""


class ValidationError(PipelineError):
    """Raised when a readable message is missing a required field."""

    def __init__(self, field_tag: str, message: str | None = None):
        self.field_tag = field_tag
        self.message = message or f"Missing required field :{field_tag}:"
        super().__init__(self.message)


class TransformationTimeout(PipelineError):
    """Raised upstream when a transformation is classified as timed out."""


class TransformationFailure(PipelineError):
    """Generic transformation failure (unsupported type, mapper crash)."""


class InvalidInput(PipelineError, ValueError):
    """Raised for empty plaintext or an incomplete encryption bundle."""


class EncryptionFailure(PipelineError):
    """Raised when encryption or key wrapping fails for a non-integrity reason."""


class TamperDetected(PipelineError):
    """
    Raised when GCM authentication fails on decrypt.

    Kept separate from EncryptionFailure: a tag mismatch means the stored data
    or key was altered (or the wrong key was used), which is not transient.
    """


class StorageFailure(PipelineError):
    """Raised when the underlying object store fails an I/O operation."""


class SchedulingFailure(PipelineError):
    """Raised when the retry scheduler cannot accept or run work."""
