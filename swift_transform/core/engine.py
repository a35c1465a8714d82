"""
Transformation engine for routing messages to field-level transformers.

The engine is pure with respect to its inputs: it holds no per-message state
and may be shared across threads.
"""

import re
import time

from swift_transform.core.exceptions import ParseError, TransformationFailure, TransformationTimeout, ValidationError
from swift_transform.core.models import TransformationResult, TransformationStatus, TransformationType
from swift_transform.core.transformers import (
    BaseTransformer,
    EnrichmentTransformer,
    Mt103ToMt202Transformer,
    Mt202ToMt103Transformer,
    NormalizationTransformer,
)
from swift_transform.observability.logger import get_logger

logger = get_logger(__name__)

UNKNOWN_MESSAGE_TYPE = "UNKNOWN"

_MESSAGE_TYPE_PATTERN = re.compile(r"\{2:I(\d{3})")


def detect_message_type(message: str | None) -> str:
    """
    Detect the message type from the application header.

    Args:
        message: Raw SWIFT message

    Returns:
        "MT" followed by the three digits of `{2:I...`, or "UNKNOWN"
    """
    if not message:
        return UNKNOWN_MESSAGE_TYPE
    match = _MESSAGE_TYPE_PATTERN.search(message)
    if match is None:
        return UNKNOWN_MESSAGE_TYPE
    return f"MT{match.group(1)}"


def is_valid_swift_message(message: str | None) -> bool:
    """Whether the message carries basic header, application header and text blocks."""
    if message is None or not message.strip():
        return False
    return "{1:" in message and "{2:" in message and "{4:" in message


class TransformationEngine:
    """
    Routes a message to the transformer registered for its transformation type.

    Only the types in TRANSFORMER_REGISTRY are implemented; every other type
    yields a FAILED result. Expected input problems never raise: they come
    back as PARSE_ERROR, VALIDATION_ERROR or FAILED results.
    """

    TRANSFORMER_REGISTRY: dict[TransformationType, type[BaseTransformer]] = {
        TransformationType.MT103_TO_MT202: Mt103ToMt202Transformer,
        TransformationType.MT202_TO_MT103: Mt202ToMt103Transformer,
        TransformationType.ENRICH_FIELDS: EnrichmentTransformer,
        TransformationType.NORMALIZE_FORMAT: NormalizationTransformer,
    }

    def __init__(self):
        self.transformers: dict[TransformationType, BaseTransformer] = {
            kind: transformer_class() for kind, transformer_class in self.TRANSFORMER_REGISTRY.items()
        }

    def supports(self, kind: TransformationType | None) -> bool:
        return kind in self.transformers

    def transform(self, input_message: str | None, kind: TransformationType | None) -> TransformationResult:
        """
        Transform a message.

        Args:
            input_message: Raw input message
            kind: Transformation to apply

        Returns:
            TransformationResult with status, output and diagnostics
        """
        start_time = time.perf_counter()
        kind_name = kind.value if kind is not None else "UNKNOWN"

        try:
            if input_message is None or not input_message.strip():
                raise ParseError("Input message is empty")
            transformer = self._transformer_for(kind)
            result = transformer.transform(input_message)
        except ParseError as e:
            result = TransformationResult.parse_error(str(e))
        except ValidationError as e:
            result = TransformationResult.validation_error(e.message)
        except TransformationTimeout:
            result = TransformationResult.timeout()
        except TransformationFailure as e:
            result = TransformationResult.failure(TransformationStatus.FAILED, str(e))
        except Exception as e:
            logger.error(
                "Transformer raised unexpectedly",
                extra={"transformation_type": kind_name, "error_type": type(e).__name__},
                exc_info=True,
            )
            result = TransformationResult.failure(
                TransformationStatus.FAILED, f"{kind.description} transformation failed: {e}", e
            )

        duration_ms = (time.perf_counter() - start_time) * 1000
        logger.debug(
            "Transformation completed",
            extra={
                "transformation_type": kind_name,
                "status": result.status.value,
                "duration_ms": round(duration_ms, 3),
            },
        )
        return result

    def _transformer_for(self, kind: TransformationType | None) -> BaseTransformer:
        if kind is None:
            raise TransformationFailure("Unknown transformation type: None")
        transformer = self.transformers.get(kind)
        if transformer is None:
            raise TransformationFailure(f"Transformation type not yet implemented: {kind.value}")
        return transformer
