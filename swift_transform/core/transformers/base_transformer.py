"""
Base transformer interface and the SWIFT block 4 field parser.

All transformers must inherit from BaseTransformer and implement the transform() method.
"""

import re
from abc import ABC, abstractmethod

from swift_transform.core.exceptions import ValidationError
from swift_transform.core.models import TransformationResult, TransformationType

BLOCK4_PATTERN = re.compile(r"\{4:(.+?)-\}", re.DOTALL)
FIELD_PATTERN = re.compile(r":(\d{2}[A-Z]?):(.*?)(?=:\d{2}[A-Z]?:|\Z)", re.DOTALL)

NOT_PROVIDED = "/NOTPROVIDED"
DEFAULT_CHARGES = "SHA"


def parse_swift_fields(message: str) -> dict[str, str]:
    """
    Parse the tagged fields of the text block into a tag -> value map.

    Only the first `{4:` ... `-}` block is read. A value runs until the next
    tag or the end of the block and is trimmed. A message without a text
    block yields an empty map.

    Args:
        message: Raw SWIFT message

    Returns:
        Dict keyed by tag ("20", "32A", "50K", ...)
    """
    block = BLOCK4_PATTERN.search(message)
    if block is None:
        return {}

    fields = {}
    for match in FIELD_PATTERN.finditer(block.group(1)):
        fields[match.group(1)] = match.group(2).strip()
    return fields


def build_headers(message_type: str) -> str:
    """Basic, application and user header blocks for a generated message."""
    digits = message_type[2:]
    return (
        "{1:F01BANKUS33AXXX0000000000}"
        f"{{2:I{digits}BANKDE55XXXXN}}"
        f"{{3:{{108:{message_type} AUTO}}}}"
    )


def extract_institution(customer_field: str) -> str:
    """
    Derive an institution identifier from a customer field.

    The account line (first line starting with "/") wins; otherwise the first line.
    """
    lines = customer_field.split("\n")
    for line in lines:
        if line.startswith("/"):
            return line
    return lines[0] if lines[0] else "/INSTITUTION"


class BaseTransformer(ABC):
    """
    Abstract base class for all transformers.

    Transformers are stateless: one instance may serve concurrent callers.
    Expected problems in the input are reported by raising ValidationError
    (missing required field), ParseError (unreadable message) or
    TransformationFailure, or by returning a failure result; the engine
    turns these and any other exception into a failure result.
    """

    @abstractmethod
    def transform(self, message: str) -> TransformationResult:
        """
        Transform one message.

        Args:
            message: Non-blank input message

        Returns:
            TransformationResult for the transformed message

        Raises:
            ValidationError: If a required field is missing
        """
        pass

    @property
    @abstractmethod
    def transformation_type(self) -> TransformationType:
        """Return the transformation type this transformer implements."""
        pass

    @staticmethod
    def require(fields: dict[str, str], tag: str, description: str) -> str:
        """Return a required field value or raise ValidationError naming the tag."""
        if tag not in fields:
            raise ValidationError(tag, f"Missing required field :{tag}: ({description})")
        return fields[tag]

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(type={self.transformation_type.value})"
