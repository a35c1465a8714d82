"""
NormalizationTransformer - whitespace and line ending cleanup.
"""

import re

from swift_transform.core.models import TransformationResult, TransformationType

from .base_transformer import BaseTransformer

_SPACES = re.compile(r"[ \t]+")
_SPACE_AROUND_NEWLINE = re.compile(r" ?\n ?")
_BLANK_LINES = re.compile(r"\n{2,}")


class NormalizationTransformer(BaseTransformer):
    """
    Normalizes message layout.

    - Leading/trailing whitespace removed
    - CRLF and CR converted to LF
    - Runs of spaces and tabs collapsed to one space
    - Blank lines removed
    """

    OUTPUT_TYPE = "NORMALIZED"

    def transform(self, message: str) -> TransformationResult:
        normalized = message.strip().replace("\r\n", "\n").replace("\r", "\n")
        normalized = _SPACES.sub(" ", normalized)
        normalized = _SPACE_AROUND_NEWLINE.sub("\n", normalized)
        normalized = _BLANK_LINES.sub("\n", normalized)
        return TransformationResult.success(normalized, self.OUTPUT_TYPE)

    @property
    def transformation_type(self) -> TransformationType:
        return TransformationType.NORMALIZE_FORMAT
