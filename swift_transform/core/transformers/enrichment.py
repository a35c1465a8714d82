"""
EnrichmentTransformer - marks a message as enriched in its user header block.
"""

import re

from swift_transform.core.models import TransformationResult, TransformationType

from .base_transformer import BaseTransformer

ENRICHED_TAG = "{113:ENRICHED}"
ENRICHMENT_WARNING = "Basic enrichment applied - added timestamp marker"

_BLOCK2_PATTERN = re.compile(r"\{2:[^}]*\}")


class EnrichmentTransformer(BaseTransformer):
    """
    Inserts the {113:ENRICHED} marker.

    If the message has a user header block ({3:{...}}) the marker becomes its
    first sub-field. Otherwise a user header block is added after the
    application header, before the text block, or at the front, whichever is
    found first.
    """

    OUTPUT_TYPE = "ENRICHED"

    def transform(self, message: str) -> TransformationResult:
        if "{3:{" in message:
            enriched = message.replace("{3:{", "{3:" + ENRICHED_TAG + "{", 1)
        else:
            enriched = self._add_user_header(message)
        return TransformationResult.partial_success(enriched, self.OUTPUT_TYPE, [ENRICHMENT_WARNING])

    @staticmethod
    def _add_user_header(message: str) -> str:
        block = f"{{3:{ENRICHED_TAG}}}"
        header = _BLOCK2_PATTERN.search(message)
        if header is not None:
            return message[: header.end()] + block + message[header.end():]

        text_start = message.find("{4:")
        if text_start >= 0:
            return message[:text_start] + block + message[text_start:]

        return block + message

    @property
    def transformation_type(self) -> TransformationType:
        return TransformationType.ENRICH_FIELDS
