"""
Message transformer implementations.

Provides field-level mappers for MT103/MT202 conversion plus enrichment and
normalization of any message type.
"""

from .base_transformer import BaseTransformer, extract_institution, parse_swift_fields
from .enrichment import EnrichmentTransformer
from .mt103_to_mt202 import Mt103ToMt202Transformer
from .mt202_to_mt103 import Mt202ToMt103Transformer
from .normalization import NormalizationTransformer

__all__ = [
    "BaseTransformer",
    "EnrichmentTransformer",
    "Mt103ToMt202Transformer",
    "Mt202ToMt103Transformer",
    "NormalizationTransformer",
    "extract_institution",
    "parse_swift_fields",
]
