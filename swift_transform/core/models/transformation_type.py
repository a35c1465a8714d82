"""
TransformationType enumeration: the source/target format pairs a message can be converted between.
"""

from enum import Enum


class TransformationType(str, Enum):
    """
    Supported and planned transformation kinds.

    Each member maps to a (source format, target format, description) triple.
    "*" as a format means the transformation applies to any message type.
    """

    # MT to MT
    MT103_TO_MT202 = "MT103_TO_MT202"
    MT202_TO_MT103 = "MT202_TO_MT103"
    MT940_TO_MT950 = "MT940_TO_MT950"

    # MT to MX (ISO 20022)
    MT103_TO_PAIN001 = "MT103_TO_PAIN001"
    MT202_TO_PACS008 = "MT202_TO_PACS008"
    MT940_TO_CAMT053 = "MT940_TO_CAMT053"

    # MX to MT
    PAIN001_TO_MT103 = "PAIN001_TO_MT103"
    PACS008_TO_MT202 = "PACS008_TO_MT202"
    CAMT053_TO_MT940 = "CAMT053_TO_MT940"

    # Custom
    ENRICH_FIELDS = "ENRICH_FIELDS"
    NORMALIZE_FORMAT = "NORMALIZE_FORMAT"
    CUSTOM = "CUSTOM"

    @property
    def source_format(self) -> str:
        return _FORMATS[self][0]

    @property
    def target_format(self) -> str:
        return _FORMATS[self][1]

    @property
    def description(self) -> str:
        return _FORMATS[self][2]

    def is_mt_to_mt(self) -> bool:
        return self.source_format.startswith("MT") and self.target_format.startswith("MT")

    def is_mt_to_mx(self) -> bool:
        return self.source_format.startswith("MT") and _is_mx(self.target_format)

    def is_mx_to_mt(self) -> bool:
        return _is_mx(self.source_format) and self.target_format.startswith("MT")


def _is_mx(fmt: str) -> bool:
    return fmt != "*" and not fmt.startswith("MT")


_FORMATS = {
    TransformationType.MT103_TO_MT202: ("MT103", "MT202", "Customer Credit to Bank Transfer"),
    TransformationType.MT202_TO_MT103: ("MT202", "MT103", "Bank Transfer to Customer Credit"),
    TransformationType.MT940_TO_MT950: ("MT940", "MT950", "Customer Statement to Statement Message"),
    TransformationType.MT103_TO_PAIN001: ("MT103", "pain.001", "MT103 to ISO 20022 Credit Transfer Initiation"),
    TransformationType.MT202_TO_PACS008: ("MT202", "pacs.008", "MT202 to ISO 20022 FI Credit Transfer"),
    TransformationType.MT940_TO_CAMT053: ("MT940", "camt.053", "MT940 to ISO 20022 Account Statement"),
    TransformationType.PAIN001_TO_MT103: ("pain.001", "MT103", "ISO 20022 Credit Transfer to MT103"),
    TransformationType.PACS008_TO_MT202: ("pacs.008", "MT202", "ISO 20022 FI Transfer to MT202"),
    TransformationType.CAMT053_TO_MT940: ("camt.053", "MT940", "ISO 20022 Statement to MT940"),
    TransformationType.ENRICH_FIELDS: ("*", "*", "Field Enrichment"),
    TransformationType.NORMALIZE_FORMAT: ("*", "*", "Format Normalization"),
    TransformationType.CUSTOM: ("*", "*", "Custom Transformation"),
}
