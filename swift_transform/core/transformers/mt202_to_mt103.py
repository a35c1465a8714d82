"""
Mt202ToMt103Transformer - reverse of the MT103 -> MT202 mapping (simplified).
"""

from swift_transform.core.models import TransformationResult, TransformationType

from .base_transformer import DEFAULT_CHARGES, BaseTransformer, build_headers, parse_swift_fields

SIMPLIFIED_WARNING = "MT202 to MT103 transformation is simplified"


class Mt202ToMt103Transformer(BaseTransformer):
    """
    Converts an MT202 into an MT103.

    Institution fields become customer fields (:52A: -> :50K:, :58A: -> :59:).
    The result is always PARTIAL_SUCCESS because customer details cannot be
    recovered from a bank-to-bank transfer.
    """

    OUTPUT_TYPE = "MT103"

    def transform(self, message: str) -> TransformationResult:
        fields = parse_swift_fields(message)

        reference = self.require(fields, "20", "Transaction Reference")
        value_date_amount = self.require(fields, "32A", "Value Date/Currency/Amount")

        lines = [f":20:{reference}", f":32A:{value_date_amount}"]
        if "52A" in fields:
            lines.append(f":50K:{fields['52A']}")
        if "58A" in fields:
            lines.append(f":59:{fields['58A']}")
        lines.append(f":71A:{fields.get('71A', DEFAULT_CHARGES)}")

        body = "\n".join(lines)
        output = f"{build_headers(self.OUTPUT_TYPE)}{{4:\n{body}\n-}}"
        return TransformationResult.partial_success(output, self.OUTPUT_TYPE, [SIMPLIFIED_WARNING])

    @property
    def transformation_type(self) -> TransformationType:
        return TransformationType.MT202_TO_MT103
