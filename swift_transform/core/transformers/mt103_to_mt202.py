"""
Mt103ToMt202Transformer - customer credit transfer to financial institution transfer.
"""

from swift_transform.core.models import TransformationResult, TransformationType

from .base_transformer import (
    DEFAULT_CHARGES,
    NOT_PROVIDED,
    BaseTransformer,
    build_headers,
    extract_institution,
    parse_swift_fields,
)


class Mt103ToMt202Transformer(BaseTransformer):
    """
    Converts an MT103 into an MT202.

    Field mappings:
    - :20: -> :20: (transaction reference, required)
    - :21: -> :21: (related reference, optional)
    - :32A: -> :32A: (value date, currency, amount, required)
    - :52A: -> :52A:, or derived from :50K:/:50A: with a warning
    - :58A:/:57A: -> :58A:, or derived from :59: with a warning
    - :71A: -> :71A: (defaults to SHA)
    - :72: -> :72: (optional)

    Any warning downgrades the result to PARTIAL_SUCCESS.
    """

    OUTPUT_TYPE = "MT202"

    def transform(self, message: str) -> TransformationResult:
        fields = parse_swift_fields(message)

        reference = self.require(fields, "20", "Transaction Reference")
        value_date_amount = self.require(fields, "32A", "Value Date/Currency/Amount")

        warnings: list[str] = []
        lines = [f":20:{reference}"]
        if "21" in fields:
            lines.append(f":21:{fields['21']}")
        lines.append(f":32A:{value_date_amount}")

        ordering = self._institution(
            fields,
            direct_tags=("52A",),
            customer_tags=("50K", "50A"),
            label="Ordering",
            warnings=warnings,
        )
        lines.append(f":52A:{ordering}")

        beneficiary = self._institution(
            fields,
            direct_tags=("58A", "57A"),
            customer_tags=("59",),
            label="Beneficiary",
            warnings=warnings,
        )
        lines.append(f":58A:{beneficiary}")

        lines.append(f":71A:{fields.get('71A', DEFAULT_CHARGES)}")
        if "72" in fields:
            lines.append(f":72:{fields['72']}")

        body = "\n".join(lines)
        output = f"{build_headers(self.OUTPUT_TYPE)}{{4:\n{body}\n-}}"

        if warnings:
            return TransformationResult.partial_success(output, self.OUTPUT_TYPE, warnings)
        return TransformationResult.success(output, self.OUTPUT_TYPE)

    @staticmethod
    def _institution(
        fields: dict[str, str],
        direct_tags: tuple[str, ...],
        customer_tags: tuple[str, ...],
        label: str,
        warnings: list[str],
    ) -> str:
        for tag in direct_tags:
            if tag in fields:
                return fields[tag]

        for tag in customer_tags:
            if tag in fields:
                warnings.append(f"{label} institution derived from customer field :{tag}:")
                return extract_institution(fields[tag])

        warnings.append(f"{label} institution not provided")
        return NOT_PROVIDED

    @property
    def transformation_type(self) -> TransformationType:
        return TransformationType.MT103_TO_MT202
