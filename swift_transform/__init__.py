"""SWIFT message transformation, retry and encrypted audit pipeline."""

__version__ = "0.1.0"
