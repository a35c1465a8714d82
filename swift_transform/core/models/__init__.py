"""
Core data models for the SWIFT transformation pipeline.

All models use Pydantic for runtime validation and JSON serialization.
"""

from .encrypted_data import ALGORITHM_AES_256_GCM, LOCAL_KEY_ID, EncryptedData
from .transformation_record import (
    STORAGE_KEY_PREFIX,
    ProcessingTimings,
    TransformationRecord,
    storage_key_for,
)
from .transformation_result import TransformationResult
from .transformation_status import DEFAULT_RETRYABLE_STATUSES, TransformationStatus
from .transformation_type import TransformationType

__all__ = [
    "ALGORITHM_AES_256_GCM",
    "LOCAL_KEY_ID",
    "DEFAULT_RETRYABLE_STATUSES",
    "STORAGE_KEY_PREFIX",
    "EncryptedData",
    "ProcessingTimings",
    "TransformationRecord",
    "TransformationResult",
    "TransformationStatus",
    "TransformationType",
    "storage_key_for",
]
