"""
Encrypted audit record store.

Records are persisted as one JSON document per transformation id under
"transformation-<id>". Input and output payloads are encrypted independently
before the document is written; plaintext payloads never reach the object
store when an encryptor is configured.
"""

import time

from pydantic import ValidationError as PydanticValidationError

from swift_transform.core.exceptions import EncryptionFailure, InvalidInput, TamperDetected
from swift_transform.core.models import STORAGE_KEY_PREFIX, TransformationRecord, storage_key_for
from swift_transform.crypto.envelope import EnvelopeEncryptor
from swift_transform.observability.logger import get_logger
from swift_transform.observability.metrics import MetricsCollector

from .object_store import ObjectStore

logger = get_logger(__name__)

PLAINTEXT_FIELDS = {"input_message", "output_message"}


def serialize_record(record: TransformationRecord) -> bytes:
    """JSON document for a record; plaintext payloads are dropped once encrypted."""
    exclude = PLAINTEXT_FIELDS if record.encrypted else None
    return record.model_dump_json(exclude=exclude).encode("utf-8")


class EncryptedRecordStore:
    """
    Persists TransformationRecords through an ObjectStore.

    Attributes:
        object_store: Backend holding the JSON documents
        encryptor: Envelope encryptor; None stores records in plaintext
        metrics: Optional metrics collector
    """

    def __init__(
        self,
        object_store: ObjectStore,
        encryptor: EnvelopeEncryptor | None = None,
        metrics: MetricsCollector | None = None,
    ):
        self.object_store = object_store
        self.encryptor = encryptor
        self.metrics = metrics

    @property
    def encryption_enabled(self) -> bool:
        return self.encryptor is not None

    def store(self, record: TransformationRecord) -> None:
        """
        Encrypt (when needed) and persist a record.

        The record is modified in place: bundles are set, plaintext payloads
        are cleared and the encrypted flag is raised. A record that is already
        encrypted is written as is.

        Raises:
            EncryptionFailure: If a payload cannot be encrypted
            StorageFailure: If the object store write fails
        """
        start_time = time.perf_counter()

        if self.encryptor is not None and not record.encrypted:
            self._encrypt_payloads(record)

        success = False
        try:
            self.object_store.put(record.storage_key, serialize_record(record))
            success = True
        finally:
            duration = time.perf_counter() - start_time
            record.timings.store_time_ms = duration * 1000
            self._record("store", success, duration)

        logger.debug(
            "Stored transformation record",
            extra={
                "transformation_id": record.transformation_id,
                "status": record.status.value,
                "encrypted": record.encrypted,
            },
        )

    def retrieve(self, transformation_id: str) -> TransformationRecord | None:
        """
        Load a record and decrypt its payloads into the returned object.

        Returns:
            The record with plaintext payloads, or None when absent

        Raises:
            StorageFailure: If the object store read fails
            TamperDetected: If a payload fails authentication
            EncryptionFailure: If a payload cannot be decrypted
        """
        start_time = time.perf_counter()
        success = False
        try:
            body = self.object_store.get(storage_key_for(transformation_id))
            if body is None:
                success = True
                return None
            record = self._decode(body)
            success = True
            return record
        finally:
            self._record("retrieve", success, time.perf_counter() - start_time)

    def list(self, limit: int = 100) -> list[TransformationRecord]:
        """
        Load up to `limit` records in key order.

        Entries that cannot be decoded or decrypted are logged and skipped.

        Raises:
            StorageFailure: If listing or reading from the object store fails
        """
        if limit <= 0:
            return []

        start_time = time.perf_counter()
        success = False
        records: list[TransformationRecord] = []
        try:
            for key in self.object_store.list(STORAGE_KEY_PREFIX):
                if len(records) >= limit:
                    break
                body = self.object_store.get(key)
                if body is None:
                    continue
                try:
                    records.append(self._decode(body))
                except TamperDetected:
                    logger.error("Skipping tampered record", extra={"object_key": key})
                except (PydanticValidationError, EncryptionFailure, InvalidInput, ValueError) as e:
                    logger.warning(
                        "Skipping undecodable record",
                        extra={"object_key": key, "error_type": type(e).__name__},
                    )
            success = True
        finally:
            self._record("list", success, time.perf_counter() - start_time)
        return records

    def delete(self, transformation_id: str) -> bool:
        """
        Delete a record.

        Returns:
            Whether a record existed
        """
        start_time = time.perf_counter()
        success = False
        try:
            existed = self.object_store.delete(storage_key_for(transformation_id))
            success = True
        finally:
            self._record("delete", success, time.perf_counter() - start_time)

        if existed:
            logger.info("Deleted transformation record", extra={"transformation_id": transformation_id})
        return existed

    def close(self) -> None:
        self.object_store.close()

    def _encrypt_payloads(self, record: TransformationRecord) -> None:
        start_time = time.perf_counter()

        input_bundle = self.encryptor.encrypt(record.input_message) if record.input_message else None
        output_bundle = self.encryptor.encrypt(record.output_message) if record.output_message else None

        record.input_encryption = input_bundle
        record.output_encryption = output_bundle
        record.input_message = None
        record.output_message = None
        record.encrypted = True
        record.timings.encrypt_time_ms = (time.perf_counter() - start_time) * 1000

    def _decode(self, body: bytes) -> TransformationRecord:
        record = TransformationRecord.model_validate_json(body)
        if not record.encrypted:
            return record

        if self.encryptor is None:
            raise EncryptionFailure(
                f"Record {record.transformation_id} is encrypted but no encryptor is configured"
            )

        # Plaintext lives on a copy only; the stored document is never rewritten
        decrypted = record.model_copy(deep=True)
        if record.input_encryption is not None:
            decrypted.input_message = self.encryptor.decrypt(record.input_encryption)
        if record.output_encryption is not None:
            decrypted.output_message = self.encryptor.decrypt(record.output_encryption)
        return decrypted

    def _record(self, operation: str, success: bool, duration_seconds: float) -> None:
        if self.metrics:
            self.metrics.record_store_operation(operation, success, duration_seconds)
