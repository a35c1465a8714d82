"""
Transformation pipeline: transform, publish, retry or dead-letter, persist.

TransformationPipeline handles one inbound message per process() call. The
publisher, record store, retry scheduler and metrics collector are all
optional and checked before use. build_pipeline() wires them from settings.
"""

import time
import uuid

from swift_transform.config.settings import PipelineSettings
from swift_transform.core.engine import TransformationEngine, detect_message_type
from swift_transform.core.exceptions import EncryptionFailure, SchedulingFailure, StorageFailure
from swift_transform.core.models import TransformationRecord, TransformationStatus, TransformationType
from swift_transform.crypto.envelope import EnvelopeEncryptor
from swift_transform.crypto.key_service import RsaOaepKeyService
from swift_transform.messaging.publisher import InMemoryQueuePublisher, QueuePublisher, publish_output
from swift_transform.observability.logger import get_logger
from swift_transform.observability.metrics import MetricsCollector
from swift_transform.retry.scheduler import RetryScheduler
from swift_transform.storage.connection import DatabaseConnectionPool
from swift_transform.storage.object_store import FileSystemObjectStore, InMemoryObjectStore, ObjectStore
from swift_transform.storage.postgres_store import PostgresObjectStore
from swift_transform.storage.record_store import EncryptedRecordStore

logger = get_logger(__name__)


class TransformationPipeline:
    """
    Orchestrates one transformation per inbound message.

    Attributes:
        engine: Transformation engine
        publisher: Output queue publisher (optional)
        record_store: Encrypted audit record store (optional)
        scheduler: Retry scheduler (optional); without it failures are stored as is
        metrics: Metrics collector (optional)
        input_queue: Queue name recorded on each record
        output_queue: Queue successful results are published to
        default_kind: Transformation applied when process() gets no kind
        store_results: Persist records on the synchronous path
    """

    def __init__(
        self,
        engine: TransformationEngine,
        publisher: QueuePublisher | None = None,
        record_store: EncryptedRecordStore | None = None,
        scheduler: RetryScheduler | None = None,
        metrics: MetricsCollector | None = None,
        input_queue: str | None = None,
        output_queue: str | None = None,
        default_kind: TransformationType = TransformationType.MT103_TO_MT202,
        store_results: bool = True,
    ):
        self.engine = engine
        self.publisher = publisher
        self.record_store = record_store
        self.scheduler = scheduler
        self.metrics = metrics
        self.input_queue = input_queue
        self.output_queue = output_queue
        self.default_kind = default_kind
        self.store_results = store_results
        self._closed = False

    def process(
        self,
        input_message: str | None,
        message_id: str | None = None,
        correlation_id: str | None = None,
        kind: TransformationType | None = None,
    ) -> TransformationRecord:
        """
        Transform one message and route the outcome.

        Success: publish to the output queue, then persist.
        Failure with a scheduler: schedule a retry (record returned in RETRY)
        or dead-letter it. Failure without a scheduler: persist as is.

        Once persisted with encryption on, the returned record carries
        encryption bundles instead of plaintext payloads.

        Args:
            input_message: Raw inbound message
            message_id: Inbound message id (generated when missing)
            correlation_id: Caller correlation id
            kind: Transformation to apply (defaults to default_kind)

        Returns:
            The TransformationRecord for this message
        """
        if self._closed:
            raise SchedulingFailure("Pipeline is closed")

        start_time = time.perf_counter()
        message_id = message_id or str(uuid.uuid4())
        kind = kind or self.default_kind

        record = TransformationRecord.create_new(
            message_id,
            input_message,
            detect_message_type(input_message),
            kind,
            correlation_id,
        )
        record.input_queue = self.input_queue
        record.output_queue = self.output_queue

        logger.info(
            "Received transformation request",
            extra={
                "message_id": message_id,
                "correlation_id": correlation_id,
                "transformation_type": kind.value,
                "input_message_type": record.input_message_type,
            },
        )

        transform_start = time.perf_counter()
        result = self.engine.transform(input_message, kind)
        transform_seconds = time.perf_counter() - transform_start
        record.timings.transform_time_ms = transform_seconds * 1000
        record.apply_result(result)

        if self.metrics:
            self.metrics.record_transformation(kind.value, result.status.value, transform_seconds)

        if result.is_successful():
            self._publish(record)
            record.processing_time_ms = (time.perf_counter() - start_time) * 1000
            if self.store_results:
                self._store(record)
        else:
            logger.warning(
                "Transformation failed",
                extra={"message_id": message_id, "status": result.status.value},
            )
            record.processing_time_ms = (time.perf_counter() - start_time) * 1000
            self._handle_failure(record, input_message, kind)

        logger.info(
            "Transformation request handled",
            extra={
                "message_id": message_id,
                "transformation_id": record.transformation_id,
                "status": record.status.value,
                "processing_time_ms": round(record.processing_time_ms or 0, 3),
            },
        )
        return record

    def close(self) -> None:
        """Shut the scheduler down, then release publisher and storage resources."""
        if self._closed:
            return
        self._closed = True
        try:
            if self.scheduler is not None:
                self.scheduler.close()
        finally:
            try:
                if self.publisher is not None:
                    self.publisher.close()
            finally:
                if self.record_store is not None:
                    self.record_store.close()
        logger.info("Pipeline closed")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def _publish(self, record: TransformationRecord) -> None:
        if self.publisher is None or not self.output_queue or not record.output_message:
            return
        publish_start = time.perf_counter()
        publish_output(self.publisher, record, self.output_queue, metrics=self.metrics)
        record.timings.publish_time_ms = (time.perf_counter() - publish_start) * 1000

    def _handle_failure(self, record: TransformationRecord, input_message: str | None, kind: TransformationType) -> None:
        if self.scheduler is None:
            if self.store_results:
                self._store(record)
            return

        if not self.scheduler.should_retry(record):
            self._dead_letter(record)
            return

        try:
            self.scheduler.schedule_retry(
                input_message,
                kind,
                self.input_queue,
                self.output_queue,
                record.correlation_id,
                record.input_message_id,
                record.transformation_id,
            )
        except SchedulingFailure as e:
            logger.error(
                "Could not schedule retry",
                extra={"message_id": record.input_message_id, "error_message": str(e)},
            )
            self._dead_letter(record, reason=f"Retry could not be scheduled: {e}")
            return

        record.status = TransformationStatus.RETRY
        record.attempt_count = self.scheduler.get_attempt(record.input_message_id)
        record.max_attempts = self.scheduler.config.max_attempts

    def _dead_letter(self, record: TransformationRecord, reason: str | None = None) -> None:
        try:
            self.scheduler.dead_letter(record, reason=reason)
        except (StorageFailure, EncryptionFailure) as e:
            logger.error(
                "Failed to store dead-letter record",
                extra={"transformation_id": record.transformation_id, "error_type": type(e).__name__},
                exc_info=True,
            )
            record.append_error(f"Storage failed: {e}")

    def _store(self, record: TransformationRecord) -> None:
        if self.record_store is None:
            return
        try:
            self.record_store.store(record)
        except (StorageFailure, EncryptionFailure) as e:
            logger.error(
                "Failed to store transformation record",
                extra={"transformation_id": record.transformation_id, "error_type": type(e).__name__},
                exc_info=True,
            )
            record.append_error(f"Storage failed: {e}")


def build_object_store(settings: PipelineSettings) -> ObjectStore:
    """Create the object store backend named in the storage settings."""
    storage = settings.storage
    if storage.backend == "filesystem":
        return FileSystemObjectStore(storage.path)
    if storage.backend == "postgres":
        pool = DatabaseConnectionPool(
            host=storage.db_host,
            port=storage.db_port,
            database=storage.db_name,
            user=storage.db_user,
            password=storage.db_password,
        )
        pool.open()
        try:
            return PostgresObjectStore(pool)
        except StorageFailure:
            pool.close()
            raise
    return InMemoryObjectStore()


def build_encryptor(settings: PipelineSettings, metrics: MetricsCollector | None = None) -> EnvelopeEncryptor | None:
    """Create the envelope encryptor, or None when encryption is disabled."""
    encryption = settings.encryption
    if not encryption.enabled:
        logger.warning("Payload encryption is disabled; records are stored in plaintext")
        return None

    if encryption.local_mode:
        return EnvelopeEncryptor.local(encryption.local_key, metrics=metrics)

    if encryption.kms_private_key_path:
        key_service = RsaOaepKeyService.from_file(encryption.kms_private_key_path, key_name=encryption.kms_key_name)
    else:
        logger.warning("No key file configured, using an ephemeral RSA key for the key service")
        key_service = RsaOaepKeyService(key_name=encryption.kms_key_name)
    return EnvelopeEncryptor(key_service=key_service, kms_key_name=encryption.kms_key_name, metrics=metrics)


def build_pipeline(
    settings: PipelineSettings | None = None,
    publisher: QueuePublisher | None = None,
) -> TransformationPipeline:
    """
    Wire a TransformationPipeline from settings.

    Args:
        settings: Pipeline settings (defaults when None)
        publisher: Queue publisher; an InMemoryQueuePublisher is used when None

    Returns:
        A pipeline owning every collaborator it created
    """
    settings = settings or PipelineSettings()
    metrics = MetricsCollector() if settings.metrics_enabled else None
    engine = TransformationEngine()
    publisher = publisher or InMemoryQueuePublisher()

    encryptor = build_encryptor(settings, metrics)
    record_store = EncryptedRecordStore(build_object_store(settings), encryptor, metrics)

    scheduler = None
    if settings.retry.enabled:
        scheduler = RetryScheduler(settings.retry, engine, publisher, record_store, metrics)

    logger.info(
        "Pipeline built",
        extra={
            "storage_backend": settings.storage.backend,
            "encryption_enabled": encryptor is not None,
            "retry_enabled": scheduler is not None,
        },
    )
    return TransformationPipeline(
        engine=engine,
        publisher=publisher,
        record_store=record_store,
        scheduler=scheduler,
        metrics=metrics,
        input_queue=settings.queues.input_queue,
        output_queue=settings.queues.output_queue,
        default_kind=settings.queues.default_transformation,
        store_results=settings.storage.store_results,
    )
