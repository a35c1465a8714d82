"""
Unit tests for the transformation pipeline and its settings-driven wiring.
"""

import pytest

from swift_transform.config.settings import EncryptionSettings, PipelineSettings, StorageSettings
from swift_transform.core.engine import TransformationEngine
from swift_transform.core.exceptions import SchedulingFailure, StorageFailure
from swift_transform.core.models import TransformationStatus, TransformationType
from swift_transform.crypto.key_service import RsaOaepKeyService
from swift_transform.messaging.publisher import InMemoryQueuePublisher
from swift_transform.observability.metrics import MetricsCollector, generate_metrics, get_sample_value
from swift_transform.pipeline.pipeline import TransformationPipeline, build_encryptor, build_pipeline
from swift_transform.retry.config import DEFAULT_DEAD_LETTER_QUEUE, RetryConfig
from swift_transform.retry.scheduler import RetryScheduler
from swift_transform.storage.object_store import FileSystemObjectStore, InMemoryObjectStore
from swift_transform.storage.record_store import EncryptedRecordStore

INPUT_QUEUE = "swift/mt103/inbound"
OUTPUT_QUEUE = "swift/mt202/outbound"


class FailingPublisher(InMemoryQueuePublisher):
    def publish(self, queue_name, payload, headers=None):
        raise ConnectionError("broker unavailable")


class FullDiskObjectStore(InMemoryObjectStore):
    def put(self, key, body):
        raise StorageFailure("disk full")


@pytest.fixture
def make_pipeline(publisher, record_store):
    pipelines = []

    def factory(retry: RetryConfig | None = None, **overrides):
        engine = TransformationEngine()
        options = {
            "engine": engine,
            "publisher": publisher,
            "record_store": record_store,
            "input_queue": INPUT_QUEUE,
            "output_queue": OUTPUT_QUEUE,
        }
        if retry is not None:
            options["scheduler"] = RetryScheduler(
                retry, engine, overrides.get("publisher", publisher), overrides.get("record_store", record_store)
            )
        options.update(overrides)
        pipeline = TransformationPipeline(**options)
        pipelines.append(pipeline)
        return pipeline

    yield factory

    for pipeline in pipelines:
        if pipeline.scheduler is not None:
            pipeline.scheduler.close(grace_seconds=0)
        pipeline.close()


def fast_retry(**overrides) -> RetryConfig:
    values = {"enabled": True, "initial_interval_ms": 10, "max_interval_ms": 100, "use_jitter": False}
    values.update(overrides)
    return RetryConfig(**values)


class TestSynchronousPath:
    """Test processing without retries"""

    def test_success_publishes_and_stores(self, make_pipeline, publisher, record_store, mt103_message):
        pipeline = make_pipeline()

        record = pipeline.process(mt103_message, message_id="MSG-1", correlation_id="CORR-1")

        assert record.status == TransformationStatus.PARTIAL_SUCCESS
        assert record.input_message_type == "MT103"
        assert record.output_message_type == "MT202"
        assert record.input_queue == INPUT_QUEUE
        assert record.output_queue == OUTPUT_QUEUE
        assert record.timings.transform_time_ms is not None
        assert record.timings.publish_time_ms is not None
        assert record.processing_time_ms is not None

        published = publisher.messages_for(OUTPUT_QUEUE)
        assert len(published) == 1
        headers = published[0].headers
        assert headers["messageId"] == record.output_message_id
        assert headers["transformationId"] == record.transformation_id
        assert headers["inputMessageId"] == "MSG-1"
        assert headers["inputMessageType"] == "MT103"
        assert headers["outputMessageType"] == "MT202"
        assert headers["transformationType"] == "MT103_TO_MT202"
        assert headers["correlationId"] == "CORR-1"
        assert headers["retryAttempt"] == "0"
        assert ":20:REF123456789" in published[0].payload

        assert record.encrypted
        assert record.input_message is None
        stored = record_store.retrieve(record.transformation_id)
        assert stored.input_message == mt103_message
        assert stored.output_message == published[0].payload

    def test_failure_without_scheduler_is_stored(self, make_pipeline, publisher, record_store, mt103_missing_amount):
        record = make_pipeline().process(mt103_missing_amount, message_id="MSG-1")

        assert record.status == TransformationStatus.VALIDATION_ERROR
        assert publisher.messages == []
        assert record_store.retrieve(record.transformation_id).status == TransformationStatus.VALIDATION_ERROR

    def test_generated_message_id(self, make_pipeline, mt103_message):
        record = make_pipeline().process(mt103_message)
        assert record.input_message_id

    def test_default_and_explicit_kind(self, make_pipeline, mt103_message):
        pipeline = make_pipeline()

        assert pipeline.process(mt103_message).transformation_type == TransformationType.MT103_TO_MT202
        normalized = pipeline.process(mt103_message, kind=TransformationType.NORMALIZE_FORMAT)
        assert normalized.output_message_type == "NORMALIZED"
        assert normalized.status == TransformationStatus.SUCCESS

    def test_publish_failure_downgrades_to_partial_success(self, make_pipeline, mt103_with_institutions):
        pipeline = make_pipeline(publisher=FailingPublisher())

        record = pipeline.process(mt103_with_institutions, message_id="MSG-1")

        assert record.status == TransformationStatus.PARTIAL_SUCCESS
        assert record.error_message == f"Failed to publish to {OUTPUT_QUEUE}: broker unavailable"

    def test_storage_failure_is_recorded(self, make_pipeline, local_encryptor, mt103_with_institutions):
        pipeline = make_pipeline(record_store=EncryptedRecordStore(FullDiskObjectStore(), local_encryptor))

        record = pipeline.process(mt103_with_institutions, message_id="MSG-1")

        assert record.status == TransformationStatus.SUCCESS
        assert record.error_message == "Storage failed: disk full"

    def test_store_results_disabled(self, make_pipeline, object_store, mt103_message):
        make_pipeline(store_results=False).process(mt103_message)
        assert object_store.list("transformation-") == []

    def test_metrics_recorded(self, make_pipeline, mt103_message):
        labels = {"transformation_type": "MT103_TO_MT202", "status": "PARTIAL_SUCCESS"}
        before = get_sample_value("swift_transformations_total", labels)

        make_pipeline(metrics=MetricsCollector()).process(mt103_message)

        assert get_sample_value("swift_transformations_total", labels) == before + 1
        assert b"swift_transformations_total" in generate_metrics()

    def test_closed_pipeline_rejects_messages(self, make_pipeline, mt103_message):
        pipeline = make_pipeline()
        pipeline.close()

        with pytest.raises(SchedulingFailure):
            pipeline.process(mt103_message)


class TestRetryPath:
    """Test processing with a retry scheduler"""

    def test_retryable_failure_is_scheduled(self, make_pipeline, record_store, mt103_missing_amount):
        pipeline = make_pipeline(retry=fast_retry(initial_interval_ms=60000, max_interval_ms=60000))

        record = pipeline.process(mt103_missing_amount, message_id="MSG-1")

        assert record.status == TransformationStatus.RETRY
        assert record.attempt_count == 1
        assert record.max_attempts == 3
        assert pipeline.scheduler.pending_count() == 1
        assert record_store.retrieve(record.transformation_id) is None

    def test_non_retryable_failure_is_dead_lettered(self, make_pipeline, publisher, record_store):
        pipeline = make_pipeline(retry=fast_retry())

        record = pipeline.process("", message_id="MSG-1")

        assert record.status == TransformationStatus.DEAD_LETTER
        dead_letters = publisher.messages_for(DEFAULT_DEAD_LETTER_QUEUE)
        assert len(dead_letters) == 1
        assert dead_letters[0].headers["originalStatus"] == "PARSE_ERROR"
        assert dead_letters[0].headers["retryAttempts"] == "0"
        assert "Status PARSE_ERROR is not retryable" in record.error_message
        assert record_store.retrieve(record.transformation_id).status == TransformationStatus.DEAD_LETTER

    def test_dead_letter_storage_failure_is_recorded(self, make_pipeline, publisher, local_encryptor):
        pipeline = make_pipeline(
            retry=fast_retry(),
            record_store=EncryptedRecordStore(FullDiskObjectStore(), local_encryptor),
        )

        record = pipeline.process("", message_id="MSG-1")

        assert record.status == TransformationStatus.DEAD_LETTER
        assert record.error_message.endswith("Storage failed: disk full")
        assert len(publisher.messages_for(DEFAULT_DEAD_LETTER_QUEUE)) == 1

    def test_retries_keep_transformation_id(self, make_pipeline, publisher, record_store, mt103_missing_amount):
        """Test that the dead-letter record replaces the first attempt under one id"""
        pipeline = make_pipeline(retry=fast_retry())

        record = pipeline.process(mt103_missing_amount, message_id="MSG-1", correlation_id="CORR-1")
        assert pipeline.scheduler.wait_idle(timeout=5)

        stored = record_store.retrieve(record.transformation_id)
        assert stored.status == TransformationStatus.DEAD_LETTER
        assert stored.attempt_count == 3
        assert stored.correlation_id == "CORR-1"
        assert len(record_store.list()) == 1
        assert publisher.messages_for(DEFAULT_DEAD_LETTER_QUEUE)[0].headers["retryAttempts"] == "3"

    def test_schedule_failure_dead_letters(self, make_pipeline, mt103_missing_amount):
        pipeline = make_pipeline(retry=fast_retry())
        pipeline.scheduler.close(grace_seconds=0)

        record = pipeline.process(mt103_missing_amount, message_id="MSG-1")

        assert record.status == TransformationStatus.DEAD_LETTER
        assert "Retry could not be scheduled: Retry scheduler is closed" in record.error_message

    def test_retry_disabled_dead_letters(self, make_pipeline, mt103_missing_amount):
        pipeline = make_pipeline(retry=RetryConfig(enabled=False))

        record = pipeline.process(mt103_missing_amount, message_id="MSG-1")

        assert record.status == TransformationStatus.DEAD_LETTER
        assert "Retry disabled" in record.error_message


class TestBuildPipeline:
    """Test wiring a pipeline from settings"""

    def test_defaults(self):
        with build_pipeline() as pipeline:
            assert pipeline.scheduler is None
            assert isinstance(pipeline.publisher, InMemoryQueuePublisher)
            assert pipeline.record_store.encryption_enabled
            assert pipeline.output_queue == OUTPUT_QUEUE
            assert pipeline.default_kind == TransformationType.MT103_TO_MT202

    def test_filesystem_with_retry(self, tmp_path, local_key, mt103_message):
        settings = PipelineSettings(
            retry=fast_retry(),
            encryption=EncryptionSettings(local_key=local_key),
            storage=StorageSettings(backend="filesystem", path=str(tmp_path)),
        )
        publisher = InMemoryQueuePublisher()

        with build_pipeline(settings, publisher=publisher) as pipeline:
            assert pipeline.scheduler is not None
            record = pipeline.process(mt103_message, message_id="MSG-1")

        assert publisher.messages_for(OUTPUT_QUEUE)
        assert (tmp_path / record.storage_key).exists()
        assert b"REF123456789" not in (tmp_path / record.storage_key).read_bytes()

    def test_encryption_disabled(self):
        settings = PipelineSettings(encryption=EncryptionSettings(enabled=False))
        assert build_encryptor(settings) is None

    def test_kms_mode_with_key_file(self, tmp_path, key_service):
        pem_path = tmp_path / "kek.pem"
        pem_path.write_bytes(key_service.export_pem())
        settings = PipelineSettings(
            encryption=EncryptionSettings(
                local_mode=False, kms_key_name="test-kek", kms_private_key_path=str(pem_path)
            )
        )

        encryptor = build_encryptor(settings)

        assert not encryptor.local_mode
        assert isinstance(encryptor.key_service, RsaOaepKeyService)
        assert encryptor.decrypt(encryptor.encrypt("payload")) == "payload"

    def test_filesystem_backend_type(self, tmp_path):
        settings = PipelineSettings(storage=StorageSettings(backend="filesystem", path=str(tmp_path)))
        with build_pipeline(settings) as pipeline:
            assert isinstance(pipeline.record_store.object_store, FileSystemObjectStore)
