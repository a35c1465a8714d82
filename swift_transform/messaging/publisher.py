"""
Queue publishing capability.

Broker transport lives outside this package; the pipeline only needs to hand
a payload and headers to a named queue.
"""

import threading
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone

from pydantic import BaseModel, Field

from swift_transform.core.models import TransformationRecord, TransformationStatus
from swift_transform.observability.logger import get_logger
from swift_transform.observability.metrics import MetricsCollector

logger = get_logger(__name__)


class QueuePublisher(ABC):
    """Publishes a text payload with string headers to a named queue."""

    @abstractmethod
    def publish(self, queue_name: str, payload: str, headers: dict[str, str] | None = None) -> None:
        """
        Publish one message.

        Raises:
            Exception: Any transport error; callers treat it as a publish failure
        """
        pass

    def close(self) -> None:
        """Release transport resources."""


class PublishedMessage(BaseModel):
    """A message captured by InMemoryQueuePublisher."""

    queue_name: str
    payload: str
    headers: dict[str, str] = Field(default_factory=dict)
    published_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Config:
        frozen = True


class InMemoryQueuePublisher(QueuePublisher):
    """Keeps published messages in memory (tests and local runs)."""

    def __init__(self):
        self._messages: list[PublishedMessage] = []
        self._lock = threading.Lock()

    def publish(self, queue_name: str, payload: str, headers: dict[str, str] | None = None) -> None:
        message = PublishedMessage(queue_name=queue_name, payload=payload, headers=dict(headers or {}))
        with self._lock:
            self._messages.append(message)

    @property
    def messages(self) -> list[PublishedMessage]:
        with self._lock:
            return list(self._messages)

    def messages_for(self, queue_name: str) -> list[PublishedMessage]:
        with self._lock:
            return [m for m in self._messages if m.queue_name == queue_name]

    def clear(self) -> None:
        with self._lock:
            self._messages.clear()


def output_headers(record: TransformationRecord, retry_attempt: int = 0) -> dict[str, str]:
    """Headers carried by a transformed message on its output queue."""
    headers = {
        "messageId": record.output_message_id,
        "transformationType": record.transformation_type.value if record.transformation_type else "UNKNOWN",
        "transformationId": record.transformation_id,
        "inputMessageId": record.input_message_id,
        "inputMessageType": record.input_message_type or "UNKNOWN",
        "outputMessageType": record.output_message_type or "UNKNOWN",
        "retryAttempt": str(retry_attempt),
        "timestamp": str(int(time.time() * 1000)),
    }
    if record.correlation_id:
        headers["correlationId"] = record.correlation_id
    return headers


def dead_letter_headers(
    record: TransformationRecord, original_status: TransformationStatus, retry_attempts: int
) -> dict[str, str]:
    """Headers carried by a message routed to the dead-letter queue."""
    headers = {
        "messageId": record.input_message_id,
        "transformationType": record.transformation_type.value if record.transformation_type else "UNKNOWN",
        "transformationId": record.transformation_id,
        "failureReason": record.error_message or "",
        "retryAttempts": str(retry_attempts),
        "originalStatus": original_status.value,
    }
    if record.correlation_id:
        headers["correlationId"] = record.correlation_id
    return headers


def publish_output(
    publisher: QueuePublisher,
    record: TransformationRecord,
    queue_name: str,
    retry_attempt: int = 0,
    metrics: MetricsCollector | None = None,
) -> bool:
    """
    Publish a record's output message.

    A publish failure downgrades the record to PARTIAL_SUCCESS and appends the
    cause to its error message; it is not raised.

    Returns:
        Whether the message was published
    """
    try:
        publisher.publish(queue_name, record.output_message, output_headers(record, retry_attempt))
    except Exception as e:
        logger.error(
            "Failed to publish transformed message",
            extra={"queue": queue_name, "transformation_id": record.transformation_id, "error_type": type(e).__name__},
            exc_info=True,
        )
        record.status = TransformationStatus.PARTIAL_SUCCESS
        record.append_error(f"Failed to publish to {queue_name}: {e}")
        if metrics:
            metrics.record_publish(queue_name, False)
        return False

    logger.info(
        "Published transformed message",
        extra={"queue": queue_name, "transformation_id": record.transformation_id},
    )
    if metrics:
        metrics.record_publish(queue_name, True)
    return True
