"""
Delayed retry of failed transformations with dead-letter routing.

A single dispatcher thread keeps a heap of pending retries ordered by due
time and waits on a condition until the earliest one is due; due retries are
handed to a bounded worker pool. Attempt counters and retry contexts are
keyed by input message id and guarded by striped locks, so unrelated
messages never contend on one lock. No lock is held while transforming,
publishing or storing.
"""

import heapq
import itertools
import threading
import time
import uuid
from concurrent.futures import Future, ThreadPoolExecutor

from pydantic import BaseModel

from swift_transform.core.engine import TransformationEngine, detect_message_type
from swift_transform.core.exceptions import SchedulingFailure
from swift_transform.core.models import TransformationRecord, TransformationStatus, TransformationType
from swift_transform.messaging.publisher import QueuePublisher, dead_letter_headers, publish_output
from swift_transform.observability.logger import get_logger
from swift_transform.observability.metrics import MetricsCollector
from swift_transform.storage.record_store import EncryptedRecordStore

from .config import RetryConfig

logger = get_logger(__name__)

LOCK_STRIPES = 32


class RetryContext(BaseModel):
    """Everything needed to re-run one transformation attempt."""

    input_message: str | None
    transformation_type: TransformationType | None
    input_queue: str | None = None
    output_queue: str | None = None
    correlation_id: str | None = None
    message_id: str
    transformation_id: str
    attempt_number: int

    class Config:
        frozen = True


class RetryScheduler:
    """
    Decides between retry and dead-letter for failed transformations and
    runs deferred retries.

    Collaborators other than the engine are optional; each is checked before use.
    """

    def __init__(
        self,
        config: RetryConfig,
        engine: TransformationEngine,
        publisher: QueuePublisher | None = None,
        record_store: EncryptedRecordStore | None = None,
        metrics: MetricsCollector | None = None,
    ):
        self.config = config
        self.engine = engine
        self.publisher = publisher
        self.record_store = record_store
        self.metrics = metrics

        self._attempts: dict[str, int] = {}
        self._contexts: dict[str, RetryContext] = {}
        self._locks = [threading.Lock() for _ in range(LOCK_STRIPES)]

        self._heap: list[tuple[float, int, RetryContext]] = []
        self._sequence = itertools.count()
        self._condition = threading.Condition()
        self._closed = False
        self._cancelled = False

        self._inflight = 0
        self._idle = threading.Condition()

        self._executor = ThreadPoolExecutor(
            max_workers=config.worker_pool_size, thread_name_prefix="retry-worker"
        )
        self._dispatcher = threading.Thread(target=self._dispatch_loop, name="retry-dispatcher", daemon=True)
        self._dispatcher.start()

        if config.enabled and not config.is_valid():
            logger.warning("Retry is enabled but the configuration cannot retry anything")
        logger.info(
            "Retry scheduler started",
            extra={
                "enabled": config.enabled,
                "max_attempts": config.max_attempts,
                "initial_interval_ms": config.initial_interval_ms,
                "multiplier": config.multiplier,
                "workers": config.worker_pool_size,
            },
        )

    @property
    def closed(self) -> bool:
        return self._closed

    def get_attempt(self, message_id: str) -> int:
        """Retries scheduled so far for a message (0 when none)."""
        with self._lock_for(message_id):
            return self._attempts.get(message_id, 0)

    def pending_count(self) -> int:
        with self._condition:
            return len(self._heap)

    def should_retry(self, record: TransformationRecord) -> bool:
        """Whether a failed record is eligible for another attempt."""
        return self.rejection_reason(record) is None

    def rejection_reason(self, record: TransformationRecord) -> str | None:
        """Why a record will not be retried, or None when it is eligible."""
        if not self.config.enabled or self.config.max_attempts <= 0:
            return "Retry disabled"
        if not self.config.is_retryable(record.status):
            return f"Status {record.status.value} is not retryable"
        if self.get_attempt(record.input_message_id) >= self.config.max_attempts:
            return f"Max retry attempts ({self.config.max_attempts}) exceeded"
        return None

    def schedule_retry(
        self,
        input_message: str | None,
        kind: TransformationType | None,
        input_queue: str | None = None,
        output_queue: str | None = None,
        correlation_id: str | None = None,
        message_id: str | None = None,
        transformation_id: str | None = None,
    ) -> int:
        """
        Schedule the next attempt for a message.

        Args:
            input_message: Original input message
            kind: Transformation to re-apply
            input_queue: Queue the message came from
            output_queue: Queue to publish a successful result to
            correlation_id: Caller correlation id
            message_id: Input message id (retry state key)
            transformation_id: Record id of the lineage; kept across attempts

        Returns:
            Delay in milliseconds before the attempt runs

        Raises:
            SchedulingFailure: If the scheduler is closed or message_id is missing
        """
        if not message_id:
            raise SchedulingFailure("Cannot schedule a retry without a message id")
        if self._closed:
            raise SchedulingFailure("Retry scheduler is closed")

        with self._lock_for(message_id):
            attempt = self._attempts.get(message_id, 0) + 1
            self._attempts[message_id] = attempt
            previous = self._contexts.get(message_id)
            if transformation_id is None:
                transformation_id = previous.transformation_id if previous else str(uuid.uuid4())
            context = RetryContext(
                input_message=input_message,
                transformation_type=kind,
                input_queue=input_queue,
                output_queue=output_queue,
                correlation_id=correlation_id,
                message_id=message_id,
                transformation_id=transformation_id,
                attempt_number=attempt,
            )
            self._contexts[message_id] = context

        delay_ms = self.config.calculate_delay_ms(attempt)
        self._push(context, delay_ms)

        logger.info(
            "Scheduled retry",
            extra={"message_id": message_id, "attempt": attempt, "delay_ms": delay_ms},
        )
        if self.metrics:
            self.metrics.record_retry_scheduled(kind.value if kind else "UNKNOWN")
        return delay_ms

    def dead_letter(self, record: TransformationRecord, reason: str | None = None) -> None:
        """
        Move a failed record to DEAD_LETTER, publish it to the dead-letter
        queue when configured, persist it and discard retry state.

        Raises:
            StorageFailure: If the record cannot be persisted; retry state is
                kept so the caller can decide again
            EncryptionFailure: If the record cannot be encrypted for storage
        """
        original_status = record.status
        retry_attempts = self.get_attempt(record.input_message_id)
        reason = reason or self.rejection_reason(record) or "Sent to dead-letter queue"

        record.status = TransformationStatus.DEAD_LETTER
        record.attempt_count = retry_attempts
        record.max_attempts = self.config.max_attempts
        record.append_error(reason)

        logger.error(
            "Routing message to dead-letter sink",
            extra={
                "message_id": record.input_message_id,
                "transformation_id": record.transformation_id,
                "original_status": original_status.value,
                "retry_attempts": retry_attempts,
            },
        )

        if self.config.send_to_dead_letter_on_failure and self.publisher is not None:
            try:
                self.publisher.publish(
                    self.config.dead_letter_queue,
                    record.input_message or "",
                    dead_letter_headers(record, original_status, retry_attempts),
                )
            except Exception as e:
                logger.error(
                    "Failed to publish to dead-letter queue",
                    extra={"queue": self.config.dead_letter_queue, "error_type": type(e).__name__},
                    exc_info=True,
                )
                record.append_error(f"Dead-letter publish failed: {e}")

        self._store(record)
        self._clear(record.input_message_id)

        if self.metrics:
            kind = record.transformation_type.value if record.transformation_type else "UNKNOWN"
            self.metrics.record_dead_letter(kind, original_status.value)

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until no retry is pending or running. Returns False on timeout."""
        with self._idle:
            return self._idle.wait_for(lambda: self._inflight == 0, timeout)

    def close(self, grace_seconds: float | None = None) -> None:
        """
        Stop accepting retries and shut the worker pool down.

        Retries that fall due within the grace period still run; whatever is
        left afterwards is cancelled and its state discarded. An attempt
        still running at that point is joined and does not publish or store.
        """
        grace = self.config.shutdown_grace_seconds if grace_seconds is None else grace_seconds

        with self._condition:
            if self._closed:
                return
            self._closed = True
            self._condition.notify_all()

        drained = self.wait_idle(timeout=grace)

        with self._condition:
            self._cancelled = True
            dropped = len(self._heap)
            self._heap.clear()
            self._condition.notify_all()
        if dropped:
            self._task_done(dropped)
            logger.warning("Cancelled pending retries at shutdown", extra={"count": dropped})

        # queued attempts are cancelled; running ones see _cancelled and are joined
        self._executor.shutdown(wait=True, cancel_futures=True)
        self._dispatcher.join(timeout=5.0)

        self._attempts.clear()
        self._contexts.clear()
        if self.metrics:
            self.metrics.set_pending_retries(0)

        logger.info("Retry scheduler stopped", extra={"drained": drained, "cancelled": dropped})

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def _lock_for(self, message_id: str) -> threading.Lock:
        return self._locks[hash(message_id) % LOCK_STRIPES]

    def _push(self, context: RetryContext, delay_ms: int) -> None:
        due = time.monotonic() + delay_ms / 1000.0
        with self._idle:
            self._inflight += 1
        with self._condition:
            if self._closed:
                self._task_done()
                raise SchedulingFailure("Retry scheduler is closed")
            heapq.heappush(self._heap, (due, next(self._sequence), context))
            pending = len(self._heap)
            self._condition.notify_all()
        if self.metrics:
            self.metrics.set_pending_retries(pending)

    def _dispatch_loop(self) -> None:
        with self._condition:
            while not self._cancelled:
                if not self._heap:
                    if self._closed:
                        return
                    self._condition.wait()
                    continue

                due, _, context = self._heap[0]
                remaining = due - time.monotonic()
                if remaining > 0:
                    self._condition.wait(timeout=remaining)
                    continue

                heapq.heappop(self._heap)
                future: Future = self._executor.submit(self._run, context)
                future.add_done_callback(lambda _: self._task_done())
                if self.metrics:
                    self.metrics.set_pending_retries(len(self._heap))

    def _task_done(self, count: int = 1) -> None:
        with self._idle:
            self._inflight = max(0, self._inflight - count)
            if self._inflight == 0:
                self._idle.notify_all()

    def _is_current(self, context: RetryContext) -> bool:
        with self._lock_for(context.message_id):
            return self._contexts.get(context.message_id) is context

    def _clear(self, message_id: str) -> None:
        with self._lock_for(message_id):
            self._attempts.pop(message_id, None)
            self._contexts.pop(message_id, None)

    def _run(self, context: RetryContext) -> None:
        if self._cancelled or not self._is_current(context):
            logger.debug("Skipping superseded retry", extra={"message_id": context.message_id})
            return

        try:
            self._execute(context)
        except SchedulingFailure as e:
            if self._closed:
                logger.warning(
                    "Retry dropped during shutdown",
                    extra={"message_id": context.message_id, "attempt": context.attempt_number},
                )
                self._clear(context.message_id)
                return
            logger.error("Could not schedule next retry", extra={"message_id": context.message_id})
            self._handle_execution_error(context, e)
        except Exception as e:
            logger.error(
                "Error during retry execution",
                extra={"message_id": context.message_id, "attempt": context.attempt_number},
                exc_info=True,
            )
            self._handle_execution_error(context, e)

    def _execute(self, context: RetryContext) -> None:
        logger.info(
            "Executing retry",
            extra={"message_id": context.message_id, "attempt": context.attempt_number},
        )
        kind = context.transformation_type.value if context.transformation_type else "UNKNOWN"

        result = self.engine.transform(context.input_message, context.transformation_type)
        if self._cancelled:
            logger.warning("Discarding retry result after shutdown", extra={"message_id": context.message_id})
            return
        record = self._build_record(context)
        record.apply_result(result)
        record.append_error(f"Retry attempt {context.attempt_number}")

        if result.is_successful():
            if self.publisher is not None and context.output_queue:
                publish_output(self.publisher, record, context.output_queue, context.attempt_number, self.metrics)
            self._store(record)
            self._clear(context.message_id)
            logger.info(
                "Retry succeeded",
                extra={"message_id": context.message_id, "attempt": context.attempt_number},
            )
            self._outcome(kind, "success")
        elif self.should_retry(record):
            logger.warning(
                "Retry failed, scheduling next attempt",
                extra={"message_id": context.message_id, "attempt": context.attempt_number},
            )
            if self.config.store_retry_attempts:
                record.status = TransformationStatus.RETRY
                self._store(record)
            self._reschedule(context)
            self._outcome(kind, "rescheduled")
        else:
            self.dead_letter(record)
            self._outcome(kind, "dead_letter")

    def _handle_execution_error(self, context: RetryContext, error: Exception) -> None:
        if self._cancelled:
            logger.warning("Discarding failed retry after shutdown", extra={"message_id": context.message_id})
            self._clear(context.message_id)
            return
        kind = context.transformation_type.value if context.transformation_type else "UNKNOWN"
        try:
            record = self._build_record(context)
            record.status = TransformationStatus.FAILED
            record.append_error(f"Retry attempt {context.attempt_number} failed: {error}")
            if self.should_retry(record):
                self._reschedule(context)
                self._outcome(kind, "rescheduled")
            else:
                self.dead_letter(record)
                self._outcome(kind, "dead_letter")
        except Exception:
            logger.error(
                "Could not recover from retry error, discarding retry state",
                extra={"message_id": context.message_id},
                exc_info=True,
            )
            self._clear(context.message_id)
            self._outcome(kind, "error")

    def _reschedule(self, context: RetryContext) -> None:
        self.schedule_retry(
            context.input_message,
            context.transformation_type,
            context.input_queue,
            context.output_queue,
            context.correlation_id,
            context.message_id,
            context.transformation_id,
        )

    def _build_record(self, context: RetryContext) -> TransformationRecord:
        record = TransformationRecord.create_new(
            context.message_id,
            context.input_message,
            detect_message_type(context.input_message),
            context.transformation_type,
            context.correlation_id,
        )
        record.transformation_id = context.transformation_id
        record.input_queue = context.input_queue
        record.output_queue = context.output_queue
        record.attempt_count = context.attempt_number
        record.max_attempts = self.config.max_attempts
        return record

    def _store(self, record: TransformationRecord) -> None:
        if self.record_store is not None:
            self.record_store.store(record)

    def _outcome(self, kind: str, outcome: str) -> None:
        if self.metrics:
            self.metrics.record_retry_outcome(kind, outcome)
