"""Ordered, asynchronous persistence of audit records.

A single worker thread drains a FIFO queue, so rows reach ``audit_logs`` in
exactly the order ``submit`` accepted them. Producers only ever touch the
queue; the worker owns every database interaction. Each record is written
with its own pooled connection and committed on its own. Failures are
classified, logged with the full record, reported to the optional
``on_failure`` hook and then dropped. Nothing is retried.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

from prometheus_client import Counter, Gauge, Histogram
from sqlalchemy.exc import (
    DisconnectionError,
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
    TimeoutError as PoolTimeoutError,
)

from audit_service.config import OVERFLOW_POLICIES, Config
from audit_service.db.connections import ConnectionProvider
from audit_service.services.audit_errors import (
    AuditFailure,
    AuditQueueFull,
    AuditSinkClosed,
    FailureKind,
)
from audit_service.services.audit_record import (
    AUDIT_INSERT,
    AuditRecord,
    InvalidActorId,
)

logger = logging.getLogger(__name__)

_SUBMITTED = Counter(
    "audit_records_submitted_total",
    "Audit records accepted by the sink.",
)
_PERSISTED = Counter(
    "audit_records_persisted_total",
    "Audit records written to the audit_logs table.",
)
_DROPPED = Counter(
    "audit_records_dropped_total",
    "Audit records dropped after being accepted.",
    labelnames=("kind",),
)
_REJECTED = Counter(
    "audit_records_rejected_total",
    "Audit records refused at submission.",
    labelnames=("reason",),
)
_QUEUE_DEPTH = Gauge(
    "audit_queue_depth",
    "Audit records waiting for the worker.",
)
_PERSIST_LATENCY = Histogram(
    "audit_persist_duration_seconds",
    "Time spent writing one audit record.",
)

_CONNECTION_ERRORS = (
    DisconnectionError,
    InterfaceError,
    OperationalError,
    PoolTimeoutError,
    ConnectionError,
)

_STOP = object()
_IDLE_POLL_SECONDS = 0.1


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SinkState(str, Enum):
    CREATED = "created"
    RUNNING = "running"
    DRAINING = "draining"
    STOPPED = "stopped"


FailureHook = Callable[[AuditFailure], None]


class AuditSink:
    """Single-worker writer for audit records."""

    def __init__(
        self,
        provider: ConnectionProvider,
        *,
        max_size: int = 0,
        overflow_policy: str = "drop_new",
        submit_timeout: Optional[float] = None,
        clock: Callable[[], datetime] = _utcnow,
        on_failure: Optional[FailureHook] = None,
        name: str = "audit-sink",
    ) -> None:
        if overflow_policy not in OVERFLOW_POLICIES:
            raise ValueError(f"unknown overflow policy: {overflow_policy}")
        self._provider = provider
        self._capacity = max(int(max_size), 0)
        self._queue: queue.Queue = queue.Queue(maxsize=self._capacity)
        self._policy = overflow_policy
        self._submit_timeout = submit_timeout
        self._clock = clock
        self._on_failure = on_failure
        self._name = name
        self._lock = threading.Lock()
        self._state = SinkState.CREATED
        self._worker: Optional[threading.Thread] = None
        self._in_flight = 0

    @classmethod
    def from_config(
        cls,
        config: Config,
        provider: ConnectionProvider,
        **kwargs,
    ) -> "AuditSink":
        return cls(
            provider,
            max_size=config.audit_queue_max_size,
            overflow_policy=config.audit_overflow_policy,
            submit_timeout=config.audit_submit_timeout,
            **kwargs,
        )

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------
    @property
    def state(self) -> SinkState:
        return self._state

    @property
    def capacity(self) -> int:
        """Queue bound; ``0`` means unbounded."""

        return self._capacity

    @property
    def overflow_policy(self) -> str:
        return self._policy

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def start(self) -> None:
        """Spawn the worker thread. Calling it again while running is a no-op."""

        with self._lock:
            if self._state is SinkState.RUNNING:
                return
            if self._state is not SinkState.CREATED:
                raise RuntimeError(
                    f"audit sink cannot restart from state {self._state.value}"
                )
            self._worker = threading.Thread(
                target=self._run, name=self._name, daemon=True
            )
            self._state = SinkState.RUNNING
            self._worker.start()
        logger.info(
            "audit.sink_started name=%s capacity=%s policy=%s",
            self._name,
            self._capacity or "unbounded",
            self._policy,
        )

    def shutdown(self, timeout: Optional[float] = None) -> bool:
        """Stop accepting records and drain the queue.

        Returns ``False`` when the worker is still busy after ``timeout``
        seconds; it keeps draining in the background in that case.
        """

        with self._lock:
            if self._state is SinkState.CREATED:
                self._state = SinkState.STOPPED
                return True
            transitioned = self._state is SinkState.RUNNING
            if transitioned:
                self._state = SinkState.DRAINING
            worker = self._worker
        if transitioned:
            logger.info(
                "audit.sink_draining name=%s pending=%s",
                self._name,
                self._queue.qsize(),
            )
            try:
                # Only wakes an idle worker; a busy one notices the state.
                self._queue.put_nowait(_STOP)
            except queue.Full:
                pass
        if worker is None or worker is threading.current_thread():
            return True
        worker.join(timeout)
        if worker.is_alive():
            logger.warning(
                "audit.sink_drain_timeout name=%s pending=%s timeout=%s",
                self._name,
                self._queue.qsize(),
                timeout,
            )
            return False
        return True

    # ------------------------------------------------------------------
    # Producers
    # ------------------------------------------------------------------
    def submit(self, record: AuditRecord) -> None:
        """Queue ``record`` for persistence.

        Raises ``AuditSinkClosed`` unless the sink is running and
        ``AuditQueueFull`` when the bounded queue refuses the record.
        """

        evicted: list[AuditRecord] = []
        with self._lock:
            if self._state is not SinkState.RUNNING:
                _REJECTED.labels("closed").inc()
                raise AuditSinkClosed(self._state.value)
            if self._policy == "block":
                self._in_flight += 1
            else:
                try:
                    evicted = self._enqueue_nowait(record)
                except AuditQueueFull:
                    _REJECTED.labels("queue_full").inc()
                    raise
        if self._policy == "block":
            self._enqueue_blocking(record)
        _SUBMITTED.inc()
        _QUEUE_DEPTH.set(self._queue.qsize())
        for old_record in evicted:
            self._report(AuditFailure(FailureKind.QUEUE_OVERFLOW, old_record))

    def _enqueue_blocking(self, record: AuditRecord) -> None:
        # Runs outside the lock so producers wait side by side; the worker
        # does not stop while any of them is still waiting.
        try:
            self._queue.put(record, timeout=self._submit_timeout)
        except queue.Full:
            _REJECTED.labels("queue_full").inc()
            raise AuditQueueFull(self._capacity) from None
        finally:
            with self._lock:
                self._in_flight -= 1

    def _enqueue_nowait(self, record: AuditRecord) -> list[AuditRecord]:
        evicted: list[AuditRecord] = []
        while True:
            try:
                self._queue.put_nowait(record)
                return evicted
            except queue.Full:
                if self._policy == "drop_new":
                    raise AuditQueueFull(self._capacity) from None
            try:
                oldest = self._queue.get_nowait()
            except queue.Empty:
                # The worker emptied a slot in the meantime.
                continue
            self._queue.task_done()
            evicted.append(oldest)

    # ------------------------------------------------------------------
    # Worker
    # ------------------------------------------------------------------
    def _run(self) -> None:
        while True:
            try:
                item = self._queue.get(timeout=_IDLE_POLL_SECONDS)
            except queue.Empty:
                if self._drained():
                    break
                continue
            try:
                if item is not _STOP:
                    failure = self._persist(item)
                    if failure is not None:
                        self._report(failure)
            finally:
                self._queue.task_done()
                _QUEUE_DEPTH.set(self._queue.qsize())
            if self._drained():
                break
        logger.info("audit.sink_stopped name=%s", self._name)

    def _drained(self) -> bool:
        """Move to ``STOPPED`` once draining has nothing left to write."""

        with self._lock:
            if self._state is not SinkState.DRAINING:
                return False
            if self._in_flight or not self._queue.empty():
                return False
            self._state = SinkState.STOPPED
            return True

    def _persist(self, record: AuditRecord) -> Optional[AuditFailure]:
        start = time.perf_counter()
        try:
            row = record.to_row(self._clock())
            with self._provider.acquire() as connection:
                connection.execute(AUDIT_INSERT, row)
        except InvalidActorId as exc:
            return AuditFailure(FailureKind.INVALID_ACTOR, record, exc)
        except _CONNECTION_ERRORS as exc:
            return AuditFailure(FailureKind.CONNECTION, record, exc)
        except SQLAlchemyError as exc:
            return AuditFailure(FailureKind.DATABASE, record, exc)
        except Exception as exc:
            return AuditFailure(FailureKind.UNEXPECTED, record, exc)
        finally:
            _PERSIST_LATENCY.observe(time.perf_counter() - start)
        _PERSISTED.inc()
        logger.debug(
            "audit.persisted action=%s actor_id=%s target_type=%s target_id=%s",
            record.action,
            record.actor_id,
            record.target_type,
            record.target_id,
        )
        return None

    def _report(self, failure: AuditFailure) -> None:
        _DROPPED.labels(failure.kind.value).inc()
        record = failure.record
        logger.error(
            "audit.record_dropped kind=%s action=%s actor_id=%s "
            "target_type=%s target_id=%s error=%s record=%s",
            failure.kind.value,
            record.action,
            record.actor_id,
            record.target_type,
            record.target_id,
            failure.message,
            record.to_dict(),
            exc_info=(
                failure.error
                if failure.kind is FailureKind.UNEXPECTED
                else None
            ),
        )
        if self._on_failure is None:
            return
        try:
            self._on_failure(failure)
        except Exception:
            logger.exception(
                "audit.failure_hook_failed kind=%s action=%s",
                failure.kind.value,
                record.action,
            )


__all__ = ["AuditSink", "SinkState"]
