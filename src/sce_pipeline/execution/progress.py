"""Progress events and their delivery to observers.

The coordinator and unit processors publish ``ProgressEvent`` objects to a
``ProgressReporter``. ``ProgressPublisher`` is the in-process
implementation: each subscriber gets a bounded deque drained by its own
task, so a slow (or async) subscriber delays only itself and never the
pipeline. When a subscriber falls behind by more than the queue size the
oldest events are dropped.

Usage::

    publisher = ProgressPublisher(max_queue_size=1000)
    sub_id = publisher.subscribe(print_event)
    publisher.publish(ProgressEvent(ProgressEventType.INFO, "hello"))
    await publisher.flush()
    publisher.unsubscribe(sub_id)
"""

from __future__ import annotations

import asyncio
import inspect
import uuid
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Protocol

from sce_pipeline.core.constants import (
    DEFAULT_PROGRESS_QUEUE_SIZE,
    SUBSCRIBER_MAX_CONSECUTIVE_FAILURES,
)
from sce_pipeline.core.logging import get_logger
from sce_pipeline.utils.time import utc_now

_logger = get_logger("progress")


class ProgressEventType(str, Enum):
    """Discriminator for ``ProgressEvent``."""

    START = "start"
    INFO = "info"
    PROGRESS = "progress"
    DATA_CAPTURED = "data_captured"
    COMPLETE = "complete"
    ERROR = "error"
    WARNING = "warning"
    BATCH_START = "batch_start"
    BATCH_COMPLETE = "batch_complete"


@dataclass(frozen=True)
class ProgressEvent:
    """One progress notification.

    Every event carries ``type`` and a display-ready ``message``. Which of
    the optional fields are set depends on ``type``:

    - ``progress``: ``current``, ``total``, ``percent``
    - ``batch_start``: ``batch_id``, ``total``
    - ``batch_complete``: ``summary``, ``results``
    - unit events: ``record_id``, ``state``; ``attempt`` on retry warnings,
      ``error``/``error_code`` on errors, ``data`` on captures and completion

    Unit events forwarded by the coordinator are also tagged with
    ``batch_id``, ``current`` and ``total``.
    """

    type: ProgressEventType
    message: str
    batch_id: str | None = None
    record_id: str | None = None
    state: str | None = None
    current: int | None = None
    total: int | None = None
    percent: int | None = None
    attempt: int | None = None
    error: str | None = None
    error_code: str | None = None
    data: dict[str, Any] | None = None
    summary: dict[str, Any] | None = None
    results: list[dict[str, Any]] | None = None
    timestamp: datetime = field(default_factory=utc_now)

    def tagged(self, *, batch_id: str, current: int, total: int) -> ProgressEvent:
        """Copy of this event labelled with its batch position."""
        return replace(self, batch_id=batch_id, current=current, total=total)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for transports, omitting unset fields."""
        result: dict[str, Any] = {
            "type": self.type.value,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
        }
        for key in (
            "batch_id", "record_id", "state", "current", "total", "percent",
            "attempt", "error", "error_code", "data", "summary", "results",
        ):
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        return result


class ProgressReporter(Protocol):
    """Where progress events go. Publishing must never block."""

    def publish(self, event: ProgressEvent) -> None:
        ...


EventCallback = Callable[[ProgressEvent], Any]
EventFilter = Callable[[ProgressEvent], bool] | None


class _Subscriber:
    """Internal subscriber state."""

    __slots__ = ("callback", "event_filter", "queue", "consecutive_failures", "task")

    def __init__(
        self,
        callback: EventCallback,
        event_filter: EventFilter,
        queue: deque[ProgressEvent],
    ) -> None:
        self.callback = callback
        self.event_filter = event_filter
        self.queue = queue
        self.consecutive_failures: int = 0
        self.task: asyncio.Task[None] | None = None

    @property
    def disabled(self) -> bool:
        return self.consecutive_failures >= SUBSCRIBER_MAX_CONSECUTIVE_FAILURES


class ProgressPublisher:
    """In-process ``ProgressReporter`` with per-subscriber delivery tasks.

    Also remembers the most recent ``progress`` event so subscribers that
    join mid-batch can be brought up to date.
    """

    def __init__(self, *, max_queue_size: int = DEFAULT_PROGRESS_QUEUE_SIZE) -> None:
        self._max_queue_size = max_queue_size
        self._subscribers: dict[str, _Subscriber] = {}
        self._latest_progress: ProgressEvent | None = None

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    @property
    def latest_progress(self) -> ProgressEvent | None:
        """The most recent ``progress`` event published, if any."""
        return self._latest_progress

    def subscribe(
        self,
        callback: EventCallback,
        *,
        event_filter: EventFilter = None,
        replay_latest: bool = False,
    ) -> str:
        """Register a subscriber.

        Args:
            callback: Sync or async callable receiving each event.
            event_filter: Optional predicate; only matching events are queued.
            replay_latest: Queue the latest ``progress`` event immediately.

        Returns:
            Subscription ID for ``unsubscribe``.
        """
        sub_id = str(uuid.uuid4())
        sub = _Subscriber(
            callback=callback,
            event_filter=event_filter,
            queue=deque(maxlen=self._max_queue_size),
        )
        self._subscribers[sub_id] = sub
        _logger.debug("progress.subscribed", sub_id=sub_id)
        if replay_latest and self._latest_progress is not None:
            self._enqueue(sub_id, sub, self._latest_progress)
        return sub_id

    def unsubscribe(self, sub_id: str) -> bool:
        """Remove a subscriber.

        Events still queued for it are discarded and a delivery in progress
        is cancelled.
        """
        sub = self._subscribers.pop(sub_id, None)
        if sub is None:
            return False
        sub.queue.clear()
        if sub.task is not None and not sub.task.done():
            sub.task.cancel()
        _logger.debug("progress.unsubscribed", sub_id=sub_id)
        return True

    def publish(self, event: ProgressEvent) -> None:
        """Queue ``event`` for every matching subscriber and return at once."""
        if event.type is ProgressEventType.PROGRESS:
            self._latest_progress = event
        for sub_id, sub in list(self._subscribers.items()):
            self._enqueue(sub_id, sub, event)

    async def flush(self, timeout: float | None = None) -> bool:
        """Wait until every queued event has been delivered.

        Args:
            timeout: Seconds to wait at most; ``None`` waits indefinitely.

        Returns:
            False if delivery was still pending when ``timeout`` expired.
        """
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout
        while True:
            pending = [
                sub.task
                for sub in self._subscribers.values()
                if sub.task is not None and not sub.task.done()
            ]
            if not pending:
                return True
            remaining = None if deadline is None else max(deadline - loop.time(), 0)
            _, not_done = await asyncio.wait(pending, timeout=remaining)
            if not_done:
                _logger.warning(
                    "progress.flush_timeout",
                    pending_subscribers=len(not_done),
                    timeout_s=timeout,
                )
                return False

    def _enqueue(self, sub_id: str, sub: _Subscriber, event: ProgressEvent) -> None:
        if sub.disabled:
            return
        try:
            if sub.event_filter is not None and not sub.event_filter(event):
                return
        except Exception:
            _logger.warning(
                "progress.filter_error",
                subscriber_id=sub_id,
                event_type=event.type.value,
                exc_info=True,
            )
            return
        if len(sub.queue) == sub.queue.maxlen:
            _logger.debug("progress.event_dropped", subscriber_id=sub_id)
        sub.queue.append(event)
        if sub.task is None or sub.task.done():
            sub.task = asyncio.get_running_loop().create_task(
                self._drain(sub_id, sub), name=f"progress-drain-{sub_id[:8]}"
            )

    async def _drain(self, sub_id: str, sub: _Subscriber) -> None:
        """Deliver queued events to one subscriber, in order."""
        while sub.queue and not sub.disabled:
            event = sub.queue.popleft()
            try:
                result = sub.callback(event)
                if inspect.isawaitable(result):
                    await result
                sub.consecutive_failures = 0
            except Exception:
                sub.consecutive_failures += 1
                _logger.warning(
                    "progress.subscriber_error",
                    subscriber_id=sub_id,
                    event_type=event.type.value,
                    consecutive_failures=sub.consecutive_failures,
                    exc_info=True,
                )
                if sub.disabled:
                    _logger.error(
                        "progress.subscriber_disabled",
                        subscriber_id=sub_id,
                        reason=f"{SUBSCRIBER_MAX_CONSECUTIVE_FAILURES} consecutive failures",
                    )
                    sub.queue.clear()


__all__ = [
    "EventCallback",
    "ProgressEvent",
    "ProgressEventType",
    "ProgressPublisher",
    "ProgressReporter",
]
