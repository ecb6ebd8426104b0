"""Delayed retraction of delivered paid content.

TaskScheduler is an in-memory work queue of timed tasks keyed by an
arbitrary hashable. It keeps at most one pending task per key: scheduling an
existing key replaces the previous task (last call wins). A daemon worker
thread drains due tasks; run_due() drains synchronously.

Nothing is persisted. Pending tasks are lost on shutdown or crash.
"""

from __future__ import annotations

import heapq
import itertools
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Hashable, Protocol

from starsbot.infra.time import utc_now
from starsbot.observability.logging import get_logger
from starsbot.observability.redaction import hash_identifier, safe_log_context
from starsbot.telegram.client import TelegramAPIError, is_ok

logger = get_logger(__name__)

DEFAULT_RETRACTION_DELAY = timedelta(minutes=60)


@dataclass(frozen=True)
class _Entry:
    seq: int
    fire_at: datetime
    action: Callable[[], None]


class TaskScheduler:
    """Timed tasks with last-call-wins semantics per key.

    All access to the key table and the queue happens under one lock, so a
    lookup and the following insert/cancel are atomic with respect to other
    request threads.
    """

    def __init__(self, clock: Callable[[], datetime] = utc_now, name: str = "task-scheduler") -> None:
        self._clock = clock
        self._name = name
        self._cond = threading.Condition(threading.Lock())
        self._entries: dict[Hashable, _Entry] = {}
        self._queue: list[tuple[datetime, int, Hashable]] = []
        self._seq = itertools.count()
        self._thread: threading.Thread | None = None
        self._stopping = False

    def schedule(self, key: Hashable, delay: timedelta, action: Callable[[], None]) -> datetime:
        """Install `action` to run after `delay`, replacing any task for `key`.

        Returns:
            The time the task will fire.
        """
        fire_at = self._clock() + delay
        with self._cond:
            seq = next(self._seq)
            # Superseded queue entries are skipped by sequence number when popped
            self._entries[key] = _Entry(seq=seq, fire_at=fire_at, action=action)
            heapq.heappush(self._queue, (fire_at, seq, key))
            self._cond.notify()
        return fire_at

    def cancel(self, key: Hashable) -> bool:
        """Drop the pending task for `key`. Returns False if there was none."""
        with self._cond:
            removed = self._entries.pop(key, None) is not None
            self._cond.notify()
        return removed

    def pending(self) -> dict[Hashable, datetime]:
        """Snapshot of pending keys and their fire times."""
        with self._cond:
            return {key: entry.fire_at for key, entry in self._entries.items()}

    def __len__(self) -> int:
        with self._cond:
            return len(self._entries)

    def _pop_due(self, now: datetime) -> list[tuple[Hashable, Callable[[], None]]]:
        due = []
        while self._queue and self._queue[0][0] <= now:
            _, seq, key = heapq.heappop(self._queue)
            entry = self._entries.get(key)
            if entry is None or entry.seq != seq:
                continue
            del self._entries[key]
            due.append((key, entry.action))
        return due

    def _run(self, key: Hashable, action: Callable[[], None]) -> None:
        try:
            action()
        except Exception:
            logger.exception(
                "scheduled task failed",
                extra={"extra_fields": safe_log_context(scheduler=self._name)},
            )

    def run_due(self, now: datetime | None = None) -> int:
        """Run every task due at `now` (default: clock) in the calling thread.

        Returns:
            Number of tasks run.
        """
        with self._cond:
            due = self._pop_due(now or self._clock())
        for key, action in due:
            self._run(key, action)
        return len(due)

    def _loop(self) -> None:
        while True:
            with self._cond:
                if self._stopping:
                    return
                now = self._clock()
                due = self._pop_due(now)
                if not due:
                    timeout = (
                        max((self._queue[0][0] - now).total_seconds(), 0.0)
                        if self._queue
                        else None
                    )
                    self._cond.wait(timeout)
                    continue
            for key, action in due:
                self._run(key, action)

    def start(self) -> None:
        """Start the worker thread (idempotent)."""
        with self._cond:
            if self._thread is not None and self._thread.is_alive():
                return
            self._stopping = False
            self._thread = threading.Thread(target=self._loop, name=self._name, daemon=True)
            self._thread.start()
        logger.info("scheduler started", extra={"extra_fields": safe_log_context(scheduler=self._name)})

    def shutdown(self, timeout: float = 5.0) -> None:
        """Stop the worker thread and discard pending tasks."""
        with self._cond:
            self._stopping = True
            dropped = len(self._entries)
            self._entries.clear()
            self._queue.clear()
            self._cond.notify_all()
            thread = self._thread
            self._thread = None
        if thread is not None:
            thread.join(timeout)
        logger.info(
            "scheduler stopped",
            extra={"extra_fields": safe_log_context(scheduler=self._name, dropped=dropped)},
        )

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()


class MessageDeleter(Protocol):
    def delete_message(self, chat_id: int, message_id: int) -> dict[str, Any]: ...


@dataclass(frozen=True)
class PendingRetraction:
    chat_id: int
    message_id: int
    fire_at: datetime


class RetractionScheduler:
    """Deletes delivered paid content after a delay. Best-effort, never retried."""

    def __init__(
        self,
        telegram: MessageDeleter,
        scheduler: TaskScheduler,
        default_delay: timedelta = DEFAULT_RETRACTION_DELAY,
    ) -> None:
        self._telegram = telegram
        self._scheduler = scheduler
        self._default_delay = default_delay

    def schedule_retraction(
        self,
        chat_id: int,
        message_id: int,
        delay: timedelta | None = None,
    ) -> PendingRetraction:
        fire_at = self._scheduler.schedule(
            (chat_id, message_id),
            delay if delay is not None else self._default_delay,
            lambda: self._retract(chat_id, message_id),
        )
        return PendingRetraction(chat_id=chat_id, message_id=message_id, fire_at=fire_at)

    def cancel_retraction(self, chat_id: int, message_id: int) -> bool:
        return self._scheduler.cancel((chat_id, message_id))

    def pending_retractions(self) -> list[PendingRetraction]:
        return sorted(
            (
                PendingRetraction(chat_id=key[0], message_id=key[1], fire_at=fire_at)
                for key, fire_at in self._scheduler.pending().items()
            ),
            key=lambda item: item.fire_at,
        )

    def _retract(self, chat_id: int, message_id: int) -> None:
        log_ctx = safe_log_context(chat_hash=hash_identifier(chat_id), message_id=message_id)
        try:
            response = self._telegram.delete_message(chat_id, message_id)
        except TelegramAPIError as e:
            logger.warning(
                "retraction failed",
                extra={"extra_fields": {**log_ctx, "error": e.reason}},
            )
            return
        if not is_ok(response):
            logger.warning("retraction rejected", extra={"extra_fields": log_ctx})
            return
        logger.info("content retracted", extra={"extra_fields": log_ctx})
