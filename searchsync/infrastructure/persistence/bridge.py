"""OrmBridge - turns SQLAlchemy session commits into plugin notifications."""

import asyncio
import logging
import threading
from collections.abc import Awaitable, Callable
from concurrent.futures import Future
from typing import Any

from sqlalchemy import event
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

NotificationSink = Callable[[str, Any], Awaitable[None]]

PERSISTED = "objectPersisted"
UPDATED = "objectUpdated"
DELETED = "objectDeleted"

_PENDING_KEY = "searchsync.pending_notifications"


def notification_name(obj: Any, suffix: str) -> str:
    return f"{type(obj).__name__}.{suffix}"


class OrmBridge:
    """Forwards committed inserts, updates and deletes to a notification sink.

    Changes are collected on ``after_flush`` and only emitted on
    ``after_commit``; a rollback discards them. Notifications are delivered
    on ``loop`` (the loop running when the bridge is installed, by default),
    one commit after another, so a later commit never overtakes an earlier
    one. Delivery failures are logged, the commit has already happened.

    Sessions feeding the bridge must use ``expire_on_commit=False``: the
    subjects are serialized after the commit, outside the session.
    """

    def __init__(
        self, sink: NotificationSink, loop: asyncio.AbstractEventLoop | None = None
    ) -> None:
        self._sink = sink
        self._loop = loop
        self._target: Any = None
        self._futures: set[Future] = set()
        self._last: Future | None = None
        self._chain_lock = threading.Lock()

    @property
    def installed(self) -> bool:
        return self._target is not None

    def install(self, target: Any = Session) -> "OrmBridge":
        """Listen on a Session class, sessionmaker or session instance."""
        if self._target is not None:
            raise RuntimeError("OrmBridge is already installed")
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        event.listen(target, "after_flush", self._after_flush)
        event.listen(target, "after_commit", self._after_commit)
        event.listen(target, "after_soft_rollback", self._after_rollback)
        self._target = target
        logger.debug(f"ORM bridge installed on {target!r}")
        return self

    def remove(self) -> None:
        if self._target is None:
            return
        event.remove(self._target, "after_flush", self._after_flush)
        event.remove(self._target, "after_commit", self._after_commit)
        event.remove(self._target, "after_soft_rollback", self._after_rollback)
        logger.debug(f"ORM bridge removed from {self._target!r}")
        self._target = None

    async def drain(self) -> None:
        """Wait for notifications of every commit seen so far."""
        with self._chain_lock:
            futures = list(self._futures)
        pending = [asyncio.wrap_future(f) for f in futures]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    # --- session events ---

    def _after_flush(self, session: Session, flush_context: Any) -> None:
        pending: list[tuple[str, Any]] = session.info.setdefault(_PENDING_KEY, [])
        pending.extend((notification_name(obj, PERSISTED), obj) for obj in session.new)
        pending.extend(
            (notification_name(obj, UPDATED), obj)
            for obj in session.dirty
            if session.is_modified(obj, include_collections=False)
        )
        pending.extend((notification_name(obj, DELETED), obj) for obj in session.deleted)

    def _after_commit(self, session: Session) -> None:
        notifications = session.info.pop(_PENDING_KEY, None)
        if not notifications:
            return
        with self._chain_lock:
            future = asyncio.run_coroutine_threadsafe(
                self._deliver(notifications, self._last), self._loop
            )
            self._last = future
            self._futures.add(future)
        future.add_done_callback(self._discard)

    def _discard(self, future: Future) -> None:
        with self._chain_lock:
            self._futures.discard(future)

    def _after_rollback(self, session: Session, previous_transaction: Any) -> None:
        session.info.pop(_PENDING_KEY, None)

    async def _deliver(self, notifications: list[tuple[str, Any]], previous: Future | None) -> None:
        if previous is not None and not previous.done():
            await asyncio.wait([asyncio.wrap_future(previous)])
        for name, obj in notifications:
            try:
                await self._sink(name, obj)
            except Exception as e:
                logger.error(f"Failed to deliver {name}: {e}")
