"""Session change fan-out for the auth handle.

Two subscription forms share one subscriber list:

- callbacks: ``subscribe(callback) -> unsubscribe``
- streams: ``open_stream() -> SessionStream``, an async iterator with cancel()

Both receive the current state immediately on subscription, then one event
per transition, in transition order.
"""

from __future__ import annotations

import asyncio
import threading
from collections.abc import Callable
from typing import Any

from fireaccess.application.dtos.auth import AuthUser
from fireaccess.shared.telemetry.logging import get_logger

logger = get_logger(__name__)

SessionCallback = Callable[[AuthUser | None], Any]

_CLOSED = object()


class SessionStream:
    """Cancellable stream of session states.

    Usage:
        stream = sessions.session_changes()
        async for user in stream:
            ...
        # elsewhere: stream.cancel() ends the loop after queued events drain
    """

    def __init__(self, broadcaster: "SessionBroadcaster") -> None:
        self._broadcaster = broadcaster
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._cancelled = False
        self._sink = self._deliver

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Stop receiving events. Idempotent."""
        if self._cancelled:
            return
        self._cancelled = True
        self._broadcaster._remove(self._sink)
        self._queue.put_nowait(_CLOSED)

    def _deliver(self, user: AuthUser | None) -> None:
        if not self._cancelled:
            self._queue.put_nowait(user)

    def __aiter__(self) -> "SessionStream":
        return self

    async def __anext__(self) -> AuthUser | None:
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item


class SessionBroadcaster:
    """Holds session subscribers and delivers state changes to them."""

    def __init__(self, current: Callable[[], AuthUser | None]) -> None:
        self._current = current
        self._subscribers: list[SessionCallback] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: SessionCallback) -> Callable[[], None]:
        """Register callback, deliver the current state to it, and return an unsubscribe function."""
        with self._lock:
            self._subscribers.append(callback)
        self._safe_call(callback, self._current())

        def unsubscribe() -> None:
            self._remove(callback)

        return unsubscribe

    def open_stream(self) -> SessionStream:
        """Return a new stream whose first event is the current state."""
        stream = SessionStream(self)
        stream._sink(self._current())
        with self._lock:
            self._subscribers.append(stream._sink)
        return stream

    def publish(self, user: AuthUser | None) -> None:
        """Deliver one state change to every subscriber registered right now."""
        with self._lock:
            snapshot = list(self._subscribers)
        for callback in snapshot:
            self._safe_call(callback, user)

    def _remove(self, callback: SessionCallback) -> None:
        with self._lock:
            for i, registered in enumerate(self._subscribers):
                if registered is callback:
                    del self._subscribers[i]
                    return

    @staticmethod
    def _safe_call(callback: SessionCallback, user: AuthUser | None) -> None:
        try:
            callback(user)
        except Exception:
            logger.exception("Session change subscriber raised")
