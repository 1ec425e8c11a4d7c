import asyncio
import logging
import threading
from concurrent.futures import Future

logger = logging.getLogger(__name__)


class PresenceRegistry:
    """Tracks which users have a live socket and pushes events to them.

    One instance is created per application and shared through
    ``app.state.presence``. Each user maps to their most recent socket;
    pushes are scheduled on the event loop that owns that socket, so
    synchronous request handlers can call ``emit_to_user`` from worker
    threads without waiting on delivery.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._sockets: dict[int, tuple[object, asyncio.AbstractEventLoop]] = {}

    def register(self, user_id: int, websocket, loop: asyncio.AbstractEventLoop) -> None:
        with self._lock:
            self._sockets[user_id] = (websocket, loop)
        logger.info("User %s online", user_id)

    def unregister(self, user_id: int, websocket) -> bool:
        """Forget the socket if it is still the one registered for the user.

        Returns:
            True if an entry was removed.
        """
        with self._lock:
            current = self._sockets.get(user_id)
            if current is None or current[0] is not websocket:
                return False
            del self._sockets[user_id]
        logger.info("User %s offline", user_id)
        return True

    def is_online(self, user_id: int) -> bool:
        with self._lock:
            return user_id in self._sockets

    def online_user_ids(self) -> list[int]:
        with self._lock:
            return sorted(self._sockets)

    def emit_to_user(self, user_id: int, event: str, payload: dict) -> Future | None:
        """Schedule ``{"event", "data"}`` on the user's socket.

        Returns:
            The scheduled future, or None if the user has no live socket.
        """
        with self._lock:
            entry = self._sockets.get(user_id)
        if entry is None:
            return None

        websocket, loop = entry
        future = asyncio.run_coroutine_threadsafe(
            websocket.send_json({"event": event, "data": payload}), loop
        )
        future.add_done_callback(
            lambda done: self._log_delivery_failure(user_id, event, done)
        )
        return future

    @staticmethod
    def _log_delivery_failure(user_id: int, event: str, future: Future) -> None:
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            logger.warning("Push of %s to user %s failed: %s", event, user_id, error)


class PushOutbox:
    """Holds pushes raised during a request until its transaction commits.

    Handlers and services call ``emit_to_user`` as they would on the
    registry. ``get_db`` calls ``deliver`` after a successful commit and
    ``discard`` after a rollback, so clients are never told about rows
    they cannot read yet.
    """

    def __init__(self, push):
        self.push = push
        self._pending: list[tuple[int, str, dict]] = []

    def emit_to_user(self, user_id: int, event: str, payload: dict) -> None:
        self._pending.append((user_id, event, payload))

    @property
    def pending(self) -> list[tuple[int, str, dict]]:
        return list(self._pending)

    def deliver(self) -> None:
        pending, self._pending = self._pending, []
        for user_id, event, payload in pending:
            try:
                self.push.emit_to_user(user_id, event, payload)
            except Exception:
                logger.exception("Failed to push %s to user %s", event, user_id)

    def discard(self) -> None:
        if self._pending:
            logger.info("Dropping %d pushes from a rolled back request", len(self._pending))
        self._pending = []
