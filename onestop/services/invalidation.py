"""
View Invalidation

After a write, the views that show the changed data are stale. The
services announce stale view keys here; the UI subscribes and drops
its cached copies.
"""

import threading
from collections import deque
from typing import Callable

import structlog


logger = structlog.get_logger(__name__)

DASHBOARD_VIEW = "/dashboard"

Listener = Callable[[str], None]


def account_view(account_id: int) -> str:
    """View key for one account's detail page."""
    return f"/account/{account_id}"


class ViewInvalidator:
    """
    Notifies listeners of stale view keys.

    Only the most recent `max_pending` keys are kept for drain(); older
    ones are dropped once listeners have been told about them.
    """

    def __init__(self, max_pending: int = 256):
        self._listeners: list[Listener] = []
        self._stale: deque[str] = deque(maxlen=max_pending)
        self._lock = threading.Lock()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a function that unsubscribes it."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def revalidate(self, path: str) -> None:
        """Mark a view as stale."""
        with self._lock:
            self._stale.append(path)
            listeners = list(self._listeners)

        for listener in listeners:
            try:
                listener(path)
            except Exception as e:
                # A broken listener must not undo a committed write
                logger.error("view_listener_failed", path=path, error=str(e))

    def revalidate_transaction(self, account_id: int) -> list[str]:
        """Mark the views affected by a new transaction on an account."""
        paths = [DASHBOARD_VIEW, account_view(account_id)]
        for path in paths:
            self.revalidate(path)
        return paths

    def drain(self) -> list[str]:
        """Return the stale keys recorded since the last drain and clear them."""
        with self._lock:
            stale = list(self._stale)
            self._stale.clear()
        return stale
