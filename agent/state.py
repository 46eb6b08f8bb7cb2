"""
Thread-safe state publisher for Agent.

Holds the single ConnectionSnapshot shared by the evaluation and traffic
threads and the state API. Every change replaces the snapshot as a whole.
"""

import logging
import threading
from typing import Callable, List, Optional

from models import ConnectionSnapshot


logger = logging.getLogger(__name__)


Subscriber = Callable[[ConnectionSnapshot], None]


class StatePublisher:
    """
    Single-value broadcast of the latest ConnectionSnapshot.

    Subscribers receive snapshots in the order they were stored. Delivery is
    serialized by ``_delivery_lock``, which is held from the replacement
    until every callback has returned; ``current()`` takes no lock.

    Attributes:
        _snapshot: Current snapshot
        _subscribers: Callbacks notified on every publish
        lock: Threading lock guarding snapshot replacement
        _delivery_lock: Re-entrant lock ordering notifications
    """

    def __init__(self, initial: Optional[ConnectionSnapshot] = None):
        self._snapshot = initial or ConnectionSnapshot()
        self._subscribers: List[Subscriber] = []
        self.lock = threading.Lock()
        self._delivery_lock = threading.RLock()

    def current(self) -> ConnectionSnapshot:
        """Latest snapshot. Never blocks on subscribers."""
        return self._snapshot

    def publish(self, snapshot: ConnectionSnapshot) -> None:
        """Replace the snapshot and notify subscribers."""
        with self._delivery_lock:
            with self.lock:
                self._snapshot = snapshot
                subscribers = list(self._subscribers)
            self._notify(subscribers, snapshot)

    def update(self, change: Callable[[ConnectionSnapshot], ConnectionSnapshot]) -> ConnectionSnapshot:
        """
        Atomically derive and publish a new snapshot from the current one.

        Args:
            change: Function mapping the current snapshot to its replacement

        Returns:
            The published snapshot
        """
        with self._delivery_lock:
            with self.lock:
                snapshot = change(self._snapshot)
                if snapshot == self._snapshot:
                    return snapshot
                self._snapshot = snapshot
                subscribers = list(self._subscribers)
            self._notify(subscribers, snapshot)
        return snapshot

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """
        Register a callback. It immediately receives the current snapshot.

        Returns:
            Function that removes the subscription
        """
        with self._delivery_lock:
            with self.lock:
                self._subscribers.append(callback)
                snapshot = self._snapshot
            self._notify([callback], snapshot)

        def unsubscribe() -> None:
            with self.lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def _notify(self, subscribers: List[Subscriber], snapshot: ConnectionSnapshot) -> None:
        for callback in subscribers:
            try:
                callback(snapshot)
            except Exception as e:
                logger.error(f"State subscriber {callback!r} failed: {e}", exc_info=True)
