# ABOUTME: Cooperative cancellation token shared between the supervisor and its workers
# ABOUTME: Supports blocking waits, callbacks, and parent-to-child propagation

"""Cancellation token used at every wait point of a tunnel session."""

import threading
from collections.abc import Callable


class CancelToken:
    """A one-shot cancellation signal.

    Waiting on the token returns as soon as it fires, so loops that sleep with
    ``token.wait(interval)`` never block past cancellation. Child tokens are
    cancelled with their parent; cancelling a child leaves the parent alone.
    """

    def __init__(self):
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: dict[int, Callable[[], None]] = {}
        self._next_id = 0

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        """Fire the token. Callbacks run once, on the cancelling thread."""
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            callbacks = list(self._callbacks.values())
            self._callbacks.clear()

        for callback in callbacks:
            callback()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until cancelled or until ``timeout`` elapses.

        Returns:
            True if the token was cancelled, False on timeout.
        """
        return self._event.wait(timeout)

    def add_callback(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Run ``callback`` on cancellation.

        A callback added to an already-cancelled token runs immediately.

        Returns:
            A function that unregisters the callback.
        """
        with self._lock:
            if not self._event.is_set():
                callback_id = self._next_id
                self._next_id += 1
                self._callbacks[callback_id] = callback

                def remove():
                    with self._lock:
                        self._callbacks.pop(callback_id, None)

                return remove

        callback()
        return lambda: None

    def child(self) -> "CancelToken":
        """Create a token that is cancelled whenever this one is."""
        child = CancelToken()
        remove = self.add_callback(child.cancel)
        # Drop the parent's reference once the child fires on its own
        child.add_callback(remove)
        return child
