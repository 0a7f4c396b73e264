"""Single-slot "latest value" mailbox."""

import threading
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class Mailbox(Generic[T]):
    """
    Holds at most one unread value.

    ``put`` overwrites whatever is unread; the consumer only ever needs the
    freshest observation. Every put also sets the shared ``wakeup`` event so
    one consumer can wait on several mailboxes at once.
    """

    def __init__(self, wakeup: Optional[threading.Event] = None):
        self._lock = threading.Lock()
        self._value: Optional[T] = None
        self._has_value = False
        self.wakeup = wakeup or threading.Event()
        self.overwritten = 0

    def put(self, value: T) -> None:
        with self._lock:
            if self._has_value:
                self.overwritten += 1
            self._value = value
            self._has_value = True
        self.wakeup.set()

    def take(self) -> Optional[T]:
        """Return and clear the unread value, or None if there is none."""
        with self._lock:
            value = self._value
            self._value = None
            self._has_value = False
        return value
