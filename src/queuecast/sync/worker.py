"""Periodic background workers."""

import threading
from abc import ABC, abstractmethod
from typing import Optional

from queuecast.logging.config import get_logger

logger = get_logger(__name__)


class PeriodicWorker(threading.Thread, ABC):
    """
    Runs ``tick`` on a fixed interval until the cancel event is set.

    Cancellation is cooperative: a tick in progress finishes (every network
    call it makes is bounded by a timeout) and the loop exits at the next
    wait.
    """

    def __init__(
        self,
        interval: float,
        cancel: Optional[threading.Event] = None,
        name: Optional[str] = None,
    ):
        super().__init__(name=name or type(self).__name__, daemon=True)
        self.interval = interval
        self.cancel = cancel or threading.Event()
        self.ticks = 0

    @abstractmethod
    def tick(self) -> None:
        """Perform one unit of periodic work."""

    def run(self) -> None:
        logger.debug(f"{self.name} started (every {self.interval:g}s)")
        while not self.cancel.is_set():
            try:
                self.tick()
            except Exception as e:
                logger.error(f"Error in {self.name}: {e}", exc_info=True)
            self.ticks += 1
            if self.cancel.wait(self.interval):
                break
        logger.debug(f"{self.name} stopped")

    def stop(self, timeout: Optional[float] = None) -> None:
        self.cancel.set()
        if self.is_alive() and threading.current_thread() is not self:
            self.join(timeout)
