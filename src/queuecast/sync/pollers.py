"""Pollers feeding the orchestrator's mailboxes."""

import threading
from typing import Callable, Optional, Union

from queuecast.exceptions import (
    ControlError,
    DeviceUnreachable,
    OperationCancelled,
    PollFailure,
)
from queuecast.logging.config import get_logger
from queuecast.models import RoomState, TransportStatus
from queuecast.renderer.client import RendererClient
from queuecast.room.client import RoomClient
from queuecast.sync.mailbox import Mailbox
from queuecast.sync.worker import PeriodicWorker

logger = get_logger(__name__)

StatusReading = Union[TransportStatus, DeviceUnreachable]


class QueuePoller(PeriodicWorker):
    """
    Fetches room state on a fixed interval.

    Failures never stop the poller: the last good snapshot stays current and
    the failure counters grow until the next success.
    """

    def __init__(
        self,
        room: RoomClient,
        mailbox: Mailbox[RoomState],
        interval: float,
        cancel: Optional[threading.Event] = None,
    ):
        super().__init__(interval, cancel, name=f"QueuePoller-{room.room_id}")
        self.room = room
        self.mailbox = mailbox
        self.latest: Optional[RoomState] = None
        self.failures = 0
        self.consecutive_failures = 0

    def tick(self) -> None:
        try:
            state = self.room.fetch_state()
        except PollFailure as e:
            self.failures += 1
            self.consecutive_failures += 1
            logger.warning(f"Room poll failed ({self.consecutive_failures} in a row): {e}")
            return

        if self.consecutive_failures:
            logger.info(f"Room poll recovered after {self.consecutive_failures} failure(s)")
        self.consecutive_failures = 0

        if not state.is_newer_than(self.latest):
            return

        self.latest = state
        self.mailbox.put(state)


class StatusPoller(PeriodicWorker):
    """
    Queries the renderer's transport status on a fixed interval.

    The client is looked up on every tick because recovery may replace it.
    DeviceUnreachable is delivered to the mailbox so the orchestrator can react;
    rejected queries are only logged.
    """

    def __init__(
        self,
        client: Callable[[], RendererClient],
        mailbox: Mailbox[StatusReading],
        interval: float,
        cancel: Optional[threading.Event] = None,
    ):
        super().__init__(interval, cancel, name="StatusPoller")
        self.client = client
        self.mailbox = mailbox

    def tick(self) -> None:
        try:
            status = self.client().get_status()
        except DeviceUnreachable as e:
            self.mailbox.put(e)
            return
        except ControlError as e:
            logger.warning(f"Status query rejected: {e}")
            return
        except OperationCancelled:
            return

        logger.debug(f"Renderer status: {status.state.value} {status.position}/{status.duration}")
        self.mailbox.put(status)
