"""Ownership of the single active device/room pairing."""

import threading
from typing import Callable, Optional

from queuecast.config import Settings, get_settings
from queuecast.discovery.discoverer import DeviceDiscoverer
from queuecast.exceptions import FatalDeviceLoss, SessionAlreadyActive
from queuecast.logging.config import get_logger
from queuecast.models import Device
from queuecast.renderer.client import RendererClient
from queuecast.room.client import RoomClient
from queuecast.sync.orchestrator import SyncOrchestrator, SyncState
from queuecast.sync.pollers import QueuePoller, StatusPoller

logger = get_logger(__name__)

ClientFactory = Callable[[Device, threading.Event], RendererClient]
RoomFactory = Callable[[str], RoomClient]


class Session:
    """One renderer bound to one room, with the threads that keep them in sync."""

    def __init__(
        self,
        device: Device,
        room: RoomClient,
        orchestrator: SyncOrchestrator,
        queue_poller: QueuePoller,
        status_poller: StatusPoller,
        cancel: threading.Event,
        join_timeout: Optional[float] = None,
    ):
        self.device = device
        self.room = room
        self.orchestrator = orchestrator
        self.queue_poller = queue_poller
        self.status_poller = status_poller
        self.cancel = cancel
        self.join_timeout = join_timeout
        self.closed = False

    @property
    def room_url(self) -> str:
        return self.room.room_url

    @property
    def room_id(self) -> str:
        return self.room.room_id

    @property
    def state(self) -> SyncState:
        return self.orchestrator.state

    @property
    def live(self) -> bool:
        return not self.closed and not self.cancel.is_set()

    def start(self) -> None:
        self.orchestrator.start()
        self.queue_poller.start()
        self.status_poller.start()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Block until the session ends.

        Args:
            timeout: Seconds to wait, None for no limit

        Returns:
            True if the session ended, False on timeout

        Raises:
            FatalDeviceLoss: If the renderer was lost for good
        """
        ended = self.cancel.wait(timeout)
        if self.orchestrator.fatal_error is not None:
            raise self.orchestrator.fatal_error
        return ended

    def close(self) -> None:
        """Cancel all activity and release resources. Safe to call repeatedly."""
        if self.closed:
            return
        self.closed = True

        logger.info(f"Stopping session for room {self.room_id} on {self.device.friendly_name}")
        self.cancel.set()
        self.queue_poller.stop(self.join_timeout)
        self.status_poller.stop(self.join_timeout)
        self.orchestrator.terminate(self.join_timeout)
        self.orchestrator.client.close()
        self.room.close()


class SessionManager:
    """
    Owns at most one Session.

    Usage::

        manager = SessionManager()
        manager.start(device, "https://ktv.example.com/102")
        try:
            manager.wait()
        finally:
            manager.stop()
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        discoverer: Optional[DeviceDiscoverer] = None,
        client_factory: Optional[ClientFactory] = None,
        room_factory: Optional[RoomFactory] = None,
        on_fatal: Optional[Callable[[FatalDeviceLoss], None]] = None,
    ):
        """
        Initialize session manager.

        Args:
            settings: Settings to use (defaults to config value)
            discoverer: Discoverer used to find the renderer again during recovery
            client_factory: Builds a renderer client bound to a cancel event
            room_factory: Builds a room client from a room URL
            on_fatal: Called once if a session loses its renderer for good
        """
        self.settings = settings or get_settings()
        self._discoverer = discoverer
        self.client_factory = client_factory or self._default_client
        self.room_factory = room_factory or self._default_room
        self.on_fatal = on_fatal
        self._session: Optional[Session] = None
        self._lock = threading.Lock()

    def _default_client(self, device: Device, cancel: threading.Event) -> RendererClient:
        return RendererClient(device, settings=self.settings, cancel=cancel)

    def _default_room(self, room_url: str) -> RoomClient:
        return RoomClient(room_url, settings=self.settings)

    @property
    def discoverer(self) -> DeviceDiscoverer:
        if self._discoverer is None:
            self._discoverer = DeviceDiscoverer(settings=self.settings)
        return self._discoverer

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def active(self) -> bool:
        return self._session is not None and self._session.live

    def start(self, device: Device, room_url: str) -> Session:
        """
        Bind a renderer to a room and start synchronizing.

        Args:
            device: Selected renderer
            room_url: Room URL

        Returns:
            The running Session

        Raises:
            SessionAlreadyActive: If a session is still running
            InvalidRoomUrl: If the room URL cannot be parsed
        """
        with self._lock:
            if self._session is not None:
                if self._session.live:
                    raise SessionAlreadyActive(
                        f"Session for room {self._session.room_id} on "
                        f"{self._session.device.friendly_name} is still running"
                    )
                logger.info("Cleaning up ended session")
                self._teardown()

            room = self.room_factory(room_url)
            cancel = threading.Event()
            client = self.client_factory(device, cancel)

            orchestrator = SyncOrchestrator(
                client,
                room,
                settings=self.settings,
                relocate=self._relocate,
                client_factory=lambda found: self.client_factory(found, cancel),
                on_fatal=self._handle_fatal,
                cancel=cancel,
            )
            queue_poller = QueuePoller(
                room, orchestrator.room_box, self.settings.poll_interval, cancel
            )
            status_poller = StatusPoller(
                lambda: orchestrator.client,
                orchestrator.status_box,
                self.settings.status_interval,
                cancel,
            )

            session = Session(
                device,
                room,
                orchestrator,
                queue_poller,
                status_poller,
                cancel,
                join_timeout=self.settings.http_timeout * 2,
            )
            session.start()
            self._session = session

            logger.info(f"Casting room {room.room_id} to {device.friendly_name}")
            return session

    def stop(self) -> None:
        """Tear down the current session, if any. Idempotent."""
        with self._lock:
            if self._session is None:
                logger.debug("No session to stop")
                return
            self._teardown()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Block until the current session ends.

        Returns:
            True if there is no running session anymore, False on timeout

        Raises:
            FatalDeviceLoss: If the session ended because the renderer was lost
        """
        session = self._session
        if session is None:
            return True
        return session.wait(timeout)

    def _teardown(self) -> None:
        session = self._session
        self._session = None
        if session is not None:
            session.close()

    def _relocate(self, device: Device) -> Optional[Device]:
        return self.discoverer.relocate(device)

    def _handle_fatal(self, error: FatalDeviceLoss) -> None:
        logger.error(f"Session ended: {error}")
        if self.on_fatal is not None:
            self.on_fatal(error)
