"""Reconciliation of remote room state against the renderer."""

import enum
import threading
import time
from typing import Callable, Optional, Tuple

from queuecast.config import Settings, get_settings
from queuecast.exceptions import (
    AdvanceFailure,
    ControlError,
    DeviceUnreachable,
    FatalDeviceLoss,
    OperationCancelled,
)
from queuecast.logging.config import get_logger
from queuecast.models import (
    Device,
    PlaybackIntent,
    RoomState,
    Track,
    TransportState,
    TransportStatus,
)
from queuecast.renderer.client import RendererClient
from queuecast.room.client import RoomClient
from queuecast.sync.mailbox import Mailbox
from queuecast.sync.pollers import StatusReading

logger = get_logger(__name__)

END_OF_TRACK = {TransportState.STOPPED, TransportState.NO_MEDIA}


class SyncState(enum.Enum):
    """Orchestrator state."""

    IDLE = "idle"                  # No track assigned yet
    CASTING = "casting"            # Renderer instructed, assumed progressing
    ADVANCING = "advancing"        # End of track seen, waiting for the room to move on
    RECOVERING = "recovering"      # Renderer lost, trying to reconnect
    TERMINATED = "terminated"


def same_track(a: Optional[Track], b: Optional[Track]) -> bool:
    if a is None or b is None:
        return a is b
    return a.id == b.id and a.url == b.url


class SyncOrchestrator:
    """
    Keeps one renderer playing the room's current track.

    Responsibilities:
    - Cast the room's current track whenever it changes
    - Detect end of track from renderer status and ask the room to advance
    - Follow the room's play/pause intent
    - Reconnect after device loss, giving up after a bounded number of attempts

    The room is the only authority on which track plays. A locally observed
    stop only ever triggers an advance request; the next track is whatever the
    room reports afterwards.

    Reconciliation passes are serialized: the background loop and direct
    callers share one lock.
    """

    def __init__(
        self,
        client: RendererClient,
        room: RoomClient,
        settings: Optional[Settings] = None,
        relocate: Optional[Callable[[Device], Optional[Device]]] = None,
        client_factory: Optional[Callable[[Device], RendererClient]] = None,
        on_fatal: Optional[Callable[[FatalDeviceLoss], None]] = None,
        cancel: Optional[threading.Event] = None,
    ):
        """
        Initialize orchestrator.

        Args:
            client: Control client for the selected renderer
            room: Client for the selected room
            settings: Settings to use (defaults to config value)
            relocate: Finds the renderer again during recovery
            client_factory: Builds a control client for a relocated renderer
            on_fatal: Called once when recovery is exhausted
            cancel: Session-wide cancellation event
        """
        self.client = client
        self.room = room
        self.settings = settings or get_settings()
        self.relocate = relocate
        self.client_factory = client_factory
        self.on_fatal = on_fatal
        self.cancel = cancel or threading.Event()

        self.wakeup = threading.Event()
        self.room_box: Mailbox[RoomState] = Mailbox(self.wakeup)
        self.status_box: Mailbox[StatusReading] = Mailbox(self.wakeup)

        self.state = SyncState.IDLE
        self.room_state: Optional[RoomState] = None
        self.instructed_track: Optional[Track] = None
        self.instructed_intent: Optional[PlaybackIntent] = None
        self.last_transport: Optional[TransportState] = None
        self.advance_requests = 0
        self.recovery_attempts = 0
        self.fatal_error: Optional[FatalDeviceLoss] = None

        self._advance_pending = False
        self._resume_state = SyncState.IDLE
        self._next_recovery_at = 0.0
        self._pass_lock = threading.RLock()
        self._thread: Optional[threading.Thread] = None

    # -- lifecycle -----------------------------------------------------

    def start(self) -> None:
        """Run the reconciliation loop in a background thread."""
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self.run, name="SyncOrchestrator", daemon=True)
        self._thread.start()

    def run(self) -> None:
        """
        Reconciliation loop.

        Waits for a new observation in either mailbox, then runs one pass with
        whatever both mailboxes hold. Recovery attempts run on their own timer.
        """
        logger.info("Sync orchestrator started")
        tick = min(self.settings.status_interval, self.settings.recovery_interval)

        while not self.cancel.is_set():
            self.wakeup.wait(tick)
            self.wakeup.clear()
            if self.cancel.is_set():
                break

            room = self.room_box.take()
            status = self.status_box.take()
            try:
                if room is not None or status is not None:
                    self.reconcile(room=room, status=status)
                if self.state is SyncState.RECOVERING and time.monotonic() >= self._next_recovery_at:
                    self.attempt_recovery()
            except Exception as e:
                logger.error(f"Error in reconciliation pass: {e}", exc_info=True)

        logger.info("Sync orchestrator stopped")

    def terminate(self, timeout: Optional[float] = None) -> None:
        """
        Stop the loop and move to Terminated.

        In-flight control calls are not interrupted; they return within their
        own timeout and the loop exits at the next checkpoint.
        """
        self.cancel.set()
        self.wakeup.set()
        thread = self._thread
        if thread is not None and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout)
        with self._pass_lock:
            if self.state is not SyncState.TERMINATED:
                self._set_state(SyncState.TERMINATED)

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _set_state(self, state: SyncState) -> None:
        if state is not self.state:
            logger.info(f"State transition: {self.state.value} -> {state.value}")
            self.state = state

    # -- reconciliation ------------------------------------------------

    def reconcile(
        self,
        room: Optional[RoomState] = None,
        status: Optional[StatusReading] = None,
    ) -> None:
        """
        Run one reconciliation pass.

        A room change that recasts the renderer wins over a status reading seen
        in the same pass; that reading predates the new track and is dropped.

        Args:
            room: Fresh room snapshot, if any
            status: Fresh renderer reading (or the error that replaced it), if any
        """
        with self._pass_lock:
            if self.cancel.is_set() or self.state is SyncState.TERMINATED:
                return

            room_changed = self._accept_room(room)

            if isinstance(status, DeviceUnreachable):
                self._enter_recovery(status)
                return
            if self.state is SyncState.RECOVERING:
                # Room updates stay pending until the renderer is back
                return

            acted = self._apply_room() if room_changed else False
            if status is not None and not acted:
                self._apply_status(status)

    def _accept_room(self, room: Optional[RoomState]) -> bool:
        if room is None:
            return False
        if not room.is_newer_than(self.room_state):
            logger.debug(
                f"Ignoring room revision {room.revision} "
                f"(have {self.room_state.revision if self.room_state else None})"
            )
            return False
        self.room_state = room
        return True

    def _apply_room(self) -> bool:
        """Act on the current room snapshot. Returns True if the renderer was commanded."""
        room = self.room_state
        if room is None:
            return False
        track = room.current_track

        if track is None:
            if self.state is SyncState.ADVANCING:
                logger.info("Queue is empty")
            elif self.state is SyncState.CASTING:
                logger.info("Room cleared its current track, stopping renderer")
                self._command(self.client.stop)
                if self.state is SyncState.RECOVERING:
                    return True
            self.instructed_track = None
            self._advance_pending = False
            self._set_state(SyncState.IDLE)
            return True

        if not same_track(track, self.instructed_track):
            self._cast(track, room.playback_intent)
            return True

        if self.state is SyncState.CASTING and room.playback_intent is not self.instructed_intent:
            logger.info(f"Room playback intent is now {room.playback_intent.value}")
            if room.playback_intent is PlaybackIntent.PAUSED:
                sent = self._command(self.client.pause)
            else:
                sent = self._command(self.client.play)
            if sent:
                self.instructed_intent = room.playback_intent
            return True

        return False

    def _command(self, command: Callable[[], None]) -> bool:
        try:
            command()
        except DeviceUnreachable as e:
            self._enter_recovery(e)
            return False
        except ControlError as e:
            logger.error(f"Renderer rejected command: {e}")
            return True
        except OperationCancelled:
            return False
        return True

    def _cast(self, track: Track, intent: PlaybackIntent) -> None:
        logger.info(f"Casting '{track}' ({track.url})")
        try:
            self.client.set_track(track.url, title=track.title or None)
            if intent is PlaybackIntent.PLAYING:
                self.client.play()
        except DeviceUnreachable as e:
            self._enter_recovery(e)
            return
        except ControlError as e:
            # Remembered anyway so the same rejected command is not resent every pass
            logger.error(f"Renderer rejected '{track}': {e}")
        except OperationCancelled:
            return

        self.instructed_track = track
        self.instructed_intent = intent
        self.last_transport = None
        self._advance_pending = False
        self._set_state(SyncState.CASTING)

    def _apply_status(self, status: TransportStatus) -> None:
        previous = self.last_transport
        # TRANSITIONING between PLAYING and the end of track must not hide that it was playing
        if not (previous is TransportState.PLAYING and status.state is TransportState.TRANSITIONING):
            self.last_transport = status.state
        self.recovery_attempts = 0

        if self.state is SyncState.ADVANCING:
            if self._advance_pending:
                self._request_advance()
            return
        if self.state is not SyncState.CASTING:
            return

        room = self.room_state
        if room is None or not same_track(room.current_track, self.instructed_track):
            return

        finished = previous is TransportState.PLAYING and status.state in END_OF_TRACK
        threshold = self.settings.near_end_seconds
        nearly_finished = (
            threshold > 0
            and status.state is TransportState.PLAYING
            and status.remaining is not None
            and status.remaining <= threshold
        )
        if not (finished or nearly_finished):
            return

        logger.info(
            f"'{self.instructed_track}' finished "
            f"({previous.value if previous else None} -> {status.state.value}), requesting next track"
        )
        self._set_state(SyncState.ADVANCING)
        self._advance_pending = True
        self._request_advance()

    def _request_advance(self) -> None:
        revision = self.room_state.revision if self.room_state else None
        try:
            self.room.advance(revision=revision)
        except AdvanceFailure as e:
            logger.warning(f"{e}; will retry")
            return
        self._advance_pending = False
        self.advance_requests += 1

    # -- recovery ------------------------------------------------------

    def _enter_recovery(self, error: DeviceUnreachable) -> None:
        if self.state in (SyncState.RECOVERING, SyncState.TERMINATED):
            return
        logger.error(f"Renderer unreachable: {error}")
        self._resume_state = self.state
        self._set_state(SyncState.RECOVERING)
        self._next_recovery_at = time.monotonic() + self.settings.recovery_interval

    def attempt_recovery(self) -> None:
        """
        Try once to reach the renderer again and converge on the room state.

        After ``max_recovery_attempts`` failures the device is declared lost.
        """
        with self._pass_lock:
            if self.state is not SyncState.RECOVERING or self.cancel.is_set():
                return

            self.recovery_attempts += 1
            limit = self.settings.max_recovery_attempts
            logger.info(f"Recovery attempt {self.recovery_attempts}/{limit}")

            reachable, probe = self._reconnect()
            if reachable:
                logger.info(f"Renderer {self.client.device.friendly_name} is back")
                # Readings from before the loss say nothing about the renderer now
                self.last_transport = None
                self._set_state(self._resume_state)
                if not self._apply_room():
                    self._resume_command(probe)
                return

            if self.recovery_attempts >= limit:
                self._give_up()
            else:
                self._next_recovery_at = time.monotonic() + self.settings.recovery_interval

    def _resume_command(self, probe: Optional[TransportStatus]) -> None:
        """Re-send the command that was in effect when the renderer was lost."""
        if self.state is SyncState.ADVANCING:
            if self._advance_pending:
                self._request_advance()
            return
        if self.state is not SyncState.CASTING or self.instructed_track is None:
            return

        if probe is not None and probe.state not in END_OF_TRACK:
            # Still holds the track
            self.last_transport = probe.state
            return

        logger.info(f"Renderer lost '{self.instructed_track}', casting it again")
        self._cast(self.instructed_track, self.instructed_intent or PlaybackIntent.PLAYING)

    def _reconnect(self) -> Tuple[bool, Optional[TransportStatus]]:
        """Find and probe the renderer. Returns (reachable, probe status)."""
        device = self.client.device
        if self.relocate is not None:
            found = self.relocate(device)
            if found is None:
                logger.warning(f"Renderer {device.udn} not found")
                return False, None
            if found != device and self.client_factory is not None:
                logger.info(f"Renderer moved to {found.location}")
                previous = self.client
                self.client = self.client_factory(found)
                previous.close()

        try:
            return True, self.client.get_status()
        except ControlError:
            # It answered, so it is reachable
            return True, None
        except (DeviceUnreachable, OperationCancelled) as e:
            logger.warning(f"Renderer still unreachable: {e}")
            return False, None

    def _give_up(self) -> None:
        error = FatalDeviceLoss(self.client.device.udn, self.recovery_attempts)
        logger.error(str(error))
        self.fatal_error = error
        self._set_state(SyncState.TERMINATED)
        try:
            if self.on_fatal is not None:
                self.on_fatal(error)
        finally:
            self.cancel.set()
            self.wakeup.set()
