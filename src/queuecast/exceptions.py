"""Error taxonomy for queuecast."""

from typing import Optional


class QueuecastError(Exception):
    """Base class for all queuecast errors."""


class DiscoveryEmpty(QueuecastError):
    """No renderer answered within the discovery window."""

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout
        detail = f" within {timeout:g}s" if timeout is not None else ""
        super().__init__(f"No DLNA renderers found{detail}")


class DeviceNotFound(QueuecastError):
    """A device selector matched none of the discovered renderers."""

    def __init__(self, selector: Optional[str], message: Optional[str] = None):
        self.selector = selector
        super().__init__(message or f"No renderer matches '{selector}'")


class RendererError(QueuecastError):
    """Base class for renderer control failures."""


class ControlError(RendererError):
    """The renderer rejected a command or answered with something unusable."""

    def __init__(
        self,
        action: str,
        code: Optional[str] = None,
        description: Optional[str] = None,
    ):
        self.action = action
        self.code = code
        self.description = description
        detail = " ".join(part for part in (code, description) if part) or "unknown fault"
        super().__init__(f"{action} rejected: {detail}")


class DeviceUnreachable(RendererError):
    """The renderer could not be reached within the retry budget."""

    def __init__(self, action: str, attempts: int, reason: Optional[str] = None):
        self.action = action
        self.attempts = attempts
        self.reason = reason
        suffix = f": {reason}" if reason else ""
        super().__init__(f"{action} failed after {attempts} attempt(s){suffix}")


class OperationCancelled(QueuecastError):
    """A control exchange was abandoned because the session is shutting down."""


class RoomServiceError(QueuecastError):
    """Base class for remote room service failures."""


class InvalidRoomUrl(RoomServiceError):
    """The room URL has no host or no room identifier."""


class PollFailure(RoomServiceError):
    """Fetching room state failed (network error or malformed response)."""


class AdvanceFailure(RoomServiceError):
    """The room service did not accept an advance request."""


class SessionAlreadyActive(QueuecastError):
    """A session is already running; stop it before starting another."""


class FatalDeviceLoss(QueuecastError):
    """Recovery gave up on the renderer; a new device must be selected."""

    def __init__(self, udn: str, attempts: int):
        self.udn = udn
        self.attempts = attempts
        super().__init__(f"Lost renderer {udn} after {attempts} recovery attempt(s)")
