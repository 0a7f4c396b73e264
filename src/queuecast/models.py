"""Value types exchanged between queuecast components.

Every model is frozen: devices, room snapshots and transport readings are
passed between threads by value and never mutated after creation.
"""

import enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

AV_TRANSPORT = "urn:schemas-upnp-org:service:AVTransport:1"
RENDERING_CONTROL = "urn:schemas-upnp-org:service:RenderingControl:1"


def _service_kind(service_type: str) -> str:
    """Strip the version suffix: ``...:AVTransport:2`` -> ``...:AVTransport``."""
    head, _, version = service_type.rpartition(":")
    return head if version.isdigit() else service_type


class ServiceEndpoint(BaseModel):
    """A UPnP service published by a device."""

    model_config = ConfigDict(frozen=True)

    service_type: str
    control_url: str
    event_url: Optional[str] = None


class Device(BaseModel):
    """A discovered media renderer."""

    model_config = ConfigDict(frozen=True)

    udn: str
    friendly_name: str
    location: str
    device_type: str = ""
    services: Tuple[ServiceEndpoint, ...] = ()

    def service(self, service_type: str) -> Optional[ServiceEndpoint]:
        """
        Find a service by type, ignoring the version suffix.

        Args:
            service_type: Service URN, e.g. ``urn:schemas-upnp-org:service:AVTransport:1``

        Returns:
            Matching endpoint or None
        """
        wanted = _service_kind(service_type)
        for endpoint in self.services:
            if _service_kind(endpoint.service_type) == wanted:
                return endpoint
        return None

    def supports(self, service_type: str) -> bool:
        return self.service(service_type) is not None

    @property
    def av_transport(self) -> Optional[ServiceEndpoint]:
        return self.service(AV_TRANSPORT)

    @property
    def rendering_control(self) -> Optional[ServiceEndpoint]:
        return self.service(RENDERING_CONTROL)

    def __str__(self) -> str:
        return f"{self.friendly_name} ({self.udn})"


class Track(BaseModel):
    """A track selected by the room service."""

    model_config = ConfigDict(
        frozen=True, populate_by_name=True, coerce_numbers_to_str=True
    )

    id: str
    title: str = ""
    url: str
    duration: Optional[float] = Field(default=None, ge=0)

    def __str__(self) -> str:
        return self.title or self.id


class PlaybackIntent(str, enum.Enum):
    """Whether the room wants the current track to play."""

    PLAYING = "playing"
    PAUSED = "paused"


class RoomState(BaseModel):
    """Snapshot of a room as reported by the remote service."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    current_track: Optional[Track] = Field(default=None, alias="currentTrack")
    queue: Tuple[Track, ...] = ()
    playback_intent: PlaybackIntent = Field(
        default=PlaybackIntent.PLAYING, alias="playbackIntent"
    )
    revision: int = Field(ge=0)

    def is_newer_than(self, other: Optional["RoomState"]) -> bool:
        """A snapshot only counts as a change if its revision strictly increases."""
        return other is None or self.revision > other.revision


class TransportState(enum.Enum):
    """Renderer transport state."""

    PLAYING = "PLAYING"
    PAUSED = "PAUSED"
    STOPPED = "STOPPED"
    TRANSITIONING = "TRANSITIONING"
    NO_MEDIA = "NO_MEDIA"
    ERRORED = "ERRORED"

    @classmethod
    def from_upnp(cls, value: Optional[str]) -> "TransportState":
        """
        Map a UPnP ``CurrentTransportState`` value.

        Args:
            value: Raw state string reported by the renderer

        Returns:
            TransportState (ERRORED for anything unrecognised)
        """
        raw = (value or "").strip().upper()
        return _UPNP_STATES.get(raw, cls.ERRORED)


_UPNP_STATES = {
    "PLAYING": TransportState.PLAYING,
    "PAUSED_PLAYBACK": TransportState.PAUSED,
    "PAUSED_RECORDING": TransportState.PAUSED,
    "PAUSED": TransportState.PAUSED,
    "STOPPED": TransportState.STOPPED,
    "TRANSITIONING": TransportState.TRANSITIONING,
    "NO_MEDIA_PRESENT": TransportState.NO_MEDIA,
    "RECORDING": TransportState.PLAYING,
}


class TransportStatus(BaseModel):
    """One reading of the renderer's transport state and position."""

    model_config = ConfigDict(frozen=True)

    state: TransportState
    position: Optional[float] = None
    duration: Optional[float] = None

    @property
    def remaining(self) -> Optional[float]:
        if self.position is None or not self.duration:
            return None
        return max(0.0, self.duration - self.position)
