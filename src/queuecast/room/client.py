"""HTTP client for the remote song-queue room."""

from typing import Optional, Tuple
from urllib.parse import urlparse

import requests
from pydantic import ValidationError

from queuecast.config import Settings, get_settings
from queuecast.exceptions import AdvanceFailure, InvalidRoomUrl, PollFailure
from queuecast.logging.config import get_logger
from queuecast.models import RoomState

logger = get_logger(__name__)


def parse_room_url(room_url: str) -> Tuple[str, str]:
    """
    Split a room URL into the service base URL and the room id.

    ``https://ktv.example.com/102`` -> (``https://ktv.example.com``, ``102``)

    Args:
        room_url: URL as shared by the room service

    Returns:
        (base_url, room_id)

    Raises:
        InvalidRoomUrl: If the URL has no host or no path segment
    """
    parsed = urlparse(room_url.strip())
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise InvalidRoomUrl(f"Not an http(s) room URL: {room_url!r}")

    segments = [segment for segment in parsed.path.split("/") if segment]
    if not segments:
        raise InvalidRoomUrl(f"No room id in {room_url!r}")

    return f"{parsed.scheme}://{parsed.netloc}", segments[-1]


class RoomClient:
    """Reads room state and requests track advancement."""

    def __init__(
        self,
        room_url: str,
        settings: Optional[Settings] = None,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize room client.

        Args:
            room_url: Room URL, e.g. ``https://ktv.example.com/102``
            settings: Settings to use (defaults to config value)
            session: HTTP session to use
        """
        self.settings = settings or get_settings()
        self.room_url = room_url
        self.base_url, self.room_id = parse_room_url(room_url)
        self.session = session or requests.Session()
        self.session.headers.setdefault("User-Agent", self.settings.user_agent)

    @property
    def state_url(self) -> str:
        return self.base_url + self.settings.room_state_path.format(room_id=self.room_id)

    @property
    def advance_url(self) -> str:
        return self.base_url + self.settings.room_advance_path.format(room_id=self.room_id)

    def fetch_state(self) -> RoomState:
        """
        Fetch the room's current state.

        Returns:
            RoomState snapshot

        Raises:
            PollFailure: On network errors, error statuses or malformed bodies
        """
        try:
            response = self.session.get(self.state_url, timeout=self.settings.http_timeout)
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as e:
            raise PollFailure(f"Fetching room {self.room_id} failed: {e}") from e
        except ValueError as e:
            raise PollFailure(f"Room {self.room_id} returned invalid JSON: {e}") from e

        try:
            return RoomState.model_validate(payload)
        except ValidationError as e:
            raise PollFailure(f"Room {self.room_id} returned unexpected data: {e}") from e

    def advance(self, revision: Optional[int] = None) -> None:
        """
        Ask the room to move on to the next track.

        Args:
            revision: Revision the request is based on, so the service can
                ignore an advance for a track that already changed

        Raises:
            AdvanceFailure: If the request fails or is refused
        """
        body = {} if revision is None else {"revision": revision}
        try:
            response = self.session.post(
                self.advance_url, json=body, timeout=self.settings.http_timeout
            )
            response.raise_for_status()
        except requests.RequestException as e:
            raise AdvanceFailure(f"Advance in room {self.room_id} failed: {e}") from e

        try:
            result = response.json()
        except ValueError:
            result = None
        if isinstance(result, dict) and result.get("success") is False:
            raise AdvanceFailure(f"Room {self.room_id} refused advance: {result}")

        logger.info(f"Requested next track in room {self.room_id}")

    def close(self) -> None:
        self.session.close()
