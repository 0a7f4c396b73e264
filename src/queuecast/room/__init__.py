"""Remote room service access for queuecast."""

from queuecast.room.client import RoomClient, parse_room_url

__all__ = ["RoomClient", "parse_room_url"]
