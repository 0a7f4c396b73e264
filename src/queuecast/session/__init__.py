"""Session lifecycle for queuecast."""

from queuecast.session.manager import Session, SessionManager

__all__ = ["Session", "SessionManager"]
