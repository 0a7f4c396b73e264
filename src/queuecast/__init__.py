"""queuecast - keep a DLNA renderer in sync with a remote song-queue room."""

__version__ = "0.1.0"
