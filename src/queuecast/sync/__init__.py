"""Synchronization between a room and a renderer."""

from queuecast.sync.mailbox import Mailbox
from queuecast.sync.orchestrator import SyncOrchestrator, SyncState
from queuecast.sync.pollers import QueuePoller, StatusPoller
from queuecast.sync.worker import PeriodicWorker

__all__ = [
    "Mailbox",
    "PeriodicWorker",
    "QueuePoller",
    "StatusPoller",
    "SyncOrchestrator",
    "SyncState",
]
