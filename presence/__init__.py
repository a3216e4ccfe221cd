from .schemas import Heartbeat, PresenceSnapshot
from .tracker import PresenceTracker
from .history import PresenceHistory

__all__ = ["Heartbeat", "PresenceSnapshot", "PresenceTracker", "PresenceHistory"]
