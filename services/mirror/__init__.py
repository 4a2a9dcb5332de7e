"""
Account Mirror Service

Keeps an in-memory mirror of one remote trading account, fed by the push
channel and recovered by whole-collection snapshot pulls.
"""

from .store import EntityStore, Collection
from .dispatcher import EventDispatcher
from .connection import ConnectionManager
from .api_client import BackendClient
from .snapshot import SnapshotLoader
from .health import classify_stream_health
from .models import ApiResult, ConnectionState, SnapshotReport, SnapshotResult, StreamHealth
from .session import MirrorSession, open_session, close_session, get_active_session

__all__ = [
    "EntityStore",
    "Collection",
    "EventDispatcher",
    "ConnectionManager",
    "BackendClient",
    "SnapshotLoader",
    "classify_stream_health",
    "ApiResult",
    "ConnectionState",
    "SnapshotReport",
    "SnapshotResult",
    "StreamHealth",
    "MirrorSession",
    "open_session",
    "close_session",
    "get_active_session",
]
