"""
Logging channel definitions for the account mirror.
Every record carries a `channel` field so consumers can route or filter it.
"""

from enum import Enum
from typing import Dict


class LogChannel(str, Enum):
    """Logging channels for different components."""

    APPLICATION = "application"  # Startup, shutdown, CLI
    STREAM = "stream"            # Push channel and frame dispatch
    SNAPSHOT = "snapshot"        # Snapshot pulls and backend commands
    AUDIT = "audit"              # Login, logout, user commands
    ERROR = "error"              # Errors


def get_channel_for_component(component: str) -> LogChannel:
    """Get the appropriate logging channel for a component."""
    component_mapping: Dict[str, LogChannel] = {
        "connection_manager": LogChannel.STREAM,
        "event_dispatcher": LogChannel.STREAM,
        "entity_store": LogChannel.STREAM,
        "snapshot_loader": LogChannel.SNAPSHOT,
        "backend_client": LogChannel.SNAPSHOT,
        "auth": LogChannel.AUDIT,
        "session": LogChannel.AUDIT,
    }

    return component_mapping.get(component, LogChannel.APPLICATION)
