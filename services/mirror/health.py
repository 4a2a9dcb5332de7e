from core.config.settings import StreamHealthSettings
from core.schemas.entities import SystemStatusFlags

from .models import StreamHealth


def classify_stream_health(flags: SystemStatusFlags, settings: StreamHealthSettings) -> StreamHealth:
    """Grade the remote system's own market stream from its reported status."""
    if not flags.ig_connected or not flags.stream_connected:
        return StreamHealth.DISCONNECTED
    seconds = flags.seconds_since_update
    if seconds is None:
        return StreamHealth.UNKNOWN
    if seconds < settings.healthy_below_seconds:
        return StreamHealth.HEALTHY
    if seconds < settings.stale_below_seconds:
        return StreamHealth.STALE
    return StreamHealth.DISCONNECTED
