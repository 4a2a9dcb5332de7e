"""Login username to backend profile routing."""

from typing import Optional

from core.config.settings import BackendProfile, Settings

from .exceptions import UnknownBackendError


def find_backend(settings: Settings, username: str) -> Optional[BackendProfile]:
    """Exact username match first, then case-insensitive."""
    for profile in settings.backends:
        if profile.username == username:
            return profile
    lowered = username.lower()
    for profile in settings.backends:
        if profile.username.lower() == lowered:
            return profile
    return None


def resolve_backend(settings: Settings, username: str) -> BackendProfile:
    profile = find_backend(settings, username)
    if profile is None:
        raise UnknownBackendError(username)
    return profile
