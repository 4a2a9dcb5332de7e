"""Login/logout bound to the mirror session lifecycle."""

from .service import AuthService
from .backends import find_backend, resolve_backend
from .models import AuthStatus, LoginResponse
from .exceptions import (
    AuthenticationError,
    InvalidCredentialsError,
    UnknownBackendError,
)

__all__ = [
    "AuthService",
    "find_backend",
    "resolve_backend",
    "AuthStatus",
    "LoginResponse",
    "AuthenticationError",
    "InvalidCredentialsError",
    "UnknownBackendError",
]
