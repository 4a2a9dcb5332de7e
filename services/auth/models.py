"""Authentication models for the credential-verify login flow."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel


class AuthStatus(Enum):
    """Authentication status enumeration."""
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    ERROR = "error"


class LoginResponse(BaseModel):
    """Outcome of a login attempt."""
    success: bool
    message: str
    username: Optional[str] = None
    backend_label: Optional[str] = None
