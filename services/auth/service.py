import asyncio
from typing import Optional

import httpx

from core.config.settings import BackendProfile, Settings
from core.logging import get_audit_logger_safe
from services.mirror.api_client import BackendClient
from services.mirror.connection import Connector
from services.mirror.session import MirrorSession, close_session, get_active_session, open_session

from .backends import resolve_backend
from .exceptions import UnknownBackendError
from .models import AuthStatus, LoginResponse


class AuthService:
    """Binds the mirror session lifetime to login and logout."""

    def __init__(
        self,
        settings: Settings,
        connector: Optional[Connector] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings
        self._connector = connector
        self._transport = transport
        self._lock = asyncio.Lock()
        self.status = AuthStatus.UNAUTHENTICATED
        self.username: Optional[str] = None
        self.profile: Optional[BackendProfile] = None
        self.logger = get_audit_logger_safe("auth_service")

    @property
    def session(self) -> Optional[MirrorSession]:
        return get_active_session()

    def is_authenticated(self) -> bool:
        return self.status == AuthStatus.AUTHENTICATED

    async def login(self, username: str, password: str, api_key: str) -> LoginResponse:
        """
        Resolve the backend for the username, verify the credentials with it
        and open the mirror session. Any previous session is torn down first.
        """
        async with self._lock:
            self.status = AuthStatus.AUTHENTICATING
            try:
                profile = resolve_backend(self.settings, username)
            except UnknownBackendError as e:
                self.status = AuthStatus.ERROR
                self.logger.warning("Login refused: unknown backend username", username=username)
                return LoginResponse(success=False, message=e.message, username=username)

            client = BackendClient(profile.api_url, self.settings, transport=self._transport)
            try:
                result = await client.verify_credentials(username, password, api_key)
            finally:
                await client.aclose()

            if not result.success:
                self.status = AuthStatus.ERROR
                self.logger.warning("Login refused by backend", username=username, backend=profile.label, error=result.error)
                return LoginResponse(
                    success=False,
                    message=result.error or "Invalid credentials",
                    username=username,
                    backend_label=profile.label,
                )

            await open_session(
                profile,
                self.settings,
                connector=self._connector,
                transport=self._transport,
            )
            self.status = AuthStatus.AUTHENTICATED
            self.username = username
            self.profile = profile
            self.logger.info("Login successful", username=username, backend=profile.label)
            return LoginResponse(
                success=True,
                message="Login successful",
                username=username,
                backend_label=profile.label,
            )

    async def logout(self) -> None:
        """Close the session, cancelling its reconnection timer, and clear the mirror."""
        async with self._lock:
            session = get_active_session()
            await close_session()
            if session is not None:
                session.store.reset()
            if self.username:
                self.logger.info("Logged out", username=self.username)
            self.status = AuthStatus.UNAUTHENTICATED
            self.username = None
            self.profile = None
