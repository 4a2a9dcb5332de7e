"""Authentication exceptions for the account mirror."""

from typing import Any

from core.utils.exceptions import AuthenticationError, ConfigurationError


class InvalidCredentialsError(AuthenticationError):
    """Backend rejected the supplied credentials."""
    pass


class UnknownBackendError(ConfigurationError):
    """No backend profile is configured for the login username."""

    def __init__(self, username: str, **kwargs: Any):
        super().__init__(
            f'Username "{username}" is not authorized for any backend',
            config_field="backends",
            config_value=username,
            **kwargs,
        )
        self.username = username


__all__ = ["AuthenticationError", "InvalidCredentialsError", "UnknownBackendError"]
