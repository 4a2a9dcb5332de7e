# Structured exception hierarchy for the account mirror client

from typing import Dict, Any, Optional
from datetime import datetime, timezone


class MirrorException(Exception):
    """Base exception for all account mirror specific errors"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc)


class TransientError(MirrorException):
    """Base class for errors that may clear up on their own (network, venue outages)"""
    pass


class PermanentError(MirrorException):
    """Base class for errors that will not succeed on a retry"""
    pass


# Push channel errors
class TransportError(TransientError):
    """Push channel closed or errored at the transport level"""

    def __init__(self, message: str, url: str, **kwargs):
        super().__init__(message, **kwargs)
        self.url = url


class ProtocolError(PermanentError):
    """A single inbound frame could not be turned into a known event"""

    def __init__(self, message: str, raw_message: str, **kwargs):
        super().__init__(message, **kwargs)
        self.raw_message = raw_message


class FrameDecodeError(ProtocolError):
    """Frame is not JSON, not an object, or its payload fails validation"""
    pass


class UnknownFrameTypeError(ProtocolError):
    """Frame declares a type outside the closed set"""

    def __init__(self, message: str, raw_message: str, frame_type: Any, **kwargs):
        super().__init__(message, raw_message, **kwargs)
        self.frame_type = frame_type


# Request/response errors
class RequestError(TransientError):
    """Snapshot or command call failed; converted into a failed ApiResult"""

    def __init__(self, message: str, endpoint: str, status_code: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.endpoint = endpoint
        self.status_code = status_code


class AuthenticationError(TransientError):
    """Backend refused the supplied credentials or could not be reached"""

    def __init__(self, message: str, username: str, **kwargs):
        super().__init__(message, **kwargs)
        self.username = username


# Configuration Errors
class ConfigurationError(PermanentError):
    """Configuration validation errors"""

    def __init__(self, message: str, config_field: str, config_value: Any,
                 **kwargs):
        super().__init__(message, **kwargs)
        self.config_field = config_field
        self.config_value = config_value
