# Mirror Service Models
from pydantic import BaseModel, Field
from typing import Optional, Any, Dict
from datetime import datetime
from enum import Enum


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class StreamHealth(str, Enum):
    """Health of the remote system's own market stream, as reported in status"""
    HEALTHY = "healthy"
    STALE = "stale"
    DISCONNECTED = "disconnected"
    UNKNOWN = "unknown"


class ConnectionStats(BaseModel):
    """Push channel connection statistics"""
    connection_attempts: int = 0
    successful_connections: int = 0
    disconnections: int = 0
    frames_received: int = 0
    last_connection_time: Optional[datetime] = None
    last_disconnection_time: Optional[datetime] = None
    last_error: Optional[str] = None


class ApiResult(BaseModel):
    """Outcome of one backend request. Failures are values, not exceptions."""
    success: bool
    data: Any = None
    error: Optional[str] = None
    status_code: Optional[int] = None

    @classmethod
    def failure(cls, error: str, status_code: Optional[int] = None) -> "ApiResult":
        return cls(success=False, error=error, status_code=status_code)


class ApiEnvelope(BaseModel):
    """Envelope shared by every backend response"""
    success: bool
    data: Any = None
    error: Optional[str] = None


class SnapshotResult(BaseModel):
    """Outcome of one whole-collection snapshot pull"""
    collection: str
    success: bool
    count: int = 0
    error: Optional[str] = None


class SnapshotReport(BaseModel):
    """Outcome of a full account/positions/orders pull"""
    results: Dict[str, SnapshotResult] = Field(default_factory=dict)

    @property
    def success(self) -> bool:
        return bool(self.results) and all(r.success for r in self.results.values())

    @property
    def failed(self) -> Dict[str, SnapshotResult]:
        return {name: r for name, r in self.results.items() if not r.success}
