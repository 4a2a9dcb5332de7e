# Complete settings for the account mirror client
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, Field, field_validator, model_validator
from typing import List, Optional


class BackendProfile(BaseModel):
    """One remote backend a login username is routed to."""
    username: str
    label: str
    api_url: str = "http://localhost:3001"
    ws_url: str = "ws://localhost:3002"

    @field_validator("api_url", "ws_url")
    @classmethod
    def strip_trailing_slash(cls, v):
        return v.rstrip("/")


class ReconnectionSettings(BaseModel):
    """Push channel reconnection configuration.

    The delay is fixed on purpose: the venue can stay unreachable for hours
    (market closures) and the channel must keep retrying on its own.
    """
    delay_seconds: float = 3.0
    # How long session start waits for the first connect before pulling without it
    initial_connect_timeout_seconds: float = 5.0

    @field_validator("delay_seconds", "initial_connect_timeout_seconds")
    @classmethod
    def validate_delay(cls, v):
        if v <= 0:
            raise ValueError("Reconnection delay and timeout must be positive")
        return v


class MirrorSettings(BaseModel):
    """Capacities of the bounded collections in the entity store"""
    notification_capacity: int = 50
    log_capacity: int = 500

    @field_validator("notification_capacity", "log_capacity")
    @classmethod
    def validate_capacity(cls, v):
        if v <= 0:
            raise ValueError("Collection capacity must be positive")
        return v


class HttpSettings(BaseModel):
    timeout_seconds: float = 10.0


class EndpointSettings(BaseModel):
    """Paths of the backend request/response endpoints"""
    account: str = "/api/account"
    positions: str = "/api/positions"
    positions_refresh: str = "/api/positions/refresh"
    orders: str = "/api/orders"
    close_position: str = "/api/positions/{position_id}/close"
    cancel_order: str = "/api/orders/{order_id}/cancel"
    force_reconnect: str = "/api/ig/reconnect"
    connection_diagnostics: str = "/api/ig/connection-status"
    auth_verify: str = "/api/auth/verify"
    instrument: str = "/api/instruments/{epic}"


class StreamHealthSettings(BaseModel):
    """Thresholds on seconds-since-last-update used to grade the remote stream"""
    healthy_below_seconds: int = 120
    stale_below_seconds: int = 600

    @model_validator(mode="after")
    def validate_thresholds(self):
        if self.healthy_below_seconds <= 0:
            raise ValueError("healthy_below_seconds must be positive")
        if self.stale_below_seconds <= self.healthy_below_seconds:
            raise ValueError("stale_below_seconds must be greater than healthy_below_seconds")
        return self


class LoggingSettings(BaseModel):
    level: str = "INFO"
    json_format: bool = True
    # Plain text for console by default
    console_json_format: bool = False


class SessionCredentials(BaseModel):
    """Credentials for the headless entry point (cli `run`)"""
    username: Optional[str] = None
    password: Optional[str] = None
    api_key: Optional[str] = None


class Settings(BaseSettings):
    """Main application settings, loaded from environment variables"""
    model_config = SettingsConfigDict(
        env_file=".env",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore"
    )

    backends: List[BackendProfile] = Field(
        default_factory=lambda: [BackendProfile(username="demo", label="Demo")],
        description="Login username to backend routing table"
    )
    reconnection: ReconnectionSettings = ReconnectionSettings()
    mirror: MirrorSettings = MirrorSettings()
    http: HttpSettings = HttpSettings()
    endpoints: EndpointSettings = EndpointSettings()
    stream_health: StreamHealthSettings = StreamHealthSettings()
    logging: LoggingSettings = LoggingSettings()
    session: SessionCredentials = SessionCredentials()

    @field_validator("backends")
    @classmethod
    def validate_unique_usernames(cls, v):
        seen = set()
        for profile in v:
            key = profile.username.lower()
            if key in seen:
                raise ValueError(f"Duplicate backend username: {profile.username}")
            seen.add(key)
        return v


# No global settings instance - use dependency injection instead
