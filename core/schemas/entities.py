# Entity models mirrored from the remote trading account.
# Wire names are camelCase; Python code uses the snake_case field names.

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class MirrorBaseModel(BaseModel):
    """Base model for all mirror schemas (Pydantic v2)."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
        extra="ignore",
    )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Direction(str, Enum):
    LONG = "LONG"
    SHORT = "SHORT"


# Some producers still emit order-side names instead of position directions
_DIRECTION_SYNONYMS = {"BUY": "LONG", "SELL": "SHORT"}


def _normalize_direction(value: Any) -> Any:
    if isinstance(value, str):
        upper = value.strip().upper()
        return _DIRECTION_SYNONYMS.get(upper, upper)
    return value


class OrderKind(str, Enum):
    MARKET = "MARKET"
    LIMIT = "LIMIT"
    STOP = "STOP"


class OrderStatus(str, Enum):
    """Order status enumeration"""
    PENDING = "PENDING"
    FILLED = "FILLED"
    CANCELLED = "CANCELLED"


TERMINAL_ORDER_STATUSES = frozenset({OrderStatus.FILLED, OrderStatus.CANCELLED})


class SystemState(str, Enum):
    ACTIVE = "ACTIVE"
    STOPPED = "STOPPED"
    ERROR = "ERROR"


class NotificationLevel(str, Enum):
    SUCCESS = "success"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class LogSeverity(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class AccountSnapshot(MirrorBaseModel):
    """Account singleton. Always replaced whole, never merged."""
    balance: float = 0.0
    equity: float = 0.0
    margin: float = 0.0
    available: float = 0.0
    pnl: float = 0.0

    @field_validator("balance", "equity", "margin", "available", "pnl", mode="before")
    @classmethod
    def missing_as_zero(cls, v):
        return 0.0 if v is None else v


class BackendAccount(MirrorBaseModel):
    """Account as returned by the account snapshot endpoint.

    This producer uses the venue's own naming; `to_snapshot` maps it onto
    the field names the push channel uses.
    """
    balance: float = 0.0
    deposit: float = 0.0
    available: float = 0.0
    profit_loss: float = 0.0

    @field_validator("balance", "deposit", "available", "profit_loss", mode="before")
    @classmethod
    def missing_as_zero(cls, v):
        return 0.0 if v is None else v

    def to_snapshot(self) -> AccountSnapshot:
        return AccountSnapshot(
            balance=self.available,
            equity=self.balance,
            margin=self.deposit,
            available=self.available,
            pnl=self.profit_loss,
        )


class Position(MirrorBaseModel):
    """Open position. Identity is `id`; profit/loss is always the server's value."""
    id: str
    epic: str
    instrument: Optional[str] = None
    direction: Direction
    contracts: float
    open_price: float
    current_price: Optional[float] = None
    pnl: Optional[float] = None
    # Current producers write tpLevel, legacy producers write limitLevel
    tp_level: Optional[float] = Field(
        None, validation_alias=AliasChoices("tpLevel", "tp_level", "limitLevel")
    )
    stop_level: Optional[float] = None
    phase: str = ""
    opened_at: Optional[datetime] = Field(
        None, validation_alias=AliasChoices("openedAt", "opened_at", "createdAt")
    )

    @field_validator("direction", mode="before")
    @classmethod
    def normalize_direction(cls, v):
        return _normalize_direction(v)

    @field_validator("phase", mode="before")
    @classmethod
    def missing_phase(cls, v):
        return "" if v is None else v


class Order(MirrorBaseModel):
    """Working order. Only non-terminal orders are ever kept in the store."""
    id: str
    epic: str
    instrument: Optional[str] = None
    direction: Direction
    kind: OrderKind = Field(
        OrderKind.LIMIT, validation_alias=AliasChoices("type", "kind"), serialization_alias="type"
    )
    contracts: float = Field(validation_alias=AliasChoices("contracts", "size"))
    entry_price: Optional[float] = Field(
        None, validation_alias=AliasChoices("entryPrice", "entry_price", "level")
    )
    tp_level: Optional[float] = Field(
        None, validation_alias=AliasChoices("tpLevel", "tp_level", "limitLevel")
    )
    stop_level: Optional[float] = None
    status: OrderStatus = OrderStatus.PENDING
    created_at: Optional[datetime] = None

    @field_validator("direction", mode="before")
    @classmethod
    def normalize_direction(cls, v):
        return _normalize_direction(v)

    @field_validator("kind", "status", mode="before")
    @classmethod
    def upper_enum(cls, v):
        return v.strip().upper() if isinstance(v, str) else v

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_ORDER_STATUSES


# Nullable fields may be explicitly reset to null by the server
_NULLABLE_STATUS_FIELDS = frozenset({
    "session_age", "uptime", "stream_status", "last_update_at", "seconds_since_update",
})


class SystemStatusFlags(MirrorBaseModel):
    """Remote system status singleton. Merged field by field."""
    status: SystemState = SystemState.STOPPED
    ig_connected: bool = False
    stream_connected: bool = Field(
        False,
        validation_alias=AliasChoices("lightstreamerConnected", "streamConnected", "stream_connected"),
    )
    session_age: Optional[str] = None
    uptime: Optional[str] = None
    stream_status: Optional[str] = Field(
        None, validation_alias=AliasChoices("lightstreamerStatus", "streamStatus", "stream_status")
    )
    last_update_at: Optional[str] = None
    seconds_since_update: Optional[float] = None

    def merged_with(self, update: "SystemStatusUpdate") -> "SystemStatusFlags":
        """Return a copy where only the fields the update supplied are overwritten."""
        changes = {
            name: value
            for name, value in update.model_dump(exclude_unset=True).items()
            if value is not None or name in _NULLABLE_STATUS_FIELDS
        }
        return self.model_copy(update=changes)


class SystemStatusUpdate(MirrorBaseModel):
    """Partial status update; every field is optional."""
    status: Optional[SystemState] = None
    ig_connected: Optional[bool] = None
    stream_connected: Optional[bool] = Field(
        None,
        validation_alias=AliasChoices("lightstreamerConnected", "streamConnected", "stream_connected"),
    )
    session_age: Optional[str] = None
    uptime: Optional[str] = None
    stream_status: Optional[str] = Field(
        None, validation_alias=AliasChoices("lightstreamerStatus", "streamStatus", "stream_status")
    )
    last_update_at: Optional[str] = None
    seconds_since_update: Optional[float] = None


class Notification(MirrorBaseModel):
    id: str
    category: str = Field("info", validation_alias=AliasChoices("type", "category"), serialization_alias="type")
    level: NotificationLevel = NotificationLevel.INFO
    title: str = ""
    message: str = ""
    epic: Optional[str] = None
    instrument: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=_utcnow)
    read: bool = False


class LogLine(MirrorBaseModel):
    id: str
    timestamp: datetime = Field(default_factory=_utcnow)
    severity: LogSeverity = Field(
        LogSeverity.INFO, validation_alias=AliasChoices("type", "severity"), serialization_alias="type"
    )
    message: str
    epic: Optional[str] = None
