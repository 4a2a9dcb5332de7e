# Push channel frames: a closed tagged union keyed by `type`.
# Adding a frame type means adding a FrameType member, a frame model, and a
# dispatcher handler; the registry checks below fail at import otherwise.

import json
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, ClassVar, Dict, Literal, Optional, Union

from pydantic import Field, TypeAdapter, ValidationError, ConfigDict, model_validator

from core.schemas.entities import (
    AccountSnapshot,
    LogLine,
    MirrorBaseModel,
    Notification,
    Order,
    Position,
    SystemStatusUpdate,
)
from core.utils.exceptions import FrameDecodeError, UnknownFrameTypeError

# Raw frames quoted in errors and logs are cut to this length
RAW_PREVIEW_CHARS = 500


class FrameType(str, Enum):
    CONNECTED = "CONNECTED"
    SYSTEM_STATUS = "SYSTEM_STATUS"
    ACCOUNT_UPDATE = "ACCOUNT_UPDATE"
    POSITION_UPDATE = "POSITION_UPDATE"
    ORDER_UPDATE = "ORDER_UPDATE"
    TRADE_CONFIRM = "TRADE_CONFIRM"
    CONSOLE_LOG = "CONSOLE_LOG"
    NOTIFICATION = "NOTIFICATION"
    MARKET_PRICE_UPDATE = "MARKET_PRICE_UPDATE"


class ConnectedAck(MirrorBaseModel):
    """Server greeting sent right after the channel opens"""
    message: str = ""
    timestamp: Optional[datetime] = None


class TradeConfirmation(MirrorBaseModel):
    """Free-form trade confirmation; only the instrument is read from it"""
    model_config = ConfigDict(extra="allow")

    epic: Any = None
    data: Any = None

    @model_validator(mode="before")
    @classmethod
    def wrap_scalar_payload(cls, value):
        if value is None:
            return {}
        if not isinstance(value, dict):
            return {"data": value}
        return value

    @property
    def resolved_epic(self) -> Optional[str]:
        if isinstance(self.data, dict) and isinstance(self.data.get("epic"), str) and self.data["epic"]:
            return self.data["epic"]
        if isinstance(self.epic, str) and self.epic:
            return self.epic
        return None


class MarketPriceUpdate(MirrorBaseModel):
    """Quote for one instrument"""
    epic: str
    bid: float
    offer: float
    high: Optional[float] = None
    low: Optional[float] = None
    net_change: Optional[float] = None
    net_change_pct: Optional[float] = None
    update_time: Optional[str] = None


class ConnectedFrame(MirrorBaseModel):
    frame_type: ClassVar[FrameType] = FrameType.CONNECTED
    type: Literal["CONNECTED"]
    data: ConnectedAck = Field(default_factory=ConnectedAck)


class SystemStatusFrame(MirrorBaseModel):
    frame_type: ClassVar[FrameType] = FrameType.SYSTEM_STATUS
    type: Literal["SYSTEM_STATUS"]
    data: SystemStatusUpdate


class AccountUpdateFrame(MirrorBaseModel):
    frame_type: ClassVar[FrameType] = FrameType.ACCOUNT_UPDATE
    type: Literal["ACCOUNT_UPDATE"]
    data: AccountSnapshot


class PositionUpdateFrame(MirrorBaseModel):
    frame_type: ClassVar[FrameType] = FrameType.POSITION_UPDATE
    type: Literal["POSITION_UPDATE"]
    data: Position


class OrderUpdateFrame(MirrorBaseModel):
    frame_type: ClassVar[FrameType] = FrameType.ORDER_UPDATE
    type: Literal["ORDER_UPDATE"]
    data: Order


class TradeConfirmFrame(MirrorBaseModel):
    frame_type: ClassVar[FrameType] = FrameType.TRADE_CONFIRM
    type: Literal["TRADE_CONFIRM"]
    data: TradeConfirmation = Field(default_factory=TradeConfirmation)


class ConsoleLogFrame(MirrorBaseModel):
    frame_type: ClassVar[FrameType] = FrameType.CONSOLE_LOG
    type: Literal["CONSOLE_LOG"]
    data: LogLine


class NotificationFrame(MirrorBaseModel):
    frame_type: ClassVar[FrameType] = FrameType.NOTIFICATION
    type: Literal["NOTIFICATION"]
    data: Notification


class MarketPriceUpdateFrame(MirrorBaseModel):
    frame_type: ClassVar[FrameType] = FrameType.MARKET_PRICE_UPDATE
    type: Literal["MARKET_PRICE_UPDATE"]
    data: MarketPriceUpdate


Frame = Annotated[
    Union[
        ConnectedFrame,
        SystemStatusFrame,
        AccountUpdateFrame,
        PositionUpdateFrame,
        OrderUpdateFrame,
        TradeConfirmFrame,
        ConsoleLogFrame,
        NotificationFrame,
        MarketPriceUpdateFrame,
    ],
    Field(discriminator="type"),
]

FRAME_MODELS: Dict[FrameType, type] = {
    model.frame_type: model
    for model in (
        ConnectedFrame,
        SystemStatusFrame,
        AccountUpdateFrame,
        PositionUpdateFrame,
        OrderUpdateFrame,
        TradeConfirmFrame,
        ConsoleLogFrame,
        NotificationFrame,
        MarketPriceUpdateFrame,
    )
}

_missing = set(FrameType) - set(FRAME_MODELS)
if _missing:
    raise RuntimeError(f"Frame types without a model: {sorted(t.value for t in _missing)}")

_FRAME_ADAPTER = TypeAdapter(Frame)
_KNOWN_TYPES = frozenset(t.value for t in FrameType)


def _preview(raw: Any) -> str:
    text = raw if isinstance(raw, str) else repr(raw)
    return text[:RAW_PREVIEW_CHARS]


def decode_frame(raw: Union[str, bytes, bytearray]) -> Frame:
    """Decode one raw push-channel frame into its typed frame model.

    Raises FrameDecodeError for anything that is not a JSON object with a
    valid payload, and UnknownFrameTypeError for a type outside FrameType.
    """
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise FrameDecodeError(f"Frame is not valid UTF-8: {e}", _preview(raw))

    try:
        payload = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise FrameDecodeError(f"Frame is not valid JSON: {e}", _preview(raw))

    if not isinstance(payload, dict):
        raise FrameDecodeError("Frame is not a JSON object", _preview(raw))

    frame_type = payload.get("type")
    if not isinstance(frame_type, str) or frame_type not in _KNOWN_TYPES:
        raise UnknownFrameTypeError(
            f"Unknown frame type: {frame_type!r}", _preview(raw), frame_type=frame_type
        )

    try:
        return _FRAME_ADAPTER.validate_python(payload)
    except ValidationError as e:
        raise FrameDecodeError(
            f"Invalid {frame_type} payload",
            _preview(raw),
            details={"errors": e.errors(include_url=False, include_context=False)},
        )
