import json

import pytest

from core.schemas.entities import BackendAccount, Direction, Order, Position, SystemStatusFlags, SystemStatusUpdate
from core.schemas.events import (
    FRAME_MODELS,
    RAW_PREVIEW_CHARS,
    AccountUpdateFrame,
    ConnectedFrame,
    FrameType,
    MarketPriceUpdateFrame,
    PositionUpdateFrame,
    TradeConfirmFrame,
    decode_frame,
)
from core.utils.exceptions import FrameDecodeError, ProtocolError, UnknownFrameTypeError
from tests.mocks.payloads import frame, position_payload


def test_every_frame_type_has_a_model():
    assert set(FRAME_MODELS) == set(FrameType)
    for frame_type, model in FRAME_MODELS.items():
        assert model.frame_type is frame_type


def test_decode_position_update():
    decoded = decode_frame(frame("POSITION_UPDATE", position_payload("P1")))

    assert isinstance(decoded, PositionUpdateFrame)
    assert decoded.frame_type is FrameType.POSITION_UPDATE
    assert decoded.data.id == "P1"
    assert decoded.data.open_price == 1.085
    assert decoded.data.tp_level == 1.09


def test_decode_accepts_bytes():
    decoded = decode_frame(frame("ACCOUNT_UPDATE", {"balance": 10, "pnl": None}).encode("utf-8"))

    assert isinstance(decoded, AccountUpdateFrame)
    assert decoded.data.balance == 10
    assert decoded.data.pnl == 0


def test_connected_frame_without_data():
    decoded = decode_frame(json.dumps({"type": "CONNECTED"}))

    assert isinstance(decoded, ConnectedFrame)
    assert decoded.data.message == ""


def test_trade_confirm_keeps_unknown_fields():
    decoded = decode_frame(frame("TRADE_CONFIRM", {"dealStatus": "ACCEPTED", "epic": "X"}))

    assert isinstance(decoded, TradeConfirmFrame)
    assert decoded.data.resolved_epic == "X"


def test_market_price_update_fields():
    decoded = decode_frame(frame("MARKET_PRICE_UPDATE", {
        "epic": "X", "bid": 1.1, "offer": 1.2, "netChangePct": 0.5, "updateTime": "10:00:01",
    }))

    assert isinstance(decoded, MarketPriceUpdateFrame)
    assert decoded.data.net_change_pct == 0.5
    assert decoded.data.update_time == "10:00:01"


@pytest.mark.parametrize("raw", [
    "not json at all",
    "[1, 2, 3]",
    '"just a string"',
    b"\xff\xfe\x00",
])
def test_malformed_frames_raise_decode_error(raw):
    with pytest.raises(FrameDecodeError):
        decode_frame(raw)


@pytest.mark.parametrize("payload", [
    {"type": "HEARTBEAT", "data": {}},
    {"data": {}},
    {"type": ["POSITION_UPDATE"], "data": {}},
])
def test_unknown_type_raises(payload):
    with pytest.raises(UnknownFrameTypeError) as exc_info:
        decode_frame(json.dumps(payload))
    assert isinstance(exc_info.value, ProtocolError)


def test_invalid_payload_carries_validation_details():
    with pytest.raises(FrameDecodeError) as exc_info:
        decode_frame(frame("POSITION_UPDATE", {"epic": "X"}))

    assert exc_info.value.details["errors"]
    assert "POSITION_UPDATE" in exc_info.value.message


def test_raw_preview_is_truncated():
    raw = "x" * (RAW_PREVIEW_CHARS * 3)
    with pytest.raises(FrameDecodeError) as exc_info:
        decode_frame(raw)

    assert len(exc_info.value.raw_message) == RAW_PREVIEW_CHARS


class TestEntitySchemas:

    def test_direction_synonyms(self):
        assert Position.model_validate(position_payload(direction="buy")).direction == Direction.LONG
        assert Position.model_validate(position_payload(direction="Sell")).direction == Direction.SHORT

    def test_snake_case_names_are_accepted(self):
        position = Position(
            id="P1", epic="X", direction="LONG", contracts=1, open_price=10.0, tp_level=11.0,
        )
        assert position.tp_level == 11.0
        assert position.phase == ""

    def test_tp_level_preferred_over_legacy_name(self):
        position = Position.model_validate(position_payload(tpLevel=1.5, limitLevel=9.9))
        assert position.tp_level == 1.5

    def test_order_kind_serializes_as_type(self):
        order = Order(id="O1", epic="X", direction="SHORT", kind="market", contracts=1)
        dumped = order.model_dump(by_alias=True)

        assert dumped["type"] == "MARKET"
        assert order.is_terminal is False

    def test_backend_account_mapping(self):
        account = BackendAccount.model_validate({
            "balance": 10000.0, "deposit": 500.0, "available": 9500.0, "profitLoss": 125.5,
        }).to_snapshot()

        assert account.balance == 9500.0
        assert account.equity == 10000.0
        assert account.margin == 500.0
        assert account.available == 9500.0
        assert account.pnl == 125.5

    def test_status_merge_allows_explicit_null_for_nullable_fields(self):
        flags = SystemStatusFlags(ig_connected=True, seconds_since_update=10)
        update = SystemStatusUpdate.model_validate({"secondsSinceUpdate": None, "igConnected": None})

        merged = flags.merged_with(update)

        assert merged.seconds_since_update is None
        assert merged.ig_connected is True
