from typing import Any, Callable, Dict, Union

from core.logging import get_stream_logger_safe, get_error_logger_safe
from core.schemas.events import (
    AccountUpdateFrame,
    ConnectedFrame,
    ConsoleLogFrame,
    Frame,
    FrameType,
    MarketPriceUpdateFrame,
    NotificationFrame,
    OrderUpdateFrame,
    PositionUpdateFrame,
    SystemStatusFrame,
    TradeConfirmFrame,
    decode_frame,
)
from core.utils.exceptions import ProtocolError, UnknownFrameTypeError

from .store import EntityStore


class EventDispatcher:
    """
    Decodes raw push-channel frames and routes each one to the matching
    entity store reducer. A bad frame is logged and dropped; it never
    propagates to the connection that delivered it.
    """

    def __init__(self, store: EntityStore):
        self.store = store
        self.logger = get_stream_logger_safe("event_dispatcher")
        self.error_logger = get_error_logger_safe("event_dispatcher_errors")

        self._handlers: Dict[FrameType, Callable[[Any], None]] = {
            FrameType.CONNECTED: self._on_connected,
            FrameType.SYSTEM_STATUS: self._on_system_status,
            FrameType.ACCOUNT_UPDATE: self._on_account_update,
            FrameType.POSITION_UPDATE: self._on_position_update,
            FrameType.ORDER_UPDATE: self._on_order_update,
            FrameType.TRADE_CONFIRM: self._on_trade_confirm,
            FrameType.CONSOLE_LOG: self._on_console_log,
            FrameType.NOTIFICATION: self._on_notification,
            FrameType.MARKET_PRICE_UPDATE: self._on_market_price_update,
        }
        missing = set(FrameType) - set(self._handlers)
        if missing:
            raise RuntimeError(f"No dispatcher handler for: {sorted(t.value for t in missing)}")

        # Pipeline counters
        self.frames_received = 0
        self.frames_applied = 0
        self.frames_dropped = 0

    def dispatch(self, raw: Union[str, bytes]) -> bool:
        """Decode and apply one raw frame. Returns False if it was dropped."""
        self.frames_received += 1
        try:
            frame = decode_frame(raw)
        except UnknownFrameTypeError as e:
            self.frames_dropped += 1
            self.logger.warning("Dropping frame of unknown type", frame_type=str(e.frame_type))
            return False
        except ProtocolError as e:
            self.frames_dropped += 1
            self.error_logger.warning(
                "Dropping malformed frame", error=e.message, raw=e.raw_message, details=e.details
            )
            return False

        self.apply(frame)
        return True

    def apply(self, frame: Frame) -> None:
        """Route an already decoded frame to its reducer."""
        handler = self._handlers[frame.frame_type]
        handler(frame)
        self.frames_applied += 1

    def get_metrics(self) -> Dict[str, int]:
        return {
            "frames_received": self.frames_received,
            "frames_applied": self.frames_applied,
            "frames_dropped": self.frames_dropped,
        }

    # ------------------------------------------------------------------
    # Handlers

    def _on_connected(self, frame: ConnectedFrame) -> None:
        self.logger.info("Channel acknowledged by server", message=frame.data.message)

    def _on_system_status(self, frame: SystemStatusFrame) -> None:
        self.store.apply_status_update(frame.data)

    def _on_account_update(self, frame: AccountUpdateFrame) -> None:
        self.store.apply_account_update(frame.data)

    def _on_position_update(self, frame: PositionUpdateFrame) -> None:
        self.store.apply_position_update(frame.data)

    def _on_order_update(self, frame: OrderUpdateFrame) -> None:
        self.store.apply_order_update(frame.data)

    def _on_trade_confirm(self, frame: TradeConfirmFrame) -> None:
        line = self.store.add_trade_confirmation(frame.data)
        self.logger.info("Trade confirmed", epic=line.epic)

    def _on_console_log(self, frame: ConsoleLogFrame) -> None:
        self.store.add_log_line(frame.data)

    def _on_notification(self, frame: NotificationFrame) -> None:
        self.store.add_notification(frame.data)

    def _on_market_price_update(self, frame: MarketPriceUpdateFrame) -> None:
        self.store.apply_market_price(frame.data)
