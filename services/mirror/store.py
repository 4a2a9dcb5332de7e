"""
In-memory mirror of the remote account.

The store has two write paths that are deliberately kept apart:

* the incremental path (``apply_*`` / ``add_*``), fed by the push channel,
  which merges single events and must tolerate duplicated and reordered
  delivery;
* the destructive path (``replace_*``), fed by snapshot pulls, which swaps a
  whole collection for the server's view. A snapshot always wins over
  whatever the incremental path left behind.

All mutations run on the event loop thread and complete without awaiting,
so no locking is needed.
"""

from collections import deque
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Deque, Iterable, List, Optional, Tuple, TypeVar

from core.config.settings import Settings
from core.logging import get_logger, get_error_logger_safe
from core.schemas.entities import (
    AccountSnapshot,
    Direction,
    LogLine,
    LogSeverity,
    Notification,
    Order,
    Position,
    SystemStatusFlags,
    SystemStatusUpdate,
)
from core.schemas.events import MarketPriceUpdate, TradeConfirmation
from core.utils.ids import generate_local_id

DEFAULT_NOTIFICATION_CAPACITY = 50
DEFAULT_LOG_CAPACITY = 500


class Collection(str, Enum):
    ACCOUNT = "account"
    STATUS = "status"
    POSITIONS = "positions"
    ORDERS = "orders"
    NOTIFICATIONS = "notifications"
    LOGS = "logs"


StoreListener = Callable[[Collection], None]

_E = TypeVar("_E", Position, Order)


def _upsert_by_id(items: List[_E], entity: _E) -> bool:
    """Replace the entry with the same id in place, or append. Returns True on insert."""
    for index, existing in enumerate(items):
        if existing.id == entity.id:
            items[index] = entity
            return False
    items.append(entity)
    return True


def _dedupe_by_id(entities: Iterable[_E]) -> List[_E]:
    """Keep first-seen order, last-seen value."""
    result: List[_E] = []
    for entity in entities:
        _upsert_by_id(result, entity)
    return result


def exit_quote(direction: Direction, bid: float, offer: float) -> float:
    """Quote side a closing trade would execute against."""
    return bid if direction == Direction.LONG else offer


class EntityStore:
    """Typed collections with per-collection merge semantics."""

    def __init__(
        self,
        notification_capacity: int = DEFAULT_NOTIFICATION_CAPACITY,
        log_capacity: int = DEFAULT_LOG_CAPACITY,
    ):
        self.notification_capacity = notification_capacity
        self.log_capacity = log_capacity
        self._account = AccountSnapshot()
        self._status = SystemStatusFlags()
        self._positions: List[Position] = []
        self._orders: List[Order] = []
        self._notifications: Deque[Notification] = deque(maxlen=notification_capacity)
        self._logs: Deque[LogLine] = deque(maxlen=log_capacity)
        self._listeners: List[StoreListener] = []
        self.logger = get_logger("entity_store", component="entity_store")
        self.error_logger = get_error_logger_safe("entity_store_errors")

    @classmethod
    def from_settings(cls, settings: Settings) -> "EntityStore":
        return cls(
            notification_capacity=settings.mirror.notification_capacity,
            log_capacity=settings.mirror.log_capacity,
        )

    # ------------------------------------------------------------------
    # Read side

    @property
    def account(self) -> AccountSnapshot:
        return self._account

    @property
    def status(self) -> SystemStatusFlags:
        return self._status

    @property
    def positions(self) -> Tuple[Position, ...]:
        return tuple(self._positions)

    @property
    def orders(self) -> Tuple[Order, ...]:
        return tuple(self._orders)

    @property
    def notifications(self) -> Tuple[Notification, ...]:
        """Newest first."""
        return tuple(self._notifications)

    @property
    def logs(self) -> Tuple[LogLine, ...]:
        """Newest first."""
        return tuple(self._logs)

    @property
    def unread_notification_count(self) -> int:
        return sum(1 for n in self._notifications if not n.read)

    def get_position(self, position_id: str) -> Optional[Position]:
        return next((p for p in self._positions if p.id == position_id), None)

    def get_order(self, order_id: str) -> Optional[Order]:
        return next((o for o in self._orders if o.id == order_id), None)

    # ------------------------------------------------------------------
    # Observers

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        """Register a change listener; returns a callable that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, collection: Collection) -> None:
        for listener in list(self._listeners):
            try:
                listener(collection)
            except Exception as e:
                self.error_logger.error(
                    "Store listener failed", collection=collection.value, error=str(e), exc_info=True
                )

    # ------------------------------------------------------------------
    # Incremental path

    def apply_account_update(self, account: AccountSnapshot) -> None:
        self._account = account
        self._notify(Collection.ACCOUNT)

    def apply_status_update(self, update: SystemStatusUpdate) -> None:
        self._status = self._status.merged_with(update)
        self._notify(Collection.STATUS)

    def apply_position_update(self, position: Position) -> None:
        inserted = _upsert_by_id(self._positions, position)
        self.logger.debug(
            "Position added" if inserted else "Position updated",
            position_id=position.id,
            epic=position.epic,
        )
        self._notify(Collection.POSITIONS)

    def apply_order_update(self, order: Order) -> None:
        if order.is_terminal:
            before = len(self._orders)
            self._orders = [o for o in self._orders if o.id != order.id]
            if len(self._orders) == before:
                # Terminal update for an order we never held
                return
            self.logger.debug("Order removed", order_id=order.id, status=order.status.value)
        else:
            inserted = _upsert_by_id(self._orders, order)
            self.logger.debug(
                "Order added" if inserted else "Order updated", order_id=order.id, epic=order.epic
            )
        self._notify(Collection.ORDERS)

    def apply_market_price(self, update: MarketPriceUpdate) -> int:
        """Refresh the displayed price of every position on the quoted instrument.

        Profit/loss is left exactly as the server last reported it: it depends
        on currency conversion and margin rules that price alone cannot give.
        """
        touched = 0
        for index, position in enumerate(self._positions):
            if position.epic != update.epic:
                continue
            price = exit_quote(position.direction, update.bid, update.offer)
            self._positions[index] = position.model_copy(update={"current_price": price})
            touched += 1
        if touched:
            self._notify(Collection.POSITIONS)
        return touched

    def add_notification(self, notification: Notification) -> None:
        if any(n.id == notification.id for n in self._notifications):
            return
        # deque(maxlen) drops from the right: the oldest entry
        self._notifications.appendleft(notification)
        self._notify(Collection.NOTIFICATIONS)

    def add_log_line(self, line: LogLine) -> None:
        if any(existing.id == line.id for existing in self._logs):
            return
        self._logs.appendleft(line)
        self._notify(Collection.LOGS)

    def add_trade_confirmation(self, confirmation: TradeConfirmation) -> LogLine:
        epic = confirmation.resolved_epic
        line = LogLine(
            id=generate_local_id(),
            timestamp=datetime.now(timezone.utc),
            severity=LogSeverity.SUCCESS,
            message=f"Trade confirmed: {epic or 'Unknown'}",
            epic=epic,
        )
        self.add_log_line(line)
        return line

    # ------------------------------------------------------------------
    # Destructive path

    def replace_account(self, account: AccountSnapshot) -> None:
        self._account = account
        self._notify(Collection.ACCOUNT)

    def replace_positions(self, positions: Iterable[Position]) -> None:
        self._positions = _dedupe_by_id(positions)
        self._notify(Collection.POSITIONS)

    def replace_orders(self, orders: Iterable[Order]) -> None:
        self._orders = _dedupe_by_id(o for o in orders if not o.is_terminal)
        self._notify(Collection.ORDERS)

    def reset(self) -> None:
        """Return every collection to its initial state."""
        self._account = AccountSnapshot()
        self._status = SystemStatusFlags()
        self._positions = []
        self._orders = []
        self._notifications.clear()
        self._logs.clear()
        for collection in Collection:
            self._notify(collection)

    # ------------------------------------------------------------------
    # Notification housekeeping

    def mark_notification_read(self, notification_id: str) -> bool:
        for index, notification in enumerate(self._notifications):
            if notification.id == notification_id:
                if not notification.read:
                    self._notifications[index] = notification.model_copy(update={"read": True})
                    self._notify(Collection.NOTIFICATIONS)
                return True
        return False

    def mark_all_notifications_read(self) -> int:
        unread = self.unread_notification_count
        if unread:
            marked = [n if n.read else n.model_copy(update={"read": True}) for n in self._notifications]
            self._notifications = deque(marked, maxlen=self.notification_capacity)
            self._notify(Collection.NOTIFICATIONS)
        return unread

    def clear_notification(self, notification_id: str) -> bool:
        remaining = [n for n in self._notifications if n.id != notification_id]
        if len(remaining) == len(self._notifications):
            return False
        self._notifications = deque(remaining, maxlen=self.notification_capacity)
        self._notify(Collection.NOTIFICATIONS)
        return True

    def clear_all_notifications(self) -> None:
        self._notifications.clear()
        self._notify(Collection.NOTIFICATIONS)
