import asyncio
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, List, Optional, Union

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from core.logging import get_stream_logger_safe, get_error_logger_safe
from core.utils.exceptions import TransportError

from .models import ConnectionState, ConnectionStats

RawFrame = Union[str, bytes]
FrameHandler = Callable[[RawFrame], Any]
StateListener = Callable[[ConnectionState], None]
# Called with the channel url; resolves to an async-iterable connection with close()
Connector = Callable[[str], Awaitable[Any]]

DEFAULT_RECONNECT_DELAY_SECONDS = 3.0


class ConnectionManager:
    """
    Owns the single push-channel connection for one session.

    Any closure or error moves the channel to DISCONNECTED and a new attempt
    follows after a fixed delay, forever, until stop() is called. One
    supervisor task runs the connect/listen/wait cycle, so at most one
    connection or pending reconnect exists at any time. Frame payloads are
    handed to ``on_frame`` untouched.
    """

    def __init__(
        self,
        url: str,
        on_frame: FrameHandler,
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY_SECONDS,
        connector: Optional[Connector] = None,
    ):
        self.url = url
        self.reconnect_delay = reconnect_delay
        self._on_frame = on_frame
        self._connector: Connector = connector or websockets.connect
        self._state = ConnectionState.DISCONNECTED
        self._listeners: List[StateListener] = []
        self._supervisor_task: Optional[asyncio.Task] = None
        self._websocket: Any = None
        self._reconnect_pending = False
        self._running = False
        self.stats = ConnectionStats()
        self.logger = get_stream_logger_safe("connection_manager")
        self.error_logger = get_error_logger_safe("connection_manager_errors")

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == ConnectionState.CONNECTED

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_pending

    @property
    def is_running(self) -> bool:
        return self._running

    def add_listener(self, listener: StateListener) -> Callable[[], None]:
        """Register a state-change listener; returns a callable that unregisters it."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    async def start(self) -> None:
        if self._running:
            self.logger.warning("Connection manager already running", url=self.url)
            return
        self._running = True
        self._supervisor_task = asyncio.create_task(self._supervise())
        self.logger.info("Connection manager started", url=self.url)

    async def stop(self) -> None:
        """Close the channel and cancel any scheduled reconnection."""
        self._running = False
        task = self._supervisor_task
        self._supervisor_task = None
        if task and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._reconnect_pending = False
        self._set_state(ConnectionState.DISCONNECTED)
        self.logger.info("Connection manager stopped", url=self.url)

    async def _supervise(self) -> None:
        while self._running:
            try:
                await self._connect_and_listen()
            except Exception as e:
                # Unexpected failure in a connector or socket; the loop keeps retrying
                self.error_logger.error(
                    "Unexpected push channel failure", url=self.url, error=str(e), exc_info=True
                )
                self.stats.last_error = f"{type(e).__name__}: {e}"
                self._set_state(ConnectionState.DISCONNECTED)
            if not self._running:
                break
            self._reconnect_pending = True
            self.logger.info("Reconnecting after delay", delay_seconds=self.reconnect_delay)
            try:
                await asyncio.sleep(self.reconnect_delay)
            finally:
                self._reconnect_pending = False

    async def _connect_and_listen(self) -> None:
        self._set_state(ConnectionState.CONNECTING)
        self.stats.connection_attempts += 1

        try:
            websocket = await self._connector(self.url)
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            self._record_failure(TransportError(f"Connect failed: {type(e).__name__}: {e}", url=self.url))
            self._set_state(ConnectionState.DISCONNECTED)
            return

        self._websocket = websocket
        self.stats.successful_connections += 1
        self.stats.last_connection_time = datetime.now(timezone.utc)
        self._set_state(ConnectionState.CONNECTED)

        try:
            async for message in websocket:
                self.stats.frames_received += 1
                self._deliver(message)
            self._record_failure(TransportError("Channel closed by server", url=self.url))
        except ConnectionClosed as e:
            self._record_failure(TransportError(f"Channel closed: {e}", url=self.url))
        except (OSError, WebSocketException) as e:
            self._record_failure(TransportError(f"Channel error: {type(e).__name__}: {e}", url=self.url))
        finally:
            self._websocket = None
            await self._close_quietly(websocket)
            self.stats.disconnections += 1
            self.stats.last_disconnection_time = datetime.now(timezone.utc)
            self._set_state(ConnectionState.DISCONNECTED)

    def _deliver(self, message: RawFrame) -> None:
        # A frame handler failure must not take the channel down
        try:
            self._on_frame(message)
        except Exception as e:
            self.error_logger.error("Frame handler failed", error=str(e), exc_info=True)

    async def _close_quietly(self, websocket: Any) -> None:
        try:
            await websocket.close()
        except (OSError, WebSocketException) as e:
            self.logger.debug("Error while closing channel", error=str(e))

    def _record_failure(self, error: TransportError) -> None:
        self.stats.last_error = error.message
        self.logger.warning("Push channel transport failure", url=error.url, error=error.message)

    def _set_state(self, state: ConnectionState) -> None:
        if state == self._state:
            return
        previous = self._state
        self._state = state
        self.logger.debug("Connection state changed", previous=previous.value, state=state.value)
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception as e:
                self.error_logger.error(
                    "Connection listener failed", state=state.value, error=str(e), exc_info=True
                )
