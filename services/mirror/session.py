"""
Mirror session: everything that lives exactly as long as one authenticated
backend session.

The session owns the store, the dispatcher, the push channel and the
snapshot loader for one backend profile. Only one session is active per
process; ``open_session`` / ``close_session`` are the explicit init and
teardown points and ``get_active_session`` is the only way to reach it.
"""

import asyncio
from typing import Any, Coroutine, Optional, Set

import httpx

from core.config.settings import BackendProfile, Settings
from core.logging import bind_backend_context, get_audit_logger_safe
from core.services import BaseService, ServiceStatus
from services.strategy.harvest import HarvestConfig, detect_sequence_drift, extract_persisted_sequence

from .api_client import BackendClient
from .connection import ConnectionManager, Connector
from .dispatcher import EventDispatcher
from .health import classify_stream_health
from .models import ApiResult, ConnectionState, SnapshotReport, SnapshotResult, StreamHealth
from .snapshot import SnapshotLoader
from .store import EntityStore


class MirrorSession(BaseService):
    """Wires store, dispatcher, push channel and snapshot loader for one backend."""

    def __init__(
        self,
        profile: BackendProfile,
        settings: Settings,
        store: Optional[EntityStore] = None,
        connector: Optional[Connector] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__("mirror_session", component="session")
        self.profile = profile
        self.settings = settings
        self.logger = bind_backend_context(self.logger, profile.username, profile.label)
        self.audit_logger = bind_backend_context(
            get_audit_logger_safe("mirror_session_audit"), profile.username, profile.label
        )

        self.store = store or EntityStore.from_settings(settings)
        self.client = BackendClient(profile.api_url, settings, transport=transport)
        self.snapshots = SnapshotLoader(self.client, self.store)
        self.dispatcher = EventDispatcher(self.store)
        self.connection = ConnectionManager(
            profile.ws_url,
            on_frame=self.dispatcher.dispatch,
            reconnect_delay=settings.reconnection.delay_seconds,
            connector=connector,
        )
        self.connection.add_listener(self._on_connection_state)
        self._tasks: Set[asyncio.Task] = set()
        self._first_connect = asyncio.Event()
        self._initial_sync: Optional[asyncio.Task] = None

    @property
    def is_connected(self) -> bool:
        return self.connection.is_connected

    @property
    def stream_health(self) -> StreamHealth:
        return classify_stream_health(self.store.status, self.settings.stream_health)

    @property
    def pending_tasks(self) -> int:
        return len(self._tasks)

    async def _start_implementation(self) -> None:
        # The first connect pulls the snapshot; start returns once it is in
        await self.connection.start()
        timeout = self.settings.reconnection.initial_connect_timeout_seconds
        try:
            await asyncio.wait_for(self._first_connect.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            self.logger.warning(
                "Push channel not connected yet; pulling snapshot without it", timeout_seconds=timeout
            )
            await self.snapshots.load_all()
            return
        if self._initial_sync is not None:
            await self._initial_sync

    async def _stop_implementation(self) -> None:
        await self.connection.stop()
        for task in self._tasks:
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        await self.client.aclose()

    def _on_connection_state(self, state: ConnectionState) -> None:
        # The channel has no replay: every (re)connect is paired with a full pull
        if state != ConnectionState.CONNECTED:
            return
        if self.status not in (ServiceStatus.STARTING, ServiceStatus.RUNNING):
            return
        self.logger.info("Channel connected; pulling snapshot to close the gap")
        task = self._spawn(self.snapshots.load_all())
        if not self._first_connect.is_set():
            self._initial_sync = task
            self._first_connect.set()

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    # ------------------------------------------------------------------
    # Refresh and commands. Each returns its own result; none raise.

    async def refresh_all(self) -> SnapshotReport:
        return await self.snapshots.load_all()

    async def refresh_positions(self) -> SnapshotResult:
        """Manual refresh: the backend re-pulls positions from the venue first."""
        return await self.snapshots.refresh_positions(force_remote=True)

    async def refresh_orders(self) -> SnapshotResult:
        return await self.snapshots.refresh_orders()

    async def close_position(self, position_id: str) -> ApiResult:
        self.audit_logger.info("Close position requested", position_id=position_id)
        result = await self.client.close_position(position_id)
        if result.success:
            await self.snapshots.refresh_positions()
        else:
            self.audit_logger.warning("Close position failed", position_id=position_id, error=result.error)
        return result

    async def cancel_order(self, order_id: str) -> ApiResult:
        self.audit_logger.info("Cancel order requested", order_id=order_id)
        result = await self.client.cancel_order(order_id)
        if result.success:
            await self.snapshots.refresh_orders()
        else:
            self.audit_logger.warning("Cancel order failed", order_id=order_id, error=result.error)
        return result

    async def force_reconnect(self) -> ApiResult:
        self.audit_logger.info("Remote reconnect requested")
        return await self.client.force_reconnect()

    async def get_connection_diagnostics(self) -> ApiResult:
        return await self.client.get_connection_diagnostics()

    async def check_harvest_drift(self, config: HarvestConfig) -> ApiResult:
        """Compare the planned sequence for ``config`` with the one the runtime persisted.

        On success ``data`` is a SequenceDrift, or None when the instrument has
        no persisted sequence yet.
        """
        if not config.epic:
            return ApiResult.failure("Harvest config has no epic")
        result = await self.client.get_instrument(config.epic)
        if not result.success:
            return result
        persisted = extract_persisted_sequence(result.data)
        if persisted is None:
            return ApiResult(success=True, data=None, status_code=result.status_code)
        drift = detect_sequence_drift(config.preview(), persisted)
        if not drift.matches:
            self.logger.warning(
                "Harvest sequence drift", epic=config.epic, mismatched_steps=drift.mismatched_steps
            )
        return ApiResult(success=True, data=drift, status_code=result.status_code)


_active_session: Optional[MirrorSession] = None


async def open_session(
    profile: BackendProfile,
    settings: Settings,
    store: Optional[EntityStore] = None,
    connector: Optional[Connector] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> MirrorSession:
    """Tear down any active session, then build and start a new one."""
    global _active_session

    await close_session()
    session = MirrorSession(profile, settings, store=store, connector=connector, transport=transport)
    _active_session = session
    try:
        await session.start()
    except Exception:
        _active_session = None
        await session.stop()
        raise
    return session


async def close_session() -> None:
    """Stop the active session, if any. Safe to call repeatedly."""
    global _active_session

    session = _active_session
    _active_session = None
    if session is not None:
        await session.stop()


def get_active_session() -> Optional[MirrorSession]:
    return _active_session
