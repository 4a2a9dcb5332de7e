import asyncio
from typing import Any, List, Type, TypeVar

from pydantic import BaseModel, ValidationError

from core.logging import get_snapshot_logger_safe
from core.schemas.entities import BackendAccount, Order, Position

from .api_client import BackendClient
from .models import ApiResult, SnapshotReport, SnapshotResult
from .store import Collection, EntityStore

_M = TypeVar("_M", bound=BaseModel)


class SnapshotLoader:
    """
    Pulls whole collections from the backend and replaces them in the store.

    This is the destructive write path: a successful pull swaps the
    collection for the server's view with no merge. A failed pull leaves the
    collection exactly as it was and is reported through the returned
    SnapshotResult; nothing here raises.
    """

    def __init__(self, client: BackendClient, store: EntityStore):
        self.client = client
        self.store = store
        self.logger = get_snapshot_logger_safe("snapshot_loader")

    async def refresh_account(self) -> SnapshotResult:
        result = await self.client.get_account()
        if not result.success:
            return self._failed(Collection.ACCOUNT, result.error)
        if not isinstance(result.data, dict) or not result.data:
            return self._failed(Collection.ACCOUNT, "Account payload is not an object")

        try:
            account = BackendAccount.model_validate(result.data)
        except ValidationError as e:
            return self._failed(Collection.ACCOUNT, f"Invalid account payload: {e.error_count()} errors")

        self.store.replace_account(account.to_snapshot())
        return self._succeeded(Collection.ACCOUNT, 1)

    async def refresh_positions(self, force_remote: bool = False) -> SnapshotResult:
        """Replace positions. With force_remote the backend re-pulls from the venue first."""
        if force_remote:
            result = await self.client.refresh_positions()
        else:
            result = await self.client.get_positions()

        try:
            positions = self._parse_list(result, Position)
        except ValueError as e:
            return self._failed(Collection.POSITIONS, str(e))

        self.store.replace_positions(positions)
        return self._succeeded(Collection.POSITIONS, len(self.store.positions))

    async def refresh_orders(self) -> SnapshotResult:
        result = await self.client.get_orders()
        try:
            orders = self._parse_list(result, Order)
        except ValueError as e:
            return self._failed(Collection.ORDERS, str(e))

        self.store.replace_orders(orders)
        return self._succeeded(Collection.ORDERS, len(self.store.orders))

    async def load_all(self) -> SnapshotReport:
        """Pull account, positions and orders concurrently."""
        self.logger.info("Loading full snapshot")
        results = await asyncio.gather(
            self.refresh_account(),
            self.refresh_positions(),
            self.refresh_orders(),
        )
        report = SnapshotReport(results={r.collection: r for r in results})
        if report.success:
            self.logger.info("Full snapshot loaded")
        else:
            self.logger.warning("Snapshot partially failed", failed=sorted(report.failed))
        return report

    @staticmethod
    def _parse_list(result: ApiResult, model: Type[_M]) -> List[_M]:
        if not result.success:
            raise ValueError(result.error or "Request failed")
        data: Any = result.data
        if data is None:
            return []
        if not isinstance(data, list):
            raise ValueError(f"{model.__name__} payload is not a list")
        try:
            return [model.model_validate(item) for item in data]
        except ValidationError as e:
            raise ValueError(f"Invalid {model.__name__} payload: {e.error_count()} errors")

    def _succeeded(self, collection: Collection, count: int) -> SnapshotResult:
        self.logger.info("Snapshot replaced collection", collection=collection.value, count=count)
        return SnapshotResult(collection=collection.value, success=True, count=count)

    def _failed(self, collection: Collection, error: Any) -> SnapshotResult:
        message = str(error) if error else "Request failed"
        self.logger.warning("Snapshot failed; collection left untouched", collection=collection.value, error=message)
        return SnapshotResult(collection=collection.value, success=False, error=message)
