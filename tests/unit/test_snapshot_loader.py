import pytest

from core.schemas.entities import AccountSnapshot, Order, Position
from services.mirror.api_client import BackendClient
from services.mirror.snapshot import SnapshotLoader
from tests.mocks.payloads import order_payload, position_payload


@pytest.fixture
def client(test_settings, backend):
    return BackendClient("http://alice.backend.test", test_settings, transport=backend.transport)


@pytest.fixture
def loader(client, store):
    return SnapshotLoader(client, store)


@pytest.mark.asyncio
async def test_load_all_replaces_every_collection(loader, store, backend, client):
    backend.positions = [position_payload("P1"), position_payload("P2")]
    backend.orders = [order_payload("O1")]

    report = await loader.load_all()
    await client.aclose()

    assert report.success
    assert set(report.results) == {"account", "positions", "orders"}
    assert report.results["positions"].count == 2
    assert store.account == AccountSnapshot(
        balance=9500.0, equity=10000.0, margin=500.0, available=9500.0, pnl=125.5,
    )
    assert [p.id for p in store.positions] == ["P1", "P2"]
    assert [o.id for o in store.orders] == ["O1"]


@pytest.mark.asyncio
async def test_snapshot_wins_over_incremental_state(loader, store, backend, client):
    store.apply_position_update(Position.model_validate(position_payload("P1")))
    store.apply_position_update(Position.model_validate(position_payload("P2", contracts=1)))
    backend.positions = [position_payload("P2", contracts=5)]

    result = await loader.refresh_positions()
    await client.aclose()

    assert result.success
    assert [(p.id, p.contracts) for p in store.positions] == [("P2", 5)]


@pytest.mark.asyncio
async def test_failed_request_leaves_collection_untouched(loader, store, backend, client):
    store.apply_position_update(Position.model_validate(position_payload("P1")))
    before = store.positions
    backend.fail("/api/positions", status=503, error="IG session expired")

    result = await loader.refresh_positions()
    await client.aclose()

    assert result.success is False
    assert result.error == "IG session expired"
    assert store.positions == before


@pytest.mark.asyncio
async def test_success_false_envelope_is_a_failure(loader, store, backend, client):
    store.apply_order_update(Order.model_validate(order_payload("O1")))
    backend.overrides["/api/orders"] = (200, {"success": False, "error": "Not logged in"})

    result = await loader.refresh_orders()
    await client.aclose()

    assert result.success is False
    assert result.error == "Not logged in"
    assert [o.id for o in store.orders] == ["O1"]


@pytest.mark.asyncio
async def test_unreachable_backend_does_not_raise(loader, store, backend, client):
    backend.unreachable.add("/api/account")
    store.replace_account(AccountSnapshot(balance=1.0))

    result = await loader.refresh_account()
    await client.aclose()

    assert result.success is False
    assert "ConnectError" in result.error
    assert store.account.balance == 1.0


@pytest.mark.asyncio
async def test_invalid_records_fail_the_whole_pull(loader, store, backend, client):
    store.apply_position_update(Position.model_validate(position_payload("P1")))
    backend.positions = [position_payload("P2"), {"epic": "missing id"}]

    result = await loader.refresh_positions()
    await client.aclose()

    assert result.success is False
    assert [p.id for p in store.positions] == ["P1"]


@pytest.mark.asyncio
async def test_non_list_payload_is_a_failure(loader, store, backend, client):
    backend.overrides["/api/positions"] = (200, {"success": True, "data": {"positions": []}})

    result = await loader.refresh_positions()
    await client.aclose()

    assert result.success is False
    assert "not a list" in result.error


@pytest.mark.asyncio
async def test_null_payload_means_empty_collection(loader, store, backend, client):
    store.apply_order_update(Order.model_validate(order_payload("O1")))
    backend.overrides["/api/orders"] = (200, {"success": True})

    result = await loader.refresh_orders()
    await client.aclose()

    assert result.success is True
    assert store.orders == ()


@pytest.mark.asyncio
async def test_orders_snapshot_drops_terminal_entries(loader, store, backend, client):
    backend.orders = [order_payload("O1"), order_payload("O2", status="FILLED")]

    result = await loader.refresh_orders()
    await client.aclose()

    assert result.count == 1
    assert [o.id for o in store.orders] == ["O1"]


@pytest.mark.asyncio
async def test_force_remote_uses_refresh_endpoint(loader, backend, client):
    await loader.refresh_positions(force_remote=True)
    await loader.refresh_positions()
    await client.aclose()

    assert backend.hits("/api/positions/refresh") == 1
    assert backend.hits("/api/positions") == 1


@pytest.mark.asyncio
async def test_partial_failure_report(loader, store, backend, client):
    backend.fail("/api/account")
    backend.positions = [position_payload("P1")]

    report = await loader.load_all()
    await client.aclose()

    assert report.success is False
    assert list(report.failed) == ["account"]
    assert [p.id for p in store.positions] == ["P1"]
