import json

import httpx
import pytest

from core.config.settings import EndpointSettings, Settings
from services.mirror.api_client import BackendClient


def make_client(settings, handler):
    return BackendClient("http://backend.test", settings, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_success_envelope_returns_data(test_settings):
    def handler(request):
        return httpx.Response(200, json={"success": True, "data": {"balance": 1}})

    client = make_client(test_settings, handler)
    result = await client.get_account()
    await client.aclose()

    assert result.success is True
    assert result.data == {"balance": 1}
    assert result.status_code == 200
    assert result.error is None


@pytest.mark.asyncio
async def test_http_error_uses_envelope_message(test_settings):
    def handler(request):
        return httpx.Response(404, json={"success": False, "error": "Position not found"})

    client = make_client(test_settings, handler)
    result = await client.close_position("P1")
    await client.aclose()

    assert result.success is False
    assert result.error == "Position not found"
    assert result.status_code == 404


@pytest.mark.asyncio
async def test_http_error_without_body(test_settings):
    def handler(request):
        return httpx.Response(502, text="<html>bad gateway</html>")

    client = make_client(test_settings, handler)
    result = await client.get_orders()
    await client.aclose()

    assert result.success is False
    assert result.error == "HTTP 502"
    assert result.status_code == 502


@pytest.mark.asyncio
async def test_non_json_success_response_is_a_failure(test_settings):
    def handler(request):
        return httpx.Response(200, text="OK")

    client = make_client(test_settings, handler)
    result = await client.get_positions()
    await client.aclose()

    assert result.success is False
    assert result.error == "Malformed response envelope"


@pytest.mark.asyncio
async def test_success_false_is_a_failure(test_settings):
    def handler(request):
        return httpx.Response(200, json={"success": False})

    client = make_client(test_settings, handler)
    result = await client.force_reconnect()
    await client.aclose()

    assert result.success is False
    assert result.error == "Request failed"


@pytest.mark.asyncio
async def test_transport_error_is_a_failure(test_settings):
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    client = make_client(test_settings, handler)
    result = await client.get_connection_diagnostics()
    await client.aclose()

    assert result.success is False
    assert result.status_code is None
    assert "ReadTimeout" in result.error


@pytest.mark.asyncio
async def test_command_paths_and_methods(test_settings):
    seen = []

    def handler(request):
        seen.append((request.method, request.url.raw_path.decode()))
        return httpx.Response(200, json={"success": True})

    client = make_client(test_settings, handler)
    await client.close_position("DIAAAA/1")
    await client.cancel_order("O 7")
    await client.force_reconnect()
    await client.get_connection_diagnostics()
    await client.refresh_positions()
    await client.aclose()

    assert seen == [
        ("POST", "/api/positions/DIAAAA%2F1/close"),
        ("POST", "/api/orders/O%207/cancel"),
        ("POST", "/api/ig/reconnect"),
        ("GET", "/api/ig/connection-status"),
        ("GET", "/api/positions/refresh"),
    ]


@pytest.mark.asyncio
async def test_verify_credentials_body(test_settings):
    bodies = []

    def handler(request):
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={"success": True})

    client = make_client(test_settings, handler)
    result = await client.verify_credentials("trader", "secret", "key-1")
    await client.aclose()

    assert result.success
    assert bodies == [{"username": "trader", "password": "secret", "apiKey": "key-1"}]


@pytest.mark.asyncio
async def test_endpoints_are_configurable():
    settings = Settings(endpoints=EndpointSettings(account="/v2/account"))
    paths = []

    def handler(request):
        paths.append(request.url.path)
        return httpx.Response(200, json={"success": True, "data": {}})

    client = make_client(settings, handler)
    await client.get_account()
    await client.aclose()

    assert paths == ["/v2/account"]


@pytest.mark.asyncio
async def test_closed_client_returns_failure(test_settings):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={"success": True})

    client = make_client(test_settings, handler)
    await client.aclose()
    result = await client.get_account()

    assert client.is_closed
    assert result.success is False
    assert result.error == "Client closed"
    assert calls == []


@pytest.mark.asyncio
async def test_instrument_record_path(test_settings):
    paths = []

    def handler(request):
        paths.append(request.url.raw_path.decode())
        return httpx.Response(200, json={"success": True, "data": {"epic": "IX.D.DAX.IFD.IP"}})

    client = make_client(test_settings, handler)
    result = await client.get_instrument("IX.D.DAX.IFD.IP")
    await client.aclose()

    assert result.data == {"epic": "IX.D.DAX.IFD.IP"}
    assert paths == ["/api/instruments/IX.D.DAX.IFD.IP"]
