"""Backend request/response client.

Every call returns an ApiResult. Transport errors, non-2xx statuses,
unparseable bodies and ``success: false`` envelopes all come back as a
failed result; none of them raise to the caller. Nothing is retried here.
"""

from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from core.config.settings import Settings
from core.logging import get_snapshot_logger_safe
from core.utils.exceptions import RequestError

from .models import ApiEnvelope, ApiResult


class BackendClient:
    """Thin wrapper over httpx.AsyncClient for one backend."""

    def __init__(
        self,
        api_url: str,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_url = api_url
        self.endpoints = settings.endpoints
        self._client = httpx.AsyncClient(
            base_url=api_url,
            timeout=httpx.Timeout(settings.http.timeout_seconds),
            transport=transport,
        )
        self.logger = get_snapshot_logger_safe("backend_client")

    async def aclose(self) -> None:
        await self._client.aclose()

    async def request(self, method: str, path: str, json: Optional[Dict[str, Any]] = None) -> ApiResult:
        try:
            return await self._send(method, path, json)
        except RequestError as e:
            self.logger.warning(
                "Backend request failed",
                method=method,
                endpoint=e.endpoint,
                status_code=e.status_code,
                error=e.message,
            )
            return ApiResult.failure(e.message, e.status_code)

    @property
    def is_closed(self) -> bool:
        return self._client.is_closed

    async def _send(self, method: str, path: str, json: Optional[Dict[str, Any]]) -> ApiResult:
        if self._client.is_closed:
            raise RequestError("Client closed", endpoint=path)
        try:
            response = await self._client.request(method, path, json=json)
        except httpx.HTTPError as e:
            raise RequestError(f"Transport failure: {type(e).__name__}: {e}", endpoint=path)
        except RuntimeError:
            # Closed while the request was being set up
            if not self._client.is_closed:
                raise
            raise RequestError("Client closed", endpoint=path)

        envelope = self._parse_envelope(response)
        status = response.status_code

        if response.is_error:
            message = envelope.error if envelope and envelope.error else f"HTTP {status}"
            raise RequestError(message, endpoint=path, status_code=status)
        if envelope is None:
            raise RequestError("Malformed response envelope", endpoint=path, status_code=status)
        if not envelope.success:
            raise RequestError(envelope.error or "Request failed", endpoint=path, status_code=status)

        return ApiResult(success=True, data=envelope.data, status_code=status)

    @staticmethod
    def _parse_envelope(response: httpx.Response) -> Optional[ApiEnvelope]:
        try:
            body = response.json()
        except ValueError:
            return None
        if not isinstance(body, dict):
            return None
        try:
            return ApiEnvelope.model_validate(body)
        except ValidationError:
            return None

    # Snapshot reads
    async def get_account(self) -> ApiResult:
        return await self.request("GET", self.endpoints.account)

    async def get_positions(self) -> ApiResult:
        return await self.request("GET", self.endpoints.positions)

    async def refresh_positions(self) -> ApiResult:
        """Ask the backend to re-pull positions from the venue before answering."""
        return await self.request("GET", self.endpoints.positions_refresh)

    async def get_orders(self) -> ApiResult:
        return await self.request("GET", self.endpoints.orders)

    # Commands
    async def close_position(self, position_id: str) -> ApiResult:
        path = self.endpoints.close_position.format(position_id=quote(str(position_id), safe=""))
        return await self.request("POST", path)

    async def cancel_order(self, order_id: str) -> ApiResult:
        path = self.endpoints.cancel_order.format(order_id=quote(str(order_id), safe=""))
        return await self.request("POST", path)

    async def force_reconnect(self) -> ApiResult:
        """Ask the backend to reconnect itself to the trading venue."""
        return await self.request("POST", self.endpoints.force_reconnect)

    async def get_connection_diagnostics(self) -> ApiResult:
        return await self.request("GET", self.endpoints.connection_diagnostics)

    # Instrument configuration
    async def get_instrument(self, epic: str) -> ApiResult:
        """Instrument record as stored by the strategy runtime, metadata included."""
        path = self.endpoints.instrument.format(epic=quote(str(epic), safe=""))
        return await self.request("GET", path)

    async def verify_credentials(self, username: str, password: str, api_key: str) -> ApiResult:
        return await self.request(
            "POST",
            self.endpoints.auth_verify,
            json={"username": username, "password": password, "apiKey": api_key},
        )
