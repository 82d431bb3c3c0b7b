"""
Minimal async HTTP client for the Kite Connect order and portfolio endpoints.

Each call is a single attempt. Order placement in particular must never be
retried here: a retried POST can create a duplicate exit order.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol

import httpx

from slm_watcher.broker.errors import BrokerError, BrokerResponseError
from slm_watcher.broker.models import (
    BrokerConstants,
    ExitOrderRequest,
    OrderEvent,
    PlacedOrder,
    PositionSnapshot,
    parse_order_history,
)

KITE_API_VERSION = "3"
DEFAULT_BASE_URL = "https://api.kite.trade"


class BrokerClient(Protocol):
    """Contract the watcher expects from a broker implementation."""

    constants: BrokerConstants

    async def fetch_order_history(self, order_id: str) -> List[OrderEvent]:
        ...

    async def fetch_open_positions(self) -> PositionSnapshot:
        ...

    async def place_market_order(self, request: ExitOrderRequest) -> PlacedOrder:
        ...

    async def close(self) -> None:
        ...


class KiteClient:
    def __init__(
        self,
        api_key: str,
        access_token: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 10.0,
        constants: Optional[BrokerConstants] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.constants = constants or BrokerConstants()
        self._headers = {
            "X-Kite-Version": KITE_API_VERSION,
            "Authorization": f"token {api_key}:{access_token}",
        }
        # A shared client passed in is not closed by close(); otherwise we own it.
        if client is not None:
            self.client = client
            self._owns_client = False
        else:
            self.client = httpx.AsyncClient(timeout=timeout)
            self._owns_client = True

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def fetch_order_history(self, order_id: str) -> List[OrderEvent]:
        data = await self._request("GET", f"/orders/{order_id}")
        return parse_order_history(data)

    async def fetch_open_positions(self) -> PositionSnapshot:
        data = await self._request("GET", "/portfolio/positions")
        return PositionSnapshot.from_payload(data)

    async def place_market_order(self, request: ExitOrderRequest) -> PlacedOrder:
        data = await self._request(
            "POST",
            f"/orders/{self.constants.variety_regular}",
            data={k: str(v) for k, v in request.to_params().items()},
        )
        if not isinstance(data, dict) or not data.get("order_id"):
            raise BrokerResponseError(f"Order placement returned no order_id: {data!r}")
        return PlacedOrder(order_id=str(data["order_id"]), raw=data)

    async def _request(self, method: str, path: str, data: Optional[Dict[str, str]] = None) -> Any:
        # Absolute URL: a shared client need not carry a base_url
        resp = await self.client.request(method, f"{self.base_url}{path}", data=data, headers=self._headers)
        try:
            body = resp.json()
        except ValueError as exc:
            raise BrokerResponseError(
                f"Non-JSON response from {method} {path}",
                status_code=resp.status_code,
            ) from exc

        # unwrap {status: 'success', data: ...}
        if not isinstance(body, dict):
            raise BrokerResponseError(
                f"Unexpected response envelope from {method} {path}",
                status_code=resp.status_code,
            )
        if resp.status_code >= 400 or body.get("status") == "error":
            raise BrokerError(
                body.get("message") or f"{method} {path} failed",
                error_type=body.get("error_type"),
                status_code=resp.status_code,
            )
        if "data" not in body:
            raise BrokerResponseError(
                f"Response from {method} {path} has no data",
                status_code=resp.status_code,
            )
        return body["data"]
