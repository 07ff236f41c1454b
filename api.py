from __future__ import annotations
from typing import Any, List, Optional

import httpx
import structlog

from database import settings
from schemas import Order, OrderCreate, OrderStatus, Product, ProductIn, StoreSettings

logger = structlog.get_logger(__name__)


class BackendClient:
    """Async client for the store backend REST API.

    Non-2xx responses raise ``httpx.HTTPStatusError`` and transport failures
    raise other ``httpx.HTTPError`` subclasses; callers decide what they mean.
    """

    def __init__(self, base_url: Optional[str] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = base_url or settings.API_URL
        self.http = httpx.AsyncClient(base_url=self.base_url, transport=transport)

    async def __aenter__(self) -> "BackendClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.http.aclose()

    async def _request(self, method: str, path: str, json: Any = None) -> Any:
        response = await self.http.request(method, path, json=json)
        logger.debug("backend.response", method=method, path=path, status=response.status_code)
        response.raise_for_status()
        if not response.content:
            return None
        return response.json()

    # Products

    async def list_products(self) -> List[Product]:
        data = await self._request("GET", "/products")
        return [Product.model_validate(p) for p in data]

    async def create_product(self, product: ProductIn) -> Any:
        return await self._request("POST", "/products", json=product.model_dump(mode="json", by_alias=True))

    async def update_product(self, product_id: str, product: ProductIn) -> Any:
        return await self._request("PUT", f"/products/{product_id}", json=product.model_dump(mode="json", by_alias=True))

    async def delete_product(self, product_id: str) -> None:
        await self._request("DELETE", f"/products/{product_id}")

    # Orders

    async def list_orders(self) -> List[Order]:
        data = await self._request("GET", "/orders")
        return [Order.model_validate(o) for o in data]

    async def create_order(self, order: OrderCreate) -> Any:
        response = await self.http.post("/orders", json=order.model_dump(mode="json"))
        logger.debug("backend.response", method="POST", path="/orders", status=response.status_code)
        response.raise_for_status()
        # a 2xx means the order exists, whatever the body looks like
        try:
            return response.json()
        except ValueError:
            logger.warning("backend.unparsable_order_response", status=response.status_code)
            return None

    async def update_order_status(self, order_id: str, status: OrderStatus) -> Any:
        return await self._request("PUT", f"/orders/{order_id}", json={"status": OrderStatus(status).value})

    # Settings

    async def get_settings(self) -> StoreSettings:
        data = await self._request("GET", "/settings")
        return StoreSettings.model_validate(data or {})

    async def save_settings(self, store_settings: StoreSettings) -> Any:
        return await self._request("POST", "/settings/bulk", json=store_settings.model_dump(mode="json"))

    # Admin

    async def admin_login(self, password: str) -> bool:
        try:
            data = await self._request("POST", "/admin/login", json={"password": password})
        except httpx.HTTPStatusError as e:
            if e.response.status_code in (401, 403):
                return False
            raise
        return bool(data and data.get("authenticated"))
