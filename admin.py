"""
Admin console

Password gate plus product, order and settings management against the same
backend the storefront reads from. The logged-in flag lives in transient
(session) storage, so it does not outlive the process.
"""
from __future__ import annotations
import asyncio
from typing import List, Optional

import httpx
import structlog
from pydantic import BaseModel

from api import BackendClient
from database import Storage
from errors import AdminActionFailed, LoadFailed, NotAuthenticated
from schemas import Order, OrderStatus, Product, ProductIn, StoreSettings

logger = structlog.get_logger(__name__)

SESSION_KEY = "adminAuthenticated"
RECENT_ORDERS = 5


class DashboardStats(BaseModel):
    total_products: int
    total_orders: int
    pending_orders: int
    in_stock_products: int
    recent_orders: List[Order]


def parse_variants(raw: str) -> List[str]:
    """Split a comma separated sizes/colors field, dropping blanks."""
    return [part.strip() for part in (raw or "").split(",") if part.strip()]


class AdminConsole:
    def __init__(self, client: BackendClient, session: Storage):
        self.client = client
        self.session = session
        self.products: List[Product] = []
        self.orders: List[Order] = []
        self.settings = StoreSettings()

    @property
    def is_authenticated(self) -> bool:
        return self.session.get_item(SESSION_KEY) == "true"

    def _require_login(self) -> None:
        if not self.is_authenticated:
            raise NotAuthenticated()

    async def login(self, password: str) -> bool:
        try:
            ok = await self.client.admin_login(password)
        except httpx.HTTPError as e:
            logger.error("admin.login_failed", error=str(e))
            raise AdminActionFailed("log in", "connection error") from e
        if ok:
            self.session.set_item(SESSION_KEY, "true")
            logger.info("admin.logged_in")
        else:
            logger.warning("admin.bad_password")
        return ok

    def logout(self) -> None:
        self.session.remove_item(SESSION_KEY)
        logger.info("admin.logged_out")

    # Loading

    async def load_products(self) -> List[Product]:
        self._require_login()
        try:
            self.products = await self.client.list_products()
        except (httpx.HTTPError, ValueError, TypeError) as e:
            raise LoadFailed("products", str(e)) from e
        return self.products

    async def load_orders(self) -> List[Order]:
        self._require_login()
        try:
            self.orders = await self.client.list_orders()
        except (httpx.HTTPError, ValueError, TypeError) as e:
            raise LoadFailed("orders", str(e)) from e
        return self.orders

    async def load_settings(self) -> StoreSettings:
        self._require_login()
        try:
            self.settings = await self.client.get_settings()
        except (httpx.HTTPError, ValueError, TypeError) as e:
            raise LoadFailed("settings", str(e)) from e
        return self.settings

    async def load_all(self) -> List[LoadFailed]:
        """Load everything at once; one failing list does not stop the others."""
        self._require_login()
        results = await asyncio.gather(
            self.load_products(), self.load_orders(), self.load_settings(),
            return_exceptions=True,
        )
        failures = []
        for result in results:
            if isinstance(result, LoadFailed):
                logger.error("admin.load_failed", resource=result.resource, error=result.reason)
                failures.append(result)
            elif isinstance(result, BaseException):
                raise result
        return failures

    def dashboard(self) -> DashboardStats:
        return DashboardStats(
            total_products=len(self.products),
            total_orders=len(self.orders),
            pending_orders=sum(1 for o in self.orders if o.status == OrderStatus.PENDING.value),
            in_stock_products=sum(1 for p in self.products if p.in_stock),
            recent_orders=self.orders[:RECENT_ORDERS],
        )

    # Mutations

    async def save_product(self, product: ProductIn, product_id: Optional[str] = None) -> List[Product]:
        self._require_login()
        action = "update product" if product_id else "create product"
        try:
            if product_id:
                await self.client.update_product(product_id, product)
            else:
                await self.client.create_product(product)
        except httpx.HTTPError as e:
            raise AdminActionFailed(action, str(e)) from e
        logger.info("admin.product_saved", product_id=product_id, created=not product_id)
        return await self.load_products()

    async def delete_product(self, product_id: str) -> List[Product]:
        self._require_login()
        try:
            await self.client.delete_product(product_id)
        except httpx.HTTPError as e:
            raise AdminActionFailed("delete product", str(e)) from e
        logger.info("admin.product_deleted", product_id=product_id)
        return await self.load_products()

    async def update_order_status(self, order_id: str, status: OrderStatus) -> List[Order]:
        self._require_login()
        status = OrderStatus(status)
        try:
            await self.client.update_order_status(order_id, status)
        except httpx.HTTPError as e:
            raise AdminActionFailed("update order status", str(e)) from e
        logger.info("admin.order_status_updated", order_id=order_id, status=status.value)
        return await self.load_orders()

    async def save_settings(self, store_settings: StoreSettings) -> StoreSettings:
        self._require_login()
        try:
            await self.client.save_settings(store_settings)
        except httpx.HTTPError as e:
            raise AdminActionFailed("save settings", str(e)) from e
        self.settings = store_settings
        logger.info("admin.settings_saved")
        return store_settings
