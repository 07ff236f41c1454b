from __future__ import annotations
from typing import List

import httpx
import structlog

from api import BackendClient
from errors import LoadFailed, NotFound
from schemas import Product, StoreSettings

logger = structlog.get_logger(__name__)


class CatalogCache:
    """Products as last fetched from the backend. Only a full reload refreshes it."""

    def __init__(self, client: BackendClient):
        self.client = client
        self._products: List[Product] = []

    @property
    def products(self) -> List[Product]:
        return list(self._products)

    async def load(self) -> List[Product]:
        try:
            products = await self.client.list_products()
        except (httpx.HTTPError, ValueError, TypeError) as e:
            logger.error("catalog.load_failed", error=str(e), cached=len(self._products))
            raise LoadFailed("products", str(e)) from e
        self._products = products
        logger.info("catalog.loaded", count=len(products))
        return self.products

    def find_by_id(self, product_id: str) -> Product:
        for product in self._products:
            if product.id == product_id:
                return product
        raise NotFound(product_id)

    def in_stock(self) -> List[Product]:
        return [p for p in self._products if p.in_stock]


class SettingsCache:
    """Store settings (contact links, hero banner) fetched at startup."""

    def __init__(self, client: BackendClient):
        self.client = client
        self.settings = StoreSettings()

    async def load(self) -> StoreSettings:
        try:
            store_settings = await self.client.get_settings()
        except (httpx.HTTPError, ValueError, TypeError) as e:
            logger.error("settings.load_failed", error=str(e))
            raise LoadFailed("settings", str(e)) from e
        self.settings = store_settings
        return store_settings
