import asyncio
import copy
from decimal import Decimal
from typing import Any, Dict, List

import httpx
import pytest
from fastapi import APIRouter, FastAPI, HTTPException

from api import BackendClient
from database import MemoryStorage
from schemas import Product

BACKEND_URL = "http://backend.test/api"

SEED_PRODUCTS: List[Dict[str, Any]] = [
    {
        "_id": "p1",
        "name": "Steel Ring",
        "description": "Brushed stainless steel band",
        "price": 100,
        "stock": 5,
        "images": ["https://cdn.example.com/ring-1.jpg", "https://cdn.example.com/ring-2.jpg"],
        "sizes": [],
        "colors": [],
    },
    {
        "_id": "p2",
        "name": "Leather Bracelet",
        "price": 250,
        "salePrice": 200,
        "stock": 3,
        "images": ["https://cdn.example.com/bracelet.jpg"],
        "sizes": ["S", "M", "L"],
        "colors": ["Black", "Brown"],
    },
    {
        "_id": "p3",
        "name": "Classic Wallet",
        "price": 150,
        "stock": 0,
        "image_url": "https://cdn.example.com/wallet.jpg",
    },
]

SEED_ORDERS: List[Dict[str, Any]] = [
    {
        "_id": "o1",
        "order_id": 1001,
        "date": "2026-10-18T09:30:00",
        "customer_info": {"name": "Omar", "phone": "+20 100 000 0000", "governorate": "Cairo", "address": "12 Tahrir St"},
        "items": [{"product_id": "p1", "name": "Steel Ring", "price": 100, "quantity": 2, "size": "", "color": ""}],
        "total": 200,
        "payment_method": "Cash on Delivery",
        "status": "Pending",
    },
    {
        "_id": "o2",
        "order_id": 1002,
        "date": "2026-10-18T11:00:00",
        "customer_info": {"name": "Mona", "phone": "01000000001", "governorate": "Giza", "address": "5 Pyramids Rd", "notes": "Call first"},
        "items": [{"product_id": "p2", "name": "Leather Bracelet", "price": 200, "quantity": 1, "size": "M", "color": "Black"}],
        "total": 200,
        "payment_method": "InstaPay",
        "status": "Shipped",
    },
]


class StubBackend:
    """In-memory stand-in for the store API, served over ASGI."""

    def __init__(self):
        self.products = copy.deepcopy(SEED_PRODUCTS)
        self.orders = copy.deepcopy(SEED_ORDERS)
        self.settings: Dict[str, Any] = {"whatsapp_number": "+20 100-123-4567", "hero_title": "Summer Drop"}
        self.password = "letmein"
        self.failing = set()
        self.received_orders: List[Dict[str, Any]] = []
        self.next_order_id = 1003
        self.app = self._build()

    def _check(self, resource: str) -> None:
        if resource in self.failing:
            raise HTTPException(status_code=500, detail=f"{resource} unavailable")

    def _build(self) -> FastAPI:
        router = APIRouter(prefix="/api")

        @router.get("/products")
        def list_products():
            self._check("products")
            return self.products

        @router.post("/products", status_code=201)
        def create_product(product: Dict[str, Any]):
            self._check("products")
            doc = {"_id": f"p{len(self.products) + 1}", **product}
            self.products.append(doc)
            return doc

        @router.put("/products/{product_id}")
        def update_product(product_id: str, product: Dict[str, Any]):
            self._check("products")
            for doc in self.products:
                if doc["_id"] == product_id:
                    doc.update(product)
                    return doc
            raise HTTPException(status_code=404, detail="Product not found")

        @router.delete("/products/{product_id}")
        def delete_product(product_id: str):
            self._check("products")
            before = len(self.products)
            self.products = [p for p in self.products if p["_id"] != product_id]
            if len(self.products) == before:
                raise HTTPException(status_code=404, detail="Product not found")
            return {"deleted": True}

        @router.get("/orders")
        def list_orders():
            self._check("orders")
            return self.orders

        @router.post("/orders", status_code=201)
        def create_order(order: Dict[str, Any]):
            self._check("orders")
            self.received_orders.append(order)
            order_id = self.next_order_id
            self.next_order_id += 1
            doc = {"_id": f"o{order_id}", "order_id": order_id, "date": "2026-10-19T12:00:00", "status": "Pending", **order}
            self.orders.insert(0, doc)
            return {"order_id": order_id, "date": doc["date"], "message": "Order created"}

        @router.put("/orders/{order_id}")
        def update_order(order_id: str, body: Dict[str, Any]):
            self._check("orders")
            for doc in self.orders:
                if doc["_id"] == order_id:
                    doc["status"] = body["status"]
                    return doc
            raise HTTPException(status_code=404, detail="Order not found")

        @router.get("/settings")
        def get_settings():
            self._check("settings")
            return self.settings

        @router.post("/settings/bulk")
        def save_settings(body: Dict[str, Any]):
            self._check("settings")
            self.settings.update(body)
            return self.settings

        @router.post("/admin/login")
        def admin_login(body: Dict[str, Any]):
            if body.get("password") != self.password:
                raise HTTPException(status_code=401, detail="Invalid password")
            return {"authenticated": True}

        app = FastAPI(title="Stub Store API")
        app.include_router(router)
        return app


class HeldBackend:
    """Mock transport handler that serves the stub's catalog but holds every
    ``POST /orders`` open until ``release`` is set."""

    def __init__(self, backend: StubBackend):
        self.backend = backend
        self.arrived = asyncio.Event()
        self.release = asyncio.Event()
        self.orders = 0

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path.removeprefix("/api")
        if request.method == "POST" and path == "/orders":
            self.orders += 1
            self.arrived.set()
            await self.release.wait()
            return httpx.Response(201, json={"order_id": 2000 + self.orders})
        if path == "/products":
            return httpx.Response(200, json=self.backend.products)
        if path == "/settings":
            return httpx.Response(200, json=self.backend.settings)
        return httpx.Response(404, json={"detail": "Not Found"})


def make_product(**overrides) -> Product:
    data = {"id": "p1", "name": "Steel Ring", "price": Decimal("100"), "stock": 5}
    data.update(overrides)
    return Product(**data)


def backend_client(backend: StubBackend) -> BackendClient:
    return BackendClient(BACKEND_URL, transport=httpx.ASGITransport(app=backend.app))


def mock_client(handler) -> BackendClient:
    return BackendClient(BACKEND_URL, transport=httpx.MockTransport(handler))


@pytest.fixture
def backend():
    return StubBackend()


@pytest.fixture
async def client(backend):
    async with backend_client(backend) as c:
        yield c


@pytest.fixture
def storage():
    return MemoryStorage()
