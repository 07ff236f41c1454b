import logging
import os
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from api import BackendClient
from cart import CartStore
from catalog import CatalogCache, SettingsCache
from checkout import CheckoutOrchestrator
from database import Storage, get_storage, settings
from errors import (
    CartEmpty,
    IndexOutOfRange,
    InvalidCustomerInfo,
    InvalidQuantity,
    LoadFailed,
    NotFound,
    OrderSubmissionFailed,
    OutOfStock,
    StorefrontError,
    VariantRequired,
)
from preferences import Language, get_language, set_language, toggle_language
from schemas import Money, PaymentMethod, Product, StoreSettings

logger = structlog.get_logger(__name__)

ERROR_STATUS = {
    NotFound: 404,
    IndexOutOfRange: 404,
    OutOfStock: 409,
    VariantRequired: 400,
    InvalidQuantity: 400,
    CartEmpty: 400,
    InvalidCustomerInfo: 400,
    LoadFailed: 502,
    OrderSubmissionFailed: 502,
}


def configure_logging(level: str = settings.LOG_LEVEL) -> None:
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(level.upper())),
    )


# Request / response bodies

class CartItemIn(BaseModel):
    product_id: str
    quantity: int = 1
    size: str = ""
    color: str = ""


class QuantityIn(BaseModel):
    quantity: int


class CheckoutIn(BaseModel):
    customer_info: Dict[str, Any]
    payment_method: str = PaymentMethod.CASH_ON_DELIVERY.value


class LanguageIn(BaseModel):
    language: Language


class CartLineOut(BaseModel):
    index: int
    product_id: str
    name: str
    price: Money
    quantity: int
    size: str
    color: str
    image_url: Optional[str] = None
    subtotal: Money


class CartOut(BaseModel):
    items: List[CartLineOut]
    total: Money
    item_count: int


class Storefront:
    """One catalog, cart and checkout per process, wired at startup."""

    def __init__(self, storage: Storage, client: BackendClient):
        self.storage = storage
        self.client = client
        self.catalog = CatalogCache(client)
        self.store_settings = SettingsCache(client)
        self.cart = CartStore(storage)
        self.checkout = CheckoutOrchestrator(self.cart, client, self.catalog)
        self.checkout_in_flight = False

    async def start(self) -> None:
        self.cart.load()
        for loader in (self.store_settings.load, self.catalog.load):
            try:
                await loader()
            except LoadFailed as e:
                logger.warning("storefront.degraded_start", resource=e.resource)

    def cart_out(self) -> CartOut:
        return CartOut(
            items=[
                CartLineOut(index=i, subtotal=item.subtotal, **item.model_dump())
                for i, item in enumerate(self.cart.items)
            ],
            total=self.cart.total(),
            item_count=self.cart.item_count(),
        )

    def product_for_line(self, index: int) -> Optional[Product]:
        items = self.cart.items
        if not 0 <= index < len(items):
            return None
        try:
            return self.catalog.find_by_id(items[index].product_id)
        except NotFound:
            return None


def create_app(storage: Optional[Storage] = None, client: Optional[BackendClient] = None) -> FastAPI:
    configure_logging()
    storefront = Storefront(storage or get_storage(), client or BackendClient())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await storefront.start()
        yield
        await storefront.client.aclose()

    app = FastAPI(title="Double M Storefront", lifespan=lifespan)
    app.state.storefront = storefront

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(StorefrontError)
    async def storefront_error(request: Request, exc: StorefrontError):
        status = next((code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)), 400)
        return JSONResponse(status_code=status, content={"detail": str(exc), "error": type(exc).__name__})

    @app.get("/")
    async def read_root():
        return {"message": "Storefront running", "backend": storefront.client.base_url}

    # Catalog

    @app.get("/products", response_model=List[Product])
    async def list_products():
        return storefront.catalog.products

    @app.post("/products/reload", response_model=List[Product])
    async def reload_products():
        return await storefront.catalog.load()

    @app.get("/products/{product_id}", response_model=Product)
    async def get_product(product_id: str):
        return storefront.catalog.find_by_id(product_id)

    @app.get("/settings")
    async def get_settings():
        store_settings: StoreSettings = storefront.store_settings.settings
        return {**store_settings.model_dump(), "whatsapp_link": store_settings.whatsapp_link}

    # Cart
    # Kept async: mutations then run one at a time on the event loop, never in the threadpool, even though MongoStorage blocks.

    @app.get("/cart", response_model=CartOut)
    async def get_cart():
        return storefront.cart_out()

    @app.post("/cart/items", response_model=CartOut)
    async def add_to_cart(payload: CartItemIn):
        product = storefront.catalog.find_by_id(payload.product_id)
        storefront.cart.add(product, payload.quantity, payload.size, payload.color)
        return storefront.cart_out()

    @app.post("/cart/buy-now", response_model=CartOut)
    async def buy_now(payload: CartItemIn):
        product = storefront.catalog.find_by_id(payload.product_id)
        storefront.cart.replace(product, payload.quantity, payload.size, payload.color)
        return storefront.cart_out()

    @app.patch("/cart/items/{index}", response_model=CartOut)
    async def update_cart_item(index: int, payload: QuantityIn):
        storefront.cart.update_quantity(index, payload.quantity, storefront.product_for_line(index))
        return storefront.cart_out()

    @app.delete("/cart/items/{index}", response_model=CartOut)
    async def remove_cart_item(index: int):
        storefront.cart.remove(index)
        return storefront.cart_out()

    @app.delete("/cart", response_model=CartOut)
    async def clear_cart():
        storefront.cart.clear()
        return storefront.cart_out()

    # Checkout

    @app.get("/checkout/payment-methods")
    async def payment_methods():
        return [m.value for m in PaymentMethod]

    @app.post("/checkout")
    async def checkout(payload: CheckoutIn):
        if storefront.checkout_in_flight:
            raise HTTPException(status_code=409, detail="Checkout already in progress")
        storefront.checkout_in_flight = True
        try:
            confirmation = await storefront.checkout.submit(payload.customer_info, payload.payment_method)
        finally:
            storefront.checkout_in_flight = False
        return {
            "order_id": confirmation.order_id,
            "date": confirmation.date,
            "message": f"Order #{confirmation.order_id} Placed Successfully!",
        }

    # Preferences

    @app.get("/preferences/language")
    async def read_language():
        language = get_language(storefront.storage)
        return {"language": language.value, "direction": language.direction}

    @app.put("/preferences/language")
    async def write_language(payload: LanguageIn):
        language = set_language(storefront.storage, payload.language)
        return {"language": language.value, "direction": language.direction}

    @app.post("/preferences/language/toggle")
    async def switch_language():
        language = toggle_language(storefront.storage)
        return {"language": language.value, "direction": language.direction}

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", 8000)))
