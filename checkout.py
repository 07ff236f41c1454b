from __future__ import annotations
from typing import Any, Mapping, Optional, Union

import httpx
import structlog
from pydantic import ValidationError

from api import BackendClient
from cart import CartStore
from catalog import CatalogCache
from database import STORAGE_ERRORS
from errors import CartEmpty, InvalidCustomerInfo, NotFound, OrderSubmissionFailed, OutOfStock
from schemas import CustomerInfo, OrderConfirmation, OrderCreate, OrderItem, PaymentMethod

logger = structlog.get_logger(__name__)


class CheckoutOrchestrator:
    """Turns the current cart into one order on the backend.

    One call, one ``POST /orders``. Only after the backend accepted the order are
    the submitted lines taken out of the cart, so items added while the request
    was out stay put. On any failure the cart is left as it was and nothing is
    retried. Keeping a second click from submitting again is up to the caller.
    """

    def __init__(self, cart: CartStore, client: BackendClient, catalog: Optional[CatalogCache] = None):
        self.cart = cart
        self.client = client
        self.catalog = catalog

    def build_order(self, customer_info: Union[CustomerInfo, Mapping[str, Any]], payment_method: Union[PaymentMethod, str]) -> OrderCreate:
        if not len(self.cart):
            raise CartEmpty()
        if not isinstance(customer_info, CustomerInfo):
            try:
                customer_info = CustomerInfo.model_validate(customer_info)
            except ValidationError as e:
                fields = [".".join(str(p) for p in err["loc"]) or "customer_info" for err in e.errors()]
                raise InvalidCustomerInfo(fields) from e
        if isinstance(payment_method, PaymentMethod):
            payment_method = payment_method.value
        items = [
            OrderItem(
                product_id=item.product_id,
                name=item.name,
                price=item.price,
                quantity=item.quantity,
                size=item.size,
                color=item.color,
            )
            for item in self.cart
        ]
        return OrderCreate(
            customer_info=customer_info,
            items=items,
            total=self.cart.total(),
            payment_method=payment_method,
        )

    def revalidate_stock(self) -> None:
        """Check cart quantities against the catalog as currently cached."""
        if self.catalog is None:
            return
        for item in self.cart:
            try:
                product = self.catalog.find_by_id(item.product_id)
            except NotFound:
                continue
            if item.quantity > product.stock:
                raise OutOfStock(product.id, item.quantity, product.stock)

    async def submit(self, customer_info: Union[CustomerInfo, Mapping[str, Any]], payment_method: Union[PaymentMethod, str]) -> OrderConfirmation:
        order = self.build_order(customer_info, payment_method)
        submitted = self.cart.items
        self.revalidate_stock()

        log = logger.bind(lines=len(order.items), total=str(order.total), payment_method=order.payment_method)
        try:
            data = await self.client.create_order(order)
        except httpx.HTTPStatusError as e:
            log.error("checkout.rejected", status=e.response.status_code)
            raise OrderSubmissionFailed(f"backend answered {e.response.status_code}") from e
        except httpx.HTTPError as e:
            log.error("checkout.failed", error=str(e))
            raise OrderSubmissionFailed(str(e) or type(e).__name__) from e

        try:
            self.cart.discard_ordered(submitted)
        except STORAGE_ERRORS as e:
            # the order exists on the backend either way
            log.error("checkout.cart_not_cleared", error=str(e))
        try:
            confirmation = OrderConfirmation.model_validate(data if isinstance(data, dict) else {})
        except ValidationError:
            confirmation = OrderConfirmation(order_id=str(data.get("order_id") or ""))
        if not confirmation.order_id:
            log.warning("checkout.missing_order_id")
        log.info("checkout.placed", order_id=confirmation.order_id)
        return confirmation
