"""
Cart Store

Owns the shopping cart and its persisted mirror under the ``"cart"`` storage
key. Line items are unique per (product id, size, color); adding an existing
combination bumps its quantity instead of appending a duplicate.

Every mutation builds the new item list, writes it to storage and only then
swaps it in, so a failed write leaves the cart exactly as it was.
"""
from __future__ import annotations
from decimal import Decimal
from typing import Iterable, Iterator, List, Optional

import structlog
from pydantic import TypeAdapter, ValidationError

from database import Storage
from errors import IndexOutOfRange, InvalidQuantity, OutOfStock, VariantRequired
from schemas import CartLineItem, Product

logger = structlog.get_logger(__name__)

CART_KEY = "cart"

_line_items = TypeAdapter(List[CartLineItem])


def dump_items(items: List[CartLineItem]) -> str:
    return _line_items.dump_json(items).decode("utf-8")


def parse_items(raw: str) -> List[CartLineItem]:
    return _line_items.validate_json(raw)


def _check_quantity(quantity) -> None:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise InvalidQuantity(quantity)


def _pick_variant(product: Product, options: List[str], value: Optional[str], variant: str) -> str:
    if not options:
        return ""
    if not value or value not in options:
        raise VariantRequired(product.id, variant)
    return value


class CartStore:
    def __init__(self, storage: Storage):
        self.storage = storage
        self._items: List[CartLineItem] = []

    @property
    def items(self) -> List[CartLineItem]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[CartLineItem]:
        return iter(self.items)

    def load(self) -> List[CartLineItem]:
        """Restore the cart from storage. Missing or malformed data gives an empty cart."""
        try:
            raw = self.storage.get_item(CART_KEY)
        except Exception as e:
            logger.warning("cart.storage_unavailable", error=str(e))
            raw = None
        if raw is None:
            self._items = []
            return self.items
        try:
            items = parse_items(raw)
        except ValidationError as e:
            logger.warning("cart.malformed", errors=e.error_count())
            items = []
        self._items = _merge_duplicates(items)
        logger.info("cart.loaded", lines=len(self._items), quantity=self.item_count())
        return self.items

    def _commit(self, items: List[CartLineItem]) -> None:
        self.storage.set_item(CART_KEY, dump_items(items))
        self._items = items

    def _build_item(self, product: Product, quantity: int, size: Optional[str], color: Optional[str]) -> CartLineItem:
        _check_quantity(quantity)
        if product.stock <= 0 or quantity > product.stock:
            raise OutOfStock(product.id, quantity, product.stock)
        return CartLineItem(
            product_id=product.id,
            name=product.name,
            price=product.effective_price,
            quantity=quantity,
            size=_pick_variant(product, product.sizes, size, "size"),
            color=_pick_variant(product, product.colors, color, "color"),
            image_url=product.main_image,
        )

    def _index_of(self, item: CartLineItem) -> Optional[int]:
        for index, existing in enumerate(self._items):
            if existing.key == item.key:
                return index
        return None

    def add(self, product: Product, quantity: int = 1, size: str = "", color: str = "") -> List[CartLineItem]:
        item = self._build_item(product, quantity, size, color)
        items = self.items
        index = self._index_of(item)
        if index is None:
            items.append(item)
        else:
            merged = items[index].quantity + quantity
            if merged > product.stock:
                raise OutOfStock(product.id, merged, product.stock)
            items[index] = items[index].model_copy(update={"quantity": merged})
        self._commit(items)
        logger.info("cart.item_added", product_id=product.id, size=item.size, color=item.color, quantity=quantity)
        return self.items

    def replace(self, product: Product, quantity: int = 1, size: str = "", color: str = "") -> List[CartLineItem]:
        """Quick buy: the cart becomes exactly this one item, dropping whatever was there."""
        item = self._build_item(product, quantity, size, color)
        dropped = len(self._items)
        self._commit([item])
        logger.info("cart.replaced", product_id=product.id, quantity=quantity, dropped=dropped)
        return self.items

    def update_quantity(self, index: int, quantity: int, product: Optional[Product] = None) -> List[CartLineItem]:
        self._check_index(index)
        _check_quantity(quantity)
        if product is not None and quantity > product.stock:
            raise OutOfStock(product.id, quantity, product.stock)
        items = self.items
        items[index] = items[index].model_copy(update={"quantity": quantity})
        self._commit(items)
        logger.info("cart.quantity_updated", index=index, quantity=quantity)
        return self.items

    def remove(self, index: int) -> List[CartLineItem]:
        self._check_index(index)
        items = self.items
        removed = items.pop(index)
        self._commit(items)
        logger.info("cart.item_removed", product_id=removed.product_id, index=index)
        return self.items

    def clear(self) -> None:
        self._commit([])
        logger.info("cart.cleared")

    def discard_ordered(self, ordered: Iterable[CartLineItem]) -> List[CartLineItem]:
        """Take ordered quantities out of the cart, keeping anything added since."""
        remaining = {}
        for item in ordered:
            remaining[item.key] = remaining.get(item.key, 0) + item.quantity
        items = []
        for item in self._items:
            left = item.quantity - remaining.pop(item.key, 0)
            if left > 0:
                items.append(item if left == item.quantity else item.model_copy(update={"quantity": left}))
        self._commit(items)
        logger.info("cart.ordered_items_discarded", kept=len(items))
        return self.items

    def _check_index(self, index: int) -> None:
        if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < len(self._items):
            raise IndexOutOfRange(index, len(self._items))

    def total(self) -> Decimal:
        return sum((item.subtotal for item in self._items), Decimal("0"))

    def item_count(self) -> int:
        return sum(item.quantity for item in self._items)


def _merge_duplicates(items: List[CartLineItem]) -> List[CartLineItem]:
    # hand-edited or legacy storage can repeat a key; fold repeats into the first
    merged: List[CartLineItem] = []
    positions = {}
    for item in items:
        if item.key in positions:
            first = merged[positions[item.key]]
            merged[positions[item.key]] = first.model_copy(update={"quantity": first.quantity + item.quantity})
        else:
            positions[item.key] = len(merged)
            merged.append(item)
    return merged
