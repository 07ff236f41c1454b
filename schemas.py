"""
Storefront Schemas

Catalog products and store settings come from the backend, cart line items live
in client storage, and orders go back to the backend on checkout.
Money is Decimal in memory and a JSON number on the wire.
"""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer, StringConstraints, field_validator

Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]
RequiredText = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class OrderStatus(str, Enum):
    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"


class PaymentMethod(str, Enum):
    CASH_ON_DELIVERY = "Cash on Delivery"
    INSTAPAY = "InstaPay"


# Catalog

class Product(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., alias="_id")
    name: str
    description: Optional[str] = None
    price: Money = Field(..., ge=0, description="Price in EGP")
    sale_price: Optional[Money] = Field(None, alias="salePrice", ge=0)
    stock: int = Field(0, ge=0, description="Units in stock")
    images: List[str] = Field(default_factory=list)
    image_url: Optional[str] = None
    sizes: List[str] = Field(default_factory=list)
    colors: List[str] = Field(default_factory=list)

    @field_validator("images", "sizes", "colors", mode="before")
    @classmethod
    def _none_as_empty(cls, value):
        return [] if value is None else value

    @property
    def on_sale(self) -> bool:
        return bool(self.sale_price) and self.sale_price < self.price

    @property
    def effective_price(self) -> Decimal:
        return self.sale_price if self.on_sale else self.price

    @property
    def main_image(self) -> Optional[str]:
        return self.images[0] if self.images else self.image_url

    @property
    def in_stock(self) -> bool:
        return self.stock > 0


class ProductIn(BaseModel):
    """Admin form payload for creating or editing a product."""
    model_config = ConfigDict(populate_by_name=True)

    name: RequiredText
    description: Optional[str] = None
    price: Money = Field(..., ge=0)
    sale_price: Optional[Money] = Field(None, alias="salePrice", ge=0)
    stock: int = Field(0, ge=0)
    images: List[str] = Field(..., min_length=1)
    sizes: List[str] = Field(default_factory=list)
    colors: List[str] = Field(default_factory=list)


# Cart

class CartLineItem(BaseModel):
    product_id: str
    name: str
    price: Decimal = Field(..., ge=0, description="Unit price captured when the item was added")
    quantity: int = Field(..., ge=1)
    size: str = ""
    color: str = ""
    image_url: Optional[str] = None

    @property
    def key(self) -> Tuple[str, str, str]:
        return (self.product_id, self.size, self.color)

    @property
    def subtotal(self) -> Decimal:
        return self.price * self.quantity


# Orders

class CustomerInfo(BaseModel):
    name: RequiredText
    phone: RequiredText
    governorate: RequiredText
    address: RequiredText
    notes: str = ""


class CustomerRecord(BaseModel):
    """Customer details as stored on an existing order; older orders may have gaps."""
    name: str = ""
    phone: str = ""
    governorate: str = ""
    address: str = ""
    notes: str = ""

    @field_validator("name", "phone", "governorate", "address", "notes", mode="before")
    @classmethod
    def _none_as_blank(cls, value):
        return "" if value is None else value


class OrderItem(BaseModel):
    product_id: str
    name: str
    price: Money
    quantity: int = Field(..., ge=1)
    size: str = ""
    color: str = ""


class OrderCreate(BaseModel):
    customer_info: CustomerInfo
    items: List[OrderItem] = Field(..., min_length=1)
    total: Money
    payment_method: str


class OrderConfirmation(BaseModel):
    order_id: str = ""
    date: Optional[datetime] = None

    @field_validator("order_id", mode="before")
    @classmethod
    def _coerce_order_id(cls, value):
        return "" if value is None else str(value)


class Order(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., alias="_id")
    order_id: str = ""
    date: Optional[datetime] = None
    customer_info: CustomerRecord = Field(default_factory=CustomerRecord)
    items: List[OrderItem] = Field(default_factory=list)
    total: Money = Decimal("0")
    payment_method: str = ""
    status: str = OrderStatus.PENDING.value

    @field_validator("order_id", mode="before")
    @classmethod
    def _coerce_order_id(cls, value):
        return "" if value is None else str(value)


# Settings

class StoreSettings(BaseModel):
    whatsapp_number: Optional[str] = None
    facebook_url: Optional[str] = None
    instagram_url: Optional[str] = None
    hero_title: str = "Premium Men's Accessories"
    hero_subtitle: str = "Rings, Bracelets & Wallets"
    hero_color: str = "#667eea"

    @field_validator("hero_title", "hero_subtitle", "hero_color", mode="before")
    @classmethod
    def _default_when_blank(cls, value, info):
        if not value:
            return cls.model_fields[info.field_name].default
        return value

    @property
    def whatsapp_link(self) -> Optional[str]:
        if not self.whatsapp_number:
            return None
        digits = "".join(ch for ch in self.whatsapp_number if ch.isdigit())
        return f"https://wa.me/{digits}"
