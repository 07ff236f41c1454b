"""Errors raised by the storefront core. None of them is fatal and none is retried."""


class StorefrontError(Exception):
    """Base class for recoverable storefront errors."""


class OutOfStock(StorefrontError):
    def __init__(self, product_id: str, requested: int, available: int):
        self.product_id = product_id
        self.requested = requested
        self.available = available
        if available == 0:
            message = f"Product {product_id} is out of stock"
        else:
            message = f"Only {available} units available"
        super().__init__(message)


class VariantRequired(StorefrontError):
    def __init__(self, product_id: str, variant: str):
        self.product_id = product_id
        self.variant = variant
        super().__init__(f"Please select a {variant}")


class InvalidQuantity(StorefrontError):
    def __init__(self, quantity):
        self.quantity = quantity
        super().__init__(f"Quantity must be a positive integer, got {quantity!r}")


class IndexOutOfRange(StorefrontError):
    def __init__(self, index: int, size: int):
        self.index = index
        self.size = size
        super().__init__(f"No cart item at position {index} (cart has {size})")


class NotFound(StorefrontError):
    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product {product_id} not found")


class LoadFailed(StorefrontError):
    def __init__(self, resource: str, reason: str = ""):
        self.resource = resource
        self.reason = reason
        super().__init__(f"Failed to load {resource}" + (f": {reason}" if reason else ""))


class CartEmpty(StorefrontError):
    def __init__(self):
        super().__init__("Your cart is empty")


class InvalidCustomerInfo(StorefrontError):
    def __init__(self, fields):
        self.fields = list(fields)
        super().__init__("Missing or invalid customer details: " + ", ".join(self.fields))


class OrderSubmissionFailed(StorefrontError):
    def __init__(self, reason: str = ""):
        self.reason = reason
        super().__init__("Failed to place order" + (f": {reason}" if reason else ""))


class NotAuthenticated(StorefrontError):
    def __init__(self):
        super().__init__("Admin login required")


class AdminActionFailed(StorefrontError):
    def __init__(self, action: str, reason: str = ""):
        self.action = action
        self.reason = reason
        super().__init__(f"Failed to {action}" + (f": {reason}" if reason else ""))
