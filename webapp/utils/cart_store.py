# webapp/utils/cart_store.py
from dataclasses import dataclass
from typing import Dict, List, Optional

from schemas.vendor import Product


@dataclass
class CartItem:
    product: Product
    quantity: int
    special_instructions: Optional[str] = None

    @property
    def line_total(self) -> float:
        return self.product.price * self.quantity


def clamp_quantity(product: Product, quantity: int) -> int:
    # Keep quantity within [1, max_order_quantity]
    upper = max(1, product.max_order_quantity)
    return max(1, min(int(quantity), upper))


def check_order_quantity(product: Product, quantity: int) -> Optional[str]:
    """Return a user-facing problem with `quantity` for `product`, or None when it can be ordered."""
    if not product.is_available:
        return "This product is currently unavailable"
    if quantity < product.min_order_quantity:
        return f"Minimum order quantity is {product.min_order_quantity}"
    if quantity > product.max_order_quantity:
        return f"Maximum order quantity is {product.max_order_quantity}"
    if quantity > product.stock_quantity:
        return f"Only {product.stock_quantity} items available in stock"
    return None


class CartStore:
    """
    Pending selection of vendor products for one user.

    Held in process memory only; nothing is persisted. Operations never
    raise, quantities are expected to be checked with `check_order_quantity`
    before they reach the store.
    """

    def __init__(self):
        self._items: List[CartItem] = []

    def __len__(self) -> int:
        return len(self._items)

    @property
    def items(self) -> List[CartItem]:
        return list(self._items)

    def get_item(self, product_id: str) -> Optional[CartItem]:
        for item in self._items:
            if item.product.id == product_id:
                return item
        return None

    def add_to_cart(self, product: Product, quantity: int, special_instructions: Optional[str] = None) -> CartItem:
        item = self.get_item(product.id)
        if item:
            # Repeated add replaces the quantity; new instructions win only if given
            item.product = product
            item.quantity = clamp_quantity(product, quantity)
            if special_instructions:
                item.special_instructions = special_instructions
            return item

        item = CartItem(
            product=product,
            quantity=clamp_quantity(product, quantity),
            special_instructions=special_instructions or None,
        )
        self._items.append(item)
        return item

    def remove_from_cart(self, product_id: str) -> None:
        self._items = [item for item in self._items if item.product.id != product_id]

    def update_cart_item(self, product_id: str, quantity: int, special_instructions: Optional[str] = None) -> Optional[CartItem]:
        """
        Replace quantity (clamped) and instructions of an existing line.

        `special_instructions=None` keeps the prior instructions; an empty
        string clears them. Unknown product ids are ignored and give None.
        """
        item = self.get_item(product_id)
        if not item:
            return None
        item.quantity = clamp_quantity(item.product, quantity)
        if special_instructions is not None:
            item.special_instructions = special_instructions or None
        return item

    def clear_cart(self) -> None:
        self._items = []

    def get_cart_total(self) -> float:
        return sum(item.line_total for item in self._items)

    def get_cart_item_count(self) -> int:
        return sum(item.quantity for item in self._items)

    def vendor_ids(self) -> List[str]:
        # Distinct vendors in insertion order
        seen: List[str] = []
        for item in self._items:
            vendor_id = item.product.vendor_id
            if vendor_id and vendor_id not in seen:
                seen.append(vendor_id)
        return seen


class CartRegistry:
    """One CartStore per authenticated user, kept for the life of the process."""

    def __init__(self):
        self._carts: Dict[str, CartStore] = {}

    def get_or_create(self, user_id: str) -> CartStore:
        cart = self._carts.get(user_id)
        if cart is None:
            cart = CartStore()
            self._carts[user_id] = cart
        return cart

    def discard(self, user_id: str) -> None:
        self._carts.pop(user_id, None)


cart_registry = CartRegistry()
