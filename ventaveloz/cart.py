"""Order cart: products picked for a new order before it is sent."""

from decimal import Decimal
from typing import Dict, Iterable, List

from ventaveloz.models import LineItem, Product


class Cart:
    """Quantities per product, in the order products were first added."""

    def __init__(self):
        self._items: Dict[str, Dict] = {}

    def add(self, product: Product, quantity: int = 1) -> None:
        if not product.available:
            raise ValueError(f"Producto no disponible: {product.name}")
        if quantity <= 0:
            raise ValueError("quantity must be positive")
        entry = self._items.get(product.id)
        if entry is None:
            self._items[product.id] = {"product": product, "quantity": quantity}
        else:
            entry["quantity"] += quantity

    def decrement(self, product_id: str) -> None:
        """Take one unit off; drops the line when it reaches zero."""
        entry = self._items.get(product_id)
        if entry is None:
            return
        if entry["quantity"] > 1:
            entry["quantity"] -= 1
        else:
            del self._items[product_id]

    def remove(self, product_id: str) -> None:
        self._items.pop(product_id, None)

    def quantity(self, product_id: str) -> int:
        entry = self._items.get(product_id)
        return entry["quantity"] if entry else 0

    def is_empty(self) -> bool:
        return not self._items

    def line_items(self) -> List[LineItem]:
        return [
            LineItem(
                product_id=entry["product"].id,
                product_name=entry["product"].name,
                quantity=entry["quantity"],
                unit_price=entry["product"].price,
                subtotal=entry["product"].price * entry["quantity"],
            )
            for entry in self._items.values()
        ]

    @property
    def total(self) -> Decimal:
        return sum((item.subtotal for item in self.line_items()), Decimal("0"))


def search_products(products: Iterable[Product], query: str) -> List[Product]:
    """Case-insensitive match on name or category; empty query matches all."""
    needle = (query or "").strip().lower()
    if not needle:
        return list(products)
    return [p for p in products if needle in p.name.lower() or needle in p.category.lower()]
