from decimal import Decimal

import pytest

from ventaveloz.cart import Cart, search_products
from ventaveloz.models import Product

BURGER = Product(id="p1", name="Burger", category="Comida", price=Decimal("5.00"))
SODA = Product(id="p2", name="Soda", category="Bebidas", price=Decimal("2.00"))
SOLD_OUT = Product(id="p3", name="Pozole", category="Comida", price=Decimal("8.00"), available=False)


def test_add_accumulates_quantity():
    cart = Cart()
    cart.add(BURGER)
    cart.add(BURGER, 2)
    cart.add(SODA)

    assert cart.quantity("p1") == 3
    items = cart.line_items()
    assert [(i.product_name, i.quantity, i.subtotal) for i in items] == [
        ("Burger", 3, Decimal("15.00")),
        ("Soda", 1, Decimal("2.00")),
    ]
    assert items[0].product_id == "p1"
    assert cart.total == Decimal("17.00")


def test_decrement_and_remove():
    cart = Cart()
    cart.add(BURGER, 2)
    cart.add(SODA)

    cart.decrement("p1")
    assert cart.quantity("p1") == 1
    cart.decrement("p1")
    assert cart.quantity("p1") == 0
    cart.remove("p2")
    assert cart.is_empty()
    cart.decrement("missing")


def test_unavailable_product_rejected():
    with pytest.raises(ValueError, match="no disponible"):
        Cart().add(SOLD_OUT)


def test_non_positive_quantity_rejected():
    with pytest.raises(ValueError):
        Cart().add(BURGER, 0)


@pytest.mark.parametrize("query,expected", [
    ("", ["Burger", "Soda", "Pozole"]),
    ("bur", ["Burger"]),
    ("COMIDA", ["Burger", "Pozole"]),
    ("  soda ", ["Soda"]),
    ("pizza", []),
])
def test_search_products(query, expected):
    assert [p.name for p in search_products([BURGER, SODA, SOLD_OUT], query)] == expected
