"""Tests for ticket building and plain-text rendering."""

from datetime import datetime
from decimal import Decimal

from ventaveloz.billing import aggregate_orders
from ventaveloz.models import Bill, Table, TableStatus
from ventaveloz.receipts import build_ticket, render_ticket

EVENING = datetime(2026, 3, 14, 15, 30)


def _table():
    return Table(id="t5", number=5, capacity=4, status=TableStatus.OCCUPIED,
                 assigned_server_id="w1", assigned_server_name="Lucía")


def test_build_ticket_from_bill(scenario_orders):
    bill = aggregate_orders(list(scenario_orders.values()), table_id="t5")
    ticket = build_ticket(bill, _table(), now=EVENING)

    assert ticket["restaurant"] == "VentaVeloz"
    assert ticket["table_number"] == 5
    assert ticket["date"] == "14/03/2026"
    assert ticket["time"] == "15:30"
    assert ticket["server"] == "Lucía"
    assert [(i["name"], i["qty"]) for i in ticket["items"]] == [("Burger", 3), ("Fries", 1)]
    assert ticket["subtotal"] == Decimal("18.00")
    assert ticket["tax"] == Decimal("0.00")
    assert ticket["total"] == Decimal("18.00")


def test_explicit_server_name_wins():
    ticket = build_ticket(Bill(), _table(), server_name="Marco", now=EVENING)
    assert ticket["server"] == "Marco"


def test_render_layout(scenario_orders):
    bill = aggregate_orders(list(scenario_orders.values()), table_id="t5")
    text = render_ticket(build_ticket(bill, _table(), now=EVENING))
    lines = text.splitlines()

    assert lines[0].strip() == "VentaVeloz"
    assert lines[1].strip() == "Sistema de Restaurante"
    assert all(len(line) <= 40 for line in lines)
    assert any(line.startswith("Mesa:") and line.endswith("#5") for line in lines)
    assert any(line.startswith("Cant.") for line in lines)
    burger = next(line for line in lines if "Burger" in line)
    assert burger.startswith("3")
    assert burger.endswith("$15.00")
    assert any(line.startswith("IVA (0%):") for line in lines)
    assert any(line.startswith("TOTAL:") and line.endswith("$18.00") for line in lines)
    assert lines[-1].strip() == "Vuelva pronto"


def test_render_without_table_or_server():
    text = render_ticket(build_ticket(Bill(), now=EVENING))
    assert "Mesa:" not in text
    assert "Mesero:" not in text
    assert "TOTAL:" in text


def test_long_product_name_truncated(make_order):
    bill = aggregate_orders([make_order("X", [("Enchiladas suizas con extra de queso", 1, "9.50")])])
    text = render_ticket(build_ticket(bill, now=EVENING), width=40)
    line = next(line for line in text.splitlines() if line.startswith("1"))
    assert len(line) <= 40
    assert "…" in line
