"""Fold a table's orders into a single bill."""

from decimal import Decimal
from typing import Dict, Iterable, Optional

from ventaveloz.models import Bill, BillLine, Order


def aggregate_orders(orders: Iterable[Order], table_id: Optional[str] = None) -> Bill:
    """
    Aggregate the non-cancelled orders of one table into a Bill.

    - Cancelled orders are skipped entirely.
    - Line items are grouped by exact product name, in first-seen order.
      Quantities and subtotals are summed; the unit price of the first
      occurrence is kept.
    - grand_total is the sum of the retained orders' stored totals, not the
      sum of the aggregated subtotals. The two can disagree when an order's
      total was stored inconsistently; see Bill.is_consistent.

    Pure: the input orders are not modified.
    """
    grouped: Dict[str, Dict] = {}
    grand_total = Decimal("0")

    for order in orders:
        if order.is_cancelled:
            continue
        grand_total += order.total
        for item in order.line_items:
            entry = grouped.get(item.product_name)
            if entry is None:
                grouped[item.product_name] = {
                    "product_name": item.product_name,
                    "total_quantity": item.quantity,
                    "unit_price": item.unit_price,
                    "total_subtotal": item.subtotal,
                }
            else:
                entry["total_quantity"] += item.quantity
                entry["total_subtotal"] += item.subtotal

    return Bill(
        table_id=table_id,
        line_items=[BillLine(**entry) for entry in grouped.values()],
        grand_total=grand_total,
    )
