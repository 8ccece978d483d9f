"""
Tests for bill aggregation.

Covers the grouping rules, the grand total taken from order totals,
cancelled-order exclusion and the empty edge cases.
"""

from decimal import Decimal

import pytest

from ventaveloz.billing import aggregate_orders
from ventaveloz.models import Bill, OrderStatus


class TestAggregateOrders:

    def test_two_orders_same_product(self, scenario_orders):
        """Burger lines from two orders fold into one line."""
        bill = aggregate_orders([scenario_orders["A"], scenario_orders["B"]], table_id="t5")

        assert [line.product_name for line in bill.line_items] == ["Burger", "Fries"]
        burger, fries = bill.line_items
        assert burger.total_quantity == 3
        assert burger.unit_price == Decimal("5.00")
        assert burger.total_subtotal == Decimal("15.00")
        assert fries.total_quantity == 1
        assert fries.unit_price == Decimal("3.00")
        assert fries.total_subtotal == Decimal("3.00")
        assert bill.grand_total == Decimal("18.00")
        assert bill.table_id == "t5"

    def test_cancelled_order_excluded(self, scenario_orders):
        """A cancelled order contributes neither lines nor total."""
        with_cancelled = aggregate_orders(list(scenario_orders.values()), table_id="t5")
        without = aggregate_orders([scenario_orders["A"], scenario_orders["B"]], table_id="t5")

        assert with_cancelled == without
        assert "Soda" not in [line.product_name for line in with_cancelled.line_items]

    def test_idempotent(self, scenario_orders):
        orders = list(scenario_orders.values())
        assert aggregate_orders(orders) == aggregate_orders(orders)

    def test_input_not_mutated(self, scenario_orders):
        orders = list(scenario_orders.values())
        before = [o.model_copy(deep=True) for o in orders]
        aggregate_orders(orders)
        assert orders == before

    def test_empty_input(self):
        bill = aggregate_orders([])
        assert bill.line_items == []
        assert bill.grand_total == 0

    def test_all_cancelled(self, make_order):
        orders = [
            make_order("X", [("Soda", 1, "2.00")], status=OrderStatus.CANCELLED),
            make_order("Y", [("Tea", 2, "1.50")], status=OrderStatus.CANCELLED),
        ]
        bill = aggregate_orders(orders)
        assert bill == Bill(line_items=[], grand_total=Decimal("0"))

    def test_product_names_are_case_sensitive(self, make_order):
        orders = [make_order("X", [("Burger", 1, "5.00"), ("burger", 1, "5.00")])]
        bill = aggregate_orders(orders)
        assert [line.product_name for line in bill.line_items] == ["Burger", "burger"]

    def test_first_unit_price_kept(self, make_order):
        """Price drift between orders is not re-validated; the first one wins."""
        orders = [
            make_order("X", [("Coffee", 1, "2.00")]),
            make_order("Y", [("Coffee", 1, "2.50")]),
        ]
        (coffee,) = aggregate_orders(orders).line_items
        assert coffee.unit_price == Decimal("2.00")
        assert coffee.total_quantity == 2
        assert coffee.total_subtotal == Decimal("4.50")

    def test_grand_total_uses_order_totals(self, make_order):
        """An order whose stored total disagrees with its lines is trusted."""
        orders = [make_order("X", [("Burger", 2, "5.00")], total="12.00")]
        bill = aggregate_orders(orders)

        assert bill.grand_total == Decimal("12.00")
        assert bill.line_items_total == Decimal("10.00")
        assert bill.is_consistent is False

    def test_statuses_other_than_cancelled_are_billed(self, make_order):
        orders = [
            make_order(str(i), [("Water", 1, "1.00")], status=status)
            for i, status in enumerate([
                OrderStatus.PENDING,
                OrderStatus.IN_PREPARATION,
                OrderStatus.SERVED,
                OrderStatus.PAID,
            ])
        ]
        (water,) = aggregate_orders(orders).line_items
        assert water.total_quantity == 4

    @pytest.mark.parametrize("count", [1, 5, 20])
    def test_quantity_sums_across_orders(self, make_order, count):
        orders = [make_order(str(i), [("Taco", i + 1, "1.25")]) for i in range(count)]
        (taco,) = aggregate_orders(orders).line_items
        assert taco.total_quantity == sum(range(1, count + 1))
