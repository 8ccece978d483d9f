"""Tests for the ventaveloz command line."""

import asyncio
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from httpx import ASGITransport

from ventaveloz import cli
from ventaveloz.billing import BillingCheckpoint, BillingWorkflow
from ventaveloz.client import ApiClient
from ventaveloz.errors import NotFoundError, OrderCleanupError, SaleSubmissionError, TransportError
from ventaveloz.models import PaymentMethod, Sale, Table, TableStatus
from ventaveloz.stub_api import create_access_token


def test_parser_close_command():
    args = cli.build_parser().parse_args(
        ["--api-url", "http://localhost:4000/api", "close", "t5", "--payment", "card", "--verify-table-state"]
    )
    assert args.command == "close"
    assert args.table_id == "t5"
    assert args.payment == "card"
    assert args.verify_table_state is True
    assert args.api_url == "http://localhost:4000/api"


def test_parser_rejects_unknown_payment():
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args(["close", "t5", "--payment", "tarjeta"])


def test_parser_sales_default_period():
    args = cli.build_parser().parse_args(["sales"])
    assert args.period == "today"


def test_main_reports_failed_sale(monkeypatch, capsys):
    async def fake_run(args):
        raise SaleSubmissionError("Error al crear venta")

    monkeypatch.setattr(cli, "run", fake_run)
    assert cli.main(["close", "t5", "--payment", "cash"]) == 1
    err = capsys.readouterr().err
    assert "No se pudo registrar la venta" in err


def test_main_reports_partial_close(monkeypatch, capsys):
    """When the sale went through, the message must warn against charging again."""
    async def fake_run(args):
        raise OrderCleanupError("1 orden sin eliminar", sale=None, failed_order_ids=["o2"])

    monkeypatch.setattr(cli, "run", fake_run)
    assert cli.main(["close", "t5", "--payment", "cash"]) == 1
    assert "No vuelva a cobrar" in capsys.readouterr().err


def test_main_reports_api_error(monkeypatch, capsys):
    async def fake_run(args):
        raise NotFoundError("Mesa no encontrada", 404)

    monkeypatch.setattr(cli, "run", fake_run)
    assert cli.main(["ticket", "t404"]) == 1
    assert "Mesa no encontrada" in capsys.readouterr().err


def test_main_success(monkeypatch):
    seen = {}

    async def fake_run(args):
        seen["command"] = args.command
        return 0

    monkeypatch.setattr(cli, "run", fake_run)
    assert cli.main(["tables"]) == 0
    assert seen["command"] == "tables"


def test_parser_cleanup_requires_sale_id():
    args = cli.build_parser().parse_args(["cleanup", "t5", "--sale-id", "s1"])
    assert (args.command, args.table_id, args.sale_id) == ("cleanup", "t5", "s1")
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args(["cleanup", "t5"])


def test_main_prints_cleanup_command_after_partial_close(monkeypatch, capsys):
    sale = Sale(id="s1", table_id="t5", total=Decimal("18.00"), payment_method=PaymentMethod.CASH,
                timestamp=datetime(2026, 3, 14, 21, 30, tzinfo=timezone.utc))
    checkpoint = BillingCheckpoint(table_id="t5", sale=sale, pending_order_ids=["B"])

    async def fake_run(args):
        raise OrderCleanupError("1 orden sin eliminar", sale=sale, failed_order_ids=["B"],
                                checkpoint=checkpoint)

    monkeypatch.setattr(cli, "run", fake_run)
    assert cli.main(["close", "t5", "--payment", "cash"]) == 1
    assert "ventaveloz cleanup t5 --sale-id s1" in capsys.readouterr().err


class TestCleanupCommand:

    @pytest.fixture
    def backend(self, stub_app, scenario_orders, monkeypatch):
        """Stub backend holding table t5 with orders A, B, C; the CLI talks to it in-process."""
        store = stub_app.state.store
        waiter = next(u for u in store.users.values() if u.email == "lucia@ventaveloz.test")
        store.add_table(Table(id="t5", number=5, capacity=4, status=TableStatus.OCCUPIED,
                              assigned_server_id=waiter.id))
        for order in scenario_orders.values():
            store.add_order(order)

        def client_factory(base_url=None, credentials=None):
            return ApiClient(base_url="http://test/api", credentials=credentials,
                             transport=ASGITransport(app=stub_app))

        monkeypatch.setattr(cli, "ApiClient", client_factory)
        return store, create_access_token(waiter.id)

    def _close_with_failed_delete(self, store, monkeypatch):
        real_delete = store.delete_order

        async def flaky_delete(order_id):
            if order_id == "B":
                raise TransportError("Error al eliminar orden")
            await real_delete(order_id)

        monkeypatch.setattr(store, "delete_order", flaky_delete)
        with pytest.raises(OrderCleanupError) as exc_info:
            asyncio.run(BillingWorkflow("t5", store).run("cash"))
        monkeypatch.setattr(store, "delete_order", real_delete)
        return exc_info.value.sale

    def test_retry_finishes_without_second_sale(self, backend, monkeypatch, capsys):
        store, token = backend
        sale = self._close_with_failed_delete(store, monkeypatch)
        assert list(store.orders) == ["B"]
        assert store.tables["t5"].status == TableStatus.OCCUPIED

        assert cli.main(["--token", token, "cleanup", "t5", "--sale-id", sale.id]) == 0

        assert list(store.sales) == [sale.id]
        assert store.orders == {}
        assert store.tables["t5"].status == TableStatus.AVAILABLE
        assert "mesa #5 liberada" in capsys.readouterr().out

    def test_sale_from_another_table_rejected(self, backend, monkeypatch, capsys):
        store, token = backend
        sale = self._close_with_failed_delete(store, monkeypatch)

        assert cli.main(["--token", token, "cleanup", "t9", "--sale-id", sale.id]) == 1

        assert "no corresponde a la mesa t9" in capsys.readouterr().err
        assert list(store.orders) == ["B"]
        assert len(store.sales) == 1
