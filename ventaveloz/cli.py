"""
Command-line front end for VentaVeloz.

Usage:
    ventaveloz login EMAIL [--password PASSWORD]
    ventaveloz tables
    ventaveloz ticket TABLE_ID
    ventaveloz close TABLE_ID --payment {cash,card,transfer} [--verify-table-state]
    ventaveloz cleanup TABLE_ID --sale-id SALE_ID
    ventaveloz sales [--period {today,week,month,all}]

The bearer token is taken from --token or VENTAVELOZ_TOKEN.
"""

import argparse
import asyncio
import getpass
import logging
import sys
from typing import List, Optional

from ventaveloz.auth import Credentials
from ventaveloz.billing import BillingWorkflow, checkpoint_from_sale, resume_cleanup
from ventaveloz.client import ApiClient
from ventaveloz.config import get_settings
from ventaveloz.errors import ApiError, BillingError, ValidationError
from ventaveloz.models import PaymentMethod
from ventaveloz.receipts import build_ticket, render_ticket
from ventaveloz.sales import SalesPeriod, summarize_sales
from ventaveloz.storage import RestStore

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ventaveloz", description="VentaVeloz POS client")
    parser.add_argument("--api-url", default=None, help="Backend base URL (default: VENTAVELOZ_API_URL)")
    parser.add_argument("--token", default=None, help="Bearer token (default: VENTAVELOZ_TOKEN)")
    sub = parser.add_subparsers(dest="command", required=True)

    login = sub.add_parser("login", help="Log in and print a token")
    login.add_argument("email")
    login.add_argument("--password", default=None)

    sub.add_parser("tables", help="List tables")

    ticket = sub.add_parser("ticket", help="Print the current bill of a table")
    ticket.add_argument("table_id")

    close = sub.add_parser("close", help="Charge a table, record the sale and release it")
    close.add_argument("table_id")
    close.add_argument("--payment", required=True, choices=[m.value for m in PaymentMethod])
    close.add_argument("--server-id", default=None, help="Staff member closing the table")
    close.add_argument(
        "--verify-table-state",
        action="store_true",
        help="Abort if the table changed since it was loaded",
    )

    cleanup = sub.add_parser(
        "cleanup", help="Finish a close whose sale was recorded but whose cleanup failed"
    )
    cleanup.add_argument("table_id")
    cleanup.add_argument("--sale-id", required=True, help="Sale recorded by the failed close")

    sales = sub.add_parser("sales", help="Sales summary")
    sales.add_argument("--period", default=SalesPeriod.TODAY.value, choices=[p.value for p in SalesPeriod])
    return parser


async def _login(api: ApiClient, args) -> int:
    password = args.password or getpass.getpass("Contraseña: ")
    credentials = await api.login(args.email, password)
    name = credentials.user.name if credentials.user else args.email
    logger.info(f"Logged in as {name}")
    print(credentials.token)
    return 0


async def _tables(api: ApiClient, args) -> int:
    for table in await api.list_tables():
        server = f"  ({table.assigned_server_name or table.assigned_server_id})" if table.assigned_server_id else ""
        print(f"{table.id}  Mesa {table.number:<3} {table.capacity:>2} pers.  {table.location:<10} {table.status.value}{server}")
    return 0


async def _ticket(api: ApiClient, args) -> int:
    workflow = BillingWorkflow(args.table_id, RestStore(api))
    table, orders = await workflow.load()
    print(render_ticket(build_ticket(workflow.preview(), table)), end="")
    if not workflow.can_close:
        print("(sin órdenes)")
    return 0


async def _close(api: ApiClient, args) -> int:
    settings = get_settings()
    workflow = BillingWorkflow(
        args.table_id,
        RestStore(api),
        server_id=args.server_id or (api.credentials.user.id if api.credentials and api.credentials.user else None),
        verify_table_state=args.verify_table_state or settings.verify_table_state,
    )
    result = await workflow.run(args.payment)
    print(render_ticket(build_ticket(result.bill, workflow.table)), end="")
    print(f"Venta {result.sale.id} registrada; mesa #{result.table.number} liberada")
    return 0


async def _cleanup(api: ApiClient, args) -> int:
    sale = await api.get_sale(args.sale_id)
    if sale.table_id != args.table_id:
        raise ValidationError(f"La venta {sale.id} no corresponde a la mesa {args.table_id}")
    store = RestStore(api)
    checkpoint = await checkpoint_from_sale(store, sale)
    table = await resume_cleanup(store, checkpoint)
    print(f"Limpieza completada: {len(checkpoint.deleted_order_ids)} orden(es) eliminadas; mesa #{table.number} liberada")
    return 0


async def _sales(api: ApiClient, args) -> int:
    summary = summarize_sales(await api.list_sales(), SalesPeriod(args.period))
    for sale in summary.sales:
        print(f"{sale.timestamp:%d/%m/%Y %H:%M}  {sale.table_id}  {sale.payment_method.value:<8} ${sale.total:.2f}")
    print(f"Ventas: {summary.count}  Total: ${summary.total:.2f}  Promedio: ${summary.average:.2f}")
    return 0


COMMANDS = {
    "login": _login,
    "tables": _tables,
    "ticket": _ticket,
    "close": _close,
    "cleanup": _cleanup,
    "sales": _sales,
}


async def run(args) -> int:
    settings = get_settings()
    token = args.token or settings.token
    credentials = Credentials(token=token) if token else None
    async with ApiClient(base_url=args.api_url, credentials=credentials) as api:
        return await COMMANDS[args.command](api, args)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, get_settings().log_level, logging.INFO),
        format="%(asctime)s - %(levelname)s - %(message)s",
    )
    try:
        return asyncio.run(run(args))
    except BillingError as e:
        logger.error(f"Billing failed: {e}")
        print(e.user_message, file=sys.stderr)
        checkpoint = getattr(e, "checkpoint", None)
        if e.sale_recorded and checkpoint is not None and checkpoint.sale is not None:
            print(
                f"Reintente con: ventaveloz cleanup {checkpoint.table_id} --sale-id {checkpoint.sale.id}",
                file=sys.stderr,
            )
        return 1
    except ApiError as e:
        logger.error(f"Request failed: {e}")
        print(str(e), file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
