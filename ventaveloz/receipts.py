"""
Ticket (receipt) generation for a table's bill.

build_ticket() returns the ticket as a JSON-friendly dict; render_ticket()
lays it out as fixed-width plain text for a receipt printer or terminal.
"""

from datetime import datetime
from decimal import Decimal
from typing import Dict, Any, Optional

from ventaveloz.models import Bill, Table
from ventaveloz.utils.time_utils import now_local

RESTAURANT_NAME = "VentaVeloz"
RESTAURANT_SUBTITLE = "Sistema de Restaurante"
TAX_RATE = Decimal("0")


def _fmt(amount) -> str:
    return f"${Decimal(amount):.2f}"


def build_ticket(
    bill: Bill,
    table: Optional[Table] = None,
    server_name: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Generate ticket content from a bill.

    Returns a dictionary with:
    - restaurant, subtitle: header lines
    - table_number, date, time, server
    - items: list of {name, qty, unit_price, line_total}
    - subtotal, tax_rate, tax, total (total is the bill's grand total)
    """
    now = now or now_local()
    if server_name is None and table is not None:
        server_name = table.assigned_server_name
    subtotal = bill.grand_total
    tax = (subtotal * TAX_RATE).quantize(Decimal("0.01"))

    return {
        "restaurant": RESTAURANT_NAME,
        "subtitle": RESTAURANT_SUBTITLE,
        "table_number": table.number if table is not None else None,
        "date": now.strftime("%d/%m/%Y"),
        "time": now.strftime("%H:%M"),
        "server": server_name,
        "items": [
            {
                "name": line.product_name,
                "qty": line.total_quantity,
                "unit_price": line.unit_price,
                "line_total": line.total_subtotal,
            }
            for line in bill.line_items
        ],
        "subtotal": subtotal,
        "tax_rate": TAX_RATE,
        "tax": tax,
        "total": subtotal + tax,
    }


def render_ticket(ticket: Dict[str, Any], width: int = 40) -> str:
    """Render a ticket dict as plain text, width characters per line."""
    rule = "-" * width
    lines = [
        ticket["restaurant"].center(width).rstrip(),
        ticket["subtitle"].center(width).rstrip(),
        rule,
    ]

    def pair(label: str, value: str) -> str:
        return f"{label}{value.rjust(width - len(label))}"

    if ticket.get("table_number") is not None:
        lines.append(pair("Mesa:", f"#{ticket['table_number']}"))
    lines.append(pair("Fecha:", ticket["date"]))
    lines.append(pair("Hora:", ticket["time"]))
    if ticket.get("server"):
        lines.append(pair("Mesero:", ticket["server"]))
    lines.append(rule)

    # Cant. | Descripción | Precio | Total
    desc_width = max(width - 5 - 10 - 10, 8)
    lines.append(f"{'Cant.':<5}{'Descripción':<{desc_width}}{'Precio':>10}{'Total':>10}")
    for item in ticket["items"]:
        name = item["name"]
        if len(name) > desc_width - 1:
            name = name[: desc_width - 2] + "…"
        lines.append(
            f"{str(item['qty']):<5}{name:<{desc_width}}"
            f"{_fmt(item['unit_price']):>10}{_fmt(item['line_total']):>10}"
        )
    lines.append(rule)

    tax_pct = (Decimal(ticket["tax_rate"]) * 100).normalize()
    lines.append(pair("Subtotal:", _fmt(ticket["subtotal"])))
    lines.append(pair(f"IVA ({tax_pct:f}%):", _fmt(ticket["tax"])))
    lines.append(rule)
    lines.append(pair("TOTAL:", _fmt(ticket["total"])))
    lines.append(rule)
    lines.append("¡Gracias por su visita!".center(width).rstrip())
    lines.append("Vuelva pronto".center(width).rstrip())
    return "\n".join(lines) + "\n"
