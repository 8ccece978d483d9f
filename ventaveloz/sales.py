"""Sales statistics over a list of recorded sales."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Iterable, List, Optional

from ventaveloz.models import Sale
from ventaveloz.utils.time_utils import local_tz, now_local, to_local


class SalesPeriod(str, Enum):
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"
    ALL = "all"


@dataclass(frozen=True)
class SalesSummary:
    period: SalesPeriod
    sales: List[Sale]
    total: Decimal
    count: int
    average: Decimal


def filter_sales(sales: Iterable[Sale], period: SalesPeriod, now: Optional[datetime] = None) -> List[Sale]:
    """
    Keep the sales that fall in period, judged in the restaurant timezone.

    today: same calendar day; week: the last 7 days; month: same calendar
    month; all: everything.
    """
    period = SalesPeriod(period)
    now = now or now_local()
    if now.tzinfo is None:
        now = now.replace(tzinfo=local_tz())
    sales = list(sales)
    if period == SalesPeriod.ALL:
        return sales

    selected = []
    for sale in sales:
        when = to_local(sale.timestamp, now.tzinfo)
        if period == SalesPeriod.TODAY:
            keep = when.date() == now.date()
        elif period == SalesPeriod.WEEK:
            keep = when >= now - timedelta(days=7)
        else:
            keep = (when.year, when.month) == (now.year, now.month)
        if keep:
            selected.append(sale)
    return selected


def summarize_sales(sales: Iterable[Sale], period: SalesPeriod = SalesPeriod.TODAY,
                    now: Optional[datetime] = None) -> SalesSummary:
    selected = filter_sales(sales, period, now)
    total = sum((s.total for s in selected), Decimal("0"))
    count = len(selected)
    average = (total / count).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP) if count else Decimal("0")
    return SalesSummary(period=SalesPeriod(period), sales=selected, total=total, count=count, average=average)
