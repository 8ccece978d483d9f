"""
Table-closing workflow.

    IDLE -> LOADING -> READY -> CONFIRMING_PAYMENT -> PROCESSING -> COMPLETED
    (LOADING | PROCESSING) -> FAILED

Processing runs four sequential steps with no rollback: aggregate the bill,
record the sale, delete the table's orders, release the table. A failure
after the sale is recorded leaves a BillingCheckpoint that resume_cleanup()
can finish without charging twice.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional, Tuple
from uuid import uuid4

from ventaveloz.billing.aggregator import aggregate_orders
from ventaveloz.errors import (
    BillingError,
    FetchError,
    InvalidTransitionError,
    NotFoundError,
    OrderCleanupError,
    SaleSubmissionError,
    TableConflictError,
    TableReleaseError,
    ValidationError,
)
from ventaveloz.models import Bill, Order, PaymentMethod, Sale, Table, TableStatus, parse_payment_method
from ventaveloz.storage.base import SalesLedger, TableOrderStore
from ventaveloz.utils.time_utils import now_utc

logger = logging.getLogger(__name__)


class BillingState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    CONFIRMING_PAYMENT = "confirming_payment"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATES = (BillingState.COMPLETED, BillingState.FAILED)

RELEASED_TABLE_FIELDS = {"status": TableStatus.AVAILABLE, "assigned_server_id": None}


@dataclass
class BillingCheckpoint:
    """Progress of the write steps of one billing attempt."""

    table_id: str
    sale: Optional[Sale] = None
    deleted_order_ids: List[str] = field(default_factory=list)
    pending_order_ids: List[str] = field(default_factory=list)
    table_released: bool = False

    @property
    def sale_recorded(self) -> bool:
        return self.sale is not None


@dataclass(frozen=True)
class BillingResult:
    sale: Sale
    table: Table
    bill: Bill


class BillingWorkflow:
    """
    Close out one table: one instance per billing attempt.

    The store and the ledger are usually the same object (RestStore or
    InMemoryStore). server_id is the staff member closing the table; when
    omitted the table's assigned server is recorded on the sale.
    """

    def __init__(
        self,
        table_id: str,
        store: TableOrderStore,
        ledger: Optional[SalesLedger] = None,
        server_id: Optional[str] = None,
        verify_table_state: bool = False,
        clock: Callable[[], datetime] = now_utc,
    ):
        if ledger is None:
            if not isinstance(store, SalesLedger):
                raise TypeError("ledger is required when store is not a SalesLedger")
            ledger = store
        self.table_id = table_id
        self.store = store
        self.ledger = ledger
        self.server_id = server_id
        self.verify_table_state = verify_table_state
        self.clock = clock
        self.idempotency_key = uuid4().hex

        self.table: Optional[Table] = None
        self.orders: List[Order] = []
        self.bill: Optional[Bill] = None
        self.payment_method: Optional[PaymentMethod] = None
        self.checkpoint: Optional[BillingCheckpoint] = None
        self.error: Optional[BillingError] = None
        self._state = BillingState.IDLE
        self._failed_in: Optional[BillingState] = None

    @property
    def state(self) -> BillingState:
        return self._state

    @property
    def can_close(self) -> bool:
        """True when the close action should be offered."""
        return self._state == BillingState.READY and len(self.orders) > 0

    def _enter(self, state: BillingState) -> None:
        logger.info(f"[billing] table {self.table_id}: {self._state.value} -> {state.value}")
        self._state = state

    def _require(self, *allowed: BillingState) -> None:
        if self._state not in allowed:
            names = ", ".join(s.value for s in allowed)
            raise InvalidTransitionError(
                f"Operation not allowed in state '{self._state.value}' (expected: {names})",
                state=self._state,
            )

    def _fail(self, error: BillingError) -> BillingError:
        logger.error(f"[billing] table {self.table_id}: {error}")
        self._failed_in = self._state
        self.error = error
        self._enter(BillingState.FAILED)
        return error

    # ---------- transitions ----------

    async def load(self) -> Tuple[Table, List[Order]]:
        """Fetch the table and its orders (IDLE/READY -> LOADING -> READY)."""
        if not (self._state == BillingState.FAILED and self._failed_in == BillingState.LOADING):
            self._require(BillingState.IDLE, BillingState.READY)
        self.error = None
        self._enter(BillingState.LOADING)

        try:
            table = await self.store.fetch_table(self.table_id)
            orders = await self.store.fetch_orders_for_table(self.table_id)
        except Exception as e:
            raise self._fail(FetchError(str(e) or type(e).__name__, state=self._state, cause=e)) from e

        self.table = table
        self.orders = [o for o in orders if o.table_id == self.table_id]
        self.bill = None
        logger.info(f"[billing] table {self.table_id}: loaded {len(self.orders)} orders")
        self._enter(BillingState.READY)
        return table, self.orders

    def preview(self) -> Bill:
        """Bill for the currently loaded orders, without side effects."""
        if self._state not in (BillingState.READY, BillingState.CONFIRMING_PAYMENT):
            raise InvalidTransitionError(
                f"Nothing loaded to preview in state '{self._state.value}'", state=self._state
            )
        return aggregate_orders(self.orders, table_id=self.table_id)

    def request_close(self) -> Bill:
        """READY -> CONFIRMING_PAYMENT. Refuses an empty order set."""
        self._require(BillingState.READY)
        if not self.orders:
            raise ValidationError("La mesa no tiene órdenes para cobrar", state=self._state)
        self._enter(BillingState.CONFIRMING_PAYMENT)
        return self.preview()

    def cancel(self) -> None:
        """Back out of the payment dialog (CONFIRMING_PAYMENT -> READY)."""
        self._require(BillingState.CONFIRMING_PAYMENT)
        self._enter(BillingState.READY)

    async def confirm_payment(self, method) -> BillingResult:
        """CONFIRMING_PAYMENT -> PROCESSING -> COMPLETED | FAILED."""
        self._require(BillingState.CONFIRMING_PAYMENT)
        try:
            payment_method = parse_payment_method(method)
        except ValueError as e:
            raise ValidationError(f"Método de pago no válido: {method!r}", state=self._state, cause=e)

        self.payment_method = payment_method
        self._enter(BillingState.PROCESSING)
        return await self._process(payment_method)

    async def run(self, method) -> BillingResult:
        """load(), request_close() and confirm_payment() in one call."""
        await self.load()
        self.request_close()
        return await self.confirm_payment(method)

    # ---------- processing ----------

    def _sale_server_id(self) -> Optional[str]:
        if self.server_id:
            return self.server_id
        if self.table is not None and self.table.assigned_server_id:
            return self.table.assigned_server_id
        for order in self.orders:
            if order.server_id:
                return order.server_id
        return None

    async def _check_table_unchanged(self) -> None:
        try:
            current = await self.store.fetch_table(self.table_id)
        except Exception as e:
            raise self._fail(FetchError(str(e) or type(e).__name__, state=self._state, cause=e)) from e
        if (current.status, current.assigned_server_id) != (
            self.table.status,
            self.table.assigned_server_id,
        ):
            raise self._fail(
                TableConflictError(
                    f"La mesa cambió de estado ({self.table.status.value} -> {current.status.value})",
                    state=self._state,
                )
            )

    async def _process(self, payment_method: PaymentMethod) -> BillingResult:
        bill = aggregate_orders(self.orders, table_id=self.table_id)
        self.bill = bill
        if not bill.is_consistent:
            logger.warning(
                f"[billing] table {self.table_id}: order totals ({bill.grand_total}) "
                f"differ from line subtotals ({bill.line_items_total})"
            )

        if self.verify_table_state:
            await self._check_table_unchanged()

        sale = Sale(
            table_id=self.table_id,
            server_id=self._sale_server_id(),
            line_items=bill.line_items,
            total=bill.grand_total,
            payment_method=payment_method,
            timestamp=self.clock(),
        )
        try:
            recorded = await self.ledger.create_sale(sale, idempotency_key=self.idempotency_key)
        except Exception as e:
            raise self._fail(
                SaleSubmissionError(str(e) or type(e).__name__, state=self._state, cause=e)
            ) from e
        logger.info(f"[billing] table {self.table_id}: sale {recorded.id} recorded ({recorded.total})")

        self.checkpoint = BillingCheckpoint(
            table_id=self.table_id,
            sale=recorded,
            pending_order_ids=[o.id for o in self.orders],
        )
        try:
            table = await _finish_cleanup(self.store, self.checkpoint, self._state)
        except BillingError as e:
            raise self._fail(e) from e.cause

        self._enter(BillingState.COMPLETED)
        return BillingResult(sale=recorded, table=table, bill=bill)


async def _delete_pending(store: TableOrderStore, checkpoint: BillingCheckpoint) -> List[Tuple[str, Exception]]:
    """Try every pending deletion; return the ones that failed."""
    failures = []
    still_pending = []
    for order_id in checkpoint.pending_order_ids:
        try:
            await store.delete_order(order_id)
        except NotFoundError:
            # Already gone counts as deleted
            pass
        except Exception as e:
            logger.warning(f"[billing] could not delete order {order_id}: {e}")
            failures.append((order_id, e))
            still_pending.append(order_id)
            continue
        checkpoint.deleted_order_ids.append(order_id)
    checkpoint.pending_order_ids = still_pending
    return failures


async def _finish_cleanup(store: TableOrderStore, checkpoint: BillingCheckpoint, state) -> Table:
    failures = await _delete_pending(store, checkpoint)
    if failures:
        failed_ids = [order_id for order_id, _ in failures]
        raise OrderCleanupError(
            f"{len(failed_ids)} orden(es) no se pudieron eliminar: {', '.join(failed_ids)}",
            state=state,
            cause=failures[0][1],
            sale=checkpoint.sale,
            deleted_order_ids=checkpoint.deleted_order_ids,
            failed_order_ids=failed_ids,
            checkpoint=checkpoint,
        )

    try:
        table = await store.update_table(checkpoint.table_id, dict(RELEASED_TABLE_FIELDS))
    except Exception as e:
        raise TableReleaseError(
            f"No se pudo liberar la mesa: {e}",
            state=state,
            cause=e,
            sale=checkpoint.sale,
            checkpoint=checkpoint,
        ) from e
    checkpoint.table_released = True
    return table


async def resume_cleanup(store: TableOrderStore, checkpoint: BillingCheckpoint) -> Table:
    """
    Finish a billing attempt whose sale is already recorded.

    Deletes the orders still pending and releases the table. Never touches
    the sales ledger. Raises OrderCleanupError or TableReleaseError again if
    the backend still refuses; the checkpoint is updated in place either way.
    """
    if not checkpoint.sale_recorded:
        raise ValidationError("No hay venta registrada; ejecute el cobro completo")
    if checkpoint.table_released:
        return await store.fetch_table(checkpoint.table_id)
    logger.info(
        f"[billing] table {checkpoint.table_id}: resuming cleanup, "
        f"{len(checkpoint.pending_order_ids)} orders pending"
    )
    return await _finish_cleanup(store, checkpoint, BillingState.PROCESSING)


async def checkpoint_from_sale(store: TableOrderStore, sale: Sale) -> BillingCheckpoint:
    """
    Rebuild the checkpoint of an interrupted close from its recorded sale.

    Every order still on the sale's table is marked pending, so only use
    this right after the close failed, before new orders are taken.
    """
    if sale.id is None:
        raise ValidationError("La venta no tiene identificador; no está registrada")
    orders = await store.fetch_orders_for_table(sale.table_id)
    return BillingCheckpoint(
        table_id=sale.table_id,
        sale=sale,
        pending_order_ids=[o.id for o in orders if o.table_id == sale.table_id],
    )
