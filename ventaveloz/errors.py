"""
Error types for VentaVeloz.

Two families:
- ApiError and subclasses are raised by the backend collaborators
  (REST client, stores) and carry the backend's own message.
- BillingError and subclasses are raised by the billing workflow and carry
  the workflow state in which the failure happened.
"""

from enum import Enum
from typing import List, Optional, Any


class ApiError(Exception):
    """A backend call failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    def __str__(self) -> str:
        return self.message


class NotFoundError(ApiError):
    """The requested record does not exist (HTTP 404)."""


class UnauthorizedError(ApiError):
    """Missing, expired or insufficient credential (HTTP 401/403)."""


class ConflictError(ApiError):
    """The backend rejected the write as conflicting (HTTP 409)."""


class TransportError(ApiError):
    """The request never got an HTTP answer (connection error, timeout)."""


class ErrorKind(str, Enum):
    """Kinds of failure surfaced by the billing workflow."""

    FETCH = "fetch_error"
    VALIDATION = "validation_error"
    SALE_SUBMISSION = "sale_submission_error"
    ORDER_CLEANUP = "order_cleanup_error"
    TABLE_RELEASE = "table_release_error"
    TABLE_CONFLICT = "table_conflict_error"


class BillingError(Exception):
    """Base class for billing workflow failures."""

    kind: ErrorKind = ErrorKind.VALIDATION
    sale_recorded = False

    def __init__(self, detail: str, state: Any = None, cause: Optional[BaseException] = None):
        super().__init__(detail)
        self.detail = detail
        self.state = state
        self.cause = cause

    def __str__(self) -> str:
        if self.state is None:
            return self.detail
        state = getattr(self.state, "value", self.state)
        return f"[{self.kind.value} @ {state}] {self.detail}"

    @property
    def user_message(self) -> str:
        """Human-readable message for the person closing the table."""
        if self.sale_recorded:
            return (
                "Venta registrada, pero la limpieza de la mesa falló: "
                f"{self.detail}. No vuelva a cobrar; reintente solo la limpieza."
            )
        return f"No se pudo registrar la venta: {self.detail}"


class FetchError(BillingError):
    """Table or orders could not be loaded."""

    kind = ErrorKind.FETCH

    @property
    def user_message(self) -> str:
        return f"No se pudieron cargar los datos de la mesa: {self.detail}"


class ValidationError(BillingError):
    """The caller asked for something the workflow refuses to do."""

    kind = ErrorKind.VALIDATION

    @property
    def user_message(self) -> str:
        return self.detail


class InvalidTransitionError(ValidationError):
    """Operation invoked from a state that does not allow it."""


class SaleSubmissionError(BillingError):
    """The sales ledger rejected or failed the sale creation."""

    kind = ErrorKind.SALE_SUBMISSION


class TableConflictError(BillingError):
    """The table changed state between loading and processing."""

    kind = ErrorKind.TABLE_CONFLICT


class OrderCleanupError(BillingError):
    """Sale recorded, but one or more order deletions failed."""

    kind = ErrorKind.ORDER_CLEANUP
    sale_recorded = True

    def __init__(
        self,
        detail: str,
        state: Any = None,
        cause: Optional[BaseException] = None,
        sale: Any = None,
        deleted_order_ids: Optional[List[str]] = None,
        failed_order_ids: Optional[List[str]] = None,
        checkpoint: Any = None,
    ):
        super().__init__(detail, state, cause)
        self.sale = sale
        self.deleted_order_ids = list(deleted_order_ids or [])
        self.failed_order_ids = list(failed_order_ids or [])
        self.checkpoint = checkpoint


class TableReleaseError(BillingError):
    """Sale recorded and orders deleted, but the table is still occupied."""

    kind = ErrorKind.TABLE_RELEASE
    sale_recorded = True

    def __init__(
        self,
        detail: str,
        state: Any = None,
        cause: Optional[BaseException] = None,
        sale: Any = None,
        checkpoint: Any = None,
    ):
        super().__init__(detail, state, cause)
        self.sale = sale
        self.checkpoint = checkpoint
