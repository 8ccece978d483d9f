"""Bill aggregation and the table-closing workflow."""

from .aggregator import aggregate_orders
from .workflow import (
    BillingCheckpoint,
    BillingResult,
    BillingState,
    BillingWorkflow,
    checkpoint_from_sale,
    resume_cleanup,
)

__all__ = [
    "aggregate_orders",
    "BillingCheckpoint",
    "BillingResult",
    "BillingState",
    "BillingWorkflow",
    "checkpoint_from_sale",
    "resume_cleanup",
]
