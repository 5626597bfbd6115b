"""ORM models for the compliance kernel."""

from compliance_kernel.models.transaction import (
    TransactionLineModel,
    TransactionModel,
)

__all__ = [
    "TransactionLineModel",
    "TransactionModel",
]
