"""Transaction stores: in-memory and SQLAlchemy-backed."""

from compliance_kernel.stores.memory import (
    COMPLETED_STATUSES,
    InMemoryTransactionStore,
    usage_records,
)
from compliance_kernel.stores.sql_store import SqlTransactionStore

__all__ = [
    "COMPLETED_STATUSES",
    "InMemoryTransactionStore",
    "SqlTransactionStore",
    "usage_records",
]
