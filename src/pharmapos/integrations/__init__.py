"""Pharmapos persistence gateways."""

from pharmapos.integrations.local_export import LocalReceiptStore
from pharmapos.integrations.transactions_api import TransactionsAPIClient

__all__ = [
    "LocalReceiptStore",
    "TransactionsAPIClient",
]
