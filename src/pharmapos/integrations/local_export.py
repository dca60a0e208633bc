"""Local CSV receipt store for finalized transactions."""

import csv
import fcntl
import logging
import os
from pathlib import Path
from typing import Any
from uuid import uuid4

from pharmapos.models import TransactionRecord
from pharmapos.utils.currency import decimal_places_for
from pharmapos.utils.money import from_minor_units

logger = logging.getLogger(__name__)

CSV_HEADER = [
    "receipt_number",
    "created_at",
    "customer",
    "currency",
    "subtotal",
    "insurance_credit",
    "tax",
    "total_due",
    "total_tendered",
    "change_due",
    "payments",
]


def generate_receipt_number(record: TransactionRecord) -> str:
    """Build a receipt number such as ``RCP-20261019-1A2B3C4D``."""
    return f"RCP-{record.created_at:%Y%m%d}-{uuid4().hex[:8].upper()}"


def record_to_row(receipt_number: str, record: TransactionRecord) -> list[Any]:
    """Convert a TransactionRecord to a CSV row matching CSV_HEADER.

    Amounts are written as display decimals in the record's currency. Payments
    are summarized as ``method:amount`` pairs joined by ``;``.
    """
    places = decimal_places_for(record.currency)
    settlement = record.settlement

    def money(minor: int) -> str:
        return str(from_minor_units(minor, places))

    payments = ";".join(
        f"{tender.method.value}:{money(tender.amount)}" for tender in record.payments
    )
    return [
        receipt_number,
        record.created_at.isoformat(),
        record.customer_name,
        record.currency,
        money(settlement.subtotal),
        money(settlement.insurance_credit),
        money(settlement.tax),
        money(settlement.total_due),
        money(settlement.total_tendered),
        money(settlement.change_due),
        payments,
    ]


class LocalReceiptStore:
    """Persistence gateway that appends finalized transactions to a CSV file.

    Attributes:
        path: CSV file receiving one row per transaction
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def create_transaction(self, record: TransactionRecord) -> str:
        """Append the record and return its newly issued receipt number.

        Raises:
            PermissionError: If the file cannot be written due to permissions
            OSError: If there are filesystem-related errors
        """
        receipt_number = generate_receipt_number(record)

        self.path.parent.mkdir(parents=True, exist_ok=True)

        # BOM is written by hand on new files so appends never repeat it
        with open(self.path, mode="a", encoding="utf-8", newline="") as f:
            fcntl.flock(f.fileno(), fcntl.LOCK_EX)
            try:
                # Size is checked after taking the lock
                is_new_file = os.fstat(f.fileno()).st_size == 0

                if is_new_file:
                    f.write("\ufeff")  # UTF-8 BOM

                writer = csv.writer(f)
                if is_new_file:
                    writer.writerow(CSV_HEADER)
                writer.writerow(record_to_row(receipt_number, record))
            finally:
                fcntl.flock(f.fileno(), fcntl.LOCK_UN)

        logger.debug("Wrote receipt %s to %s", receipt_number, self.path)
        return receipt_number
