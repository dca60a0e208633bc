"""Finalizing a checkout session through a persistence gateway."""

import logging
from collections.abc import Callable
from typing import Protocol

from pharmapos.calculator import PosError, TransactionCalculator, normalize_tax_rate
from pharmapos.models import WALK_IN_CUSTOMER, CheckoutResult, TransactionRecord
from pharmapos.utils.currency import format_currency
from pharmapos.utils.money import AmountLike

logger = logging.getLogger(__name__)


class CheckoutError(PosError):
    """Base exception for checkout failures."""


class EmptyCartError(CheckoutError):
    """Raised when finalizing a session with no cart lines."""


class NotSettleableError(CheckoutError):
    """Raised when tenders do not yet cover the total due."""

    def __init__(self, remaining_balance: int, currency: str = "USD") -> None:
        self.remaining_balance = remaining_balance
        self.currency = currency
        super().__init__(
            f"Remaining balance of {format_currency(remaining_balance, currency)} "
            "must be paid before checkout"
        )


class GatewayError(CheckoutError):
    """Raised when the persistence gateway fails to store a transaction."""


class TransactionGateway(Protocol):
    """Anything that can persist a finalized transaction."""

    def create_transaction(self, record: TransactionRecord) -> str:
        """Store the record and return an opaque receipt number."""
        ...


def build_record(
    calculator: TransactionCalculator, tax_rate: AmountLike
) -> TransactionRecord:
    """Snapshot the session into a TransactionRecord."""
    rate = normalize_tax_rate(tax_rate)
    customer = calculator.customer

    return TransactionRecord(
        customer_id=customer.id if customer else None,
        customer_name=customer.name if customer else WALK_IN_CUSTOMER,
        currency=calculator.currency,
        tax_rate=rate,
        items=[line.model_copy() for line in calculator.lines],
        payments=list(calculator.tenders),
        settlement=calculator.compute_settlement(rate),
    )


def finalize(
    calculator: TransactionCalculator,
    gateway: TransactionGateway,
    tax_rate: AmountLike,
    on_progress: Callable[[str, str], None] | None = None,
) -> CheckoutResult:
    """Hand a settleable session to the gateway and clear it on success.

    Args:
        calculator: The checkout session
        gateway: Persistence gateway that issues receipt numbers
        tax_rate: Tax rate for this tenant/jurisdiction
        on_progress: Optional callback for progress updates (event_type, message)

    Returns:
        CheckoutResult with the receipt number and the stored record

    Raises:
        EmptyCartError: If the cart has no lines
        NotSettleableError: If a balance is still outstanding
        GatewayError: If the gateway fails; the session is left untouched
    """
    if calculator.is_empty:
        raise EmptyCartError("Cannot check out an empty cart")

    record = build_record(calculator, tax_rate)
    settlement = record.settlement

    if not settlement.can_settle:
        raise NotSettleableError(settlement.remaining_balance, calculator.currency)

    message = (
        f"Settling {len(record.items)} line(s) for {record.customer_name}: "
        f"{format_currency(settlement.total_due, record.currency)} due"
    )
    if on_progress:
        on_progress("settlement", message)

    try:
        receipt_number = gateway.create_transaction(record)
    except GatewayError as e:
        if on_progress:
            on_progress("gateway_error", f"Failed to store transaction: {e}")
        raise
    except Exception as e:
        if on_progress:
            on_progress("gateway_error", f"Failed to store transaction: {e}")
        raise GatewayError(str(e)) from e

    logger.info("Transaction stored with receipt %s", receipt_number)
    if on_progress:
        on_progress("gateway_success", f"Receipt #{receipt_number}")

    calculator.clear()
    return CheckoutResult(receipt_number=receipt_number, record=record)
