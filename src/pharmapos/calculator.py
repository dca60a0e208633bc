"""Transaction calculator for a single point-of-sale checkout session."""

import logging
from collections.abc import Iterable, Mapping
from decimal import Decimal
from typing import Any

from pharmapos.catalog import to_catalog_item, unit_price_of
from pharmapos.models import (
    CartLine,
    CatalogItem,
    Customer,
    LineKind,
    PaymentTender,
    SettlementResult,
    TenderMethod,
)
from pharmapos.utils.currency import decimal_places_for
from pharmapos.utils.money import (
    AmountLike,
    MoneyParseError,
    apply_rate,
    as_decimal,
    to_minor_units,
)

logger = logging.getLogger(__name__)


class PosError(Exception):
    """Base exception for point-of-sale errors."""


class CalculatorError(PosError):
    """Base exception for invalid calculator operations."""


class OutOfRangeError(CalculatorError, IndexError):
    """Raised when an index-based operation references a missing position."""


class InvalidAmountError(CalculatorError, ValueError):
    """Raised when a tender amount is negative or unparseable."""


class InvalidTaxRateError(CalculatorError, ValueError):
    """Raised when a tax rate falls outside [0, 1)."""


def normalize_tax_rate(tax_rate: AmountLike) -> Decimal:
    """Coerce a tax rate to Decimal and check it lies in [0, 1)."""
    try:
        rate = as_decimal(tax_rate)
    except ValueError as e:
        raise InvalidTaxRateError(f"Invalid tax rate: {tax_rate!r}") from e

    if rate < 0 or rate >= 1:
        raise InvalidTaxRateError(f"Tax rate must be in [0, 1), got {rate}")
    return rate


def compute_settlement(
    lines: Iterable[CartLine],
    tenders: Iterable[PaymentTender],
    tax_rate: AmountLike,
) -> SettlementResult:
    """
    Project a cart and its tenders into a settlement breakdown.

    All arithmetic is in integer minor units. Tax is the only step involving
    a fractional factor and is rounded half-up once, when it is finalised.

    Args:
        lines: Cart lines
        tenders: Payment tenders applied so far
        tax_rate: Rate in [0, 1), e.g. ``Decimal("0.08")``

    Returns:
        SettlementResult with every field in minor units
    """
    rate = normalize_tax_rate(tax_rate)

    subtotal = 0
    insurance_credit = 0
    for line in lines:
        subtotal += line.line_total
        insurance_credit += line.insurance_credit

    taxable_base = max(subtotal - insurance_credit, 0)
    tax = apply_rate(taxable_base, rate)
    total_due = subtotal + tax - insurance_credit

    total_tendered = sum(tender.amount for tender in tenders)

    return SettlementResult(
        subtotal=subtotal,
        insurance_credit=insurance_credit,
        taxable_base=taxable_base,
        tax=tax,
        total_due=total_due,
        total_tendered=total_tendered,
        remaining_balance=max(total_due - total_tendered, 0),
        change_due=max(total_tendered - total_due, 0),
    )


class TransactionCalculator:
    """
    Mutable cart and tender list for one checkout session.

    The settlement is never cached: every call to compute_settlement works
    from the current lines and tenders. A session is meant to be owned by a
    single flow of control and does no locking.
    """

    def __init__(self, currency: str = "USD") -> None:
        """
        Initialize an empty session.

        Args:
            currency: ISO code used to convert catalog decimals to minor units
        """
        self.currency = currency.upper()
        self._decimal_places = decimal_places_for(self.currency)
        self._lines: list[CartLine] = []
        self._tenders: list[PaymentTender] = []
        self._customer: Customer | None = None

    @property
    def lines(self) -> tuple[CartLine, ...]:
        return tuple(self._lines)

    @property
    def tenders(self) -> tuple[PaymentTender, ...]:
        return tuple(self._tenders)

    @property
    def customer(self) -> Customer | None:
        return self._customer

    @property
    def is_empty(self) -> bool:
        return not self._lines

    def select_customer(self, customer: Customer | None) -> None:
        """Attach a customer to the session, or detach with None."""
        self._customer = customer

    def _check_index(self, index: int, size: int, what: str) -> None:
        if not 0 <= index < size:
            raise OutOfRangeError(f"{what} index {index} out of range (size {size})")

    def add_line(
        self, item: CatalogItem | Mapping[str, Any], kind: LineKind | str
    ) -> CartLine:
        """
        Add a catalog item to the cart, merging with an existing line.

        A line with the same (id, kind) has its quantity incremented instead
        of a second line being created.

        Returns:
            The line that was created or merged into
        """
        kind = LineKind(kind)
        catalog_item = to_catalog_item(item)

        for line in self._lines:
            if line.id == catalog_item.id and line.kind == kind:
                line.quantity += 1
                logger.debug(
                    "Merged %s %s into existing line (quantity=%d)",
                    kind,
                    line.id,
                    line.quantity,
                )
                return line

        copay = None
        if catalog_item.copay is not None:
            copay = to_minor_units(catalog_item.copay, self._decimal_places)

        prescription_id = None
        if kind == LineKind.PRESCRIPTION:
            prescription_id = catalog_item.prescription_id or catalog_item.id

        line = CartLine(
            id=catalog_item.id,
            kind=kind,
            name=catalog_item.name,
            unit_price=to_minor_units(unit_price_of(catalog_item), self._decimal_places),
            quantity=1,
            insurance_covered=kind == LineKind.PRESCRIPTION
            and catalog_item.insurance_covered,
            copay=copay,
            strength=catalog_item.strength,
            prescription_id=prescription_id,
            notes=catalog_item.notes,
        )
        self._lines.append(line)
        logger.debug("Added %s line %s at %d", kind, line.id, line.unit_price)
        return line

    def set_quantity(self, line_index: int, new_quantity: int) -> None:
        """Set a line's quantity; zero or less removes the line."""
        self._check_index(line_index, len(self._lines), "Line")

        if new_quantity <= 0:
            removed = self._lines.pop(line_index)
            logger.debug("Removed line %s via zero quantity", removed.id)
            return

        self._lines[line_index].quantity = new_quantity

    def remove_line(self, line_index: int) -> None:
        self._check_index(line_index, len(self._lines), "Line")
        removed = self._lines.pop(line_index)
        logger.debug("Removed line %s", removed.id)

    def clear(self) -> None:
        """Empty the cart, the tenders and the selected customer."""
        self._lines.clear()
        self._tenders.clear()
        self._customer = None

    def add_tender(self, method: TenderMethod | str, amount: AmountLike) -> PaymentTender:
        """
        Append a payment tender.

        Overpayment is allowed and shows up as change due.

        Raises:
            InvalidAmountError: If the amount is negative, not a number or too
                large for the decimal context
        """
        method = TenderMethod(method)
        try:
            value = as_decimal(amount)
            if value < 0:
                raise InvalidAmountError(f"Tender amount cannot be negative: {value}")
            minor = to_minor_units(value, self._decimal_places)
        except MoneyParseError as e:
            raise InvalidAmountError(f"Invalid tender amount: {amount!r}") from e

        tender = PaymentTender(method=method, amount=minor)
        self._tenders.append(tender)
        logger.debug("Added %s tender of %d", method, tender.amount)
        return tender

    def pay_remaining(
        self, method: TenderMethod | str, tax_rate: AmountLike
    ) -> PaymentTender | None:
        """
        Append a tender covering whatever balance is still outstanding.

        Returns:
            The new tender, or None when nothing is outstanding
        """
        remaining = self.compute_settlement(tax_rate).remaining_balance
        if remaining == 0:
            return None

        tender = PaymentTender(method=TenderMethod(method), amount=remaining)
        self._tenders.append(tender)
        logger.debug("Added %s tender for remaining balance %d", method, remaining)
        return tender

    def remove_tender(self, tender_index: int) -> None:
        self._check_index(tender_index, len(self._tenders), "Tender")
        self._tenders.pop(tender_index)

    def compute_settlement(self, tax_rate: AmountLike) -> SettlementResult:
        return compute_settlement(self._lines, self._tenders, tax_rate)

    def can_settle(self, tax_rate: AmountLike) -> bool:
        """True when the tenders cover the total due."""
        return self.compute_settlement(tax_rate).remaining_balance == 0
