"""Example of a pharmacy checkout session.

Builds a cart with an OTC product and an insured prescription, splits payment
between HSA and cash, and stores the sale in a local CSV receipt file.
"""

from decimal import Decimal
from pathlib import Path

from pharmapos.calculator import TransactionCalculator
from pharmapos.checkout import CheckoutError, finalize
from pharmapos.integrations import LocalReceiptStore
from pharmapos.models import Customer, LineKind
from pharmapos.utils.currency import format_currency

TAX_RATE = Decimal("0.08")


def main():
    """Run one checkout and print the settlement."""
    session = TransactionCalculator(currency="USD")
    session.select_customer(Customer(id="c-1001", name="Amina Okafor", phone="555-0101"))

    # Items as they arrive from the catalog and prescription queue
    session.add_line({"id": "otc-vitc", "name": "Vitamin C 500mg", "price": "10.00"}, LineKind.OTC)
    session.add_line({"id": "otc-vitc", "name": "Vitamin C 500mg", "price": "10.00"}, LineKind.OTC)
    session.add_line(
        {
            "id": "rx-8842",
            "name": "Lisinopril 10mg",
            "price": "50.00",
            "insuranceCovered": True,
            "copay": "10.00",
        },
        LineKind.PRESCRIPTION,
    )

    session.add_tender("hsa", "20.00")
    session.pay_remaining("cash", TAX_RATE)

    settlement = session.compute_settlement(TAX_RATE)
    for label, minor in [
        ("Subtotal", settlement.subtotal),
        ("Insurance", settlement.insurance_credit),
        ("Tax", settlement.tax),
        ("Total due", settlement.total_due),
        ("Tendered", settlement.total_tendered),
    ]:
        print(f"{label:>10}: {format_currency(minor, session.currency)}")

    try:
        result = finalize(session, LocalReceiptStore(Path("data/receipts.csv")), TAX_RATE)
    except CheckoutError as e:
        print(f"Checkout failed: {e}")
        return

    print(f"\nReceipt #{result.receipt_number} for {result.record.customer_name}")


if __name__ == "__main__":
    main()
