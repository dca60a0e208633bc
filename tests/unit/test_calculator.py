"""Unit tests for the TransactionCalculator session operations."""

from decimal import Decimal

import pytest

from pharmapos.calculator import (
    InvalidAmountError,
    InvalidTaxRateError,
    OutOfRangeError,
    TransactionCalculator,
    compute_settlement,
)
from pharmapos.models import CatalogItem, Customer, LineKind, TenderMethod

pytestmark = pytest.mark.unit

TAX = Decimal("0.08")


@pytest.fixture
def calculator() -> TransactionCalculator:
    return TransactionCalculator()


@pytest.fixture
def otc_item() -> CatalogItem:
    return CatalogItem(id="otc-1", name="Ibuprofen 200mg", price=Decimal("10.00"))


@pytest.fixture
def rx_item() -> CatalogItem:
    return CatalogItem(
        id="rx-1",
        name="Amoxicillin",
        price=Decimal("50.00"),
        insurance_covered=True,
        copay=Decimal("10.00"),
    )


class TestAddLine:
    def test_creates_line_in_minor_units(self, calculator, otc_item):
        line = calculator.add_line(otc_item, LineKind.OTC)
        assert line.unit_price == 1000
        assert line.quantity == 1
        assert calculator.lines == (line,)

    def test_merges_same_id_and_kind(self, calculator, otc_item):
        first = calculator.add_line(otc_item, "otc")
        second = calculator.add_line(otc_item, "otc")
        assert first is second
        assert len(calculator.lines) == 1
        assert calculator.lines[0].quantity == 2
        assert calculator.lines[0].line_total == 2000

    def test_same_id_different_kind_is_separate(self, calculator, otc_item):
        calculator.add_line(otc_item, LineKind.OTC)
        calculator.add_line(otc_item, LineKind.PRODUCT)
        assert len(calculator.lines) == 2

    def test_accepts_mapping_with_camel_case(self, calculator):
        line = calculator.add_line(
            {"id": "rx-2", "price": 25, "insuranceCovered": True, "copay": "5"},
            "prescription",
        )
        assert line.insurance_covered is True
        assert line.copay == 500

    def test_prescription_from_queue_uses_medication_name_and_id(self, calculator):
        line = calculator.add_line(
            {"id": "rx-queue-7", "medicationName": "Lisinopril 10mg", "price": "5"},
            "prescription",
        )
        assert line.name == "Lisinopril 10mg"
        assert line.prescription_id == "rx-queue-7"

    def test_explicit_prescription_id_kept(self, calculator):
        line = calculator.add_line(
            {"id": "rx-5", "prescriptionId": "p-9", "price": "5"}, "prescription"
        )
        assert line.prescription_id == "p-9"

    def test_non_prescription_has_no_prescription_id(self, calculator):
        line = calculator.add_line(
            {"id": "otc-5", "prescriptionId": "p-9", "price": "5"}, "otc"
        )
        assert line.prescription_id is None

    def test_insurance_only_for_prescriptions(self, calculator):
        item = CatalogItem(
            id="otc-2", price=Decimal("8"), insurance_covered=True, copay=Decimal("2")
        )
        line = calculator.add_line(item, LineKind.OTC)
        assert line.insurance_covered is False
        assert line.effective_copay is None

    def test_price_falls_back_to_copay(self, calculator):
        item = CatalogItem(id="rx-3", copay=Decimal("15.00"), total_price=Decimal("80"))
        assert calculator.add_line(item, "prescription").unit_price == 1500

    def test_price_falls_back_to_total_price(self, calculator):
        item = CatalogItem(id="rx-4", total_price=Decimal("80.00"))
        assert calculator.add_line(item, "prescription").unit_price == 8000

    def test_unknown_kind_rejected(self, calculator, otc_item):
        with pytest.raises(ValueError):
            calculator.add_line(otc_item, "service")

    def test_zero_decimal_currency(self):
        calculator = TransactionCalculator(currency="ugx")
        line = calculator.add_line({"id": "otc-1", "price": "1500"}, "otc")
        assert calculator.currency == "UGX"
        assert line.unit_price == 1500


class TestSetQuantity:
    def test_updates_quantity_and_total(self, calculator, otc_item):
        calculator.add_line(otc_item, "otc")
        calculator.set_quantity(0, 3)
        line = calculator.lines[0]
        assert line.quantity == 3
        assert line.line_total == line.unit_price * line.quantity

    def test_zero_removes_line(self, calculator, otc_item, rx_item):
        calculator.add_line(otc_item, "otc")
        calculator.add_line(rx_item, "prescription")
        calculator.set_quantity(0, 0)
        assert len(calculator.lines) == 1
        assert calculator.lines[0].id == "rx-1"

    def test_negative_removes_line(self, calculator, otc_item):
        calculator.add_line(otc_item, "otc")
        calculator.set_quantity(0, -2)
        assert calculator.is_empty

    @pytest.mark.parametrize("index", [1, -1, 5])
    def test_out_of_range(self, calculator, otc_item, index):
        calculator.add_line(otc_item, "otc")
        with pytest.raises(OutOfRangeError):
            calculator.set_quantity(index, 2)

    def test_out_of_range_on_empty_cart(self, calculator):
        with pytest.raises(OutOfRangeError):
            calculator.set_quantity(0, 0)


class TestRemoveLine:
    def test_removes_line(self, calculator, otc_item):
        calculator.add_line(otc_item, "otc")
        calculator.remove_line(0)
        assert calculator.is_empty

    def test_out_of_range(self, calculator):
        with pytest.raises(OutOfRangeError):
            calculator.remove_line(0)

    def test_out_of_range_is_index_error(self, calculator):
        with pytest.raises(IndexError):
            calculator.remove_line(3)


class TestTenders:
    def test_add_tender(self, calculator):
        tender = calculator.add_tender(TenderMethod.CASH, "43.20")
        assert tender.amount == 4320
        assert calculator.tenders == (tender,)

    def test_zero_amount_allowed(self, calculator):
        assert calculator.add_tender("card", 0).amount == 0

    def test_negative_amount_rejected(self, calculator):
        with pytest.raises(InvalidAmountError):
            calculator.add_tender("cash", Decimal("-0.01"))
        assert calculator.tenders == ()

    def test_unparseable_amount_rejected(self, calculator):
        with pytest.raises(InvalidAmountError):
            calculator.add_tender("cash", "ten dollars")

    def test_remove_tender(self, calculator):
        calculator.add_tender("cash", 10)
        calculator.add_tender("card", 20)
        calculator.remove_tender(0)
        assert [t.method for t in calculator.tenders] == [TenderMethod.CARD]

    def test_remove_tender_on_empty_list(self, calculator):
        with pytest.raises(OutOfRangeError):
            calculator.remove_tender(0)

    def test_pay_remaining(self, calculator, otc_item):
        calculator.add_line(otc_item, "otc")
        calculator.add_tender("cash", "5.00")
        tender = calculator.pay_remaining("card", TAX)
        # 10.00 + 0.80 tax - 5.00 cash
        assert tender.method == TenderMethod.CARD
        assert tender.amount == 580
        assert calculator.can_settle(TAX)

    def test_pay_remaining_on_empty_cart_adds_nothing(self, calculator):
        assert calculator.pay_remaining("hsa", TAX) is None
        assert calculator.tenders == ()

    def test_pay_remaining_when_covered_adds_nothing(self, calculator):
        calculator.add_line({"id": "otc-1", "price": "1.00"}, "otc")
        cash = calculator.add_tender("cash", "5.00")

        assert calculator.pay_remaining("card", TAX) is None
        assert calculator.tenders == (cash,)

    def test_huge_amount_rejected(self, calculator):
        with pytest.raises(InvalidAmountError):
            calculator.add_tender("cash", "1e30")
        assert calculator.tenders == ()


class TestClearAndCustomer:
    def test_clear_resets_everything(self, calculator, otc_item):
        calculator.add_line(otc_item, "otc")
        calculator.add_tender("cash", 5)
        calculator.select_customer(Customer(id="c-1", name="Jane Doe"))

        calculator.clear()

        assert calculator.is_empty
        assert calculator.tenders == ()
        assert calculator.customer is None

    def test_select_and_detach_customer(self, calculator):
        customer = Customer(id="c-1", name="Jane Doe")
        calculator.select_customer(customer)
        assert calculator.customer == customer
        calculator.select_customer(None)
        assert calculator.customer is None

    def test_views_are_read_only(self, calculator, otc_item):
        calculator.add_line(otc_item, "otc")
        with pytest.raises(AttributeError):
            calculator.lines.append(None)  # type: ignore[attr-defined]


class TestTaxRate:
    @pytest.mark.parametrize("rate", ["-0.01", "1", "1.5", "abc"])
    def test_invalid_rates(self, calculator, rate):
        with pytest.raises(InvalidTaxRateError):
            calculator.compute_settlement(rate)

    @pytest.mark.parametrize("rate", [0, "0", 0.08, "0.08", Decimal("0.999")])
    def test_valid_rates(self, calculator, rate):
        assert calculator.compute_settlement(rate).tax == 0

    def test_float_rate_matches_decimal_rate(self, calculator, otc_item):
        calculator.add_line(otc_item, "otc")
        assert calculator.compute_settlement(0.08) == calculator.compute_settlement(TAX)


def test_compute_settlement_function_matches_method(calculator, otc_item, rx_item):
    calculator.add_line(otc_item, "otc")
    calculator.add_line(rx_item, "prescription")
    calculator.add_tender("cash", 20)
    assert compute_settlement(
        calculator.lines, calculator.tenders, TAX
    ) == calculator.compute_settlement(TAX)
