"""Data models for the pharmacy point-of-sale engine.

Monetary fields on CartLine, PaymentTender and SettlementResult are integers
in minor currency units. CatalogItem and InsuranceInfo carry display decimals
as supplied by the catalog.
"""

from datetime import UTC, datetime
from decimal import Decimal
from enum import StrEnum
from typing import Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, computed_field

WALK_IN_CUSTOMER = "Walk-in Customer"


class LineKind(StrEnum):
    PRESCRIPTION = "prescription"
    OTC = "otc"
    PRODUCT = "product"


class TenderMethod(StrEnum):
    CASH = "cash"
    CARD = "card"
    INSURANCE = "insurance"
    HSA = "hsa"
    CHECK = "check"


class CatalogItem(BaseModel):
    """A ready-to-sell item from the catalog or prescription queue."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    name: str = Field(default="", validation_alias=AliasChoices("name", "medicationName"))
    price: Decimal | None = Field(default=None, ge=0)
    total_price: Decimal | None = Field(
        default=None, ge=0, validation_alias=AliasChoices("total_price", "totalPrice")
    )
    insurance_covered: bool = Field(
        default=False,
        validation_alias=AliasChoices("insurance_covered", "insuranceCovered"),
    )
    copay: Decimal | None = Field(default=None, ge=0)
    strength: str | None = None
    prescription_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("prescription_id", "prescriptionId"),
    )
    notes: str | None = None


class CartLine(BaseModel):
    """One purchasable unit in the active transaction."""

    model_config = ConfigDict(validate_assignment=True)

    id: str
    kind: LineKind
    name: str = ""
    unit_price: int = Field(ge=0)
    quantity: int = Field(default=1, ge=1)
    insurance_covered: bool = False
    copay: int | None = Field(default=None, ge=0)
    strength: str | None = None
    prescription_id: str | None = None
    notes: str | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def line_total(self) -> int:
        return self.unit_price * self.quantity

    @property
    def effective_copay(self) -> int | None:
        """Copay that applies to this line; uninsured lines never carry one."""
        return self.copay if self.insurance_covered else None

    @property
    def insurance_credit(self) -> int:
        """Amount insurance pays for this line, floored at zero."""
        if not self.insurance_covered:
            return 0
        return max(self.line_total - (self.effective_copay or 0), 0)


class PaymentTender(BaseModel):
    """One payment instrument applied toward the total."""

    model_config = ConfigDict(frozen=True)

    method: TenderMethod
    amount: int = Field(ge=0)


class SettlementResult(BaseModel):
    """Settlement breakdown projected from a cart and its tenders."""

    model_config = ConfigDict(frozen=True)

    subtotal: int = 0
    insurance_credit: int = 0
    taxable_base: int = 0
    tax: int = 0
    total_due: int = 0
    total_tendered: int = 0
    remaining_balance: int = 0
    change_due: int = 0

    @computed_field  # type: ignore[prop-decorator]
    @property
    def can_settle(self) -> bool:
        return self.remaining_balance == 0


class InsuranceInfo(BaseModel):
    provider: str
    policy_number: str = Field(
        validation_alias=AliasChoices("policy_number", "policyNumber")
    )
    copay: Decimal = Field(default=Decimal(0), ge=0)


class Customer(BaseModel):
    """A pharmacy customer that can be attached to a checkout session."""

    id: str
    name: str
    phone: str = ""
    email: str = ""
    address: str = ""
    insurance_info: InsuranceInfo | None = Field(
        default=None,
        validation_alias=AliasChoices("insurance_info", "insuranceInfo"),
    )


class TransactionRecord(BaseModel):
    """Finalized transaction handed to a persistence gateway."""

    customer_id: str | None = None
    customer_name: str = WALK_IN_CUSTOMER
    currency: str = "USD"
    tax_rate: Decimal
    items: list[CartLine]
    payments: list[PaymentTender]
    settlement: SettlementResult
    status: Literal["pending", "completed", "cancelled"] = "completed"
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class CheckoutResult(BaseModel):
    """Receipt number returned by the gateway plus the record that was stored."""

    receipt_number: str
    record: TransactionRecord
