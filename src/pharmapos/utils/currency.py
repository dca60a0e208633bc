"""Currency registry, display formatting and exchange-rate conversion."""

from datetime import UTC, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from pharmapos.utils.money import AmountLike, as_decimal, from_minor_units, round_half_up


class CurrencyInfo(BaseModel):
    """Display metadata for a currency."""

    model_config = ConfigDict(frozen=True)

    code: str
    name: str
    symbol: str
    decimal_places: int = Field(default=2, ge=0, le=4)
    region: str = ""
    country: str = ""


CURRENCIES: dict[str, CurrencyInfo] = {
    info.code: info
    for info in [
        CurrencyInfo(code="USD", name="US Dollar", symbol="$", region="Americas", country="United States"),
        CurrencyInfo(code="CAD", name="Canadian Dollar", symbol="C$", region="Americas", country="Canada"),
        CurrencyInfo(code="AUD", name="Australian Dollar", symbol="A$", region="Oceania", country="Australia"),
        CurrencyInfo(code="EUR", name="Euro", symbol="€", region="Europe", country="European Union"),
        CurrencyInfo(code="GBP", name="British Pound", symbol="£", region="Europe", country="United Kingdom"),
        CurrencyInfo(code="NGN", name="Nigerian Naira", symbol="₦", region="Africa", country="Nigeria"),
        CurrencyInfo(code="ZAR", name="South African Rand", symbol="R", region="Africa", country="South Africa"),
        CurrencyInfo(code="KES", name="Kenyan Shilling", symbol="KSh", region="Africa", country="Kenya"),
        CurrencyInfo(code="TZS", name="Tanzanian Shilling", symbol="TSh", region="Africa", country="Tanzania"),
        CurrencyInfo(code="UGX", name="Ugandan Shilling", symbol="USh", decimal_places=0, region="Africa", country="Uganda"),
        CurrencyInfo(code="SOS", name="Somali Shilling", symbol="Sh.So.", region="Africa", country="Somalia"),
        CurrencyInfo(code="EGP", name="Egyptian Pound", symbol="E£", region="Africa", country="Egypt"),
        CurrencyInfo(code="SSP", name="South Sudanese Pound", symbol="SS£", region="Africa", country="South Sudan"),
        CurrencyInfo(code="LRD", name="Liberian Dollar", symbol="L$", region="Africa", country="Liberia"),
        CurrencyInfo(code="NAD", name="Namibian Dollar", symbol="N$", region="Africa", country="Namibia"),
        CurrencyInfo(code="ZWL", name="Zimbabwean Dollar", symbol="Z$", region="Africa", country="Zimbabwe"),
        CurrencyInfo(code="XOF", name="West African CFA Franc", symbol="CFA", decimal_places=0, region="Africa", country="West Africa"),
        CurrencyInfo(code="XAF", name="Central African CFA Franc", symbol="FCFA", decimal_places=0, region="Africa", country="Central Africa"),
    ]
}

# Symbol placement by currency; anything not listed uses "<symbol> <amount>".
_PREFIX = {"USD", "CAD", "AUD", "LRD", "NAD", "ZWL", "GBP", "EGP", "SSP", "NGN"}
_SUFFIX = {"EUR", "XOF", "XAF"}


def get_currency_info(code: str) -> CurrencyInfo | None:
    """Look up a currency by ISO code. Returns None for unknown codes."""
    return CURRENCIES.get(code.upper())


def decimal_places_for(code: str) -> int:
    """Minor-unit exponent for a currency, defaulting to 2 for unknown codes."""
    info = get_currency_info(code)
    return info.decimal_places if info else 2


def format_currency(minor: int, code: str, info: CurrencyInfo | None = None) -> str:
    """
    Render an amount in minor units with the currency's symbol and precision.

    Args:
        minor: Amount in minor units (cents for USD)
        code: ISO currency code
        info: Optional explicit currency metadata, overriding the registry

    Returns:
        A display string such as ``$10.00``, ``10.00 €`` or ``R 10.00``
    """
    code = code.upper()
    info = info or get_currency_info(code)

    if info is None:
        return f"{code} {from_minor_units(minor, 2)}"

    formatted = str(from_minor_units(minor, info.decimal_places))

    if code in _PREFIX:
        return f"{info.symbol}{formatted}"
    if code in _SUFFIX:
        return f"{formatted} {info.symbol}"
    if code == "ZAR":
        return f"R {formatted}"
    return f"{info.symbol} {formatted}"


class ExchangeRateTable(BaseModel):
    """Exchange rates used for conversion.

    Attributes:
        direct: Rates keyed by (base, target) pairs
        usd_rates: Each currency's value in USD, used for cross rates
    """

    direct: dict[tuple[str, str], Decimal] = Field(default_factory=dict)
    usd_rates: dict[str, Decimal] = Field(default_factory=dict)

    def set_rate(self, base: str, target: str, rate: AmountLike) -> None:
        self.direct[(base.upper(), target.upper())] = as_decimal(rate)

    def rate_for(self, base: str, target: str) -> Decimal | None:
        base, target = base.upper(), target.upper()
        if base == target:
            return Decimal(1)

        direct = self.direct.get((base, target))
        if direct is not None:
            return direct

        # Cross through USD
        from_usd = self.usd_rates.get(base)
        to_usd = self.usd_rates.get(target)
        if from_usd is None or to_usd is None or to_usd == 0:
            return None
        return from_usd / to_usd


class ConversionResult(BaseModel):
    """Outcome of converting an amount between two currencies."""

    model_config = ConfigDict(frozen=True)

    original_amount: int
    original_currency: str
    converted_amount: int
    target_currency: str
    exchange_rate: Decimal
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


def convert(
    minor: int, from_code: str, to_code: str, rates: ExchangeRateTable
) -> ConversionResult | None:
    """Convert minor units of one currency into minor units of another.

    The amount is rescaled between the two currencies' precisions, multiplied
    by the rate, and rounded half-up once at the end.

    Returns:
        ConversionResult, or None when no rate is known for the pair
    """
    rate = rates.rate_for(from_code, to_code)
    if rate is None:
        return None

    major = Decimal(minor).scaleb(-decimal_places_for(from_code))
    converted = round_half_up((major * rate).scaleb(decimal_places_for(to_code)))

    return ConversionResult(
        original_amount=minor,
        original_currency=from_code.upper(),
        converted_amount=converted,
        target_currency=to_code.upper(),
        exchange_rate=rate,
    )
