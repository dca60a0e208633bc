import json
import logging
from decimal import Decimal
from pathlib import Path

import typer
from pydantic import BaseModel, Field, ValidationError

from pharmapos.calculator import (
    CalculatorError,
    TransactionCalculator,
    normalize_tax_rate,
)
from pharmapos.checkout import CheckoutError, TransactionGateway, finalize
from pharmapos.config import PosSettings, load_settings
from pharmapos.integrations.local_export import LocalReceiptStore
from pharmapos.integrations.transactions_api import TransactionsAPIClient
from pharmapos.models import (
    CatalogItem,
    Customer,
    LineKind,
    SettlementResult,
    TenderMethod,
)
from pharmapos.utils.currency import (
    ExchangeRateTable,
    convert,
    decimal_places_for,
    format_currency,
)
from pharmapos.utils.money import MoneyParseError, as_decimal, to_minor_units

app = typer.Typer(no_args_is_help=True)


class CartFileLine(BaseModel):
    kind: LineKind
    quantity: int = Field(default=1, ge=1)
    item: CatalogItem


class CartFileTender(BaseModel):
    method: TenderMethod
    amount: Decimal


class CartFile(BaseModel):
    """JSON document describing a checkout session."""

    currency: str | None = None
    customer: Customer | None = None
    lines: list[CartFileLine] = Field(default_factory=list)
    tenders: list[CartFileTender] = Field(default_factory=list)


@app.callback(invoke_without_command=True)
def callback(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Pharmacy point-of-sale CLI tool."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())


def load_calculator(path: Path, default_currency: str) -> TransactionCalculator:
    """Replay a cart file into a new TransactionCalculator.

    Raises:
        OSError: If the file cannot be read
        ValueError: If the JSON is malformed or fails validation
        CalculatorError: If a tender amount is invalid
    """
    cart = CartFile.model_validate(json.loads(path.read_text(encoding="utf-8")))

    calculator = TransactionCalculator(currency=cart.currency or default_currency)
    calculator.select_customer(cart.customer)

    for entry in cart.lines:
        line = calculator.add_line(entry.item, entry.kind)
        index = next(i for i, existing in enumerate(calculator.lines) if existing is line)
        calculator.set_quantity(index, line.quantity + entry.quantity - 1)

    for tender in cart.tenders:
        calculator.add_tender(tender.method, tender.amount)

    return calculator


def render_settlement(result: SettlementResult, currency: str) -> list[str]:
    """Format a settlement as aligned label/amount lines."""

    def fmt(minor: int) -> str:
        return format_currency(minor, currency)

    rows = [("Subtotal", fmt(result.subtotal))]
    if result.insurance_credit > 0:
        rows.append(("Insurance", f"-{fmt(result.insurance_credit)}"))
    rows += [
        ("Tax", fmt(result.tax)),
        ("Total", fmt(result.total_due)),
        ("Paid", fmt(result.total_tendered)),
        ("Remaining", fmt(result.remaining_balance)),
    ]
    if result.change_due > 0:
        rows.append(("Change", fmt(result.change_due)))

    width = max(len(label) for label, _ in rows) + 1
    return [f"{label + ':':<{width}} {amount}" for label, amount in rows]


def _settings_or_exit() -> PosSettings:
    try:
        return load_settings()
    except ValidationError as e:
        typer.echo(f"Error: invalid configuration: {e}", err=True)
        raise typer.Exit(code=1) from e


def _session_or_exit(
    cart_file: Path, settings: PosSettings, tax_rate: str | None
) -> tuple[TransactionCalculator, Decimal]:
    try:
        rate = normalize_tax_rate(tax_rate) if tax_rate else settings.tax_rate
        calculator = load_calculator(cart_file, settings.currency)
    except OSError as e:
        typer.echo(f"Error: cannot read cart file: {e}", err=True)
        raise typer.Exit(code=1) from e
    except (CalculatorError, ValueError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from e
    return calculator, rate


@app.command()
def settle(
    cart_file: Path = typer.Argument(..., help="JSON cart file"),
    tax_rate: str | None = typer.Option(
        None, "--tax-rate", "-t", help="Tax rate, e.g. 0.08 (defaults to POS_TAX_RATE)"
    ),
):
    """Print the settlement breakdown for a cart file."""
    settings = _settings_or_exit()
    calculator, rate = _session_or_exit(cart_file, settings, tax_rate)

    result = calculator.compute_settlement(rate)
    for line in render_settlement(result, calculator.currency):
        typer.echo(line)

    if not result.can_settle:
        typer.echo("Balance outstanding: not ready for checkout.")


@app.command()
def checkout(
    cart_file: Path = typer.Argument(..., help="JSON cart file"),
    tax_rate: str | None = typer.Option(
        None, "--tax-rate", "-t", help="Tax rate, e.g. 0.08 (defaults to POS_TAX_RATE)"
    ),
    save_local: Path | None = typer.Option(
        None, "--save-local", "-l", help="CSV file to append the receipt to"
    ),
    api_url: str | None = typer.Option(
        None, "--api-url", help="Transactions API base URL (defaults to POS_API_URL)"
    ),
):
    """Finalize a cart file and print the receipt number."""
    settings = _settings_or_exit()
    calculator, rate = _session_or_exit(cart_file, settings, tax_rate)

    gateway: TransactionGateway
    api_client: TransactionsAPIClient | None = None
    url = api_url or (None if save_local else settings.api_url)
    if url:
        api_client = TransactionsAPIClient(base_url=url, api_key=settings.api_key)
        gateway = api_client
    else:
        gateway = LocalReceiptStore(save_local or settings.receipts_path)

    def cli_progress(event_type: str, message: str):
        """Callback to handle progress events and output to CLI."""
        if "error" in event_type:
            typer.echo(message, err=True)
        else:
            typer.echo(message)

    try:
        result = finalize(calculator, gateway, rate, on_progress=cli_progress)
    except CheckoutError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from e
    finally:
        if api_client is not None:
            api_client.close()

    for line in render_settlement(result.record.settlement, result.record.currency):
        typer.echo(line)
    typer.echo(f"Receipt number: {result.receipt_number}")


def _amount_or_exit(amount: str, currency: str) -> int:
    try:
        return to_minor_units(amount, decimal_places_for(currency))
    except MoneyParseError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from e


@app.command("format")
def format_amount(
    amount: str = typer.Argument(..., help="Amount in display units, e.g. 12.5"),
    currency: str = typer.Option("USD", "--currency", "-c", help="ISO currency code"),
):
    """Format an amount with the currency's symbol and precision."""
    typer.echo(format_currency(_amount_or_exit(amount, currency), currency))


@app.command("convert")
def convert_amount(
    amount: str = typer.Argument(..., help="Amount in display units"),
    from_currency: str = typer.Option(..., "--from", help="Source currency"),
    to_currency: str = typer.Option(..., "--to", help="Target currency"),
    rate: str = typer.Option(..., "--rate", "-r", help="Direct exchange rate"),
):
    """Convert an amount between currencies using an explicit rate."""
    minor = _amount_or_exit(amount, from_currency)

    try:
        exchange_rate = as_decimal(rate)
    except MoneyParseError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from e

    if exchange_rate <= 0:
        typer.echo(f"Error: exchange rate must be positive, got {rate}", err=True)
        raise typer.Exit(code=1)

    rates = ExchangeRateTable()
    rates.set_rate(from_currency, to_currency, exchange_rate)

    try:
        result = convert(minor, from_currency, to_currency, rates)
    except MoneyParseError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from e

    if result is None:
        typer.echo(f"Error: no rate for {from_currency} -> {to_currency}", err=True)
        raise typer.Exit(code=1)

    typer.echo(
        f"{format_currency(result.original_amount, result.original_currency)} = "
        f"{format_currency(result.converted_amount, result.target_currency)} "
        f"(rate {result.exchange_rate})"
    )


def main():
    app()


if __name__ == "__main__":
    main()
