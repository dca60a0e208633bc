"""Runtime settings read from the environment (and a .env file, if present)."""

import os
from decimal import Decimal
from pathlib import Path

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, Field, field_validator


class PosSettings(BaseModel):
    """Settings for the point-of-sale CLI.

    Attributes:
        tax_rate: Default tax rate applied when none is given on the command line
        currency: ISO code for cart amounts
        receipts_path: CSV file used by the local receipt store
        api_url: Base URL of the transactions API, if one is configured
        api_key: API key for the transactions API
    """

    tax_rate: Decimal = Field(default=Decimal("0.08"), ge=0, lt=1)
    currency: str = "USD"
    receipts_path: Path = Path("data/receipts.csv")
    api_url: str | None = None
    api_key: str | None = None

    @field_validator("currency")
    @classmethod
    def _upper_currency(cls, value: str) -> str:
        return value.strip().upper()


ENV_VARS = {
    "tax_rate": "POS_TAX_RATE",
    "currency": "POS_CURRENCY",
    "receipts_path": "POS_RECEIPTS_PATH",
    "api_url": "POS_API_URL",
    "api_key": "POS_API_KEY",
}


def load_settings(dotenv: bool = True) -> PosSettings:
    """Build PosSettings from POS_* environment variables.

    Unset or empty variables fall back to the model defaults.

    Raises:
        pydantic.ValidationError: If a variable holds an invalid value
    """
    if dotenv:
        load_dotenv(find_dotenv(usecwd=True))

    values = {}
    for field_name, env_var in ENV_VARS.items():
        value = os.getenv(env_var)
        if value:
            values[field_name] = value
    return PosSettings(**values)
