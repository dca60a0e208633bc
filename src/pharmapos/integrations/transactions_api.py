"""HTTP client for the pharmacy transactions endpoint."""

import logging
from typing import Any

import httpx
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from pharmapos.checkout import GatewayError
from pharmapos.models import TransactionRecord

logger = logging.getLogger(__name__)

TRANSACTIONS_PATH = "/api/pharmacy/transactions"


def _is_retryable_error(exception: BaseException) -> bool:
    """Determine if an exception should trigger a retry.

    Retries on:
    - HTTP 429 (rate limit exceeded)
    - HTTP 503 (service unavailable)
    - Transport errors (connection refused, timeouts, etc.)

    Does NOT retry on other 4xx/5xx responses.
    """
    if isinstance(exception, httpx.TransportError):
        return True

    if isinstance(exception, httpx.HTTPStatusError):
        return exception.response.status_code in (429, 503)

    return False


def record_to_payload(record: TransactionRecord) -> dict[str, Any]:
    """Serialize a record into the JSON body the endpoint expects."""
    settlement = record.settlement
    return {
        "customerId": record.customer_id,
        "customerName": record.customer_name,
        "currency": record.currency,
        "taxRate": str(record.tax_rate),
        "items": [line.model_dump(mode="json") for line in record.items],
        "subtotal": settlement.subtotal,
        "tax": settlement.tax,
        "insuranceAmount": settlement.insurance_credit,
        "totalAmount": settlement.total_due,
        "paymentMethods": [
            {"type": tender.method.value, "amount": tender.amount}
            for tender in record.payments
        ],
        "status": record.status,
        "createdAt": record.created_at.isoformat(),
    }


class TransactionsAPIClient:
    """Persistence gateway backed by the REST transactions endpoint.

    Amounts in the payload are integers in minor units.

    Attributes:
        base_url: Root URL of the API, e.g. ``https://pharmacy.example.com``
        api_key: Optional API key sent as ``X-API-Key``
        timeout: Request timeout in seconds
    """

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        timeout: float = 10.0,
        client: httpx.Client | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._client = client  # Private cache for lazy initialization

    @property
    def client(self) -> httpx.Client:
        """Lazily create and return the HTTP client."""
        if self._client is None:
            headers = {"Accept": "application/json"}
            if self.api_key:
                headers["X-API-Key"] = self.api_key
            self._client = httpx.Client(
                base_url=self.base_url, headers=headers, timeout=self.timeout
            )
        return self._client

    @retry(
        retry=retry_if_exception(_is_retryable_error),
        stop=stop_after_attempt(5),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    def _post(self, payload: dict[str, Any]) -> dict[str, Any]:
        response = self.client.post(TRANSACTIONS_PATH, json=payload)
        response.raise_for_status()
        return response.json()

    def create_transaction(self, record: TransactionRecord) -> str:
        """Create the transaction remotely and return its receipt number.

        Raises:
            GatewayError: If the request fails after retries or the response
                carries no receipt number
        """
        try:
            data = self._post(record_to_payload(record))
        except httpx.HTTPStatusError as e:
            raise GatewayError(
                f"Transactions API returned {e.response.status_code}: {e.response.text}"
            ) from e
        except httpx.HTTPError as e:
            raise GatewayError(f"Transactions API request failed: {e}") from e
        except ValueError as e:
            raise GatewayError("Transactions API returned invalid JSON") from e

        receipt_number = data.get("receiptNumber") if isinstance(data, dict) else None
        if not receipt_number:
            raise GatewayError("Transactions API response has no receiptNumber")
        return str(receipt_number)

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
