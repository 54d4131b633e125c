"""Checkbox fiscal receipt (software RRO) client.

Checkbox is the cloud cash register Ukrainian law requires for card sales.
Receipts can only be issued inside an open shift, and every call needs a
cashier token plus the cash register license key.
Docs: https://dev.checkbox.ua/doc/api/
"""

import logging
import time
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Callable, TypeVar

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError

from src.core.config import get_settings

logger = logging.getLogger(__name__)

PRODUCTION_URL = "https://api.checkbox.ua/api/v1"
DEV_URL = "https://dev-api.checkbox.ua/api/v1"

# Re-authenticate when the token has less than this left
TOKEN_REFRESH_MARGIN_SECONDS = 60
# Used when the sign-in response carries no expiry
DEFAULT_TOKEN_TTL_SECONDS = 3600

OPEN_SHIFT_STATUS = "OPENED"


class CheckboxError(Exception):
    """Raised when a Checkbox call fails at the transport, auth or API level."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class Shift(BaseModel):
    """Cash register shift as returned by Checkbox."""

    model_config = ConfigDict(extra="allow")

    id: str
    serial: int | None = None
    status: str
    opened_at: str | None = None
    closed_at: str | None = None
    cash_register_id: str | None = None
    balance: dict[str, Any] | None = None

    @property
    def is_open(self) -> bool:
        return self.status == OPEN_SHIFT_STATUS


class Receipt(BaseModel):
    """Sale or return receipt as returned by Checkbox."""

    model_config = ConfigDict(extra="allow")

    id: str
    type: str | None = None
    serial: int | None = None
    status: str | None = None
    fiscal_code: str | None = None
    fiscal_date: str | None = None
    total_sum: int | None = None
    total_payment: int | None = None
    receipt_url: str | None = None
    created_at: str | None = None


ModelT = TypeVar("ModelT", bound=BaseModel)


def _snippet(body: Any) -> str:
    return str(body)[:300]


def _expect_object(body: Any, what: str) -> dict[str, Any]:
    """Return body if it is a JSON object, else raise CheckboxError."""
    if not isinstance(body, dict):
        raise CheckboxError(f"Unexpected Checkbox {what} response: {_snippet(body)}")
    return body


def _parse(model: type[ModelT], body: Any, what: str) -> ModelT:
    """Validate a Checkbox response body as model.

    The raw body is kept in the error message: a malformed receipt response
    may still mean Checkbox fiscalized the sale.
    """
    data = _expect_object(body, what)
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise CheckboxError(
            f"Malformed Checkbox {what} response ({e.error_count()} invalid fields): {_snippet(data)}"
        ) from e


@dataclass(frozen=True)
class IssuedReceipt:
    """A receipt together with the shift it was issued in."""

    receipt: Receipt
    shift: Shift | None


class CheckboxClient:
    """Client for the Checkbox cashier API.

    Token handling is internal: the client signs in on first use and again
    whenever the token is within a minute of expiring.
    """

    def __init__(
        self,
        login: str,
        password: str,
        license_key: str,
        cash_register_id: str | None = None,
        production: bool = False,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 15.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._login = login
        self._password = password
        self._license_key = license_key
        self.cash_register_id = cash_register_id or None
        self.base_url = PRODUCTION_URL if production else DEV_URL
        self._http = http_client or httpx.AsyncClient(timeout=timeout)
        self._clock = clock
        self._access_token: str | None = None
        self._token_expires_at: float = 0.0

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._http.aclose()

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.reason_phrase or f"HTTP {response.status_code}"
        if isinstance(body, dict):
            return str(body.get("message") or body.get("detail") or response.reason_phrase)
        return response.reason_phrase or f"HTTP {response.status_code}"

    def _token_is_fresh(self) -> bool:
        return (
            self._access_token is not None
            and self._clock() < self._token_expires_at - TOKEN_REFRESH_MARGIN_SECONDS
        )

    async def _authenticate(self) -> str:
        if self._token_is_fresh():
            return self._access_token  # type: ignore[return-value]

        try:
            response = await self._http.post(
                f"{self.base_url}/cashier/signin",
                json={"login": self._login, "password": self._password},
            )
        except httpx.HTTPError as e:
            raise CheckboxError(f"Checkbox authentication failed: {e}") from e

        if response.is_error:
            raise CheckboxError(
                f"Checkbox authentication failed: {self._error_message(response)}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise CheckboxError(
                "Checkbox authentication returned a non-JSON response", status_code=response.status_code
            ) from e

        token = data.get("access_token") if isinstance(data, dict) else None
        if not token:
            raise CheckboxError(
                "Checkbox authentication response has no access_token", status_code=response.status_code
            )

        self._access_token = token
        try:
            # Checkbox reports the expiry as epoch milliseconds
            self._token_expires_at = float(data["expires_at"]) / 1000
        except (KeyError, TypeError, ValueError):
            self._token_expires_at = self._clock() + DEFAULT_TOKEN_TTL_SECONDS
        logger.info("Checkbox cashier signed in")
        return self._access_token

    async def _request(self, method: str, endpoint: str, json_body: Any = None) -> Any:
        token = await self._authenticate()
        headers = {
            "Authorization": f"Bearer {token}",
            "X-License-Key": self._license_key,
        }
        if self.cash_register_id:
            headers["X-Device-Id"] = self.cash_register_id

        try:
            response = await self._http.request(
                method,
                f"{self.base_url}{endpoint}",
                json=json_body,
                headers=headers,
            )
        except httpx.HTTPError as e:
            raise CheckboxError(f"Checkbox request {method} {endpoint} failed: {e}") from e

        if response.status_code == httpx.codes.UNAUTHORIZED:
            self._access_token = None

        if response.is_error:
            raise CheckboxError(
                f"Checkbox API error: {self._error_message(response)}",
                status_code=response.status_code,
            )

        if "application/json" in response.headers.get("content-type", ""):
            try:
                return response.json()
            except ValueError as e:
                raise CheckboxError(
                    f"Checkbox returned invalid JSON for {method} {endpoint}", status_code=response.status_code
                ) from e
        return response.text

    async def get_cashier_info(self) -> dict[str, Any]:
        """Get the signed-in cashier's profile."""
        return _expect_object(await self._request("GET", "/cashier/me"), "cashier")

    async def get_current_open_shift(self) -> Shift | None:
        """Get the currently open shift.

        Returns:
            Shift | None: None when no shift is open.

        Raises:
            CheckboxError: If the shift list cannot be fetched.
        """
        data = _expect_object(await self._request("GET", "/shifts"), "shift list")
        results = data.get("results") or []
        if not isinstance(results, list):
            raise CheckboxError(f"Unexpected Checkbox shift list response: {_snippet(data)}")
        for item in results:
            if isinstance(item, dict) and item.get("status") == OPEN_SHIFT_STATUS:
                return _parse(Shift, item, "shift")
        return None

    async def open_shift(self) -> Shift:
        """Open a new shift.

        Checkbox does not make this idempotent; check
        get_current_open_shift() first or use ensure_open_shift().
        """
        data = await self._request("POST", "/shifts", json_body={})
        shift = _parse(Shift, data, "shift")
        logger.info("Checkbox shift opened: %s", shift.id)
        return shift

    async def ensure_open_shift(self) -> Shift:
        """Return the open shift, opening one if needed.

        If the open call fails because a concurrent caller opened a shift
        first, the current shift is fetched again and used.
        """
        shift = await self.get_current_open_shift()
        if shift is not None:
            return shift

        try:
            return await self.open_shift()
        except CheckboxError as e:
            logger.warning("Opening shift failed (%s), checking for a shift opened concurrently", e.message)
            shift = await self.get_current_open_shift()
            if shift is None:
                raise
            return shift

    async def close_shift(self) -> Shift:
        """Close the currently open shift.

        Raises:
            CheckboxError: If no shift is open.
        """
        current = await self.get_current_open_shift()
        if current is None:
            raise CheckboxError("No open shift found")

        data = await self._request("POST", f"/shifts/{current.id}/close", json_body={})
        shift = _parse(Shift, data, "shift")
        logger.info("Checkbox shift closed: %s", shift.id)
        return shift

    async def _issue_receipt(
        self,
        endpoint: str,
        goods: list[dict[str, Any]],
        payments: list[dict[str, Any]],
        delivery: dict[str, str] | None,
        order_ref: str | None,
        open_shift_if_needed: bool,
    ) -> IssuedReceipt:
        if open_shift_if_needed:
            shift = await self.ensure_open_shift()
        else:
            shift = await self.get_current_open_shift()

        body: dict[str, Any] = {"goods": goods, "payments": payments}
        if delivery:
            body["delivery"] = delivery
        if order_ref:
            body["order_id"] = order_ref

        data = await self._request("POST", endpoint, json_body=body)
        return IssuedReceipt(receipt=_parse(Receipt, data, "receipt"), shift=shift)

    async def create_sale_receipt(
        self,
        goods: list[dict[str, Any]],
        payments: list[dict[str, Any]],
        delivery: dict[str, str] | None = None,
        order_ref: str | None = None,
        *,
        open_shift_if_needed: bool = True,
    ) -> IssuedReceipt:
        """Issue a sale receipt.

        With open_shift_if_needed (the default) a shift is opened first when
        none is open, so a paid order is not left unfiscalized because nobody
        opened the register. All amounts are minor units; each line's cost
        must equal price * quantity.

        Args:
            goods: Line items (code, name, price, quantity, cost, tax).
            payments: Payment entries, e.g. [{"type": "CASHLESS", "value": 50000}].
            delivery: Optional {"email": ..., "phone": ...} to send the receipt to.
            order_ref: External order reference.
            open_shift_if_needed: Open a shift when none is open.

        Returns:
            IssuedReceipt: The receipt and the shift it belongs to.
        """
        return await self._issue_receipt(
            "/receipts/sell", goods, payments, delivery, order_ref, open_shift_if_needed
        )

    async def create_return_receipt(
        self,
        goods: list[dict[str, Any]],
        payments: list[dict[str, Any]],
        delivery: dict[str, str] | None = None,
        order_ref: str | None = None,
        *,
        open_shift_if_needed: bool = True,
    ) -> IssuedReceipt:
        """Issue a return receipt. Same contract as create_sale_receipt()."""
        return await self._issue_receipt(
            "/receipts/return", goods, payments, delivery, order_ref, open_shift_if_needed
        )

    async def get_receipt(self, receipt_id: str) -> Receipt:
        """Fetch a receipt by Checkbox id."""
        data = await self._request("GET", f"/receipts/{receipt_id}")
        return _parse(Receipt, data, "receipt")

    async def get_cash_registers(self) -> list[dict[str, Any]]:
        """List the cash registers available to the cashier."""
        data = _expect_object(await self._request("GET", "/cash-registers"), "cash register list")
        return data.get("results") or []

    async def get_cash_register(self, cash_register_id: str | None = None) -> dict[str, Any]:
        """Fetch one cash register, defaulting to the configured one."""
        register_id = cash_register_id or self.cash_register_id
        if not register_id:
            raise CheckboxError("Cash register ID not provided")
        return _expect_object(await self._request("GET", f"/cash-registers/{register_id}"), "cash register")


@lru_cache
def get_checkbox_client() -> CheckboxClient | None:
    """Get the shared Checkbox client built from settings.

    Returns:
        CheckboxClient | None: None when Checkbox credentials are not configured.
    """
    settings = get_settings()
    if not settings.is_checkbox_configured:
        logger.warning("Checkbox credentials not configured. Fiscal receipts will not be issued.")
        return None
    return CheckboxClient(
        login=settings.checkbox_login,
        password=settings.checkbox_password,
        license_key=settings.checkbox_license_key,
        cash_register_id=settings.checkbox_cash_register_id,
        production=settings.checkbox_production,
        timeout=settings.external_http_timeout_seconds,
    )


async def close_checkbox_client() -> None:
    """Close the shared client if one was created."""
    if get_checkbox_client.cache_info().currsize:
        client = get_checkbox_client()
        if client is not None:
            await client.aclose()
        get_checkbox_client.cache_clear()
