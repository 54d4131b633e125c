"""LiqPay payment gateway client.

LiqPay signs every request and callback the same way: the JSON payload is
base64 encoded into ``data`` and ``signature`` is
``base64(sha1(private_key + data + private_key))``.
Docs: https://www.liqpay.ua/documentation/en/api/
"""

import base64
import binascii
import hashlib
import hmac
import json
import logging
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any
from urllib.parse import quote

import httpx

from src.core.config import get_settings
from src.core.money import major_to_minor, minor_to_major

logger = logging.getLogger(__name__)

API_URL = "https://www.liqpay.ua/api/"
API_VERSION = 3

# Provider statuses that mean a refund went through
REFUND_SUCCESS_STATUSES = frozenset({"reversed", "success"})


class LiqPayError(Exception):
    """Raised when LiqPay cannot be reached or answers with an HTTP error."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)


@dataclass(frozen=True)
class CheckoutRequest:
    """Signed checkout request ready to hand to the customer's browser."""

    data: str
    signature: str
    redirect_url: str


@dataclass(frozen=True)
class DecodedStatus:
    """Payment status reported by LiqPay, from a callback or a status query.

    ``status`` is the provider's raw string; map it before use.
    """

    status: str
    order_id: str | None = None
    payment_id: int | None = None
    transaction_id: int | None = None
    amount_minor: int | None = None
    currency: str | None = None
    err_code: str | None = None
    err_description: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "DecodedStatus":
        """Build from a decoded LiqPay payload, converting the amount to minor units."""
        amount_minor = None
        if payload.get("amount") is not None:
            try:
                amount_minor = major_to_minor(payload["amount"])
            except ValueError:
                logger.warning("Ignoring unparseable LiqPay amount: %r", payload["amount"])
        return cls(
            status=str(payload.get("status") or ""),
            order_id=str(payload["order_id"]) if payload.get("order_id") is not None else None,
            payment_id=payload.get("payment_id"),
            transaction_id=payload.get("transaction_id"),
            amount_minor=amount_minor,
            currency=payload.get("currency"),
            err_code=payload.get("err_code"),
            err_description=payload.get("err_description"),
            raw=payload,
        )

    @property
    def external_id(self) -> str | None:
        """Provider transaction reference stored on the payment row."""
        if self.payment_id is not None:
            return str(self.payment_id)
        if self.transaction_id is not None:
            return str(self.transaction_id)
        return None


@dataclass(frozen=True)
class RefundResult:
    """Outcome of a refund request. Business rejections are not exceptions."""

    success: bool
    status: str
    error_code: str | None = None
    error_description: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)


class LiqPayClient:
    """Client for the LiqPay v3 API.

    Credentials stay inside the client; callers only ever see signed,
    encoded payloads.
    """

    def __init__(
        self,
        public_key: str,
        private_key: str,
        sandbox: bool = False,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 15.0,
        api_url: str = API_URL,
    ) -> None:
        self._public_key = public_key
        self._private_key = private_key
        self.sandbox = sandbox
        self._api_url = api_url
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._http.aclose()

    def _sign(self, data: str) -> str:
        digest = hashlib.sha1(f"{self._private_key}{data}{self._private_key}".encode("utf-8")).digest()
        return base64.b64encode(digest).decode("ascii")

    @staticmethod
    def _encode(payload: dict[str, Any]) -> str:
        return base64.b64encode(json.dumps(payload, ensure_ascii=False).encode("utf-8")).decode("ascii")

    @staticmethod
    def _decode(data: str) -> dict[str, Any]:
        decoded = json.loads(base64.b64decode(data, validate=True).decode("utf-8"))
        if not isinstance(decoded, dict):
            raise ValueError("LiqPay payload is not a JSON object")
        return decoded

    def verify_signature(self, data: str, signature: str) -> bool:
        """Check a data/signature pair against the private key."""
        expected = self._sign(data)
        return hmac.compare_digest(expected.encode("ascii"), signature.encode("utf-8"))

    def create_checkout(
        self,
        order_ref: str,
        amount_minor: int,
        description: str,
        *,
        currency: str = "UAH",
        email: str | None = None,
        phone: str | None = None,
        result_url: str | None = None,
        server_url: str | None = None,
    ) -> CheckoutRequest:
        """Build a signed checkout request for an order.

        No network call is made. The caller must invoke this at most once per
        order and persist the result.

        Args:
            order_ref: Order number LiqPay will echo back in callbacks.
            amount_minor: Amount in minor units; sent to LiqPay in major units.
            description: Payment description shown to the customer.
            currency: ISO currency code.
            email: Optional customer email.
            phone: Optional customer phone.
            result_url: Where LiqPay sends the customer after paying.
            server_url: Where LiqPay posts status callbacks.

        Returns:
            CheckoutRequest: Encoded data, signature and redirect URL.
        """
        payload: dict[str, Any] = {
            "version": API_VERSION,
            "public_key": self._public_key,
            "action": "pay",
            "amount": minor_to_major(amount_minor),
            "currency": currency,
            "description": description,
            "order_id": order_ref,
        }
        if self.sandbox:
            payload["sandbox"] = 1
        if result_url:
            payload["result_url"] = result_url
        if server_url:
            payload["server_url"] = server_url
        if email:
            payload["email"] = email
        if phone:
            payload["phone"] = phone

        data = self._encode(payload)
        signature = self._sign(data)
        redirect_url = (
            f"{self._api_url}{API_VERSION}/checkout"
            f"?data={quote(data, safe='')}&signature={quote(signature, safe='')}"
        )
        return CheckoutRequest(data=data, signature=signature, redirect_url=redirect_url)

    def verify_and_decode_webhook(self, data: str, signature: str) -> DecodedStatus | None:
        """Verify a callback and decode its payload.

        Returns:
            DecodedStatus | None: None when the signature does not match or the
            payload cannot be decoded. Nothing from an unverified payload is
            returned.
        """
        if not self.verify_signature(data, signature):
            logger.warning("LiqPay callback signature mismatch")
            return None

        try:
            payload = self._decode(data)
            return DecodedStatus.from_payload(payload)
        except (binascii.Error, UnicodeDecodeError, ValueError) as e:
            logger.warning("LiqPay callback with valid signature could not be decoded: %s", str(e))
            return None

    async def _request(self, payload: dict[str, Any]) -> dict[str, Any]:
        data = self._encode(payload)
        form = {"data": data, "signature": self._sign(data)}
        try:
            response = await self._http.post(f"{self._api_url}request", data=form)
        except httpx.HTTPError as e:
            raise LiqPayError(f"LiqPay request failed: {e}") from e

        if response.is_error:
            raise LiqPayError(
                f"LiqPay returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            result = response.json()
        except ValueError as e:
            raise LiqPayError("LiqPay returned a non-JSON response", status_code=response.status_code) from e
        if not isinstance(result, dict):
            raise LiqPayError("LiqPay returned an unexpected response", status_code=response.status_code)
        return result

    async def query_status(self, order_ref: str) -> DecodedStatus:
        """Ask LiqPay for the current status of an order's payment.

        Raises:
            LiqPayError: If the request fails at the transport or HTTP level.
        """
        result = await self._request(
            {
                "version": API_VERSION,
                "public_key": self._public_key,
                "action": "status",
                "order_id": order_ref,
            }
        )
        logger.info("LiqPay status for %s: %s", order_ref, result.get("status"))
        return DecodedStatus.from_payload(result)

    async def refund(self, order_ref: str, amount_minor: int) -> RefundResult:
        """Refund an order's payment.

        Raises:
            LiqPayError: If the request fails at the transport or HTTP level.
                A refund LiqPay declines is returned with success=False.
        """
        result = await self._request(
            {
                "version": API_VERSION,
                "public_key": self._public_key,
                "action": "refund",
                "order_id": order_ref,
                "amount": minor_to_major(amount_minor),
            }
        )
        status = str(result.get("status") or "")
        success = status in REFUND_SUCCESS_STATUSES
        if not success:
            logger.warning(
                "LiqPay refused refund for %s: %s %s",
                order_ref,
                status,
                result.get("err_description"),
            )
        return RefundResult(
            success=success,
            status=status,
            error_code=result.get("err_code"),
            error_description=result.get("err_description"),
            raw=result,
        )


@lru_cache
def get_liqpay_client() -> LiqPayClient | None:
    """Get the shared LiqPay client built from settings.

    Returns:
        LiqPayClient | None: None when LiqPay keys are not configured.
    """
    settings = get_settings()
    if not settings.is_liqpay_configured:
        logger.warning("LiqPay keys not configured. Online payments will not work.")
        return None
    return LiqPayClient(
        public_key=settings.liqpay_public_key,
        private_key=settings.liqpay_private_key,
        sandbox=settings.liqpay_sandbox,
        timeout=settings.external_http_timeout_seconds,
    )


async def close_liqpay_client() -> None:
    """Close the shared client if one was created."""
    if get_liqpay_client.cache_info().currsize:
        client = get_liqpay_client()
        if client is not None:
            await client.aclose()
        get_liqpay_client.cache_clear()
