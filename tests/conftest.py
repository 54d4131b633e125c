"""Pytest configuration and fixtures."""

import os
import time
from collections.abc import Callable, Generator
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import httpx
import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import ec
from fastapi.testclient import TestClient
from jwt.algorithms import ECAlgorithm

# Key pair standing in for the Supabase project's ES256 signing key
_SIGNING_KEY = ec.generate_private_key(ec.SECP256R1())

# Set test environment variables before importing application modules
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_SECRET_KEY", "test-secret-key")
os.environ["SUPABASE_SIGNING_KEY_JWK"] = ECAlgorithm.to_jwk(_SIGNING_KEY.public_key())
os.environ.setdefault("PUBLIC_ORIGIN", "https://shop.example.com")
os.environ.setdefault("LIQPAY_PUBLIC_KEY", "sandbox_i0000000000")
os.environ.setdefault("LIQPAY_PRIVATE_KEY", "sandbox_private_key")
os.environ.setdefault("CHECKBOX_LOGIN", "")
os.environ.setdefault("CHECKBOX_PASSWORD", "")
os.environ.setdefault("CHECKBOX_LICENSE_KEY", "")
os.environ.setdefault("RESEND_API_KEY", "")

ORDER_ID = "660e8400-e29b-41d4-a716-446655440000"
ORDER_NUMBER = "ORD-20240101-0001"
ADMIN_USER_ID = "770e8400-e29b-41d4-a716-446655440000"


# In-memory Supabase double


class FakeResponse:
    """Mimics the postgrest APIResponse attributes the stores read."""

    def __init__(self, data: Any, count: int | None = None) -> None:
        self.data = data
        self.count = count


class FakeQuery:
    """Chainable query against one in-memory table."""

    def __init__(self, db: "FakeSupabase", table: str) -> None:
        self.db = db
        self.table = table
        self.operation = "select"
        self.payload: dict[str, Any] | None = None
        self.filters: list[Callable[[dict[str, Any]], bool]] = []
        self.order_by: tuple[str, bool] | None = None
        self.limit_to: int | None = None
        self.row_range: tuple[int, int] | None = None
        self.single = False
        self.count: str | None = None

    def select(self, *columns: str, count: str | None = None) -> "FakeQuery":
        self.operation = "select"
        self.count = count
        return self

    def insert(self, data: dict[str, Any]) -> "FakeQuery":
        self.operation = "insert"
        self.payload = data
        return self

    def update(self, data: dict[str, Any]) -> "FakeQuery":
        self.operation = "update"
        self.payload = data
        return self

    def eq(self, column: str, value: Any) -> "FakeQuery":
        self.filters.append(lambda row, c=column, v=value: row.get(c) == v)
        return self

    def neq(self, column: str, value: Any) -> "FakeQuery":
        self.filters.append(lambda row, c=column, v=value: row.get(c) != v)
        return self

    def order(self, column: str, desc: bool = False) -> "FakeQuery":
        self.order_by = (column, desc)
        return self

    def limit(self, size: int) -> "FakeQuery":
        self.limit_to = size
        return self

    def range(self, start: int, end: int) -> "FakeQuery":
        self.row_range = (start, end)
        return self

    def maybe_single(self) -> "FakeQuery":
        self.single = True
        return self

    def execute(self) -> FakeResponse:
        self.db.calls.append((self.table, self.operation, self.payload))
        rows = self.db.tables.setdefault(self.table, [])

        if self.operation == "insert":
            row = {"id": str(uuid4()), **(self.payload or {})}
            rows.append(row)
            return FakeResponse([dict(row)])

        matched = [row for row in rows if all(f(row) for f in self.filters)]

        if self.operation == "update":
            for row in matched:
                row.update(self.payload or {})
            return FakeResponse([dict(row) for row in matched])

        total = len(matched)
        if self.order_by:
            column, desc = self.order_by
            # Ties keep insertion order relative to the sort direction
            indexed = sorted(
                enumerate(matched),
                key=lambda pair: (str(pair[1].get(column) or ""), pair[0]),
                reverse=desc,
            )
            matched = [row for _, row in indexed]
        if self.row_range:
            start, end = self.row_range
            matched = matched[start:end + 1]
        if self.limit_to is not None:
            matched = matched[: self.limit_to]

        if self.single:
            return FakeResponse(dict(matched[0]) if matched else None)
        return FakeResponse([dict(row) for row in matched], count=total if self.count else None)


class FakeSupabase:
    """In-memory stand-in for the Supabase client's table() API."""

    def __init__(self) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = {}
        self.calls: list[tuple[str, str, Any]] = []

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def rows(self, name: str) -> list[dict[str, Any]]:
        return self.tables.setdefault(name, [])

    def writes(self) -> list[tuple[str, str, Any]]:
        return [call for call in self.calls if call[1] != "select"]


@pytest.fixture
def fake_db() -> FakeSupabase:
    """Provide an empty in-memory database."""
    return FakeSupabase()


@pytest.fixture
def sample_order() -> dict[str, Any]:
    """Create a sample pending order. Amounts are kopiykas."""
    return {
        "id": ORDER_ID,
        "order_number": ORDER_NUMBER,
        "status": "pending",
        "payment_status": "pending",
        "total": 150050,
        "currency": "UAH",
        "customer_name": "Olena Kovalenko",
        "customer_email": "olena@example.com",
        "customer_phone": "+380501234567",
        "items": [
            {"product_id": "prod-1", "name": "Ceramic mug", "price": 25025, "quantity": 2},
            {"product_id": "prod-2", "name": "Tea set", "price": 100000, "quantity": 1},
        ],
        "created_at": "2024-01-01T10:00:00+00:00",
        "updated_at": "2024-01-01T10:00:00+00:00",
    }


@pytest.fixture
def seeded_db(fake_db: FakeSupabase, sample_order: dict[str, Any]) -> FakeSupabase:
    """Provide a database holding the sample order and no payment."""
    fake_db.rows("orders").append(dict(sample_order))
    return fake_db


def add_payment(db: FakeSupabase, provider: str = "liqpay", status: str = "pending", **fields: Any) -> dict[str, Any]:
    """Insert a payment row for the sample order."""
    row = {
        "id": str(uuid4()),
        "order_id": ORDER_ID,
        "provider": provider,
        "amount": 150050,
        "currency": "UAH",
        "status": status,
        "transaction_id": None,
        "metadata": None,
        "liqpay_data": None,
        "created_at": "2024-01-01T10:00:00+00:00",
        "updated_at": "2024-01-01T10:00:00+00:00",
        **fields,
    }
    db.rows("payments").append(row)
    return row


@pytest.fixture
def add_payment_row() -> Callable[..., dict[str, Any]]:
    """Expose add_payment to tests."""
    return add_payment


# Settings and provider clients


@pytest.fixture(scope="session")
def test_settings() -> Generator[Any, None, None]:
    """Provide test settings with cleared cache.

    Yields:
        Settings: Test configuration settings.
    """
    from src.core.config import get_settings

    get_settings.cache_clear()
    settings = get_settings()
    yield settings
    get_settings.cache_clear()


@pytest.fixture
def liqpay_client(test_settings: Any) -> Any:
    """Provide a LiqPay client whose HTTP calls fail unless a test mocks them."""
    from src.core.liqpay import LiqPayClient

    def unexpected(request: httpx.Request) -> httpx.Response:
        raise AssertionError(f"Unexpected LiqPay call: {request.url}")

    return LiqPayClient(
        public_key=test_settings.liqpay_public_key,
        private_key=test_settings.liqpay_private_key,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(unexpected)),
    )


@pytest.fixture
def sign_callback(liqpay_client: Any) -> Callable[[dict[str, Any]], dict[str, str]]:
    """Build a signed LiqPay callback form for a payload."""

    def _sign(payload: dict[str, Any]) -> dict[str, str]:
        data = liqpay_client._encode(payload)
        return {"data": data, "signature": liqpay_client._sign(data)}

    return _sign


def make_issued_receipt(receipt_id: str = "rcpt-1", shift_id: str = "shift-1") -> Any:
    """Build a Checkbox IssuedReceipt for mocked sale receipt calls."""
    from src.core.checkbox import IssuedReceipt, Receipt, Shift

    return IssuedReceipt(
        receipt=Receipt(
            id=receipt_id,
            type="SELL",
            status="DONE",
            fiscal_code="TEST-FISCAL-001",
            total_sum=150050,
            receipt_url=f"https://check.checkbox.ua/{receipt_id}",
        ),
        shift=Shift(id=shift_id, status="OPENED", cash_register_id="register-1"),
    )


@pytest.fixture
def mock_checkbox() -> MagicMock:
    """Provide a Checkbox client double with async methods."""
    from src.core.checkbox import CheckboxClient

    checkbox = MagicMock(spec=CheckboxClient)
    checkbox.cash_register_id = "register-1"
    checkbox.create_sale_receipt = AsyncMock(return_value=make_issued_receipt())
    checkbox.get_current_open_shift = AsyncMock(return_value=None)
    checkbox.open_shift = AsyncMock()
    checkbox.close_shift = AsyncMock()
    checkbox.get_cashier_info = AsyncMock(return_value={"id": "cashier-1", "full_name": "Test Cashier"})
    checkbox.get_cash_registers = AsyncMock(return_value=[{"id": "register-1", "fiscal_number": "4000000001"}])
    return checkbox


@pytest.fixture
def order_locks() -> Any:
    """Provide a fresh lock registry per test."""
    from src.core.order_locks import OrderLockRegistry

    return OrderLockRegistry()


@pytest.fixture
def fiscal_service(seeded_db: FakeSupabase, mock_checkbox: MagicMock, test_settings: Any, order_locks: Any) -> Any:
    """Provide a FiscalService over the seeded database."""
    from src.services.fiscal_service import FiscalService

    return FiscalService(seeded_db, mock_checkbox, test_settings, locks=order_locks)


@pytest.fixture
def mock_email_service() -> MagicMock:
    """Provide an email service double."""
    email = MagicMock()
    email.send_order_confirmation = AsyncMock(return_value={"success": True, "email_id": "email-1"})
    return email


@pytest.fixture
def payment_service(
    seeded_db: FakeSupabase,
    liqpay_client: Any,
    fiscal_service: Any,
    test_settings: Any,
    mock_email_service: MagicMock,
    order_locks: Any,
) -> Any:
    """Provide a PaymentService over the seeded database."""
    from src.services.payment_service import PaymentService

    return PaymentService(
        seeded_db,
        liqpay_client,
        fiscal_service,
        test_settings,
        email_service=mock_email_service,
        locks=order_locks,
    )


# Auth


@pytest.fixture
def make_token() -> Callable[..., str]:
    """Issue Supabase-style ES256 tokens signed with the test key."""

    def _make(role: str | None = "admin", expires_in: int = 3600, sub: str = ADMIN_USER_ID) -> str:
        now = int(time.time())
        claims: dict[str, Any] = {
            "sub": sub,
            "email": "admin@example.com",
            "role": "authenticated",
            "aud": "authenticated",
            "iat": now,
            "exp": now + expires_in,
            "app_metadata": {"role": role} if role else {},
        }
        return jwt.encode(claims, _SIGNING_KEY, algorithm="ES256")

    return _make


@pytest.fixture
def admin_headers(make_token: Callable[..., str]) -> dict[str, str]:
    """Authorization header for an admin user."""
    return {"Authorization": f"Bearer {make_token()}"}


# Application


@pytest.fixture
def client(
    payment_service: Any,
    fiscal_service: Any,
    seeded_db: FakeSupabase,
) -> Generator[TestClient, None, None]:
    """Provide a test client wired to the in-memory services.

    Yields:
        TestClient: FastAPI test client.
    """
    from src.api.deps import get_fiscal_service, get_payment_service
    from src.main import app

    app.dependency_overrides[get_payment_service] = lambda: payment_service
    app.dependency_overrides[get_fiscal_service] = lambda: fiscal_service

    with patch("src.core.supabase.get_supabase_client", return_value=seeded_db):
        with TestClient(app) as test_client:
            yield test_client

    app.dependency_overrides.clear()
