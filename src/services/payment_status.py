"""Mapping of LiqPay statuses onto internal payment statuses."""

from src.models.payment import PaymentStatus

# Every other provider status (wait_secure, processing, sandbox, ...) is pending
PROVIDER_STATUS_MAP: dict[str, PaymentStatus] = {
    "success": PaymentStatus.COMPLETED,
    "failure": PaymentStatus.FAILED,
    "error": PaymentStatus.FAILED,
    "reversed": PaymentStatus.REFUNDED,
}

ALLOWED_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.COMPLETED, PaymentStatus.FAILED}),
    PaymentStatus.COMPLETED: frozenset({PaymentStatus.REFUNDED}),
    PaymentStatus.FAILED: frozenset(),
    PaymentStatus.REFUNDED: frozenset(),
}


def map_provider_status(raw_status: str | None) -> PaymentStatus:
    """Map a raw LiqPay status string to a PaymentStatus."""
    return PROVIDER_STATUS_MAP.get((raw_status or "").strip().lower(), PaymentStatus.PENDING)


def is_valid_transition(current: PaymentStatus, new: PaymentStatus) -> bool:
    """Check whether a payment may move from current to new."""
    return new in ALLOWED_TRANSITIONS[current]
