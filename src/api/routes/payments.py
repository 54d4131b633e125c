"""Payment API routes."""

import logging

from fastapi import APIRouter, status

from src.api.deps import AdminUser, PaymentServiceDep
from src.schemas.payment import (
    PaymentCreateRequest,
    PaymentResponse,
    PaymentStartResponse,
    PaymentStatusResponse,
    RefundResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post(
    "",
    response_model=PaymentStartResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Start payment",
    description="Creates the order's payment. For LiqPay the response carries the checkout URL.",
)
async def start_payment(
    data: PaymentCreateRequest,
    service: PaymentServiceDep,
) -> PaymentStartResponse:
    """Start a LiqPay or cash on delivery payment for an order.

    Repeating the call returns the payment created the first time.

    Raises:
        NotFoundError: 404 if the order does not exist.
        ConflictError: 409 if the order is cancelled or refunded.
        ServiceUnavailableError: 503 if LiqPay is not configured.
    """
    result = await service.start_payment(data.order_id, data.method)
    return PaymentStartResponse(
        payment=PaymentResponse.model_validate(result["payment"]),
        checkout_url=result["checkout_url"],
        created=result["created"],
    )


@router.get(
    "/orders/{order_id}",
    response_model=PaymentResponse,
    summary="Get payment",
    description="Returns the payment of an order.",
)
async def get_payment(order_id: str, service: PaymentServiceDep) -> PaymentResponse:
    """Get the payment of an order.

    Raises:
        NotFoundError: 404 if no payment was started for the order.
    """
    return PaymentResponse.model_validate(service.get_payment_for_order(order_id))


@router.post(
    "/orders/{order_id}/check-status",
    response_model=PaymentStatusResponse,
    summary="Check payment status",
    description="Polls LiqPay for the order's payment status and applies it.",
)
async def check_payment_status(order_id: str, service: PaymentServiceDep) -> PaymentStatusResponse:
    """Reconcile an order's payment with LiqPay.

    Used when a callback was lost. Cash on delivery payments are returned
    as stored.
    """
    result = await service.check_status(order_id)
    return PaymentStatusResponse(
        payment_status=result.payment_status,
        order_status=result.order_status,
        changed=result.changed,
        message=result.message,
        details=result.details,
    )


@router.post(
    "/orders/{order_id}/refund",
    response_model=RefundResponse,
    summary="Refund payment",
    description="Refunds a completed payment. Requires admin role.",
)
async def refund_payment(
    order_id: str,
    admin: AdminUser,
    service: PaymentServiceDep,
) -> RefundResponse:
    """Refund a completed payment.

    Raises:
        ConflictError: 409 if the payment is not completed or LiqPay
            declined the refund.
        ExternalServiceError: 502 if LiqPay could not be reached.
    """
    logger.info("Refund of order %s requested by %s", order_id, admin.user_id)
    outcome = await service.refund(order_id)
    return RefundResponse(
        message=outcome.message,
        payment=PaymentResponse.model_validate(outcome.payment),
        order_status=outcome.order["status"],
    )
