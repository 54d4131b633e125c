"""Webhook API routes for payment provider callbacks."""

import logging
from typing import Annotated

from fastapi import APIRouter, Form, status

from src.api.deps import PaymentServiceDep
from src.api.middleware.error_handler import BadRequestError
from src.schemas.fiscal import FiscalReceiptResponse
from src.schemas.payment import WebhookAckResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post(
    "/liqpay",
    response_model=WebhookAckResponse,
    status_code=status.HTTP_200_OK,
    summary="Handle LiqPay callbacks",
    description="Receives LiqPay server-to-server status callbacks. Requires a valid signature.",
)
async def liqpay_webhook(
    service: PaymentServiceDep,
    data: Annotated[str, Form()] = "",
    signature: Annotated[str, Form()] = "",
) -> WebhookAckResponse:
    """Handle a LiqPay status callback.

    The payload is verified before anything is read or written. Replays of
    a callback that was already applied are acknowledged without changes.
    When the payment is completed a fiscal receipt is issued; a Checkbox
    failure is recorded as an error receipt and does not fail the callback.

    Args:
        service: Payment service.
        data: Base64 encoded JSON payload.
        signature: base64(sha1(private_key + data + private_key)).

    Returns:
        WebhookAckResponse: Acknowledgement with the resulting statuses.

    Raises:
        BadRequestError: 400 if a field is missing or the signature is invalid.
        NotFoundError: 404 if the order or its payment does not exist.
    """
    if not data or not signature:
        logger.warning("LiqPay callback without data or signature")
        raise BadRequestError("Missing data or signature")

    outcome = await service.handle_webhook(data, signature)
    logger.info(
        "Processed LiqPay callback for order %s: payment=%s applied=%s",
        outcome.order_number,
        outcome.payment_status.value,
        outcome.applied,
    )

    receipt = None
    if outcome.receipt is not None:
        receipt = FiscalReceiptResponse.model_validate(outcome.receipt.receipt)

    return WebhookAckResponse(
        order_number=outcome.order_number,
        payment_status=outcome.payment_status,
        order_status=outcome.order_status,
        receipt=receipt,
    )
