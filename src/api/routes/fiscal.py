"""Fiscal receipt and cash register shift API routes (admin only)."""

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Query

from src.api.deps import AdminUser, FiscalServiceDep
from src.models.fiscal import FiscalReceiptStatus
from src.schemas.fiscal import (
    CurrentShiftResponse,
    FiscalizeResponse,
    FiscalReceiptListResponse,
    FiscalReceiptResponse,
    FiscalShiftListResponse,
    FiscalShiftRecord,
    ShiftActionResponse,
    ShiftInfo,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/fiscal", tags=["fiscal"])


def _actor(admin: AdminUser) -> str:
    return admin.email or str(admin.user_id)


@router.post(
    "/orders/{order_id}/receipt",
    response_model=FiscalizeResponse,
    summary="Create fiscal receipt",
    description="Issues a fiscal receipt for a completed LiqPay payment. Returns the existing receipt if there is one.",
)
async def create_receipt(
    order_id: str,
    admin: AdminUser,
    service: FiscalServiceDep,
) -> FiscalizeResponse:
    """Fiscalize an order.

    A Checkbox failure is recorded as an error receipt and returned with
    success=False; calling again retries it.

    Raises:
        NotFoundError: 404 if the order or its payment does not exist.
        ConflictError: 409 if the payment is not a completed LiqPay payment.
    """
    logger.info("Fiscalization of order %s requested by %s", order_id, _actor(admin))
    result = await service.fiscalize(order_id)
    return FiscalizeResponse(
        success=result.error is None,
        created=result.created,
        receipt=FiscalReceiptResponse.model_validate(result.receipt),
        error=result.error,
    )


@router.get(
    "/orders/{order_id}/receipt",
    response_model=FiscalReceiptResponse,
    summary="Get order receipt",
)
async def get_order_receipt(
    order_id: str,
    admin: AdminUser,
    service: FiscalServiceDep,
) -> FiscalReceiptResponse:
    """Get the receipt of record for an order, or its latest error row."""
    return FiscalReceiptResponse.model_validate(service.get_receipt_for_order(order_id))


@router.get(
    "/receipts",
    response_model=FiscalReceiptListResponse,
    summary="List receipts",
)
async def list_receipts(
    admin: AdminUser,
    service: FiscalServiceDep,
    status: FiscalReceiptStatus | None = None,
    order_number: str | None = None,
    page: Annotated[int, Query(ge=1)] = 1,
    page_size: Annotated[int, Query(ge=1, le=100)] = 20,
) -> FiscalReceiptListResponse:
    """List receipts, newest first."""
    result = service.list_receipts(
        status=status.value if status else None,
        order_number=order_number,
        page=page,
        page_size=page_size,
    )
    return FiscalReceiptListResponse.model_validate(result)


@router.get(
    "/shifts/current",
    response_model=CurrentShiftResponse,
    summary="Get current shift",
)
async def get_current_shift(admin: AdminUser, service: FiscalServiceDep) -> CurrentShiftResponse:
    """Get the shift currently open in Checkbox."""
    current = await service.get_current_shift()
    if current is None:
        return CurrentShiftResponse(is_open=False)

    record = current["record"]
    return CurrentShiftResponse(
        is_open=True,
        shift=ShiftInfo.model_validate(current["shift"]),
        record=FiscalShiftRecord.model_validate(record) if record else None,
    )


@router.post(
    "/shifts/open",
    response_model=ShiftActionResponse,
    summary="Open shift",
)
async def open_shift(admin: AdminUser, service: FiscalServiceDep) -> ShiftActionResponse:
    """Open a cash register shift.

    Raises:
        ConflictError: 409 if a shift is already open.
    """
    record, shift = await service.open_shift(opened_by=_actor(admin))
    return ShiftActionResponse(
        shift=ShiftInfo.model_validate(shift),
        record=FiscalShiftRecord.model_validate(record),
    )


@router.post(
    "/shifts/close",
    response_model=ShiftActionResponse,
    summary="Close shift",
)
async def close_shift(admin: AdminUser, service: FiscalServiceDep) -> ShiftActionResponse:
    """Close the open cash register shift.

    Raises:
        ConflictError: 409 if no shift is open.
    """
    record, shift = await service.close_shift(closed_by=_actor(admin))
    return ShiftActionResponse(
        shift=ShiftInfo.model_validate(shift),
        record=FiscalShiftRecord.model_validate(record),
    )


@router.get(
    "/shifts",
    response_model=FiscalShiftListResponse,
    summary="List shifts",
)
async def list_shifts(
    admin: AdminUser,
    service: FiscalServiceDep,
    page: Annotated[int, Query(ge=1)] = 1,
    page_size: Annotated[int, Query(ge=1, le=100)] = 20,
) -> FiscalShiftListResponse:
    """List locally recorded shifts, newest first."""
    return FiscalShiftListResponse.model_validate(service.list_shifts(page=page, page_size=page_size))


@router.get("/cashier", summary="Get cashier info")
async def get_cashier(admin: AdminUser, service: FiscalServiceDep) -> dict[str, Any]:
    """Get the Checkbox cashier profile."""
    return await service.get_cashier_info()


@router.get("/cash-registers", summary="List cash registers")
async def list_cash_registers(admin: AdminUser, service: FiscalServiceDep) -> dict[str, Any]:
    """List the cash registers available to the cashier."""
    return {"cash_registers": await service.get_cash_registers()}
