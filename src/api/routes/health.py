"""Liveness and readiness endpoints."""

import time

from fastapi import APIRouter, Response, status

from src.api.middleware.latency_logging import get_latency_stats
from src.core.config import get_settings
from src.core.supabase import check_database_connection
from src.schemas.common import CheckResult, HealthResponse, HealthStatus, ProviderStatus, ReadinessResponse

router = APIRouter(tags=["health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Liveness check",
    description="Reports that the process is up, which providers are configured and request latency.",
)
async def health_check() -> HealthResponse:
    """Return liveness with provider configuration and latency stats.

    Always 200 while the process runs; a missing provider is reported, not
    treated as unhealthy.
    """
    settings = get_settings()
    return HealthResponse(
        status=HealthStatus.HEALTHY,
        providers=ProviderStatus(
            liqpay=settings.is_liqpay_configured,
            liqpay_sandbox=settings.liqpay_sandbox,
            checkbox=settings.is_checkbox_configured,
            email=bool(settings.resend_api_key),
        ),
        latency=get_latency_stats().get_stats(),
    )


@router.get(
    "/health/ready",
    response_model=ReadinessResponse,
    responses={503: {"description": "Database unreachable"}},
    summary="Readiness check",
    description="Checks that the orders, payments and fiscal_receipts tables can be queried.",
)
async def readiness_check(response: Response) -> ReadinessResponse:
    """Check that the database answers.

    LiqPay and Checkbox are not checked: payments and receipts degrade on
    their own when a provider is down.
    """
    start_time = time.perf_counter()
    db_result = await check_database_connection()
    latency_ms = (time.perf_counter() - start_time) * 1000

    checks = [
        CheckResult(
            name="database",
            healthy=db_result["healthy"],
            latency_ms=round(latency_ms, 2),
            error=db_result.get("error"),
        )
    ]

    ready = all(check.healthy for check in checks)
    if not ready:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return ReadinessResponse(status=HealthStatus.HEALTHY if ready else HealthStatus.UNHEALTHY, checks=checks)
