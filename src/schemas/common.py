"""Schemas shared by the health endpoints and the error middleware."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class HealthStatus(str, Enum):
    """Health check status values."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


class ProviderStatus(BaseModel):
    """Which payment and fiscal providers are configured."""

    liqpay: bool = Field(description="LiqPay keys are set")
    liqpay_sandbox: bool = Field(description="LiqPay runs in sandbox mode")
    checkbox: bool = Field(description="Checkbox credentials are set")
    email: bool = Field(description="Order confirmation emails are enabled")


class HealthResponse(BaseModel):
    """Liveness response. Never queries the database or the providers."""

    status: HealthStatus = Field(description="Current health status")
    timestamp: datetime = Field(default_factory=_utcnow, description="Check timestamp")
    version: str = Field(default="0.1.0", description="API version")
    providers: ProviderStatus | None = Field(default=None, description="Provider configuration")
    latency: dict[str, float] | None = Field(default=None, description="Aggregated request latency since startup")


class CheckResult(BaseModel):
    """Result of one readiness check."""

    name: str = Field(description="Name of the dependency being checked")
    healthy: bool = Field(description="Whether the dependency is healthy")
    latency_ms: float | None = Field(default=None, description="Response time in milliseconds")
    error: str | None = Field(default=None, description="Error message if unhealthy")


class ReadinessResponse(BaseModel):
    status: HealthStatus = Field(description="Overall readiness status")
    timestamp: datetime = Field(default_factory=_utcnow, description="Check timestamp")
    checks: list[CheckResult] = Field(default_factory=list, description="Individual check results")


class ErrorDetail(BaseModel):
    """One entry of ErrorResponse.details, e.g. a gateway rejection reason."""

    loc: list[str] | None = Field(default=None, description="Location of the error, if it concerns a field")
    msg: str = Field(description="Human-readable error message")
    type: str = Field(description="Error type identifier")


class ErrorResponse(BaseModel):
    """Body of every error returned by the API."""

    error: str = Field(description="Error category, e.g. not_found or conflict")
    message: str = Field(description="Human-readable error description")
    details: list[ErrorDetail] | None = Field(default=None, description="Additional error details")
    request_id: str | None = Field(default=None, description="X-Request-ID of the failed request")
    timestamp: datetime = Field(default_factory=_utcnow, description="Error timestamp")

    @classmethod
    def build(
        cls,
        error_type: str,
        message: str,
        details: list[dict[str, Any]] | None = None,
        request_id: str | None = None,
    ) -> "ErrorResponse":
        """Create an ErrorResponse from an error's type, message and raw details."""
        error_details = None
        if details:
            error_details = [
                ErrorDetail(loc=d.get("loc"), msg=d.get("msg", str(d)), type=d.get("type", "error"))
                for d in details
            ]
        return cls(error=error_type, message=message, details=error_details, request_id=request_id)
