"""FastAPI routes for the payment processor boundary."""

import os

from fastapi import APIRouter, HTTPException

from payments.api.schemas import ConfigureGatewayRequest, GatewayConfigResponse
from payments.gateway import get_gateway
from payments.gateway.fake_adapter import FakeGateway

gateway_router = APIRouter(prefix="/payments", tags=["payments"])


@gateway_router.post("/gateway/configure", response_model=GatewayConfigResponse)
async def configure_gateway(body: ConfigureGatewayRequest) -> GatewayConfigResponse:
    """Configure the FakeGateway behavior (non-production only).

    This endpoint is only available when PROTEAN_ENV is not 'production'.
    It allows toggling order-creation and verification outcomes for manual
    API testing.
    """
    if os.environ.get("PROTEAN_ENV") == "production":
        raise HTTPException(status_code=403, detail="Gateway configuration not available in production")

    gateway = get_gateway()
    if not isinstance(gateway, FakeGateway):
        raise HTTPException(status_code=400, detail="Gateway configuration only available for FakeGateway")

    gateway.configure(
        create_order_should_succeed=body.create_order_should_succeed,
        verify_should_succeed=body.verify_should_succeed,
        failure_reason=body.failure_reason,
        next_order_ref=body.next_order_ref,
    )
    return GatewayConfigResponse(
        gateway=type(gateway).__name__,
        create_order_should_succeed=gateway.create_order_should_succeed,
        verify_should_succeed=gateway.verify_should_succeed,
        failure_reason=gateway.failure_reason,
    )
