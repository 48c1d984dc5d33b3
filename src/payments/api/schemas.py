"""Pydantic request/response schemas for the Payments API.

These are external contracts (anti-corruption layer) — separate from
the gateway adapters' own types.
"""

from pydantic import BaseModel


class ConfigureGatewayRequest(BaseModel):
    create_order_should_succeed: bool = True
    verify_should_succeed: bool | None = None
    failure_reason: str = "Processor unavailable"
    next_order_ref: str | None = None


class GatewayConfigResponse(BaseModel):
    gateway: str
    create_order_should_succeed: bool
    verify_should_succeed: bool | None
    failure_reason: str
