"""Conversion endpoints.

    - POST /currency     -> legacy payload {from, to, amount} (currency codes + converted amount)
    - POST /v1/currency  -> detailed payload with both sides, rate and metadata

Both share the per-client daily quota; errors are rendered by the handlers
registered in create_app().
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request

from currency_api.core.errors import RateLimitExceeded
from currency_api.models.conversion import (
    ConversionRequest,
    DetailedConversionResponse,
    SimpleConversionResponse,
)
from currency_api.services.registry import Services, get_services

router = APIRouter(tags=["currency"])


def client_key(request: Request) -> str:
    return f"ip:{request.client.host}" if request.client else "ip:unknown"


def enforce_rate_limit(
    request: Request, services: Services = Depends(get_services)
) -> Optional[int]:
    """Count the request against the daily quota; returns what is left."""
    if not services.settings.enable_rate_limit:
        return None
    key = client_key(request)
    if not services.rate_limiter.check(key):
        raise RateLimitExceeded(
            f"Daily limit of {services.rate_limiter.daily_limit} requests reached"
        )
    return services.rate_limiter.remaining(key)


@router.post(
    "/currency",
    response_model=SimpleConversionResponse,
    summary="Convert an amount between two countries' currencies",
)
async def convert_simple(
    payload: ConversionRequest,
    _: Optional[int] = Depends(enforce_rate_limit),
    services: Services = Depends(get_services),
):
    return await services.conversion.convert_simple(payload)


@router.post(
    "/v1/currency",
    response_model=DetailedConversionResponse,
    summary="Convert with full currency details and metadata",
)
async def convert_detailed(
    payload: ConversionRequest,
    remaining: Optional[int] = Depends(enforce_rate_limit),
    services: Services = Depends(get_services),
):
    result = await services.conversion.convert(payload)
    result.meta.rate_limit_remaining = remaining
    return result
