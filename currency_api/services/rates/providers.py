from __future__ import annotations

"""Concrete rate providers and factory.

'exchangerate-api' talks to exchangerate-api.com (v6, key required).
'static' serves a fixed USD-anchored table; it keeps local runs and demos
working without an API key.
"""
import logging
from datetime import datetime, timezone
from typing import Dict, Optional

import httpx
from starlette import status

from currency_api.core.errors import (
    ExternalApiError,
    InvalidCurrency,
    RateLimitExceeded,
    ServiceUnavailable,
)
from currency_api.models.rates import ExchangeRateResponse
from currency_api.services.http_client import make_async_client, read_json, send_get
from .base import RateProvider

logger = logging.getLogger("currency_api.rates")

# Units per 1 USD; rough mid-market values
_STATIC_USD_RATES: Dict[str, float] = {
    "USD": 1.0,
    "EUR": 0.85,
    "GBP": 0.73,
    "CHF": 0.89,
    "JPY": 110.0,
    "CAD": 1.25,
    "AUD": 1.35,
    "INR": 74.0,
    "SGD": 1.35,
    "MYR": 4.2,
    "PAB": 1.0,
    "ZWL": 322.0,
}


class StaticRateProvider(RateProvider):
    name = "static"
    source_label = "static-table"

    def __init__(self, usd_rates: Optional[Dict[str, float]] = None):
        self._usd_rates = dict(usd_rates or _STATIC_USD_RATES)

    async def get_exchange_rate(self, base_code: str) -> ExchangeRateResponse:  # type: ignore[override]
        base_code = base_code.upper()
        base = self._usd_rates.get(base_code)
        if not base:
            raise InvalidCurrency(f"Unsupported base currency {base_code}")
        rates = {code: value / base for code, value in self._usd_rates.items()}
        return ExchangeRateResponse(
            result="success",
            base_code=base_code,
            conversion_rates=rates,
            time_last_update_utc=datetime.now(timezone.utc).isoformat(),
        )


class ExchangeRateApiProvider(RateProvider):
    """GET {base_url}/{api_key}/latest/{base}."""

    name = "exchangerate-api"
    source_label = "exchangerate-api.com"
    service = "Exchange rate API"

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = "https://v6.exchangerate-api.com/v6",
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ):
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or make_async_client(timeout=timeout)

    async def get_exchange_rate(self, base_code: str) -> ExchangeRateResponse:  # type: ignore[override]
        base_code = base_code.upper()
        url = f"{self._base_url}/{self._api_key}/latest/{base_code}"
        logger.debug("fetching exchange rates for %s", base_code)
        response = await send_get(self._client, url, service=self.service)

        if response.status_code == status.HTTP_429_TOO_MANY_REQUESTS:
            logger.error("exchange rate API rate limit exceeded")
            raise RateLimitExceeded("Exchange rate provider quota reached")
        if response.status_code != status.HTTP_200_OK:
            self._raise_for_error_body(response, base_code)
            logger.error(
                "exchange rate API error: %s for currency: %s",
                response.status_code,
                base_code,
            )
            raise ServiceUnavailable(
                f"Exchange rate service returned status: {response.status_code}"
            )

        payload = read_json(response, service=self.service)
        if isinstance(payload, dict) and payload.get("result") == "error":
            self._raise_for_error_type(payload.get("error-type", "unknown"), base_code)
        try:
            rates = ExchangeRateResponse.model_validate(payload)
        except ValueError as e:
            raise ExternalApiError(f"Failed to parse exchange rate data: {e}") from e
        logger.debug("fetched %d exchange rates for %s", len(rates.conversion_rates), base_code)
        return rates

    def _raise_for_error_body(self, response: httpx.Response, base_code: str) -> None:
        # The provider reports most failures as {"result": "error", "error-type": ...}
        try:
            payload = response.json()
        except ValueError:
            return
        if isinstance(payload, dict) and payload.get("result") == "error":
            self._raise_for_error_type(payload.get("error-type", "unknown"), base_code)

    @staticmethod
    def _raise_for_error_type(error_type: str, base_code: str) -> None:
        if error_type == "unsupported-code":
            raise InvalidCurrency(f"Unsupported base currency {base_code}")
        if error_type == "quota-reached":
            raise RateLimitExceeded("Exchange rate provider quota reached")
        raise ExternalApiError(f"Exchange rate API error: {error_type}")

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


_PROVIDER_REGISTRY = {
    "static": StaticRateProvider,
    "exchangerate-api": ExchangeRateApiProvider,
}

PROVIDER_KINDS = tuple(_PROVIDER_REGISTRY)


def make_rate_provider(
    kind: str,
    *,
    api_key: str = "",
    base_url: str = "https://v6.exchangerate-api.com/v6",
    client: Optional[httpx.AsyncClient] = None,
    timeout: float = 30.0,
) -> RateProvider:
    cls = _PROVIDER_REGISTRY.get(kind)
    if not cls:
        raise ValueError(f"Unknown rate provider kind '{kind}'")
    if cls is ExchangeRateApiProvider:
        if not api_key:
            raise ValueError("exchangerate-api provider requires EXCHANGE_RATE_API_KEY")
        return ExchangeRateApiProvider(
            api_key, base_url=base_url, client=client, timeout=timeout
        )
    return cls()
