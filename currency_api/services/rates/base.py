from __future__ import annotations

"""Exchange-rate provider abstraction.

A provider returns a full rate table anchored at the requested base code;
the conversion pipeline picks the single pair it needs and caches that.
"""
from abc import ABC, abstractmethod
from typing import Protocol

from currency_api.models.rates import ExchangeRateResponse


class RateProvider(ABC):
    name: str = "unknown"
    # reported as meta.source on conversion responses
    source_label: str = "unknown"

    @abstractmethod
    async def get_exchange_rate(self, base_code: str) -> ExchangeRateResponse:
        """Return units of every known currency per 1 unit of base_code.

        Raises RateLimitExceeded, ExternalApiError or ServiceUnavailable.
        """
        raise NotImplementedError

    async def aclose(self) -> None:
        return None


class SupportsExchangeRate(Protocol):
    async def get_exchange_rate(self, base_code: str) -> ExchangeRateResponse: ...
