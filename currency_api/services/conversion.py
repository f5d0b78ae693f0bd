from __future__ import annotations

"""Country-to-country conversion pipeline.

Steps per request:
    1. Look up both countries (country cache first, then the directory).
    2. Reject countries without any listed currency.
    3. Read each country's primary currency from the catalog (may be unknown).
    4. Pick concrete codes with select_currency().
    5. Same code on both sides -> rate 1.0, no rate lookup at all.
    6. Otherwise read the "{from}_{to}" pair from the rate cache; on a miss
       fetch the table for the source code and cache only that pair.
    7. converted = round_to_cents(amount * rate).

Concurrent misses on the same pair may both hit the provider; the later
write wins, which is harmless since both values are equally fresh. The pair
is cached only after a complete provider response, so a timeout or a
cancelled task leaves nothing behind.
"""
import logging
import math
import time
from datetime import datetime, timezone
from typing import Callable, Dict, List, Mapping, Optional, Tuple, TYPE_CHECKING

from currency_api.core.errors import InvalidCurrency, ServiceError
from currency_api.core.logging import current_request_id
from currency_api.models.conversion import (
    AvailableCurrency,
    ConversionData,
    ConversionRequest,
    CurrencyDetails,
    DetailedConversionResponse,
    ResponseMetadata,
    SimpleConversionResponse,
)
from currency_api.models.currency import CountryInfo, CurrencyInfo
from currency_api.models.rates import ExchangeRateData, rate_pair_key
from currency_api.services.cache import Cache, utcnow
from currency_api.services.money import round_to_cents
from currency_api.services.usage import UsageMonitor

if TYPE_CHECKING:  # pragma: no cover
    from currency_api.services.countries import CountryDirectory
    from currency_api.services.currency.catalog import CurrencyCatalog
    from currency_api.services.rates.base import SupportsExchangeRate

logger = logging.getLogger("currency_api.conversion")

FALLBACK_CURRENCIES: Tuple[str, ...] = ("USD", "EUR")


def normalize_country_name(name: str) -> str:
    """Collapse whitespace; spelling and case go upstream as typed."""
    return " ".join(name.split())


def country_cache_key(name: str) -> str:
    """'  united  STATES' and 'United States' share one cache entry."""
    return normalize_country_name(name).casefold()


def select_currency(
    currencies: Mapping[str, CurrencyInfo],
    preferred: Optional[str],
    primary: Optional[str],
    country: str,
) -> Tuple[str, CurrencyInfo]:
    """Pick the code to convert with for one side of a request.

    Precedence: explicit preference (must be offered), known primary, USD,
    EUR, then the first listed code.
    """
    if preferred:
        info = currencies.get(preferred)
        if info is None:
            raise InvalidCurrency(
                f"Preferred currency {preferred} not available for {country}. "
                f"Available currencies: {', '.join(currencies)}"
            )
        logger.debug("using preferred currency %s for %s", preferred, country)
        return preferred, info

    if primary and primary in currencies:
        logger.debug("using primary currency %s for %s", primary, country)
        return primary, currencies[primary]

    for code in FALLBACK_CURRENCIES:
        if code in currencies:
            logger.debug("using standard currency %s for %s", code, country)
            return code, currencies[code]

    for code, info in currencies.items():
        logger.debug("falling back to first available currency %s for %s", code, country)
        return code, info
    raise InvalidCurrency(f"No valid currency found for {country}")


def build_available_currencies(
    from_currencies: Mapping[str, CurrencyInfo],
    to_currencies: Mapping[str, CurrencyInfo],
    from_primary: Optional[str],
    to_primary: Optional[str],
) -> List[AvailableCurrency]:
    """Source currencies first, then destination ones not already listed."""
    out: Dict[str, AvailableCurrency] = {}
    for currencies, primary in ((from_currencies, from_primary), (to_currencies, to_primary)):
        for code, info in currencies.items():
            if code in out:
                continue
            out[code] = AvailableCurrency(
                code=code, name=info.name, symbol=info.symbol, is_primary=code == primary
            )
    return list(out.values())


class ConversionService:
    def __init__(
        self,
        directory: "CountryDirectory",
        rate_provider: "SupportsExchangeRate",
        catalog: "CurrencyCatalog",
        rate_cache: Cache[ExchangeRateData],
        country_cache: Optional[Cache[CountryInfo]] = None,
        *,
        usage: Optional[UsageMonitor] = None,
        source_label: Optional[str] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._directory = directory
        self._rates = rate_provider
        self._catalog = catalog
        self._rate_cache = rate_cache
        self._country_cache = country_cache
        self._usage = usage
        self._source_label = source_label or getattr(rate_provider, "source_label", "unknown")
        self._clock = clock

    async def convert(self, request: ConversionRequest) -> DetailedConversionResponse:
        try:
            response = await self._convert(request)
        except ServiceError:
            if self._usage is not None:
                self._usage.record_error()
            raise
        if self._usage is not None:
            self._usage.record_request(cached=response.meta.cache_hit)
        return response

    async def convert_simple(self, request: ConversionRequest) -> SimpleConversionResponse:
        detailed = await self.convert(request)
        return SimpleConversionResponse(
            from_=detailed.data.from_.currency_code,
            to=detailed.data.to.currency_code,
            amount=detailed.data.to.amount,
        )

    async def get_country(self, name: str) -> CountryInfo:
        key = country_cache_key(name)
        if self._country_cache is not None:
            cached = self._country_cache.get(key)
            if cached is not None:
                return cached
        info = await self._directory.get_country_info(normalize_country_name(name))
        if self._country_cache is not None:
            self._country_cache.set(key, info)
        return info

    async def get_rate(self, from_code: str, to_code: str) -> Tuple[ExchangeRateData, bool]:
        """Return (rate data, served_from_cache) for one directed pair."""
        key = rate_pair_key(from_code, to_code)
        cached = self._rate_cache.get(key)
        if cached is not None:
            return cached, True

        table = await self._rates.get_exchange_rate(from_code)
        rate = table.conversion_rates.get(to_code)
        if rate is None:
            logger.error("exchange rate not found for %s->%s", from_code, to_code)
            raise InvalidCurrency(f"Exchange rate not found for pair {from_code}->{to_code}")
        data = ExchangeRateData(rate=rate, last_updated=self._clock())
        self._rate_cache.set(key, data)
        return data, False

    async def _convert(self, request: ConversionRequest) -> DetailedConversionResponse:
        start = time.monotonic()
        request_id = current_request_id()
        logger.debug("processing conversion request: %s", request)

        from_info = await self.get_country(request.from_)
        to_info = await self.get_country(request.to)
        from_country = from_info.name.common
        to_country = to_info.name.common

        if not from_info.currencies:
            raise InvalidCurrency(f"No currencies found for {from_country}")
        if not to_info.currencies:
            raise InvalidCurrency(f"No currencies found for {to_country}")

        from_primary = self._catalog.get_primary_currency(from_country)
        to_primary = self._catalog.get_primary_currency(to_country)
        multiple_available = self._is_multi(from_info) or self._is_multi(to_info)
        logger.debug(
            "primary currencies - from: %s, to: %s; multiple available: %s",
            from_primary,
            to_primary,
            multiple_available,
        )

        from_code, from_currency = select_currency(
            from_info.currencies, request.preferred_currency, from_primary, from_country
        )
        to_code, to_currency = select_currency(
            to_info.currencies, request.preferred_currency, to_primary, to_country
        )

        if from_code == to_code:
            logger.debug("same currency conversion, returning original amount")
            rate_data, cache_hit = ExchangeRateData(rate=1.0, last_updated=self._clock()), True
        else:
            rate_data, cache_hit = await self.get_rate(from_code, to_code)

        raw = request.amount * rate_data.rate
        if not math.isfinite(raw):
            raise InvalidCurrency(
                f"Converted amount out of range for pair {from_code}->{to_code}"
            )
        converted = round_to_cents(raw)
        if from_code != to_code:
            logger.info(
                "conversion successful: %s %s -> %s %s (rate: %s, cached: %s)",
                request.amount,
                from_code,
                converted,
                to_code,
                rate_data.rate,
                cache_hit,
            )

        available = (
            build_available_currencies(
                from_info.currencies, to_info.currencies, from_primary, to_primary
            )
            if multiple_available
            else None
        )
        return DetailedConversionResponse(
            request_id=request_id,
            timestamp=self._clock(),
            data=ConversionData(
                from_=CurrencyDetails(
                    country=from_country,
                    currency_code=from_code,
                    currency_name=from_currency.name,
                    currency_symbol=from_currency.symbol,
                    amount=round_to_cents(request.amount),
                    is_primary=from_primary == from_code,
                ),
                to=CurrencyDetails(
                    country=to_country,
                    currency_code=to_code,
                    currency_name=to_currency.name,
                    currency_symbol=to_currency.symbol,
                    amount=converted,
                    is_primary=to_primary == to_code,
                ),
                exchange_rate=rate_data.rate,
                last_updated=rate_data.last_updated,
                available_currencies=available,
            ),
            meta=ResponseMetadata(
                source=self._source_label,
                response_time_ms=int((time.monotonic() - start) * 1000),
                multiple_currencies_available=multiple_available,
                cache_hit=cache_hit,
            ),
        )

    def _is_multi(self, country: CountryInfo) -> bool:
        name = country.name.common
        if self._catalog.get_config(name) is not None:
            return self._catalog.is_multi_currency(name)
        return len(country.currencies) > 1
