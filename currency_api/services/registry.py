from __future__ import annotations

"""Composition root for the conversion services.

create_app() builds one Services instance per application and keeps it on
app.state; routers reach it through the get_services dependency. Tests pass
their own directory/provider doubles to build_services().
"""
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from fastapi import Request

from currency_api.core.config import Settings
from currency_api.models.currency import CountryInfo
from currency_api.models.rates import ExchangeRateData
from currency_api.services.cache import Cache, make_country_cache, make_rate_cache
from currency_api.services.conversion import ConversionService
from currency_api.services.countries import CountryDirectory, RestCountriesClient
from currency_api.services.currency.catalog import CurrencyCatalog
from currency_api.services.rate_limit import DailyRateLimiter
from currency_api.services.rates.base import RateProvider
from currency_api.services.rates.providers import make_rate_provider
from currency_api.services.usage import UsageMonitor

logger = logging.getLogger("currency_api.registry")


@dataclass
class Services:
    settings: Settings
    directory: CountryDirectory
    rate_provider: RateProvider
    catalog: CurrencyCatalog
    rate_cache: Cache[ExchangeRateData]
    country_cache: Cache[CountryInfo]
    usage: UsageMonitor
    rate_limiter: DailyRateLimiter
    conversion: ConversionService

    async def aclose(self) -> None:
        await self.directory.aclose()
        await self.rate_provider.aclose()


def build_services(
    settings: Settings,
    *,
    directory: Optional[CountryDirectory] = None,
    rate_provider: Optional[RateProvider] = None,
) -> Services:
    directory = directory or RestCountriesClient(
        base_url=settings.countries_api_base_url,
        timeout=settings.http_timeout_seconds,
    )
    rate_provider = rate_provider or make_rate_provider(
        settings.exchange_rate_provider,
        api_key=settings.exchange_rate_api_key,
        base_url=settings.exchange_api_base_url,
        timeout=settings.http_timeout_seconds,
    )
    rate_cache = make_rate_cache(settings.rate_cache_ttl_minutes, settings.rate_cache_max_size)
    country_cache = make_country_cache(
        settings.country_cache_ttl_minutes, settings.country_cache_max_size
    )
    catalog = CurrencyCatalog(directory, rate_provider)
    usage = UsageMonitor()
    conversion = ConversionService(
        directory,
        rate_provider,
        catalog,
        rate_cache,
        country_cache,
        usage=usage,
    )
    logger.debug(
        "services built (provider=%s, rate ttl=%sm, country ttl=%sm)",
        settings.exchange_rate_provider,
        settings.rate_cache_ttl_minutes,
        settings.country_cache_ttl_minutes,
    )
    return Services(
        settings=settings,
        directory=directory,
        rate_provider=rate_provider,
        catalog=catalog,
        rate_cache=rate_cache,
        country_cache=country_cache,
        usage=usage,
        rate_limiter=DailyRateLimiter(
            settings.requests_per_day,
            cleanup_interval=timedelta(minutes=settings.cache_cleanup_interval_minutes),
        ),
        conversion=conversion,
    )


def get_services(request: Request) -> Services:
    return request.app.state.services
