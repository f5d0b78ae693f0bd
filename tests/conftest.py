"""Shared test fixtures for the currency converter."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from currency_api.core.config import Settings
from currency_api.core.errors import CountryNotFound, ServiceError
from currency_api.models.currency import CountryInfo
from currency_api.models.rates import ExchangeRateResponse
from currency_api.services.cache import make_country_cache, make_rate_cache
from currency_api.services.conversion import ConversionService
from currency_api.services.countries import CountryDirectory
from currency_api.services.currency.catalog import CurrencyCatalog, build_catalog
from currency_api.services.rates.providers import StaticRateProvider
from currency_api.services.usage import UsageMonitor


def make_country(common: str, currencies: Optional[Dict[str, tuple]] = None) -> CountryInfo:
    return CountryInfo.model_validate(
        {
            "name": {"common": common, "official": f"Official {common}"},
            "currencies": {
                code: {"name": name, "symbol": symbol}
                for code, (name, symbol) in (currencies or {}).items()
            },
        }
    )


SAMPLE_COUNTRIES: List[CountryInfo] = [
    make_country("United States", {"USD": ("United States dollar", "$")}),
    make_country("France", {"EUR": ("Euro", "€")}),
    make_country("Germany", {"EUR": ("Euro", "€")}),
    make_country(
        "Panama",
        {"PAB": ("Panamanian balboa", "B/."), "USD": ("United States dollar", "$")},
    ),
    make_country("Switzerland", {"CHF": ("Swiss franc", "Fr.")}),
    make_country("Liechtenstein", {"CHF": ("Swiss franc", "Fr.")}),
    make_country("Japan", {"JPY": ("Japanese yen", "¥")}),
    make_country("United Kingdom", {"GBP": ("British pound", "£")}),
    make_country("Côte d'Ivoire", {"XOF": ("West African CFA franc", "Fr")}),
    make_country("Antarctica"),
]

USD_RATES: Dict[str, float] = {
    "USD": 1.0,
    "EUR": 0.85,
    "PAB": 1.0,
    "CHF": 0.89,
    "JPY": 110.0,
    "GBP": 0.73,
}


class FakeClock:
    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeDirectory(CountryDirectory):
    def __init__(self, countries: List[CountryInfo]):
        self._countries = {c.name.common.casefold(): c for c in countries}
        self.calls: List[str] = []
        self.error: Optional[ServiceError] = None

    async def get_country_info(self, name: str) -> CountryInfo:
        self.calls.append(name)
        if self.error is not None:
            raise self.error
        try:
            return self._countries[name.casefold()]
        except KeyError:
            raise CountryNotFound(name) from None

    async def list_countries(self) -> List[CountryInfo]:
        if self.error is not None:
            raise self.error
        return list(self._countries.values())


class CountingRateProvider(StaticRateProvider):
    """Static USD-anchored table that records every base it was asked for."""

    def __init__(self, usd_rates: Optional[Dict[str, float]] = None):
        super().__init__(usd_rates or USD_RATES)
        self.calls: List[str] = []
        self.error: Optional[ServiceError] = None

    async def get_exchange_rate(self, base_code: str) -> ExchangeRateResponse:
        self.calls.append(base_code)
        if self.error is not None:
            raise self.error
        return await super().get_exchange_rate(base_code)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def directory() -> FakeDirectory:
    return FakeDirectory(SAMPLE_COUNTRIES)


@pytest.fixture()
def rate_provider() -> CountingRateProvider:
    return CountingRateProvider()


@pytest.fixture()
def catalog(directory, rate_provider) -> CurrencyCatalog:
    cat = CurrencyCatalog(directory, rate_provider)
    cat.replace(build_catalog(SAMPLE_COUNTRIES, USD_RATES))
    return cat


@pytest.fixture()
def usage() -> UsageMonitor:
    return UsageMonitor()


@pytest.fixture()
def rate_cache(clock):
    return make_rate_cache(clock=clock)


@pytest.fixture()
def conversion(directory, rate_provider, catalog, rate_cache, usage, clock) -> ConversionService:
    return ConversionService(
        directory,
        rate_provider,
        catalog,
        rate_cache,
        make_country_cache(clock=clock),
        usage=usage,
        clock=clock,
    )


@pytest.fixture()
def settings() -> Settings:
    s = Settings(
        _env_file=None,
        debug=False,
        exchange_rate_provider="static",
        refresh_catalog_on_startup=True,
        requests_per_day=1000,
    )
    s.init_post_load()
    return s


@pytest.fixture()
def services(settings, directory, rate_provider):
    from currency_api.services.registry import build_services

    return build_services(settings, directory=directory, rate_provider=rate_provider)


@pytest.fixture()
def client(services):
    """HTTP test client with lifespan (catalog refresh) running."""
    from currency_api.main import create_app

    app = create_app(services_override=services)
    with TestClient(app) as c:
        yield c
