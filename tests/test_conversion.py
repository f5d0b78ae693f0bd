"""Tests for the conversion pipeline."""

from __future__ import annotations

import pytest

from currency_api.core.errors import CountryNotFound, InvalidCurrency, ServiceUnavailable
from currency_api.models.conversion import ConversionRequest
from currency_api.models.currency import CurrencyInfo
from currency_api.services.cache import make_country_cache, make_rate_cache
from currency_api.services.conversion import (
    ConversionService,
    build_available_currencies,
    country_cache_key,
    normalize_country_name,
    select_currency,
)
from currency_api.services.money import round_to_cents

from conftest import CountingRateProvider


def req(from_country: str, to_country: str, amount: float = 100.0, preferred=None):
    return ConversionRequest.model_validate(
        {"from": from_country, "to": to_country, "amount": amount, "preferred_currency": preferred}
    )


@pytest.mark.asyncio
async def test_basic_conversion(conversion, rate_provider, rate_cache):
    response = await conversion.convert(req("United States", "France"))

    assert response.data.from_.currency_code == "USD"
    assert response.data.from_.amount == 100.0
    assert response.data.from_.is_primary
    assert response.data.to.currency_code == "EUR"
    assert response.data.to.currency_symbol == "€"
    assert response.data.to.amount == 85.0
    assert response.data.exchange_rate == 0.85
    assert response.meta.cache_hit is False
    assert response.meta.source == "static-table"
    assert rate_provider.calls == ["USD"]
    assert response.request_id
    assert rate_cache.get("USD_EUR").rate == 0.85
    assert rate_cache.get("EUR_USD") is None


@pytest.mark.asyncio
async def test_second_request_served_from_rate_cache(conversion, rate_provider, usage):
    await conversion.convert(req("United States", "France"))
    again = await conversion.convert(req("United States", "France", 10))

    assert again.meta.cache_hit is True
    assert again.data.to.amount == 8.5
    assert rate_provider.calls == ["USD"]
    stats = usage.get_stats()
    assert stats.total_requests == 2
    assert stats.cache_hits == 1
    assert stats.api_calls == 1


@pytest.mark.asyncio
async def test_only_the_requested_pair_is_cached(conversion, rate_provider):
    await conversion.convert(req("United States", "France"))
    await conversion.convert(req("United States", "Japan"))
    assert rate_provider.calls == ["USD", "USD"]


@pytest.mark.asyncio
async def test_same_currency_skips_rate_lookup(conversion, rate_provider):
    response = await conversion.convert(req("France", "Germany", 42.5))

    assert response.data.exchange_rate == 1.0
    assert response.data.to.amount == 42.5
    assert response.meta.cache_hit is True
    assert rate_provider.calls == []


@pytest.mark.asyncio
async def test_country_names_go_upstream_as_typed(conversion, directory):
    response = await conversion.convert(req("  united   STATES ", "france"))
    assert response.data.from_.country == "United States"
    assert directory.calls == ["united STATES", "france"]


@pytest.mark.asyncio
async def test_country_cache_keys_ignore_case(conversion, directory):
    await conversion.convert(req("Côte d'Ivoire", "Côte d'Ivoire"))
    response = await conversion.convert(req("CÔTE D'IVOIRE", "côte  d'ivoire"))
    assert response.data.from_.country == "Côte d'Ivoire"
    assert response.data.from_.currency_code == "XOF"
    assert directory.calls == ["Côte d'Ivoire"]


@pytest.mark.asyncio
async def test_country_cache_avoids_second_lookup(conversion, directory):
    await conversion.convert(req("United States", "France"))
    await conversion.convert(req("United States", "France"))
    assert directory.calls == ["United States", "France"]


@pytest.mark.asyncio
async def test_preferred_currency_used_on_both_sides(conversion, rate_provider):
    response = await conversion.convert(req("Panama", "United States", preferred="usd"))
    assert response.data.from_.currency_code == "USD"
    assert response.data.to.currency_code == "USD"
    assert rate_provider.calls == []


@pytest.mark.asyncio
async def test_preferred_currency_missing_on_one_side(conversion, usage):
    with pytest.raises(InvalidCurrency) as exc:
        await conversion.convert(req("Panama", "France", preferred="PAB"))
    assert "not available for France" in exc.value.detail
    assert usage.get_stats().errors == 1


@pytest.mark.asyncio
async def test_multi_currency_lists_available_currencies(conversion):
    response = await conversion.convert(req("Panama", "France"))

    assert response.meta.multiple_currencies_available
    assert response.data.from_.currency_code == "USD"
    available = response.data.available_currencies
    assert [c.code for c in available] == ["PAB", "USD", "EUR"]
    assert [c.is_primary for c in available] == [False, True, True]


@pytest.mark.asyncio
async def test_single_currency_countries_omit_available_list(conversion):
    response = await conversion.convert(req("Japan", "United Kingdom", 1000))
    assert response.meta.multiple_currencies_available is False
    assert response.data.available_currencies is None
    assert response.data.to.amount == round_to_cents(1000 * 0.73 / 110.0)


@pytest.mark.asyncio
async def test_country_without_currency(conversion):
    with pytest.raises(InvalidCurrency, match="No currencies found for Antarctica"):
        await conversion.convert(req("Antarctica", "France"))


@pytest.mark.asyncio
async def test_unknown_country_propagates(conversion, usage):
    with pytest.raises(CountryNotFound) as exc:
        await conversion.convert(req("Atlantis", "France"))
    assert exc.value.country == "Atlantis"
    assert usage.get_stats().errors == 1
    assert usage.get_stats().successful_requests == 0


@pytest.mark.asyncio
async def test_missing_pair_is_not_cached(directory, catalog, clock):
    provider = CountingRateProvider({"USD": 1.0})
    rate_cache = make_rate_cache(clock=clock)
    service = ConversionService(directory, provider, catalog, rate_cache, clock=clock)

    with pytest.raises(InvalidCurrency, match="Exchange rate not found for pair USD->EUR"):
        await service.convert(req("United States", "France"))
    assert len(rate_cache) == 0


@pytest.mark.asyncio
async def test_provider_failure_leaves_cache_empty(directory, catalog, rate_provider, clock):
    rate_cache = make_rate_cache(clock=clock)
    service = ConversionService(
        directory, rate_provider, catalog, rate_cache, make_country_cache(clock=clock), clock=clock
    )
    rate_provider.error = ServiceUnavailable("Exchange rate API request timed out")

    with pytest.raises(ServiceUnavailable):
        await service.convert(req("United States", "France"))
    assert len(rate_cache) == 0

    rate_provider.error = None
    response = await service.convert(req("United States", "France"))
    assert response.meta.cache_hit is False


@pytest.mark.asyncio
async def test_expired_rate_is_refetched(conversion, rate_provider, clock):
    await conversion.convert(req("United States", "France"))
    clock.advance(minutes=61)
    response = await conversion.convert(req("United States", "France"))
    assert response.meta.cache_hit is False
    assert rate_provider.calls == ["USD", "USD"]


@pytest.mark.asyncio
async def test_very_large_amount_converts(conversion, usage):
    response = await conversion.convert(req("United States", "France", 1e27))
    assert response.data.to.amount == pytest.approx(8.5e26)
    assert response.data.from_.amount == 1e27
    assert usage.get_stats().errors == 0


@pytest.mark.asyncio
async def test_overflowing_amount_is_rejected(conversion, usage):
    with pytest.raises(InvalidCurrency, match="out of range"):
        await conversion.convert(req("United States", "Japan", 1e307))
    assert usage.get_stats().errors == 1


@pytest.mark.asyncio
async def test_source_label_follows_provider(directory, catalog, clock):
    class LiveProvider(CountingRateProvider):
        source_label = "exchangerate-api.com"

    service = ConversionService(
        directory, LiveProvider(), catalog, make_rate_cache(clock=clock), clock=clock
    )
    response = await service.convert(req("United States", "France"))
    assert response.meta.source == "exchangerate-api.com"


@pytest.mark.asyncio
async def test_convert_simple(conversion):
    response = await conversion.convert_simple(req("United States", "France", 20))
    assert response.model_dump(by_alias=True) == {"from": "USD", "to": "EUR", "amount": 17.0}


class TestSelectCurrency:
    currencies = {
        "GBP": CurrencyInfo(name="British pound", symbol="£"),
        "USD": CurrencyInfo(name="United States dollar", symbol="$"),
    }

    def test_preferred_must_be_offered(self):
        with pytest.raises(InvalidCurrency, match="Available currencies: GBP, USD"):
            select_currency(self.currencies, "JPY", None, "Somewhere")

    def test_preferred_wins_over_primary(self):
        code, _ = select_currency(self.currencies, "GBP", "USD", "Somewhere")
        assert code == "GBP"

    def test_primary_before_fallbacks(self):
        code, _ = select_currency(self.currencies, None, "GBP", "Somewhere")
        assert code == "GBP"

    def test_usd_fallback_when_primary_unknown(self):
        code, info = select_currency(self.currencies, None, None, "Somewhere")
        assert code == "USD"
        assert info.symbol == "$"

    def test_primary_not_listed_is_ignored(self):
        code, _ = select_currency(self.currencies, None, "EUR", "Somewhere")
        assert code == "USD"

    def test_first_listed_as_last_resort(self):
        only = {"XAF": CurrencyInfo(name="Central African CFA franc"), "XOF": CurrencyInfo(name="CFA")}
        code, _ = select_currency(only, None, None, "Somewhere")
        assert code == "XAF"


def test_build_available_currencies_dedupes():
    usd = CurrencyInfo(name="United States dollar", symbol="$")
    out = build_available_currencies(
        {"PAB": CurrencyInfo(name="Panamanian balboa"), "USD": usd},
        {"USD": usd},
        "USD",
        "USD",
    )
    assert [c.code for c in out] == ["PAB", "USD"]


@pytest.mark.parametrize(
    "raw, upstream, key",
    [
        ("united states", "united states", "united states"),
        ("  New   Zealand ", "New Zealand", "new zealand"),
        ("Côte d'Ivoire", "Côte d'Ivoire", "côte d'ivoire"),
        ("Guinea-Bissau", "Guinea-Bissau", "guinea-bissau"),
    ],
)
def test_country_name_normalisation(raw, upstream, key):
    assert normalize_country_name(raw) == upstream
    assert country_cache_key(raw) == key


@pytest.mark.parametrize(
    "value, expected",
    [
        (10.456, 10.46),
        (10.454, 10.45),
        (99.999, 100.0),
        (-10.456, -10.46),
        (85.0, 85.0),
        (1.005, 1.0),
        (2.675, 2.67),
        (1e27, 1e27),
        (-1e27, -1e27),
    ],
)
def test_round_to_cents(value, expected):
    assert round_to_cents(value) == expected
