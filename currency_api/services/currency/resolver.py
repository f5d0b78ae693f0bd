"""Primary-currency heuristics.

Given one country's currencies, the cross-country usage map and (optionally)
a reference rate table anchored at a single base currency, decide which code
the country defaults to and whether it counts as multi-currency.

Every "first" tie-break below walks the country's codes in their listed
order, so the outcome only depends on input ordering, never on hashing.
"""

from __future__ import annotations

import math
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from currency_api.models.currency import CountryCurrencyConfig, CountryInfo, CurrencyInfo

ANCHOR_CURRENCIES: Tuple[str, ...] = ("USD", "EUR")

UsagePatterns = Mapping[str, Sequence[str]]


def build_usage_patterns(countries: Iterable[CountryInfo]) -> Dict[str, List[str]]:
    """Map each currency code to the countries listing it, in first-seen order."""
    usage: Dict[str, List[str]] = {}
    for country in countries:
        for code in country.currencies:
            usage.setdefault(code, []).append(country.name.common)
    return usage


def _rate_value(rates: Mapping[str, float], code: str) -> float:
    value = rates.get(code)
    if value is None or math.isnan(value):
        return 0.0
    return value


def _usage_count(usage_patterns: UsagePatterns, code: str) -> int:
    return len(usage_patterns.get(code) or ())


def is_multi_currency(codes: Sequence[str], usage_patterns: UsagePatterns) -> bool:
    # A lone code still counts when another country shares it (CHF, XOF, ...)
    if len(codes) > 1:
        return True
    return any(_usage_count(usage_patterns, code) > 1 for code in codes)


def select_primary(
    codes: Sequence[str],
    usage_patterns: UsagePatterns,
    reference_rates: Optional[Mapping[str, float]] = None,
) -> str:
    for anchor in ANCHOR_CURRENCIES:
        if anchor in codes:
            return anchor

    if reference_rates:
        rated = [code for code in codes if code in reference_rates]
        if rated:
            # max() keeps the first of equal values
            return max(rated, key=lambda code: _rate_value(reference_rates, code))

    best = codes[0]
    best_count = _usage_count(usage_patterns, best)
    for code in codes[1:]:
        count = _usage_count(usage_patterns, code)
        if count > best_count:
            best, best_count = code, count
    return best


def determine_primary_currency(
    currencies: Mapping[str, CurrencyInfo],
    usage_patterns: UsagePatterns,
    reference_rates: Optional[Mapping[str, float]] = None,
) -> Tuple[str, bool]:
    """Return (primary_code, is_multi_currency) for one country.

    ``currencies`` must not be empty; an empty set is an upstream data error
    the caller handles before getting here.
    """
    codes = list(currencies)
    if not codes:
        raise ValueError("cannot determine a primary currency without currencies")
    return (
        select_primary(codes, usage_patterns, reference_rates),
        is_multi_currency(codes, usage_patterns),
    )


def resolve_country(
    currencies: Mapping[str, CurrencyInfo],
    usage_patterns: UsagePatterns,
    reference_rates: Optional[Mapping[str, float]] = None,
) -> CountryCurrencyConfig:
    primary, multi = determine_primary_currency(currencies, usage_patterns, reference_rates)
    return CountryCurrencyConfig(
        primary_currency=primary,
        currencies=dict(currencies),
        is_multi_currency=multi,
    )
