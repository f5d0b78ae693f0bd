"""Pydantic domain models for the Currency Converter API."""

from .currency import (
    CatalogSnapshot,
    CountryCurrencyConfig,
    CountryInfo,
    CountryName,
    CurrencyInfo,
)
from .rates import ExchangeRateData, ExchangeRateResponse, rate_pair_key
from .conversion import (
    AvailableCurrency,
    ConversionData,
    ConversionRequest,
    CurrencyDetails,
    DetailedConversionResponse,
    ResponseMetadata,
    SimpleConversionResponse,
)

__all__ = [
    "AvailableCurrency",
    "CatalogSnapshot",
    "ConversionData",
    "ConversionRequest",
    "CountryCurrencyConfig",
    "CountryInfo",
    "CountryName",
    "CurrencyDetails",
    "CurrencyInfo",
    "DetailedConversionResponse",
    "ExchangeRateData",
    "ExchangeRateResponse",
    "ResponseMetadata",
    "SimpleConversionResponse",
    "rate_pair_key",
]
