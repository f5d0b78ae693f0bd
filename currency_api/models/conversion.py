from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ConversionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_: str = Field(..., alias="from", description="Source country name")
    to: str = Field(..., description="Destination country name")
    amount: float = Field(..., gt=0, allow_inf_nan=False)
    preferred_currency: Optional[str] = Field(
        None, description="ISO code to use on both sides when the country offers it"
    )

    @field_validator("from_", "to")
    @classmethod
    def _country_not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("country name cannot be empty")
        return value.strip()

    @field_validator("preferred_currency")
    @classmethod
    def _normalize_code(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip().upper()
        return value or None


class AvailableCurrency(BaseModel):
    code: str
    name: str
    symbol: str
    is_primary: bool


class CurrencyDetails(BaseModel):
    country: str
    currency_code: str
    currency_name: str
    currency_symbol: str
    amount: float
    is_primary: bool


class ConversionData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_: CurrencyDetails = Field(..., alias="from")
    to: CurrencyDetails
    exchange_rate: float
    last_updated: datetime
    available_currencies: Optional[List[AvailableCurrency]] = None


class ResponseMetadata(BaseModel):
    source: str
    response_time_ms: int
    multiple_currencies_available: bool
    cache_hit: bool
    rate_limit_remaining: Optional[int] = None


class DetailedConversionResponse(BaseModel):
    request_id: str
    timestamp: datetime
    data: ConversionData
    meta: ResponseMetadata


class SimpleConversionResponse(BaseModel):
    """Legacy /currency payload: amount is the converted value."""

    model_config = ConfigDict(populate_by_name=True)

    from_: str = Field(..., alias="from")
    to: str
    amount: float
