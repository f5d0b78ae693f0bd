from __future__ import annotations

from datetime import datetime
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class CurrencyInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    symbol: str = ""


class CountryName(BaseModel):
    model_config = ConfigDict(frozen=True)

    common: str
    official: str = ""


class CountryInfo(BaseModel):
    """Country directory record: display name plus currency code -> info."""

    model_config = ConfigDict(frozen=True)

    name: CountryName
    currencies: Dict[str, CurrencyInfo] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _null_currencies(cls, values):  # type: ignore[override]
        # The directory sends null or omits the key for e.g. Antarctica
        if isinstance(values, dict) and values.get("currencies") is None:
            values = {**values, "currencies": {}}
        return values


class CountryCurrencyConfig(BaseModel):
    """Resolved currency setup for one country (see resolver.resolve_country)."""

    primary_currency: str
    currencies: Dict[str, CurrencyInfo]
    is_multi_currency: bool

    @model_validator(mode="after")
    def _primary_is_listed(self) -> "CountryCurrencyConfig":
        if self.primary_currency not in self.currencies:
            raise ValueError(
                f"primary currency {self.primary_currency} not among {list(self.currencies)}"
            )
        return self


class CatalogSnapshot(BaseModel):
    last_checked: datetime
    last_modified: datetime
    data: Dict[str, CountryCurrencyConfig] = Field(default_factory=dict)
    source: Optional[str] = None
