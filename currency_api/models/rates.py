from __future__ import annotations

from datetime import datetime
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class ExchangeRateData(BaseModel):
    """One cached directed pair, stored under "{from}_{to}"."""

    model_config = ConfigDict(frozen=True)

    rate: float = Field(..., ge=0)
    last_updated: datetime


class ExchangeRateResponse(BaseModel):
    """Fields consumed from the provider's /latest/{base} payload."""

    model_config = ConfigDict(extra="ignore")

    result: str = "success"
    base_code: Optional[str] = None
    conversion_rates: Dict[str, float] = Field(default_factory=dict)
    time_last_update_utc: Optional[str] = None


def rate_pair_key(from_code: str, to_code: str) -> str:
    return f"{from_code}_{to_code}"
