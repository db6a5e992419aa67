from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ---------------------------------------------------
# Raw inputs from the external sources
# ---------------------------------------------------
class CurrencyIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    code: Optional[str] = Field(None, max_length=10)
    name: Optional[str] = None
    symbol: Optional[str] = None


class RawCountry(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = Field(..., min_length=1, max_length=100)
    capital: Optional[str] = Field(None, max_length=100)
    region: Optional[str] = Field(None, max_length=50)
    population: int = Field(..., ge=0)
    currencies: List[CurrencyIn] = Field(default_factory=list)
    flag: Optional[str] = Field(None, max_length=255)

    @field_validator("currencies", mode="before")
    @classmethod
    def _null_currencies(cls, value):
        return [] if value is None else value


class ExchangeRateSnapshot(BaseModel):
    """Point-in-time rates; immutable for the duration of one pass."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    base_code: Optional[str] = None
    rates: Dict[str, Decimal] = Field(default_factory=dict)
    fetched_at: datetime

    @field_validator("rates", mode="before")
    @classmethod
    def _drop_unusable_rates(cls, value):
        if not isinstance(value, dict):
            raise ValueError("rates must be an object")
        usable = {}
        for code, rate in value.items():
            if isinstance(rate, bool) or not isinstance(rate, (int, float, str)):
                continue
            try:
                parsed = Decimal(str(rate))
            except ArithmeticError:
                continue
            if parsed.is_finite() and parsed > 0:
                usable[code] = parsed
        return usable


# ---------------------------------------------------
# Persisted record and API projections
# ---------------------------------------------------
class CountryBase(BaseModel):
    name: str
    capital: Optional[str] = None
    region: Optional[str] = None
    population: int
    currency_code: Optional[str] = None
    exchange_rate: Optional[float] = None
    estimated_gdp: Optional[float] = None
    flag_url: Optional[str] = None
    last_refreshed_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class CountryOut(CountryBase):
    id: int


class CountrySummary(BaseModel):
    """Lightweight projection handed to the summary renderer."""

    name: str
    region: Optional[str] = None
    population: int
    currency_code: Optional[str] = None
    estimated_gdp: Optional[Decimal] = None

    model_config = {"from_attributes": True}


class RefreshOut(BaseModel):
    message: str
    count: int


class StatusOut(BaseModel):
    total_countries: int
    last_refreshed_at: Optional[datetime] = None


class MessageOut(BaseModel):
    message: str
