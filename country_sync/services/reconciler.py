"""Merge raw country entries with an exchange-rate snapshot.

Derivation rules for one country:

- ``currency_code`` is the code of the first listed currency, or None.
- Code found in the snapshot: ``exchange_rate`` is the rate and
  ``estimated_gdp = population * multiplier / exchange_rate`` with a fresh
  multiplier drawn from [1000, 2000) for every record on every pass.
- Code missing from the snapshot: both derived values are None.
- No currency at all: ``exchange_rate`` is None and ``estimated_gdp`` is 0.
"""

import logging
import random
from dataclasses import asdict, dataclass
from datetime import datetime
from decimal import Context, Decimal, InvalidOperation
from typing import Any, Callable, Iterable, Mapping, Optional

from pydantic import ValidationError

from country_sync.errors import RecordProcessingError
from country_sync.schemas import ExchangeRateSnapshot, RawCountry

MULTIPLIER_MIN = 1000
MULTIPLIER_SPAN = 1000
# Upper bound of the population column (signed 64-bit).
MAX_POPULATION = 2**63 - 1
# Scale of the exchange_rate column; GDP is derived from the rate as stored.
RATE_QUANTUM = Decimal("1e-18")
_RATE_CONTEXT = Context(prec=38)


@dataclass(frozen=True)
class ReconciledCountry:
    name: str
    capital: Optional[str]
    region: Optional[str]
    population: int
    currency_code: Optional[str]
    exchange_rate: Optional[Decimal]
    estimated_gdp: Optional[Decimal]
    flag_url: Optional[str]
    last_refreshed_at: datetime

    def as_row(self) -> dict:
        return asdict(self)


def draw_multiplier(rng: random.Random) -> Decimal:
    return Decimal(MULTIPLIER_MIN) + Decimal(repr(rng.random())) * MULTIPLIER_SPAN


def _storable_rate(name: str, code: str, rate: Decimal) -> Decimal:
    try:
        stored = rate.quantize(RATE_QUANTUM, context=_RATE_CONTEXT)
    except InvalidOperation as exc:
        raise RecordProcessingError(name, f"exchange rate {rate} for {code} exceeds storable range") from exc
    if stored <= 0:
        raise RecordProcessingError(name, f"exchange rate {rate} for {code} rounds to zero")
    return stored


def _first_currency_code(country: RawCountry) -> Optional[str]:
    if not country.currencies:
        return None
    return country.currencies[0].code or None


def reconcile_country(
    raw: Mapping[str, Any],
    snapshot: ExchangeRateSnapshot,
    refreshed_at: datetime,
    rng: Optional[random.Random] = None,
) -> ReconciledCountry:
    """Build the persisted shape of one raw country entry.

    Raises RecordProcessingError when the entry cannot be represented.
    """
    try:
        country = RawCountry.model_validate(raw)
    except ValidationError as exc:
        name = raw.get("name") if isinstance(raw, Mapping) else None
        raise RecordProcessingError(name if isinstance(name, str) else None, f"invalid entry: {exc}") from exc

    if country.population > MAX_POPULATION:
        raise RecordProcessingError(country.name, f"population {country.population} exceeds storable range")

    currency_code = _first_currency_code(country)
    exchange_rate: Optional[Decimal] = None
    estimated_gdp: Optional[Decimal] = None

    if currency_code is None:
        estimated_gdp = Decimal(0)
    elif currency_code in snapshot.rates:
        exchange_rate = _storable_rate(country.name, currency_code, snapshot.rates[currency_code])
        multiplier = draw_multiplier(rng or random.Random())
        estimated_gdp = Decimal(country.population) * multiplier / exchange_rate

    return ReconciledCountry(
        name=country.name,
        capital=country.capital or None,
        region=country.region or None,
        population=country.population,
        currency_code=currency_code,
        exchange_rate=exchange_rate,
        estimated_gdp=estimated_gdp,
        flag_url=country.flag or None,
        last_refreshed_at=refreshed_at,
    )


def reconcile_batch(
    raw_countries: Iterable[Mapping[str, Any]],
    snapshot: ExchangeRateSnapshot,
    persist: Callable[[ReconciledCountry], Any],
    refreshed_at: datetime,
    rng: Optional[random.Random] = None,
    logger: Optional[logging.Logger] = None,
) -> int:
    """Reconcile and persist each entry in order; return how many succeeded.

    A failing entry is logged and skipped, the rest of the batch continues.
    """
    logger = logger or logging.getLogger("country_sync.reconciler")
    rng = rng or random.Random()
    processed = 0

    for raw in raw_countries:
        name = raw.get("name") if isinstance(raw, Mapping) else None
        try:
            record = reconcile_country(raw, snapshot, refreshed_at, rng)
            try:
                persist(record)
            except Exception as exc:
                raise RecordProcessingError(record.name, f"store write failed: {exc}") from exc
        except RecordProcessingError as exc:
            logger.error(
                "Failed to process country: %s (%s)", exc.name or name, exc.cause, extra={"country": exc.name or name}
            )
            continue
        processed += 1

    logger.info("Successfully processed %d countries", processed, extra={"count": processed})
    return processed
