import logging
import random
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from country_sync.errors import RecordProcessingError
from country_sync.services.reconciler import MAX_POPULATION, draw_multiplier, reconcile_batch, reconcile_country
from tests.conftest import make_snapshot

NOW = datetime(2025, 10, 22, 9, 30, tzinfo=timezone.utc)


def raw(name="Testland", population=1000, currencies=None, **extra):
    entry = {"name": name, "population": population, "currencies": currencies if currencies is not None else []}
    entry.update(extra)
    return entry


def test_currency_in_snapshot_sets_rate_and_gdp():
    snapshot = make_snapshot({"TST": 2.0})
    record = reconcile_country(
        raw(currencies=[{"code": "TST", "name": "Test", "symbol": "T"}], capital="Test City", region="Test Region",
            flag="http://flag"),
        snapshot,
        NOW,
        random.Random(7),
    )

    assert record.currency_code == "TST"
    assert record.exchange_rate == Decimal("2")
    assert record.estimated_gdp is not None
    assert Decimal(1000) * 1000 / 2 <= record.estimated_gdp < Decimal(1000) * 2000 / 2
    assert record.capital == "Test City"
    assert record.region == "Test Region"
    assert record.flag_url == "http://flag"
    assert record.last_refreshed_at == NOW


def test_currency_missing_from_snapshot_leaves_both_null():
    record = reconcile_country(raw(currencies=[{"code": "XYZ"}]), make_snapshot({"TST": 2.0}), NOW)

    assert record.currency_code == "XYZ"
    assert record.exchange_rate is None
    assert record.estimated_gdp is None


@pytest.mark.parametrize("currencies", [[], None])
def test_no_currency_means_zero_gdp(currencies):
    entry = raw(population=500)
    entry["currencies"] = currencies
    record = reconcile_country(entry, make_snapshot({"TST": 2.0}), NOW)

    assert record.currency_code is None
    assert record.exchange_rate is None
    assert record.estimated_gdp == 0


def test_only_first_currency_is_used():
    snapshot = make_snapshot({"EUR": 0.9, "USD": 1.0})
    record = reconcile_country(raw(currencies=[{"code": "EUR"}, {"code": "USD"}]), snapshot, NOW)

    assert record.currency_code == "EUR"
    assert record.exchange_rate == Decimal("0.9")


def test_multiplier_stays_in_range():
    rng = random.Random(0)
    values = [draw_multiplier(rng) for _ in range(500)]
    assert all(Decimal(1000) <= v < Decimal(2000) for v in values)


def test_gdp_differs_between_passes_for_same_input():
    snapshot = make_snapshot({"AFN": 70.0})
    entry = raw(name="Afghanistan", population=40000000, currencies=[{"code": "AFN"}])
    first = reconcile_country(entry, snapshot, NOW, random.Random(1))
    second = reconcile_country(entry, snapshot, NOW, random.Random(2))

    assert first.estimated_gdp != second.estimated_gdp
    assert first.exchange_rate == second.exchange_rate


def test_large_population_keeps_full_precision():
    population = 9_007_199_254_740_993  # not representable as a float
    record = reconcile_country(raw(population=population), make_snapshot({}), NOW)
    assert record.population == population


def test_population_beyond_storage_range_is_rejected():
    with pytest.raises(RecordProcessingError) as exc:
        reconcile_country(raw(population=MAX_POPULATION + 1), make_snapshot({}), NOW)
    assert exc.value.name == "Testland"


@pytest.mark.parametrize(
    "entry",
    [
        {"population": 10, "currencies": []},
        {"name": "", "population": 10},
        {"name": "Negative", "population": -1},
        {"name": "NoPop"},
    ],
)
def test_invalid_entries_raise_record_error(entry):
    with pytest.raises(RecordProcessingError):
        reconcile_country(entry, make_snapshot({}), NOW)


def test_batch_skips_failures_and_counts_successes(caplog):
    persisted = []

    def persist(record):
        if record.name == "Broken":
            raise RuntimeError("disk full")
        persisted.append(record.name)

    entries = [
        raw(name="First", currencies=[{"code": "TST"}]),
        {"population": 5},
        raw(name="Broken"),
        raw(name="Last"),
    ]
    logger = logging.getLogger("tests.reconciler")
    with caplog.at_level(logging.ERROR, logger="tests.reconciler"):
        count = reconcile_batch(entries, make_snapshot({"TST": 1.5}), persist, NOW, logger=logger)

    assert count == 2
    assert persisted == ["First", "Last"]
    messages = [r.getMessage() for r in caplog.records]
    assert any("Broken" in m and "disk full" in m for m in messages)
    assert len(messages) == 2


@pytest.mark.parametrize(
    "overrides",
    [
        {"name": "N" * 101},
        {"capital": "X" * 120},
        {"region": "R" * 51},
        {"flag": "https://flags.test/" + "f" * 250},
        {"currencies": [{"code": "C" * 11}]},
    ],
)
def test_fields_longer_than_their_columns_are_rejected(overrides):
    entry = raw(name="Longfield")
    entry.update(overrides)

    with pytest.raises(RecordProcessingError):
        reconcile_country(entry, make_snapshot({}), NOW)


@pytest.mark.parametrize("rate", [1e-7, 0.000123456, 1234.5678])
def test_stored_rate_equals_snapshot_rate_and_drives_gdp(rate):
    snapshot = make_snapshot({"TNY": rate})
    record = reconcile_country(raw(population=1000, currencies=[{"code": "TNY"}]), snapshot, NOW, random.Random(4))

    assert record.exchange_rate == snapshot.rates["TNY"]
    assert record.exchange_rate.as_tuple().exponent == -18
    multiplier = record.estimated_gdp * record.exchange_rate / 1000
    assert Decimal(1000) <= multiplier.quantize(Decimal("1e-6")) < Decimal(2000)


def test_rate_that_rounds_to_zero_is_a_record_error():
    with pytest.raises(RecordProcessingError) as exc:
        reconcile_country(raw(currencies=[{"code": "DST"}]), make_snapshot({"DST": 1e-20}), NOW)
    assert "rounds to zero" in exc.value.cause
