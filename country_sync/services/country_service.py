import logging
import random
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from sqlalchemy.orm import Session

from country_sync import crud, models
from country_sync.errors import NotFoundError, RefreshInProgressError
from country_sync.services.reconciler import ReconciledCountry, reconcile_batch
from country_sync.services.sources import SourceClient
from country_sync.services.summary import DEFAULT_TOP_N, SummaryRenderer, publish_summary

logger = logging.getLogger("country_sync.service")


class RefreshGuard:
    """Single-flight guard: at most one refresh runs in this process."""

    def __init__(self):
        self._lock = threading.Lock()

    def __enter__(self):
        if not self._lock.acquire(blocking=False):
            raise RefreshInProgressError()
        return self

    def __exit__(self, exc_type, exc, tb):
        self._lock.release()
        return False

    @property
    def busy(self) -> bool:
        return self._lock.locked()


refresh_guard = RefreshGuard()


def refresh_countries(
    db: Session,
    client: SourceClient,
    renderer: SummaryRenderer,
    rng: Optional[random.Random] = None,
    top_n: int = DEFAULT_TOP_N,
    guard: RefreshGuard = refresh_guard,
    log: logging.Logger = logger,
) -> dict:
    """Run one reconciliation pass: fetch, reconcile, persist, summarize.

    Fetch errors propagate before anything is written. Per-record and summary
    failures are logged and do not change the reported count.
    """
    with guard:
        log.info("Starting country refresh")
        raw_countries = client.fetch_countries()
        snapshot = client.fetch_exchange_rates()

        now = datetime.now(timezone.utc)

        def _persist(record: ReconciledCountry):
            crud.upsert_country(db, record.as_row())

        count = reconcile_batch(raw_countries, snapshot, _persist, now, rng=rng, logger=log)
        publish_summary(db, renderer, now, top_n=top_n, logger=log)
        log.info("Refresh finished: %d countries persisted", count, extra={"count": count})

    return {"message": "Countries refreshed successfully", "count": count}


def list_countries(
    db: Session,
    region: Optional[str] = None,
    currency: Optional[str] = None,
    sort: Optional[str] = None,
) -> List[models.Country]:
    if sort is not None and sort not in crud.VALID_SORTS:
        logger.debug("Unrecognized sort %r; using default order", sort)
        sort = None
    return crud.get_countries(db, region, currency, sort)


def get_country_by_name(db: Session, name: str) -> models.Country:
    country = crud.get_country(db, name)
    if country is None:
        raise NotFoundError("Country not found")
    return country


def delete_country_by_name(db: Session, name: str) -> dict:
    crud.delete_country(db, name)
    return {"message": f"Country {name} deleted successfully"}


def get_status(db: Session) -> dict:
    return {
        "total_countries": crud.count_countries(db),
        "last_refreshed_at": crud.get_last_refresh(db),
    }


def get_summary_artifact_path(renderer: SummaryRenderer) -> Path:
    path = Path(renderer.get_artifact_path())
    if not path.exists():
        raise NotFoundError("Summary image not found")
    return path
