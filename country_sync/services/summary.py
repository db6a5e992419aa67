import logging
from datetime import datetime
from typing import List, Optional, Protocol, Sequence, Tuple

from sqlalchemy.orm import Session

from country_sync import crud
from country_sync.errors import SummaryGenerationError
from country_sync.schemas import CountrySummary

DEFAULT_TOP_N = 5


class SummaryRenderer(Protocol):
    def generate_summary_image(self, total: int, top_countries: Sequence[CountrySummary], timestamp: datetime): ...

    def get_artifact_path(self): ...


def build_summary(db: Session, top_n: int = DEFAULT_TOP_N) -> Tuple[int, List[CountrySummary]]:
    total = crud.count_countries(db)
    top = [CountrySummary.model_validate(c) for c in crud.get_top_by_gdp(db, top_n)]
    return total, top


def publish_summary(
    db: Session,
    renderer: SummaryRenderer,
    timestamp: datetime,
    top_n: int = DEFAULT_TOP_N,
    logger: Optional[logging.Logger] = None,
) -> bool:
    """Render the summary image for a finished pass.

    Failures are logged and reported as False; they never reach the caller.
    """
    logger = logger or logging.getLogger("country_sync.summary")
    try:
        total, top = build_summary(db, top_n)
        renderer.generate_summary_image(total, top, timestamp)
    except Exception as exc:
        error = SummaryGenerationError(f"Failed to generate summary image: {exc}")
        logger.error(error.message, exc_info=True)
        return False
    logger.info("Summary image written for %d countries", total, extra={"count": total})
    return True
