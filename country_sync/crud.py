from datetime import datetime
from typing import Any, List, Mapping, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from country_sync import models
from country_sync.errors import NotFoundError

SORT_GDP_ASC = "gdp_asc"
SORT_GDP_DESC = "gdp_desc"
VALID_SORTS = {SORT_GDP_ASC, SORT_GDP_DESC}


def upsert_country(db: Session, row: Mapping[str, Any]) -> models.Country:
    """Create the country if its name is new, otherwise replace every field.

    The row is committed on its own so a failure only rolls back this record.
    """
    try:
        existing = db.query(models.Country).filter(models.Country.name == row["name"]).one_or_none()
        if existing is None:
            country = models.Country(**row)
            db.add(country)
        else:
            country = existing
            for key, value in row.items():
                setattr(country, key, value)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return country


def get_country(db: Session, name: str) -> Optional[models.Country]:
    return db.query(models.Country).filter(models.Country.name == name).first()


def get_countries(db: Session, region=None, currency=None, sort=None) -> List[models.Country]:
    query = db.query(models.Country)
    if region:
        query = query.filter(models.Country.region.contains(region, autoescape=True))
    if currency:
        query = query.filter(models.Country.currency_code.contains(currency, autoescape=True))

    # Null GDP sorts after every value in both directions; id keeps ties stable.
    gdp = models.Country.estimated_gdp
    if sort == SORT_GDP_DESC:
        query = query.order_by(gdp.is_(None), gdp.desc(), models.Country.id.asc())
    elif sort == SORT_GDP_ASC:
        query = query.order_by(gdp.is_(None), gdp.asc(), models.Country.id.asc())
    else:
        query = query.order_by(models.Country.id.asc())
    return query.all()


def get_top_by_gdp(db: Session, limit: int) -> List[models.Country]:
    return (
        db.query(models.Country)
        .filter(models.Country.estimated_gdp.is_not(None))
        .order_by(models.Country.estimated_gdp.desc(), models.Country.id.asc())
        .limit(limit)
        .all()
    )


def delete_country(db: Session, name: str) -> None:
    country = get_country(db, name)
    if country is None:
        raise NotFoundError("Country not found")
    db.delete(country)
    db.commit()


def count_countries(db: Session) -> int:
    return db.query(func.count(models.Country.id)).scalar() or 0


def get_last_refresh(db: Session) -> Optional[datetime]:
    return db.query(func.max(models.Country.last_refreshed_at)).scalar()
