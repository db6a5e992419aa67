from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from country_sync import schemas
from country_sync.config import settings
from country_sync.database import get_db
from country_sync.dependencies import get_renderer, get_source_client
from country_sync.services import country_service
from country_sync.services.image_generator import SummaryImageRenderer
from country_sync.services.sources import SourceClient

router = APIRouter()


@router.post(
    "/refresh",
    response_model=schemas.RefreshOut,
    summary="Refresh country, currency, and exchange data",
    description=(
        "Fetches the latest data from external providers and upserts every country. "
        "Also regenerates the summary image for the top 5 GDP countries."
    ),
)
def refresh_countries(
    db: Session = Depends(get_db),
    client: SourceClient = Depends(get_source_client),
    renderer: SummaryImageRenderer = Depends(get_renderer),
):
    return country_service.refresh_countries(db, client, renderer, top_n=settings.SUMMARY_TOP_N)


@router.get(
    "",
    response_model=List[schemas.CountryOut],
    summary="List countries",
    description=(
        "Returns countries with optional filtering and sorting.\n\n"
        "Filters (case-sensitive substring match):\n"
        "- region: e.g. 'Europe'\n"
        "- currency: e.g. 'NGN'\n\n"
        "Sorting options (sort): gdp_asc|gdp_desc. Countries without a GDP estimate come last; "
        "any other value keeps insertion order."
    ),
    response_description="List of countries",
)
def get_all(
    region: Optional[str] = Query(default=None, description="Filter by region substring", examples=["Africa"]),
    currency: Optional[str] = Query(default=None, description="Filter by currency code substring", examples=["NGN"]),
    sort: Optional[str] = Query(default=None, description="gdp_asc or gdp_desc", examples=["gdp_desc"]),
    db: Session = Depends(get_db),
):
    return country_service.list_countries(db, region, currency, sort)


@router.get(
    "/image",
    summary="Get generated summary image",
    description="Returns the PNG summary (top 5 GDP countries, total count, last refresh time).",
)
def get_image(renderer: SummaryImageRenderer = Depends(get_renderer)):
    path = country_service.get_summary_artifact_path(renderer)
    return FileResponse(str(path), media_type="image/png")


@router.get(
    "/{name}",
    response_model=schemas.CountryOut,
    summary="Get country by name",
    description="Exact, case-sensitive country name match.",
)
def get_one(
    name: str = Path(..., description="Exact country name", examples=["Nigeria"]),
    db: Session = Depends(get_db),
):
    return country_service.get_country_by_name(db, name)


@router.delete(
    "/{name}",
    response_model=schemas.MessageOut,
    summary="Delete a country by name",
)
def delete_country(
    name: str = Path(..., description="Exact country name", examples=["Nigeria"]),
    db: Session = Depends(get_db),
):
    return country_service.delete_country_by_name(db, name)
