from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from country_sync import schemas
from country_sync.database import get_db
from country_sync.services import country_service

router = APIRouter()


@router.get(
    "",
    response_model=schemas.StatusOut,
    summary="API/data status",
    description="Returns the number of countries stored and the timestamp of the last refresh.",
)
def get_status(db: Session = Depends(get_db)):
    return country_service.get_status(db)
