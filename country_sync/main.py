import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from country_sync.config import settings
from country_sync.database import Base, engine
from country_sync.errors import CountrySyncError
from country_sync.logging import RequestLoggingMiddleware, init_logging, setup_query_logging
from country_sync.routes import countries, status

logger = logging.getLogger("country_sync")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Missing source URLs fail startup instead of every refresh.
    settings.require_sources()
    Base.metadata.create_all(bind=engine)
    logger.info("Country sync API started (database: %s)", engine.url.render_as_string(hide_password=True))
    yield


app = FastAPI(
    title="Country Currency & Exchange API",
    version="1.0.0",
    description=(
        "Reconciles country metadata with exchange rates and serves the merged records.\n\n"
        "Features:\n"
        "- On-demand refresh from the countries and exchange-rate providers\n"
        "- Filter by region and currency, sort by estimated GDP\n"
        "- Lightweight status and a generated summary image"
    ),
    lifespan=lifespan,
)

# Initialize logging and middleware
init_logging()
app.add_middleware(RequestLoggingMiddleware)
setup_query_logging(engine)

app.include_router(countries.router, prefix="/countries", tags=["Countries"])
app.include_router(status.router, prefix="/status", tags=["Status"])


@app.get("/")
def root():
    return {"message": "Country Currency & Exchange API running. Visit /docs for API documentation."}


# -------------------------------
# Unified error response handlers
# -------------------------------
@app.exception_handler(CountrySyncError)
async def country_sync_error_handler(request: Request, exc: CountrySyncError):
    log = logger.error if exc.http_status >= 500 else logger.info
    log(
        "%s: %s %s -> %s | %s",
        exc.__class__.__name__,
        request.method,
        request.url.path,
        exc.http_status,
        exc.message,
    )
    return JSONResponse(status_code=exc.http_status, content=exc.to_response())


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    logger.warning(
        "HTTPException: %s %s -> %s | detail=%s",
        request.method,
        request.url.path,
        exc.status_code,
        exc.detail,
    )
    body = {"error": exc.detail if isinstance(exc.detail, str) else "Error"}
    if isinstance(exc.detail, dict):
        body = {
            "error": exc.detail.get("error") or "Error",
            "details": exc.detail.get("details"),
        }
    return JSONResponse(status_code=exc.status_code, content=body)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.error(
        "ValidationError: %s %s | errors=%s",
        request.method,
        request.url.path,
        exc.errors(),
    )
    return JSONResponse(
        status_code=400,
        content={
            "error": "Validation failed",
            "details": jsonable_errors(exc),
        },
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    return [{"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")} for e in exc.errors()]


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(
        "Unhandled exception: %s %s",
        request.method,
        request.url.path,
    )
    return JSONResponse(status_code=500, content={"error": "Internal server error"})
