import logging
import logging.config
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from lingopages.config import get_settings
from lingopages.dependencies import get_block_service, get_locale_service, get_storage
from lingopages.models.page import ContentDocument
from lingopages.routers.pages import limiter, router as pages_router
from lingopages.services.errors import NotFoundError, PageValidationError, StoreError
from lingopages.services.page_service import PageService

settings = get_settings()

logging.config.dictConfig(
    {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "format": '{"time": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s"}',
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "json",
            },
        },
        "root": {"level": settings.log_level.upper(), "handlers": ["console"]},
    }
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    blocks = get_block_service()
    await blocks.ensure_block(settings.template_block_key, "New page", ContentDocument(type="page"))
    app.state.page_service = await PageService.from_registry(
        get_storage(),
        blocks,
        get_locale_service(),
        template_block_key=settings.template_block_key,
    )
    logger.info(
        "Page service ready",
        extra={"storage": settings.storage_backend, "localized": app.state.page_service.localization_enabled},
    )
    yield


app = FastAPI(
    title="Lingopages – Localized Page Store",
    description="Stores pages and their content per locale, falling back to the default locale on read.",
    version="1.0.0",
    lifespan=lifespan,
)

# Rate-limiting state
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(PageValidationError)
async def validation_exception_handler(request: Request, exc: PageValidationError) -> JSONResponse:
    logger.warning("Rejected request to %s: %s", request.url, exc)
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(NotFoundError)
async def not_found_exception_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(StoreError)
@app.exception_handler(httpx.HTTPError)
async def store_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Object store failure for %s: %s", request.url, exc)
    return JSONResponse(status_code=502, content={"detail": "The object store request failed."})


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception for %s", request.url)
    return JSONResponse(status_code=500, content={"detail": "An unexpected error occurred."})


app.include_router(pages_router)


@app.get("/", summary="Health check")
async def root() -> dict:
    return {"message": "Hello from Lingopages"}
