import logging
from typing import List, Optional, Union

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from slowapi import Limiter
from slowapi.util import get_remote_address

from lingopages.config import get_settings
from lingopages.dependencies import get_page_service, use_request_locale
from lingopages.models.page import ContentDocument, PageContract, PageRecord
from lingopages.models.request import CreatePageRequest
from lingopages.services.keys import page_key
from lingopages.services.page_service import PageService

logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address)
router = APIRouter(prefix="/pages", tags=["pages"], dependencies=[Depends(use_request_locale)])


def _write_limit() -> str:
    return get_settings().write_rate_limit


@router.post(
    "",
    response_model=PageContract,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
    summary="Create a page in the current locale",
)
@limiter.limit(_write_limit)
async def create_page(
    request: Request,
    body: CreatePageRequest,
    pages: PageService = Depends(get_page_service),
) -> PageContract:
    """Create a page seeded from the new-page template.

    The page is created under the request's current locale (``X-Locale``).
    """
    logger.info("Create page request received", extra={"permalink": body.permalink})
    return await pages.create_page(body.permalink, body.title, body.description, body.keywords)


@router.get("", response_model=List[PageContract], response_model_exclude_none=True, summary="Search pages")
async def search_pages(
    pattern: Optional[str] = Query(default=None, description="Case-insensitive title substring."),
    locale: Optional[str] = None,
    pages: PageService = Depends(get_page_service),
) -> List[PageContract]:
    return await pages.search(pattern, locale)


@router.get(
    "/by-permalink",
    response_model=PageContract,
    response_model_exclude_none=True,
    summary="Look a page up by permalink",
)
async def get_page_by_permalink(
    permalink: str = Query(min_length=1, examples=["/about"]),
    locale: Optional[str] = None,
    pages: PageService = Depends(get_page_service),
) -> PageContract:
    page = await pages.get_page_by_permalink(permalink, locale)
    if page is None:
        raise HTTPException(status_code=404, detail=f'No page with permalink "{permalink}".')
    return page


@router.get("/{page_id}", response_model=PageContract, response_model_exclude_none=True)
async def get_page(
    page_id: str,
    locale: Optional[str] = None,
    pages: PageService = Depends(get_page_service),
) -> PageContract:
    return await pages.get_page_by_key(page_key(page_id), locale)


@router.put("/{page_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Overwrite a stored page")
@limiter.limit(_write_limit)
async def update_page(
    request: Request,
    page_id: str,
    body: Union[PageRecord, PageContract],
    pages: PageService = Depends(get_page_service),
) -> None:
    if body.key != page_key(page_id):
        raise HTTPException(status_code=400, detail="Page key in the body does not match the URL.")
    await pages.update_page(body)


@router.delete("/{page_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit(_write_limit)
async def delete_page(
    request: Request,
    page_id: str,
    locale: Optional[str] = None,
    pages: PageService = Depends(get_page_service),
) -> None:
    """Delete one locale of a page (the whole page when it is the last one)."""
    key = page_key(page_id)
    logger.info("Delete page request received", extra={"key": key, "locale": locale})
    await pages.delete_page(key, locale)


@router.get("/{page_id}/content", response_model=ContentDocument, response_model_exclude_unset=True)
async def get_page_content(
    page_id: str,
    locale: Optional[str] = None,
    pages: PageService = Depends(get_page_service),
) -> ContentDocument:
    return await pages.get_page_content(page_key(page_id), locale)


@router.put("/{page_id}/content", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit(_write_limit)
async def update_page_content(
    request: Request,
    page_id: str,
    body: ContentDocument,
    locale: Optional[str] = None,
    pages: PageService = Depends(get_page_service),
) -> None:
    await pages.update_page_content(page_key(page_id), body, locale)
