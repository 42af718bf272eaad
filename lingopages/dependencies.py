"""FastAPI dependency providers."""

from functools import lru_cache
from typing import Optional

from fastapi import Depends, Header, Request

from lingopages.config import get_settings
from lingopages.services.blocks import BlockService
from lingopages.services.locales import LocaleService, SettingsLocaleService
from lingopages.services.page_service import PageService
from lingopages.services.storage import HttpObjectStorage, MemoryObjectStorage, ObjectStorage


@lru_cache
def get_storage() -> ObjectStorage:
    settings = get_settings()
    if settings.storage_backend == "http":
        return HttpObjectStorage(
            settings.storage_url,
            auth_token=settings.storage_auth_token,
            timeout=settings.storage_timeout,
        )
    return MemoryObjectStorage()


@lru_cache
def get_locale_service() -> LocaleService:
    settings = get_settings()
    return SettingsLocaleService(
        settings.locales,
        settings.default_locale,
        enabled=settings.localization_enabled,
    )


@lru_cache
def get_block_service() -> BlockService:
    return BlockService(get_storage())


def get_page_service(request: Request) -> PageService:
    """The page service is built once at startup; see ``lingopages.main``."""
    return request.app.state.page_service


async def use_request_locale(
    x_locale: Optional[str] = Header(default=None),
    locales: LocaleService = Depends(get_locale_service),
) -> Optional[str]:
    """Make the ``X-Locale`` header the current locale for this request."""
    await locales.set_current_locale(x_locale or await locales.get_default_locale())
    return x_locale
