"""Shared fixtures: an in-memory store seeded with the new-page template."""

import pytest

from lingopages.services.blocks import BlockService
from lingopages.services.locales import SettingsLocaleService
from lingopages.services.keys import DEFAULT_TEMPLATE_KEY
from lingopages.services.page_service import PageService
from lingopages.services.storage import MemoryObjectStorage

TEMPLATE_CONTENT = {"type": "page", "nodes": [{"type": "section", "nodes": []}]}


def seeded_storage() -> MemoryObjectStorage:
    return MemoryObjectStorage(
        {
            "blocks": {
                "new-page-template": {
                    "key": DEFAULT_TEMPLATE_KEY,
                    "title": "New page",
                    "content": TEMPLATE_CONTENT,
                }
            }
        }
    )


@pytest.fixture
def storage() -> MemoryObjectStorage:
    return seeded_storage()


@pytest.fixture
def locales() -> SettingsLocaleService:
    return SettingsLocaleService(["en-us", "fr-fr", "ru-ru"], "en-us")


@pytest.fixture
def service(storage, locales) -> PageService:
    return PageService(storage, BlockService(storage), locales)


@pytest.fixture
def flat_service(storage) -> PageService:
    locales = SettingsLocaleService(["en-us"], "en-us", enabled=False)
    return PageService(storage, BlockService(storage), locales, localization_enabled=False)


@pytest.fixture
def template_content() -> dict:
    return TEMPLATE_CONTENT
