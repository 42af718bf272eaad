"""Storage key derivation for pages, content documents and locale nodes."""

import uuid
from typing import Optional

PAGES_PATH = "pages"
DOCUMENTS_PATH = "files"
BLOCKS_PATH = "blocks"
LOCALE_PREFIX = "locales"

DEFAULT_TEMPLATE_KEY = f"{BLOCKS_PATH}/new-page-template"


def _identifier() -> str:
    return str(uuid.uuid4())


def new_page_key() -> str:
    return f"{PAGES_PATH}/{_identifier()}"


def new_content_key() -> str:
    return f"{DOCUMENTS_PATH}/{_identifier()}"


def new_block_key() -> str:
    return f"{BLOCKS_PATH}/{_identifier()}"


def locale_node_key(page_key: str, locale: str) -> str:
    """Return the key of the metadata node of *locale* inside a page record."""
    return f"{page_key}/{LOCALE_PREFIX}/{locale}"


def permalink_path(locale: Optional[str]) -> str:
    """Return the attribute path searched when looking a page up by permalink.

    Localized records keep the permalink under ``locales/<code>/permalink``;
    flat records keep it at the top level.
    """
    if locale:
        return f"{LOCALE_PREFIX}/{locale}/permalink"
    return "permalink"


def page_key(identifier: str) -> str:
    """``<id>`` -> ``pages/<id>``."""
    if identifier.startswith(f"{PAGES_PATH}/"):
        return identifier
    return f"{PAGES_PATH}/{identifier}"
