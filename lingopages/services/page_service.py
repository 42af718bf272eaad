"""Locale-aware page lookup and page lifecycle on top of an object store.

A page is stored in one of two shapes, chosen once when the service is built:

* localized – a :class:`PageRecord` keyed by locale code, each entry holding
  its own metadata and (optionally) its own content key;
* flat – a single :class:`PageContract` when localization is disabled.

Reads resolve the requested locale and fall back to the default locale.
Content has a second, independent fallback: a locale entry without a content
key shows the default locale's content.  Writes are not atomic; see
:mod:`lingopages.services.sequence`.
"""

import logging
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from lingopages.models.page import ContentDocument, LocaleMetadata, PageContract, PageRecord
from lingopages.services.blocks import BlockService
from lingopages.services.errors import (
    InconsistentStateError,
    NotFoundError,
    PageValidationError,
    StoreError,
)
from lingopages.services.keys import (
    DEFAULT_TEMPLATE_KEY,
    PAGES_PATH,
    locale_node_key,
    new_content_key,
    new_page_key,
    permalink_path,
)
from lingopages.services.locales import LocaleService
from lingopages.services.sequence import BestEffortSequence, gather_all
from lingopages.services.storage import ObjectStorage, Operator, Query

logger = logging.getLogger(__name__)

PageLike = Union[PageRecord, PageContract]


def resolve_locale(record: PageRecord, requested_locale: Optional[str], default_locale: str) -> LocaleMetadata:
    """Return the entry for *requested_locale*, else the one for *default_locale*.

    Raises:
        InconsistentStateError: when neither entry exists.
    """
    if requested_locale and requested_locale in record.locales:
        return record.locales[requested_locale]
    if default_locale in record.locales:
        return record.locales[default_locale]
    raise InconsistentStateError(
        f'Page "{record.key}" has neither a "{requested_locale}" nor a default "{default_locale}" locale entry.'
    )


def flatten(record: PageRecord, metadata: LocaleMetadata) -> PageContract:
    return PageContract(key=record.key, **metadata.model_dump())


def _dump(model: Any) -> Dict[str, Any]:
    return model.model_dump(by_alias=True, exclude_none=True)


def _dump_content(content: ContentDocument) -> Dict[str, Any]:
    """Content goes to the store exactly as it was given, ``None`` values included."""
    data = content.model_dump(exclude_unset=True)
    data.update(content.model_extra or {})
    return data


class PageService:
    def __init__(
        self,
        storage: ObjectStorage,
        blocks: BlockService,
        locales: LocaleService,
        localization_enabled: bool = True,
        template_block_key: str = DEFAULT_TEMPLATE_KEY,
    ) -> None:
        self._storage = storage
        self._blocks = blocks
        self._locales = locales
        self._localized = localization_enabled
        self._template_block_key = template_block_key

    @classmethod
    async def from_registry(
        cls,
        storage: ObjectStorage,
        blocks: BlockService,
        locales: LocaleService,
        template_block_key: str = DEFAULT_TEMPLATE_KEY,
    ) -> "PageService":
        """Build a service whose storage shape follows the registry's localization flag."""
        enabled = await locales.is_localization_enabled()
        return cls(storage, blocks, locales, localization_enabled=enabled, template_block_key=template_block_key)

    @property
    def localization_enabled(self) -> bool:
        return self._localized

    # ------------------------------------------------------------------
    # Parsing at the store boundary
    # ------------------------------------------------------------------

    @staticmethod
    def _parse_record(data: Any, key: str) -> PageRecord:
        try:
            return PageRecord.model_validate(data)
        except ValidationError as exc:
            raise StoreError(f'Stored page "{key}" is malformed: {exc}') from exc

    @staticmethod
    def _parse_flat(data: Any, key: str) -> PageContract:
        try:
            return PageContract.model_validate(data)
        except ValidationError as exc:
            raise StoreError(f'Stored page "{key}" is malformed: {exc}') from exc

    @staticmethod
    def _parse_content(data: Any, key: str) -> ContentDocument:
        try:
            return ContentDocument.model_validate(data)
        except ValidationError as exc:
            raise StoreError(f'Stored content "{key}" is malformed: {exc}') from exc

    async def _load(self, key: str) -> Any:
        data = await self._storage.get_object(key)
        if data is None:
            raise NotFoundError(f'Page with key "{key}" not found.')
        return data

    def _view(self, data: Any, key: str, locale: Optional[str], default_locale: Optional[str]) -> PageContract:
        if not self._localized:
            return self._parse_flat(data, key)
        record = self._parse_record(data, key)
        return flatten(record, resolve_locale(record, locale, default_locale))

    async def _requested_locale(self, locale: Optional[str]) -> Optional[str]:
        """An explicit *locale* wins over the registry's current locale."""
        if not self._localized:
            return None
        return locale or await self._locales.get_current_locale()

    async def _default_locale(self) -> Optional[str]:
        if not self._localized:
            return None
        return await self._locales.get_default_locale()

    async def _search_permalink(self, permalink: str, locale: Optional[str]) -> list:
        query = Query().where(permalink_path(locale), Operator.EQUALS, permalink)
        return await self._storage.search_objects(PAGES_PATH, query)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_page_by_permalink(self, permalink: str, locale: Optional[str] = None) -> Optional[PageContract]:
        """Find the page published under *permalink*, or ``None``.

        The permalink is first matched under the requested locale, then under
        the default locale.  The match is resolved with the locale it was
        found under.  When several pages match, the first one wins.
        """
        if not permalink:
            raise PageValidationError('Parameter "permalink" not specified.')

        locale = await self._requested_locale(locale)
        default_locale = await self._default_locale()

        results = await self._search_permalink(permalink, locale)

        if not results and default_locale and default_locale != locale:
            logger.debug(
                "No page with permalink %s under %s, trying default locale %s",
                permalink,
                locale,
                default_locale,
            )
            locale = default_locale
            results = await self._search_permalink(permalink, locale)

        if not results:
            return None

        key, data = results[0]
        return self._view(data, key, locale, default_locale)

    async def get_page_by_key(self, key: str, locale: Optional[str] = None) -> PageContract:
        if not key:
            raise PageValidationError('Parameter "key" not specified.')

        locale = await self._requested_locale(locale)
        default_locale = await self._default_locale()
        data = await self._load(key)
        return self._view(data, key, locale, default_locale)

    async def search(self, pattern: Optional[str] = None, locale: Optional[str] = None) -> List[PageContract]:
        """Return every page resolved to *locale*, optionally filtered by title.

        *pattern* is a case-insensitive substring of the resolved title, so a
        page whose requested locale falls back to the default locale is
        matched on the default title.  Pages that cannot be read or resolved
        are logged and left out.
        """
        locale = await self._requested_locale(locale)
        default_locale = await self._default_locale()

        results = await self._storage.search_objects(PAGES_PATH, Query())
        pages = []
        for key, data in results:
            try:
                pages.append(self._view(data, key, locale, default_locale))
            except (StoreError, InconsistentStateError) as exc:
                logger.warning("Skipping page %s in search: %s", key, exc)

        if pattern:
            needle = pattern.lower()
            pages = [page for page in pages if needle in page.title.lower()]

        return pages

    async def get_page_content(self, page_key: str, locale: Optional[str] = None) -> ContentDocument:
        """Return the content document shown for *page_key* in *locale*.

        Raises:
            NotFoundError: when the page does not exist or no content key can be
                resolved through the locale or the default locale.
            InconsistentStateError: when the resolved content key points at
                nothing.
        """
        if not page_key:
            raise PageValidationError('Parameter "page_key" not specified.')

        data = await self._load(page_key)

        if not self._localized:
            content_key = self._parse_flat(data, page_key).content_key
        else:
            locale = await self._requested_locale(locale)
            default_locale = await self._default_locale()
            record = self._parse_record(data, page_key)
            content_key = resolve_locale(record, locale, default_locale).content_key

            if not content_key:
                default_metadata = record.locales.get(default_locale)
                content_key = default_metadata.content_key if default_metadata else None
                logger.debug("Page %s has no %s content, using %s content", page_key, locale, default_locale)

        if not content_key:
            raise NotFoundError(f'Page "{page_key}" has no content.')

        content = await self._storage.get_object(content_key)
        if content is None:
            logger.warning("Page %s references missing content %s", page_key, content_key)
            raise InconsistentStateError(f'Page content with key "{content_key}" could not be found.')

        return self._parse_content(content, content_key)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create_page(
        self,
        permalink: str,
        title: str,
        description: str = "",
        keywords: str = "",
    ) -> PageContract:
        """Create a page under the current locale, seeded from the template block.

        The template is read before anything is written.  The record is
        written first and the content second; if the content write fails the
        record is deleted again and the error is re-raised.
        """
        if not permalink:
            raise PageValidationError('Parameter "permalink" not specified.')
        if not title:
            raise PageValidationError('Parameter "title" not specified.')

        template = await self._blocks.get_block_content(self._template_block_key)

        page_key = new_page_key()
        content_key = new_content_key()
        metadata = LocaleMetadata(
            title=title,
            description=description,
            keywords=keywords,
            permalink=permalink,
            content_key=content_key,
        )

        locale = None
        if self._localized:
            locale = await self._locales.get_current_locale()
            record = PageRecord(key=page_key, locales={locale: metadata})
            stored = _dump(record)
            page = flatten(record, metadata)
        else:
            page = PageContract(key=page_key, **metadata.model_dump())
            stored = _dump(page)

        sequence = BestEffortSequence(f"create {page_key}")
        sequence.add(
            "write page record",
            lambda: self._storage.add_object(page_key, stored),
            compensate=lambda: self._storage.delete_object(page_key),
        )
        sequence.add("write content", lambda: self._storage.add_object(content_key, _dump_content(template)))
        await sequence.run()

        logger.info("Created page %s", page_key, extra={"locale": locale, "permalink": permalink})
        return page

    async def update_page(self, page: PageLike) -> None:
        """Overwrite the stored page with *page* as given. Last writer wins."""
        if page is None:
            raise PageValidationError('Parameter "page" not specified.')

        expected = PageRecord if self._localized else PageContract
        if not isinstance(page, expected):
            raise PageValidationError(f'Expected a {expected.__name__} to update a page, got {type(page).__name__}.')

        await self._storage.update_object(page.key, _dump(page))

    async def update_page_content(
        self,
        page_key: str,
        content: Union[ContentDocument, Dict[str, Any]],
        locale: Optional[str] = None,
    ) -> None:
        """Write *content* for *page_key* in *locale*.

        A locale without an entry gets one, copying title, description and
        permalink from the default locale.  A locale without a content key
        gets a fresh one.  In both cases the record is saved before the
        content is written.
        """
        if not page_key:
            raise PageValidationError('Parameter "page_key" not specified.')
        if content is None:
            raise PageValidationError('Parameter "content" not specified.')

        if not isinstance(content, ContentDocument):
            try:
                content = ContentDocument.model_validate(content)
            except ValidationError as exc:
                raise PageValidationError(f"Invalid content document: {exc}") from exc

        data = await self._load(page_key)

        if not self._localized:
            page = self._parse_flat(data, page_key)
            if not page.content_key:
                page.content_key = new_content_key()
                await self._storage.update_object(page_key, _dump(page))
                logger.info("Allocated content %s for page %s", page.content_key, page_key)
            await self._storage.update_object(page.content_key, _dump_content(content))
            return

        locale = await self._requested_locale(locale)
        record = self._parse_record(data, page_key)
        metadata = record.locales.get(locale)

        if metadata is None:
            default_locale = await self._default_locale()
            default_metadata = record.locales.get(default_locale)
            if default_metadata is None:
                raise InconsistentStateError(
                    f'Page "{page_key}" has no default "{default_locale}" locale entry to copy from.'
                )

            metadata = LocaleMetadata(
                title=default_metadata.title,
                description=default_metadata.description,
                permalink=default_metadata.permalink,
                content_key=new_content_key(),
            )
            record.locales[locale] = metadata
            await self._storage.update_object(page_key, _dump(record))
            logger.info("Added locale %s to page %s", locale, page_key)

        elif not metadata.content_key:
            metadata.content_key = new_content_key()
            await self._storage.update_object(page_key, _dump(record))
            logger.info("Allocated %s content %s for page %s", locale, metadata.content_key, page_key)

        await self._storage.update_object(metadata.content_key, _dump_content(content))

    async def delete_page(self, page: Union[str, PageLike], locale: Optional[str] = None) -> None:
        """Delete one locale of *page*, or the whole page when localization is off.

        *page* is a page key, a stored record or a resolved view.  Removing
        the only locale of a record removes the whole page.  The default
        locale can only go once it is the last one left.  The content delete
        and the metadata delete are fired together; if one fails the other's
        effect stays applied and the failure is re-raised.
        """
        if not page:
            raise PageValidationError('Parameter "page" not specified.')

        if not self._localized:
            if isinstance(page, str):
                page = self._parse_flat(await self._load(page), page)
            elif not isinstance(page, PageContract):
                raise PageValidationError(f'Expected a PageContract to delete a page, got {type(page).__name__}.')
            await self._delete_whole_page(page.key, [page.content_key])
            return

        locale = await self._requested_locale(locale)
        if isinstance(page, PageRecord):
            record = page
        else:
            key = page if isinstance(page, str) else page.key
            record = self._parse_record(await self._load(key), key)

        metadata = record.locales.get(locale)
        if metadata is None:
            raise NotFoundError(f'Page "{record.key}" has no "{locale}" locale.')

        if len(record.locales) == 1:
            await self._delete_whole_page(record.key, [metadata.content_key])
            return

        if locale == await self._default_locale():
            raise PageValidationError(
                f'Default locale "{locale}" of page "{record.key}" cannot be deleted while other locales remain.'
            )

        deletes = [self._storage.delete_object(locale_node_key(record.key, locale))]
        if metadata.content_key:
            deletes.append(self._storage.delete_object(metadata.content_key))

        await gather_all(*deletes)
        logger.info("Deleted locale %s of page %s", locale, record.key)

    async def _delete_whole_page(self, key: str, content_keys: List[Optional[str]]) -> None:
        deletes = [self._storage.delete_object(c) for c in content_keys if c]
        deletes.append(self._storage.delete_object(key))
        await gather_all(*deletes)
        logger.info("Deleted page %s", key)
