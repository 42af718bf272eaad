"""Block library access. New pages are seeded from a template block."""

import logging
from typing import List, Optional

from pydantic import ValidationError

from lingopages.models.block import BlockContract
from lingopages.models.page import ContentDocument
from lingopages.services.errors import NotFoundError, PageValidationError, StoreError
from lingopages.services.keys import BLOCKS_PATH, new_block_key
from lingopages.services.storage import ObjectStorage, Operator, Query

logger = logging.getLogger(__name__)


class BlockService:
    def __init__(self, storage: ObjectStorage) -> None:
        self._storage = storage

    async def get_block_by_key(self, key: str) -> BlockContract:
        if not key:
            raise PageValidationError('Parameter "key" not specified.')

        data = await self._storage.get_object(key)
        if data is None:
            raise NotFoundError(f'Block with key "{key}" not found.')
        try:
            return BlockContract.model_validate(data)
        except ValidationError as exc:
            raise StoreError(f'Stored block "{key}" is malformed: {exc}') from exc

    async def get_block_content(self, key: str) -> ContentDocument:
        block = await self.get_block_by_key(key)
        return block.content

    async def search(self, pattern: Optional[str] = None) -> List[BlockContract]:
        query = Query()
        if pattern:
            query.where("title", Operator.CONTAINS, pattern)

        results = await self._storage.search_objects(BLOCKS_PATH, query)
        return [BlockContract.model_validate(value) for _key, value in results]

    async def create_block(
        self,
        title: str,
        description: str = "",
        content: Optional[ContentDocument] = None,
        key: Optional[str] = None,
    ) -> BlockContract:
        if not title:
            raise PageValidationError('Parameter "title" not specified.')

        block = BlockContract(
            key=key or new_block_key(),
            title=title,
            description=description,
            content=content or ContentDocument(),
        )
        await self._storage.add_object(block.key, block.model_dump(exclude_unset=True))
        logger.info("Created block %s", block.key)
        return block

    async def ensure_block(self, key: str, title: str, content: Optional[ContentDocument] = None) -> BlockContract:
        """Return the block at *key*, creating it from *content* when it does not exist yet."""
        try:
            return await self.get_block_by_key(key)
        except NotFoundError:
            logger.info("Block %s missing, seeding it", key)
            return await self.create_block(title, content=content, key=key)
