# weblog_data/document/tag_map.py
from typing import List, Optional

from weblog_data.data.utils import chunked
from weblog_data.document.helpers import (
    TAG_MAP, DocumentFamily, find_all, from_doc, in_web_log, retried, save_document, to_doc
)
from weblog_data.schemas.tag_map import TagMap


def to_tag_map(doc) -> TagMap:
    return TagMap.model_validate(from_doc(doc))


class TagMapData(DocumentFamily):
    """Tag mappings in the document store."""

    @retried
    async def delete(self, tag_map_id: str, web_log_id: str) -> bool:
        result = await self.collection(TAG_MAP).delete_one({"_id": tag_map_id, "web_log_id": web_log_id})
        return result.deleted_count > 0

    @retried
    async def find_by_id(self, tag_map_id: str, web_log_id: str) -> Optional[TagMap]:
        doc = await in_web_log(self.collection(TAG_MAP), tag_map_id, web_log_id)
        return to_tag_map(doc) if doc else None

    @retried
    async def find_by_url_value(self, url_value: str, web_log_id: str) -> Optional[TagMap]:
        doc = await self.collection(TAG_MAP).find_one({"web_log_id": web_log_id, "url_value": url_value})
        return to_tag_map(doc) if doc else None

    @retried
    async def find_by_web_log(self, web_log_id: str) -> List[TagMap]:
        docs = await find_all(self.collection(TAG_MAP), {"web_log_id": web_log_id}, sort=[("tag", 1)])
        return [to_tag_map(doc) for doc in docs]

    @retried
    async def find_mapping_for_tags(self, tags: List[str], web_log_id: str) -> List[TagMap]:
        if not tags:
            return []
        docs = await find_all(
            self.collection(TAG_MAP), {"web_log_id": web_log_id, "tag": {"$in": tags}}, sort=[("tag", 1)]
        )
        return [to_tag_map(doc) for doc in docs]

    async def restore(self, tag_maps: List[TagMap]) -> None:
        for batch in chunked(tag_maps, self.batch_size):
            await self._insert(batch)

    @retried
    async def _insert(self, batch: List[TagMap]) -> None:
        await self.collection(TAG_MAP).insert_many([to_doc(tag_map) for tag_map in batch])

    @retried
    async def save(self, tag_map: TagMap) -> None:
        await save_document(self.collection(TAG_MAP), to_doc(tag_map))
