# weblog_data/hybrid/tag_map.py
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine

from weblog_data.data.utils import chunked
from weblog_data.hybrid.helpers import find_documents, in_web_log, save_document, writing
from weblog_data.hybrid.tables import path, tag_map
from weblog_data.schemas.tag_map import TagMap


class TagMapData:
    """Tag mappings stored as JSON documents."""

    def __init__(self, engine: AsyncEngine, batch_size: int = 100):
        self.engine = engine
        self.batch_size = batch_size

    def _in_web_log(self, web_log_id: str):
        return select(tag_map.c.data).where(path(tag_map, "web_log_id") == web_log_id)

    async def delete(self, tag_map_id: str, web_log_id: str) -> bool:
        async with writing(self.engine) as conn:
            if await in_web_log(conn, tag_map, tag_map_id, web_log_id) is None:
                return False
            await conn.execute(tag_map.delete().where(tag_map.c.id == tag_map_id))
            return True

    async def find_by_id(self, tag_map_id: str, web_log_id: str) -> Optional[TagMap]:
        async with self.engine.connect() as conn:
            doc = await in_web_log(conn, tag_map, tag_map_id, web_log_id)
            return TagMap.model_validate(doc) if doc else None

    async def find_by_url_value(self, url_value: str, web_log_id: str) -> Optional[TagMap]:
        async with self.engine.connect() as conn:
            docs = await find_documents(
                conn, self._in_web_log(web_log_id).where(path(tag_map, "url_value") == url_value).limit(1)
            )
            return TagMap.model_validate(docs[0]) if docs else None

    async def find_by_web_log(self, web_log_id: str) -> List[TagMap]:
        async with self.engine.connect() as conn:
            docs = await find_documents(conn, self._in_web_log(web_log_id).order_by(path(tag_map, "tag")))
            return [TagMap.model_validate(doc) for doc in docs]

    async def find_mapping_for_tags(self, tags: List[str], web_log_id: str) -> List[TagMap]:
        if not tags:
            return []
        async with self.engine.connect() as conn:
            docs = await find_documents(
                conn, self._in_web_log(web_log_id).where(path(tag_map, "tag").in_(tags)).order_by(path(tag_map, "tag"))
            )
            return [TagMap.model_validate(doc) for doc in docs]

    async def restore(self, tag_maps: List[TagMap]) -> None:
        for batch in chunked(tag_maps, self.batch_size):
            async with writing(self.engine) as conn:
                await conn.execute(tag_map.insert(), [{"id": tm.id, "data": tm.model_dump(mode="json")} for tm in batch])

    async def save(self, tm: TagMap) -> None:
        async with writing(self.engine) as conn:
            await save_document(conn, tag_map, tm.id, tm.model_dump(mode="json"))
