# weblog_data/relational/tag_map.py
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncEngine
from sqlmodel import select

from weblog_data.data.utils import chunked
from weblog_data.relational.helpers import open_session
from weblog_data.relational.models import TagMapRow
from weblog_data.schemas.tag_map import TagMap


def to_tag_map(row: TagMapRow) -> TagMap:
    return TagMap(id=row.id, web_log_id=row.web_log_id, tag=row.tag, url_value=row.url_value)


class TagMapData:
    """Tag mappings in the relational store."""

    def __init__(self, engine: AsyncEngine, batch_size: int = 100):
        self.engine = engine
        self.batch_size = batch_size

    async def delete(self, tag_map_id: str, web_log_id: str) -> bool:
        async with open_session(self.engine) as db:
            row = await db.get(TagMapRow, tag_map_id)
            if row is None or row.web_log_id != web_log_id:
                return False
            await db.delete(row)
            await db.commit()
            return True

    async def find_by_id(self, tag_map_id: str, web_log_id: str) -> Optional[TagMap]:
        async with open_session(self.engine) as db:
            row = await db.get(TagMapRow, tag_map_id)
            if row is None or row.web_log_id != web_log_id:
                return None
            return to_tag_map(row)

    async def find_by_url_value(self, url_value: str, web_log_id: str) -> Optional[TagMap]:
        async with open_session(self.engine) as db:
            row = (await db.exec(
                select(TagMapRow).where(TagMapRow.web_log_id == web_log_id, TagMapRow.url_value == url_value)
            )).first()
            return to_tag_map(row) if row else None

    async def find_by_web_log(self, web_log_id: str) -> List[TagMap]:
        async with open_session(self.engine) as db:
            rows = (await db.exec(
                select(TagMapRow).where(TagMapRow.web_log_id == web_log_id).order_by(TagMapRow.tag)
            )).all()
            return [to_tag_map(row) for row in rows]

    async def find_mapping_for_tags(self, tags: List[str], web_log_id: str) -> List[TagMap]:
        if not tags:
            return []
        async with open_session(self.engine) as db:
            rows = (await db.exec(
                select(TagMapRow)
                .where(TagMapRow.web_log_id == web_log_id, TagMapRow.tag.in_(tags))
                .order_by(TagMapRow.tag)
            )).all()
            return [to_tag_map(row) for row in rows]

    async def restore(self, tag_maps: List[TagMap]) -> None:
        for batch in chunked(tag_maps, self.batch_size):
            async with open_session(self.engine) as db:
                db.add_all([TagMapRow(**tag_map.model_dump()) for tag_map in batch])
                await db.commit()

    async def save(self, tag_map: TagMap) -> None:
        """Insert or replace a tag mapping."""
        async with open_session(self.engine) as db:
            await db.merge(TagMapRow(**tag_map.model_dump()))
            await db.commit()
