# weblog_data/hybrid/web_log.py
import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine

from weblog_data.hybrid.helpers import find_document, find_documents, save_document, writing
from weblog_data.hybrid.tables import (
    category, page, page_revision, path, post, post_revision, tag_map, upload, web_log, web_log_user
)
from weblog_data.schemas.web_log import WebLog

logger = logging.getLogger(__name__)


class WebLogData:
    """Web logs as JSON documents; RSS options and custom feeds are nested within."""

    def __init__(self, engine: AsyncEngine):
        self.engine = engine

    async def _update(self, web_log_id: str, **fields) -> bool:
        async with writing(self.engine) as conn:
            doc = await find_document(conn, web_log, web_log_id)
            if doc is None:
                return False
            await save_document(conn, web_log, web_log_id, {**doc, **fields})
            return True

    async def add(self, wl: WebLog) -> None:
        async with writing(self.engine) as conn:
            await conn.execute(web_log.insert().values(id=wl.id, data=wl.model_dump(mode="json")))

    async def all(self) -> List[WebLog]:
        async with self.engine.connect() as conn:
            docs = await find_documents(conn, select(web_log.c.data).order_by(web_log.c.id))
            return [WebLog.model_validate(doc) for doc in docs]

    async def delete(self, web_log_id: str) -> None:
        async with writing(self.engine) as conn:
            post_ids = select(post.c.id).where(path(post, "web_log_id") == web_log_id)
            await conn.execute(post_revision.delete().where(post_revision.c.post_id.in_(post_ids)))
            page_ids = select(page.c.id).where(path(page, "web_log_id") == web_log_id)
            await conn.execute(page_revision.delete().where(page_revision.c.page_id.in_(page_ids)))
            for table in (post, page, category, tag_map, web_log_user):
                await conn.execute(table.delete().where(path(table, "web_log_id") == web_log_id))
            await conn.execute(upload.delete().where(upload.c.web_log_id == web_log_id))
            await conn.execute(web_log.delete().where(web_log.c.id == web_log_id))
        logger.info(f"Deleted web log {web_log_id} and all of its content")

    async def find_by_host(self, url_base: str) -> Optional[WebLog]:
        async with self.engine.connect() as conn:
            docs = await find_documents(
                conn, select(web_log.c.data).where(path(web_log, "url_base") == url_base).limit(1)
            )
            return WebLog.model_validate(docs[0]) if docs else None

    async def find_by_id(self, web_log_id: str) -> Optional[WebLog]:
        async with self.engine.connect() as conn:
            doc = await find_document(conn, web_log, web_log_id)
            return WebLog.model_validate(doc) if doc else None

    async def update_redirect_rules(self, wl: WebLog) -> bool:
        dumped = wl.model_dump(mode="json")
        return await self._update(wl.id, redirect_rules=dumped["redirect_rules"])

    async def update_rss_options(self, wl: WebLog) -> bool:
        return await self._update(wl.id, rss=wl.rss.model_dump(mode="json"))

    async def update_settings(self, wl: WebLog) -> bool:
        dumped = wl.model_dump(mode="json", exclude={"rss", "redirect_rules"})
        return await self._update(wl.id, **dumped)
