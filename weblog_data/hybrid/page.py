# weblog_data/hybrid/page.py
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from weblog_data.data.differ import diff_revisions
from weblog_data.data.utils import chunked, page_bounds
from weblog_data.hybrid.helpers import (
    check_permalinks, contains_any, find_documents, in_web_log, save_document, writing
)
from weblog_data.hybrid.tables import page, page_revision, path
from weblog_data.schemas.common import Revision, format_instant, parse_instant
from weblog_data.schemas.page import Page


def to_document(pg: Page) -> Dict[str, Any]:
    return pg.model_dump(mode="json", exclude={"revisions"})


def to_page(doc: Dict[str, Any], revisions: Optional[List[Revision]] = None, full: bool = False) -> Page:
    pg = Page.model_validate({**doc, "revisions": revisions or []})
    return pg if full else pg.model_copy(update={"prior_permalinks": []})


async def find_revisions(conn: AsyncConnection, page_id: str) -> List[Revision]:
    rows = (await conn.execute(
        select(page_revision.c.as_of, page_revision.c.revision_text)
        .where(page_revision.c.page_id == page_id)
        .order_by(page_revision.c.as_of.desc())
    )).all()
    return [Revision(as_of=parse_instant(row.as_of), text=row.revision_text) for row in rows]


def revision_rows(page_id: str, revisions: List[Revision]) -> List[Dict[str, Any]]:
    return [
        {"page_id": page_id, "as_of": format_instant(rev.as_of), "revision_text": rev.text} for rev in revisions
    ]


class PageData:
    """Pages as JSON documents, with revisions in their own table."""

    def __init__(self, engine: AsyncEngine, batch_size: int = 100, page_list_size: int = 25):
        self.engine = engine
        self.batch_size = batch_size
        self.page_list_size = page_list_size

    def _in_web_log(self, web_log_id: str):
        return select(page.c.data).where(path(page, "web_log_id") == web_log_id)

    async def _sync_revisions(self, conn: AsyncConnection, page_id: str, revisions: List[Revision]) -> None:
        diff = diff_revisions(await find_revisions(conn, page_id), revisions)
        if diff.is_empty:
            return
        for rev in diff.to_delete:
            await conn.execute(page_revision.delete().where(
                page_revision.c.page_id == page_id,
                page_revision.c.as_of == format_instant(rev.as_of),
                page_revision.c.revision_text == rev.text,
            ))
        if diff.to_add:
            await conn.execute(page_revision.insert(), revision_rows(page_id, diff.to_add))

    async def add(self, pg: Page) -> None:
        async with writing(self.engine) as conn:
            await check_permalinks(conn, pg.web_log_id, pg.id, pg.permalink, pg.prior_permalinks)
            await conn.execute(page.insert().values(id=pg.id, data=to_document(pg)))
            if pg.revisions:
                await conn.execute(page_revision.insert(), revision_rows(pg.id, pg.revisions))

    async def all(self, web_log_id: str) -> List[Page]:
        async with self.engine.connect() as conn:
            docs = await find_documents(conn, self._in_web_log(web_log_id).order_by(func.lower(path(page, "title"))))
            return [to_page(doc).model_copy(update={"text": "", "metadata": []}) for doc in docs]

    async def count_all(self, web_log_id: str) -> int:
        async with self.engine.connect() as conn:
            return (await conn.execute(
                select(func.count()).select_from(page).where(path(page, "web_log_id") == web_log_id)
            )).scalar_one()

    async def count_listed(self, web_log_id: str) -> int:
        async with self.engine.connect() as conn:
            return (await conn.execute(
                select(func.count()).select_from(page).where(
                    path(page, "web_log_id") == web_log_id,
                    page.c.data["is_in_page_list"].as_boolean() == True,  # noqa: E712
                )
            )).scalar_one()

    async def delete(self, page_id: str, web_log_id: str) -> bool:
        async with writing(self.engine) as conn:
            if await in_web_log(conn, page, page_id, web_log_id) is None:
                return False
            await conn.execute(page_revision.delete().where(page_revision.c.page_id == page_id))
            await conn.execute(page.delete().where(page.c.id == page_id))
            return True

    async def find_by_id(self, page_id: str, web_log_id: str) -> Optional[Page]:
        async with self.engine.connect() as conn:
            doc = await in_web_log(conn, page, page_id, web_log_id)
            return to_page(doc) if doc else None

    async def find_by_permalink(self, permalink: str, web_log_id: str) -> Optional[Page]:
        async with self.engine.connect() as conn:
            docs = await find_documents(
                conn, self._in_web_log(web_log_id).where(path(page, "permalink") == permalink).limit(1)
            )
            return to_page(docs[0]) if docs else None

    async def find_current_permalink(self, permalinks: List[str], web_log_id: str) -> Optional[str]:
        if not permalinks:
            return None
        async with self.engine.connect() as conn:
            return (await conn.execute(
                select(path(page, "permalink"))
                .where(path(page, "web_log_id") == web_log_id, contains_any(page, "prior_permalinks", permalinks))
                .limit(1)
            )).scalar_one_or_none()

    async def find_full_by_id(self, page_id: str, web_log_id: str) -> Optional[Page]:
        async with self.engine.connect() as conn:
            doc = await in_web_log(conn, page, page_id, web_log_id)
            if doc is None:
                return None
            return to_page(doc, await find_revisions(conn, page_id), full=True)

    async def find_full_by_web_log(self, web_log_id: str) -> List[Page]:
        async with self.engine.connect() as conn:
            docs = await find_documents(conn, self._in_web_log(web_log_id).order_by(func.lower(path(page, "title"))))
            return [to_page(doc, await find_revisions(conn, doc["id"]), full=True) for doc in docs]

    async def find_listed(self, web_log_id: str) -> List[Page]:
        async with self.engine.connect() as conn:
            docs = await find_documents(conn, self._in_web_log(web_log_id).where(
                page.c.data["is_in_page_list"].as_boolean() == True  # noqa: E712
            ).order_by(func.lower(path(page, "title"))))
            return [to_page(doc).model_copy(update={"text": ""}) for doc in docs]

    async def find_page_of_pages(
        self, web_log_id: str, page_nbr: int, page_size: Optional[int] = None
    ) -> List[Page]:
        offset, limit = page_bounds(page_nbr, page_size or self.page_list_size)
        async with self.engine.connect() as conn:
            docs = await find_documents(
                conn,
                self._in_web_log(web_log_id)
                .order_by(func.lower(path(page, "title")))
                .offset(offset)
                .limit(limit),
            )
            return [to_page(doc).model_copy(update={"metadata": []}) for doc in docs]

    async def restore(self, pages: List[Page]) -> None:
        for batch in chunked(pages, self.batch_size):
            async with writing(self.engine) as conn:
                await conn.execute(page.insert(), [{"id": pg.id, "data": to_document(pg)} for pg in batch])
                revisions = [row for pg in batch for row in revision_rows(pg.id, pg.revisions)]
                if revisions:
                    await conn.execute(page_revision.insert(), revisions)

    async def update(self, pg: Page) -> bool:
        async with writing(self.engine) as conn:
            if await in_web_log(conn, page, pg.id, pg.web_log_id) is None:
                return False
            await check_permalinks(conn, pg.web_log_id, pg.id, pg.permalink, pg.prior_permalinks)
            await save_document(conn, page, pg.id, to_document(pg))
            await self._sync_revisions(conn, pg.id, pg.revisions)
            return True

    async def update_prior_permalinks(self, page_id: str, web_log_id: str, permalinks: List[str]) -> bool:
        async with writing(self.engine) as conn:
            doc = await in_web_log(conn, page, page_id, web_log_id)
            if doc is None:
                return False
            await check_permalinks(conn, web_log_id, page_id, None, permalinks)
            await save_document(conn, page, page_id, {**doc, "prior_permalinks": sorted(set(permalinks))})
            return True
