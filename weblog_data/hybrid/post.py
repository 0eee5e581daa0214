# weblog_data/hybrid/post.py
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from weblog_data.data.differ import diff_revisions
from weblog_data.data.utils import chunked, page_bounds
from weblog_data.hybrid.helpers import (
    check_permalinks, contains_any, find_documents, in_web_log, save_document, writing
)
from weblog_data.hybrid.tables import path, post, post_revision
from weblog_data.schemas.common import PostStatus, Revision, format_instant, parse_instant
from weblog_data.schemas.post import Post


def to_document(p: Post) -> Dict[str, Any]:
    return p.model_dump(mode="json", exclude={"revisions"})


def to_post(doc: Dict[str, Any], revisions: Optional[List[Revision]] = None, full: bool = False) -> Post:
    p = Post.model_validate({**doc, "revisions": revisions or []})
    return p if full else p.model_copy(update={"prior_permalinks": []})


async def find_revisions(conn: AsyncConnection, post_id: str) -> List[Revision]:
    rows = (await conn.execute(
        select(post_revision.c.as_of, post_revision.c.revision_text)
        .where(post_revision.c.post_id == post_id)
        .order_by(post_revision.c.as_of.desc())
    )).all()
    return [Revision(as_of=parse_instant(row.as_of), text=row.revision_text) for row in rows]


def revision_rows(post_id: str, revisions: List[Revision]) -> List[Dict[str, Any]]:
    return [
        {"post_id": post_id, "as_of": format_instant(rev.as_of), "revision_text": rev.text} for rev in revisions
    ]


class PostData:
    """Posts as JSON documents; categories and tags are arrays within the document."""

    def __init__(self, engine: AsyncEngine, batch_size: int = 100):
        self.engine = engine
        self.batch_size = batch_size

    def _in_web_log(self, web_log_id: str):
        return select(post.c.data).where(path(post, "web_log_id") == web_log_id)

    def _published(self, web_log_id: str):
        return self._in_web_log(web_log_id).where(path(post, "status") == PostStatus.published.value)

    async def _sync_revisions(self, conn: AsyncConnection, post_id: str, revisions: List[Revision]) -> None:
        diff = diff_revisions(await find_revisions(conn, post_id), revisions)
        if diff.is_empty:
            return
        for rev in diff.to_delete:
            await conn.execute(post_revision.delete().where(
                post_revision.c.post_id == post_id,
                post_revision.c.as_of == format_instant(rev.as_of),
                post_revision.c.revision_text == rev.text,
            ))
        if diff.to_add:
            await conn.execute(post_revision.insert(), revision_rows(post_id, diff.to_add))

    async def add(self, p: Post) -> None:
        async with writing(self.engine) as conn:
            await check_permalinks(conn, p.web_log_id, p.id, p.permalink, p.prior_permalinks)
            await conn.execute(post.insert().values(id=p.id, data=to_document(p)))
            if p.revisions:
                await conn.execute(post_revision.insert(), revision_rows(p.id, p.revisions))

    async def count_by_status(self, status: PostStatus, web_log_id: str) -> int:
        async with self.engine.connect() as conn:
            return (await conn.execute(
                select(func.count()).select_from(post).where(
                    path(post, "web_log_id") == web_log_id, path(post, "status") == PostStatus(status).value
                )
            )).scalar_one()

    async def delete(self, post_id: str, web_log_id: str) -> bool:
        async with writing(self.engine) as conn:
            if await in_web_log(conn, post, post_id, web_log_id) is None:
                return False
            await conn.execute(post_revision.delete().where(post_revision.c.post_id == post_id))
            await conn.execute(post.delete().where(post.c.id == post_id))
            return True

    async def find_by_id(self, post_id: str, web_log_id: str) -> Optional[Post]:
        async with self.engine.connect() as conn:
            doc = await in_web_log(conn, post, post_id, web_log_id)
            return to_post(doc) if doc else None

    async def find_by_permalink(self, permalink: str, web_log_id: str) -> Optional[Post]:
        async with self.engine.connect() as conn:
            docs = await find_documents(
                conn, self._in_web_log(web_log_id).where(path(post, "permalink") == permalink).limit(1)
            )
            return to_post(docs[0]) if docs else None

    async def find_current_permalink(self, permalinks: List[str], web_log_id: str) -> Optional[str]:
        if not permalinks:
            return None
        async with self.engine.connect() as conn:
            return (await conn.execute(
                select(path(post, "permalink"))
                .where(path(post, "web_log_id") == web_log_id, contains_any(post, "prior_permalinks", permalinks))
                .limit(1)
            )).scalar_one_or_none()

    async def find_full_by_id(self, post_id: str, web_log_id: str) -> Optional[Post]:
        async with self.engine.connect() as conn:
            doc = await in_web_log(conn, post, post_id, web_log_id)
            if doc is None:
                return None
            return to_post(doc, await find_revisions(conn, post_id), full=True)

    async def find_full_by_web_log(self, web_log_id: str) -> List[Post]:
        async with self.engine.connect() as conn:
            docs = await find_documents(conn, self._in_web_log(web_log_id).order_by(post.c.id))
            return [to_post(doc, await find_revisions(conn, doc["id"]), full=True) for doc in docs]

    async def _published_page(self, query, page_nbr: int, page_size: int) -> List[Post]:
        offset, limit = page_bounds(page_nbr, page_size)
        async with self.engine.connect() as conn:
            docs = await find_documents(
                conn, query.order_by(path(post, "published_on").desc(), post.c.id).offset(offset).limit(limit)
            )
            return [to_post(doc) for doc in docs]

    async def find_page_of_categorized_posts(
        self, web_log_id: str, category_ids: List[str], page_nbr: int, page_size: int
    ) -> List[Post]:
        query = self._published(web_log_id).where(contains_any(post, "category_ids", category_ids))
        return await self._published_page(query, page_nbr, page_size)

    async def find_page_of_posts(self, web_log_id: str, page_nbr: int, page_size: int) -> List[Post]:
        offset, limit = page_bounds(page_nbr, page_size)
        async with self.engine.connect() as conn:
            docs = await find_documents(
                conn,
                self._in_web_log(web_log_id)
                .order_by(path(post, "published_on").desc().nulls_first(), path(post, "updated_on"))
                .offset(offset)
                .limit(limit),
            )
            return [to_post(doc).model_copy(update={"text": ""}) for doc in docs]

    async def find_page_of_published_posts(self, web_log_id: str, page_nbr: int, page_size: int) -> List[Post]:
        return await self._published_page(self._published(web_log_id), page_nbr, page_size)

    async def find_page_of_tagged_posts(
        self, web_log_id: str, tag: str, page_nbr: int, page_size: int
    ) -> List[Post]:
        query = self._published(web_log_id).where(contains_any(post, "tags", [tag]))
        return await self._published_page(query, page_nbr, page_size)

    async def find_surrounding_posts(
        self, web_log_id: str, published_on: datetime
    ) -> Tuple[Optional[Post], Optional[Post]]:
        on = format_instant(published_on)
        published = path(post, "published_on")
        async with self.engine.connect() as conn:
            older = await find_documents(
                conn, self._published(web_log_id).where(published < on).order_by(published.desc()).limit(1)
            )
            newer = await find_documents(
                conn, self._published(web_log_id).where(published > on).order_by(published).limit(1)
            )
            return (
                to_post(older[0]) if older else None,
                to_post(newer[0]) if newer else None,
            )

    async def restore(self, posts: List[Post]) -> None:
        for batch in chunked(posts, self.batch_size):
            async with writing(self.engine) as conn:
                await conn.execute(post.insert(), [{"id": p.id, "data": to_document(p)} for p in batch])
                revisions = [row for p in batch for row in revision_rows(p.id, p.revisions)]
                if revisions:
                    await conn.execute(post_revision.insert(), revisions)

    async def update(self, p: Post) -> bool:
        async with writing(self.engine) as conn:
            if await in_web_log(conn, post, p.id, p.web_log_id) is None:
                return False
            await check_permalinks(conn, p.web_log_id, p.id, p.permalink, p.prior_permalinks)
            await save_document(conn, post, p.id, to_document(p))
            await self._sync_revisions(conn, p.id, p.revisions)
            return True

    async def update_prior_permalinks(self, post_id: str, web_log_id: str, permalinks: List[str]) -> bool:
        async with writing(self.engine) as conn:
            doc = await in_web_log(conn, post, post_id, web_log_id)
            if doc is None:
                return False
            await check_permalinks(conn, web_log_id, post_id, None, permalinks)
            await save_document(conn, post, post_id, {**doc, "prior_permalinks": sorted(set(permalinks))})
            return True
