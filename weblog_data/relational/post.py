# weblog_data/relational/post.py
import logging
from collections import defaultdict
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlmodel import delete, select
from sqlmodel.ext.asyncio.session import AsyncSession

from weblog_data.data.differ import diff_permalinks, diff_revisions, diff_values
from weblog_data.data.utils import chunked, page_bounds
from weblog_data.relational.helpers import check_permalinks, open_session
from weblog_data.relational.models import (
    PostCategoryRow, PostPermalinkRow, PostRevisionRow, PostRow, PostTagRow
)
from weblog_data.schemas.common import MetaItem, PostStatus, Revision
from weblog_data.schemas.post import Episode, Post

logger = logging.getLogger(__name__)


def to_row(post: Post) -> PostRow:
    return PostRow(
        id=post.id,
        web_log_id=post.web_log_id,
        author_id=post.author_id,
        status=post.status.value,
        title=post.title,
        permalink=post.permalink,
        published_on=post.published_on,
        updated_on=post.updated_on,
        template=post.template,
        post_text=post.text,
        episode=post.episode.model_dump(mode="json") if post.episode else None,
        meta_items=[item.model_dump() for item in post.metadata],
    )


def to_post(
    row: PostRow,
    category_ids: Optional[List[str]] = None,
    tags: Optional[List[str]] = None,
    prior_permalinks: Optional[List[str]] = None,
    revisions: Optional[List[Revision]] = None,
) -> Post:
    return Post(
        id=row.id,
        web_log_id=row.web_log_id,
        author_id=row.author_id,
        status=PostStatus(row.status),
        title=row.title,
        permalink=row.permalink,
        published_on=row.published_on,
        updated_on=row.updated_on,
        template=row.template,
        text=row.post_text,
        category_ids=category_ids or [],
        tags=tags or [],
        episode=Episode.model_validate(row.episode) if row.episode else None,
        metadata=[MetaItem(**item) for item in row.meta_items or []],
        prior_permalinks=prior_permalinks or [],
        revisions=revisions or [],
    )


class PostData:
    """Posts and their child tables in the relational store."""

    def __init__(self, engine: AsyncEngine, batch_size: int = 100):
        self.engine = engine
        self.batch_size = batch_size

    async def _category_ids(self, db: AsyncSession, post_ids: Sequence[str]) -> Dict[str, List[str]]:
        found: Dict[str, List[str]] = defaultdict(list)
        if post_ids:
            rows = (await db.exec(select(PostCategoryRow).where(PostCategoryRow.post_id.in_(post_ids)))).all()
            for row in rows:
                found[row.post_id].append(row.category_id)
        return found

    async def _tags(self, db: AsyncSession, post_ids: Sequence[str]) -> Dict[str, List[str]]:
        found: Dict[str, List[str]] = defaultdict(list)
        if post_ids:
            rows = (await db.exec(select(PostTagRow).where(PostTagRow.post_id.in_(post_ids)))).all()
            for row in rows:
                found[row.post_id].append(row.tag)
        return found

    async def _permalinks(self, db: AsyncSession, post_id: str) -> List[str]:
        return list((await db.exec(
            select(PostPermalinkRow.permalink).where(PostPermalinkRow.post_id == post_id)
        )).all())

    async def _revisions(self, db: AsyncSession, post_id: str) -> List[Revision]:
        rows = (await db.exec(
            select(PostRevisionRow).where(PostRevisionRow.post_id == post_id).order_by(PostRevisionRow.as_of.desc())
        )).all()
        return [Revision(as_of=row.as_of, text=row.revision_text) for row in rows]

    async def _to_posts(self, db: AsyncSession, rows: Sequence[PostRow], full: bool = False) -> List[Post]:
        """Attach categories and tags (and, when full, permalinks and revisions) to post rows."""
        post_ids = [row.id for row in rows]
        categories = await self._category_ids(db, post_ids)
        tags = await self._tags(db, post_ids)
        posts = []
        for row in rows:
            if full:
                posts.append(to_post(
                    row, categories[row.id], tags[row.id],
                    await self._permalinks(db, row.id), await self._revisions(db, row.id),
                ))
            else:
                posts.append(to_post(row, categories[row.id], tags[row.id]))
        return posts

    def _add_children(self, db: AsyncSession, post: Post) -> None:
        db.add_all([PostCategoryRow(post_id=post.id, category_id=cat_id) for cat_id in post.category_ids])
        db.add_all([PostTagRow(post_id=post.id, tag=tag) for tag in post.tags])
        db.add_all([PostPermalinkRow(post_id=post.id, permalink=link) for link in post.prior_permalinks])
        db.add_all([
            PostRevisionRow(post_id=post.id, as_of=rev.as_of, revision_text=rev.text) for rev in post.revisions
        ])

    async def _get(self, db: AsyncSession, post_id: str, web_log_id: str) -> Optional[PostRow]:
        row = await db.get(PostRow, post_id)
        if row is None or row.web_log_id != web_log_id:
            return None
        return row

    async def _sync_categories(self, db: AsyncSession, post_id: str, category_ids: List[str]) -> None:
        current = (await self._category_ids(db, [post_id]))[post_id]
        diff = diff_values(current, category_ids)
        if diff.is_empty:
            return
        if diff.to_delete:
            await db.exec(delete(PostCategoryRow).where(
                PostCategoryRow.post_id == post_id, PostCategoryRow.category_id.in_(diff.to_delete)
            ))
        db.add_all([PostCategoryRow(post_id=post_id, category_id=cat_id) for cat_id in diff.to_add])
        await db.commit()

    async def _sync_tags(self, db: AsyncSession, post_id: str, tags: List[str]) -> None:
        diff = diff_values((await self._tags(db, [post_id]))[post_id], tags)
        if diff.is_empty:
            return
        if diff.to_delete:
            await db.exec(delete(PostTagRow).where(PostTagRow.post_id == post_id, PostTagRow.tag.in_(diff.to_delete)))
        db.add_all([PostTagRow(post_id=post_id, tag=tag) for tag in diff.to_add])
        await db.commit()

    async def _sync_permalinks(self, db: AsyncSession, post_id: str, permalinks: List[str]) -> None:
        diff = diff_permalinks(await self._permalinks(db, post_id), permalinks)
        if diff.is_empty:
            return
        if diff.to_delete:
            await db.exec(delete(PostPermalinkRow).where(
                PostPermalinkRow.post_id == post_id, PostPermalinkRow.permalink.in_(diff.to_delete)
            ))
        db.add_all([PostPermalinkRow(post_id=post_id, permalink=link) for link in diff.to_add])
        await db.commit()

    async def _sync_revisions(self, db: AsyncSession, post_id: str, revisions: List[Revision]) -> None:
        diff = diff_revisions(await self._revisions(db, post_id), revisions)
        if diff.is_empty:
            return
        for rev in diff.to_delete:
            await db.exec(delete(PostRevisionRow).where(
                PostRevisionRow.post_id == post_id,
                PostRevisionRow.as_of == rev.as_of,
                PostRevisionRow.revision_text == rev.text,
            ))
        db.add_all([
            PostRevisionRow(post_id=post_id, as_of=rev.as_of, revision_text=rev.text) for rev in diff.to_add
        ])
        await db.commit()

    async def add(self, post: Post) -> None:
        async with open_session(self.engine) as db:
            await check_permalinks(db, post.web_log_id, post.id, post.permalink, post.prior_permalinks)
            db.add(to_row(post))
            self._add_children(db, post)
            await db.commit()

    async def count_by_status(self, status: PostStatus, web_log_id: str) -> int:
        async with open_session(self.engine) as db:
            query = select(func.count()).select_from(PostRow).where(
                PostRow.web_log_id == web_log_id, PostRow.status == PostStatus(status).value
            )
            return (await db.exec(query)).one()

    async def delete(self, post_id: str, web_log_id: str) -> bool:
        async with open_session(self.engine) as db:
            row = await self._get(db, post_id, web_log_id)
            if row is None:
                return False
            for child in (PostCategoryRow, PostTagRow, PostPermalinkRow, PostRevisionRow):
                await db.exec(delete(child).where(child.post_id == post_id))
            await db.delete(row)
            await db.commit()
            return True

    async def find_by_id(self, post_id: str, web_log_id: str) -> Optional[Post]:
        async with open_session(self.engine) as db:
            row = await self._get(db, post_id, web_log_id)
            if row is None:
                return None
            return (await self._to_posts(db, [row]))[0]

    async def find_by_permalink(self, permalink: str, web_log_id: str) -> Optional[Post]:
        async with open_session(self.engine) as db:
            row = (await db.exec(
                select(PostRow).where(PostRow.web_log_id == web_log_id, PostRow.permalink == permalink)
            )).first()
            if row is None:
                return None
            return (await self._to_posts(db, [row]))[0]

    async def find_current_permalink(self, permalinks: List[str], web_log_id: str) -> Optional[str]:
        if not permalinks:
            return None
        async with open_session(self.engine) as db:
            return (await db.exec(
                select(PostRow.permalink)
                .join(PostPermalinkRow, PostPermalinkRow.post_id == PostRow.id)
                .where(PostRow.web_log_id == web_log_id, PostPermalinkRow.permalink.in_(permalinks))
            )).first()

    async def find_full_by_id(self, post_id: str, web_log_id: str) -> Optional[Post]:
        async with open_session(self.engine) as db:
            row = await self._get(db, post_id, web_log_id)
            if row is None:
                return None
            return (await self._to_posts(db, [row], full=True))[0]

    async def find_full_by_web_log(self, web_log_id: str) -> List[Post]:
        async with open_session(self.engine) as db:
            rows = (await db.exec(
                select(PostRow).where(PostRow.web_log_id == web_log_id).order_by(PostRow.id)
            )).all()
            return await self._to_posts(db, rows, full=True)

    async def _published_page(self, web_log_id: str, page_nbr: int, page_size: int, *conditions) -> List[Post]:
        offset, limit = page_bounds(page_nbr, page_size)
        async with open_session(self.engine) as db:
            rows = (await db.exec(
                select(PostRow)
                .where(
                    PostRow.web_log_id == web_log_id,
                    PostRow.status == PostStatus.published.value,
                    *conditions,
                )
                .order_by(PostRow.published_on.desc(), PostRow.id)
                .offset(offset)
                .limit(limit)
            )).all()
            return await self._to_posts(db, rows)

    async def find_page_of_categorized_posts(
        self, web_log_id: str, category_ids: List[str], page_nbr: int, page_size: int
    ) -> List[Post]:
        in_categories = select(PostCategoryRow.post_id).where(PostCategoryRow.category_id.in_(category_ids))
        return await self._published_page(web_log_id, page_nbr, page_size, PostRow.id.in_(in_categories))

    async def find_page_of_posts(self, web_log_id: str, page_nbr: int, page_size: int) -> List[Post]:
        offset, limit = page_bounds(page_nbr, page_size)
        async with open_session(self.engine) as db:
            rows = (await db.exec(
                select(PostRow)
                .where(PostRow.web_log_id == web_log_id)
                .order_by(PostRow.published_on.desc().nulls_first(), PostRow.updated_on)
                .offset(offset)
                .limit(limit)
            )).all()
            return [post.model_copy(update={"text": ""}) for post in await self._to_posts(db, rows)]

    async def find_page_of_published_posts(self, web_log_id: str, page_nbr: int, page_size: int) -> List[Post]:
        return await self._published_page(web_log_id, page_nbr, page_size)

    async def find_page_of_tagged_posts(
        self, web_log_id: str, tag: str, page_nbr: int, page_size: int
    ) -> List[Post]:
        tagged = select(PostTagRow.post_id).where(PostTagRow.tag == tag)
        return await self._published_page(web_log_id, page_nbr, page_size, PostRow.id.in_(tagged))

    async def find_surrounding_posts(
        self, web_log_id: str, published_on: datetime
    ) -> Tuple[Optional[Post], Optional[Post]]:
        async with open_session(self.engine) as db:
            published = select(PostRow).where(
                PostRow.web_log_id == web_log_id, PostRow.status == PostStatus.published.value
            )
            older = (await db.exec(
                published.where(PostRow.published_on < published_on).order_by(PostRow.published_on.desc()).limit(1)
            )).first()
            newer = (await db.exec(
                published.where(PostRow.published_on > published_on).order_by(PostRow.published_on).limit(1)
            )).first()
            found = await self._to_posts(db, [row for row in (older, newer) if row is not None])
            by_id = {post.id: post for post in found}
            return (
                by_id.get(older.id) if older else None,
                by_id.get(newer.id) if newer else None,
            )

    async def restore(self, posts: List[Post]) -> None:
        for batch in chunked(posts, self.batch_size):
            async with open_session(self.engine) as db:
                for post in batch:
                    db.add(to_row(post))
                    self._add_children(db, post)
                await db.commit()

    async def update(self, post: Post) -> bool:
        """Update a post; each child collection is written only when it changed."""
        async with open_session(self.engine) as db:
            row = await self._get(db, post.id, post.web_log_id)
            if row is None:
                return False
            await check_permalinks(db, post.web_log_id, post.id, post.permalink, post.prior_permalinks)
            updated = to_row(post)
            changed = False
            for field in PostRow.model_fields:
                value = getattr(updated, field)
                if getattr(row, field) != value:
                    setattr(row, field, value)
                    changed = True
            if changed:
                db.add(row)
                await db.commit()
            await self._sync_categories(db, post.id, post.category_ids)
            await self._sync_tags(db, post.id, post.tags)
            await self._sync_permalinks(db, post.id, post.prior_permalinks)
            await self._sync_revisions(db, post.id, post.revisions)
            return True

    async def update_prior_permalinks(self, post_id: str, web_log_id: str, permalinks: List[str]) -> bool:
        async with open_session(self.engine) as db:
            if await self._get(db, post_id, web_log_id) is None:
                return False
            await check_permalinks(db, web_log_id, post_id, None, permalinks)
            await self._sync_permalinks(db, post_id, permalinks)
            return True
