# weblog_data/hybrid/category.py
import logging
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncEngine

from weblog_data.data.hierarchy import order_by_hierarchy, with_post_counts
from weblog_data.data.utils import chunked
from weblog_data.hybrid.helpers import contains_any, find_documents, in_web_log, writing
from weblog_data.hybrid.tables import category, path, post
from weblog_data.schemas.category import Category, DisplayCategory
from weblog_data.schemas.common import PostStatus

logger = logging.getLogger(__name__)


class CategoryData:
    """Categories stored as JSON documents."""

    def __init__(self, engine: AsyncEngine, batch_size: int = 100):
        self.engine = engine
        self.batch_size = batch_size

    async def add(self, cat: Category) -> None:
        async with writing(self.engine) as conn:
            await conn.execute(category.insert().values(id=cat.id, data=cat.model_dump(mode="json")))

    async def count_all(self, web_log_id: str) -> int:
        async with self.engine.connect() as conn:
            return (await conn.execute(
                select(func.count()).select_from(category).where(path(category, "web_log_id") == web_log_id)
            )).scalar_one()

    async def count_top_level(self, web_log_id: str) -> int:
        async with self.engine.connect() as conn:
            return (await conn.execute(
                select(func.count()).select_from(category).where(
                    path(category, "web_log_id") == web_log_id, path(category, "parent_id").is_(None)
                )
            )).scalar_one()

    async def find_by_id(self, cat_id: str, web_log_id: str) -> Optional[Category]:
        async with self.engine.connect() as conn:
            doc = await in_web_log(conn, category, cat_id, web_log_id)
            return Category.model_validate(doc) if doc else None

    async def find_by_web_log(self, web_log_id: str) -> List[Category]:
        async with self.engine.connect() as conn:
            docs = await find_documents(conn, select(category.c.data).where(
                path(category, "web_log_id") == web_log_id
            ).order_by(path(category, "name")))
            return [Category.model_validate(doc) for doc in docs]

    async def find_all_for_view(self, web_log_id: str) -> List[DisplayCategory]:
        ordered = order_by_hierarchy(await self.find_by_web_log(web_log_id))

        async def count_posts(category_ids: List[str]) -> int:
            async with self.engine.connect() as conn:
                return (await conn.execute(
                    select(func.count()).select_from(post).where(
                        path(post, "web_log_id") == web_log_id,
                        path(post, "status") == PostStatus.published.value,
                        contains_any(post, "category_ids", category_ids),
                    )
                )).scalar_one()

        return await with_post_counts(ordered, count_posts)

    async def delete(self, cat_id: str, web_log_id: str) -> bool:
        """Delete a category; its children move up to its parent, and posts drop it."""
        async with writing(self.engine) as conn:
            doc = await in_web_log(conn, category, cat_id, web_log_id)
            if doc is None:
                return False

            children = await find_documents(conn, select(category.c.data).where(
                path(category, "web_log_id") == web_log_id, path(category, "parent_id") == cat_id
            ))
            for child in children:
                child["parent_id"] = doc.get("parent_id")
                await conn.execute(category.update().where(category.c.id == child["id"]).values(data=child))

            posts = await find_documents(conn, select(post.c.data).where(
                path(post, "web_log_id") == web_log_id, contains_any(post, "category_ids", [cat_id])
            ))
            for post_doc in posts:
                post_doc["category_ids"] = [c for c in post_doc["category_ids"] if c != cat_id]
                await conn.execute(post.update().where(post.c.id == post_doc["id"]).values(data=post_doc))

            await conn.execute(category.delete().where(category.c.id == cat_id))
            logger.debug(f"Deleted category {cat_id}; moved {len(children)} child categories")
            return True

    async def restore(self, categories: List[Category]) -> None:
        for batch in chunked(categories, self.batch_size):
            async with writing(self.engine) as conn:
                await conn.execute(category.insert(), [
                    {"id": cat.id, "data": cat.model_dump(mode="json")} for cat in batch
                ])

    async def update(self, cat: Category) -> bool:
        async with writing(self.engine) as conn:
            if await in_web_log(conn, category, cat.id, cat.web_log_id) is None:
                return False
            await conn.execute(category.update().where(category.c.id == cat.id).values(data=cat.model_dump(mode="json")))
            return True
