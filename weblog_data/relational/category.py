# weblog_data/relational/category.py
import logging
from typing import List, Optional

from sqlalchemy import distinct, func
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlmodel import delete, select

from weblog_data.data.hierarchy import order_by_hierarchy, with_post_counts
from weblog_data.data.utils import chunked
from weblog_data.relational.helpers import open_session
from weblog_data.relational.models import CategoryRow, PostCategoryRow, PostRow
from weblog_data.schemas.category import Category, DisplayCategory
from weblog_data.schemas.common import PostStatus

logger = logging.getLogger(__name__)


def to_row(category: Category) -> CategoryRow:
    return CategoryRow(**category.model_dump())


def to_category(row: CategoryRow) -> Category:
    return Category(
        id=row.id,
        web_log_id=row.web_log_id,
        name=row.name,
        slug=row.slug,
        description=row.description,
        parent_id=row.parent_id,
    )


class CategoryData:
    """Categories in the relational store."""

    def __init__(self, engine: AsyncEngine, batch_size: int = 100):
        self.engine = engine
        self.batch_size = batch_size

    async def add(self, category: Category) -> None:
        async with open_session(self.engine) as db:
            db.add(to_row(category))
            await db.commit()

    async def count_all(self, web_log_id: str) -> int:
        async with open_session(self.engine) as db:
            query = select(func.count()).select_from(CategoryRow).where(CategoryRow.web_log_id == web_log_id)
            return (await db.exec(query)).one()

    async def count_top_level(self, web_log_id: str) -> int:
        async with open_session(self.engine) as db:
            query = select(func.count()).select_from(CategoryRow).where(
                CategoryRow.web_log_id == web_log_id, CategoryRow.parent_id.is_(None)
            )
            return (await db.exec(query)).one()

    async def find_by_id(self, cat_id: str, web_log_id: str) -> Optional[Category]:
        async with open_session(self.engine) as db:
            row = await db.get(CategoryRow, cat_id)
            if row is None or row.web_log_id != web_log_id:
                return None
            return to_category(row)

    async def find_by_web_log(self, web_log_id: str) -> List[Category]:
        async with open_session(self.engine) as db:
            rows = (await db.exec(
                select(CategoryRow).where(CategoryRow.web_log_id == web_log_id).order_by(CategoryRow.name)
            )).all()
            return [to_category(row) for row in rows]

    async def find_all_for_view(self, web_log_id: str) -> List[DisplayCategory]:
        """Get the category hierarchy, counting published posts in each subtree."""
        ordered = order_by_hierarchy(await self.find_by_web_log(web_log_id))

        async def count_posts(category_ids: List[str]) -> int:
            async with open_session(self.engine) as db:
                query = (
                    select(func.count(distinct(PostRow.id)))
                    .join(PostCategoryRow, PostCategoryRow.post_id == PostRow.id)
                    .where(
                        PostRow.web_log_id == web_log_id,
                        PostRow.status == PostStatus.published.value,
                        PostCategoryRow.category_id.in_(category_ids),
                    )
                )
                return (await db.exec(query)).one()

        return await with_post_counts(ordered, count_posts)

    async def delete(self, cat_id: str, web_log_id: str) -> bool:
        """Delete a category; its children move up to its parent."""
        async with open_session(self.engine) as db:
            row = await db.get(CategoryRow, cat_id)
            if row is None or row.web_log_id != web_log_id:
                return False

            children = (await db.exec(
                select(CategoryRow).where(CategoryRow.web_log_id == web_log_id, CategoryRow.parent_id == cat_id)
            )).all()
            for child in children:
                child.parent_id = row.parent_id
                db.add(child)
            await db.exec(delete(PostCategoryRow).where(PostCategoryRow.category_id == cat_id))
            await db.delete(row)
            await db.commit()
            logger.debug(f"Deleted category {cat_id}; moved {len(children)} child categories")
            return True

    async def restore(self, categories: List[Category]) -> None:
        for batch in chunked(categories, self.batch_size):
            async with open_session(self.engine) as db:
                db.add_all([to_row(category) for category in batch])
                await db.commit()

    async def update(self, category: Category) -> bool:
        async with open_session(self.engine) as db:
            row = await db.get(CategoryRow, category.id)
            if row is None or row.web_log_id != category.web_log_id:
                return False
            row.name = category.name
            row.slug = category.slug
            row.description = category.description
            row.parent_id = category.parent_id
            db.add(row)
            await db.commit()
            return True
