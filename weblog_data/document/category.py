# weblog_data/document/category.py
import logging
from typing import List, Optional

from weblog_data.data.hierarchy import order_by_hierarchy, with_post_counts
from weblog_data.data.utils import chunked
from weblog_data.document.helpers import (
    CATEGORY, POST, DocumentFamily, find_all, from_doc, in_web_log, retried, to_doc
)
from weblog_data.schemas.category import Category, DisplayCategory
from weblog_data.schemas.common import PostStatus

logger = logging.getLogger(__name__)


def to_category(doc) -> Category:
    return Category.model_validate(from_doc(doc))


class CategoryData(DocumentFamily):
    """Categories in the document store."""

    @retried
    async def add(self, category: Category) -> None:
        await self.collection(CATEGORY).insert_one(to_doc(category))

    @retried
    async def count_all(self, web_log_id: str) -> int:
        return await self.collection(CATEGORY).count_documents({"web_log_id": web_log_id})

    @retried
    async def count_top_level(self, web_log_id: str) -> int:
        return await self.collection(CATEGORY).count_documents({"web_log_id": web_log_id, "parent_id": None})

    @retried
    async def find_by_id(self, cat_id: str, web_log_id: str) -> Optional[Category]:
        doc = await in_web_log(self.collection(CATEGORY), cat_id, web_log_id)
        return to_category(doc) if doc else None

    @retried
    async def find_by_web_log(self, web_log_id: str) -> List[Category]:
        docs = await find_all(self.collection(CATEGORY), {"web_log_id": web_log_id}, sort=[("name", 1)])
        return [to_category(doc) for doc in docs]

    @retried
    async def _count_published(self, web_log_id: str, category_ids: List[str]) -> int:
        return await self.collection(POST).count_documents({
            "web_log_id": web_log_id,
            "status": PostStatus.published.value,
            "category_ids": {"$in": category_ids},
        })

    async def find_all_for_view(self, web_log_id: str) -> List[DisplayCategory]:
        ordered = order_by_hierarchy(await self.find_by_web_log(web_log_id))
        return await with_post_counts(ordered, lambda ids: self._count_published(web_log_id, ids))

    @retried
    async def delete(self, cat_id: str, web_log_id: str) -> bool:
        doc = await in_web_log(self.collection(CATEGORY), cat_id, web_log_id)
        if doc is None:
            return False
        moved = await self.collection(CATEGORY).update_many(
            {"web_log_id": web_log_id, "parent_id": cat_id}, {"$set": {"parent_id": doc.get("parent_id")}}
        )
        await self.collection(POST).update_many(
            {"web_log_id": web_log_id, "category_ids": cat_id}, {"$pull": {"category_ids": cat_id}}
        )
        await self.collection(CATEGORY).delete_one({"_id": cat_id})
        logger.debug(f"Deleted category {cat_id}; moved {moved.modified_count} child categories")
        return True

    async def restore(self, categories: List[Category]) -> None:
        for batch in chunked(categories, self.batch_size):
            await self._insert(batch)

    @retried
    async def _insert(self, batch: List[Category]) -> None:
        await self.collection(CATEGORY).insert_many([to_doc(category) for category in batch])

    @retried
    async def update(self, category: Category) -> bool:
        result = await self.collection(CATEGORY).replace_one(
            {"_id": category.id, "web_log_id": category.web_log_id}, to_doc(category)
        )
        return result.matched_count > 0
