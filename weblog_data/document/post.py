# weblog_data/document/post.py
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from weblog_data.data.utils import chunked, page_bounds
from weblog_data.document.helpers import (
    POST, DocumentFamily, check_permalinks, find_all, from_doc, in_web_log, retried, save_document, to_doc
)
from weblog_data.schemas.common import PostStatus, format_instant
from weblog_data.schemas.post import Post

WITHOUT_HISTORY = {"revisions": 0, "prior_permalinks": 0}

EARLIEST = datetime.min.replace(tzinfo=timezone.utc)


def to_post(doc) -> Post:
    return Post.model_validate(from_doc(doc))


def admin_order(posts: List[Post]) -> List[Post]:
    """Unpublished posts first, then newest published; ties by last update."""
    by_update = sorted(posts, key=lambda p: p.updated_on)
    return sorted(
        by_update, key=lambda p: (p.published_on is None, p.published_on or EARLIEST), reverse=True
    )


class PostData(DocumentFamily):
    """Posts in the document store; categories, tags and revisions are embedded arrays."""

    def _published(self, web_log_id: str, **conditions) -> dict:
        return {"web_log_id": web_log_id, "status": PostStatus.published.value, **conditions}

    async def _page(self, query: dict, page_nbr: int, page_size: int) -> List[Post]:
        offset, limit = page_bounds(page_nbr, page_size)
        docs = await find_all(
            self.collection(POST), query, projection=WITHOUT_HISTORY,
            sort=[("published_on", -1), ("_id", 1)], skip=offset, limit=limit,
        )
        return [to_post(doc) for doc in docs]

    @retried
    async def add(self, post: Post) -> None:
        await check_permalinks(self.db, post.web_log_id, post.id, post.permalink, post.prior_permalinks)
        await self.collection(POST).insert_one(to_doc(post))

    @retried
    async def count_by_status(self, status: PostStatus, web_log_id: str) -> int:
        return await self.collection(POST).count_documents(
            {"web_log_id": web_log_id, "status": PostStatus(status).value}
        )

    @retried
    async def delete(self, post_id: str, web_log_id: str) -> bool:
        result = await self.collection(POST).delete_one({"_id": post_id, "web_log_id": web_log_id})
        return result.deleted_count > 0

    @retried
    async def find_by_id(self, post_id: str, web_log_id: str) -> Optional[Post]:
        doc = await in_web_log(self.collection(POST), post_id, web_log_id, WITHOUT_HISTORY)
        return to_post(doc) if doc else None

    @retried
    async def find_by_permalink(self, permalink: str, web_log_id: str) -> Optional[Post]:
        doc = await self.collection(POST).find_one(
            {"web_log_id": web_log_id, "permalink": permalink}, WITHOUT_HISTORY
        )
        return to_post(doc) if doc else None

    @retried
    async def find_current_permalink(self, permalinks: List[str], web_log_id: str) -> Optional[str]:
        if not permalinks:
            return None
        doc = await self.collection(POST).find_one(
            {"web_log_id": web_log_id, "prior_permalinks": {"$in": permalinks}}, {"permalink": 1}
        )
        return doc["permalink"] if doc else None

    @retried
    async def find_full_by_id(self, post_id: str, web_log_id: str) -> Optional[Post]:
        doc = await in_web_log(self.collection(POST), post_id, web_log_id)
        return to_post(doc) if doc else None

    @retried
    async def find_full_by_web_log(self, web_log_id: str) -> List[Post]:
        docs = await find_all(self.collection(POST), {"web_log_id": web_log_id}, sort=[("_id", 1)])
        return [to_post(doc) for doc in docs]

    @retried
    async def find_page_of_categorized_posts(
        self, web_log_id: str, category_ids: List[str], page_nbr: int, page_size: int
    ) -> List[Post]:
        query = self._published(web_log_id, category_ids={"$in": category_ids})
        return await self._page(query, page_nbr, page_size)

    @retried
    async def find_page_of_posts(self, web_log_id: str, page_nbr: int, page_size: int) -> List[Post]:
        offset, limit = page_bounds(page_nbr, page_size)
        docs = await find_all(
            self.collection(POST), {"web_log_id": web_log_id}, projection={**WITHOUT_HISTORY, "text": 0}
        )
        posts = admin_order([to_post(doc) for doc in docs])
        return [post.model_copy(update={"text": ""}) for post in posts[offset:offset + limit]]

    @retried
    async def find_page_of_published_posts(self, web_log_id: str, page_nbr: int, page_size: int) -> List[Post]:
        return await self._page(self._published(web_log_id), page_nbr, page_size)

    @retried
    async def find_page_of_tagged_posts(
        self, web_log_id: str, tag: str, page_nbr: int, page_size: int
    ) -> List[Post]:
        return await self._page(self._published(web_log_id, tags=tag), page_nbr, page_size)

    @retried
    async def find_surrounding_posts(
        self, web_log_id: str, published_on: datetime
    ) -> Tuple[Optional[Post], Optional[Post]]:
        on = format_instant(published_on)
        older = await find_all(
            self.collection(POST), self._published(web_log_id, published_on={"$lt": on}),
            projection=WITHOUT_HISTORY, sort=[("published_on", -1)], limit=1,
        )
        newer = await find_all(
            self.collection(POST), self._published(web_log_id, published_on={"$gt": on}),
            projection=WITHOUT_HISTORY, sort=[("published_on", 1)], limit=1,
        )
        return (
            to_post(older[0]) if older else None,
            to_post(newer[0]) if newer else None,
        )

    async def restore(self, posts: List[Post]) -> None:
        for batch in chunked(posts, self.batch_size):
            await self._insert(batch)

    @retried
    async def _insert(self, batch: List[Post]) -> None:
        await self.collection(POST).insert_many([to_doc(post) for post in batch])

    @retried
    async def update(self, post: Post) -> bool:
        if await in_web_log(self.collection(POST), post.id, post.web_log_id, {"_id": 1}) is None:
            return False
        await check_permalinks(self.db, post.web_log_id, post.id, post.permalink, post.prior_permalinks)
        await save_document(self.collection(POST), to_doc(post))
        return True

    @retried
    async def update_prior_permalinks(self, post_id: str, web_log_id: str, permalinks: List[str]) -> bool:
        if await in_web_log(self.collection(POST), post_id, web_log_id, {"_id": 1}) is None:
            return False
        await check_permalinks(self.db, web_log_id, post_id, None, permalinks)
        await self.collection(POST).update_one(
            {"_id": post_id}, {"$set": {"prior_permalinks": sorted(set(permalinks))}}
        )
        return True
