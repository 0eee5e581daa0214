# weblog_data/document/page.py
from typing import List, Optional

from weblog_data.data.utils import chunked, page_bounds
from weblog_data.document.helpers import (
    PAGE, DocumentFamily, check_permalinks, find_all, from_doc, in_web_log, retried, save_document, to_doc
)
from weblog_data.schemas.page import Page

# Finders other than the "full" ones leave these out
WITHOUT_HISTORY = {"revisions": 0, "prior_permalinks": 0}


def to_page(doc) -> Page:
    return Page.model_validate(from_doc(doc))


def by_title(pages: List[Page]) -> List[Page]:
    return sorted(pages, key=lambda pg: pg.title.lower())


class PageData(DocumentFamily):
    """
    Pages in the document store.

    Revisions and prior permalinks are embedded arrays. Title ordering is
    case-insensitive, so it is applied after the documents are read.
    """

    def __init__(self, db, retry, batch_size: int = 100, page_list_size: int = 25):
        super().__init__(db, retry, batch_size)
        self.page_list_size = page_list_size

    async def _by_web_log(self, query: dict, projection: Optional[dict] = None) -> List[Page]:
        docs = await find_all(self.collection(PAGE), query, projection=projection)
        return by_title([to_page(doc) for doc in docs])

    @retried
    async def add(self, page: Page) -> None:
        await check_permalinks(self.db, page.web_log_id, page.id, page.permalink, page.prior_permalinks)
        await self.collection(PAGE).insert_one(to_doc(page))

    @retried
    async def all(self, web_log_id: str) -> List[Page]:
        pages = await self._by_web_log(
            {"web_log_id": web_log_id}, {**WITHOUT_HISTORY, "text": 0, "metadata": 0}
        )
        return [pg.model_copy(update={"text": "", "metadata": []}) for pg in pages]

    @retried
    async def count_all(self, web_log_id: str) -> int:
        return await self.collection(PAGE).count_documents({"web_log_id": web_log_id})

    @retried
    async def count_listed(self, web_log_id: str) -> int:
        return await self.collection(PAGE).count_documents({"web_log_id": web_log_id, "is_in_page_list": True})

    @retried
    async def delete(self, page_id: str, web_log_id: str) -> bool:
        result = await self.collection(PAGE).delete_one({"_id": page_id, "web_log_id": web_log_id})
        return result.deleted_count > 0

    @retried
    async def find_by_id(self, page_id: str, web_log_id: str) -> Optional[Page]:
        doc = await in_web_log(self.collection(PAGE), page_id, web_log_id, WITHOUT_HISTORY)
        return to_page(doc) if doc else None

    @retried
    async def find_by_permalink(self, permalink: str, web_log_id: str) -> Optional[Page]:
        doc = await self.collection(PAGE).find_one(
            {"web_log_id": web_log_id, "permalink": permalink}, WITHOUT_HISTORY
        )
        return to_page(doc) if doc else None

    @retried
    async def find_current_permalink(self, permalinks: List[str], web_log_id: str) -> Optional[str]:
        if not permalinks:
            return None
        doc = await self.collection(PAGE).find_one(
            {"web_log_id": web_log_id, "prior_permalinks": {"$in": permalinks}}, {"permalink": 1}
        )
        return doc["permalink"] if doc else None

    @retried
    async def find_full_by_id(self, page_id: str, web_log_id: str) -> Optional[Page]:
        doc = await in_web_log(self.collection(PAGE), page_id, web_log_id)
        return to_page(doc) if doc else None

    @retried
    async def find_full_by_web_log(self, web_log_id: str) -> List[Page]:
        return await self._by_web_log({"web_log_id": web_log_id})

    @retried
    async def find_listed(self, web_log_id: str) -> List[Page]:
        pages = await self._by_web_log(
            {"web_log_id": web_log_id, "is_in_page_list": True}, {**WITHOUT_HISTORY, "text": 0}
        )
        return [pg.model_copy(update={"text": ""}) for pg in pages]

    @retried
    async def find_page_of_pages(
        self, web_log_id: str, page_nbr: int, page_size: Optional[int] = None
    ) -> List[Page]:
        offset, limit = page_bounds(page_nbr, page_size or self.page_list_size)
        pages = await self._by_web_log({"web_log_id": web_log_id}, {**WITHOUT_HISTORY, "metadata": 0})
        return [pg.model_copy(update={"metadata": []}) for pg in pages[offset:offset + limit]]

    async def restore(self, pages: List[Page]) -> None:
        for batch in chunked(pages, self.batch_size):
            await self._insert(batch)

    @retried
    async def _insert(self, batch: List[Page]) -> None:
        await self.collection(PAGE).insert_many([to_doc(pg) for pg in batch])

    @retried
    async def update(self, page: Page) -> bool:
        if await in_web_log(self.collection(PAGE), page.id, page.web_log_id, {"_id": 1}) is None:
            return False
        await check_permalinks(self.db, page.web_log_id, page.id, page.permalink, page.prior_permalinks)
        await save_document(self.collection(PAGE), to_doc(page))
        return True

    @retried
    async def update_prior_permalinks(self, page_id: str, web_log_id: str, permalinks: List[str]) -> bool:
        if await in_web_log(self.collection(PAGE), page_id, web_log_id, {"_id": 1}) is None:
            return False
        await check_permalinks(self.db, web_log_id, page_id, None, permalinks)
        await self.collection(PAGE).update_one(
            {"_id": page_id}, {"$set": {"prior_permalinks": sorted(set(permalinks))}}
        )
        return True
