# weblog_data/document/user.py
from typing import List, Optional

from weblog_data.core.errors import OpResult
from weblog_data.data.utils import chunked
from weblog_data.document.helpers import (
    PAGE, POST, WEB_LOG_USER, DocumentFamily, find_all, from_doc, in_web_log, retried, to_doc
)
from weblog_data.schemas.common import MetaItem, format_instant, now
from weblog_data.schemas.user import WebLogUser


def to_user(doc) -> WebLogUser:
    return WebLogUser.model_validate(from_doc(doc))


class WebLogUserData(DocumentFamily):
    """Web log users in the document store."""

    @retried
    async def add(self, user: WebLogUser) -> None:
        await self.collection(WEB_LOG_USER).insert_one(to_doc(user))

    @retried
    async def delete(self, user_id: str, web_log_id: str) -> OpResult[bool]:
        if await in_web_log(self.collection(WEB_LOG_USER), user_id, web_log_id, {"_id": 1}) is None:
            return OpResult.failure("User does not exist")
        authored = 0
        for name in (PAGE, POST):
            authored += await self.collection(name).count_documents({"author_id": user_id})
        if authored > 0:
            return OpResult.failure("User has pages or posts; cannot delete")
        await self.collection(WEB_LOG_USER).delete_one({"_id": user_id})
        return OpResult.success(True)

    @retried
    async def find_by_email(self, email: str, web_log_id: str) -> Optional[WebLogUser]:
        doc = await self.collection(WEB_LOG_USER).find_one({"web_log_id": web_log_id, "email": email})
        return to_user(doc) if doc else None

    @retried
    async def find_by_id(self, user_id: str, web_log_id: str) -> Optional[WebLogUser]:
        doc = await in_web_log(self.collection(WEB_LOG_USER), user_id, web_log_id)
        return to_user(doc) if doc else None

    @retried
    async def find_by_web_log(self, web_log_id: str) -> List[WebLogUser]:
        docs = await find_all(self.collection(WEB_LOG_USER), {"web_log_id": web_log_id})
        return sorted([to_user(doc) for doc in docs], key=lambda user: user.preferred_name.lower())

    @retried
    async def find_names(self, web_log_id: str, user_ids: List[str]) -> List[MetaItem]:
        if not user_ids:
            return []
        docs = await find_all(
            self.collection(WEB_LOG_USER),
            {"web_log_id": web_log_id, "_id": {"$in": user_ids}},
            sort=[("_id", 1)],
        )
        return [MetaItem(name=user.id, value=user.display_name) for user in map(to_user, docs)]

    async def restore(self, users: List[WebLogUser]) -> None:
        for batch in chunked(users, self.batch_size):
            await self._insert(batch)

    @retried
    async def _insert(self, batch: List[WebLogUser]) -> None:
        await self.collection(WEB_LOG_USER).insert_many([to_doc(user) for user in batch])

    @retried
    async def set_last_seen(self, user_id: str, web_log_id: str) -> bool:
        result = await self.collection(WEB_LOG_USER).update_one(
            {"_id": user_id, "web_log_id": web_log_id}, {"$set": {"last_seen_on": format_instant(now())}}
        )
        return result.matched_count > 0

    @retried
    async def update(self, user: WebLogUser) -> bool:
        result = await self.collection(WEB_LOG_USER).replace_one(
            {"_id": user.id, "web_log_id": user.web_log_id}, to_doc(user)
        )
        return result.matched_count > 0
