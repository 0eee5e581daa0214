# weblog_data/document/web_log.py
import logging
from typing import List, Optional

from weblog_data.document.helpers import (
    CATEGORY, PAGE, POST, TAG_MAP, UPLOAD, WEB_LOG, WEB_LOG_USER, DocumentFamily, find_all, from_doc, retried,
    to_doc
)
from weblog_data.schemas.web_log import WebLog

logger = logging.getLogger(__name__)


def to_web_log(doc) -> WebLog:
    return WebLog.model_validate(from_doc(doc))


class WebLogData(DocumentFamily):
    """Web logs in the document store; RSS options and custom feeds are embedded."""

    async def _set(self, web_log_id: str, fields: dict) -> bool:
        result = await self.collection(WEB_LOG).update_one({"_id": web_log_id}, {"$set": fields})
        return result.matched_count > 0

    @retried
    async def add(self, web_log: WebLog) -> None:
        await self.collection(WEB_LOG).insert_one(to_doc(web_log))

    @retried
    async def all(self) -> List[WebLog]:
        docs = await find_all(self.collection(WEB_LOG), {}, sort=[("_id", 1)])
        return [to_web_log(doc) for doc in docs]

    @retried
    async def delete(self, web_log_id: str) -> None:
        for name in (POST, PAGE, CATEGORY, TAG_MAP, UPLOAD, WEB_LOG_USER):
            await self.collection(name).delete_many({"web_log_id": web_log_id})
        await self.collection(WEB_LOG).delete_one({"_id": web_log_id})
        logger.info(f"Deleted web log {web_log_id} and all of its content")

    @retried
    async def find_by_host(self, url_base: str) -> Optional[WebLog]:
        doc = await self.collection(WEB_LOG).find_one({"url_base": url_base})
        return to_web_log(doc) if doc else None

    @retried
    async def find_by_id(self, web_log_id: str) -> Optional[WebLog]:
        doc = await self.collection(WEB_LOG).find_one({"_id": web_log_id})
        return to_web_log(doc) if doc else None

    @retried
    async def update_redirect_rules(self, web_log: WebLog) -> bool:
        return await self._set(web_log.id, {"redirect_rules": to_doc(web_log)["redirect_rules"]})

    @retried
    async def update_rss_options(self, web_log: WebLog) -> bool:
        return await self._set(web_log.id, {"rss": web_log.rss.model_dump(mode="json")})

    @retried
    async def update_settings(self, web_log: WebLog) -> bool:
        settings = to_doc(web_log, exclude={"rss", "redirect_rules"})
        settings.pop("_id")
        return await self._set(web_log.id, settings)
