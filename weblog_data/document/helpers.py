# weblog_data/document/helpers.py
import functools
import logging
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorDatabase
from pydantic import BaseModel
from pymongo.errors import DuplicateKeyError

from weblog_data.core.errors import ConstraintViolationError
from weblog_data.core.retry import RetryPolicy
from weblog_data.data.utils import permalink_in_use

logger = logging.getLogger(__name__)

# Collection names
CATEGORY = "category"
PAGE = "page"
POST = "post"
TAG_MAP = "tag_map"
THEME = "theme"
THEME_ASSET = "theme_asset"
UPLOAD = "upload"
WEB_LOG = "web_log"
WEB_LOG_USER = "web_log_user"
DB_VERSION = "db_version"


def to_doc(model: BaseModel, **kwargs) -> Dict[str, Any]:
    """A model as a document; its id becomes the document's _id."""
    doc = model.model_dump(mode="json", **kwargs)
    doc["_id"] = doc.pop("id")
    return doc


def from_doc(doc: Dict[str, Any]) -> Dict[str, Any]:
    values = dict(doc)
    values["id"] = values.pop("_id")
    return values


def retried(method):
    """Run an adapter method under the instance's retry policy; duplicate keys become constraint violations."""

    @functools.wraps(method)
    async def wrapper(self, *args, **kwargs):
        try:
            return await self.retry.run(lambda: method(self, *args, **kwargs), method.__qualname__)
        except DuplicateKeyError as e:
            raise ConstraintViolationError(str(e)) from e

    return wrapper


class DocumentFamily:
    """Shared state for one entity family: the database and the retry policy."""

    def __init__(self, db: AsyncIOMotorDatabase, retry: RetryPolicy, batch_size: int = 100):
        self.db = db
        self.retry = retry
        self.batch_size = batch_size

    def collection(self, name: str) -> AsyncIOMotorCollection:
        return self.db[name]


async def find_all(collection: AsyncIOMotorCollection, query: Dict[str, Any], **kwargs) -> List[Dict[str, Any]]:
    return await collection.find(query, **kwargs).to_list(length=None)


async def in_web_log(
    collection: AsyncIOMotorCollection, entity_id: str, web_log_id: str, projection: Optional[Dict[str, int]] = None
) -> Optional[Dict[str, Any]]:
    """Find a document by id, only if it belongs to the given web log."""
    return await collection.find_one({"_id": entity_id, "web_log_id": web_log_id}, projection)


async def save_document(collection: AsyncIOMotorCollection, doc: Dict[str, Any]) -> bool:
    """Insert or replace a document; nothing is written when the stored one is identical."""
    current = await collection.find_one({"_id": doc["_id"]})
    if current == doc:
        return False
    await collection.replace_one({"_id": doc["_id"]}, doc, upsert=True)
    return True


async def check_permalinks(
    db: AsyncIOMotorDatabase,
    web_log_id: str,
    entity_id: str,
    permalink: Optional[str],
    prior_permalinks: List[str],
) -> None:
    """
    Ensure a page or post's links do not collide with another page or post.

    The current permalink may not be any other page or post's current or prior
    permalink; prior permalinks may not be any other current permalink.
    """
    conditions = []
    if permalink is not None:
        conditions += [{"permalink": permalink}, {"prior_permalinks": permalink}]
    if prior_permalinks:
        conditions.append({"permalink": {"$in": prior_permalinks}})
    if not conditions:
        return
    query = {"web_log_id": web_log_id, "_id": {"$ne": entity_id}, "$or": conditions}
    for name in (PAGE, POST):
        if await db[name].find_one(query, {"_id": 1}) is not None:
            link = permalink if permalink is not None else ", ".join(prior_permalinks)
            logger.debug(f"Permalink collision for {entity_id}: {link}")
            raise ConstraintViolationError(permalink_in_use(link, web_log_id))
