# weblog_data/document/data.py
"""The document storage adapter: one MongoDB collection per entity, through motor."""
import logging
from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, IndexModel

from weblog_data.core.config import Settings, settings as default_settings
from weblog_data.core.retry import RetryPolicy
from weblog_data.data.migrations import CURRENT_VERSION, MigrationStep, Migrator, label_only
from weblog_data.document.category import CategoryData
from weblog_data.document.helpers import (
    CATEGORY, DB_VERSION, PAGE, POST, TAG_MAP, THEME, THEME_ASSET, UPLOAD, WEB_LOG, WEB_LOG_USER
)
from weblog_data.document.page import PageData
from weblog_data.document.post import PostData
from weblog_data.document.tag_map import TagMapData
from weblog_data.document.theme import ThemeAssetData, ThemeData
from weblog_data.document.upload import UploadData
from weblog_data.document.user import WebLogUserData
from weblog_data.document.web_log import WebLogData

logger = logging.getLogger(__name__)

# The first version to record itself in db_version
FIRST_VERSIONED = "v2-rc1"

INDEXES = {
    CATEGORY: [IndexModel([("web_log_id", ASCENDING)], name="idx_category_web_log")],
    PAGE: [
        IndexModel([("web_log_id", ASCENDING), ("permalink", ASCENDING)], name="idx_page_permalink"),
        IndexModel([("author_id", ASCENDING)], name="idx_page_author"),
    ],
    POST: [
        IndexModel([("web_log_id", ASCENDING), ("permalink", ASCENDING)], name="idx_post_permalink"),
        IndexModel(
            [("web_log_id", ASCENDING), ("status", ASCENDING), ("updated_on", ASCENDING)], name="idx_post_status"
        ),
        IndexModel([("author_id", ASCENDING)], name="idx_post_author"),
    ],
    TAG_MAP: [
        IndexModel([("web_log_id", ASCENDING), ("tag", ASCENDING)], name="idx_tag_map_tag", unique=True),
        IndexModel([("web_log_id", ASCENDING), ("url_value", ASCENDING)], name="idx_tag_map_url", unique=True),
    ],
    THEME: [],
    THEME_ASSET: [IndexModel([("theme_id", ASCENDING), ("path", ASCENDING)], name="idx_theme_asset_path")],
    UPLOAD: [IndexModel([("web_log_id", ASCENDING), ("path", ASCENDING)], name="idx_upload_path")],
    WEB_LOG: [IndexModel([("url_base", ASCENDING)], name="idx_web_log_url_base", unique=True)],
    WEB_LOG_USER: [
        IndexModel([("web_log_id", ASCENDING), ("email", ASCENDING)], name="idx_web_log_user_email", unique=True)
    ],
}


class DocumentData:
    """
    The data access contract over MongoDB.

    Every operation runs under the retry policy, so a brief primary election or
    network blip is retried with backoff before TransientStoreError is raised.
    """

    def __init__(
        self,
        client: AsyncIOMotorClient,
        settings: Settings = default_settings,
        retry: Optional[RetryPolicy] = None,
    ):
        self.client = client
        self.db: AsyncIOMotorDatabase = client[settings.MONGODB_DATABASE]
        self.retry = retry or RetryPolicy.from_settings(settings)
        batch = settings.RESTORE_BATCH_SIZE
        self.category = CategoryData(self.db, self.retry, batch)
        self.page = PageData(self.db, self.retry, batch, settings.PAGES_PER_ADMIN_PAGE)
        self.post = PostData(self.db, self.retry, batch)
        self.tag_map = TagMapData(self.db, self.retry, batch)
        self.theme = ThemeData(self.db, self.retry)
        self.theme_asset = ThemeAssetData(self.db, self.retry)
        self.upload = UploadData(self.db, self.retry, settings.UPLOAD_RESTORE_BATCH_SIZE)
        self.web_log = WebLogData(self.db, self.retry)
        self.web_log_user = WebLogUserData(self.db, self.retry, batch)

    async def _ensure_collections(self) -> None:
        existing = set(await self.db.list_collection_names())
        for name, indexes in INDEXES.items():
            if name not in existing:
                logger.info(f"Creating collection {name}...")
                await self.db.create_collection(name)
            if indexes:
                await self.db[name].create_indexes(indexes)
        if DB_VERSION not in existing:
            # Stores older than v2-rc2 have content but no version record
            version = FIRST_VERSIONED if existing & set(INDEXES) else CURRENT_VERSION
            logger.info(f"Creating collection {DB_VERSION}...")
            await self.db[DB_VERSION].insert_one({"_id": version})

    async def _read_version(self) -> Optional[str]:
        doc = await self.retry.run(lambda: self.db[DB_VERSION].find_one({}), "read database version")
        return doc["_id"] if doc else None

    async def _write_version(self, version: str) -> None:
        async def write() -> None:
            await self.db[DB_VERSION].delete_many({})
            await self.db[DB_VERSION].insert_one({"_id": version})

        await self.retry.run(write, "write database version")

    async def _add_redirect_rules(self) -> None:
        async def add() -> None:
            result = await self.db[WEB_LOG].update_many(
                {"redirect_rules": {"$exists": False}}, {"$set": {"redirect_rules": []}}
            )
            logger.debug(f"Added redirect rules to {result.modified_count} web logs")

        await self.retry.run(add, "add redirect rules")

    def migration_steps(self) -> List[MigrationStep]:
        return [
            label_only("v2-rc1", "v2-rc2"),
            label_only("v2-rc2", "v2"),
            MigrationStep("v2", "v2.1", "Adding empty redirect rule set to all web logs", self._add_redirect_rules),
            label_only("v2.1", "v2.1.1"),
        ]

    async def start_up(self) -> None:
        await self.retry.run(self._ensure_collections, "create collections")
        await Migrator(self.migration_steps(), self._read_version, self._write_version).migrate()

    async def shut_down(self) -> None:
        self.client.close()
