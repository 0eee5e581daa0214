# weblog_data/hybrid/data.py
"""The hybrid storage adapter: one JSON document per aggregate in a SQL table."""
import logging
from typing import List, Optional

from sqlalchemy import inspect, select
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import AsyncEngine

from weblog_data.core.config import Settings, settings as default_settings
from weblog_data.data.migrations import (
    CURRENT_VERSION, MigrationStep, Migrator, backup_and_restore_required, label_only
)
from weblog_data.hybrid.category import CategoryData
from weblog_data.hybrid.helpers import find_documents
from weblog_data.hybrid.page import PageData
from weblog_data.hybrid.post import PostData
from weblog_data.hybrid.tables import db_version, metadata, web_log
from weblog_data.hybrid.tag_map import TagMapData
from weblog_data.hybrid.theme import ThemeAssetData, ThemeData
from weblog_data.hybrid.upload import UploadData
from weblog_data.hybrid.user import WebLogUserData
from weblog_data.hybrid.web_log import WebLogData

logger = logging.getLogger(__name__)


class HybridData:
    """The data access contract over SQL tables of JSON documents (SQLite JSON1)."""

    def __init__(self, engine: AsyncEngine, settings: Settings = default_settings):
        self.engine = engine
        self.category = CategoryData(engine, settings.RESTORE_BATCH_SIZE)
        self.page = PageData(engine, settings.RESTORE_BATCH_SIZE, settings.PAGES_PER_ADMIN_PAGE)
        self.post = PostData(engine, settings.RESTORE_BATCH_SIZE)
        self.tag_map = TagMapData(engine, settings.RESTORE_BATCH_SIZE)
        self.theme = ThemeData(engine)
        self.theme_asset = ThemeAssetData(engine)
        self.upload = UploadData(engine, settings.UPLOAD_RESTORE_BATCH_SIZE)
        self.web_log = WebLogData(engine)
        self.web_log_user = WebLogUserData(engine, settings.RESTORE_BATCH_SIZE)

    async def _ensure_tables(self) -> None:
        def create_missing(conn: Connection) -> None:
            existing = set(inspect(conn).get_table_names())
            for table in metadata.sorted_tables:
                if table.name not in existing:
                    logger.info(f"Creating table {table.name}...")
                    table.create(conn)
            if db_version.name not in existing:
                conn.execute(db_version.insert().values(id=CURRENT_VERSION))

        async with self.engine.begin() as conn:
            await conn.run_sync(create_missing)

    async def _read_version(self) -> Optional[str]:
        async with self.engine.connect() as conn:
            return (await conn.execute(select(db_version.c.id))).scalars().first()

    async def _write_version(self, version: str) -> None:
        async with self.engine.begin() as conn:
            await conn.execute(db_version.delete())
            await conn.execute(db_version.insert().values(id=version))

    async def _require_backup_and_restore(self) -> None:
        async with self.engine.connect() as conn:
            docs = await find_documents(conn, select(web_log.c.data).order_by(web_log.c.id))
        backup_and_restore_required("v2", "v2.1", [(doc["url_base"], doc["slug"]) for doc in docs])

    def migration_steps(self) -> List[MigrationStep]:
        return [
            label_only("v2-rc1", "v2-rc2"),
            label_only("v2-rc2", "v2"),
            MigrationStep(
                "v2", "v2.1", "Document tables cannot be converted in place",
                self._require_backup_and_restore,
            ),
            label_only("v2.1", "v2.1.1"),
        ]

    async def start_up(self) -> None:
        await self._ensure_tables()
        await Migrator(self.migration_steps(), self._read_version, self._write_version).migrate()

    async def shut_down(self) -> None:
        await self.engine.dispose()
