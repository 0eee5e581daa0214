# weblog_data/relational/data.py
"""The relational storage adapter: normalized tables through SQLModel."""
import logging
from collections import defaultdict
from typing import Dict, List, Optional, Sequence, Tuple

import sqlalchemy as sa
from alembic.operations import Operations
from alembic.runtime.migration import MigrationContext
from sqlalchemy import inspect
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlmodel import delete, select

from weblog_data.core.config import Settings, settings as default_settings
from weblog_data.data.migrations import CURRENT_VERSION, MigrationStep, Migrator, label_only, log_step
from weblog_data.relational.category import CategoryData
from weblog_data.relational.helpers import open_session
from weblog_data.relational.models import (
    TABLES, DbVersionRow, PageRevisionRow, PageRow, PostRevisionRow, PostRow, WebLogFeedRow, WebLogRow
)
from weblog_data.relational.page import PageData
from weblog_data.relational.post import PostData
from weblog_data.relational.tag_map import TagMapData
from weblog_data.relational.theme import ThemeAssetData, ThemeData
from weblog_data.relational.upload import UploadData
from weblog_data.relational.user import WebLogUserData
from weblog_data.relational.web_log import WebLogData
from weblog_data.schemas.common import format_instant, parse_instant
from weblog_data.schemas.post import Episode
from weblog_data.schemas.web_log import PodcastOptions

logger = logging.getLogger(__name__)

# Timestamp columns re-encoded at second precision by the v2-rc1 migration
TIMESTAMP_COLUMNS: Sequence[Tuple[str, Tuple[str, ...], Tuple[str, ...]]] = (
    ("page", ("id",), ("published_on", "updated_on")),
    ("post", ("id",), ("published_on", "updated_on")),
    ("theme_asset", ("theme_id", "path"), ("updated_on",)),
    ("upload", ("id",), ("updated_on",)),
    ("web_log_user", ("id",), ("created_on", "last_seen_on")),
)


def _has_column(conn: Connection, table: str, column: str) -> bool:
    return column in {col["name"] for col in inspect(conn).get_columns(table)}


def _present(row: Dict) -> Dict:
    return {key: value for key, value in row.items() if value is not None}


def _reencode(value: Optional[str]) -> Optional[str]:
    return None if value is None else format_instant(parse_instant(value))


def migrate_v2_rc1_to_v2_rc2(conn: Connection) -> None:
    """Move metadata, episodes and podcasts into JSON columns; drop the old tables and the salt column."""
    op = Operations(MigrationContext.configure(conn))
    tables = set(inspect(conn).get_table_names())

    log_step("v2-rc1", "v2-rc2", "Adding new columns")
    added = set()
    for table, column in (("page", "meta_items"), ("post", "meta_items"), ("post", "episode"),
                          ("web_log_feed", "podcast")):
        if not _has_column(conn, table, column):
            op.add_column(table, sa.Column(column, sa.JSON(), nullable=True))
            added.add((table, column))

    log_step("v2-rc1", "v2-rc2", "Moving metadata to JSON columns")
    for table, old_table, key in ((PageRow.__table__, "page_meta", "page_id"),
                                  (PostRow.__table__, "post_meta", "post_id")):
        # Rows keep their metadata unless there is an old table to move from or the column is new
        if old_table not in tables and (table.name, "meta_items") not in added:
            continue
        meta: Dict[str, List[Dict[str, str]]] = defaultdict(list)
        if old_table in tables:
            for row in conn.execute(sa.text(f"SELECT {key}, name, value FROM {old_table}")).mappings():
                meta[row[key]].append({"name": row["name"], "value": row["value"]})
        for entity_id in conn.execute(sa.select(table.c.id)).scalars().all():
            conn.execute(sa.update(table).where(table.c.id == entity_id).values(meta_items=meta.get(entity_id, [])))

    if "post_episode" in tables:
        log_step("v2-rc1", "v2-rc2", "Moving episode details to JSON column")
        post = PostRow.__table__
        for row in conn.execute(sa.text("SELECT * FROM post_episode")).mappings().all():
            values = _present(dict(row))
            post_id = values.pop("post_id")
            episode = Episode.model_validate(values).model_dump(mode="json")
            conn.execute(sa.update(post).where(post.c.id == post_id).values(episode=episode))

    if "web_log_feed_podcast" in tables:
        log_step("v2-rc1", "v2-rc2", "Moving podcast settings to JSON column")
        feed = WebLogFeedRow.__table__
        for row in conn.execute(sa.text("SELECT * FROM web_log_feed_podcast")).mappings().all():
            values = _present(dict(row))
            feed_id = values.pop("feed_id")
            podcast = PodcastOptions.model_validate(values).model_dump(mode="json")
            conn.execute(sa.update(feed).where(feed.c.id == feed_id).values(podcast=podcast))

    log_step("v2-rc1", "v2-rc2", "Changing timestamps to whole-second precision")
    for table, keys, columns in TIMESTAMP_COLUMNS:
        selected = ", ".join(keys + columns)
        assignments = ", ".join(f"{col} = :{col}" for col in columns)
        matches = " AND ".join(f"{key} = :{key}" for key in keys)
        for row in conn.execute(sa.text(f"SELECT {selected} FROM {table}")).mappings().all():
            params = dict(row)
            for col in columns:
                params[col] = _reencode(params[col])
            conn.execute(sa.text(f"UPDATE {table} SET {assignments} WHERE {matches}"), params)

    for revision, key in ((PageRevisionRow.__table__, "page_id"), (PostRevisionRow.__table__, "post_id")):
        rows = conn.execute(sa.text(f"SELECT {key}, as_of, revision_text FROM {revision.name}")).mappings().all()
        op.drop_table(revision.name)
        revision.create(conn)
        if rows:
            conn.execute(revision.insert(), [
                {key: row[key], "as_of": parse_instant(row["as_of"]), "revision_text": row["revision_text"]}
                for row in rows
            ])

    log_step("v2-rc1", "v2-rc2", "Dropping old tables and columns")
    if _has_column(conn, "web_log_user", "salt"):
        with op.batch_alter_table("web_log_user") as batch:
            batch.drop_column("salt")
    for old_table in ("post_episode", "post_meta", "page_meta", "web_log_feed_podcast"):
        if old_table in tables:
            op.drop_table(old_table)


def migrate_v2_to_v2_1(conn: Connection) -> None:
    """Add redirect rules to web logs."""
    if not _has_column(conn, "web_log", "redirect_rules"):
        Operations(MigrationContext.configure(conn)).add_column(
            "web_log", sa.Column("redirect_rules", sa.JSON(), nullable=True)
        )
    conn.execute(sa.update(WebLogRow.__table__).values(redirect_rules=[]))


class RelationalData:
    """
    The data access contract over normalized SQL tables.

    Works with any SQLAlchemy async driver; SQLite (aiosqlite) and PostgreSQL
    (asyncpg) are the supported ones.
    """

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
            for table in TABLES:
                if table.name not in existing:
                    logger.info(f"Creating table {table.name}...")
                    table.create(conn)
            if DbVersionRow.__tablename__ not in existing:
                conn.execute(DbVersionRow.__table__.insert().values(id=CURRENT_VERSION))

        async with self.engine.begin() as conn:
            await conn.run_sync(create_missing)

    async def _read_version(self) -> Optional[str]:
        async with open_session(self.engine) as db:
            return (await db.exec(select(DbVersionRow.id))).first()

    async def _write_version(self, version: str) -> None:
        async with open_session(self.engine) as db:
            await db.exec(delete(DbVersionRow))
            db.add(DbVersionRow(id=version))
            await db.commit()

    def _in_transaction(self, step):
        async def apply() -> None:
            async with self.engine.begin() as conn:
                await conn.run_sync(step)
        return apply

    def migration_steps(self) -> List[MigrationStep]:
        return [
            MigrationStep(
                "v2-rc1", "v2-rc2",
                "Moving metadata, episodes and podcast settings to JSON columns",
                self._in_transaction(migrate_v2_rc1_to_v2_rc2),
            ),
            label_only("v2-rc2", "v2"),
            MigrationStep(
                "v2", "v2.1", "Adding empty redirect rule set to all web logs",
                self._in_transaction(migrate_v2_to_v2_1),
            ),
            label_only("v2.1", "v2.1.1"),
        ]

    async def start_up(self) -> None:
        await self._ensure_tables()
        await Migrator(self.migration_steps(), self._read_version, self._write_version).migrate()

    async def shut_down(self) -> None:
        await self.engine.dispose()
