import pytest
from sqlalchemy import inspect, text

from conftest import make_page, make_post, make_user, make_web_log, memory_engine, mongo_client, recorded_writes
from weblog_data.core.errors import MigrationError
from weblog_data.core.retry import RetryPolicy
from weblog_data.data.migrations import CURRENT_VERSION
from weblog_data.document.data import DocumentData
from weblog_data.document.helpers import DB_VERSION, WEB_LOG, to_doc
from weblog_data.hybrid.data import HybridData
from weblog_data.relational.data import RelationalData
from weblog_data.schemas.common import MetaItem
from weblog_data.schemas.post import Episode
from weblog_data.schemas.web_log import CustomFeed, RedirectRule, RssOptions


async def sql_version(engine) -> str:
    async with engine.connect() as conn:
        return (await conn.execute(text("SELECT id FROM db_version"))).scalar_one()


async def set_sql_version(engine, version: str) -> None:
    async with engine.begin() as conn:
        await conn.execute(text("UPDATE db_version SET id = :id"), {"id": version})


async def table_names(engine):
    async with engine.connect() as conn:
        return await conn.run_sync(lambda sync_conn: set(inspect(sync_conn).get_table_names()))


async def column_names(engine, table: str):
    async with engine.connect() as conn:
        columns = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_columns(table))
    return {column["name"] for column in columns}


def redirected_web_log():
    return make_web_log(
        rss=RssOptions(custom_feeds=[CustomFeed(id="f1", source="tag:pod", path="pod.xml")]),
        redirect_rules=[RedirectRule(from_url="/old", to_url="/new")],
    )


async def build_v2_rc1_store(engine, settings) -> None:
    """Content saved by the current adapter, then reshaped to the v2-rc1 layout."""
    data = RelationalData(engine, settings)
    await data.start_up()
    await data.web_log.add(redirected_web_log())
    await data.web_log_user.add(make_user())
    await data.page.add(make_page())
    await data.post.add(make_post())
    await data.post.add(make_post("po2", hours=1))

    # v2-rc1 kept metadata, episodes and podcasts in child tables, and users had a salt
    async with engine.begin() as conn:
        for table, column in (("page", "meta_items"), ("post", "meta_items"), ("post", "episode"),
                              ("web_log_feed", "podcast")):
            await conn.execute(text(f"ALTER TABLE {table} DROP COLUMN {column}"))
        await conn.execute(text("CREATE TABLE page_meta (page_id TEXT, name TEXT, value TEXT)"))
        await conn.execute(text("INSERT INTO page_meta VALUES ('p1', 'color', 'blue')"))
        await conn.execute(text("CREATE TABLE post_meta (post_id TEXT, name TEXT, value TEXT)"))
        await conn.execute(text("INSERT INTO post_meta VALUES ('po1', 'series', 'intro')"))
        await conn.execute(text("CREATE TABLE post_episode (post_id TEXT, media TEXT, length INTEGER)"))
        await conn.execute(text("INSERT INTO post_episode VALUES ('po1', 'episode1.mp3', 4096)"))
        await conn.execute(text(
            "CREATE TABLE web_log_feed_podcast (feed_id TEXT, title TEXT, items_in_feed INTEGER, summary TEXT, "
            "displayed_author TEXT, email TEXT, image_url TEXT, apple_category TEXT, explicit TEXT)"
        ))
        await conn.execute(text(
            "INSERT INTO web_log_feed_podcast VALUES "
            "('f1', 'The Pod', 20, 'About', 'Host', 'host@example.com', 'pod.png', 'Arts', 'no')"
        ))
        await conn.execute(text("ALTER TABLE web_log_user ADD COLUMN salt TEXT"))
        await conn.execute(text("UPDATE page SET published_on = '2024-01-01 12:00:00.1234567'"))
    await set_sql_version(engine, "v2-rc1")


@pytest.fixture(name="engine")
async def engine_fixture():
    engine = memory_engine()
    yield engine
    await engine.dispose()


class TestRelationalMigrations:
    async def test_new_store_is_current(self, engine, settings):
        await RelationalData(engine, settings).start_up()
        assert await sql_version(engine) == CURRENT_VERSION
        assert "page_meta" not in await table_names(engine)

    async def test_from_v2_rc1(self, engine, settings):
        await build_v2_rc1_store(engine, settings)

        migrated = RelationalData(engine, settings)
        await migrated.start_up()

        assert await sql_version(engine) == CURRENT_VERSION
        page = await migrated.page.find_full_by_id("p1", "wl1")
        assert page.metadata == [MetaItem(name="color", value="blue")]
        assert page.revisions == make_page().revisions
        post = await migrated.post.find_by_id("po1", "wl1")
        assert post.metadata == [MetaItem(name="series", value="intro")]
        assert post.episode == Episode(media="episode1.mp3", length=4096)
        assert (await migrated.post.find_by_id("po2", "wl1")).metadata == []
        web_log = await migrated.web_log.find_by_id("wl1")
        assert web_log.rss.custom_feeds[0].podcast.title == "The Pod"
        assert web_log.redirect_rules == []
        assert await migrated.web_log_user.find_by_id("u1", "wl1") == make_user()

        tables = await table_names(engine)
        assert not tables & {"page_meta", "post_meta", "post_episode", "web_log_feed_podcast"}
        assert "salt" not in await column_names(engine, "web_log_user")
        assert {"meta_items", "episode"} <= await column_names(engine, "post")
        async with engine.connect() as conn:
            stored = (await conn.execute(text("SELECT published_on FROM page"))).scalar_one()
        assert stored == "2024-01-01T12:00:00Z"

    async def test_v2_rc1_step_can_run_again(self, engine, settings):
        await build_v2_rc1_store(engine, settings)
        await RelationalData(engine, settings).start_up()

        # The version label was not advanced, but the old tables are already gone
        await set_sql_version(engine, "v2-rc1")
        migrated = RelationalData(engine, settings)
        await migrated.start_up()

        assert await sql_version(engine) == CURRENT_VERSION
        assert (await migrated.page.find_by_id("p1", "wl1")).metadata == [MetaItem(name="color", value="blue")]
        post = await migrated.post.find_by_id("po1", "wl1")
        assert post.metadata == [MetaItem(name="series", value="intro")]
        assert post.episode == Episode(media="episode1.mp3", length=4096)
        assert (await migrated.web_log.find_by_id("wl1")).rss.custom_feeds[0].podcast.title == "The Pod"

    async def test_from_v2_adds_redirect_rules(self, engine, settings):
        data = RelationalData(engine, settings)
        await data.start_up()
        await data.web_log.add(redirected_web_log())
        await set_sql_version(engine, "v2")

        await RelationalData(engine, settings).start_up()
        assert await sql_version(engine) == CURRENT_VERSION
        assert (await data.web_log.find_by_id("wl1")).redirect_rules == []

    async def test_start_up_twice_changes_nothing(self, engine, settings):
        data = RelationalData(engine, settings)
        await data.start_up()
        await data.web_log.add(redirected_web_log())
        with recorded_writes(engine) as writes:
            await RelationalData(engine, settings).start_up()
        assert writes == []
        assert await data.web_log.find_by_id("wl1") == redirected_web_log()
        assert await sql_version(engine) == CURRENT_VERSION

    async def test_unknown_version_is_stamped_current(self, engine, settings):
        await RelationalData(engine, settings).start_up()
        await set_sql_version(engine, "v3-preview")
        await RelationalData(engine, settings).start_up()
        assert await sql_version(engine) == CURRENT_VERSION


class TestHybridMigrations:
    async def test_new_store_is_current(self, engine, settings):
        await HybridData(engine, settings).start_up()
        assert await sql_version(engine) == CURRENT_VERSION

    async def test_start_up_twice_changes_nothing(self, engine, settings):
        data = HybridData(engine, settings)
        await data.start_up()
        await data.web_log.add(redirected_web_log())
        await data.web_log_user.add(make_user())
        await data.page.add(make_page())
        with recorded_writes(engine) as writes:
            await HybridData(engine, settings).start_up()
        assert writes == []
        assert await data.web_log.find_by_id("wl1") == redirected_web_log()
        assert await data.page.find_full_by_id("p1", "wl1") == make_page()
        assert await sql_version(engine) == CURRENT_VERSION

    async def test_from_v2_requires_backup_and_restore(self, engine, settings, caplog):
        data = HybridData(engine, settings)
        await data.start_up()
        await data.web_log.add(make_web_log())
        await set_sql_version(engine, "v2-rc2")

        with pytest.raises(MigrationError) as exc_info:
            await HybridData(engine, settings).start_up()
        assert exc_info.value.version == "v2"
        assert await sql_version(engine) == "v2"
        assert "weblog-data backup https://one.example.com wl1.json" in caplog.text

    async def test_from_v2_1(self, engine, settings):
        await HybridData(engine, settings).start_up()
        await set_sql_version(engine, "v2.1")
        await HybridData(engine, settings).start_up()
        assert await sql_version(engine) == CURRENT_VERSION


@pytest.fixture(name="client")
def client_fixture():
    return mongo_client()


def document_data(client, settings):
    return DocumentData(client, settings, RetryPolicy(max_attempts=2, min_wait=0, max_wait=0))


async def snapshot(db):
    """Every document and index in the database, by collection."""
    contents = {}
    for name in sorted(await db.list_collection_names()):
        docs = await db[name].find({}).sort("_id", 1).to_list(length=None)
        contents[name] = (docs, await db[name].index_information())
    return contents


class TestDocumentMigrations:
    async def test_new_store_is_current(self, client, settings):
        await document_data(client, settings).start_up()
        db = client[settings.MONGODB_DATABASE]
        assert await db[DB_VERSION].find_one({}) == {"_id": CURRENT_VERSION}

    async def test_unversioned_store_is_migrated_from_v2_rc1(self, client, settings):
        db = client[settings.MONGODB_DATABASE]
        doc = to_doc(make_web_log())
        del doc["redirect_rules"]
        await db[WEB_LOG].insert_one(doc)

        data = document_data(client, settings)
        await data.start_up()
        assert await db[DB_VERSION].find_one({}) == {"_id": CURRENT_VERSION}
        assert (await db[WEB_LOG].find_one({"_id": "wl1"}))["redirect_rules"] == []
        assert await data.web_log.find_by_id("wl1") == make_web_log()

    async def test_from_v2_keeps_existing_rules(self, client, settings):
        data = document_data(client, settings)
        await data.start_up()
        await data.web_log.add(redirected_web_log())
        second = to_doc(make_web_log("wl2", "https://two.example.com"))
        del second["redirect_rules"]
        db = client[settings.MONGODB_DATABASE]
        await db[WEB_LOG].insert_one(second)
        await db[DB_VERSION].delete_many({})
        await db[DB_VERSION].insert_one({"_id": "v2"})

        await document_data(client, settings).start_up()
        assert (await data.web_log.find_by_id("wl1")).redirect_rules == redirected_web_log().redirect_rules
        assert (await data.web_log.find_by_id("wl2")).redirect_rules == []

    async def test_start_up_twice_changes_nothing(self, client, settings):
        data = document_data(client, settings)
        await data.start_up()
        await data.web_log.add(redirected_web_log())
        await data.web_log_user.add(make_user())
        await data.page.add(make_page())
        db = client[settings.MONGODB_DATABASE]
        before = await snapshot(db)

        await document_data(client, settings).start_up()
        assert await snapshot(db) == before
        assert await db[DB_VERSION].find_one({}) == {"_id": CURRENT_VERSION}
