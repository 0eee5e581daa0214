import pytest
from datetime import datetime, timedelta, timezone
from contextlib import contextmanager
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from weblog_data.core.config import Settings
from weblog_data.core.retry import RetryPolicy
from weblog_data.document.data import DocumentData
from weblog_data.hybrid.data import HybridData
from weblog_data.relational.data import RelationalData
from weblog_data.schemas.category import Category
from weblog_data.schemas.common import AccessLevel, PostStatus, Revision
from weblog_data.schemas.page import Page
from weblog_data.schemas.post import Post
from weblog_data.schemas.user import WebLogUser
from weblog_data.schemas.web_log import WebLog

BASE_TIME = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def at(hours: int = 0) -> datetime:
    return BASE_TIME + timedelta(hours=hours)


def memory_engine():
    return create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )


WRITE_STATEMENTS = ("INSERT", "UPDATE", "DELETE", "CREATE", "ALTER", "DROP")


@contextmanager
def recorded_writes(engine):
    """Collect the statements that change data or schema sent through an engine."""
    writes = []

    def record(conn, cursor, statement, parameters, context, executemany):
        if statement.split(None, 1)[0].upper() in WRITE_STATEMENTS:
            writes.append(statement)

    event.listen(engine.sync_engine, "before_cursor_execute", record)
    try:
        yield writes
    finally:
        event.remove(engine.sync_engine, "before_cursor_execute", record)


# Test settings; no .env file, no real waiting between retries
@pytest.fixture(name="settings")
def settings_fixture():
    return Settings(
        _env_file=None,
        RETRY_MAX_ATTEMPTS=3,
        RETRY_MIN_WAIT_SECONDS=0,
        RETRY_MAX_WAIT_SECONDS=0,
        RESTORE_BATCH_SIZE=2,
        UPLOAD_RESTORE_BATCH_SIZE=1,
        PAGES_PER_ADMIN_PAGE=2,
    )


def mongo_client():
    mongomock_motor = pytest.importorskip("mongomock_motor")
    return mongomock_motor.AsyncMongoMockClient()


def build_data(backend: str, settings: Settings):
    if backend == "relational":
        return RelationalData(memory_engine(), settings)
    if backend == "hybrid":
        return HybridData(memory_engine(), settings)
    return DocumentData(mongo_client(), settings, RetryPolicy(max_attempts=2, min_wait=0, max_wait=0))


@pytest.fixture(name="data", params=["relational", "hybrid", "document"])
async def data_fixture(request, settings: Settings):
    data = build_data(request.param, settings)
    await data.start_up()
    yield data
    if request.param != "document":
        await data.shut_down()


def make_web_log(web_log_id: str = "wl1", url_base: str = "https://one.example.com", **kwargs) -> WebLog:
    values = dict(id=web_log_id, name=f"Web Log {web_log_id}", slug=web_log_id, url_base=url_base)
    values.update(kwargs)
    return WebLog(**values)


def make_user(user_id: str = "u1", web_log_id: str = "wl1", **kwargs) -> WebLogUser:
    values = dict(
        id=user_id,
        web_log_id=web_log_id,
        email=f"{user_id}@example.com",
        first_name="Test",
        last_name="User",
        preferred_name=user_id.upper(),
        password_hash="hash",
        access_level=AccessLevel.author,
        created_on=BASE_TIME,
    )
    values.update(kwargs)
    return WebLogUser(**values)


def make_category(cat_id: str, name: str, parent_id=None, web_log_id: str = "wl1") -> Category:
    return Category(id=cat_id, web_log_id=web_log_id, name=name, slug=name.lower(), parent_id=parent_id)


def make_page(page_id: str = "p1", web_log_id: str = "wl1", **kwargs) -> Page:
    values = dict(
        id=page_id,
        web_log_id=web_log_id,
        author_id="u1",
        title=f"Page {page_id}",
        permalink=f"pages/{page_id}.html",
        published_on=BASE_TIME,
        updated_on=BASE_TIME,
        text="<p>Page text</p>",
        revisions=[Revision(as_of=BASE_TIME, text="HTML: <p>Page text</p>")],
    )
    values.update(kwargs)
    return Page(**values)


def make_post(post_id: str = "po1", web_log_id: str = "wl1", hours: int = 0, **kwargs) -> Post:
    values = dict(
        id=post_id,
        web_log_id=web_log_id,
        author_id="u1",
        status=PostStatus.published,
        title=f"Post {post_id}",
        permalink=f"{post_id}.html",
        published_on=at(hours),
        updated_on=at(hours),
        text="<p>Post text</p>",
        revisions=[Revision(as_of=at(hours), text="HTML: <p>Post text</p>")],
    )
    values.update(kwargs)
    return Post(**values)


@pytest.fixture(name="web_log")
async def web_log_fixture(data):
    web_log = make_web_log()
    await data.web_log.add(web_log)
    await data.web_log_user.add(make_user())
    return web_log
