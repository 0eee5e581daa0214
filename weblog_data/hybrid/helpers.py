# weblog_data/hybrid/helpers.py
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Iterable, List, Optional

from sqlalchemy import Table, exists, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from weblog_data.core.errors import ConstraintViolationError
from weblog_data.data.utils import permalink_in_use
from weblog_data.hybrid.tables import page, path, post

logger = logging.getLogger(__name__)


@asynccontextmanager
async def writing(engine: AsyncEngine) -> AsyncIterator[AsyncConnection]:
    """A connection in a transaction; integrity failures surface as ConstraintViolationError."""
    try:
        async with engine.begin() as conn:
            yield conn
    except IntegrityError as e:
        raise ConstraintViolationError(str(e.orig)) from e


def contains_any(table: Table, array: str, values: Iterable[str]):
    """Does the document's array field hold any of the values?"""
    elements = func.json_each(table.c.data, f"$.{array}").table_valued("value")
    return exists().select_from(elements).where(elements.c.value.in_(list(values)))


async def find_document(conn: AsyncConnection, table: Table, entity_id: str) -> Optional[Dict[str, Any]]:
    return (await conn.execute(select(table.c.data).where(table.c.id == entity_id))).scalar_one_or_none()


async def find_documents(conn: AsyncConnection, query) -> List[Dict[str, Any]]:
    return list((await conn.execute(query)).scalars().all())


async def in_web_log(
    conn: AsyncConnection, table: Table, entity_id: str, web_log_id: str
) -> Optional[Dict[str, Any]]:
    """Find a document by id, only if it belongs to the given web log."""
    doc = await find_document(conn, table, entity_id)
    if doc is None or doc.get("web_log_id") != web_log_id:
        return None
    return doc


async def save_document(conn: AsyncConnection, table: Table, entity_id: str, doc: Dict[str, Any]) -> bool:
    """Insert or replace a document; nothing is written when the stored one is identical."""
    current = await find_document(conn, table, entity_id)
    if current == doc:
        return False
    if current is None:
        await conn.execute(table.insert().values(id=entity_id, data=doc))
    else:
        await conn.execute(table.update().where(table.c.id == entity_id).values(data=doc))
    return True


async def check_permalinks(
    conn: AsyncConnection,
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
    queries = []
    for table in (page, post):
        others = [path(table, "web_log_id") == web_log_id, table.c.id != entity_id]
        if permalink is not None:
            queries.append(select(table.c.id).where(*others, path(table, "permalink") == permalink))
            queries.append(select(table.c.id).where(*others, contains_any(table, "prior_permalinks", [permalink])))
        if prior_permalinks:
            queries.append(select(table.c.id).where(*others, path(table, "permalink").in_(prior_permalinks)))
    for query in queries:
        if (await conn.execute(query.limit(1))).first() is not None:
            link = permalink if permalink is not None else ", ".join(prior_permalinks)
            logger.debug(f"Permalink collision for {entity_id}: {link}")
            raise ConstraintViolationError(permalink_in_use(link, web_log_id))
