# weblog_data/relational/helpers.py
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from weblog_data.core.errors import ConstraintViolationError
from weblog_data.data.utils import permalink_in_use
from weblog_data.relational.models import PagePermalinkRow, PageRow, PostPermalinkRow, PostRow

logger = logging.getLogger(__name__)


@asynccontextmanager
async def open_session(engine: AsyncEngine) -> AsyncIterator[AsyncSession]:
    """A session for one operation; integrity failures surface as ConstraintViolationError."""
    async with AsyncSession(engine, expire_on_commit=False) as db:
        try:
            yield db
        except IntegrityError as e:
            await db.rollback()
            raise ConstraintViolationError(str(e.orig)) from e


async def check_permalinks(
    db: AsyncSession,
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
    if permalink is not None:
        queries += [
            select(PageRow.id).where(
                PageRow.web_log_id == web_log_id, PageRow.permalink == permalink, PageRow.id != entity_id
            ),
            select(PostRow.id).where(
                PostRow.web_log_id == web_log_id, PostRow.permalink == permalink, PostRow.id != entity_id
            ),
            select(PagePermalinkRow.page_id)
            .join(PageRow, PageRow.id == PagePermalinkRow.page_id)
            .where(
                PageRow.web_log_id == web_log_id,
                PagePermalinkRow.permalink == permalink,
                PagePermalinkRow.page_id != entity_id,
            ),
            select(PostPermalinkRow.post_id)
            .join(PostRow, PostRow.id == PostPermalinkRow.post_id)
            .where(
                PostRow.web_log_id == web_log_id,
                PostPermalinkRow.permalink == permalink,
                PostPermalinkRow.post_id != entity_id,
            ),
        ]
    if prior_permalinks:
        queries += [
            select(PageRow.permalink).where(
                PageRow.web_log_id == web_log_id,
                PageRow.permalink.in_(prior_permalinks),
                PageRow.id != entity_id,
            ),
            select(PostRow.permalink).where(
                PostRow.web_log_id == web_log_id,
                PostRow.permalink.in_(prior_permalinks),
                PostRow.id != entity_id,
            ),
        ]
    for query in queries:
        if (await db.exec(query)).first() is not None:
            link = permalink if permalink is not None else ", ".join(prior_permalinks)
            logger.debug(f"Permalink collision for {entity_id}: {link}")
            raise ConstraintViolationError(permalink_in_use(link, web_log_id))
