# weblog_data/relational/web_log.py
import logging
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncEngine
from sqlmodel import delete, select
from sqlmodel.ext.asyncio.session import AsyncSession

from weblog_data.data.differ import diff_lists
from weblog_data.relational.helpers import open_session
from weblog_data.relational.models import (
    CategoryRow, PagePermalinkRow, PageRevisionRow, PageRow, PostCategoryRow, PostPermalinkRow,
    PostRevisionRow, PostRow, PostTagRow, TagMapRow, UploadRow, WebLogFeedRow, WebLogRow, WebLogUserRow
)
from weblog_data.schemas.common import UploadDestination
from weblog_data.schemas.web_log import CustomFeed, PodcastOptions, RedirectRule, RssOptions, WebLog

logger = logging.getLogger(__name__)


def to_row(web_log: WebLog) -> WebLogRow:
    return WebLogRow(
        id=web_log.id,
        name=web_log.name,
        slug=web_log.slug,
        subtitle=web_log.subtitle,
        default_page=web_log.default_page,
        posts_per_page=web_log.posts_per_page,
        theme_id=web_log.theme_id,
        url_base=web_log.url_base,
        time_zone=web_log.time_zone,
        auto_htmx=web_log.auto_htmx,
        uploads=web_log.uploads.value,
        is_feed_enabled=web_log.rss.is_feed_enabled,
        feed_name=web_log.rss.feed_name,
        items_in_feed=web_log.rss.items_in_feed,
        is_category_enabled=web_log.rss.is_category_enabled,
        is_tag_enabled=web_log.rss.is_tag_enabled,
        copyright=web_log.rss.copyright,
        redirect_rules=[rule.model_dump() for rule in web_log.redirect_rules],
    )


def feed_row(web_log_id: str, feed: CustomFeed) -> WebLogFeedRow:
    return WebLogFeedRow(
        id=feed.id,
        web_log_id=web_log_id,
        source=feed.source,
        path=feed.path,
        podcast=feed.podcast.model_dump(mode="json") if feed.podcast else None,
    )


def to_feed(row: WebLogFeedRow) -> CustomFeed:
    return CustomFeed(
        id=row.id,
        source=row.source,
        path=row.path,
        podcast=PodcastOptions.model_validate(row.podcast) if row.podcast else None,
    )


def to_web_log(row: WebLogRow, feeds: List[CustomFeed]) -> WebLog:
    return WebLog(
        id=row.id,
        name=row.name,
        slug=row.slug,
        subtitle=row.subtitle,
        default_page=row.default_page,
        posts_per_page=row.posts_per_page,
        theme_id=row.theme_id,
        url_base=row.url_base,
        time_zone=row.time_zone,
        rss=RssOptions(
            is_feed_enabled=row.is_feed_enabled,
            feed_name=row.feed_name,
            items_in_feed=row.items_in_feed,
            is_category_enabled=row.is_category_enabled,
            is_tag_enabled=row.is_tag_enabled,
            copyright=row.copyright,
            custom_feeds=feeds,
        ),
        auto_htmx=row.auto_htmx,
        uploads=UploadDestination(row.uploads),
        redirect_rules=[RedirectRule(**rule) for rule in row.redirect_rules or []],
    )


def feed_key(feed: CustomFeed) -> str:
    return feed.model_dump_json()


class WebLogData:
    """Web logs (and their custom feeds) in the relational store."""

    def __init__(self, engine: AsyncEngine):
        self.engine = engine

    async def _feeds(self, db: AsyncSession, web_log_id: str) -> List[CustomFeed]:
        rows = (await db.exec(select(WebLogFeedRow).where(WebLogFeedRow.web_log_id == web_log_id))).all()
        return [to_feed(row) for row in rows]

    async def add(self, web_log: WebLog) -> None:
        async with open_session(self.engine) as db:
            db.add(to_row(web_log))
            db.add_all([feed_row(web_log.id, feed) for feed in web_log.rss.custom_feeds])
            await db.commit()

    async def all(self) -> List[WebLog]:
        async with open_session(self.engine) as db:
            rows = (await db.exec(select(WebLogRow).order_by(WebLogRow.id))).all()
            return [to_web_log(row, await self._feeds(db, row.id)) for row in rows]

    async def delete(self, web_log_id: str) -> None:
        """Delete a web log and everything scoped to it, children before parents."""
        async with open_session(self.engine) as db:
            post_ids = select(PostRow.id).where(PostRow.web_log_id == web_log_id)
            for child in (PostCategoryRow, PostTagRow, PostPermalinkRow, PostRevisionRow):
                await db.exec(delete(child).where(child.post_id.in_(post_ids)))
            await db.exec(delete(PostRow).where(PostRow.web_log_id == web_log_id))

            page_ids = select(PageRow.id).where(PageRow.web_log_id == web_log_id)
            for child in (PagePermalinkRow, PageRevisionRow):
                await db.exec(delete(child).where(child.page_id.in_(page_ids)))
            await db.exec(delete(PageRow).where(PageRow.web_log_id == web_log_id))

            for table in (CategoryRow, TagMapRow, UploadRow, WebLogUserRow, WebLogFeedRow):
                await db.exec(delete(table).where(table.web_log_id == web_log_id))
            await db.exec(delete(WebLogRow).where(WebLogRow.id == web_log_id))
            await db.commit()
            logger.info(f"Deleted web log {web_log_id} and all of its content")

    async def find_by_host(self, url_base: str) -> Optional[WebLog]:
        async with open_session(self.engine) as db:
            row = (await db.exec(select(WebLogRow).where(WebLogRow.url_base == url_base))).first()
            return to_web_log(row, await self._feeds(db, row.id)) if row else None

    async def find_by_id(self, web_log_id: str) -> Optional[WebLog]:
        async with open_session(self.engine) as db:
            row = await db.get(WebLogRow, web_log_id)
            return to_web_log(row, await self._feeds(db, row.id)) if row else None

    async def update_redirect_rules(self, web_log: WebLog) -> bool:
        async with open_session(self.engine) as db:
            row = await db.get(WebLogRow, web_log.id)
            if row is None:
                return False
            row.redirect_rules = [rule.model_dump() for rule in web_log.redirect_rules]
            db.add(row)
            await db.commit()
            return True

    async def update_rss_options(self, web_log: WebLog) -> bool:
        """Update RSS options, writing only the custom feeds that changed."""
        async with open_session(self.engine) as db:
            row = await db.get(WebLogRow, web_log.id)
            if row is None:
                return False
            rss = web_log.rss
            row.is_feed_enabled = rss.is_feed_enabled
            row.feed_name = rss.feed_name
            row.items_in_feed = rss.items_in_feed
            row.is_category_enabled = rss.is_category_enabled
            row.is_tag_enabled = rss.is_tag_enabled
            row.copyright = rss.copyright
            db.add(row)
            await db.commit()

            diff = diff_lists(await self._feeds(db, web_log.id), rss.custom_feeds, feed_key)
            if not diff.is_empty:
                for feed in diff.to_delete:
                    await db.exec(delete(WebLogFeedRow).where(WebLogFeedRow.id == feed.id))
                await db.flush()
                db.add_all([feed_row(web_log.id, feed) for feed in diff.to_add])
                await db.commit()
            return True

    async def update_settings(self, web_log: WebLog) -> bool:
        async with open_session(self.engine) as db:
            row = await db.get(WebLogRow, web_log.id)
            if row is None:
                return False
            updated = to_row(web_log)
            for field in (
                "name", "slug", "subtitle", "default_page", "posts_per_page", "theme_id", "url_base",
                "time_zone", "auto_htmx", "uploads",
            ):
                setattr(row, field, getattr(updated, field))
            db.add(row)
            await db.commit()
            return True
