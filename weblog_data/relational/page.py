# weblog_data/relational/page.py
import logging
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlmodel import delete, select
from sqlmodel.ext.asyncio.session import AsyncSession

from weblog_data.data.differ import diff_permalinks, diff_revisions
from weblog_data.data.utils import chunked, page_bounds
from weblog_data.relational.helpers import check_permalinks, open_session
from weblog_data.relational.models import PagePermalinkRow, PageRevisionRow, PageRow
from weblog_data.schemas.common import MetaItem, Revision
from weblog_data.schemas.page import Page

logger = logging.getLogger(__name__)


def to_row(page: Page) -> PageRow:
    return PageRow(
        id=page.id,
        web_log_id=page.web_log_id,
        author_id=page.author_id,
        title=page.title,
        permalink=page.permalink,
        published_on=page.published_on,
        updated_on=page.updated_on,
        is_in_page_list=page.is_in_page_list,
        template=page.template,
        page_text=page.text,
        meta_items=[item.model_dump() for item in page.metadata],
    )


def to_page(
    row: PageRow,
    prior_permalinks: Optional[List[str]] = None,
    revisions: Optional[List[Revision]] = None,
) -> Page:
    return Page(
        id=row.id,
        web_log_id=row.web_log_id,
        author_id=row.author_id,
        title=row.title,
        permalink=row.permalink,
        published_on=row.published_on,
        updated_on=row.updated_on,
        is_in_page_list=row.is_in_page_list,
        template=row.template,
        text=row.page_text,
        metadata=[MetaItem(**item) for item in row.meta_items or []],
        prior_permalinks=prior_permalinks or [],
        revisions=revisions or [],
    )


def without_text(page: Page) -> Page:
    return page.model_copy(update={"text": ""})


def listed(page: Page) -> Page:
    """The page list shape: no text, no metadata."""
    return page.model_copy(update={"text": "", "metadata": []})


class PageData:
    """Pages, their prior permalinks and revisions in the relational store."""

    def __init__(self, engine: AsyncEngine, batch_size: int = 100, page_list_size: int = 25):
        self.engine = engine
        self.batch_size = batch_size
        self.page_list_size = page_list_size

    async def _permalinks(self, db: AsyncSession, page_id: str) -> List[str]:
        return list((await db.exec(
            select(PagePermalinkRow.permalink).where(PagePermalinkRow.page_id == page_id)
        )).all())

    async def _revisions(self, db: AsyncSession, page_id: str) -> List[Revision]:
        rows = (await db.exec(
            select(PageRevisionRow).where(PageRevisionRow.page_id == page_id).order_by(PageRevisionRow.as_of.desc())
        )).all()
        return [Revision(as_of=row.as_of, text=row.revision_text) for row in rows]

    def _add_children(self, db: AsyncSession, page_id: str, permalinks: List[str], revisions: List[Revision]) -> None:
        db.add_all([PagePermalinkRow(page_id=page_id, permalink=link) for link in permalinks])
        db.add_all([
            PageRevisionRow(page_id=page_id, as_of=rev.as_of, revision_text=rev.text) for rev in revisions
        ])

    async def _sync_permalinks(self, db: AsyncSession, page_id: str, permalinks: List[str]) -> None:
        diff = diff_permalinks(await self._permalinks(db, page_id), permalinks)
        if diff.is_empty:
            return
        if diff.to_delete:
            await db.exec(delete(PagePermalinkRow).where(
                PagePermalinkRow.page_id == page_id, PagePermalinkRow.permalink.in_(diff.to_delete)
            ))
        db.add_all([PagePermalinkRow(page_id=page_id, permalink=link) for link in diff.to_add])
        await db.commit()

    async def _sync_revisions(self, db: AsyncSession, page_id: str, revisions: List[Revision]) -> None:
        diff = diff_revisions(await self._revisions(db, page_id), revisions)
        if diff.is_empty:
            return
        for rev in diff.to_delete:
            await db.exec(delete(PageRevisionRow).where(
                PageRevisionRow.page_id == page_id,
                PageRevisionRow.as_of == rev.as_of,
                PageRevisionRow.revision_text == rev.text,
            ))
        db.add_all([
            PageRevisionRow(page_id=page_id, as_of=rev.as_of, revision_text=rev.text) for rev in diff.to_add
        ])
        await db.commit()

    async def _get(self, db: AsyncSession, page_id: str, web_log_id: str) -> Optional[PageRow]:
        row = await db.get(PageRow, page_id)
        if row is None or row.web_log_id != web_log_id:
            return None
        return row

    async def add(self, page: Page) -> None:
        async with open_session(self.engine) as db:
            await check_permalinks(db, page.web_log_id, page.id, page.permalink, page.prior_permalinks)
            db.add(to_row(page))
            self._add_children(db, page.id, page.prior_permalinks, page.revisions)
            await db.commit()

    async def all(self, web_log_id: str) -> List[Page]:
        async with open_session(self.engine) as db:
            rows = (await db.exec(
                select(PageRow).where(PageRow.web_log_id == web_log_id).order_by(func.lower(PageRow.title))
            )).all()
            return [listed(to_page(row)) for row in rows]

    async def count_all(self, web_log_id: str) -> int:
        async with open_session(self.engine) as db:
            query = select(func.count()).select_from(PageRow).where(PageRow.web_log_id == web_log_id)
            return (await db.exec(query)).one()

    async def count_listed(self, web_log_id: str) -> int:
        async with open_session(self.engine) as db:
            query = select(func.count()).select_from(PageRow).where(
                PageRow.web_log_id == web_log_id, PageRow.is_in_page_list == True  # noqa: E712
            )
            return (await db.exec(query)).one()

    async def delete(self, page_id: str, web_log_id: str) -> bool:
        async with open_session(self.engine) as db:
            row = await self._get(db, page_id, web_log_id)
            if row is None:
                return False
            await db.exec(delete(PageRevisionRow).where(PageRevisionRow.page_id == page_id))
            await db.exec(delete(PagePermalinkRow).where(PagePermalinkRow.page_id == page_id))
            await db.delete(row)
            await db.commit()
            return True

    async def find_by_id(self, page_id: str, web_log_id: str) -> Optional[Page]:
        async with open_session(self.engine) as db:
            row = await self._get(db, page_id, web_log_id)
            return to_page(row) if row else None

    async def find_by_permalink(self, permalink: str, web_log_id: str) -> Optional[Page]:
        async with open_session(self.engine) as db:
            row = (await db.exec(
                select(PageRow).where(PageRow.web_log_id == web_log_id, PageRow.permalink == permalink)
            )).first()
            return to_page(row) if row else None

    async def find_current_permalink(self, permalinks: List[str], web_log_id: str) -> Optional[str]:
        if not permalinks:
            return None
        async with open_session(self.engine) as db:
            return (await db.exec(
                select(PageRow.permalink)
                .join(PagePermalinkRow, PagePermalinkRow.page_id == PageRow.id)
                .where(PageRow.web_log_id == web_log_id, PagePermalinkRow.permalink.in_(permalinks))
            )).first()

    async def find_full_by_id(self, page_id: str, web_log_id: str) -> Optional[Page]:
        async with open_session(self.engine) as db:
            row = await self._get(db, page_id, web_log_id)
            if row is None:
                return None
            return to_page(row, await self._permalinks(db, page_id), await self._revisions(db, page_id))

    async def find_full_by_web_log(self, web_log_id: str) -> List[Page]:
        async with open_session(self.engine) as db:
            rows = (await db.exec(
                select(PageRow).where(PageRow.web_log_id == web_log_id).order_by(func.lower(PageRow.title))
            )).all()
            return [
                to_page(row, await self._permalinks(db, row.id), await self._revisions(db, row.id))
                for row in rows
            ]

    async def find_listed(self, web_log_id: str) -> List[Page]:
        async with open_session(self.engine) as db:
            rows = (await db.exec(
                select(PageRow)
                .where(PageRow.web_log_id == web_log_id, PageRow.is_in_page_list == True)  # noqa: E712
                .order_by(func.lower(PageRow.title))
            )).all()
            return [without_text(to_page(row)) for row in rows]

    async def find_page_of_pages(
        self, web_log_id: str, page_nbr: int, page_size: Optional[int] = None
    ) -> List[Page]:
        offset, limit = page_bounds(page_nbr, page_size or self.page_list_size)
        async with open_session(self.engine) as db:
            rows = (await db.exec(
                select(PageRow)
                .where(PageRow.web_log_id == web_log_id)
                .order_by(func.lower(PageRow.title))
                .offset(offset)
                .limit(limit)
            )).all()
            return [to_page(row).model_copy(update={"metadata": []}) for row in rows]

    async def restore(self, pages: List[Page]) -> None:
        for batch in chunked(pages, self.batch_size):
            async with open_session(self.engine) as db:
                for page in batch:
                    db.add(to_row(page))
                    self._add_children(db, page.id, page.prior_permalinks, page.revisions)
                await db.commit()

    async def update(self, page: Page) -> bool:
        """Update a page; each child collection is written only when it changed."""
        async with open_session(self.engine) as db:
            row = await self._get(db, page.id, page.web_log_id)
            if row is None:
                return False
            await check_permalinks(db, page.web_log_id, page.id, page.permalink, page.prior_permalinks)
            updated = to_row(page)
            changed = False
            for field in PageRow.model_fields:
                value = getattr(updated, field)
                if getattr(row, field) != value:
                    setattr(row, field, value)
                    changed = True
            if changed:
                db.add(row)
                await db.commit()
            await self._sync_permalinks(db, page.id, page.prior_permalinks)
            await self._sync_revisions(db, page.id, page.revisions)
            return True

    async def update_prior_permalinks(self, page_id: str, web_log_id: str, permalinks: List[str]) -> bool:
        async with open_session(self.engine) as db:
            if await self._get(db, page_id, web_log_id) is None:
                return False
            await check_permalinks(db, web_log_id, page_id, None, permalinks)
            await self._sync_permalinks(db, page_id, permalinks)
            return True
