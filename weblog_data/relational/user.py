# weblog_data/relational/user.py
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlmodel import select

from weblog_data.core.errors import OpResult
from weblog_data.data.utils import chunked
from weblog_data.relational.helpers import open_session
from weblog_data.relational.models import PageRow, PostRow, WebLogUserRow
from weblog_data.schemas.common import AccessLevel, MetaItem, now
from weblog_data.schemas.user import WebLogUser


def to_row(user: WebLogUser) -> WebLogUserRow:
    values = user.model_dump()
    values["access_level"] = user.access_level.value
    return WebLogUserRow(**values)


def to_user(row: WebLogUserRow) -> WebLogUser:
    return WebLogUser(
        id=row.id,
        web_log_id=row.web_log_id,
        email=row.email,
        first_name=row.first_name,
        last_name=row.last_name,
        preferred_name=row.preferred_name,
        password_hash=row.password_hash,
        url=row.url,
        access_level=AccessLevel(row.access_level),
        created_on=row.created_on,
        last_seen_on=row.last_seen_on,
    )


class WebLogUserData:
    """Web log users in the relational store."""

    def __init__(self, engine: AsyncEngine, batch_size: int = 100):
        self.engine = engine
        self.batch_size = batch_size

    async def add(self, user: WebLogUser) -> None:
        async with open_session(self.engine) as db:
            db.add(to_row(user))
            await db.commit()

    async def delete(self, user_id: str, web_log_id: str) -> OpResult[bool]:
        """Delete a user, unless they are the author of any page or post."""
        async with open_session(self.engine) as db:
            row = await db.get(WebLogUserRow, user_id)
            if row is None or row.web_log_id != web_log_id:
                return OpResult.failure("User does not exist")
            pages = (await db.exec(
                select(func.count()).select_from(PageRow).where(PageRow.author_id == user_id)
            )).one()
            posts = (await db.exec(
                select(func.count()).select_from(PostRow).where(PostRow.author_id == user_id)
            )).one()
            if pages + posts > 0:
                return OpResult.failure("User has pages or posts; cannot delete")
            await db.delete(row)
            await db.commit()
            return OpResult.success(True)

    async def find_by_email(self, email: str, web_log_id: str) -> Optional[WebLogUser]:
        async with open_session(self.engine) as db:
            row = (await db.exec(
                select(WebLogUserRow).where(WebLogUserRow.web_log_id == web_log_id, WebLogUserRow.email == email)
            )).first()
            return to_user(row) if row else None

    async def find_by_id(self, user_id: str, web_log_id: str) -> Optional[WebLogUser]:
        async with open_session(self.engine) as db:
            row = await db.get(WebLogUserRow, user_id)
            if row is None or row.web_log_id != web_log_id:
                return None
            return to_user(row)

    async def find_by_web_log(self, web_log_id: str) -> List[WebLogUser]:
        async with open_session(self.engine) as db:
            rows = (await db.exec(
                select(WebLogUserRow)
                .where(WebLogUserRow.web_log_id == web_log_id)
                .order_by(func.lower(WebLogUserRow.preferred_name))
            )).all()
            return [to_user(row) for row in rows]

    async def find_names(self, web_log_id: str, user_ids: List[str]) -> List[MetaItem]:
        if not user_ids:
            return []
        async with open_session(self.engine) as db:
            rows = (await db.exec(
                select(WebLogUserRow)
                .where(WebLogUserRow.web_log_id == web_log_id, WebLogUserRow.id.in_(user_ids))
                .order_by(WebLogUserRow.id)
            )).all()
            return [MetaItem(name=row.id, value=to_user(row).display_name) for row in rows]

    async def restore(self, users: List[WebLogUser]) -> None:
        for batch in chunked(users, self.batch_size):
            async with open_session(self.engine) as db:
                db.add_all([to_row(user) for user in batch])
                await db.commit()

    async def set_last_seen(self, user_id: str, web_log_id: str) -> bool:
        async with open_session(self.engine) as db:
            row = await db.get(WebLogUserRow, user_id)
            if row is None or row.web_log_id != web_log_id:
                return False
            row.last_seen_on = now()
            db.add(row)
            await db.commit()
            return True

    async def update(self, user: WebLogUser) -> bool:
        async with open_session(self.engine) as db:
            row = await db.get(WebLogUserRow, user.id)
            if row is None or row.web_log_id != user.web_log_id:
                return False
            for field, value in to_row(user).model_dump().items():
                setattr(row, field, value)
            db.add(row)
            await db.commit()
            return True
