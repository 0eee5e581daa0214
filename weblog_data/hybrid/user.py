# weblog_data/hybrid/user.py
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncEngine

from weblog_data.core.errors import OpResult
from weblog_data.data.utils import chunked
from weblog_data.hybrid.helpers import find_documents, in_web_log, save_document, writing
from weblog_data.hybrid.tables import page, path, post, web_log_user
from weblog_data.schemas.common import MetaItem, format_instant, now
from weblog_data.schemas.user import WebLogUser


class WebLogUserData:
    """Web log users stored as JSON documents."""

    def __init__(self, engine: AsyncEngine, batch_size: int = 100):
        self.engine = engine
        self.batch_size = batch_size

    def _in_web_log(self, web_log_id: str):
        return select(web_log_user.c.data).where(path(web_log_user, "web_log_id") == web_log_id)

    async def add(self, user: WebLogUser) -> None:
        async with writing(self.engine) as conn:
            await conn.execute(web_log_user.insert().values(id=user.id, data=user.model_dump(mode="json")))

    async def delete(self, user_id: str, web_log_id: str) -> OpResult[bool]:
        async with writing(self.engine) as conn:
            if await in_web_log(conn, web_log_user, user_id, web_log_id) is None:
                return OpResult.failure("User does not exist")
            authored = 0
            for table in (page, post):
                authored += (await conn.execute(
                    select(func.count()).select_from(table).where(path(table, "author_id") == user_id)
                )).scalar_one()
            if authored > 0:
                return OpResult.failure("User has pages or posts; cannot delete")
            await conn.execute(web_log_user.delete().where(web_log_user.c.id == user_id))
            return OpResult.success(True)

    async def find_by_email(self, email: str, web_log_id: str) -> Optional[WebLogUser]:
        async with self.engine.connect() as conn:
            docs = await find_documents(
                conn, self._in_web_log(web_log_id).where(path(web_log_user, "email") == email).limit(1)
            )
            return WebLogUser.model_validate(docs[0]) if docs else None

    async def find_by_id(self, user_id: str, web_log_id: str) -> Optional[WebLogUser]:
        async with self.engine.connect() as conn:
            doc = await in_web_log(conn, web_log_user, user_id, web_log_id)
            return WebLogUser.model_validate(doc) if doc else None

    async def find_by_web_log(self, web_log_id: str) -> List[WebLogUser]:
        async with self.engine.connect() as conn:
            docs = await find_documents(
                conn, self._in_web_log(web_log_id).order_by(func.lower(path(web_log_user, "preferred_name")))
            )
            return [WebLogUser.model_validate(doc) for doc in docs]

    async def find_names(self, web_log_id: str, user_ids: List[str]) -> List[MetaItem]:
        if not user_ids:
            return []
        async with self.engine.connect() as conn:
            docs = await find_documents(
                conn,
                self._in_web_log(web_log_id).where(web_log_user.c.id.in_(user_ids)).order_by(web_log_user.c.id),
            )
            users = [WebLogUser.model_validate(doc) for doc in docs]
            return [MetaItem(name=user.id, value=user.display_name) for user in users]

    async def restore(self, users: List[WebLogUser]) -> None:
        for batch in chunked(users, self.batch_size):
            async with writing(self.engine) as conn:
                await conn.execute(web_log_user.insert(), [
                    {"id": user.id, "data": user.model_dump(mode="json")} for user in batch
                ])

    async def set_last_seen(self, user_id: str, web_log_id: str) -> bool:
        async with writing(self.engine) as conn:
            doc = await in_web_log(conn, web_log_user, user_id, web_log_id)
            if doc is None:
                return False
            await save_document(conn, web_log_user, user_id, {**doc, "last_seen_on": format_instant(now())})
            return True

    async def update(self, user: WebLogUser) -> bool:
        async with writing(self.engine) as conn:
            if await in_web_log(conn, web_log_user, user.id, user.web_log_id) is None:
                return False
            await save_document(conn, web_log_user, user.id, user.model_dump(mode="json"))
            return True
