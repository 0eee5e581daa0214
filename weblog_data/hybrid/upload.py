# weblog_data/hybrid/upload.py
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine

from weblog_data.core.errors import OpResult
from weblog_data.data.utils import chunked
from weblog_data.hybrid.helpers import writing
from weblog_data.hybrid.tables import upload
from weblog_data.schemas.common import format_instant, parse_instant
from weblog_data.schemas.upload import Upload


def to_values(up: Upload) -> dict:
    return {
        "id": up.id,
        "web_log_id": up.web_log_id,
        "path": up.path,
        "updated_on": format_instant(up.updated_on),
        "data": up.data,
    }


def to_upload(row, with_data: bool = True) -> Upload:
    return Upload(
        id=row.id,
        web_log_id=row.web_log_id,
        path=row.path,
        updated_on=parse_instant(row.updated_on),
        data=row.data if with_data else b"",
    )


class UploadData:
    """Uploaded files; these are plain rows, not documents."""

    def __init__(self, engine: AsyncEngine, batch_size: int = 5):
        self.engine = engine
        self.batch_size = batch_size

    async def add(self, up: Upload) -> None:
        async with writing(self.engine) as conn:
            await conn.execute(upload.insert().values(**to_values(up)))

    async def delete(self, upload_id: str, web_log_id: str) -> OpResult[str]:
        async with writing(self.engine) as conn:
            row = (await conn.execute(
                select(upload.c.path).where(upload.c.id == upload_id, upload.c.web_log_id == web_log_id)
            )).first()
            if row is None:
                return OpResult.failure(f"Upload ID {upload_id} not found")
            await conn.execute(upload.delete().where(upload.c.id == upload_id))
            return OpResult.success(row.path)

    async def find_by_path(self, path: str, web_log_id: str) -> Optional[Upload]:
        async with self.engine.connect() as conn:
            row = (await conn.execute(
                select(upload).where(upload.c.web_log_id == web_log_id, upload.c.path == path)
            )).first()
            return to_upload(row) if row else None

    async def find_by_web_log(self, web_log_id: str) -> List[Upload]:
        return await self._by_web_log(web_log_id, with_data=False)

    async def find_by_web_log_with_data(self, web_log_id: str) -> List[Upload]:
        return await self._by_web_log(web_log_id, with_data=True)

    async def _by_web_log(self, web_log_id: str, with_data: bool) -> List[Upload]:
        async with self.engine.connect() as conn:
            rows = (await conn.execute(
                select(upload).where(upload.c.web_log_id == web_log_id).order_by(upload.c.path)
            )).all()
            return [to_upload(row, with_data) for row in rows]

    async def restore(self, uploads: List[Upload]) -> None:
        for batch in chunked(uploads, self.batch_size):
            async with writing(self.engine) as conn:
                await conn.execute(upload.insert(), [to_values(up) for up in batch])
