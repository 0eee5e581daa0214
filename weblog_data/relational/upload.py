# weblog_data/relational/upload.py
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncEngine
from sqlmodel import select

from weblog_data.core.errors import OpResult
from weblog_data.data.utils import chunked
from weblog_data.relational.helpers import open_session
from weblog_data.relational.models import UploadRow
from weblog_data.schemas.upload import Upload


def to_upload(row: UploadRow, with_data: bool = True) -> Upload:
    return Upload(
        id=row.id,
        web_log_id=row.web_log_id,
        path=row.path,
        updated_on=row.updated_on,
        data=row.data if with_data else b"",
    )


class UploadData:
    """Uploaded files stored in the relational database."""

    def __init__(self, engine: AsyncEngine, batch_size: int = 5):
        self.engine = engine
        self.batch_size = batch_size

    async def add(self, upload: Upload) -> None:
        async with open_session(self.engine) as db:
            db.add(UploadRow(**upload.model_dump()))
            await db.commit()

    async def delete(self, upload_id: str, web_log_id: str) -> OpResult[str]:
        async with open_session(self.engine) as db:
            row = await db.get(UploadRow, upload_id)
            if row is None or row.web_log_id != web_log_id:
                return OpResult.failure(f"Upload ID {upload_id} not found")
            path = row.path
            await db.delete(row)
            await db.commit()
            return OpResult.success(path)

    async def find_by_path(self, path: str, web_log_id: str) -> Optional[Upload]:
        async with open_session(self.engine) as db:
            row = (await db.exec(
                select(UploadRow).where(UploadRow.web_log_id == web_log_id, UploadRow.path == path)
            )).first()
            return to_upload(row) if row else None

    async def find_by_web_log(self, web_log_id: str) -> List[Upload]:
        return await self._by_web_log(web_log_id, with_data=False)

    async def find_by_web_log_with_data(self, web_log_id: str) -> List[Upload]:
        return await self._by_web_log(web_log_id, with_data=True)

    async def _by_web_log(self, web_log_id: str, with_data: bool) -> List[Upload]:
        async with open_session(self.engine) as db:
            rows = (await db.exec(
                select(UploadRow).where(UploadRow.web_log_id == web_log_id).order_by(UploadRow.path)
            )).all()
            return [to_upload(row, with_data) for row in rows]

    async def restore(self, uploads: List[Upload]) -> None:
        for batch in chunked(uploads, self.batch_size):
            async with open_session(self.engine) as db:
                db.add_all([UploadRow(**upload.model_dump()) for upload in batch])
                await db.commit()
