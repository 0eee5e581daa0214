# weblog_data/document/upload.py
from typing import Any, Dict, List, Optional

from weblog_data.core.errors import OpResult
from weblog_data.data.utils import chunked
from weblog_data.document.helpers import UPLOAD, DocumentFamily, find_all, retried
from weblog_data.schemas.common import format_instant
from weblog_data.schemas.upload import Upload


def upload_doc(upload: Upload) -> Dict[str, Any]:
    return {
        "_id": upload.id,
        "web_log_id": upload.web_log_id,
        "path": upload.path,
        "updated_on": format_instant(upload.updated_on),
        "data": upload.data,
    }


def to_upload(doc: Dict[str, Any]) -> Upload:
    return Upload(
        id=doc["_id"],
        web_log_id=doc["web_log_id"],
        path=doc["path"],
        updated_on=doc["updated_on"],
        data=bytes(doc.get("data", b"")),
    )


class UploadData(DocumentFamily):
    """Uploaded files in the document store."""

    @retried
    async def add(self, upload: Upload) -> None:
        await self.collection(UPLOAD).insert_one(upload_doc(upload))

    @retried
    async def delete(self, upload_id: str, web_log_id: str) -> OpResult[str]:
        doc = await self.collection(UPLOAD).find_one({"_id": upload_id, "web_log_id": web_log_id}, {"path": 1})
        if doc is None:
            return OpResult.failure(f"Upload ID {upload_id} not found")
        await self.collection(UPLOAD).delete_one({"_id": upload_id})
        return OpResult.success(doc["path"])

    @retried
    async def find_by_path(self, path: str, web_log_id: str) -> Optional[Upload]:
        doc = await self.collection(UPLOAD).find_one({"web_log_id": web_log_id, "path": path})
        return to_upload(doc) if doc else None

    @retried
    async def find_by_web_log(self, web_log_id: str) -> List[Upload]:
        docs = await find_all(
            self.collection(UPLOAD), {"web_log_id": web_log_id}, projection={"data": 0}, sort=[("path", 1)]
        )
        return [to_upload(doc) for doc in docs]

    @retried
    async def find_by_web_log_with_data(self, web_log_id: str) -> List[Upload]:
        docs = await find_all(self.collection(UPLOAD), {"web_log_id": web_log_id}, sort=[("path", 1)])
        return [to_upload(doc) for doc in docs]

    async def restore(self, uploads: List[Upload]) -> None:
        for batch in chunked(uploads, self.batch_size):
            await self._insert(batch)

    @retried
    async def _insert(self, batch: List[Upload]) -> None:
        await self.collection(UPLOAD).insert_many([upload_doc(upload) for upload in batch])
