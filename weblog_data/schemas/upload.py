# weblog_data/schemas/upload.py
from pydantic import BaseModel

from weblog_data.schemas.common import Instant


class Upload(BaseModel):
    """A file uploaded to a web log, addressed by its relative path."""

    id: str
    web_log_id: str
    path: str
    updated_on: Instant
    data: bytes = b""

    class Config:
        frozen = True
