# weblog_data/schemas/user.py
from pydantic import BaseModel
from typing import Optional

from weblog_data.schemas.common import AccessLevel, Instant


class WebLogUser(BaseModel):
    id: str
    web_log_id: str
    email: str
    first_name: str
    last_name: str
    preferred_name: str = ""
    password_hash: str
    url: Optional[str] = None
    access_level: AccessLevel = AccessLevel.author
    created_on: Instant
    last_seen_on: Optional[Instant] = None

    class Config:
        frozen = True

    @property
    def display_name(self) -> str:
        first = self.preferred_name or self.first_name
        return f"{first} {self.last_name}".strip()
