# weblog_data/schemas/tag_map.py
from pydantic import BaseModel


class TagMap(BaseModel):
    """Maps a free-text tag to the URL-safe value used in its links."""

    id: str
    web_log_id: str
    tag: str
    url_value: str

    class Config:
        frozen = True
