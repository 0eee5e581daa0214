# weblog_data/schemas/page.py
from pydantic import BaseModel, Field, field_validator
from typing import List, Optional

from weblog_data.schemas.common import (
    Instant, MetaItem, Revision, canonical_metadata, canonical_revisions, sorted_unique
)


class Page(BaseModel):
    id: str
    web_log_id: str
    author_id: str
    title: str
    permalink: str
    published_on: Instant
    updated_on: Instant
    is_in_page_list: bool = False
    template: Optional[str] = None
    text: str = ""
    metadata: List[MetaItem] = Field(default_factory=list)
    prior_permalinks: List[str] = Field(default_factory=list)
    revisions: List[Revision] = Field(default_factory=list)

    class Config:
        frozen = True

    @field_validator("metadata")
    @classmethod
    def order_metadata(cls, v: List[MetaItem]) -> List[MetaItem]:
        return canonical_metadata(v)

    @field_validator("prior_permalinks")
    @classmethod
    def order_permalinks(cls, v: List[str]) -> List[str]:
        return sorted_unique(v)

    @field_validator("revisions")
    @classmethod
    def order_revisions(cls, v: List[Revision]) -> List[Revision]:
        return canonical_revisions(v)
