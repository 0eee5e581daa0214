# weblog_data/schemas/post.py
from datetime import timedelta
from pydantic import BaseModel, Field, field_validator
from typing import List, Optional

from weblog_data.schemas.common import (
    ExplicitRating, Instant, MetaItem, PostStatus, Revision,
    canonical_metadata, canonical_revisions, sorted_unique
)


class Location(BaseModel):
    name: str
    geo: str
    osm: Optional[str] = None

    class Config:
        frozen = True


class Chapter(BaseModel):
    """A chapter marker within a podcast episode."""

    start_time: timedelta
    title: Optional[str] = None
    image_url: Optional[str] = None
    url: Optional[str] = None
    is_hidden: Optional[bool] = None
    end_time: Optional[timedelta] = None
    location: Optional[Location] = None

    class Config:
        frozen = True


class Episode(BaseModel):
    """Podcast episode details for a post."""

    media: str
    length: int
    duration: Optional[timedelta] = None
    media_type: Optional[str] = None
    image_url: Optional[str] = None
    subtitle: Optional[str] = None
    explicit: Optional[ExplicitRating] = None
    chapters: Optional[List[Chapter]] = None
    chapter_file: Optional[str] = None
    chapter_type: Optional[str] = None
    transcript_url: Optional[str] = None
    transcript_type: Optional[str] = None
    transcript_lang: Optional[str] = None
    transcript_captions: Optional[bool] = None
    season_number: Optional[int] = None
    season_description: Optional[str] = None
    episode_number: Optional[float] = None
    episode_description: Optional[str] = None

    class Config:
        frozen = True


class Post(BaseModel):
    id: str
    web_log_id: str
    author_id: str
    status: PostStatus = PostStatus.draft
    title: str
    permalink: str
    published_on: Optional[Instant] = None
    updated_on: Instant
    template: Optional[str] = None
    text: str = ""
    category_ids: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    episode: Optional[Episode] = None
    metadata: List[MetaItem] = Field(default_factory=list)
    prior_permalinks: List[str] = Field(default_factory=list)
    revisions: List[Revision] = Field(default_factory=list)

    class Config:
        frozen = True

    @field_validator("category_ids", "tags", "prior_permalinks")
    @classmethod
    def order_values(cls, v: List[str]) -> List[str]:
        return sorted_unique(v)

    @field_validator("metadata")
    @classmethod
    def order_metadata(cls, v: List[MetaItem]) -> List[MetaItem]:
        return canonical_metadata(v)

    @field_validator("revisions")
    @classmethod
    def order_revisions(cls, v: List[Revision]) -> List[Revision]:
        return canonical_revisions(v)
