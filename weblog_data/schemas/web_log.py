# weblog_data/schemas/web_log.py
from pydantic import BaseModel, Field, field_validator
from typing import List, Optional

from weblog_data.schemas.common import ExplicitRating, PodcastMedium, UploadDestination


class PodcastOptions(BaseModel):
    """Podcast settings attached to a custom feed."""

    title: str
    subtitle: Optional[str] = None
    items_in_feed: int
    summary: str
    displayed_author: str
    email: str
    image_url: str
    apple_category: str
    apple_subcategory: Optional[str] = None
    explicit: ExplicitRating = ExplicitRating.no
    default_media_type: Optional[str] = None
    media_base_url: Optional[str] = None
    podcast_guid: Optional[str] = None
    funding_url: Optional[str] = None
    funding_text: Optional[str] = None
    medium: Optional[PodcastMedium] = None

    class Config:
        frozen = True


class CustomFeed(BaseModel):
    id: str
    # "category:<category id>" or "tag:<tag>"
    source: str
    path: str
    podcast: Optional[PodcastOptions] = None

    class Config:
        frozen = True

    @field_validator("source")
    @classmethod
    def check_source(cls, v: str) -> str:
        if not (v.startswith("category:") or v.startswith("tag:")):
            raise ValueError('feed source must be "category:<id>" or "tag:<tag>"')
        return v


class RssOptions(BaseModel):
    is_feed_enabled: bool = True
    feed_name: str = "feed.xml"
    items_in_feed: Optional[int] = None
    is_category_enabled: bool = True
    is_tag_enabled: bool = True
    copyright: Optional[str] = None
    custom_feeds: List[CustomFeed] = Field(default_factory=list)

    class Config:
        frozen = True

    @field_validator("custom_feeds")
    @classmethod
    def order_feeds(cls, v: List[CustomFeed]) -> List[CustomFeed]:
        return sorted(v, key=lambda feed: feed.id)


class RedirectRule(BaseModel):
    """Rules are evaluated in list order; the first match wins."""

    from_url: str
    to_url: str
    is_regex: bool = False

    class Config:
        frozen = True


class WebLog(BaseModel):
    id: str
    name: str
    slug: str
    subtitle: Optional[str] = None
    default_page: str = "posts"
    posts_per_page: int = 10
    theme_id: str = "default"
    url_base: str
    time_zone: str = "Etc/UTC"
    rss: RssOptions = Field(default_factory=RssOptions)
    auto_htmx: bool = False
    uploads: UploadDestination = UploadDestination.database
    redirect_rules: List[RedirectRule] = Field(default_factory=list)

    class Config:
        frozen = True
