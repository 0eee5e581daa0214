# weblog_data/relational/models.py
"""
Normalized tables for the relational adapter.

Child collections that change independently of their parent (prior
permalinks, revisions, tags, categories, templates, custom feeds) live in
their own tables; metadata, podcast episodes and redirect rules are stored as
JSON columns on the parent row.
"""
from sqlmodel import SQLModel, Field, Column, Text
from sqlalchemy import JSON, Index, LargeBinary, UniqueConstraint
from typing import Optional, List, Dict, Any
from datetime import datetime

from weblog_data.relational.types import Instant


class WebLogRow(SQLModel, table=True):
    __tablename__ = "web_log"

    id: str = Field(primary_key=True)
    name: str
    slug: str
    subtitle: Optional[str] = None
    default_page: str
    posts_per_page: int
    theme_id: str = Field(index=True)
    url_base: str = Field(unique=True)
    time_zone: str
    auto_htmx: bool = False
    uploads: str
    is_feed_enabled: bool = True
    feed_name: str
    items_in_feed: Optional[int] = None
    is_category_enabled: bool = True
    is_tag_enabled: bool = True
    copyright: Optional[str] = None
    redirect_rules: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON))


class WebLogFeedRow(SQLModel, table=True):
    __tablename__ = "web_log_feed"

    id: str = Field(primary_key=True)
    web_log_id: str = Field(foreign_key="web_log.id", index=True)
    source: str
    path: str
    podcast: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON))


class WebLogUserRow(SQLModel, table=True):
    __tablename__ = "web_log_user"
    __table_args__ = (UniqueConstraint("web_log_id", "email", name="uq_web_log_user_email"),)

    id: str = Field(primary_key=True)
    web_log_id: str = Field(foreign_key="web_log.id", index=True)
    email: str
    first_name: str
    last_name: str
    preferred_name: str
    password_hash: str
    url: Optional[str] = None
    access_level: str
    created_on: datetime = Field(sa_type=Instant)
    last_seen_on: Optional[datetime] = Field(default=None, sa_type=Instant)


class CategoryRow(SQLModel, table=True):
    __tablename__ = "category"

    id: str = Field(primary_key=True)
    web_log_id: str = Field(foreign_key="web_log.id", index=True)
    name: str
    slug: str
    description: Optional[str] = None
    parent_id: Optional[str] = Field(default=None, index=True)


class PageRow(SQLModel, table=True):
    __tablename__ = "page"
    __table_args__ = (Index("idx_page_permalink", "web_log_id", "permalink"),)

    id: str = Field(primary_key=True)
    web_log_id: str = Field(foreign_key="web_log.id", index=True)
    author_id: str = Field(foreign_key="web_log_user.id", index=True)
    title: str
    permalink: str
    published_on: datetime = Field(sa_type=Instant)
    updated_on: datetime = Field(sa_type=Instant)
    is_in_page_list: bool = False
    template: Optional[str] = None
    page_text: str = Field(sa_column=Column(Text, nullable=False))
    meta_items: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON))


class PagePermalinkRow(SQLModel, table=True):
    __tablename__ = "page_permalink"

    page_id: str = Field(foreign_key="page.id", primary_key=True)
    permalink: str = Field(primary_key=True, index=True)


class PageRevisionRow(SQLModel, table=True):
    __tablename__ = "page_revision"

    id: Optional[int] = Field(default=None, primary_key=True)
    page_id: str = Field(foreign_key="page.id", index=True)
    as_of: datetime = Field(sa_type=Instant)
    revision_text: str = Field(sa_column=Column(Text, nullable=False))


class PostRow(SQLModel, table=True):
    __tablename__ = "post"
    __table_args__ = (
        Index("idx_post_permalink", "web_log_id", "permalink"),
        Index("idx_post_status", "web_log_id", "status", "updated_on"),
    )

    id: str = Field(primary_key=True)
    web_log_id: str = Field(foreign_key="web_log.id", index=True)
    author_id: str = Field(foreign_key="web_log_user.id", index=True)
    status: str
    title: str
    permalink: str
    published_on: Optional[datetime] = Field(default=None, sa_type=Instant)
    updated_on: datetime = Field(sa_type=Instant)
    template: Optional[str] = None
    post_text: str = Field(sa_column=Column(Text, nullable=False))
    episode: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON))
    meta_items: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON))


class PostCategoryRow(SQLModel, table=True):
    __tablename__ = "post_category"

    post_id: str = Field(foreign_key="post.id", primary_key=True)
    category_id: str = Field(foreign_key="category.id", primary_key=True, index=True)


class PostTagRow(SQLModel, table=True):
    __tablename__ = "post_tag"

    post_id: str = Field(foreign_key="post.id", primary_key=True)
    tag: str = Field(primary_key=True, index=True)


class PostPermalinkRow(SQLModel, table=True):
    __tablename__ = "post_permalink"

    post_id: str = Field(foreign_key="post.id", primary_key=True)
    permalink: str = Field(primary_key=True, index=True)


class PostRevisionRow(SQLModel, table=True):
    __tablename__ = "post_revision"

    id: Optional[int] = Field(default=None, primary_key=True)
    post_id: str = Field(foreign_key="post.id", index=True)
    as_of: datetime = Field(sa_type=Instant)
    revision_text: str = Field(sa_column=Column(Text, nullable=False))


class TagMapRow(SQLModel, table=True):
    __tablename__ = "tag_map"
    __table_args__ = (
        UniqueConstraint("web_log_id", "tag", name="uq_tag_map_tag"),
        UniqueConstraint("web_log_id", "url_value", name="uq_tag_map_url_value"),
    )

    id: str = Field(primary_key=True)
    web_log_id: str = Field(foreign_key="web_log.id", index=True)
    tag: str
    url_value: str


class ThemeRow(SQLModel, table=True):
    __tablename__ = "theme"

    id: str = Field(primary_key=True)
    name: str
    version: str


class ThemeTemplateRow(SQLModel, table=True):
    __tablename__ = "theme_template"

    theme_id: str = Field(foreign_key="theme.id", primary_key=True)
    name: str = Field(primary_key=True)
    template: str = Field(sa_column=Column(Text, nullable=False))


class ThemeAssetRow(SQLModel, table=True):
    __tablename__ = "theme_asset"

    theme_id: str = Field(primary_key=True)
    path: str = Field(primary_key=True)
    updated_on: datetime = Field(sa_type=Instant)
    data: bytes = Field(sa_column=Column(LargeBinary, nullable=False))


class UploadRow(SQLModel, table=True):
    __tablename__ = "upload"
    __table_args__ = (Index("idx_upload_path", "web_log_id", "path"),)

    id: str = Field(primary_key=True)
    web_log_id: str = Field(foreign_key="web_log.id", index=True)
    path: str
    updated_on: datetime = Field(sa_type=Instant)
    data: bytes = Field(sa_column=Column(LargeBinary, nullable=False))


class DbVersionRow(SQLModel, table=True):
    __tablename__ = "db_version"

    id: str = Field(primary_key=True)


# In creation order; parents before the tables that reference them
TABLES = [
    row.__table__ for row in (
        WebLogRow, WebLogFeedRow, WebLogUserRow, CategoryRow,
        PageRow, PagePermalinkRow, PageRevisionRow,
        PostRow, PostCategoryRow, PostTagRow, PostPermalinkRow, PostRevisionRow,
        TagMapRow, ThemeRow, ThemeTemplateRow, ThemeAssetRow, UploadRow, DbVersionRow,
    )
]
