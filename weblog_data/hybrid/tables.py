# weblog_data/hybrid/tables.py
"""
Tables for the hybrid adapter.

Each aggregate is one JSON document in a ``data`` column, keyed by id and
indexed on JSON path expressions. Revisions and binary payloads are kept in
ordinary columns beside the documents.
"""
from sqlalchemy import Column, Index, JSON, LargeBinary, MetaData, String, Table, Text

metadata = MetaData()


def document_table(name: str) -> Table:
    return Table(
        name, metadata,
        Column("id", String, primary_key=True),
        Column("data", JSON, nullable=False),
    )


def path(table: Table, name: str):
    """A scalar document field as text."""
    return table.c.data[name].as_string()


web_log = document_table("web_log")
web_log_user = document_table("web_log_user")
category = document_table("category")
page = document_table("page")
post = document_table("post")
tag_map = document_table("tag_map")
theme = document_table("theme")

page_revision = Table(
    "page_revision", metadata,
    Column("page_id", String, nullable=False, index=True),
    Column("as_of", String, nullable=False),
    Column("revision_text", Text, nullable=False),
)

post_revision = Table(
    "post_revision", metadata,
    Column("post_id", String, nullable=False, index=True),
    Column("as_of", String, nullable=False),
    Column("revision_text", Text, nullable=False),
)

theme_asset = Table(
    "theme_asset", metadata,
    Column("theme_id", String, primary_key=True),
    Column("path", String, primary_key=True),
    Column("updated_on", String, nullable=False),
    Column("data", LargeBinary, nullable=False),
)

upload = Table(
    "upload", metadata,
    Column("id", String, primary_key=True),
    Column("web_log_id", String, nullable=False),
    Column("path", String, nullable=False),
    Column("updated_on", String, nullable=False),
    Column("data", LargeBinary, nullable=False),
    Index("idx_upload_path", "web_log_id", "path"),
)

db_version = Table("db_version", metadata, Column("id", String, primary_key=True))

Index("idx_web_log_url_base", path(web_log, "url_base"), unique=True)
Index("idx_web_log_user_email", path(web_log_user, "web_log_id"), path(web_log_user, "email"), unique=True)
Index("idx_category_web_log", path(category, "web_log_id"))
Index("idx_page_author", path(page, "author_id"))
Index("idx_page_permalink", path(page, "web_log_id"), path(page, "permalink"))
Index("idx_post_author", path(post, "author_id"))
Index("idx_post_permalink", path(post, "web_log_id"), path(post, "permalink"))
Index("idx_post_status", path(post, "web_log_id"), path(post, "status"), path(post, "updated_on"))
Index("idx_tag_map_tag", path(tag_map, "web_log_id"), path(tag_map, "tag"), unique=True)
Index("idx_tag_map_url", path(tag_map, "web_log_id"), path(tag_map, "url_value"), unique=True)
