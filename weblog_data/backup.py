# weblog_data/backup.py
"""
Whole-web-log backup and restore.

An archive is a single JSON file holding a web log and everything that belongs
to it; binary payloads (theme assets and uploads) are base64-encoded.
"""
import base64
import logging
from pathlib import Path
from typing import Iterable, List, Optional

from pydantic import BaseModel, Field

from weblog_data.data.interfaces import IData
from weblog_data.schemas.category import Category
from weblog_data.schemas.common import Instant
from weblog_data.schemas.page import Page
from weblog_data.schemas.post import Post
from weblog_data.schemas.tag_map import TagMap
from weblog_data.schemas.theme import Theme, ThemeAsset, ThemeAssetId
from weblog_data.schemas.upload import Upload
from weblog_data.schemas.user import WebLogUser
from weblog_data.schemas.web_log import WebLog

logger = logging.getLogger(__name__)


def encode(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


class EncodedAsset(BaseModel):
    id: ThemeAssetId
    updated_on: Instant
    data: str

    @classmethod
    def from_asset(cls, asset: ThemeAsset) -> "EncodedAsset":
        return cls(id=asset.id, updated_on=asset.updated_on, data=encode(asset.data))

    def to_asset(self) -> ThemeAsset:
        return ThemeAsset(id=self.id, updated_on=self.updated_on, data=base64.b64decode(self.data))


class EncodedUpload(BaseModel):
    id: str
    web_log_id: str
    path: str
    updated_on: Instant
    data: str

    @classmethod
    def from_upload(cls, upload: Upload) -> "EncodedUpload":
        return cls(
            id=upload.id,
            web_log_id=upload.web_log_id,
            path=upload.path,
            updated_on=upload.updated_on,
            data=encode(upload.data),
        )

    def to_upload(self) -> Upload:
        return Upload(
            id=self.id,
            web_log_id=self.web_log_id,
            path=self.path,
            updated_on=self.updated_on,
            data=base64.b64decode(self.data),
        )


class Archive(BaseModel):
    """A web log and all of its content, with full page and post histories."""

    web_log: WebLog
    users: List[WebLogUser] = Field(default_factory=list)
    theme: Optional[Theme] = None
    assets: List[EncodedAsset] = Field(default_factory=list)
    categories: List[Category] = Field(default_factory=list)
    tag_mappings: List[TagMap] = Field(default_factory=list)
    pages: List[Page] = Field(default_factory=list)
    posts: List[Post] = Field(default_factory=list)
    uploads: List[EncodedUpload] = Field(default_factory=list)


async def create_backup(data: IData, web_log_id: str) -> Optional[Archive]:
    web_log = await data.web_log.find_by_id(web_log_id)
    if web_log is None:
        return None

    logger.info(f"Backing up web log {web_log.name} ({web_log.url_base})")
    theme = await data.theme.find_by_id(web_log.theme_id)
    assets = await data.theme_asset.find_by_theme_with_data(web_log.theme_id) if theme else []
    archive = Archive(
        web_log=web_log,
        users=await data.web_log_user.find_by_web_log(web_log_id),
        theme=theme,
        assets=[EncodedAsset.from_asset(asset) for asset in assets],
        categories=await data.category.find_by_web_log(web_log_id),
        tag_mappings=await data.tag_map.find_by_web_log(web_log_id),
        pages=await data.page.find_full_by_web_log(web_log_id),
        posts=await data.post.find_full_by_web_log(web_log_id),
        uploads=[EncodedUpload.from_upload(up) for up in await data.upload.find_by_web_log_with_data(web_log_id)],
    )
    logger.info(
        f"Backed up {len(archive.users)} users, {len(archive.categories)} categories, "
        f"{len(archive.pages)} pages, {len(archive.posts)} posts and {len(archive.uploads)} uploads"
    )
    return archive


def write_archive(archive: Archive, path: Path) -> None:
    Path(path).write_text(archive.model_dump_json(indent=2), encoding="utf-8")


def read_archive(path: Path) -> Archive:
    return Archive.model_validate_json(Path(path).read_text(encoding="utf-8"))


async def restore_backup(data: IData, archive: Archive, new_url_base: Optional[str] = None) -> WebLog:
    """
    Restore a web log from an archive, replacing one with the same id if it exists.

    The archived theme is only loaded when no theme with its id is present.
    """
    web_log = archive.web_log
    if new_url_base:
        web_log = web_log.model_copy(update={"url_base": new_url_base})

    if await data.web_log.find_by_id(web_log.id) is not None:
        logger.warning(f"Deleting existing web log {web_log.id} before restoring it")
        await data.web_log.delete(web_log.id)

    if archive.theme and not await data.theme.exists(archive.theme.id):
        logger.info(f"Restoring theme {archive.theme.id}")
        await data.theme.save(archive.theme)
        for asset in archive.assets:
            await data.theme_asset.save(asset.to_asset())

    logger.info(f"Restoring web log {web_log.name} ({web_log.url_base})")
    await data.web_log.add(web_log)
    await data.web_log_user.restore(archive.users)
    await data.category.restore(archive.categories)
    await data.tag_map.restore(archive.tag_mappings)
    await data.page.restore(archive.pages)
    await data.post.restore(archive.posts)
    await data.upload.restore([up.to_upload() for up in archive.uploads])
    logger.info(f"Restored web log {web_log.id}")
    return web_log


async def import_prior_permalinks(data: IData, url_base: str, lines: Iterable[str]) -> int:
    """
    Record old permalinks for posts, from lines of "<old> <current>".

    Returns the number of posts updated; lines naming no current post are
    logged and skipped.
    """
    web_log = await data.web_log.find_by_host(url_base)
    if web_log is None:
        logger.error(f"No web log found at {url_base}")
        return 0

    updated = 0
    for line in lines:
        parts = line.split()
        if len(parts) < 2:
            continue
        old, current = parts[0], parts[1]
        post = await data.post.find_by_permalink(current, web_log.id)
        if post is None:
            logger.warning(f"Cannot find current post for {current}")
            continue
        full = await data.post.find_full_by_id(post.id, web_log.id)
        await data.post.update_prior_permalinks(post.id, web_log.id, [old, *full.prior_permalinks])
        logger.info(f"{old} -> {current}")
        updated += 1
    return updated
