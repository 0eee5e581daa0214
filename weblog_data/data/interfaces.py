# weblog_data/data/interfaces.py
"""
The data access contract.

Every storage adapter satisfies these protocols with identical results. Any
operation taking a web log id returns "not found" (None, False or an empty
list) for entities that belong to another web log; id-targeted mutations that
fail that check are no-ops and never raise.

Paged finders take a 1-based page number and return up to ``page_size + 1``
items, so a caller can tell whether another page exists.
"""
from datetime import datetime
from typing import List, Optional, Protocol, Tuple, runtime_checkable

from weblog_data.core.errors import OpResult
from weblog_data.schemas.category import Category, DisplayCategory
from weblog_data.schemas.common import MetaItem, PostStatus
from weblog_data.schemas.page import Page
from weblog_data.schemas.post import Post
from weblog_data.schemas.tag_map import TagMap
from weblog_data.schemas.theme import Theme, ThemeAsset, ThemeAssetId
from weblog_data.schemas.upload import Upload
from weblog_data.schemas.user import WebLogUser
from weblog_data.schemas.web_log import WebLog


@runtime_checkable
class ICategoryData(Protocol):
    async def add(self, category: Category) -> None: ...
    async def count_all(self, web_log_id: str) -> int: ...
    async def count_top_level(self, web_log_id: str) -> int: ...

    async def delete(self, cat_id: str, web_log_id: str) -> bool:
        """Delete a category, moving its children to its parent and removing it from posts."""
        ...

    async def find_all_for_view(self, web_log_id: str) -> List[DisplayCategory]:
        """Categories in hierarchy order, with post counts including descendants."""
        ...

    async def find_by_id(self, cat_id: str, web_log_id: str) -> Optional[Category]: ...
    async def find_by_web_log(self, web_log_id: str) -> List[Category]: ...
    async def restore(self, categories: List[Category]) -> None: ...
    async def update(self, category: Category) -> bool: ...


@runtime_checkable
class IPageData(Protocol):
    async def add(self, page: Page) -> None: ...

    async def all(self, web_log_id: str) -> List[Page]:
        """All pages, without text, metadata, revisions or prior permalinks."""
        ...

    async def count_all(self, web_log_id: str) -> int: ...
    async def count_listed(self, web_log_id: str) -> int: ...
    async def delete(self, page_id: str, web_log_id: str) -> bool: ...

    async def find_by_id(self, page_id: str, web_log_id: str) -> Optional[Page]:
        """A page without revisions or prior permalinks."""
        ...

    async def find_by_permalink(self, permalink: str, web_log_id: str) -> Optional[Page]: ...

    async def find_current_permalink(self, permalinks: List[str], web_log_id: str) -> Optional[str]:
        """The current permalink of the page whose prior permalinks include any of those given."""
        ...

    async def find_full_by_id(self, page_id: str, web_log_id: str) -> Optional[Page]: ...
    async def find_full_by_web_log(self, web_log_id: str) -> List[Page]: ...

    async def find_listed(self, web_log_id: str) -> List[Page]:
        """Pages shown in the page list, without text, revisions or prior permalinks."""
        ...

    async def find_page_of_pages(
        self, web_log_id: str, page_nbr: int, page_size: Optional[int] = None
    ) -> List[Page]: ...

    async def restore(self, pages: List[Page]) -> None: ...
    async def update(self, page: Page) -> bool: ...
    async def update_prior_permalinks(self, page_id: str, web_log_id: str, permalinks: List[str]) -> bool: ...


@runtime_checkable
class IPostData(Protocol):
    async def add(self, post: Post) -> None: ...
    async def count_by_status(self, status: PostStatus, web_log_id: str) -> int: ...
    async def delete(self, post_id: str, web_log_id: str) -> bool: ...
    async def find_by_id(self, post_id: str, web_log_id: str) -> Optional[Post]: ...
    async def find_by_permalink(self, permalink: str, web_log_id: str) -> Optional[Post]: ...
    async def find_current_permalink(self, permalinks: List[str], web_log_id: str) -> Optional[str]: ...
    async def find_full_by_id(self, post_id: str, web_log_id: str) -> Optional[Post]: ...
    async def find_full_by_web_log(self, web_log_id: str) -> List[Post]: ...

    async def find_page_of_categorized_posts(
        self, web_log_id: str, category_ids: List[str], page_nbr: int, page_size: int
    ) -> List[Post]: ...

    async def find_page_of_posts(self, web_log_id: str, page_nbr: int, page_size: int) -> List[Post]:
        """Posts of any status without text; unpublished first, then newest."""
        ...

    async def find_page_of_published_posts(self, web_log_id: str, page_nbr: int, page_size: int) -> List[Post]: ...

    async def find_page_of_tagged_posts(
        self, web_log_id: str, tag: str, page_nbr: int, page_size: int
    ) -> List[Post]: ...

    async def find_surrounding_posts(
        self, web_log_id: str, published_on: datetime
    ) -> Tuple[Optional[Post], Optional[Post]]:
        """The published posts just older and just newer than the given date."""
        ...

    async def restore(self, posts: List[Post]) -> None: ...
    async def update(self, post: Post) -> bool: ...
    async def update_prior_permalinks(self, post_id: str, web_log_id: str, permalinks: List[str]) -> bool: ...


@runtime_checkable
class ITagMapData(Protocol):
    async def delete(self, tag_map_id: str, web_log_id: str) -> bool: ...
    async def find_by_id(self, tag_map_id: str, web_log_id: str) -> Optional[TagMap]: ...
    async def find_by_url_value(self, url_value: str, web_log_id: str) -> Optional[TagMap]: ...
    async def find_by_web_log(self, web_log_id: str) -> List[TagMap]: ...
    async def find_mapping_for_tags(self, tags: List[str], web_log_id: str) -> List[TagMap]: ...
    async def restore(self, tag_maps: List[TagMap]) -> None: ...
    async def save(self, tag_map: TagMap) -> None: ...


@runtime_checkable
class IThemeData(Protocol):
    async def all(self) -> List[Theme]:
        """All themes except the admin theme, with template text blanked."""
        ...

    async def delete(self, theme_id: str) -> bool:
        """Delete a theme and its assets."""
        ...

    async def exists(self, theme_id: str) -> bool: ...
    async def find_by_id(self, theme_id: str) -> Optional[Theme]: ...
    async def find_by_id_without_text(self, theme_id: str) -> Optional[Theme]: ...
    async def save(self, theme: Theme) -> None: ...


@runtime_checkable
class IThemeAssetData(Protocol):
    async def all(self) -> List[ThemeAsset]: ...
    async def delete_by_theme(self, theme_id: str) -> None: ...
    async def find_by_id(self, asset_id: ThemeAssetId) -> Optional[ThemeAsset]: ...
    async def find_by_theme(self, theme_id: str) -> List[ThemeAsset]: ...
    async def find_by_theme_with_data(self, theme_id: str) -> List[ThemeAsset]: ...
    async def save(self, asset: ThemeAsset) -> None: ...


@runtime_checkable
class IUploadData(Protocol):
    async def add(self, upload: Upload) -> None: ...

    async def delete(self, upload_id: str, web_log_id: str) -> OpResult[str]:
        """Delete an upload; the result carries its path, or why it could not be deleted."""
        ...

    async def find_by_path(self, path: str, web_log_id: str) -> Optional[Upload]: ...
    async def find_by_web_log(self, web_log_id: str) -> List[Upload]: ...
    async def find_by_web_log_with_data(self, web_log_id: str) -> List[Upload]: ...
    async def restore(self, uploads: List[Upload]) -> None: ...


@runtime_checkable
class IWebLogData(Protocol):
    async def add(self, web_log: WebLog) -> None: ...
    async def all(self) -> List[WebLog]: ...

    async def delete(self, web_log_id: str) -> None:
        """Delete a web log and everything that belongs to it."""
        ...

    async def find_by_host(self, url_base: str) -> Optional[WebLog]: ...
    async def find_by_id(self, web_log_id: str) -> Optional[WebLog]: ...
    async def update_redirect_rules(self, web_log: WebLog) -> bool: ...
    async def update_rss_options(self, web_log: WebLog) -> bool: ...
    async def update_settings(self, web_log: WebLog) -> bool: ...


@runtime_checkable
class IWebLogUserData(Protocol):
    async def add(self, user: WebLogUser) -> None: ...

    async def delete(self, user_id: str, web_log_id: str) -> OpResult[bool]:
        """Delete a user who has not authored any pages or posts."""
        ...

    async def find_by_email(self, email: str, web_log_id: str) -> Optional[WebLogUser]: ...
    async def find_by_id(self, user_id: str, web_log_id: str) -> Optional[WebLogUser]: ...
    async def find_by_web_log(self, web_log_id: str) -> List[WebLogUser]: ...

    async def find_names(self, web_log_id: str, user_ids: List[str]) -> List[MetaItem]:
        """Display names keyed by user id (name = id, value = display name)."""
        ...

    async def restore(self, users: List[WebLogUser]) -> None: ...
    async def set_last_seen(self, user_id: str, web_log_id: str) -> bool: ...
    async def update(self, user: WebLogUser) -> bool: ...


@runtime_checkable
class IData(Protocol):
    """The umbrella contract; one storage adapter implements all of it."""

    category: ICategoryData
    page: IPageData
    post: IPostData
    tag_map: ITagMapData
    theme: IThemeData
    theme_asset: IThemeAssetData
    upload: IUploadData
    web_log: IWebLogData
    web_log_user: IWebLogUserData

    async def start_up(self) -> None:
        """Create missing tables and indexes, then migrate to the current version."""
        ...

    async def shut_down(self) -> None: ...


__all__ = [
    "ICategoryData", "IPageData", "IPostData", "ITagMapData", "IThemeData",
    "IThemeAssetData", "IUploadData", "IWebLogData", "IWebLogUserData", "IData"
]
