# weblog_data/document/theme.py
from typing import Any, Dict, List, Optional

from weblog_data.document.helpers import (
    THEME, THEME_ASSET, DocumentFamily, find_all, from_doc, retried, save_document, to_doc
)
from weblog_data.schemas.common import format_instant
from weblog_data.schemas.theme import Theme, ThemeAsset, ThemeAssetId, ThemeTemplate

ADMIN_THEME_ID = "admin"


def to_theme(doc) -> Theme:
    return Theme.model_validate(from_doc(doc))


def without_text(theme: Theme) -> Theme:
    return theme.model_copy(update={"templates": [ThemeTemplate(name=template.name) for template in theme.templates]})


class ThemeData(DocumentFamily):
    """Themes in the document store; templates are embedded."""

    @retried
    async def all(self) -> List[Theme]:
        docs = await find_all(self.collection(THEME), {"_id": {"$ne": ADMIN_THEME_ID}}, sort=[("_id", 1)])
        return [without_text(to_theme(doc)) for doc in docs]

    @retried
    async def delete(self, theme_id: str) -> bool:
        result = await self.collection(THEME).delete_one({"_id": theme_id})
        if result.deleted_count == 0:
            return False
        await self.collection(THEME_ASSET).delete_many({"theme_id": theme_id})
        return True

    @retried
    async def exists(self, theme_id: str) -> bool:
        return await self.collection(THEME).count_documents({"_id": theme_id}) > 0

    @retried
    async def find_by_id(self, theme_id: str) -> Optional[Theme]:
        doc = await self.collection(THEME).find_one({"_id": theme_id})
        return to_theme(doc) if doc else None

    async def find_by_id_without_text(self, theme_id: str) -> Optional[Theme]:
        theme = await self.find_by_id(theme_id)
        return without_text(theme) if theme else None

    @retried
    async def save(self, theme: Theme) -> None:
        await save_document(self.collection(THEME), to_doc(theme))


def asset_doc(asset: ThemeAsset) -> Dict[str, Any]:
    return {
        "_id": str(asset.id),
        "theme_id": asset.id.theme_id,
        "path": asset.id.path,
        "updated_on": format_instant(asset.updated_on),
        "data": asset.data,
    }


def to_asset(doc: Dict[str, Any]) -> ThemeAsset:
    return ThemeAsset(
        id=ThemeAssetId(theme_id=doc["theme_id"], path=doc["path"]),
        updated_on=doc["updated_on"],
        data=bytes(doc.get("data", b"")),
    )


class ThemeAssetData(DocumentFamily):
    """Theme assets, keyed by "theme-id/path"; the payload is stored as BSON binary."""

    @retried
    async def all(self) -> List[ThemeAsset]:
        docs = await find_all(
            self.collection(THEME_ASSET), {}, projection={"data": 0}, sort=[("theme_id", 1), ("path", 1)]
        )
        return [to_asset(doc) for doc in docs]

    @retried
    async def delete_by_theme(self, theme_id: str) -> None:
        await self.collection(THEME_ASSET).delete_many({"theme_id": theme_id})

    @retried
    async def find_by_id(self, asset_id: ThemeAssetId) -> Optional[ThemeAsset]:
        doc = await self.collection(THEME_ASSET).find_one({"_id": str(asset_id)})
        return to_asset(doc) if doc else None

    @retried
    async def find_by_theme(self, theme_id: str) -> List[ThemeAsset]:
        docs = await find_all(
            self.collection(THEME_ASSET), {"theme_id": theme_id}, projection={"data": 0}, sort=[("path", 1)]
        )
        return [to_asset(doc) for doc in docs]

    @retried
    async def find_by_theme_with_data(self, theme_id: str) -> List[ThemeAsset]:
        docs = await find_all(self.collection(THEME_ASSET), {"theme_id": theme_id}, sort=[("path", 1)])
        return [to_asset(doc) for doc in docs]

    @retried
    async def save(self, asset: ThemeAsset) -> None:
        doc = asset_doc(asset)
        await self.collection(THEME_ASSET).replace_one({"_id": doc["_id"]}, doc, upsert=True)
