# weblog_data/hybrid/theme.py
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine

from weblog_data.hybrid.helpers import find_document, find_documents, save_document, writing
from weblog_data.hybrid.tables import theme, theme_asset
from weblog_data.schemas.common import format_instant, parse_instant
from weblog_data.schemas.theme import Theme, ThemeAsset, ThemeAssetId, ThemeTemplate

ADMIN_THEME_ID = "admin"


def without_text(t: Theme) -> Theme:
    return t.model_copy(update={"templates": [ThemeTemplate(name=template.name) for template in t.templates]})


class ThemeData:
    """Themes stored as JSON documents, templates included."""

    def __init__(self, engine: AsyncEngine):
        self.engine = engine

    async def all(self) -> List[Theme]:
        async with self.engine.connect() as conn:
            docs = await find_documents(
                conn, select(theme.c.data).where(theme.c.id != ADMIN_THEME_ID).order_by(theme.c.id)
            )
            return [without_text(Theme.model_validate(doc)) for doc in docs]

    async def delete(self, theme_id: str) -> bool:
        async with writing(self.engine) as conn:
            if await find_document(conn, theme, theme_id) is None:
                return False
            await conn.execute(theme_asset.delete().where(theme_asset.c.theme_id == theme_id))
            await conn.execute(theme.delete().where(theme.c.id == theme_id))
            return True

    async def exists(self, theme_id: str) -> bool:
        async with self.engine.connect() as conn:
            return (await conn.execute(select(theme.c.id).where(theme.c.id == theme_id))).first() is not None

    async def find_by_id(self, theme_id: str) -> Optional[Theme]:
        async with self.engine.connect() as conn:
            doc = await find_document(conn, theme, theme_id)
            return Theme.model_validate(doc) if doc else None

    async def find_by_id_without_text(self, theme_id: str) -> Optional[Theme]:
        found = await self.find_by_id(theme_id)
        return without_text(found) if found else None

    async def save(self, t: Theme) -> None:
        async with writing(self.engine) as conn:
            await save_document(conn, theme, t.id, t.model_dump(mode="json"))


def to_asset(row, with_data: bool = True) -> ThemeAsset:
    return ThemeAsset(
        id=ThemeAssetId(theme_id=row.theme_id, path=row.path),
        updated_on=parse_instant(row.updated_on),
        data=row.data if with_data else b"",
    )


class ThemeAssetData:
    """Theme assets; the payload is a BLOB column beside the key."""

    def __init__(self, engine: AsyncEngine):
        self.engine = engine

    async def all(self) -> List[ThemeAsset]:
        async with self.engine.connect() as conn:
            rows = (await conn.execute(
                select(theme_asset).order_by(theme_asset.c.theme_id, theme_asset.c.path)
            )).all()
            return [to_asset(row, with_data=False) for row in rows]

    async def delete_by_theme(self, theme_id: str) -> None:
        async with writing(self.engine) as conn:
            await conn.execute(theme_asset.delete().where(theme_asset.c.theme_id == theme_id))

    async def find_by_id(self, asset_id: ThemeAssetId) -> Optional[ThemeAsset]:
        async with self.engine.connect() as conn:
            row = (await conn.execute(select(theme_asset).where(
                theme_asset.c.theme_id == asset_id.theme_id, theme_asset.c.path == asset_id.path
            ))).first()
            return to_asset(row) if row else None

    async def find_by_theme(self, theme_id: str) -> List[ThemeAsset]:
        return await self._by_theme(theme_id, with_data=False)

    async def find_by_theme_with_data(self, theme_id: str) -> List[ThemeAsset]:
        return await self._by_theme(theme_id, with_data=True)

    async def _by_theme(self, theme_id: str, with_data: bool) -> List[ThemeAsset]:
        async with self.engine.connect() as conn:
            rows = (await conn.execute(
                select(theme_asset).where(theme_asset.c.theme_id == theme_id).order_by(theme_asset.c.path)
            )).all()
            return [to_asset(row, with_data) for row in rows]

    async def save(self, asset: ThemeAsset) -> None:
        values = {"updated_on": format_instant(asset.updated_on), "data": asset.data}
        async with writing(self.engine) as conn:
            found = (await conn.execute(theme_asset.update().where(
                theme_asset.c.theme_id == asset.id.theme_id, theme_asset.c.path == asset.id.path
            ).values(**values))).rowcount
            if not found:
                await conn.execute(theme_asset.insert().values(
                    theme_id=asset.id.theme_id, path=asset.id.path, **values
                ))
