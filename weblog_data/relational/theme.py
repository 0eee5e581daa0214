# weblog_data/relational/theme.py
from typing import Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncEngine
from sqlmodel import delete, select
from sqlmodel.ext.asyncio.session import AsyncSession

from weblog_data.data.differ import diff_templates
from weblog_data.relational.helpers import open_session
from weblog_data.relational.models import ThemeAssetRow, ThemeRow, ThemeTemplateRow
from weblog_data.schemas.theme import Theme, ThemeAsset, ThemeAssetId, ThemeTemplate

ADMIN_THEME_ID = "admin"


def without_text(theme: Theme) -> Theme:
    return theme.model_copy(update={
        "templates": [ThemeTemplate(name=template.name) for template in theme.templates]
    })


class ThemeData:
    """Themes and their templates in the relational store."""

    def __init__(self, engine: AsyncEngine):
        self.engine = engine

    async def _templates(self, db: AsyncSession, theme_ids: List[str]) -> Dict[str, List[ThemeTemplate]]:
        found: Dict[str, List[ThemeTemplate]] = {theme_id: [] for theme_id in theme_ids}
        if theme_ids:
            rows = (await db.exec(select(ThemeTemplateRow).where(ThemeTemplateRow.theme_id.in_(theme_ids)))).all()
            for row in rows:
                found[row.theme_id].append(ThemeTemplate(name=row.name, text=row.template))
        return found

    async def all(self) -> List[Theme]:
        async with open_session(self.engine) as db:
            rows = (await db.exec(
                select(ThemeRow).where(ThemeRow.id != ADMIN_THEME_ID).order_by(ThemeRow.id)
            )).all()
            templates = await self._templates(db, [row.id for row in rows])
            return [
                without_text(Theme(id=row.id, name=row.name, version=row.version, templates=templates[row.id]))
                for row in rows
            ]

    async def delete(self, theme_id: str) -> bool:
        """Delete a theme, its templates and its assets."""
        async with open_session(self.engine) as db:
            row = await db.get(ThemeRow, theme_id)
            if row is None:
                return False
            await db.exec(delete(ThemeAssetRow).where(ThemeAssetRow.theme_id == theme_id))
            await db.exec(delete(ThemeTemplateRow).where(ThemeTemplateRow.theme_id == theme_id))
            await db.delete(row)
            await db.commit()
            return True

    async def exists(self, theme_id: str) -> bool:
        async with open_session(self.engine) as db:
            return await db.get(ThemeRow, theme_id) is not None

    async def find_by_id(self, theme_id: str) -> Optional[Theme]:
        async with open_session(self.engine) as db:
            row = await db.get(ThemeRow, theme_id)
            if row is None:
                return None
            templates = await self._templates(db, [theme_id])
            return Theme(id=row.id, name=row.name, version=row.version, templates=templates[theme_id])

    async def find_by_id_without_text(self, theme_id: str) -> Optional[Theme]:
        theme = await self.find_by_id(theme_id)
        return without_text(theme) if theme else None

    async def save(self, theme: Theme) -> None:
        """Insert or update a theme, writing only the templates that changed."""
        async with open_session(self.engine) as db:
            await db.merge(ThemeRow(id=theme.id, name=theme.name, version=theme.version))
            current = (await self._templates(db, [theme.id]))[theme.id]
            diff = diff_templates(current, theme.templates)
            for template in diff.to_delete:
                await db.exec(delete(ThemeTemplateRow).where(
                    ThemeTemplateRow.theme_id == theme.id, ThemeTemplateRow.name == template.name
                ))
            # Flush deletes first; a changed template keeps its name
            await db.flush()
            db.add_all([
                ThemeTemplateRow(theme_id=theme.id, name=template.name, template=template.text)
                for template in diff.to_add
            ])
            await db.commit()


def to_asset(row: ThemeAssetRow, with_data: bool = True) -> ThemeAsset:
    return ThemeAsset(
        id=ThemeAssetId(theme_id=row.theme_id, path=row.path),
        updated_on=row.updated_on,
        data=row.data if with_data else b"",
    )


class ThemeAssetData:
    """Theme assets in the relational store."""

    def __init__(self, engine: AsyncEngine):
        self.engine = engine

    async def all(self) -> List[ThemeAsset]:
        async with open_session(self.engine) as db:
            rows = (await db.exec(select(ThemeAssetRow).order_by(ThemeAssetRow.theme_id, ThemeAssetRow.path))).all()
            return [to_asset(row, with_data=False) for row in rows]

    async def delete_by_theme(self, theme_id: str) -> None:
        async with open_session(self.engine) as db:
            await db.exec(delete(ThemeAssetRow).where(ThemeAssetRow.theme_id == theme_id))
            await db.commit()

    async def find_by_id(self, asset_id: ThemeAssetId) -> Optional[ThemeAsset]:
        async with open_session(self.engine) as db:
            row = await db.get(ThemeAssetRow, (asset_id.theme_id, asset_id.path))
            return to_asset(row) if row else None

    async def find_by_theme(self, theme_id: str) -> List[ThemeAsset]:
        return await self._by_theme(theme_id, with_data=False)

    async def find_by_theme_with_data(self, theme_id: str) -> List[ThemeAsset]:
        return await self._by_theme(theme_id, with_data=True)

    async def _by_theme(self, theme_id: str, with_data: bool) -> List[ThemeAsset]:
        async with open_session(self.engine) as db:
            rows = (await db.exec(
                select(ThemeAssetRow).where(ThemeAssetRow.theme_id == theme_id).order_by(ThemeAssetRow.path)
            )).all()
            return [to_asset(row, with_data) for row in rows]

    async def save(self, asset: ThemeAsset) -> None:
        async with open_session(self.engine) as db:
            await db.merge(ThemeAssetRow(
                theme_id=asset.id.theme_id, path=asset.id.path, updated_on=asset.updated_on, data=asset.data
            ))
            await db.commit()
