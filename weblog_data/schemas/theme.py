# weblog_data/schemas/theme.py
from pydantic import BaseModel, Field, field_validator
from typing import List

from weblog_data.schemas.common import Instant


class ThemeTemplate(BaseModel):
    name: str
    text: str = ""

    class Config:
        frozen = True


class Theme(BaseModel):
    id: str
    name: str
    version: str
    templates: List[ThemeTemplate] = Field(default_factory=list)

    class Config:
        frozen = True

    @field_validator("templates")
    @classmethod
    def order_templates(cls, v: List[ThemeTemplate]) -> List[ThemeTemplate]:
        by_name = {template.name: template for template in v}
        return [by_name[name] for name in sorted(by_name)]


class ThemeAssetId(BaseModel):
    theme_id: str
    path: str

    class Config:
        frozen = True

    def __str__(self) -> str:
        return f"{self.theme_id}/{self.path}"

    @classmethod
    def parse(cls, value: str) -> "ThemeAssetId":
        theme_id, path = value.split("/", 1)
        return cls(theme_id=theme_id, path=path)


class ThemeAsset(BaseModel):
    id: ThemeAssetId
    updated_on: Instant
    data: bytes = b""

    class Config:
        frozen = True
