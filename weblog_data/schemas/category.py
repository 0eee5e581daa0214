# weblog_data/schemas/category.py
from pydantic import BaseModel, Field
from typing import List, Optional


class Category(BaseModel):
    id: str
    web_log_id: str
    name: str
    slug: str
    description: Optional[str] = None
    parent_id: Optional[str] = None

    class Config:
        frozen = True


class DisplayCategory(BaseModel):
    """A category as listed in a hierarchy, with its ancestor-qualified slug."""

    id: str
    slug: str
    name: str
    description: Optional[str] = None
    parent_names: List[str] = Field(default_factory=list)
    post_count: int = 0

    class Config:
        frozen = True

    @property
    def depth(self) -> int:
        return len(self.parent_names)
