# weblog_data/data/differ.py
"""
Child collection diffing.

Pages and posts carry small sets of children (metadata, prior permalinks,
revisions, tags, category ids). When one is saved, only the children that
actually changed are written: ``diff_lists`` compares the stored and the new
collection under a projection that defines identity for that kind of child.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Generic, Hashable, Iterable, List, Tuple, TypeVar

from weblog_data.schemas.common import MetaItem, Revision
from weblog_data.schemas.theme import ThemeTemplate

T = TypeVar("T")


@dataclass(frozen=True)
class DiffResult(Generic[T]):
    to_delete: List[T] = field(default_factory=list)
    to_add: List[T] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.to_delete and not self.to_add


def _identity(value):
    return value


def _distinct(items: Iterable[T], projection: Callable[[T], Hashable]) -> List[T]:
    seen = set()
    distinct = []
    for item in items:
        key = projection(item)
        if key not in seen:
            seen.add(key)
            distinct.append(item)
    return distinct


def diff_lists(
    old: Iterable[T],
    new: Iterable[T],
    projection: Callable[[T], Hashable] = _identity,
) -> DiffResult[T]:
    """
    Compute which children to remove and which to insert.

    ``to_delete`` holds the old items whose projection is not found in the new
    items; ``to_add`` holds the new items whose projection is not found in the
    old ones. Each list is distinct by projection.
    """
    old_items = _distinct(old, projection)
    new_items = _distinct(new, projection)
    old_keys = {projection(item) for item in old_items}
    new_keys = {projection(item) for item in new_items}
    return DiffResult(
        to_delete=[item for item in old_items if projection(item) not in new_keys],
        to_add=[item for item in new_items if projection(item) not in old_keys],
    )


def meta_key(item: MetaItem) -> Tuple[str, str]:
    return item.name, item.value


def permalink_key(permalink: str) -> str:
    return permalink


def revision_key(revision: Revision) -> Tuple[datetime, str]:
    # Two revisions at the same instant with different text are distinct
    return revision.as_of, revision.text


def template_key(template: ThemeTemplate) -> Tuple[str, str]:
    return template.name, template.text


def diff_meta(old: Iterable[MetaItem], new: Iterable[MetaItem]) -> DiffResult[MetaItem]:
    return diff_lists(old, new, meta_key)


def diff_permalinks(old: Iterable[str], new: Iterable[str]) -> DiffResult[str]:
    return diff_lists(old, new, permalink_key)


def diff_revisions(old: Iterable[Revision], new: Iterable[Revision]) -> DiffResult[Revision]:
    return diff_lists(old, new, revision_key)


def diff_values(old: Iterable[str], new: Iterable[str]) -> DiffResult[str]:
    """Diff tags or category ids by their raw value."""
    return diff_lists(old, new)


def diff_templates(old: Iterable[ThemeTemplate], new: Iterable[ThemeTemplate]) -> DiffResult[ThemeTemplate]:
    return diff_lists(old, new, template_key)
