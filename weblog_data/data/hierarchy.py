# weblog_data/data/hierarchy.py
"""Category hierarchy materialization."""
import logging
from collections import defaultdict
from typing import Awaitable, Callable, Dict, List, Optional, Sequence

from weblog_data.schemas.category import Category, DisplayCategory

logger = logging.getLogger(__name__)


def _by_name(category: Category) -> str:
    return category.name.lower()


def order_by_hierarchy(categories: Sequence[Category]) -> List[DisplayCategory]:
    """
    Arrange categories as a pre-order walk of their forest.

    Roots and siblings are sorted case-insensitively by name. Each entry's slug
    is its ancestors' slugs and its own joined with "/", and ``parent_names``
    lists its ancestors from the root down. Post counts are left at zero.

    Categories that cannot be reached from a root (those on a parent cycle, or
    whose parent does not exist) are left out.
    """
    children: Dict[Optional[str], List[Category]] = defaultdict(list)
    for category in categories:
        children[category.parent_id].append(category)

    ordered: List[DisplayCategory] = []
    visited = set()

    def walk(parent_id: Optional[str], slug_base: str, parent_names: List[str]) -> None:
        for category in sorted(children.get(parent_id, []), key=_by_name):
            if category.id in visited:
                continue
            visited.add(category.id)
            slug = f"{slug_base}/{category.slug}" if slug_base else category.slug
            ordered.append(DisplayCategory(
                id=category.id,
                slug=slug,
                name=category.name,
                description=category.description,
                parent_names=list(parent_names),
            ))
            walk(category.id, slug, parent_names + [category.name])

    walk(None, "", [])

    unreachable = [cat.id for cat in categories if cat.id not in visited]
    if unreachable:
        logger.warning(f"Categories not reachable from a top-level category: {', '.join(unreachable)}")
    return ordered


def subtree_ids(ordered: Sequence[DisplayCategory], node: DisplayCategory) -> List[str]:
    """The node's own id, plus the ids of every category listing it as an ancestor."""
    return [node.id] + [cat.id for cat in ordered if node.name in cat.parent_names]


async def with_post_counts(
    ordered: Sequence[DisplayCategory],
    count_posts: Callable[[List[str]], Awaitable[int]],
) -> List[DisplayCategory]:
    """
    Fill in post counts for a materialized hierarchy.

    ``count_posts`` must count distinct published posts carrying any of the
    given category ids, since a post may be in both a parent and its child.
    """
    counted = []
    for node in ordered:
        count = await count_posts(subtree_ids(ordered, node))
        counted.append(node.model_copy(update={"post_count": count}))
    return counted
