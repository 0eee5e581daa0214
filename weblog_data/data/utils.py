# weblog_data/data/utils.py
from typing import Iterator, List, Sequence, TypeVar

T = TypeVar("T")


def chunked(items: Sequence[T], size: int) -> Iterator[List[T]]:
    """Split items into batches of at most ``size``."""
    size = max(size, 1)
    for start in range(0, len(items), size):
        yield list(items[start:start + size])


def page_bounds(page_nbr: int, page_size: int) -> tuple:
    """
    Offset and limit for a 1-based page.

    The limit is one more than the page size, so callers can tell whether
    another page follows.
    """
    return (max(page_nbr, 1) - 1) * page_size, page_size + 1


def permalink_in_use(permalink: str, web_log_id: str) -> str:
    return f"Permalink {permalink} is already in use in web log {web_log_id}"
