# weblog_data/schemas/common.py
import base64
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Iterable, List

from pydantic import AfterValidator, BaseModel, PlainSerializer, field_validator

INSTANT_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def new_id() -> str:
    """Create a short, URL-safe unique id (a base64-encoded UUID)."""
    return base64.urlsafe_b64encode(uuid.uuid4().bytes).decode("ascii").rstrip("=")


def to_instant(value: datetime) -> datetime:
    """Normalize a timestamp to UTC at whole-second precision."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    else:
        value = value.astimezone(timezone.utc)
    return value.replace(microsecond=0)


def format_instant(value: datetime) -> str:
    return to_instant(value).strftime(INSTANT_FORMAT)


def parse_instant(value: str) -> datetime:
    """
    Parse a stored timestamp, dropping any fractional seconds or offset suffix.

    Accepts "2024-01-02T03:04:05Z", "2024-01-02 03:04:05.1234567" and the like.
    """
    text = value.strip().replace(" ", "T")[:19]
    return datetime.strptime(text, "%Y-%m-%dT%H:%M:%S").replace(tzinfo=timezone.utc)


def now() -> datetime:
    return to_instant(datetime.now(timezone.utc))


# A UTC timestamp, truncated to the second, serialized as ISO-8601 text
Instant = Annotated[
    datetime,
    AfterValidator(to_instant),
    PlainSerializer(format_instant, return_type=str, when_used="json"),
]


class PostStatus(str, Enum):
    draft = "draft"
    published = "published"


class AccessLevel(str, Enum):
    author = "author"
    editor = "editor"
    web_log_admin = "web_log_admin"
    administrator = "administrator"

    @property
    def weight(self) -> int:
        return list(AccessLevel).index(self)

    def has_access(self, needed: "AccessLevel") -> bool:
        """Does this access level include the one needed?"""
        return self.weight >= needed.weight


class ExplicitRating(str, Enum):
    yes = "yes"
    no = "no"
    clean = "clean"


class PodcastMedium(str, Enum):
    podcast = "podcast"
    music = "music"
    video = "video"
    film = "film"
    audiobook = "audiobook"
    newsletter = "newsletter"
    blog = "blog"


class UploadDestination(str, Enum):
    database = "database"
    disk = "disk"


class MetaItem(BaseModel):
    name: str
    value: str

    class Config:
        frozen = True


class Revision(BaseModel):
    """A historical snapshot of page or post text; text is "HTML: ..." or "Markdown: ..."."""

    as_of: Instant
    text: str

    class Config:
        frozen = True

    @field_validator("text")
    @classmethod
    def check_markup(cls, v: str) -> str:
        if not (v.startswith("HTML: ") or v.startswith("Markdown: ")):
            raise ValueError('revision text must start with "HTML: " or "Markdown: "')
        return v

    @property
    def source_type(self) -> str:
        return self.text.split(": ", 1)[0]


def sorted_unique(values: Iterable[str]) -> List[str]:
    return sorted(set(values))


def canonical_metadata(items: Iterable[MetaItem]) -> List[MetaItem]:
    unique = {(item.name, item.value): item for item in items}
    return [unique[key] for key in sorted(unique)]


def canonical_revisions(revisions: Iterable[Revision]) -> List[Revision]:
    """Distinct revisions, most recent first."""
    unique = {(rev.as_of, rev.text): rev for rev in revisions}
    return [unique[key] for key in sorted(unique, key=lambda k: (-k[0].timestamp(), k[1]))]
