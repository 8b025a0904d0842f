import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from enum import Enum
from pathlib import Path

from clipstash.config import PREVIEW_LENGTH
from clipstash.utils import get_image_dimensions, truncate_text


class ContentType(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    FILE_PATHS = "file_paths"


class DisplayMode(int, Enum):
    AUTO = 0
    PLAIN = 1
    CODE = 2
    MARKDOWN = 3

    @classmethod
    def from_code(cls, code: int | None) -> "DisplayMode":
        """Map a stored code to a mode; unknown or missing codes read as AUTO."""
        try:
            return cls(code)
        except ValueError:
            return cls.AUTO


class FilterMode(str, Enum):
    ALL = "all"
    FAVORITES = "favorites"


@dataclass(frozen=True)
class FileRef:
    """A file on disk plus the opaque bookmark used to find it again."""

    path: str
    bookmark: bytes

    @property
    def name(self) -> str:
        return Path(self.path).name


@dataclass(frozen=True)
class TextContent:
    text: str
    filename: str | None = None

    @property
    def preview_text(self) -> str:
        if self.filename:
            return f"📄 {self.filename}"
        return truncate_text(self.text, PREVIEW_LENGTH)

    @property
    def detail_text(self) -> str | None:
        return self.text


@dataclass(frozen=True)
class ImageContent:
    data: bytes
    filename: str | None = None

    @property
    def preview_text(self) -> str:
        if self.filename:
            return f"🖼️ {self.filename}"
        width, height = get_image_dimensions(self.data)
        return f"[Image: {width}x{height}]" if width > 0 else "[Image]"

    @property
    def detail_text(self) -> str | None:
        return None


@dataclass(frozen=True)
class FilePathsContent:
    refs: tuple[FileRef, ...]

    @property
    def paths(self) -> list[str]:
        return [ref.path for ref in self.refs]

    @property
    def preview_text(self) -> str:
        if len(self.refs) == 1:
            return truncate_text(f"📄 {self.refs[0].name}", PREVIEW_LENGTH)
        return f"🗂️ {len(self.refs)} files"

    @property
    def detail_text(self) -> str | None:
        return "\n".join(self.paths)


Content = TextContent | ImageContent | FilePathsContent


def content_type_of(content: Content) -> ContentType:
    if isinstance(content, TextContent):
        return ContentType.TEXT
    if isinstance(content, ImageContent):
        return ContentType.IMAGE
    if isinstance(content, FilePathsContent):
        return ContentType.FILE_PATHS
    raise TypeError(f"Unknown content variant: {type(content).__name__}")


def new_entry_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class Tag:
    id: int
    name: str


@dataclass
class Entry:
    content: Content
    id: str = field(default_factory=new_entry_id)
    timestamp: datetime = field(default_factory=datetime.now)
    is_favorite: bool = False
    custom_title: str | None = None
    display_mode: DisplayMode = DisplayMode.AUTO
    tags: list[Tag] = field(default_factory=list)

    @property
    def content_type(self) -> ContentType:
        return content_type_of(self.content)

    @property
    def list_preview(self) -> str:
        if self.custom_title:
            return f"✏️ {self.custom_title}"
        return self.content.preview_text


@dataclass(frozen=True)
class DateRange:
    """Half-open interval: start <= timestamp < end."""

    start: datetime
    end: datetime

    def __contains__(self, moment: datetime) -> bool:
        return self.start <= moment < self.end


def day_range(first_day: date, last_day: date) -> DateRange:
    """Range covering whole calendar days, ending at midnight after last_day."""
    start = datetime.combine(first_day, time.min)
    if last_day >= date.max:
        # No midnight follows the last representable day.
        return DateRange(start, datetime.max)
    end = datetime.combine(last_day, time.min) + timedelta(days=1)
    return DateRange(start, end)
