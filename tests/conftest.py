from datetime import datetime, timedelta

import pytest

from clipstash.bookmarks import PathBookmarks
from clipstash.models import DisplayMode, Entry, FilePathsContent, FileRef, ImageContent, TextContent
from clipstash.storage import EntryStore
from clipstash.tags import TagIndex

BASE_TIME = datetime(2025, 6, 7, 12, 0, 0)


@pytest.fixture
def storage():
    mgr = EntryStore(db_path=":memory:", bookmarks=PathBookmarks())
    yield mgr
    mgr.close()


@pytest.fixture
def tags(storage):
    return TagIndex(storage)


@pytest.fixture
def make_entry():
    """Factory fixture to create Entry instances for testing.

    ``minutes`` offsets the timestamp from a fixed base time so ordering is
    deterministic.
    """

    def _make_entry(
        text: str = "hello world",
        minutes: int = 0,
        is_favorite: bool = False,
        custom_title: str | None = None,
        display_mode: DisplayMode = DisplayMode.AUTO,
        filename: str | None = None,
    ) -> Entry:
        return Entry(
            content=TextContent(text, filename=filename),
            timestamp=BASE_TIME + timedelta(minutes=minutes),
            is_favorite=is_favorite,
            custom_title=custom_title,
            display_mode=display_mode,
        )

    return _make_entry


@pytest.fixture
def png_bytes():
    header = b"\x89PNG\r\n\x1a\n"
    ihdr_chunk = b"\x00\x00\x00\rIHDR"
    width = (100).to_bytes(4, "big")
    height = (50).to_bytes(4, "big")
    return header + ihdr_chunk + width + height + b"\x00" * 100


@pytest.fixture
def image_entry(png_bytes):
    return Entry(content=ImageContent(png_bytes, filename="shot.png"), timestamp=BASE_TIME)


@pytest.fixture
def files_entry():
    bookmarks = PathBookmarks()
    refs = tuple(FileRef(path=p, bookmark=bookmarks.create(p)) for p in ("/tmp/a.pdf", "/tmp/b.zip"))
    return Entry(content=FilePathsContent(refs), timestamp=BASE_TIME)
