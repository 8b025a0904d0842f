from datetime import date, datetime

import pytest

from clipstash.models import (
    ContentType,
    DateRange,
    DisplayMode,
    Entry,
    FilePathsContent,
    FileRef,
    ImageContent,
    TextContent,
    content_type_of,
    day_range,
)


class TestDisplayMode:
    @pytest.mark.parametrize("code,mode", [(0, DisplayMode.AUTO), (1, DisplayMode.PLAIN), (2, DisplayMode.CODE), (3, DisplayMode.MARKDOWN)])
    def test_known_codes(self, code, mode):
        assert DisplayMode.from_code(code) == mode

    @pytest.mark.parametrize("code", [None, 4, 99, -1])
    def test_unknown_codes_are_auto(self, code):
        assert DisplayMode.from_code(code) == DisplayMode.AUTO


class TestContentVariants:
    def test_content_type_of(self):
        assert content_type_of(TextContent("t")) == ContentType.TEXT
        assert content_type_of(ImageContent(b"")) == ContentType.IMAGE
        assert content_type_of(FilePathsContent(())) == ContentType.FILE_PATHS

    def test_unknown_variant_rejected(self):
        with pytest.raises(TypeError):
            content_type_of("just a string")

    def test_variants_are_immutable(self):
        content = TextContent("fixed")
        with pytest.raises(AttributeError):
            content.text = "changed"


class TestPreviewText:
    def test_text_preview_collapses_whitespace(self):
        assert TextContent("hello\n   world").preview_text == "hello world"

    def test_long_text_preview_truncated(self):
        preview = TextContent("a" * 200).preview_text
        assert len(preview) == 60
        assert preview.endswith("...")

    def test_text_from_file_shows_filename(self):
        assert TextContent("body", filename="notes.md").preview_text == "📄 notes.md"

    def test_png_preview_has_dimensions(self, png_bytes):
        assert ImageContent(png_bytes).preview_text == "[Image: 100x50]"

    def test_unknown_image_preview(self):
        assert ImageContent(b"II*\x00tiff").preview_text == "[Image]"

    def test_image_filename_preview(self, png_bytes):
        assert ImageContent(png_bytes, filename="cat.png").preview_text == "🖼️ cat.png"

    def test_single_file_preview(self):
        content = FilePathsContent((FileRef("/Users/test/document.pdf", b"x"),))
        assert content.preview_text == "📄 document.pdf"

    def test_multiple_files_preview(self):
        refs = tuple(FileRef(f"/tmp/f{i}.txt", b"x") for i in range(3))
        assert FilePathsContent(refs).preview_text == "🗂️ 3 files"


class TestDetailText:
    def test_text_detail_is_full_text(self):
        assert TextContent("line 1\nline 2").detail_text == "line 1\nline 2"

    def test_image_has_no_detail(self):
        assert ImageContent(b"data").detail_text is None

    def test_files_detail_lists_paths(self):
        refs = (FileRef("/a/one.txt", b"1"), FileRef("/b/two.txt", b"2"))
        assert FilePathsContent(refs).detail_text == "/a/one.txt\n/b/two.txt"


class TestEntry:
    def test_defaults(self):
        entry = Entry(content=TextContent("new"))
        assert entry.is_favorite is False
        assert entry.display_mode == DisplayMode.AUTO
        assert entry.custom_title is None
        assert entry.tags == []
        assert isinstance(entry.timestamp, datetime)

    def test_ids_are_unique(self):
        ids = {Entry(content=TextContent("x")).id for _ in range(100)}
        assert len(ids) == 100

    def test_custom_title_overrides_preview(self):
        entry = Entry(content=TextContent("raw text"), custom_title="Named")
        assert entry.list_preview == "✏️ Named"

    def test_empty_title_falls_back_to_preview(self):
        entry = Entry(content=TextContent("raw text"), custom_title="")
        assert entry.list_preview == "raw text"


class TestDateRanges:
    def test_half_open_membership(self):
        window = DateRange(datetime(2025, 6, 1), datetime(2025, 6, 2))
        assert datetime(2025, 6, 1) in window
        assert datetime(2025, 6, 1, 23, 59, 59) in window
        assert datetime(2025, 6, 2) not in window

    def test_day_range_spans_to_next_midnight(self):
        window = day_range(date(2025, 6, 1), date(2025, 6, 7))
        assert window.start == datetime(2025, 6, 1)
        assert window.end == datetime(2025, 6, 8)

    def test_single_day_range(self):
        window = day_range(date(2025, 6, 7), date(2025, 6, 7))
        assert datetime(2025, 6, 7, 0, 0) in window
        assert datetime(2025, 6, 7, 23, 59, 59, 999999) in window
        assert datetime(2025, 6, 8) not in window

    def test_last_representable_day(self):
        window = day_range(date(2025, 6, 7), date.max)
        assert window.end == datetime.max
        assert datetime(9999, 12, 31, 12, 0) in window
