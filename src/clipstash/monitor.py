import logging
import mimetypes
import threading
from collections.abc import Callable
from enum import Enum
from pathlib import Path

from clipstash.bookmarks import CocoaBookmarks, PathBookmarks, default_bookmarks, make_file_ref
from clipstash.config import MAX_IMAGE_SIZE, MAX_TEXT_SIZE
from clipstash.errors import StorageError
from clipstash.models import Content, DisplayMode, Entry, FilePathsContent, ImageContent, TextContent
from clipstash.pasteboard import Pasteboard
from clipstash.storage import EntryStore

logger = logging.getLogger(__name__)

# Text-like types that mimetypes does not report under text/*
TEXT_LIKE_TYPES = frozenset({
    "application/json",
    "application/xml",
    "application/javascript",
    "application/x-sh",
    "application/x-yaml",
    "application/toml",
    "application/sql",
})


class WatcherState(str, Enum):
    IDLE = "idle"
    CHECKING = "checking"


def file_kind(path: str) -> str | None:
    """'image', 'text' or None, judged from the file name."""
    mime, _ = mimetypes.guess_type(path)
    if mime is None:
        return None
    if mime.startswith("image/"):
        return "image"
    if mime.startswith("text/") or mime in TEXT_LIKE_TYPES:
        return "text"
    return None


class ClipboardWatcher:
    """Records new clipboard content as history entries, one tick at a time."""

    def __init__(
        self,
        storage: EntryStore,
        pasteboard: Pasteboard,
        on_change: Callable[[Entry], None] | None = None,
        bookmarks: PathBookmarks | CocoaBookmarks | None = None,
        default_display_mode: DisplayMode = DisplayMode.AUTO,
    ):
        self._storage = storage
        self._pasteboard = pasteboard
        self._bookmarks = bookmarks if bookmarks is not None else default_bookmarks()
        self._default_display_mode = default_display_mode
        self._listeners: list[Callable[[Entry], None]] = []
        if on_change is not None:
            self._listeners.append(on_change)

        self._tick_lock = threading.Lock()
        self._state = WatcherState.IDLE
        self._suppress_lock = threading.Lock()
        self._suppress_next = False
        # Content already on the clipboard at startup is not recorded.
        self._last_change_count = self._pasteboard.change_count()

    @property
    def state(self) -> WatcherState:
        return self._state

    @property
    def last_change_count(self) -> int:
        return self._last_change_count

    def add_listener(self, listener: Callable[[Entry], None]) -> None:
        self._listeners.append(listener)

    def suppress_next(self) -> None:
        """Skip the next clipboard change; raise this before writing to the clipboard."""
        with self._suppress_lock:
            self._suppress_next = True

    def _consume_suppression(self) -> bool:
        with self._suppress_lock:
            suppressed = self._suppress_next
            self._suppress_next = False
            return suppressed

    def _cancel_suppression(self) -> None:
        with self._suppress_lock:
            self._suppress_next = False

    def check_clipboard(self) -> bool:
        """Run one tick; True when a new entry was saved."""
        if not self._tick_lock.acquire(blocking=False):
            logger.debug("Previous clipboard check still running, skipping tick")
            return False
        self._state = WatcherState.CHECKING
        try:
            return self._tick()
        finally:
            self._state = WatcherState.IDLE
            self._tick_lock.release()

    def _tick(self) -> bool:
        try:
            current_count = self._pasteboard.change_count()
        except Exception:
            logger.exception("Error reading clipboard change count")
            return False
        if current_count == self._last_change_count:
            return False

        self._last_change_count = current_count

        if self._consume_suppression():
            logger.debug("Ignoring clipboard change %d written by clipstash", current_count)
            return False

        try:
            content = self._read_clipboard()
        except Exception:
            logger.exception("Error reading clipboard")
            return False
        if content is None:
            return False

        if isinstance(content, TextContent) and self._is_repeat(content.text):
            logger.debug("Clipboard text matches the latest entry, not recording")
            return False

        entry = Entry(content=content, display_mode=self._default_display_mode)
        try:
            self._storage.save(entry)
        except StorageError:
            # Losing one snapshot is preferable to stopping the capture loop.
            logger.exception("Failed to save clipboard entry")
            return False

        self._notify(entry)
        return True

    def _is_repeat(self, text: str) -> bool:
        try:
            latest = self._storage.latest_text()
        except StorageError:
            logger.warning("Could not read latest entry for deduplication", exc_info=True)
            return False
        return latest == text

    def _notify(self, entry: Entry) -> None:
        for listener in list(self._listeners):
            try:
                listener(entry)
            except Exception:
                logger.exception("Clipboard listener failed")

    def _read_clipboard(self) -> Content | None:
        paths = self._pasteboard.read_file_paths()
        if paths:
            return self._read_files(paths)

        image = self._pasteboard.read_image()
        if image is not None:
            if len(image) > MAX_IMAGE_SIZE:
                logger.warning("Image too large (%d bytes), skipping", len(image))
                return None
            return ImageContent(image)

        text = self._pasteboard.read_string()
        if text:
            if len(text.encode("utf-8")) > MAX_TEXT_SIZE:
                logger.warning("Text too large, skipping")
                return None
            return TextContent(text)

        return None

    def _read_files(self, paths: list[str]) -> Content | None:
        if len(paths) == 1:
            content = self._read_single_file(Path(paths[0]))
            if content is not None:
                return content

        refs = []
        for path in paths:
            ref = make_file_ref(path, self._bookmarks)
            if ref is not None:
                refs.append(ref)
        if not refs:
            return None
        return FilePathsContent(tuple(refs))

    def _read_single_file(self, path: Path) -> Content | None:
        """Inline a lone image or text file; None keeps it as a file reference."""
        kind = file_kind(str(path))
        if kind is None:
            return None

        limit = MAX_IMAGE_SIZE if kind == "image" else MAX_TEXT_SIZE
        try:
            if path.stat().st_size > limit:
                return None
            if kind == "image":
                return ImageContent(path.read_bytes(), filename=path.name)
            return TextContent(path.read_text(encoding="utf-8"), filename=path.name)
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Could not read %s: %s", path, exc)
            return None

    def copy_entry(self, entry: Entry) -> bool:
        """Put an entry back on the clipboard without recording it again."""
        self.suppress_next()
        try:
            copied = self._write_content(entry.content)
        except Exception:
            logger.exception("Error copying entry to clipboard")
            copied = False
        if not copied:
            self._cancel_suppression()
        return copied

    def _write_content(self, content: Content) -> bool:
        if isinstance(content, TextContent):
            return self._pasteboard.write_text(content.text)
        if isinstance(content, ImageContent):
            return self._pasteboard.write_image(content.data)
        if isinstance(content, FilePathsContent):
            return self._pasteboard.write_file_paths(content.paths)
        raise TypeError(f"Unknown content variant: {type(content).__name__}")
