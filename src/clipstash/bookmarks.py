"""Opaque, revalidatable file references for the FilePaths content variant."""

import logging
import os
import sys

from clipstash.models import FileRef

logger = logging.getLogger(__name__)


class PathBookmarks:
    """Bookmarks that are simply the UTF-8 encoded absolute path."""

    def create(self, path: str) -> bytes:
        return os.path.abspath(path).encode("utf-8")

    def resolve(self, bookmark: bytes) -> str | None:
        try:
            return bookmark.decode("utf-8")
        except UnicodeDecodeError:
            logger.warning("Discarding undecodable path bookmark")
            return None


class CocoaBookmarks:
    """NSURL bookmark data, which keeps resolving after the file is moved."""

    def __init__(self):
        import Foundation

        self._foundation = Foundation

    def create(self, path: str) -> bytes | None:
        url = self._foundation.NSURL.fileURLWithPath_(path)
        data, error = url.bookmarkDataWithOptions_includingResourceValuesForKeys_relativeToURL_error_(
            0, None, None, None
        )
        if data is None:
            logger.warning("Could not create bookmark for %s: %s", path, error)
            return None
        return bytes(data)

    def resolve(self, bookmark: bytes) -> str | None:
        ns_data = self._foundation.NSData.dataWithBytes_length_(bookmark, len(bookmark))
        url, _stale, error = self._foundation.NSURL.URLByResolvingBookmarkData_options_relativeToURL_bookmarkDataIsStale_error_(
            ns_data, 0, None, None, None
        )
        if url is None:
            logger.warning("Could not resolve bookmark: %s", error)
            return None
        return str(url.path())


def default_bookmarks() -> PathBookmarks | CocoaBookmarks:
    if sys.platform == "darwin":
        return CocoaBookmarks()
    return PathBookmarks()


def make_file_ref(path: str, bookmarks: PathBookmarks | CocoaBookmarks) -> FileRef | None:
    bookmark = bookmarks.create(path)
    if bookmark is None:
        return None
    return FileRef(path=path, bookmark=bookmark)
