"""Access to the system clipboard by capability."""

from typing import Protocol

from clipstash.utils import is_png


class Pasteboard(Protocol):
    def change_count(self) -> int: ...

    def read_file_paths(self) -> list[str]: ...

    def read_image(self) -> bytes | None: ...

    def read_string(self) -> str | None: ...

    def write_text(self, text: str) -> bool: ...

    def write_image(self, data: bytes) -> bool: ...

    def write_file_paths(self, paths: list[str]) -> bool: ...


class MacPasteboard:
    """The macOS general pasteboard via AppKit."""

    def __init__(self):
        import AppKit
        import Foundation

        self._appkit = AppKit
        self._foundation = Foundation
        self._pb = AppKit.NSPasteboard.generalPasteboard()

    def change_count(self) -> int:
        return int(self._pb.changeCount())

    def read_file_paths(self) -> list[str]:
        urls = self._pb.readObjectsForClasses_options_(
            [self._foundation.NSURL],
            {self._appkit.NSPasteboardURLReadingFileURLsOnlyKey: True},
        )
        if not urls:
            return []
        return [str(url.path()) for url in urls]

    def read_image(self) -> bytes | None:
        types = self._pb.types()
        if types is None:
            return None
        for img_type in (self._appkit.NSPasteboardTypePNG, self._appkit.NSPasteboardTypeTIFF):
            if img_type in types:
                data = self._pb.dataForType_(img_type)
                if data is not None:
                    return bytes(data)
        return None

    def read_string(self) -> str | None:
        text = self._pb.stringForType_(self._appkit.NSPasteboardTypeString)
        return str(text) if text is not None else None

    def write_text(self, text: str) -> bool:
        self._pb.clearContents()
        return bool(self._pb.setString_forType_(text, self._appkit.NSPasteboardTypeString))

    def write_image(self, data: bytes) -> bool:
        ns_data = self._foundation.NSData.dataWithBytes_length_(data, len(data))
        img_type = self._appkit.NSPasteboardTypePNG if is_png(data) else self._appkit.NSPasteboardTypeTIFF
        self._pb.clearContents()
        return bool(self._pb.setData_forType_(ns_data, img_type))

    def write_file_paths(self, paths: list[str]) -> bool:
        urls = [self._foundation.NSURL.fileURLWithPath_(p) for p in paths]
        self._pb.clearContents()
        return bool(self._pb.writeObjects_(urls))
