"""Typed errors raised across the storage boundary."""


class ClipstashError(Exception):
    """Base class for clipstash errors."""


class StoreOpenError(ClipstashError):
    """The history database could not be created, opened or migrated."""


class StorageError(ClipstashError):
    """A single read or write against the history database failed."""


class TagInUseError(ClipstashError):
    """A tag cannot be deleted while entries still reference it."""

    def __init__(self, count: int):
        self.count = count
        super().__init__(
            f"Tag is used by {count} entr{'y' if count == 1 else 'ies'}; "
            "remove it from those entries before deleting it."
        )
