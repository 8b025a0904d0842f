import base64
import binascii
import json
import logging
import sqlite3
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path

from clipstash.bookmarks import CocoaBookmarks, PathBookmarks, default_bookmarks
from clipstash.config import DB_PATH
from clipstash.errors import StorageError, StoreOpenError
from clipstash.models import (
    ContentType,
    DateRange,
    DisplayMode,
    Entry,
    FilePathsContent,
    FileRef,
    FilterMode,
    ImageContent,
    TextContent,
)
from clipstash.query import HistoryQuery, compose
from clipstash.tags import fetch_tags_for
from clipstash.utils import format_timestamp, parse_timestamp

logger = logging.getLogger(__name__)


def _create_entries(conn: sqlite3.Connection) -> None:
    conn.execute("""
        CREATE TABLE entries (
            id             TEXT PRIMARY KEY NOT NULL,
            timestamp      TEXT NOT NULL,
            is_favorite    INTEGER NOT NULL DEFAULT 0,
            content_type   TEXT NOT NULL CHECK(content_type IN ('text', 'image', 'file_paths')),
            text_content   TEXT,
            binary_content BLOB,
            file_refs_json TEXT
        )
    """)
    conn.execute("CREATE INDEX idx_entries_timestamp ON entries(timestamp DESC)")


def _add_filename(conn: sqlite3.Connection) -> None:
    conn.execute("ALTER TABLE entries ADD COLUMN filename TEXT")


def _add_custom_title(conn: sqlite3.Connection) -> None:
    conn.execute("ALTER TABLE entries ADD COLUMN custom_title TEXT")


def _create_tags(conn: sqlite3.Connection) -> None:
    conn.execute("""
        CREATE TABLE tags (
            id   INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL UNIQUE ON CONFLICT IGNORE
        )
    """)
    conn.execute("""
        CREATE TABLE entry_tags (
            entry_id TEXT NOT NULL REFERENCES entries(id) ON DELETE CASCADE,
            tag_id   INTEGER NOT NULL REFERENCES tags(id) ON DELETE CASCADE,
            PRIMARY KEY (entry_id, tag_id)
        )
    """)
    conn.execute("CREATE INDEX idx_entry_tags_tag ON entry_tags(tag_id)")


def _add_display_mode(conn: sqlite3.Connection) -> None:
    conn.execute("ALTER TABLE entries ADD COLUMN display_mode INTEGER NOT NULL DEFAULT 0")


# Released migrations are append-only: never remove, rename or reorder them.
MIGRATIONS: list[tuple[str, Callable[[sqlite3.Connection], None]]] = [
    ("0001_create_entries", _create_entries),
    ("0002_add_filename", _add_filename),
    ("0003_add_custom_title", _add_custom_title),
    ("0004_create_tags", _create_tags),
    ("0005_add_display_mode", _add_display_mode),
]

ENTRY_COLUMNS = (
    "id",
    "timestamp",
    "is_favorite",
    "content_type",
    "text_content",
    "binary_content",
    "file_refs_json",
    "filename",
    "custom_title",
    "display_mode",
)

_UPSERT_SQL = "INSERT INTO entries ({columns}) VALUES ({placeholders}) ON CONFLICT(id) DO UPDATE SET {updates}".format(
    columns=", ".join(ENTRY_COLUMNS),
    placeholders=", ".join("?" for _ in ENTRY_COLUMNS),
    updates=", ".join(f"{col} = excluded.{col}" for col in ENTRY_COLUMNS if col != "id"),
)


class EntryStore:
    """Owns the history database file.

    All statements run under a single lock, so writes are serialized and a
    reader never sees a multi-statement write half applied.
    """

    def __init__(
        self,
        db_path: str | Path | None = None,
        bookmarks: PathBookmarks | CocoaBookmarks | None = None,
    ):
        self._db_path = str(db_path) if db_path else str(DB_PATH)
        self._bookmarks = bookmarks if bookmarks is not None else default_bookmarks()
        self._lock = threading.RLock()
        conn = None
        try:
            if self._db_path != ":memory:":
                Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
            # Autocommit mode; transactions are opened explicitly below.
            conn = sqlite3.connect(self._db_path, check_same_thread=False, isolation_level=None)
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA foreign_keys=ON")
            self._conn = conn
            self.migrate()
        except (OSError, sqlite3.Error) as exc:
            if conn is not None:
                conn.close()
            raise StoreOpenError(f"Cannot open history database at {self._db_path}: {exc}") from exc

    @property
    def db_path(self) -> str:
        return self._db_path

    def migrate(self) -> list[str]:
        """Apply pending migrations in order; returns the names applied."""
        with self._lock:
            self._conn.execute(
                "CREATE TABLE IF NOT EXISTS schema_migrations (name TEXT PRIMARY KEY NOT NULL, applied_at TEXT NOT NULL)"
            )
            applied = {row["name"] for row in self._conn.execute("SELECT name FROM schema_migrations")}
            ran: list[str] = []
            for name, migration in MIGRATIONS:
                if name in applied:
                    continue
                self._conn.execute("BEGIN IMMEDIATE")
                try:
                    migration(self._conn)
                    self._conn.execute(
                        "INSERT INTO schema_migrations (name, applied_at) VALUES (?, strftime('%Y-%m-%dT%H:%M:%f', 'now'))",
                        (name,),
                    )
                except BaseException:
                    self._conn.execute("ROLLBACK")
                    raise
                self._conn.execute("COMMIT")
                logger.info("Applied migration %s", name)
                ran.append(name)
            return ran

    def applied_migrations(self) -> list[str]:
        with self.reading() as conn:
            return [row["name"] for row in conn.execute("SELECT name FROM schema_migrations ORDER BY name")]

    @contextmanager
    def reading(self) -> Iterator[sqlite3.Connection]:
        """Run reads under the store lock, converting sqlite errors."""
        with self._lock:
            try:
                yield self._conn
            except sqlite3.Error as exc:
                raise StorageError(str(exc)) from exc

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run statements as one atomic write under the store lock."""
        with self._lock:
            try:
                self._conn.execute("BEGIN IMMEDIATE")
            except sqlite3.Error as exc:
                raise StorageError(str(exc)) from exc
            try:
                yield self._conn
            except sqlite3.Error as exc:
                self._conn.execute("ROLLBACK")
                raise StorageError(str(exc)) from exc
            except BaseException:
                self._conn.execute("ROLLBACK")
                raise
            try:
                self._conn.execute("COMMIT")
            except sqlite3.Error as exc:
                self._conn.execute("ROLLBACK")
                raise StorageError(str(exc)) from exc

    # Entries

    def save(self, entry: Entry) -> None:
        """Insert the entry, or replace every column of the existing row."""
        values = self._entry_to_values(entry)
        with self.transaction() as conn:
            conn.execute(_UPSERT_SQL, values)

    def get_entry(self, entry_id: str) -> Entry | None:
        with self.reading() as conn:
            row = conn.execute("SELECT * FROM entries WHERE id = ?", (entry_id,)).fetchone()
            if row is None:
                return None
            entry = self._row_to_entry_or_none(row)
            if entry is not None:
                entry.tags = fetch_tags_for(conn, entry.id)
            return entry

    def latest_text(self) -> str | None:
        """Content of the most recently recorded text entry."""
        with self.reading() as conn:
            row = conn.execute(
                "SELECT text_content FROM entries WHERE content_type = ? ORDER BY timestamp DESC, rowid DESC LIMIT 1",
                (ContentType.TEXT.value,),
            ).fetchone()
        return row["text_content"] if row else None

    def fetch(
        self,
        filter: FilterMode = FilterMode.ALL,
        tag_id: int | None = None,
        search: str = "",
        date_range: DateRange | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[Entry]:
        return self.fetch_query(
            HistoryQuery(
                filter=filter,
                tag_id=tag_id,
                search=search,
                date_range=date_range,
                limit=limit,
                offset=offset,
            )
        )

    def fetch_query(self, query: HistoryQuery) -> list[Entry]:
        entries, _rows_read = self.fetch_page(query)
        return entries

    def fetch_page(self, query: HistoryQuery) -> tuple[list[Entry], int]:
        """Readable entries of one page, plus how many rows the page really held.

        The row count includes unreadable rows that were left out, so callers
        paging by offset can advance past them.
        """
        sql, params = compose(query)
        with self.reading() as conn:
            rows = conn.execute(sql, params).fetchall()
            entries = []
            for row in rows:
                entry = self._row_to_entry_or_none(row)
                if entry is None:
                    continue
                entry.tags = fetch_tags_for(conn, entry.id)
                entries.append(entry)
        return entries, len(rows)

    def delete(self, entry_id: str) -> None:
        with self.transaction() as conn:
            conn.execute("DELETE FROM entries WHERE id = ?", (entry_id,))

    def delete_all_non_favorites(self) -> int:
        with self.transaction() as conn:
            cursor = conn.execute("DELETE FROM entries WHERE is_favorite = 0")
            return cursor.rowcount

    def toggle_favorite(self, entry_id: str) -> bool | None:
        """Flip the favorite flag; returns the new value, or None if no such entry."""
        with self.transaction() as conn:
            row = conn.execute("SELECT is_favorite FROM entries WHERE id = ?", (entry_id,)).fetchone()
            if row is None:
                return None
            new_value = not bool(row["is_favorite"])
            conn.execute("UPDATE entries SET is_favorite = ? WHERE id = ?", (int(new_value), entry_id))
            return new_value

    def set_display_mode(self, entry_id: str, mode: DisplayMode) -> None:
        with self.transaction() as conn:
            conn.execute("UPDATE entries SET display_mode = ? WHERE id = ?", (DisplayMode(mode).value, entry_id))

    def set_custom_title(self, entry_id: str, title: str | None) -> None:
        with self.transaction() as conn:
            conn.execute("UPDATE entries SET custom_title = ? WHERE id = ?", (title, entry_id))

    def count(self) -> int:
        with self.reading() as conn:
            row = conn.execute("SELECT COUNT(*) AS cnt FROM entries").fetchone()
        return row["cnt"]

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    # Row mapping

    def _entry_to_values(self, entry: Entry) -> tuple:
        text_content = None
        binary_content = None
        file_refs_json = None
        filename = None

        content = entry.content
        if isinstance(content, TextContent):
            text_content = content.text
            filename = content.filename
        elif isinstance(content, ImageContent):
            binary_content = content.data
            filename = content.filename
        elif isinstance(content, FilePathsContent):
            file_refs_json = json.dumps([base64.b64encode(ref.bookmark).decode("ascii") for ref in content.refs])
        else:
            raise TypeError(f"Unknown content variant: {type(content).__name__}")

        return (
            entry.id,
            format_timestamp(entry.timestamp),
            int(entry.is_favorite),
            entry.content_type.value,
            text_content,
            binary_content,
            file_refs_json,
            filename,
            entry.custom_title,
            DisplayMode(entry.display_mode).value,
        )

    def _row_to_entry_or_none(self, row: sqlite3.Row) -> Entry | None:
        try:
            return self._row_to_entry(row)
        except (ValueError, TypeError, KeyError) as exc:
            logger.warning("Skipping unreadable entry %s: %s", row["id"], exc)
            return None

    def _row_to_entry(self, row: sqlite3.Row) -> Entry:
        content_type = ContentType(row["content_type"])
        if content_type == ContentType.TEXT:
            if row["text_content"] is None:
                raise ValueError("text entry without text")
            content = TextContent(row["text_content"], filename=row["filename"])
        elif content_type == ContentType.IMAGE:
            if row["binary_content"] is None:
                raise ValueError("image entry without data")
            content = ImageContent(bytes(row["binary_content"]), filename=row["filename"])
        else:
            content = FilePathsContent(self._decode_file_refs(row["file_refs_json"]))

        return Entry(
            id=row["id"],
            timestamp=parse_timestamp(row["timestamp"]),
            is_favorite=bool(row["is_favorite"]),
            content=content,
            custom_title=row["custom_title"],
            display_mode=DisplayMode.from_code(row["display_mode"]),
        )

    def _decode_file_refs(self, raw: str | None) -> tuple[FileRef, ...]:
        if raw is None:
            raise ValueError("file entry without references")
        encoded = json.loads(raw)
        if not isinstance(encoded, list):
            raise ValueError("file references are not a list")
        refs = []
        for item in encoded:
            try:
                bookmark = base64.b64decode(item, validate=True)
            except (binascii.Error, TypeError):
                logger.warning("Skipping malformed file bookmark")
                continue
            path = self._bookmarks.resolve(bookmark)
            if path is None:
                continue
            refs.append(FileRef(path=path, bookmark=bookmark))
        return tuple(refs)
