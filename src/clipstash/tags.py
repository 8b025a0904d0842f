import logging
import sqlite3
from collections.abc import Iterable
from typing import TYPE_CHECKING

from clipstash.errors import TagInUseError
from clipstash.models import Tag

if TYPE_CHECKING:
    from clipstash.storage import EntryStore

logger = logging.getLogger(__name__)


def fetch_tags_for(conn: sqlite3.Connection, entry_id: str) -> list[Tag]:
    rows = conn.execute(
        """SELECT t.id, t.name FROM tags AS t
           JOIN entry_tags AS et ON et.tag_id = t.id
           WHERE et.entry_id = ?
           ORDER BY t.name""",
        (entry_id,),
    ).fetchall()
    return [Tag(id=row["id"], name=row["name"]) for row in rows]


class TagIndex:
    """Many-to-many tags over the store's ``tags`` and ``entry_tags`` tables.

    Names are compared exactly; callers that want case-insensitive tags should
    normalize case before calling in.
    """

    def __init__(self, store: "EntryStore"):
        self._store = store

    def add(self, name: str) -> Tag | None:
        """Create a tag unless one with this name exists; returns the stored tag."""
        trimmed = name.strip()
        if not trimmed:
            return None
        with self._store.transaction() as conn:
            return self._find_or_create(conn, trimmed)

    def rename(self, tag_id: int, new_name: str) -> None:
        trimmed = new_name.strip()
        if not trimmed:
            return
        with self._store.transaction() as conn:
            conn.execute("UPDATE tags SET name = ? WHERE id = ?", (trimmed, tag_id))

    def delete(self, tag_id: int) -> None:
        """Delete an unused tag.

        Raises:
            TagInUseError: if any entry is still linked to the tag. Nothing is
                deleted in that case.
        """
        with self._store.transaction() as conn:
            usage = self._usage(conn, tag_id)
            if usage > 0:
                raise TagInUseError(usage)
            conn.execute("DELETE FROM tags WHERE id = ?", (tag_id,))

    def usage(self, tag_id: int) -> int:
        with self._store.reading() as conn:
            return self._usage(conn, tag_id)

    def get(self, name: str) -> Tag | None:
        with self._store.reading() as conn:
            row = conn.execute("SELECT id, name FROM tags WHERE name = ?", (name.strip(),)).fetchone()
        return Tag(id=row["id"], name=row["name"]) if row else None

    def list_all(self) -> list[Tag]:
        with self._store.reading() as conn:
            rows = conn.execute("SELECT id, name FROM tags ORDER BY name").fetchall()
        return [Tag(id=row["id"], name=row["name"]) for row in rows]

    def list_for(self, entry_id: str) -> list[Tag]:
        with self._store.reading() as conn:
            return fetch_tags_for(conn, entry_id)

    def replace_for(self, entry_id: str, tag_names: Iterable[str]) -> list[Tag]:
        """Make the entry's tags exactly ``tag_names``, in one transaction."""
        with self._store.transaction() as conn:
            conn.execute("DELETE FROM entry_tags WHERE entry_id = ?", (entry_id,))
            for name in tag_names:
                trimmed = name.strip()
                if not trimmed:
                    continue
                tag = self._find_or_create(conn, trimmed)
                conn.execute(
                    "INSERT OR IGNORE INTO entry_tags (entry_id, tag_id) VALUES (?, ?)",
                    (entry_id, tag.id),
                )
            tags = fetch_tags_for(conn, entry_id)
        logger.debug("Entry %s tagged with %s", entry_id, [t.name for t in tags])
        return tags

    @staticmethod
    def _usage(conn: sqlite3.Connection, tag_id: int) -> int:
        row = conn.execute("SELECT COUNT(*) AS cnt FROM entry_tags WHERE tag_id = ?", (tag_id,)).fetchone()
        return row["cnt"]

    @staticmethod
    def _find_or_create(conn: sqlite3.Connection, name: str) -> Tag:
        conn.execute("INSERT OR IGNORE INTO tags (name) VALUES (?)", (name,))
        row = conn.execute("SELECT id, name FROM tags WHERE name = ?", (name,)).fetchone()
        return Tag(id=row["id"], name=row["name"])
