"""Read-query composition for the clipboard history.

Every predicate is optional and they are combined by conjunction:

* base filter: all entries, or favorites only
* date range: half-open, ``start <= timestamp < end``
* search: case-insensitive substring over custom title, text content and tag names
* tag: entry must be linked to the given tag id

Results are always newest first. Tags are not joined into the projection; the
store attaches them per entry after the page has been read.
"""

import logging
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

from clipstash.config import PAGE_SIZE
from clipstash.errors import StorageError
from clipstash.models import DateRange, Entry, FilterMode
from clipstash.utils import format_timestamp

if TYPE_CHECKING:
    from clipstash.storage import EntryStore

logger = logging.getLogger(__name__)

LIKE_ESCAPE = "\\"


@dataclass(frozen=True)
class HistoryQuery:
    filter: FilterMode = FilterMode.ALL
    tag_id: int | None = None
    search: str = ""
    date_range: DateRange | None = None
    limit: int | None = PAGE_SIZE
    offset: int = 0


def escape_like(text: str) -> str:
    """Escape LIKE wildcards so the text matches literally."""
    return (
        text.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )


def compose(query: HistoryQuery) -> tuple[str, list]:
    """Build the SQL and parameters for one page of history rows."""
    joins: list[str] = []
    join_params: list = []
    where: list[str] = []
    where_params: list = []
    group_by = ""

    if query.filter == FilterMode.FAVORITES:
        where.append("e.is_favorite = 1")

    if query.date_range is not None:
        where.append("e.timestamp >= ? AND e.timestamp < ?")
        where_params.extend([
            format_timestamp(query.date_range.start),
            format_timestamp(query.date_range.end),
        ])

    if query.tag_id is not None:
        joins.append("JOIN entry_tags AS required ON required.entry_id = e.id AND required.tag_id = ?")
        join_params.append(query.tag_id)

    search = query.search.strip()
    if search:
        # Optional join: untagged entries still match on title or text.
        joins.append("LEFT JOIN entry_tags AS et ON et.entry_id = e.id")
        joins.append("LEFT JOIN tags AS t ON t.id = et.tag_id")
        pattern = f"%{escape_like(search)}%"
        where.append(
            "(e.custom_title LIKE ? ESCAPE '\\' "
            "OR e.text_content LIKE ? ESCAPE '\\' "
            "OR t.name LIKE ? ESCAPE '\\')"
        )
        where_params.extend([pattern, pattern, pattern])
        # One row per entry even when several tags match.
        group_by = "GROUP BY e.id"

    parts = ["SELECT e.* FROM entries AS e"]
    parts.extend(joins)
    if where:
        parts.append("WHERE " + " AND ".join(where))
    if group_by:
        parts.append(group_by)
    parts.append("ORDER BY e.timestamp DESC, e.rowid DESC")
    parts.append("LIMIT ? OFFSET ?")

    limit = -1 if query.limit is None else query.limit
    params = join_params + where_params + [limit, query.offset]
    return "\n".join(parts), params


class HistoryPager:
    """Walks a history query page by page.

    A page that held fewer rows than the page size means there is nothing more
    to load. Unreadable rows count toward the page even though they are not
    returned.
    """

    def __init__(self, store: "EntryStore", page_size: int = PAGE_SIZE):
        self._store = store
        self._page_size = page_size
        self._query = HistoryQuery(limit=page_size)
        self._page = 0
        self._offset = 0
        self.items: list[Entry] = []
        self.can_load_more = True

    @property
    def page(self) -> int:
        return self._page

    @property
    def query(self) -> HistoryQuery:
        return self._query

    def reset(
        self,
        filter: FilterMode = FilterMode.ALL,
        tag_id: int | None = None,
        search: str = "",
        date_range: DateRange | None = None,
    ) -> list[Entry]:
        """Start over with new criteria and load the first page."""
        self._query = HistoryQuery(
            filter=filter,
            tag_id=tag_id,
            search=search,
            date_range=date_range,
            limit=self._page_size,
        )
        self._page = 0
        self._offset = 0
        self.items = []
        self.can_load_more = True
        return self.load_more()

    def load_more(self) -> list[Entry]:
        if not self.can_load_more:
            return []

        query = replace(self._query, offset=self._offset)
        try:
            new_items, rows_read = self._store.fetch_page(query)
        except StorageError:
            logger.exception("Failed to load history page %d", self._page)
            self.can_load_more = False
            return []

        if rows_read:
            self.items.extend(new_items)
            self._offset += rows_read
            self._page += 1
        if rows_read < self._page_size:
            self.can_load_more = False
        return new_items

    def load_all(self) -> list[Entry]:
        while self.can_load_more:
            self.load_more()
        return self.items
