import logging
from dataclasses import dataclass
from typing import Callable

import rumps

from clipstash import __version__
from clipstash.config import DB_PATH, MENU_DISPLAY_COUNT, POLL_INTERVAL
from clipstash.errors import StorageError
from clipstash.models import Entry, FilterMode
from clipstash.monitor import ClipboardWatcher
from clipstash.pasteboard import MacPasteboard
from clipstash.storage import EntryStore

logger = logging.getLogger(__name__)

ENTRY_KEY_PREFIX = "clipstash_entry_"


@dataclass
class MenuItemSpec:
    """Specification for a menu item, separating logic from rumps rendering."""

    title: str
    callback: Callable | None = None
    entry_id: str | None = None
    is_submenu: bool = False
    children: list["MenuItemSpec | None"] | None = None


class ClipstashApp(rumps.App):
    def __init__(self, storage: EntryStore | None = None):
        super().__init__("Clipstash", title="📋", quit_button=None)
        self._storage = storage if storage is not None else EntryStore(DB_PATH)
        self._watcher = ClipboardWatcher(self._storage, MacPasteboard(), on_change=self._on_new_entry)
        self._build_menu()

    def _build_menu(self) -> None:
        self.menu.clear()
        self._render_menu_specs(self._compute_menu_specs())

    def _compute_menu_specs(self) -> list[MenuItemSpec | None]:
        """Compute menu item specifications. Pure logic, no rumps dependency."""
        specs: list[MenuItemSpec | None] = [
            MenuItemSpec(f"Clipstash v{__version__} - Clipboard History"),
            None,  # separator
            MenuItemSpec("Search...", callback=self._on_search),
            None,  # separator
        ]

        try:
            favorites = self._storage.fetch(filter=FilterMode.FAVORITES, limit=MENU_DISPLAY_COUNT)
            recent = self._storage.fetch(limit=MENU_DISPLAY_COUNT)
        except StorageError:
            logger.exception("Failed to load history for menu")
            favorites, recent = [], []

        if favorites:
            specs.append(
                MenuItemSpec("⭐ Favorites", is_submenu=True, children=[self._compute_entry_spec(e) for e in favorites])
            )
            specs.append(None)

        recent = [e for e in recent if not e.is_favorite]
        if not recent and not favorites:
            specs.append(MenuItemSpec("(No clipboard history)"))
        else:
            specs.extend(self._compute_entry_spec(e) for e in recent)

        specs.extend([
            None,
            MenuItemSpec("Clear Non-Favorites", callback=self._on_clear),
            None,
            MenuItemSpec("Quit Clipstash", callback=self._on_quit),
        ])
        return specs

    def _compute_entry_spec(self, entry: Entry) -> MenuItemSpec:
        return MenuItemSpec(title=entry.list_preview, callback=self._on_entry_click, entry_id=entry.id)

    def _render_menu_specs(self, specs: list[MenuItemSpec | None]) -> None:
        self.menu = [self._render_single_spec(spec) for spec in specs]

    def _render_single_spec(self, spec: MenuItemSpec | None) -> rumps.MenuItem | None:
        if spec is None:
            return None

        if spec.is_submenu and spec.children:
            submenu = rumps.MenuItem(spec.title)
            for child in spec.children:
                submenu.add(self._render_single_spec(child))
            return submenu

        item = rumps.MenuItem(spec.title, callback=spec.callback)
        if spec.entry_id is not None:
            item._id = f"{ENTRY_KEY_PREFIX}{spec.entry_id}"
        return item

    def _on_new_entry(self, _entry: Entry) -> None:
        self._build_menu()

    @rumps.timer(POLL_INTERVAL)
    def _poll_clipboard(self, _sender) -> None:
        self._watcher.check_clipboard()

    def _on_entry_click(self, sender) -> None:
        key = getattr(sender, "_id", "")
        if not key.startswith(ENTRY_KEY_PREFIX):
            return
        entry_id = key[len(ENTRY_KEY_PREFIX):]

        try:
            entry = self._storage.get_entry(entry_id)
        except StorageError:
            logger.exception("Failed to load entry %s", entry_id)
            return
        if entry is None:
            return

        # Option-click toggles favorite instead of copying
        try:
            from AppKit import NSAlternateKeyMask, NSEvent

            if NSEvent.modifierFlags() & NSAlternateKeyMask:
                self._on_favorite_toggle(entry)
                return
        except ImportError:
            pass

        if self._watcher.copy_entry(entry):
            rumps.notification("Clipstash", "", "Copied to clipboard", sound=False)

    def _on_favorite_toggle(self, entry: Entry) -> None:
        try:
            now_favorite = self._storage.toggle_favorite(entry.id)
        except StorageError:
            logger.exception("Failed to toggle favorite for %s", entry.id)
            return
        rumps.notification("Clipstash", "", "Added to favorites" if now_favorite else "Removed from favorites", sound=False)
        self._build_menu()

    def _on_search(self, _sender) -> None:
        response = rumps.Window(
            message="Search clipboard history:",
            title="Clipstash Search",
            default_text="",
            ok="Search",
            cancel="Cancel",
            dimensions=(300, 24),
        ).run()

        query = response.text.strip()
        if not response.clicked or not query:
            return

        try:
            results = self._storage.fetch(search=query, limit=MENU_DISPLAY_COUNT)
        except StorageError:
            logger.exception("Search failed")
            return

        if not results:
            rumps.alert("Clipstash Search", f'No results for "{query}"')
            return

        self.menu.clear()
        self._render_menu_specs(self._compute_search_results_specs(query, results))

    def _compute_search_results_specs(self, query: str, results: list[Entry]) -> list[MenuItemSpec | None]:
        specs: list[MenuItemSpec | None] = [
            MenuItemSpec(f'Search: "{query}" ({len(results)} results)'),
            None,
            MenuItemSpec("Show All", callback=lambda _: self._build_menu()),
            None,
        ]
        specs.extend(self._compute_entry_spec(e) for e in results)
        specs.extend([
            None,
            MenuItemSpec("Quit Clipstash", callback=self._on_quit),
        ])
        return specs

    def _on_clear(self, _sender) -> None:
        if rumps.alert("Clipstash", "Delete all history except favorites?", ok="Clear", cancel="Cancel"):
            try:
                deleted = self._storage.delete_all_non_favorites()
            except StorageError:
                logger.exception("Failed to clear history")
                return
            logger.info("Cleared %d entries", deleted)
            self._build_menu()

    def _on_quit(self, _sender) -> None:
        self._storage.close()
        rumps.quit_application()
