import argparse
import logging
import sys
from datetime import date

from clipstash.config import DB_PATH, LOG_PATH, PAGE_SIZE
from clipstash.errors import StorageError, StoreOpenError, TagInUseError
from clipstash.models import DisplayMode, Entry, FilterMode, Tag, day_range
from clipstash.query import HistoryPager
from clipstash.storage import EntryStore
from clipstash.tags import TagIndex
from clipstash.utils import ensure_dirs

logger = logging.getLogger("clipstash")


def setup_logging(verbose: bool = False) -> None:
    ensure_dirs()
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.FileHandler(LOG_PATH),
            logging.StreamHandler(sys.stderr),
        ],
    )


def open_store() -> EntryStore | None:
    try:
        return EntryStore(DB_PATH)
    except StoreOpenError:
        logger.critical("Cannot start without the history database", exc_info=True)
        return None


def format_entry(entry: Entry, show_id: bool = False) -> str:
    star = "*" if entry.is_favorite else " "
    tags = f" [{', '.join(t.name for t in entry.tags)}]" if entry.tags else ""
    line = f"{star} {entry.timestamp:%Y-%m-%d %H:%M:%S}  {entry.list_preview}{tags}"
    return f"{entry.id}  {line}" if show_id else line


def run_app() -> int:
    """Run the Clipstash menu bar application."""
    store = open_store()
    if store is None:
        return 1

    from clipstash.app import ClipstashApp

    app = ClipstashApp(storage=store)
    app.run()
    return 0


def list_history(args: argparse.Namespace) -> int:
    store = open_store()
    if store is None:
        return 1

    with store:
        tag_id = None
        if args.tag:
            tag = TagIndex(store).get(args.tag)
            if tag is None:
                print(f'No tag named "{args.tag}"')
                return 1
            tag_id = tag.id

        date_range = None
        if args.since or args.until:
            date_range = day_range(args.since or date.min, args.until or date.today())

        criteria = dict(
            filter=FilterMode.FAVORITES if args.favorites else FilterMode.ALL,
            tag_id=tag_id,
            search=args.search or "",
            date_range=date_range,
        )
        try:
            if args.all:
                pager = HistoryPager(store, page_size=args.limit)
                pager.reset(**criteria)
                entries = pager.load_all()
            else:
                entries = store.fetch(limit=args.limit, offset=args.page * args.limit, **criteria)
        except StorageError:
            logger.exception("Failed to read history")
            return 1

    if not entries:
        print("(No clipboard history)")
    for entry in entries:
        print(format_entry(entry, show_id=args.ids))
    return 0


def list_tags(_args: argparse.Namespace) -> int:
    store = open_store()
    if store is None:
        return 1

    with store:
        index = TagIndex(store)
        try:
            tags = index.list_all()
            usage = {tag.id: index.usage(tag.id) for tag in tags}
        except StorageError:
            logger.exception("Failed to read tags")
            return 1

    if not tags:
        print("(No tags)")
    for tag in tags:
        print(f"{tag.name} ({usage[tag.id]})")
    return 0


def purge(_args: argparse.Namespace) -> int:
    store = open_store()
    if store is None:
        return 1

    with store:
        try:
            deleted = store.delete_all_non_favorites()
        except StorageError:
            logger.exception("Failed to purge history")
            return 1
    print(f"Deleted {deleted} entries (favorites kept).")
    return 0


def _require_entry(store: EntryStore, entry_id: str) -> Entry | None:
    entry = store.get_entry(entry_id)
    if entry is None:
        print(f"No entry with id {entry_id}")
    return entry


def _require_tag(index: TagIndex, name: str) -> Tag | None:
    tag = index.get(name)
    if tag is None:
        print(f'No tag named "{name}"')
    return tag


def edit_entry(args: argparse.Namespace) -> int:
    """Apply one of the per-entry edits: title, mode, favorite, delete or tag-entry."""
    store = open_store()
    if store is None:
        return 1

    with store:
        try:
            entry = _require_entry(store, args.entry_id)
            if entry is None:
                return 1

            if args.command == "title":
                title = " ".join(args.text).strip() or None
                store.set_custom_title(entry.id, title)
                print(f'Title set to "{title}"' if title else "Title cleared")
            elif args.command == "mode":
                mode = DisplayMode[args.mode.upper()]
                store.set_display_mode(entry.id, mode)
                print(f"Display mode set to {args.mode}")
            elif args.command == "favorite":
                now_favorite = store.toggle_favorite(entry.id)
                print("Added to favorites" if now_favorite else "Removed from favorites")
            elif args.command == "delete":
                store.delete(entry.id)
                print("Entry deleted")
            elif args.command == "tag-entry":
                tags = TagIndex(store).replace_for(entry.id, args.names)
                print("Tags: " + (", ".join(t.name for t in tags) if tags else "(none)"))
        except StorageError:
            logger.exception("Failed to update entry %s", args.entry_id)
            return 1
    return 0


def manage_tag(args: argparse.Namespace) -> int:
    store = open_store()
    if store is None:
        return 1

    with store:
        index = TagIndex(store)
        try:
            if args.tag_command == "add":
                tag = index.add(args.name)
                if tag is None:
                    print("Tag name cannot be empty")
                    return 1
                print(f'Tag "{tag.name}" ready')
                return 0

            tag = _require_tag(index, args.name)
            if tag is None:
                return 1

            if args.tag_command == "rename":
                new_name = args.new_name.strip()
                if not new_name:
                    print("Tag name cannot be empty")
                    return 1
                index.rename(tag.id, new_name)
                renamed = index.get(new_name)
                if renamed is None or renamed.id != tag.id:
                    # The unique name constraint ignores a clashing rename.
                    print(f'A tag named "{new_name}" already exists')
                    return 1
                print(f'Renamed "{tag.name}" to "{new_name}"')
            elif args.tag_command == "delete":
                index.delete(tag.id)
                print(f'Deleted tag "{tag.name}"')
        except TagInUseError as exc:
            print(f'Cannot delete "{args.name}": {exc}')
            return 1
        except StorageError:
            logger.exception("Failed to update tag %s", args.name)
            return 1
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="clipstash",
        description="Clipstash - searchable, taggable clipboard history",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  clipstash                          # Run the menu bar app
  clipstash list --search bug        # Search history
  clipstash list --since 2025-06-01 --until 2025-06-07
  clipstash purge                    # Delete everything except favorites
  clipstash tag-entry ID swiftui ios # Replace an entry's tags
  clipstash tag delete swiftui       # Refused while entries use it
""",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Run the menu bar app (default)")

    list_parser = subparsers.add_parser("list", help="Print clipboard history")
    list_parser.add_argument("--favorites", action="store_true", help="Only favorites")
    list_parser.add_argument("--search", help="Substring to match in titles, text and tags")
    list_parser.add_argument("--tag", help="Only entries with this tag")
    list_parser.add_argument("--since", type=date.fromisoformat, help="First day to include (YYYY-MM-DD)")
    list_parser.add_argument("--until", type=date.fromisoformat, help="Last day to include (YYYY-MM-DD)")
    list_parser.add_argument("--limit", type=int, default=PAGE_SIZE, help="Page size")
    list_parser.add_argument("--page", type=int, default=0, help="Page index, starting at 0")
    list_parser.add_argument("--all", action="store_true", help="Print every page")
    list_parser.add_argument("--ids", action="store_true", help="Prefix each line with the entry id")

    subparsers.add_parser("tags", help="List tags with usage counts")
    subparsers.add_parser("purge", help="Delete all entries that are not favorites")

    title_parser = subparsers.add_parser("title", help="Set or clear an entry's title")
    title_parser.add_argument("entry_id", help="Entry id, as printed by list --ids")
    title_parser.add_argument("text", nargs="*", help="New title; omit to clear it")

    mode_parser = subparsers.add_parser("mode", help="Choose how an entry is displayed")
    mode_parser.add_argument("entry_id", help="Entry id, as printed by list --ids")
    mode_parser.add_argument("mode", choices=[m.name.lower() for m in DisplayMode])

    favorite_parser = subparsers.add_parser("favorite", help="Toggle an entry's favorite flag")
    favorite_parser.add_argument("entry_id", help="Entry id, as printed by list --ids")

    delete_parser = subparsers.add_parser("delete", help="Delete one entry")
    delete_parser.add_argument("entry_id", help="Entry id, as printed by list --ids")

    tag_entry_parser = subparsers.add_parser("tag-entry", help="Replace an entry's tags")
    tag_entry_parser.add_argument("entry_id", help="Entry id, as printed by list --ids")
    tag_entry_parser.add_argument("names", nargs="*", help="Tag names; none removes all tags")

    tag_parser = subparsers.add_parser("tag", help="Add, rename or delete tags")
    tag_subparsers = tag_parser.add_subparsers(dest="tag_command", required=True)
    tag_add = tag_subparsers.add_parser("add", help="Create a tag")
    tag_add.add_argument("name")
    tag_rename = tag_subparsers.add_parser("rename", help="Rename a tag")
    tag_rename.add_argument("name")
    tag_rename.add_argument("new_name")
    tag_delete = tag_subparsers.add_parser("delete", help="Delete a tag no entry uses")
    tag_delete.add_argument("name")

    return parser


ENTRY_COMMANDS = frozenset({"title", "mode", "favorite", "delete", "tag-entry"})


def main(argv: list[str] | None = None):
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    if args.command == "list":
        sys.exit(list_history(args))
    elif args.command == "tags":
        sys.exit(list_tags(args))
    elif args.command == "purge":
        sys.exit(purge(args))
    elif args.command in ENTRY_COMMANDS:
        sys.exit(edit_entry(args))
    elif args.command == "tag":
        sys.exit(manage_tag(args))
    else:
        sys.exit(run_app())


if __name__ == "__main__":
    main()
