import os
from pathlib import Path

DATA_DIR = Path(os.environ.get("CLIPSTASH_DATA_DIR", Path.home() / ".local" / "share" / "clipstash"))
DB_PATH = DATA_DIR / "history.sqlite"
LOG_PATH = DATA_DIR / "clipstash.log"

POLL_INTERVAL = 1.0  # seconds between clipboard checks
MAX_TEXT_SIZE = 1_000_000  # 1MB text limit
MAX_IMAGE_SIZE = 10_000_000  # 10MB image limit
PREVIEW_LENGTH = 60  # characters shown in list previews
CLASSIFY_MIN_LENGTH = 10  # shorter text is always plain


def _parse_int_env(name: str, default: int, minimum: int, maximum: int) -> int:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return max(minimum, min(maximum, value))


PAGE_SIZE = _parse_int_env("CLIPSTASH_PAGE_SIZE", 30, 5, 200)
MENU_DISPLAY_COUNT = _parse_int_env("CLIPSTASH_MENU_DISPLAY_COUNT", 10, 5, 50)
