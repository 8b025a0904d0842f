"""Heuristic content classification for text clipboard entries.

The checks are cheap and order-sensitive. A wrong guess only affects rendering
of entries left in AUTO mode, which are re-classified every time they are shown.
"""

import json
import re

from clipstash.config import CLASSIFY_MIN_LENGTH
from clipstash.models import DisplayMode, Entry

MARKDOWN_INDICATORS = (
    "```",
    "\n# ", "\n## ", "\n### ", "\n#### ", "\n##### ", "\n###### ",
    "\n* ", "\n- ", "\n+ ",
    "---", "___", "***",
    "](",
    "|",
    "`",
)

# Ordered list item on a later line, e.g. "\n3. "
_ORDERED_ITEM = re.compile(r"\n\d+\. ")
_MARKDOWN_PREFIX = re.compile(r"(?:#|- |\* |\d+\. )")

# Matched as whole tokens, so "classic" or "format" do not count.
PROGRAMMING_KEYWORDS = frozenset({
    # Swift and Objective-C
    "import", "func", "class", "struct", "let", "var", "enum", "extension", "protocol",
    "init", "self", "super", "override", "public", "private", "internal", "fileprivate",
    "open", "weak", "unowned", "await", "throw", "try", "catch", "guard", "defer",
    "inout", "didset", "willset",
    # General
    "function", "return", "if", "else", "for", "while", "switch", "case", "break",
    "continue", "printf", "console.log", "system.out.println", "namespace", "using",
    "main(", "void", "static", "interface", "abstract", "extends", "implements", "this",
    "new", "delete", "const", "null", "undefined",
    # Python, Rust and C
    "def", "elif", "except", "lambda", "async", "nil", "fn", "impl", "pub", "println",
    "typedef", "int", "bool",
})

_KEYWORD_PATTERNS = {
    keyword: re.compile(r"(?<![\w.])" + re.escape(keyword) + r"(?![\w])")
    for keyword in PROGRAMMING_KEYWORDS
}

CODE_SYMBOLS = frozenset("{}()[];<>=+-*/%&|^~`@#$_\\")
SYMBOL_DENSITY_THRESHOLD = 0.07
KEYWORD_THRESHOLD = 3

_LINE_COMMENT = re.compile(r"^[ \t]*//", re.MULTILINE)


def _looks_like_json(text: str) -> bool:
    if not ((text.startswith("{") and text.endswith("}")) or (text.startswith("[") and text.endswith("]"))):
        return False
    try:
        json.loads(text)
    except ValueError:
        return False
    return True


def _looks_like_markup(text: str) -> bool:
    return text.startswith("<") and "</" in text and text.endswith(">")


def _looks_like_markdown(text: str) -> bool:
    if any(indicator in text for indicator in MARKDOWN_INDICATORS):
        return True
    if _ORDERED_ITEM.search(text):
        return True
    return _MARKDOWN_PREFIX.match(text) is not None


def count_keywords(text: str) -> int:
    """Number of distinct programming keywords appearing as whole tokens."""
    lowered = text.lower()
    return sum(1 for pattern in _KEYWORD_PATTERNS.values() if pattern.search(lowered))


def symbol_density(text: str) -> float:
    if not text:
        return 0.0
    return sum(1 for ch in text if ch in CODE_SYMBOLS) / len(text)


def _has_comment_markers(text: str) -> bool:
    if "/*" in text and "*/" in text:
        return True
    return _LINE_COMMENT.search(text) is not None


def classify(text: str) -> DisplayMode:
    """Classify text as PLAIN, CODE or MARKDOWN. Never returns AUTO."""
    trimmed = text.strip()
    if len(trimmed) < CLASSIFY_MIN_LENGTH:
        return DisplayMode.PLAIN

    if _looks_like_json(trimmed) or _looks_like_markup(trimmed):
        return DisplayMode.CODE
    if trimmed.startswith("#!"):
        return DisplayMode.CODE

    if _looks_like_markdown(trimmed):
        return DisplayMode.MARKDOWN

    if count_keywords(trimmed) >= KEYWORD_THRESHOLD:
        return DisplayMode.CODE
    if symbol_density(trimmed) > SYMBOL_DENSITY_THRESHOLD:
        return DisplayMode.CODE
    if _has_comment_markers(trimmed):
        return DisplayMode.CODE

    return DisplayMode.PLAIN


def resolve_display_mode(entry: Entry) -> DisplayMode:
    """The mode an entry renders with; AUTO is classified from its text."""
    if entry.display_mode != DisplayMode.AUTO:
        return entry.display_mode
    text = entry.content.detail_text
    if text is None:
        text = entry.content.preview_text
    return classify(text)
