import re
import unicodedata

_WS_RE = re.compile(r"\s+")
_SLUG_RE = re.compile(r"[^a-z0-9]+")
_SENTENCE_SPLIT_RE = re.compile(r"(?<=[.!?])\s+")
# Style-sheet and XML residue that Word leaks into exported paragraphs
_LEAKAGE_RE = re.compile(
    r"[{}#@;]|mso|vml|word\s*document|lsdexception|colorschememapping|themedata|editdata|filelist|xml",
    re.I,
)

ELLIPSIS = "…"


def collapse_whitespace(s: str) -> str:
    return _WS_RE.sub(" ", s or "").strip()


def slugify(text: str) -> str:
    """Lowercase, NFKD-normalized slug: non-alphanumeric runs become '-'."""
    s = unicodedata.normalize("NFKD", (text or "").lower())
    return _SLUG_RE.sub("-", s).strip("-")


def split_sentences(text: str) -> list[str]:
    return [s for s in _SENTENCE_SPLIT_RE.split(text) if s]


def truncate(text: str, limit: int) -> str:
    """Cut text longer than ``limit`` to ``limit - 3`` chars plus an ellipsis."""
    if len(text) <= limit:
        return text
    return text[: limit - 3].rstrip() + ELLIPSIS


def is_boilerplate(text: str, min_chars: int = 40, min_letter_ratio: float = 0.5) -> bool:
    if len(text) < min_chars:
        return True
    if _LEAKAGE_RE.search(text):
        return True
    letters = sum(1 for ch in text if ch.isalpha())
    return letters / max(1, len(text)) < min_letter_ratio
