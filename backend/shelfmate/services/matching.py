"""
Book record matching: exact, fuzzy and duplicate decisions.

Records may be ORM rows, pydantic models or plain mappings; only `title` and
`author` are read.
"""
from typing import Any, Iterable, Optional

from shelfmate.core.config import settings
from shelfmate.services.string_similarity import normalize, similarity


def _field(record: Any, name: str) -> Optional[str]:
    if isinstance(record, dict):
        return record.get(name)
    return getattr(record, name, None)


def is_exact_match(a: Optional[str], b: Optional[str]) -> bool:
    return normalize(a) == normalize(b)


def is_fuzzy_match(candidate: Any, existing: Any, threshold: Optional[float] = None) -> bool:
    """
    Title similarity must clear the threshold. Authors then match when either
    is missing, when one contains the other ("tolkien" in "jrr tolkien"), or
    when their similarity also clears the threshold.
    """
    if threshold is None:
        threshold = settings.FUZZY_MATCH_THRESHOLD

    if similarity(_field(candidate, "title"), _field(existing, "title")) < threshold:
        return False

    author_a = normalize(_field(candidate, "author"))
    author_b = normalize(_field(existing, "author"))

    if not author_a or not author_b:
        return True

    if author_a in author_b or author_b in author_a:
        return True

    return similarity(author_a, author_b) >= threshold


# ----------------------------
# Duplicate detection (bulk add)
# ----------------------------

def is_same_book(new_book: Any, existing: Any) -> bool:
    if normalize(_field(new_book, "title")) != normalize(_field(existing, "title")):
        return False

    new_author = normalize(_field(new_book, "author"))
    existing_author = normalize(_field(existing, "author"))
    if new_author and existing_author:
        return new_author == existing_author
    # A missing author could still be the same book; reject rather than duplicate
    return True


def is_duplicate(new_book: Any, existing_books: Iterable[Any]) -> bool:
    return any(is_same_book(new_book, existing) for existing in existing_books)
