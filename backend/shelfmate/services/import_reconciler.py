"""
Import reconciliation: classify each import candidate against the catalog.

Every candidate lands in exactly one category:

    AlreadyInLibrary  exact catalog match the organization already links to
    Conflict          exact match, not linked, reading levels differ
    Matched           exact match, not linked, no level difference
    PossibleMatch     no exact match, but a fuzzy one
    NewBook           nothing resembling it in the catalog

Classification is read-only; nothing here touches the database.
"""
import enum
import logging
from dataclasses import dataclass, field
from typing import Any, ClassVar, Collection, Dict, Iterable, List, Optional, Sequence, Union

from shelfmate.services.matching import is_exact_match, is_fuzzy_match
from shelfmate.services.string_similarity import normalize

logger = logging.getLogger(__name__)


class MatchCategory(str, enum.Enum):
    MATCHED = "matched"
    POSSIBLE_MATCH = "possible_match"
    NEW_BOOK = "new_book"
    CONFLICT = "conflict"
    ALREADY_IN_LIBRARY = "already_in_library"


@dataclass(frozen=True)
class LevelConflict:
    existing_reading_level: str
    imported_reading_level: str


@dataclass(frozen=True)
class Matched:
    category: ClassVar[MatchCategory] = MatchCategory.MATCHED
    candidate: Any
    existing: Any


@dataclass(frozen=True)
class PossibleMatch:
    category: ClassVar[MatchCategory] = MatchCategory.POSSIBLE_MATCH
    candidate: Any
    existing: Any


@dataclass(frozen=True)
class NewBook:
    category: ClassVar[MatchCategory] = MatchCategory.NEW_BOOK
    candidate: Any
    existing: None = None


@dataclass(frozen=True)
class Conflict:
    category: ClassVar[MatchCategory] = MatchCategory.CONFLICT
    candidate: Any
    existing: Any
    details: LevelConflict


@dataclass(frozen=True)
class AlreadyInLibrary:
    category: ClassVar[MatchCategory] = MatchCategory.ALREADY_IN_LIBRARY
    candidate: Any
    existing: Any


MatchResult = Union[Matched, PossibleMatch, NewBook, Conflict, AlreadyInLibrary]


@dataclass
class ImportPreview:
    matched: List[Matched] = field(default_factory=list)
    possible_matches: List[PossibleMatch] = field(default_factory=list)
    new_books: List[NewBook] = field(default_factory=list)
    conflicts: List[Conflict] = field(default_factory=list)
    already_in_library: List[AlreadyInLibrary] = field(default_factory=list)

    def add(self, result: MatchResult) -> None:
        bucket = {
            MatchCategory.MATCHED: self.matched,
            MatchCategory.POSSIBLE_MATCH: self.possible_matches,
            MatchCategory.NEW_BOOK: self.new_books,
            MatchCategory.CONFLICT: self.conflicts,
            MatchCategory.ALREADY_IN_LIBRARY: self.already_in_library,
        }[result.category]
        bucket.append(result)

    @property
    def summary(self) -> Dict[str, int]:
        counts = {
            "matched": len(self.matched),
            "possible_matches": len(self.possible_matches),
            "new_books": len(self.new_books),
            "conflicts": len(self.conflicts),
            "already_in_library": len(self.already_in_library),
        }
        return {"total": sum(counts.values()), **counts}


def _get(record: Any, name: str) -> Optional[str]:
    if isinstance(record, dict):
        return record.get(name)
    return getattr(record, name, None)


def has_title(candidate: Any) -> bool:
    # Punctuation-only titles normalize to "" and would match each other
    return bool(normalize(_get(candidate, "title")))


def find_exact_match(candidate: Any, catalog: Iterable[Any]) -> Optional[Any]:
    """First catalog book with the same title and a compatible author."""
    candidate_author = normalize(_get(candidate, "author"))
    for existing in catalog:
        if not is_exact_match(_get(candidate, "title"), _get(existing, "title")):
            continue
        existing_author = normalize(_get(existing, "author"))
        if not candidate_author or not existing_author or candidate_author == existing_author:
            return existing
    return None


def find_fuzzy_match(candidate: Any, catalog: Iterable[Any], threshold: Optional[float] = None) -> Optional[Any]:
    for existing in catalog:
        if is_fuzzy_match(candidate, existing, threshold):
            return existing
    return None


def classify_candidate(
    candidate: Any,
    catalog: Sequence[Any],
    linked_book_ids: Collection[str],
    threshold: Optional[float] = None,
) -> MatchResult:
    existing = find_exact_match(candidate, catalog)

    if existing is not None:
        if _get(existing, "id") in linked_book_ids:
            return AlreadyInLibrary(candidate=candidate, existing=existing)

        imported_level = _get(candidate, "reading_level")
        existing_level = _get(existing, "reading_level")
        if imported_level and existing_level and imported_level != existing_level:
            return Conflict(
                candidate=candidate,
                existing=existing,
                details=LevelConflict(
                    existing_reading_level=existing_level,
                    imported_reading_level=imported_level,
                ),
            )
        return Matched(candidate=candidate, existing=existing)

    fuzzy = find_fuzzy_match(candidate, catalog, threshold)
    if fuzzy is not None:
        return PossibleMatch(candidate=candidate, existing=fuzzy)

    return NewBook(candidate=candidate)


def reconcile(
    candidates: Iterable[Any],
    catalog: Sequence[Any],
    linked_book_ids: Collection[str],
    threshold: Optional[float] = None,
) -> ImportPreview:
    """
    Classify every titled candidate; order within each category follows input order.

    A candidate that fails to classify is logged and left out so one bad row
    cannot sink the whole preview.
    """
    preview = ImportPreview()
    linked = set(linked_book_ids)

    for index, candidate in enumerate(candidates):
        if not has_title(candidate):
            continue
        try:
            preview.add(classify_candidate(candidate, catalog, linked, threshold))
        except Exception as e:
            logger.warning(
                "Skipping import candidate #%d (%r): %r",
                index,
                _get(candidate, "title"),
                e,
            )
            continue

    return preview
