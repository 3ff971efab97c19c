"""Tests for classifying import candidates against the catalog."""
import pytest

from shelfmate.models import Book
from shelfmate.schemas.book_import import ImportCandidate
from shelfmate.services import import_reconciler
from shelfmate.services.import_reconciler import (
    AlreadyInLibrary,
    Conflict,
    MatchCategory,
    Matched,
    NewBook,
    PossibleMatch,
    classify_candidate,
    reconcile,
)


@pytest.fixture
def catalog() -> list[Book]:
    return [
        Book(id="book-bfg", title="The BFG", author="Roald Dahl", reading_level="3.0"),
        Book(id="book-matilda", title="Matilda", author="Roald Dahl", reading_level="3.0"),
        Book(id="book-hobbit", title="The Hobbit", author="J.R.R. Tolkien", reading_level=None),
    ]


def test_already_in_library(catalog):
    candidate = ImportCandidate(title="Matilda", author="Roald Dahl", reading_level="3.0")
    result = classify_candidate(candidate, catalog, {"book-matilda"})
    assert isinstance(result, AlreadyInLibrary)
    assert result.category == MatchCategory.ALREADY_IN_LIBRARY
    assert result.existing.id == "book-matilda"


def test_already_in_library_wins_over_level_conflict(catalog):
    candidate = ImportCandidate(title="Matilda", author="Roald Dahl", reading_level="4.5")
    result = classify_candidate(candidate, catalog, {"book-matilda"})
    assert isinstance(result, AlreadyInLibrary)


def test_conflict_on_different_reading_level(catalog):
    candidate = ImportCandidate(title="Matilda", author="Roald Dahl", reading_level="4.5")
    result = classify_candidate(candidate, catalog, set())
    assert isinstance(result, Conflict)
    assert result.existing.id == "book-matilda"
    assert result.details.existing_reading_level == "3.0"
    assert result.details.imported_reading_level == "4.5"


def test_matched_when_candidate_has_no_level(catalog):
    candidate = ImportCandidate(title="Matilda", author="Roald Dahl")
    result = classify_candidate(candidate, catalog, set())
    assert isinstance(result, Matched)
    assert result.existing.id == "book-matilda"


def test_matched_when_existing_has_no_level(catalog):
    candidate = ImportCandidate(title="the hobbit", author="J.R.R. Tolkien", reading_level="5.0")
    result = classify_candidate(candidate, catalog, set())
    assert isinstance(result, Matched)


def test_exact_title_with_missing_author_is_matched(catalog):
    candidate = ImportCandidate(title="THE BFG!")
    result = classify_candidate(candidate, catalog, set())
    assert isinstance(result, Matched)
    assert result.existing.id == "book-bfg"


def test_possible_match_on_typo(catalog):
    candidate = ImportCandidate(title="The Hobit", author="Tolkien")
    result = classify_candidate(candidate, catalog, set())
    assert isinstance(result, PossibleMatch)
    assert result.existing.id == "book-hobbit"


def test_same_title_different_author_is_not_exact(catalog):
    # Exact title, incompatible author; fuzzy also rejects the author
    candidate = ImportCandidate(title="Matilda", author="Someone Else")
    result = classify_candidate(candidate, catalog, set())
    assert isinstance(result, NewBook)


def test_new_book(catalog):
    result = classify_candidate(ImportCandidate(title="Some Totally New Title"), catalog, set())
    assert isinstance(result, NewBook)
    assert result.existing is None
    assert result.category == MatchCategory.NEW_BOOK


def test_reconcile_categories_and_summary(catalog):
    candidates = [
        ImportCandidate(title="The BFG", author="Roald Dahl", reading_level="3.0"),
        ImportCandidate(title="The Hobit", author="Tolkien"),
        ImportCandidate(title="New Book", author="New Author"),
        ImportCandidate(title="Matilda", author="Roald Dahl", reading_level="5.0"),
        ImportCandidate(title="   ", author="Whitespace"),
        ImportCandidate(author="Author Only"),
    ]
    preview = reconcile(candidates, catalog, set())

    assert [r.candidate.title for r in preview.matched] == ["The BFG"]
    assert [r.existing.title for r in preview.possible_matches] == ["The Hobbit"]
    assert [r.candidate.title for r in preview.new_books] == ["New Book"]
    assert [r.candidate.reading_level for r in preview.conflicts] == ["5.0"]
    assert preview.already_in_library == []
    assert preview.summary == {
        "total": 4,
        "matched": 1,
        "possible_matches": 1,
        "new_books": 1,
        "conflicts": 1,
        "already_in_library": 0,
    }


def test_reconcile_keeps_input_order_within_category(catalog):
    candidates = [
        ImportCandidate(title="Zebra Tales"),
        ImportCandidate(title="Apple Stories"),
        ImportCandidate(title="Middle Book"),
    ]
    preview = reconcile(candidates, catalog, set())
    assert [r.candidate.title for r in preview.new_books] == ["Zebra Tales", "Apple Stories", "Middle Book"]


def test_reconcile_does_not_mutate_inputs(catalog):
    linked = {"book-bfg"}
    snapshot = [(b.id, b.title, b.author, b.reading_level) for b in catalog]

    reconcile([ImportCandidate(title="The BFG", author="Roald Dahl", reading_level="9.9")], catalog, linked)

    assert linked == {"book-bfg"}
    assert [(b.id, b.title, b.author, b.reading_level) for b in catalog] == snapshot


def test_reconcile_skips_candidates_that_fail(catalog, monkeypatch):
    original = import_reconciler.classify_candidate

    def flaky(candidate, *args, **kwargs):
        if candidate.title == "Broken":
            raise TypeError("boom")
        return original(candidate, *args, **kwargs)

    monkeypatch.setattr(import_reconciler, "classify_candidate", flaky)

    preview = reconcile(
        [ImportCandidate(title="Broken"), ImportCandidate(title="Fine New Book")],
        catalog,
        set(),
    )
    assert [r.candidate.title for r in preview.new_books] == ["Fine New Book"]
    assert preview.summary["total"] == 1


def test_punctuation_only_titles_are_skipped():
    catalog = [Book(id="book-marks", title="???", author=None)]
    preview = reconcile([ImportCandidate(title="!!!"), ImportCandidate(title="...")], catalog, set())
    assert preview.summary["total"] == 0
    assert preview.matched == []
