from typing import Any, Dict, List, Optional, Sequence, Tuple
from dataclasses import dataclass, field
import logging

from shelfmate.core.config import settings
from shelfmate.models import Book
from shelfmate.schemas.recommendation import (
    InferredGenre,
    ProfileSummary,
    ReaderProfile,
    RecommendationsResponse,
    RecommendedBook,
)
from shelfmate.services.catalog_store import CatalogStore
from shelfmate.services.reader_profile import MalformedGenreIdsError, infer_genres, parse_genre_ids
from shelfmate.utils.timing import now_ms, log_elapsed

logger = logging.getLogger(__name__)


# Score weights
W_FAVORITE_GENRE = 3
W_INFERRED_GENRE = 2
W_LEVEL_CENTER = 1

# Fraction of the range half-width that counts as "centred"
LEVEL_CENTER_BAND = 0.5


@dataclass
class ScoreFactors:
    """Why a book scored what it did; drives the match reason."""
    favorite_genre_ids: List[str] = field(default_factory=list)
    inferred_genre_ids: List[str] = field(default_factory=list)
    level_centered: bool = False

    @property
    def total(self) -> int:
        return (
            W_FAVORITE_GENRE * len(self.favorite_genre_ids)
            + W_INFERRED_GENRE * len(self.inferred_genre_ids)
            + (W_LEVEL_CENTER if self.level_centered else 0)
        )


def parse_reading_level(value: Any) -> Optional[float]:
    """Numeric reading level, or None for blank and free-text levels."""
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).strip()
    if not text:
        return None
    try:
        return float(text)
    except ValueError:
        return None


def _within_level_range(book: Book, profile: ReaderProfile) -> bool:
    # A book without a usable numeric level is never excluded
    level = parse_reading_level(book.reading_level)
    if level is None:
        return True
    if profile.reading_level_min is not None and level < profile.reading_level_min:
        return False
    if profile.reading_level_max is not None and level > profile.reading_level_max:
        return False
    return True


def filter_candidates(books: Sequence[Book], profile: ReaderProfile) -> List[Book]:
    """Drop already-read books, disliked titles and books outside the level range."""
    read_ids = set(profile.read_book_ids)
    dislikes = [term.lower() for term in profile.dislikes if term and term.strip()]

    candidates = []
    for book in books:
        if book.id in read_ids:
            continue
        title = (book.title or "").lower()
        if any(term in title for term in dislikes):
            continue
        if not _within_level_range(book, profile):
            continue
        candidates.append(book)
    return candidates


def score_book(book: Book, profile: ReaderProfile) -> Tuple[int, ScoreFactors]:
    """
    +3 per favorite genre, else +2 per inferred genre, +1 when the book sits in
    the centred half of the reader's level range.

    Raises MalformedGenreIdsError when the book's genre data can't be read.
    """
    factors = ScoreFactors()
    favorites = set(profile.favorite_genre_ids)
    inferred = {genre.id for genre in profile.inferred_genres}

    for genre_id in parse_genre_ids(book.genre_ids):
        if genre_id in favorites:
            factors.favorite_genre_ids.append(genre_id)
        elif genre_id in inferred:
            factors.inferred_genre_ids.append(genre_id)

    level = parse_reading_level(book.reading_level)
    if (
        level is not None
        and profile.reading_level_min is not None
        and profile.reading_level_max is not None
    ):
        center = (profile.reading_level_min + profile.reading_level_max) / 2
        half_width = (profile.reading_level_max - profile.reading_level_min) / 2
        factors.level_centered = abs(level - center) <= half_width * LEVEL_CENTER_BAND

    return factors.total, factors


def build_match_reason(factors: ScoreFactors, genre_names: Dict[str, str]) -> str:
    """Favorite genre beats reading history, which beats a plain level match."""
    if factors.favorite_genre_ids:
        names = [genre_names[g] for g in factors.favorite_genre_ids if g in genre_names]
        if names:
            return f"Matches favorite genre: {names[0]}"
        return "Matches a favorite genre"

    if factors.inferred_genre_ids:
        names = [genre_names[g] for g in factors.inferred_genre_ids if g in genre_names]
        if names:
            return f"Similar to books they've read: {names[0]}"
        return "Similar to books they've read"

    return "Matches reading level"


def rank_books(
    books: Sequence[Book],
    profile: ReaderProfile,
    genre_names: Dict[str, str],
    limit: Optional[int] = None,
) -> List[RecommendedBook]:
    """
    Score, sort (stable, highest first) and trim to `limit`.

    Books whose genre data can't be parsed are logged and skipped.
    """
    limit = limit or settings.RECOMMENDATION_LIMIT

    scored: List[Tuple[int, Book, List[str], ScoreFactors]] = []
    for book in books:
        try:
            score, factors = score_book(book, profile)
            genre_ids = parse_genre_ids(book.genre_ids)
        except MalformedGenreIdsError as e:
            logger.warning(f"Skipping book {book.id} ({book.title}): {e}")
            continue
        scored.append((score, book, genre_ids, factors))

    scored.sort(key=lambda item: item[0], reverse=True)

    results: List[RecommendedBook] = []
    for score, book, genre_ids, factors in scored[:limit]:
        results.append(RecommendedBook(
            id=book.id,
            title=book.title,
            author=book.author,
            reading_level=book.reading_level,
            age_range=book.age_range,
            description=book.description,
            genres=[genre_names[g] for g in genre_ids if g in genre_names],
            score=score,
            match_reason=build_match_reason(factors, genre_names),
        ))
    return results


def build_profile_summary(profile: ReaderProfile) -> ProfileSummary:
    return ProfileSummary(
        student_id=profile.student_id,
        name=profile.name,
        reading_level_min=profile.reading_level_min,
        reading_level_max=profile.reading_level_max,
        favorite_genres=list(profile.favorite_genre_names),
        inferred_genres=[genre.name for genre in profile.inferred_genres if genre.name],
        books_read_count=len(profile.read_book_ids),
    )


def with_inferred_genres(
    profile: ReaderProfile,
    books: Sequence[Book],
    genre_names: Dict[str, str],
) -> ReaderProfile:
    """Fill inferred_genres from the library books the reader has read, unless the caller sent them."""
    if profile.inferred_genres or not profile.read_book_ids:
        return profile

    read_ids = set(profile.read_book_ids)
    inferred = infer_genres([book for book in books if book.id in read_ids], genre_names)
    if not inferred:
        return profile
    return profile.model_copy(update={"inferred_genres": [InferredGenre(**genre) for genre in inferred]})


def get_library_recommendations(
    store: CatalogStore,
    organization_id: str,
    profile: ReaderProfile,
    limit: Optional[int] = None,
) -> RecommendationsResponse:
    """Rank the organization's available books for one reader."""
    t0 = now_ms()

    books = store.fetch_organization_books(organization_id)
    genre_names = store.fetch_genre_names()
    if settings.DEBUG:
        t0 = log_elapsed(t0, f"org={organization_id} student={profile.student_id} fetch_catalog", logger.debug)

    profile = with_inferred_genres(profile, books, genre_names)
    candidates = filter_candidates(books, profile)
    ranked = rank_books(candidates, profile, genre_names, limit)

    if settings.DEBUG:
        log_elapsed(t0, f"org={organization_id} student={profile.student_id} score_and_rank", logger.debug)

    logger.info(
        "Recommendations for student %s: %d library books, %d candidates, %d returned",
        profile.student_id,
        len(books),
        len(candidates),
        len(ranked),
    )
    return RecommendationsResponse(books=ranked, profile_summary=build_profile_summary(profile))
