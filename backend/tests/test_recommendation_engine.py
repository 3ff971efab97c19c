"""
Tests for library recommendations: filtering, scoring, match reasons and the API route.
"""
import pytest
from sqlalchemy.orm import Session

from shelfmate.core.auth import create_access_token
from shelfmate.models import Book, OrgBookSelection
from shelfmate.schemas.recommendation import InferredGenre, ReaderProfile
from shelfmate.services.reader_profile import MalformedGenreIdsError, infer_genres, parse_genre_ids
from shelfmate.services.recommendation_engine import (
    ScoreFactors,
    build_match_reason,
    filter_candidates,
    rank_books,
    score_book,
    with_inferred_genres,
)

ORG_ID = "org-lincoln"


def make_profile(**overrides) -> ReaderProfile:
    data = {
        "student_id": "student-1",
        "name": "Sam",
        "favorite_genre_ids": ["genre-fantasy"],
        "favorite_genre_names": ["Fantasy"],
        "inferred_genres": [InferredGenre(id="genre-mystery", name="Mystery", count=4)],
        "reading_level_min": 2.0,
        "reading_level_max": 4.0,
    }
    data.update(overrides)
    return ReaderProfile(**data)


def book(book_id, title, genre_ids=None, reading_level=None):
    return Book(id=book_id, title=title, author="Author", genre_ids=genre_ids, reading_level=reading_level)


# ----------------------------
# parse_genre_ids / infer_genres
# ----------------------------

@pytest.mark.parametrize("raw,expected", [
    (None, []),
    ("", []),
    ([], []),
    (["genre-a", "genre-b"], ["genre-a", "genre-b"]),
    ('["genre-a", "genre-b"]', ["genre-a", "genre-b"]),
    ("genre-a, genre-b,", ["genre-a", "genre-b"]),
])
def test_parse_genre_ids(raw, expected):
    assert parse_genre_ids(raw) == expected


@pytest.mark.parametrize("raw", ['["genre-a",', '[{"a": 1}]', [1, 2], {"a": 1}, 42])
def test_parse_genre_ids_rejects_malformed(raw):
    with pytest.raises(MalformedGenreIdsError):
        parse_genre_ids(raw)


def test_infer_genres_takes_top_three_then_drops_unknown():
    names = {"genre-a": "A", "genre-b": "B", "genre-d": "D"}
    history = [
        book("1", "One", ["genre-a", "book-xyz"]),
        book("2", "Two", ["genre-a", "book-xyz", "genre-b"]),
        book("3", "Three", '["genre-a", "book-xyz", "genre-b"]'),
        book("4", "Four", "genre-d"),
        book("5", "Five", [7]),
    ]
    inferred = infer_genres(history, names)

    # book-xyz is in the top three but unknown; genre-d ranks fourth
    assert inferred == [
        {"id": "genre-a", "name": "A", "count": 3},
        {"id": "genre-b", "name": "B", "count": 2},
    ]


# ----------------------------
# Filtering
# ----------------------------

def test_filter_drops_read_disliked_and_out_of_range_books():
    profile = make_profile(read_book_ids=["read"], dislikes=["Scary", "  "])
    books = [
        book("read", "Already Read", reading_level="3.0"),
        book("scary", "A Scary Night", reading_level="3.0"),
        book("low", "Too Easy", reading_level="1.5"),
        book("high", "Too Hard", reading_level="4.5"),
        book("edge", "On The Edge", reading_level="4.0"),
        book("no-level", "Unlevelled"),
        book("text-level", "Lexile Labelled", reading_level="AD520L"),
    ]
    kept = [b.id for b in filter_candidates(books, profile)]
    assert kept == ["edge", "no-level", "text-level"]


def test_filter_applies_each_bound_independently():
    books = [book("a", "A", reading_level="1.0"), book("b", "B", reading_level="9.0")]
    only_min = make_profile(reading_level_min=2.0, reading_level_max=None)
    only_max = make_profile(reading_level_min=None, reading_level_max=2.0)

    assert [b.id for b in filter_candidates(books, only_min)] == ["b"]
    assert [b.id for b in filter_candidates(books, only_max)] == ["a"]


# ----------------------------
# Scoring and ranking
# ----------------------------

def test_score_components():
    profile = make_profile()

    score, factors = score_book(book("1", "F", ["genre-fantasy"], "3.0"), profile)
    assert score == 3 + 1
    assert factors.favorite_genre_ids == ["genre-fantasy"]
    assert factors.level_centered

    score, factors = score_book(book("2", "M", ["genre-mystery"], "2.1"), profile)
    assert score == 2
    assert not factors.level_centered

    score, _ = score_book(book("3", "Both", ["genre-fantasy", "genre-mystery"]), profile)
    assert score == 5


def test_favorite_genre_outranks_inferred_genre():
    profile = make_profile()
    books = [
        book("mystery", "Mystery Book", ["genre-mystery"], "3.0"),
        book("fantasy", "Fantasy Book", ["genre-fantasy"], "3.0"),
    ]
    ranked = rank_books(books, profile, {"genre-fantasy": "Fantasy", "genre-mystery": "Mystery"})

    assert [r.id for r in ranked] == ["fantasy", "mystery"]
    assert ranked[0].match_reason == "Matches favorite genre: Fantasy"
    assert ranked[1].match_reason == "Similar to books they've read: Mystery"


def test_rank_is_stable_and_limited():
    profile = make_profile(favorite_genre_ids=[], inferred_genres=[])
    books = [book(f"b{i:02d}", f"Book {i}") for i in range(15)]

    ranked = rank_books(books, profile, {}, limit=10)

    assert len(ranked) == 10
    assert [r.id for r in ranked] == [f"b{i:02d}" for i in range(10)]
    assert all(r.match_reason == "Matches reading level" for r in ranked)


def test_unknown_genre_ids_are_dropped_from_output():
    profile = make_profile()
    ranked = rank_books([book("1", "X", ["genre-fantasy", "book-123"])], profile, {"genre-fantasy": "Fantasy"})
    assert ranked[0].genres == ["Fantasy"]


def test_malformed_genre_data_skips_only_that_book():
    profile = make_profile()
    books = [book("bad", "Bad Data", "[not json"), book("good", "Good", ["genre-fantasy"])]
    ranked = rank_books(books, profile, {"genre-fantasy": "Fantasy"})
    assert [r.id for r in ranked] == ["good"]


def test_match_reason_falls_back_when_names_unknown():
    assert build_match_reason(ScoreFactors(favorite_genre_ids=["g"]), {}) == "Matches a favorite genre"
    assert build_match_reason(ScoreFactors(inferred_genre_ids=["g"]), {}) == "Similar to books they've read"
    assert build_match_reason(ScoreFactors(level_centered=True), {}) == "Matches reading level"


# ----------------------------
# API
# ----------------------------

@pytest.fixture
def library(db: Session, genres):
    books = [
        Book(id="lib-fantasy", title="Dragon School", genre_ids=["genre-fantasy"], reading_level="3.0"),
        Book(id="lib-mystery", title="The Missing Key", genre_ids=["genre-mystery"], reading_level="3.5"),
        Book(id="lib-read", title="Already Read", genre_ids=["genre-fantasy"], reading_level="3.0"),
        Book(id="lib-other-org", title="Not Ours", genre_ids=["genre-fantasy"], reading_level="3.0"),
        Book(id="lib-unavailable", title="Checked Out", genre_ids=["genre-fantasy"], reading_level="3.0"),
    ]
    db.add_all(books)
    db.add_all([
        OrgBookSelection(organization_id=ORG_ID, book_id="lib-fantasy"),
        OrgBookSelection(organization_id=ORG_ID, book_id="lib-mystery"),
        OrgBookSelection(organization_id=ORG_ID, book_id="lib-read"),
        OrgBookSelection(organization_id=ORG_ID, book_id="lib-unavailable", is_available=False),
        OrgBookSelection(organization_id="org-other", book_id="lib-other-org"),
    ])
    db.commit()
    return books


def test_recommendations_endpoint(client, library):
    token = create_access_token(user_id="user-1", organization_id=ORG_ID, role="readonly")
    profile = make_profile(read_book_ids=["lib-read"]).model_dump()

    response = client.post(
        "/api/recommendations",
        json=profile,
        headers={"Authorization": f"Bearer {token}"},
    )
    assert response.status_code == 200
    body = response.json()

    assert [b["id"] for b in body["books"]] == ["lib-fantasy", "lib-mystery"]
    assert body["books"][0]["genres"] == ["Fantasy"]
    assert body["books"][0]["score"] == 4
    assert body["profile_summary"]["books_read_count"] == 1
    assert body["profile_summary"]["inferred_genres"] == ["Mystery"]


def test_recommendations_require_auth(client):
    response = client.post("/api/recommendations", json=make_profile().model_dump())
    assert response.status_code == 401


def test_inferred_genres_filled_from_reading_history(client, library):
    token = create_access_token(user_id="user-1", organization_id=ORG_ID, role="readonly")
    profile = make_profile(
        favorite_genre_ids=[],
        favorite_genre_names=[],
        inferred_genres=[],
        read_book_ids=["lib-read"],
    ).model_dump()

    response = client.post(
        "/api/recommendations",
        json=profile,
        headers={"Authorization": f"Bearer {token}"},
    )
    assert response.status_code == 200
    body = response.json()

    assert body["books"][0]["id"] == "lib-fantasy"
    assert body["books"][0]["match_reason"] == "Similar to books they've read: Fantasy"
    assert body["profile_summary"]["inferred_genres"] == ["Fantasy"]


def test_with_inferred_genres_keeps_caller_supplied_genres():
    profile = make_profile(read_book_ids=["1"])
    history = [book("1", "One", ["genre-fantasy"])]
    assert with_inferred_genres(profile, history, {"genre-fantasy": "Fantasy"}) is profile
