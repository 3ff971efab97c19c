"""
Helpers for the genre side of a reader profile.

Profiles are assembled outside this service; these helpers cover the parts
that depend on how the catalog stores genre ids. When a profile arrives
without inferred genres, recommendation_engine.with_inferred_genres() fills
them in with infer_genres().
"""
import json
import logging
from collections import Counter
from typing import Any, Dict, Iterable, List

logger = logging.getLogger(__name__)


class MalformedGenreIdsError(ValueError):
    pass


def parse_genre_ids(raw: Any) -> List[str]:
    """
    Accepts a list, a JSON array string or a legacy comma-separated string.
    Anything else raises MalformedGenreIdsError.
    """
    if raw is None or raw == "":
        return []

    if isinstance(raw, (list, tuple)):
        values = raw
    elif isinstance(raw, str):
        text = raw.strip()
        if text.startswith("["):
            try:
                values = json.loads(text)
            except json.JSONDecodeError as e:
                raise MalformedGenreIdsError(f"Invalid genre id list: {raw!r}") from e
        else:
            values = text.split(",")
    else:
        raise MalformedGenreIdsError(f"Unsupported genre id value: {raw!r}")

    if not isinstance(values, list) and not isinstance(values, tuple):
        raise MalformedGenreIdsError(f"Genre ids must be a list: {raw!r}")

    genre_ids = []
    for value in values:
        if not isinstance(value, str):
            raise MalformedGenreIdsError(f"Genre id must be a string: {value!r}")
        if value.strip():
            genre_ids.append(value.strip())
    return genre_ids


def infer_genres(
    read_books: Iterable[Any],
    genre_names: Dict[str, str],
    top_n: int = 3,
) -> List[Dict[str, Any]]:
    """
    Top genres across a reader's history, as [{id, name, count}].

    The top_n most frequent ids are taken first; ids without a known genre
    name are then dropped (legacy rows sometimes hold book ids in genre_ids).
    Unparseable genre data on a book is skipped.
    """
    counts: Counter = Counter()
    for book in read_books:
        try:
            counts.update(parse_genre_ids(getattr(book, "genre_ids", None)))
        except MalformedGenreIdsError as e:
            logger.warning("Ignoring genre data for book %s: %s", getattr(book, "id", None), e)

    return [
        {"id": genre_id, "name": genre_names[genre_id], "count": count}
        for genre_id, count in counts.most_common(top_n)
        if genre_id in genre_names
    ]
