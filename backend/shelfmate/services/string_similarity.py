"""
String similarity helpers for catalog reconciliation.

Two measures live here:
- similarity(): Levenshtein ratio, used for duplicate and fuzzy-match decisions.
- title_similarity(): weighted blend tuned for ranking partial title matches
  (a series name against a specific volume), used when picking metadata
  search results and author candidates.
"""
import re
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

from rapidfuzz.distance import Levenshtein

logger = logging.getLogger(__name__)

_NON_WORD = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")

# Weights for title_similarity()
W_SUBSTRING = 0.5
W_WORDS = 0.3
W_BIGRAMS = 0.2

# Minimum title_similarity() for a metadata search result to be accepted
BEST_MATCH_THRESHOLD = 0.3


def normalize(value: Optional[str]) -> str:
    """Lowercase, trim, drop punctuation and collapse whitespace."""
    if not value:
        return ""
    text = _NON_WORD.sub("", value.lower().strip())
    return _WHITESPACE.sub(" ", text).strip()


def levenshtein(a: str, b: str) -> int:
    """Edit distance with unit cost for insert, delete and substitute."""
    return Levenshtein.distance(a or "", b or "")


def similarity(a: Optional[str], b: Optional[str]) -> float:
    """Levenshtein ratio of the normalized strings, in [0, 1]."""
    norm_a = normalize(a)
    norm_b = normalize(b)

    if norm_a == norm_b:
        return 1.0
    if not norm_a or not norm_b:
        return 0.0

    return Levenshtein.normalized_similarity(norm_a, norm_b)


def _bigrams(text: str) -> set:
    return {
        text[i:i + 2]
        for i in range(len(text) - 1)
        if len(text[i:i + 2].strip()) == 2
    }


def title_similarity(a: Optional[str], b: Optional[str]) -> float:
    """
    Blend of substring coverage, word overlap and character-bigram Jaccard.

    Substring coverage dominates so that "harry potter" scores well against
    "harry potter and the chamber of secrets".
    """
    norm_a = normalize(a)
    norm_b = normalize(b)

    if not norm_a or not norm_b:
        return 0.0
    if norm_a == norm_b:
        return 1.0

    words_a = norm_a.split(" ")
    words_b = set(norm_b.split(" "))
    overlap = sum(1 for word in words_a if word in words_b)
    word_score = overlap / max(len(words_a), len(words_b))

    shorter, longer = sorted((norm_a, norm_b), key=len)
    substring_score = len(shorter) / len(longer) if shorter in longer else 0.0

    bigrams_a = _bigrams(norm_a)
    bigrams_b = _bigrams(norm_b)
    char_score = 0.0
    if bigrams_a and bigrams_b:
        intersect = len(bigrams_a & bigrams_b)
        union = len(bigrams_a | bigrams_b)
        char_score = intersect / union if union else 0.0

    combined = W_SUBSTRING * substring_score + W_WORDS * word_score + W_BIGRAMS * char_score
    return max(0.0, min(1.0, combined))


def _result_authors(result: Mapping[str, Any]) -> List[str]:
    authors = result.get("authors") or []
    if isinstance(authors, str):
        authors = [authors]
    return [author.strip() for author in authors if author and author.strip()]


def find_best_title_match(
    title: str,
    results: Iterable[Mapping[str, Any]],
) -> Optional[Dict[str, Any]]:
    """
    Pick the metadata search result that best matches `title`.

    Results that name an author win over results without one; ties are broken
    by title_similarity(). Returns None when nothing clears BEST_MATCH_THRESHOLD.
    """
    scored = []
    for result in results:
        scored.append({
            **result,
            "similarity": title_similarity(title, result.get("title") or ""),
            "has_author": bool(_result_authors(result)),
        })

    if not scored:
        return None

    scored.sort(key=lambda r: (not r["has_author"], -r["similarity"]))
    best = scored[0]
    if best["similarity"] > BEST_MATCH_THRESHOLD:
        return best
    return None


def rank_author_candidates(
    title: str,
    results: Iterable[Mapping[str, Any]],
    limit: int = 3,
) -> List[Dict[str, Any]]:
    """
    Distinct author names from search results, best title match first.

    Each candidate is {"name", "similarity", "source_title"}; an author seen in
    several results keeps its highest similarity.
    """
    best_by_author: Dict[str, Dict[str, Any]] = {}
    for result in results:
        score = title_similarity(title, result.get("title") or "")
        for author in _result_authors(result):
            key = normalize(author)
            current = best_by_author.get(key)
            if current is None or score > current["similarity"]:
                best_by_author[key] = {
                    "name": author,
                    "similarity": score,
                    "source_title": result.get("title"),
                }

    ranked = sorted(best_by_author.values(), key=lambda c: c["similarity"], reverse=True)
    return ranked[:limit]
