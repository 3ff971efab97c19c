from pydantic import BaseModel, Field
from typing import Optional, List


class InferredGenre(BaseModel):
    id: str
    name: Optional[str] = None
    count: int = 0


class ReaderProfile(BaseModel):
    """Aggregated reader data supplied by the caller (built from session history elsewhere)."""
    student_id: str
    name: Optional[str] = None
    favorite_genre_ids: List[str] = Field(default_factory=list)
    favorite_genre_names: List[str] = Field(default_factory=list)
    inferred_genres: List[InferredGenre] = Field(default_factory=list)
    reading_level_min: Optional[float] = None
    reading_level_max: Optional[float] = None
    dislikes: List[str] = Field(default_factory=list)
    read_book_ids: List[str] = Field(default_factory=list)


class RecommendedBook(BaseModel):
    id: str
    title: str
    author: Optional[str] = None
    reading_level: Optional[str] = None
    age_range: Optional[str] = None
    description: Optional[str] = None
    genres: List[str]
    score: int
    match_reason: str


class ProfileSummary(BaseModel):
    student_id: str
    name: Optional[str] = None
    reading_level_min: Optional[float] = None
    reading_level_max: Optional[float] = None
    favorite_genres: List[str]
    inferred_genres: List[str]
    books_read_count: int


class RecommendationsResponse(BaseModel):
    books: List[RecommendedBook]
    profile_summary: ProfileSummary
