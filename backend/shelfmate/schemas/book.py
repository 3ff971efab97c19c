from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List
from datetime import datetime


class BookResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    author: Optional[str] = None
    genre_ids: Optional[List[str]] = None
    reading_level: Optional[str] = None
    age_range: Optional[str] = None
    description: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class BookCreate(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    title: Optional[str] = None  # rows without a title are skipped, not rejected
    author: Optional[str] = None
    genre_ids: Optional[List[str]] = None
    reading_level: Optional[str] = None
    age_range: Optional[str] = None
    description: Optional[str] = None


class BulkAddRequest(BaseModel):
    books: List[BookCreate]


class SavedBook(BaseModel):
    id: str
    title: str
    author: Optional[str] = None
    genre_ids: List[str] = Field(default_factory=list)
    reading_level: Optional[str] = None
    age_range: Optional[str] = None
    description: Optional[str] = None


class BulkAddResponse(BaseModel):
    imported: int
    duplicates: int
    total: int
    books: List[SavedBook]
