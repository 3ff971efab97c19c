from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import Optional, List


class ImportCandidate(BaseModel):
    # Spreadsheet imports send numeric levels as JSON numbers
    model_config = ConfigDict(coerce_numbers_to_str=True)

    title: Optional[str] = None
    author: Optional[str] = None
    reading_level: Optional[str] = None


class ImportPreviewRequest(BaseModel):
    books: List[ImportCandidate]


class ExistingBookSummary(BaseModel):
    id: str
    title: str
    author: Optional[str] = None
    reading_level: Optional[str] = None


class ImportPreviewItem(BaseModel):
    imported_book: ImportCandidate
    existing_book: Optional[ExistingBookSummary] = None


class ImportPreviewSummary(BaseModel):
    total: int
    matched: int
    possible_matches: int
    new_books: int
    conflicts: int
    already_in_library: int


class ImportPreviewResponse(BaseModel):
    matched: List[ImportPreviewItem]
    possible_matches: List[ImportPreviewItem]
    new_books: List[ImportPreviewItem]
    conflicts: List[ImportPreviewItem]
    already_in_library: List[ImportPreviewItem]
    summary: ImportPreviewSummary


class LinkDecision(BaseModel):
    existing_book_id: str = Field(min_length=1)


class NewBookDecision(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    title: str = Field(min_length=1)
    author: Optional[str] = None
    reading_level: Optional[str] = None

    @model_validator(mode="after")
    def title_not_blank(self):
        if not self.title.strip():
            raise ValueError("title must not be blank")
        return self


class ConflictDecision(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    existing_book_id: str = Field(min_length=1)
    update_reading_level: bool = False
    new_reading_level: Optional[str] = None

    @model_validator(mode="after")
    def level_required_when_updating(self):
        if self.update_reading_level and not (self.new_reading_level or "").strip():
            raise ValueError("new_reading_level is required when update_reading_level is true")
        return self


class ImportConfirmRequest(BaseModel):
    matched: List[LinkDecision] = Field(default_factory=list)
    new_books: List[NewBookDecision] = Field(default_factory=list)
    conflicts: List[ConflictDecision] = Field(default_factory=list)


class BatchErrorItem(BaseModel):
    type: str
    key: str
    error: str


class ImportConfirmResponse(BaseModel):
    linked: int
    created: int
    updated: int
    errors: Optional[List[BatchErrorItem]] = None  # omitted when everything succeeded
    success: bool
