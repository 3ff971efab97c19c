from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List
import logging

from shelfmate.core.auth import RequestContext, require_role
from shelfmate.core.config import settings
from shelfmate.database import get_db
from shelfmate.schemas.book import BookResponse, BulkAddRequest, BulkAddResponse
from shelfmate.schemas.book_import import (
    ExistingBookSummary,
    ImportConfirmRequest,
    ImportConfirmResponse,
    ImportPreviewItem,
    ImportPreviewRequest,
    ImportPreviewResponse,
)
from shelfmate.services import book_import
from shelfmate.services.book_import import ImportValidationError
from shelfmate.services.catalog_store import SqlCatalogStore
from shelfmate.utils.timing import now_ms, log_elapsed

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/books", tags=["books"])


def _preview_item(result) -> ImportPreviewItem:
    existing = None
    if result.existing is not None:
        existing = ExistingBookSummary(
            id=result.existing.id,
            title=result.existing.title,
            author=result.existing.author,
            reading_level=result.existing.reading_level,
        )
    return ImportPreviewItem(imported_book=result.candidate, existing_book=existing)


@router.get("", response_model=List[BookResponse])
def get_library_books(
    ctx: RequestContext = Depends(require_role("readonly")),
    db: Session = Depends(get_db),
):
    """Books currently available in the caller's organization."""
    try:
        books = SqlCatalogStore(db).fetch_organization_books(ctx.organization_id)
    except Exception:
        logger.exception("Failed to fetch library books for org %s", ctx.organization_id)
        raise HTTPException(status_code=500, detail="Failed to fetch books")

    result: List[BookResponse] = []
    for book in books:
        try:
            result.append(BookResponse.model_validate(book))
        except ValueError as e:
            # Skip rows that don't serialize, keep the rest of the list
            logger.warning(f"Error serializing book {book.id} ({book.title}): {repr(e)}")
            continue
    return result


@router.post("/bulk", response_model=BulkAddResponse, status_code=status.HTTP_201_CREATED)
def bulk_add_books(
    payload: BulkAddRequest,
    ctx: RequestContext = Depends(require_role("teacher")),
    db: Session = Depends(get_db),
):
    """Add books to the catalog, skipping duplicates of existing entries."""
    try:
        return book_import.bulk_add(SqlCatalogStore(db), payload.books)
    except ImportValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.post("/import/preview", response_model=ImportPreviewResponse)
def preview_book_import(
    payload: ImportPreviewRequest,
    ctx: RequestContext = Depends(require_role("teacher")),
    db: Session = Depends(get_db),
):
    """
    Classify imported books against the catalog without writing anything.
    Categories: matched, possible_matches, new_books, conflicts, already_in_library.
    """
    t0 = now_ms()
    try:
        preview = book_import.preview_import(SqlCatalogStore(db), ctx.organization_id, payload.books)
    except ImportValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    if settings.DEBUG:
        log_elapsed(t0, f"org={ctx.organization_id} import_preview n={len(payload.books)}", logger.debug)

    return ImportPreviewResponse(
        matched=[_preview_item(r) for r in preview.matched],
        possible_matches=[_preview_item(r) for r in preview.possible_matches],
        new_books=[_preview_item(r) for r in preview.new_books],
        conflicts=[_preview_item(r) for r in preview.conflicts],
        already_in_library=[_preview_item(r) for r in preview.already_in_library],
        summary=preview.summary,
    )


@router.post("/import/confirm", response_model=ImportConfirmResponse, response_model_exclude_none=True)
def confirm_book_import(
    payload: ImportConfirmRequest,
    ctx: RequestContext = Depends(require_role("teacher")),
    db: Session = Depends(get_db),
):
    """
    Apply confirmed import decisions. Always reports per-operation failures
    in `errors` instead of failing the request; `success` is false when any
    operation failed.
    """
    t0 = now_ms()
    try:
        result = book_import.confirm_import(
            SqlCatalogStore(db),
            ctx.organization_id,
            matched=payload.matched,
            new_books=payload.new_books,
            conflicts=payload.conflicts,
        )
    except ImportValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    if settings.DEBUG:
        log_elapsed(t0, f"org={ctx.organization_id} import_confirm", logger.debug)

    return ImportConfirmResponse(
        linked=result.linked,
        created=result.created,
        updated=result.updated,
        errors=[e.to_dict() for e in result.errors] or None,
        success=result.success,
    )
