"""
Import workflows over the catalog store: preview, confirm and plain bulk add.

Every call recomputes from current store state. Preview reserves nothing, so a
concurrent import can make a category stale; confirm uses upserts so a stale
"matched" decision degrades to a harmless re-link.
"""
import logging
from typing import Any, Dict, List, Optional, Sequence

from shelfmate.services.batch_persistence import (
    BatchOperationResult,
    OperationType,
    build_operations,
    create_operation,
    execute_operations,
)
from shelfmate.services.catalog_store import CatalogStore
from shelfmate.services.import_reconciler import ImportPreview, has_title, reconcile
from shelfmate.services.matching import is_duplicate

logger = logging.getLogger(__name__)


class ImportValidationError(ValueError):
    """Raised for payloads rejected before any catalog access."""
    pass


def preview_import(store: CatalogStore, organization_id: str, candidates: Sequence[Any]) -> ImportPreview:
    if not candidates:
        raise ImportValidationError("Request must contain an array of books")

    if not any(has_title(candidate) for candidate in candidates):
        raise ImportValidationError("No valid books found in request")

    catalog = store.fetch_all_books()
    linked_book_ids = store.fetch_linked_book_ids(organization_id)

    preview = reconcile(candidates, catalog, linked_book_ids)
    logger.info(
        "Import preview for org %s: %s (catalog=%d, linked=%d)",
        organization_id,
        preview.summary,
        len(catalog),
        len(linked_book_ids),
    )
    return preview


def confirm_import(
    store: CatalogStore,
    organization_id: str,
    matched: Sequence[Any] = (),
    new_books: Sequence[Any] = (),
    conflicts: Sequence[Any] = (),
    batch_size: Optional[int] = None,
) -> BatchOperationResult:
    if not matched and not new_books and not conflicts:
        raise ImportValidationError("No import decisions provided")

    operations = build_operations(matched=matched, new_books=new_books, conflicts=conflicts)
    logger.info(
        "Confirming import for org %s: %d matched, %d new, %d conflicts -> %d operations",
        organization_id,
        len(matched),
        len(new_books),
        len(conflicts),
        len(operations),
    )
    return execute_operations(store, organization_id, operations, batch_size)


def bulk_add(store: CatalogStore, books: Sequence[Any], batch_size: Optional[int] = None) -> Dict[str, Any]:
    """
    Add books to the catalog, skipping anything that duplicates an existing
    entry or an earlier book in the same request.
    """
    if not books:
        raise ImportValidationError("Request must contain an array of books")

    valid_books = [book for book in books if has_title(book)]
    if not valid_books:
        raise ImportValidationError("No valid books found in request")

    seen: List[Any] = list(store.fetch_all_books())
    operations = []
    for book in valid_books:
        if is_duplicate(book, seen):
            continue
        seen.append(book)
        operations.append(create_operation(
            title=book.title.strip(),
            author=book.author or None,
            reading_level=book.reading_level or None,
            genre_ids=list(book.genre_ids or []),
            age_range=book.age_range or None,
            description=book.description or None,
        ))

    duplicates = len(valid_books) - len(operations)
    result = execute_operations(store, None, operations, batch_size)

    created_ids = set(result.created_book_ids)
    saved = [
        {"id": op.book_id, **op.values}
        for op in operations
        if op.type == OperationType.CREATE and op.book_id in created_ids
    ]

    if result.errors:
        logger.warning("Bulk add: %d books failed to save", len(result.errors))

    logger.info(
        "Bulk add: imported=%d duplicates=%d total=%d",
        len(saved),
        duplicates,
        len(valid_books),
    )
    return {
        "imported": len(saved),
        "duplicates": duplicates,
        "total": len(valid_books),
        "books": saved,
    }
