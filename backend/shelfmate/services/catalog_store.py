"""
Catalog read/write interface used by the import and recommendation services.

SqlCatalogStore runs each batch chunk in one transaction with a SAVEPOINT per
operation, so a failing statement is rolled back and reported on its own while
the rest of the chunk commits.
"""
import logging
from datetime import datetime
from typing import Dict, List, Sequence, Set

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from shelfmate.models import Book, Genre, OrgBookSelection
from shelfmate.services.batch_persistence import OperationType, StatementResult, WriteOperation

logger = logging.getLogger(__name__)


class BookNotFoundError(Exception):
    """Raised when an operation references a catalog book that no longer exists."""
    pass


class CatalogStore:
    """Interface consumed by the core services."""

    def fetch_all_books(self) -> List[Book]:
        raise NotImplementedError

    def fetch_linked_book_ids(self, organization_id: str) -> Set[str]:
        raise NotImplementedError

    def fetch_organization_books(self, organization_id: str) -> List[Book]:
        raise NotImplementedError

    def fetch_genre_names(self) -> Dict[str, str]:
        raise NotImplementedError

    def execute_batch(self, organization_id: str, operations: Sequence[WriteOperation]) -> List[StatementResult]:
        raise NotImplementedError


class SqlCatalogStore(CatalogStore):
    def __init__(self, db: Session):
        self.db = db

    # ----------------------------
    # Reads
    # ----------------------------
    def fetch_all_books(self) -> List[Book]:
        return self.db.query(Book).order_by(Book.title).all()

    def fetch_linked_book_ids(self, organization_id: str) -> Set[str]:
        rows = self.db.query(OrgBookSelection.book_id).filter(
            OrgBookSelection.organization_id == organization_id,
            OrgBookSelection.is_available.is_(True),
        ).all()
        return {row.book_id for row in rows}

    def fetch_organization_books(self, organization_id: str) -> List[Book]:
        return (
            self.db.query(Book)
            .join(OrgBookSelection, OrgBookSelection.book_id == Book.id)
            .filter(
                OrgBookSelection.organization_id == organization_id,
                OrgBookSelection.is_available.is_(True),
            )
            .order_by(Book.title)
            .all()
        )

    def fetch_genre_names(self) -> Dict[str, str]:
        rows = self.db.query(Genre).filter(Genre.is_active.is_(True)).all()
        return {genre.id: genre.name for genre in rows}

    # ----------------------------
    # Writes
    # ----------------------------
    def execute_batch(self, organization_id: str, operations: Sequence[WriteOperation]) -> List[StatementResult]:
        results: List[StatementResult] = []
        try:
            for operation in operations:
                try:
                    with self.db.begin_nested():
                        self._apply(organization_id, operation)
                    results.append(StatementResult(success=True))
                except (BookNotFoundError, SQLAlchemyError) as e:
                    logger.warning(
                        "Batch operation failed: type=%s key=%s error=%s",
                        operation.type.value,
                        operation.key,
                        e,
                    )
                    results.append(StatementResult(success=False, error=_describe(e)))
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return results

    def _apply(self, organization_id: str, operation: WriteOperation) -> None:
        if operation.type == OperationType.CREATE:
            self.db.add(Book(id=operation.book_id, **operation.values))
            self.db.flush()
        elif operation.type == OperationType.UPDATE:
            book = self._get_book(operation.book_id)
            book.reading_level = operation.values.get("reading_level")
            book.updated_at = datetime.utcnow()
            self.db.flush()
        elif operation.type == OperationType.CREATE_LINK:
            self._get_book(operation.book_id)
            self.db.add(OrgBookSelection(organization_id=organization_id, book_id=operation.book_id))
            self.db.flush()
        elif operation.type == OperationType.LINK:
            self._get_book(operation.book_id)
            self._upsert_selection(organization_id, operation.book_id)
        else:
            raise ValueError(f"Unknown operation type: {operation.type}")

    def _get_book(self, book_id: str) -> Book:
        book = self.db.get(Book, book_id)
        if book is None:
            raise BookNotFoundError(f"Book with ID {book_id} not found")
        return book

    def _upsert_selection(self, organization_id: str, book_id: str) -> None:
        existing = self._find_selection(organization_id, book_id)
        if existing is None:
            try:
                with self.db.begin_nested():
                    self.db.add(OrgBookSelection(organization_id=organization_id, book_id=book_id))
                    self.db.flush()
                return
            except IntegrityError:
                # Another writer linked it first; fall through to the update
                existing = self._find_selection(organization_id, book_id)
                if existing is None:
                    raise
        existing.is_available = True
        existing.updated_at = datetime.utcnow()
        self.db.flush()

    def _find_selection(self, organization_id: str, book_id: str):
        return self.db.query(OrgBookSelection).filter(
            OrgBookSelection.organization_id == organization_id,
            OrgBookSelection.book_id == book_id,
        ).first()


def _describe(error: Exception) -> str:
    # DBAPI errors carry the statement; keep only the driver message
    orig = getattr(error, "orig", None)
    return str(orig) if orig is not None else str(error)
