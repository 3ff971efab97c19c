"""
Apply confirmed import decisions as chunked batch writes.

Each decision becomes one or more WriteOperations. Operations are grouped into
chunks of IMPORT_BATCH_SIZE and handed to the store one chunk at a time; the
store reports success or failure per operation. A chunk that blows up as a
whole marks all of its operations failed. Earlier chunks stay committed, there
is no cross-chunk transaction.
"""
import enum
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence

from shelfmate.core.config import settings

logger = logging.getLogger(__name__)


class OperationType(str, enum.Enum):
    LINK = "link"  # upsert org selection for an existing book
    CREATE = "create"  # insert catalog book
    CREATE_LINK = "create_link"  # insert org selection for a book created in this batch
    UPDATE = "update"  # overwrite catalog reading level


# Which counter a successful operation bumps
COUNTER_FOR_TYPE = {
    OperationType.LINK: "linked",
    OperationType.CREATE: "created",
    OperationType.UPDATE: "updated",
}


@dataclass(frozen=True)
class WriteOperation:
    type: OperationType
    key: str  # book id or title, echoed back in errors
    book_id: str
    values: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class StatementResult:
    success: bool
    error: Optional[str] = None


@dataclass
class BatchError:
    type: str
    key: str
    error: str

    def to_dict(self) -> Dict[str, str]:
        return {"type": self.type, "key": self.key, "error": self.error}


@dataclass
class BatchOperationResult:
    linked: int = 0
    created: int = 0
    updated: int = 0
    errors: List[BatchError] = field(default_factory=list)
    # book ids of successful CREATE operations, in order
    created_book_ids: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    def record(self, operation: WriteOperation, result: StatementResult) -> None:
        if not result.success:
            self.errors.append(BatchError(
                type=operation.type.value,
                key=operation.key,
                error=result.error or "Unknown error",
            ))
            return

        counter = COUNTER_FOR_TYPE.get(operation.type)
        if counter:
            setattr(self, counter, getattr(self, counter) + 1)
        if operation.type == OperationType.CREATE:
            self.created_book_ids.append(operation.book_id)


def link_operation(book_id: str) -> WriteOperation:
    return WriteOperation(type=OperationType.LINK, key=book_id, book_id=book_id)


def create_operation(
    title: str,
    author: Optional[str] = None,
    reading_level: Optional[str] = None,
    book_id: Optional[str] = None,
    **extra: Any,
) -> WriteOperation:
    values = {"title": title, "author": author, "reading_level": reading_level}
    values.update(extra)
    return WriteOperation(
        type=OperationType.CREATE,
        key=title,
        book_id=book_id or str(uuid.uuid4()),
        values=values,
    )


def build_operations(
    matched: Iterable[Any] = (),
    new_books: Iterable[Any] = (),
    conflicts: Iterable[Any] = (),
) -> List[WriteOperation]:
    """
    Translate confirmed decisions into write operations.

    matched:   objects with existing_book_id
    new_books: objects with title, author, reading_level
    conflicts: objects with existing_book_id, update_reading_level, new_reading_level
    """
    operations: List[WriteOperation] = []

    for decision in matched:
        operations.append(link_operation(decision.existing_book_id))

    for decision in new_books:
        create = create_operation(
            title=decision.title.strip(),
            author=decision.author or None,
            reading_level=decision.reading_level or None,
        )
        operations.append(create)
        operations.append(WriteOperation(
            type=OperationType.CREATE_LINK,
            key=create.key,
            book_id=create.book_id,
        ))

    for decision in conflicts:
        if decision.update_reading_level:
            operations.append(WriteOperation(
                type=OperationType.UPDATE,
                key=decision.existing_book_id,
                book_id=decision.existing_book_id,
                values={"reading_level": decision.new_reading_level},
            ))
        operations.append(link_operation(decision.existing_book_id))

    return operations


def chunked(operations: Sequence[WriteOperation], size: int) -> Iterator[Sequence[WriteOperation]]:
    for start in range(0, len(operations), size):
        yield operations[start:start + size]


def execute_operations(
    store: Any,
    organization_id: Optional[str],
    operations: Sequence[WriteOperation],
    batch_size: Optional[int] = None,
) -> BatchOperationResult:
    """
    Run operations through store.execute_batch() chunk by chunk.

    Never raises for persistence failures; they are folded into result.errors.
    """
    batch_size = batch_size or settings.IMPORT_BATCH_SIZE
    result = BatchOperationResult()

    for chunk_index, chunk in enumerate(chunked(operations, batch_size)):
        try:
            statement_results = store.execute_batch(organization_id, chunk)
            if len(statement_results) != len(chunk):
                raise RuntimeError(
                    f"Store returned {len(statement_results)} results for {len(chunk)} operations"
                )
        except Exception as e:
            logger.error(
                "Batch chunk %d failed (%d operations): %r",
                chunk_index,
                len(chunk),
                e,
            )
            for operation in chunk:
                result.record(operation, StatementResult(success=False, error=str(e) or repr(e)))
            continue

        for operation, statement_result in zip(chunk, statement_results):
            result.record(operation, statement_result)

    logger.info(
        "Batch complete: linked=%d created=%d updated=%d errors=%d",
        result.linked,
        result.created,
        result.updated,
        len(result.errors),
    )
    return result
