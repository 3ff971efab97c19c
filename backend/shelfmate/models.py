from sqlalchemy import Column, String, Integer, Text, Boolean, DateTime, ForeignKey, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
import uuid
from datetime import datetime
import sqlalchemy as sa
from shelfmate.database import Base


def _new_id() -> str:
    return str(uuid.uuid4())


class Book(Base):
    """
    Global catalog entry, shared by every organization.
    Organizations see a book through an OrgBookSelection row.
    """
    __tablename__ = "books"

    id = Column(String(36), primary_key=True, default=_new_id)
    title = Column(String, nullable=False, index=True)
    author = Column(String, nullable=True, index=True)
    genre_ids = Column(JSON, nullable=True)  # ordered list of genre ids
    reading_level = Column(String, nullable=True)  # numeric-as-text or free text
    age_range = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    selections = relationship("OrgBookSelection", back_populates="book")


class OrgBookSelection(Base):
    """
    An organization's link to a catalog book.
    Toggling is_available hides the book without deleting the link.
    """
    __tablename__ = "org_book_selections"

    id = Column(String(36), primary_key=True, default=_new_id)
    organization_id = Column(String, nullable=False, index=True)
    book_id = Column(String(36), ForeignKey("books.id", ondelete="CASCADE"), nullable=False, index=True)
    is_available = Column(Boolean, nullable=False, default=True)
    added_by = Column(String, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    book = relationship("Book", back_populates="selections")

    __table_args__ = (
        UniqueConstraint("organization_id", "book_id", name="uq_org_book_selections_org_book"),
        sa.Index("idx_book_selections_org_available", "organization_id", "is_available"),
    )


class Genre(Base):
    __tablename__ = "genres"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False, unique=True)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    display_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=sa.func.now(), nullable=False)
