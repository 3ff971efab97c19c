"""baseline_catalog_schema

Revision ID: 000000000000
Revises:
Create Date: 2026-10-18 00:00:00.000000

Creates the global catalog (books), organization selections and genres,
and seeds the predefined genres.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '000000000000'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


PREDEFINED_GENRES = [
    ("genre-adventure", "Adventure", "Exciting journeys and quests"),
    ("genre-fantasy", "Fantasy", "Magic, mythical creatures, and imaginary worlds"),
    ("genre-mystery", "Mystery", "Puzzles, detectives, and solving crimes"),
    ("genre-science-fiction", "Science Fiction", "Space, technology, and the future"),
    ("genre-realistic-fiction", "Realistic Fiction", "Stories that could happen in real life"),
    ("genre-historical-fiction", "Historical Fiction", "Stories set in the past"),
    ("genre-humor", "Humor", "Funny stories and jokes"),
    ("genre-animal-stories", "Animal Stories", "Stories featuring animals as main characters"),
    ("genre-fairy-tales", "Fairy Tales", "Classic tales with magic and morals"),
    ("genre-poetry", "Poetry", "Poems and verse"),
    ("genre-non-fiction", "Non-Fiction", "True stories and factual information"),
    ("genre-biography", "Biography", "Stories about real people's lives"),
    ("genre-sports", "Sports", "Stories about athletics and competition"),
    ("genre-graphic-novels", "Graphic Novels", "Stories told through illustrations"),
    ("genre-horror", "Horror/Scary", "Spooky and frightening stories"),
]


def upgrade() -> None:
    op.create_table(
        "books",
        sa.Column("id", sa.String(36), primary_key=True, nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("author", sa.String(), nullable=True),
        sa.Column("genre_ids", sa.JSON(), nullable=True),
        sa.Column("reading_level", sa.String(), nullable=True),
        sa.Column("age_range", sa.String(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_books_title", "books", ["title"])
    op.create_index("ix_books_author", "books", ["author"])

    op.create_table(
        "org_book_selections",
        sa.Column("id", sa.String(36), primary_key=True, nullable=False),
        sa.Column("organization_id", sa.String(), nullable=False),
        sa.Column(
            "book_id",
            sa.String(36),
            sa.ForeignKey("books.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("is_available", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("added_by", sa.String(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("organization_id", "book_id", name="uq_org_book_selections_org_book"),
    )
    op.create_index("ix_org_book_selections_organization_id", "org_book_selections", ["organization_id"])
    op.create_index("ix_org_book_selections_book_id", "org_book_selections", ["book_id"])
    op.create_index(
        "idx_book_selections_org_available",
        "org_book_selections",
        ["organization_id", "is_available"],
    )

    genres = op.create_table(
        "genres",
        sa.Column("id", sa.String(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(), nullable=False, unique=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("display_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.bulk_insert(
        genres,
        [
            {"id": genre_id, "name": name, "description": description, "display_order": order}
            for order, (genre_id, name, description) in enumerate(PREDEFINED_GENRES, start=1)
        ],
    )


def downgrade() -> None:
    op.drop_table("genres")
    op.drop_index("idx_book_selections_org_available", table_name="org_book_selections")
    op.drop_index("ix_org_book_selections_book_id", table_name="org_book_selections")
    op.drop_index("ix_org_book_selections_organization_id", table_name="org_book_selections")
    op.drop_table("org_book_selections")
    op.drop_index("ix_books_author", table_name="books")
    op.drop_index("ix_books_title", table_name="books")
    op.drop_table("books")
