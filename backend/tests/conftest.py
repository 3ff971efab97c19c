"""Pytest configuration for backend tests."""
import sys
import os
from pathlib import Path
import pytest
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

# Add backend directory to Python path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

# Keep the app's own engine off any real database during tests
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("DEBUG", "false")

from shelfmate.database import Base, build_engine, get_db

# Import the entire models module to ensure all models are registered with Base.metadata
import shelfmate.models  # noqa: F401
from shelfmate.models import Genre


# In-memory SQLite unless a dedicated test database is given
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite://")

GENRES = {
    "genre-adventure": "Adventure",
    "genre-fantasy": "Fantasy",
    "genre-mystery": "Mystery",
    "genre-humor": "Humor",
}


@pytest.fixture(scope="session")
def engine():
    """Create the test engine and schema once per session."""
    if TEST_DATABASE_URL.startswith("sqlite"):
        # One shared connection so every session sees the same in-memory database
        test_engine = build_engine(TEST_DATABASE_URL, poolclass=StaticPool)
    else:
        test_engine = build_engine(TEST_DATABASE_URL)

    if not Base.metadata.tables:
        raise RuntimeError(
            "No tables registered in Base.metadata. "
            "Did you import shelfmate.models? All model classes must be imported before create_all()."
        )

    Base.metadata.create_all(bind=test_engine)

    yield test_engine

    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture(scope="function")
def db(engine) -> Session:
    """
    Database session for each test, rolled back afterwards.

    Session commits release a SAVEPOINT inside the outer transaction, so code
    under test can commit and roll back freely while tests stay isolated.
    """
    connection = engine.connect()
    transaction = connection.begin()

    TestingSession = sessionmaker(
        bind=connection,
        autocommit=False,
        autoflush=False,
        join_transaction_mode="create_savepoint",
    )
    session = TestingSession()

    yield session

    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture
def genres(db: Session) -> dict:
    for order, (genre_id, name) in enumerate(GENRES.items(), start=1):
        db.add(Genre(id=genre_id, name=name, display_order=order))
    db.commit()
    return dict(GENRES)


@pytest.fixture
def client(db: Session):
    """TestClient bound to the test session."""
    from fastapi.testclient import TestClient
    from shelfmate.main import app

    app.dependency_overrides[get_db] = lambda: db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
