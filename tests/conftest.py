"""
Pytest configuration and fixtures for Bookshelf tests.
"""

import sys
from pathlib import Path
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from bookshelf.api.main import create_app
from bookshelf.api.dependencies import Settings
from bookshelf.mailer import Mailer
from bookshelf.seed import promote_to_admin
from bookshelf.storage.book_repository import BookRepository
from bookshelf.storage.database import Database
from bookshelf.storage.user_repository import UserRepository


TEST_PASSWORD = "correct-horse-battery"


# =============================================================================
# Test Settings
# =============================================================================

def get_test_settings(database_path: Path, **overrides) -> Settings:
    """Return settings configured for testing."""
    values = dict(
        database_url=f"sqlite+aiosqlite:///{database_path}",
        database_echo=False,
        jwt_secret="test-secret",
        bcrypt_rounds=4,
        frontend_url="http://frontend.test",
        environment="test",
        debug=True,
        rate_limit_enabled=False,
        seed_demo_user=False,
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return get_test_settings(tmp_path / "bookshelf-test.db")


class RecordingMailer(Mailer):
    """Keeps reset links instead of sending them."""

    def __init__(self):
        super().__init__()
        self.sent: list[tuple[str, str]] = []

    def send_password_reset_email(self, to_email: str, reset_link: str) -> bool:
        self.sent.append((to_email, reset_link))
        return True


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest_asyncio.fixture(scope="function")
async def database(tmp_path) -> AsyncGenerator[Database, None]:
    """Standalone database with tables created."""
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'repository-test.db'}")
    await db.create_tables()

    yield db

    await db.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(database) -> AsyncGenerator[AsyncSession, None]:
    """Provide database session for tests."""
    async with database.session() as session:
        yield session
        await session.rollback()


# =============================================================================
# Application Fixtures
# =============================================================================

@pytest_asyncio.fixture(scope="function")
async def app(test_settings):
    """Create FastAPI application for testing."""
    application = create_app(test_settings)

    # ASGITransport does not run the lifespan
    await application.state.database.create_tables()
    application.state.mailer = RecordingMailer()

    yield application

    await application.state.database.dispose()


@pytest_asyncio.fixture(scope="function")
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Provide async HTTP client for API tests."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac


# =============================================================================
# Account Helpers
# =============================================================================

async def register_user(
    client: AsyncClient,
    email: str = "reader@bookshelf.app",
    name: str = "Reader",
    password: str = TEST_PASSWORD,
) -> dict:
    """Register through the API; returns the {user, token} body."""
    response = await client.post(
        "/auth/register",
        json={"name": name, "email": email, "password": password},
    )
    assert response.status_code == 201, response.text
    return response.json()


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def user(client) -> dict:
    """A registered user: {user, token, headers}."""
    body = await register_user(client)
    return {**body, "headers": bearer(body["token"])}


@pytest_asyncio.fixture
async def other_user(client) -> dict:
    body = await register_user(client, email="other@bookshelf.app", name="Other")
    return {**body, "headers": bearer(body["token"])}


@pytest_asyncio.fixture
async def admin(app, client) -> dict:
    """A registered user promoted to admin after registering (stale token role)."""
    body = await register_user(client, email="admin@bookshelf.app", name="Admin")
    await promote_to_admin(app.state.database, "admin@bookshelf.app")
    return {**body, "headers": bearer(body["token"])}


# =============================================================================
# Book Fixtures
# =============================================================================

@pytest.fixture
def sample_book_data() -> dict:
    """Sample book data for testing."""
    return {
        "title": "The Left Hand of Darkness",
        "authors": ["Ursula K. Le Guin"],
        "isbn": "9780441478125",
        "publisher": "Ace Books",
        "year": 1969,
        "category": "Science Fiction",
        "tags": ["classic", "gender"],
        "description_notes": "Winter planet.",
        "status": "reading",
        "rating": 5,
        "total_pages": 304,
        "current_page": 120,
        "start_date": "2024-03-01",
    }


@pytest.fixture
def sample_books_batch() -> list[dict]:
    """Batch of sample books for testing."""
    return [
        {
            "title": "Dune",
            "authors": ["Frank Herbert"],
            "tags": ["sci-fi", "classic"],
            "category": "Science Fiction",
            "status": "completed",
            "rating": 4,
            "total_pages": 688,
            "current_page": 688,
        },
        {
            "title": "Beloved",
            "authors": ["Toni Morrison"],
            "tags": ["classic"],
            "category": "Literary Fiction",
            "status": "reading",
            "total_pages": 324,
            "current_page": 100,
        },
        {
            "title": "A Wizard of Earthsea",
            "authors": ["Ursula K. Le Guin"],
            "tags": ["fantasy"],
            "category": "Fantasy",
            "status": "to_read",
            "rating": 5,
        },
        {
            "title": "Neuromancer",
            "authors": ["William Gibson"],
            "tags": ["sci"],
            "category": "Science Fiction",
            "status": "dropped",
            "total_pages": 271,
            "current_page": 40,
        },
    ]


@pytest_asyncio.fixture
async def owner(db_session):
    """A user created straight through the repository."""
    user = await UserRepository(db_session).create_with_default_shelves(
        name="Owner", email="Owner@Bookshelf.app", password_hash="x",
    )
    await db_session.commit()
    return user


@pytest_asyncio.fixture
async def stranger(db_session):
    user = await UserRepository(db_session).create_with_default_shelves(
        name="Stranger", email="stranger@bookshelf.app", password_hash="x",
    )
    await db_session.commit()
    return user


@pytest_asyncio.fixture
async def library(db_session, owner, sample_books_batch):
    """The sample batch stored for ``owner``, in batch order."""
    repo = BookRepository(db_session)
    books = [await repo.create(owner.id, data) for data in sample_books_batch]
    await db_session.commit()
    return books
