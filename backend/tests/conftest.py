"""
Faculty Portfolio - Test Configuration and Fixtures
"""
import io
import os
import tempfile
from pathlib import Path
from typing import AsyncGenerator, List, Tuple

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool
from starlette.datastructures import Headers, UploadFile
from faker import Faker

# Set testing environment before the app reads its settings
_TEST_ROOT = Path(tempfile.mkdtemp(prefix="portfolio-tests-"))
TEST_DATABASE_URL = f"sqlite+aiosqlite:///{_TEST_ROOT / 'test.db'}"

os.environ['ENVIRONMENT'] = 'testing'
os.environ['DATABASE_URL'] = TEST_DATABASE_URL
os.environ['JWT_SECRET_KEY'] = 'test-jwt-secret-key-for-testing'
os.environ['BCRYPT_ROUNDS'] = '4'
os.environ['UPLOAD_PATH'] = str(_TEST_ROOT / 'uploads')
os.environ['RATE_LIMIT_ENABLED'] = 'false'
os.environ['LOG_LEVEL'] = 'WARNING'
os.environ['LOG_FILE'] = ''

from app.main import app
from app.core.database import Base, get_db
from app.core.security import get_password_hash, create_access_token
from app.models.user import User
from app.modules.auth.dependencies import get_otp_sender
from app.services.blob_store import LocalBlobStore, get_blob_store

fake = Faker()

TEST_PASSWORD = 'testpassword123'

# Test database setup
test_engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)
TestSessionLocal = async_sessionmaker(
    bind=test_engine,
    class_=AsyncSession,
    expire_on_commit=False
)


def make_upload(filename: str = "evidence.pdf", content: bytes = b"%PDF-1.4 test",
                content_type: str = "application/pdf") -> UploadFile:
    """UploadFile as FastAPI hands it to the coordinator"""
    return UploadFile(
        file=io.BytesIO(content),
        filename=filename,
        headers=Headers({"content-type": content_type}),
    )


def pdf_file(name: str = "evidence.pdf", content: bytes = b"%PDF-1.4 test") -> Tuple[str, Tuple[str, bytes, str]]:
    """Multipart file tuple for httpx"""
    return ("files", (name, content, "application/pdf"))


@pytest.fixture(scope='function')
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for each test"""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session
        await session.rollback()

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def blob_store(tmp_path: Path) -> LocalBlobStore:
    """Blob store rooted in a per-test directory"""
    return LocalBlobStore(tmp_path / "blobs")


@pytest.fixture
def otp_outbox() -> List[Tuple[str, str]]:
    """Captures (email, code) pairs instead of sending mail"""
    return []


@pytest.fixture
async def client(db_session: AsyncSession, blob_store: LocalBlobStore,
                 otp_outbox: List[Tuple[str, str]]) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with database, blob store and mail overrides"""
    async def override_get_db():
        yield db_session

    async def capture_otp(email: str, code: str) -> bool:
        otp_outbox.append((email, code))
        return True

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_blob_store] = lambda: blob_store
    app.dependency_overrides[get_otp_sender] = lambda: capture_otp

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url='http://test') as ac:
        yield ac

    app.dependency_overrides.clear()


async def _create_user(db_session: AsyncSession, verified: bool = True) -> User:
    user = User(
        email=fake.unique.email().lower(),
        name=fake.name(),
        hashed_password=get_password_hash(TEST_PASSWORD),
        is_verified=verified,
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


def _auth_headers(user: User) -> dict:
    token = create_access_token({'sub': str(user.id), 'email': user.email})
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
async def test_user(db_session: AsyncSession) -> User:
    """Create a verified test user"""
    return await _create_user(db_session)


@pytest.fixture
async def other_user(db_session: AsyncSession) -> User:
    """A second, unrelated user"""
    return await _create_user(db_session)


@pytest.fixture
def auth_headers(test_user: User) -> dict:
    """Generate authentication headers for test user"""
    return _auth_headers(test_user)


@pytest.fixture
def other_auth_headers(other_user: User) -> dict:
    """Generate authentication headers for the second user"""
    return _auth_headers(other_user)
