import os
import threading
from pathlib import Path
from typing import Callable, Iterable, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from soundshelf.api.deps import get_coordinator, get_db
from soundshelf.api.main import app
from soundshelf.core.errors import ExtractionError, ExtractionErrorKind
from soundshelf.core.models import Base
from soundshelf.core.scan_state import ScanStateStore
from soundshelf.worker.coordinator import ScanCoordinator
from soundshelf.worker.extractor import TrackMetadata

# ============================================================================
# TEST DATABASE CONFIGURATION
# ============================================================================
# Tests use an in-memory database, never the catalog under DATA_DIR.
# StaticPool keeps every session on the same connection so the schema
# created by db_engine is visible to the sessions the indexer opens.
# ============================================================================
TEST_DB_URL = "sqlite+aiosqlite:///:memory:"

test_engine = create_async_engine(
    TEST_DB_URL,
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestSessionLocal = async_sessionmaker(
    bind=test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


class FakeExtractor:
    """Stands in for MutagenExtractor: derives tags from the file name.

    Paths whose basename is in ``failing`` raise a corrupt-file error. When a
    ``gate`` event is given, every extraction blocks until it is set.
    """

    def __init__(
        self,
        failing: Iterable[str] = (),
        gate: Optional[threading.Event] = None,
    ):
        self.failing = set(failing)
        self.gate = gate
        self.calls = []
        self._lock = threading.Lock()

    def extract(self, path: str) -> TrackMetadata:
        if self.gate is not None:
            self.gate.wait(timeout=10)
        name = os.path.basename(path)
        with self._lock:
            self.calls.append(path)
        if name in self.failing:
            raise ExtractionError(ExtractionErrorKind.CORRUPT, path, "bad frame header")
        stem, ext = os.path.splitext(name)
        return TrackMetadata(
            extension=ext.lstrip(".").lower(),
            title=stem,
            artist="Test Artist",
            album=os.path.basename(os.path.dirname(path)),
            duration_seconds=180,
            audio_bitrate=320,
            tags={"title": stem},
            created_time=1_600_000_000.0,
        )


@pytest.fixture(scope="function")
async def db_engine():
    """Create test database tables before each test, drop after."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(scope="function")
async def session_factory(db_engine):
    """Session factory bound to the freshly created test schema."""
    return TestSessionLocal


@pytest.fixture(scope="function")
async def db_session(db_engine):
    """Provide a test database session."""
    async with TestSessionLocal() as session:
        yield session
        await session.rollback()


@pytest.fixture
def fake_extractor():
    return FakeExtractor()


@pytest.fixture
def state_store():
    """Isolated scan state so tests never touch the process-wide store."""
    return ScanStateStore()


@pytest.fixture
def coordinator(session_factory, fake_extractor, state_store):
    return ScanCoordinator(
        session_factory, extractor=fake_extractor, state_store=state_store
    )


@pytest.fixture
def library(tmp_path) -> Callable[..., Path]:
    """Factory writing fake media files under a temporary library root.

    Usage:
        path = library("Artist/Album/01.mp3", mtime=1_700_000_000)
        root = library.root
    """
    root = tmp_path / "music"
    root.mkdir()

    def add(relpath: str, mtime: float = 1_700_000_000, content: bytes = b"\x00" * 64) -> Path:
        path = root / relpath
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        os.utime(path, (mtime, mtime))
        return path

    add.root = root
    return add


@pytest.fixture(scope="function")
async def client(db_session, coordinator):
    """Create an async test client with DB and coordinator overrides."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_coordinator] = lambda: coordinator
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def make_extractor():
    """Build FakeExtractor instances with custom failing files or a gate."""
    return FakeExtractor
