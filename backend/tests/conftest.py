"""Shared fixtures for the import ledger test suite.

Provides:
- a throwaway SQLite database (aiosqlite) per test, schema built from the models
- ledger / store / aggregator wired to a session on that database
- an httpx client against the app with storage, dispatch and the database overridden
"""
import uuid
from unittest.mock import MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine

from import_ledger.core.config import settings
from import_ledger.core.deps import get_dispatcher, get_file_store
from import_ledger.core.limiter import limiter
from import_ledger.core.security import create_access_token
from import_ledger.db.base import Base
from import_ledger.db.session import build_sessionmaker, get_sessionmaker
from import_ledger.main import app
from import_ledger.models.import_job import ImportEntityType
from import_ledger.schemas.imports import ImportCreate, RowSeed
from import_ledger.services.ledger import ImportLedger

ORG_ID = "org-acme"
OTHER_ORG_ID = "org-globex"
USER_ID = "user-1"


# ─── Stubs ────────────────────────────────────────────────────────────────────

class FakeFileStore:
    """In-memory stand-in for the MinIO-backed ImportFileStore."""

    def __init__(self):
        self.objects: dict[str, tuple[bytes, str, dict | None]] = {}

    def ensure_bucket(self) -> None:
        pass

    def put(self, object_name, data, content_type, metadata=None):
        self.objects[object_name] = (data, content_type, metadata)
        return object_name


# ─── Database ─────────────────────────────────────────────────────────────────

@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def sessionmaker(engine):
    return build_sessionmaker(engine)


@pytest_asyncio.fixture
async def db(sessionmaker):
    async with sessionmaker() as session:
        yield session


@pytest.fixture
def ledger(db):
    return ImportLedger(db)


async def make_import(
    ledger: ImportLedger,
    organization_id: str = ORG_ID,
    entity_type: ImportEntityType = ImportEntityType.CLIENT,
    file_name: str = "clients.csv",
):
    data = ImportCreate(entity_type=entity_type, file_name=file_name, file_size=1024)
    return await ledger.create(organization_id, USER_ID, data, f"imports/{organization_id}/{file_name}")


def seeds(count: int, start: int = 1) -> list[RowSeed]:
    return [RowSeed(row_number=n, raw_data=f'{{"row": {n}}}') for n in range(start, start + count)]


# ─── App ──────────────────────────────────────────────────────────────────────

@pytest.fixture
def file_store():
    return FakeFileStore()


@pytest.fixture
def dispatcher():
    stub = MagicMock()
    stub.dispatch.return_value = "task-123"
    return stub


@pytest_asyncio.fixture
async def client(sessionmaker, file_store, dispatcher):
    app.dependency_overrides[get_sessionmaker] = lambda: sessionmaker
    app.dependency_overrides[get_file_store] = lambda: file_store
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    limiter.reset()
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()


def bearer(organization_id: str | None = ORG_ID, user_id: str = USER_ID) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user_id, organization_id)}"}


@pytest.fixture
def auth_headers():
    return bearer()


@pytest.fixture
def internal_headers():
    return {"X-Internal-Token": settings.INTERNAL_API_TOKEN}


@pytest.fixture
def missing_id():
    return uuid.uuid4()
