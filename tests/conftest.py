"""Shared test fixtures for pytest"""
import asyncio
import os
from dataclasses import replace
from datetime import timedelta
from urllib.parse import quote

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest
from sqlalchemy.ext.asyncio import (AsyncSession, async_sessionmaker,
                                    create_async_engine)
from sqlalchemy.pool import StaticPool

from src.application.services.viewer_service import ViewerService
from src.application.use_cases.documents.batch import BatchCoordinator
from src.application.use_cases.documents.document_operations import \
    DocumentService
from src.application.use_cases.documents.lifecycle import \
    DocumentLifecycleEngine
from src.application.use_cases.sharing.share_authorization import \
    ShareAuthorizationEngine
from src.domain.entities import DocumentEntity, ShareGrantEntity, UserEntity
from src.domain.enums import DocumentStatus, ShareType
from src.domain.exceptions import (ConcurrencyConflictError,
                                   ResourceNotFoundException)
from src.infrastructure.config.settings import Settings
from src.infrastructure.exceptions import (StorageCopyError,
                                           StorageNotFoundError)
from src.infrastructure.persistence.database import Base
from src.infrastructure.persistence.models import (  # noqa: F401
    Document, DocumentShare, User)
from src.shared.utils.datetime import utc_now

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


# ---- in-memory adapters ---------------------------------------------------


class FailureInjector:
    """Registers failures and hangs per operation (optionally per key)."""

    def __init__(self):
        self.failures: dict[tuple[str, str | None], Exception] = {}
        self.hangs: set[str] = set()

    def fail(self, operation: str, error: Exception, key: str | None = None):
        self.failures[(operation, key)] = error

    def hang(self, operation: str):
        self.hangs.add(operation)

    def clear(self):
        self.failures.clear()
        self.hangs.clear()

    async def check(self, operation: str, key: str | None = None):
        if operation in self.hangs:
            await asyncio.sleep(3600)
        error = self.failures.get((operation, key)) or self.failures.get((operation, None))
        if error is not None:
            raise error


class FakeStorage(FailureInjector):
    """Object storage held in a dict."""

    def __init__(self):
        super().__init__()
        self.objects: dict[str, bytes] = {}
        self.calls: list[tuple[str, ...]] = []

    async def put(self, storage_key: str, data: bytes, content_type: str) -> None:
        self.calls.append(("put", storage_key))
        await self.check("put", storage_key)
        self.objects[storage_key] = data

    async def copy(self, source_key: str, target_key: str) -> None:
        self.calls.append(("copy", source_key, target_key))
        await self.check("copy", source_key)
        if source_key not in self.objects:
            raise StorageCopyError(source_key, target_key, "source object not found")
        self.objects[target_key] = self.objects[source_key]

    async def remove(self, storage_keys: list[str]) -> None:
        self.calls.append(("remove", *storage_keys))
        for key in storage_keys:
            await self.check("remove", key)
        for key in storage_keys:
            self.objects.pop(key, None)

    async def signed_url(self, storage_key: str, ttl: timedelta, download_name: str | None = None) -> str:
        self.calls.append(("signed_url", storage_key))
        await self.check("signed_url", storage_key)
        if storage_key not in self.objects:
            raise StorageNotFoundError(storage_key)
        url = f"https://storage.test/{storage_key}?ttl={int(ttl.total_seconds())}"
        if download_name:
            url += f"&download={quote(download_name)}"
        return url


class FakeDocumentRepository(FailureInjector):
    """Document metadata held in a dict, with the same version checks as SQL."""

    def __init__(self):
        super().__init__()
        self.rows: dict[str, DocumentEntity] = {}

    def seed(self, document: DocumentEntity) -> DocumentEntity:
        self.rows[document.id] = document
        return document

    async def find_document(self, document_id):
        await self.check("find_document")
        return self.rows.get(document_id)

    async def find_documents_by_ids_and_owner(self, document_ids, uid):
        await self.check("find_documents_by_ids_and_owner")
        return [d for d in self.rows.values() if d.id in set(document_ids) and d.uid == uid]

    async def list_by_owner(self, uid, status=None):
        await self.check("list_by_owner")
        documents = [
            d for d in self.rows.values()
            if d.uid == uid and (status is None or d.status == status)
        ]
        return sorted(documents, key=lambda d: d.uploaded_at or utc_now(), reverse=True)

    async def list_shared_by_owner(self, uid):
        return [d for d in self.rows.values() if d.uid == uid and d.shared_to]

    async def list_shared_with(self, user_id):
        return [d for d in self.rows.values() if user_id in d.shared_to]

    async def insert_document(self, document):
        await self.check("insert_document")
        self.rows[document.id] = document
        return document

    async def update_document(self, document_id, uid, patch, expected_version=None):
        await self.check("update_document")
        current = self.rows.get(document_id)
        if current is None or current.uid != uid:
            raise ResourceNotFoundException("Document", document_id)
        if expected_version is not None and current.version != expected_version:
            raise ConcurrencyConflictError(document_id, expected_version)
        values = dict(patch)
        for key in ("shared_to", "shared_from"):
            if key in values:
                values[key] = frozenset(values[key])
        if "status" in values:
            values["status"] = DocumentStatus(values["status"])
        updated = replace(current, **values, version=current.version + 1, updated_at=utc_now())
        self.rows[document_id] = updated
        return updated

    async def delete_document(self, document_id, uid):
        await self.check("delete_document")
        current = self.rows.get(document_id)
        if current is None or current.uid != uid:
            return False
        del self.rows[document_id]
        return True


class FakeShareRepository(FailureInjector):
    def __init__(self):
        super().__init__()
        self.rows: dict[str, ShareGrantEntity] = {}

    async def insert_share(self, grant):
        await self.check("insert_share")
        self.rows[grant.id] = grant
        return grant

    async def update_share(self, share_id, patch):
        await self.check("update_share")
        if share_id not in self.rows:
            raise ResourceNotFoundException("Share", share_id)
        self.rows[share_id] = replace(self.rows[share_id], **patch)
        return self.rows[share_id]

    async def delete_shares(self, doc_id, *, include_restricted=False):
        await self.check("delete_shares")
        doomed = [
            g.id for g in self.rows.values()
            if g.doc_id == doc_id and (include_restricted or not g.is_restricted)
        ]
        for share_id in doomed:
            del self.rows[share_id]
        return len(doomed)

    async def delete_share(self, share_id):
        await self.check("delete_share")
        return self.rows.pop(share_id, None) is not None

    async def find_share(self, share_id):
        await self.check("find_share")
        return self.rows.get(share_id)

    async def find_latest_public_share(self, doc_id):
        grants = [g for g in self.rows.values() if g.doc_id == doc_id and not g.is_restricted]
        if not grants:
            return None
        return max(grants, key=lambda g: g.created_at or utc_now())


class FakeUserRepository:
    def __init__(self, users: list[UserEntity] | None = None):
        self.users = list(users or [])

    async def find_users_by_emails(self, emails):
        wanted = {email.lower() for email in emails}
        return [user for user in self.users if user.email.lower() in wanted]


# ---- fixtures ---------------------------------------------------------------


@pytest.fixture
def settings():
    """Settings with a short adapter timeout so hangs fail fast"""
    return Settings(
        database_url=TEST_DATABASE_URL,
        storage_backend="local",
        adapter_timeout_seconds=0.2,
    )


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def documents():
    return FakeDocumentRepository()


@pytest.fixture
def shares():
    return FakeShareRepository()


@pytest.fixture
def users():
    return FakeUserRepository(
        [
            UserEntity(id="owner-1", email="owner@example.com"),
            UserEntity(id="user-2", email="Alice@Example.com"),
            UserEntity(id="user-3", email="bob@example.com"),
        ]
    )


@pytest.fixture
def viewers(settings):
    return ViewerService(settings.office_viewer_base_url)


@pytest.fixture
def engine(storage, documents, settings):
    return DocumentLifecycleEngine(storage, documents, settings)


@pytest.fixture
def batch(engine, documents, settings):
    return BatchCoordinator(engine, documents, settings)


@pytest.fixture
def sharing(storage, documents, shares, users, viewers, settings):
    return ShareAuthorizationEngine(storage, documents, shares, users, viewers, settings)


@pytest.fixture
def document_service(storage, documents, engine, sharing, viewers, settings):
    return DocumentService(storage, documents, engine, sharing, viewers, settings)


@pytest.fixture
def make_document(storage, documents):
    """Seed a document row and (for active documents) its object"""

    def _make(
        doc_id: str = "doc-1",
        uid: str = "owner-1",
        file_name: str = "report.pdf",
        status: DocumentStatus = DocumentStatus.ACTIVE,
        storage_key: str | None = None,
        trash_key: str | None = None,
        shared_to: frozenset[str] = frozenset(),
        with_object: bool = True,
    ) -> DocumentEntity:
        if storage_key is None and status == DocumentStatus.ACTIVE:
            storage_key = f"documents/{uid}/{file_name}"
        document = DocumentEntity(
            id=doc_id,
            uid=uid,
            file_name=file_name,
            storage_key=storage_key,
            status=status,
            trash_key=trash_key,
            mimetype="application/pdf",
            size=5,
            shared_to=frozenset(shared_to),
            uploaded_at=utc_now(),
            updated_at=utc_now(),
        )
        documents.seed(document)
        if with_object:
            key = trash_key if status == DocumentStatus.TRASHED else storage_key
            if key:
                storage.objects[key] = b"hello"
        return document

    return _make


@pytest.fixture
def public_grant(shares):
    """Seed a public-link grant with a cached URL"""

    def _make(share_id="share-1", doc_id="doc-1", expires_in=timedelta(hours=24), signed_url="https://storage.test/cached"):
        now = utc_now()
        grant = ShareGrantEntity(
            id=share_id,
            doc_id=doc_id,
            granting_uid="owner-1",
            share_type=ShareType.PUBLIC_LINK,
            signed_url=signed_url,
            expires_at=now + expires_in,
            created_at=now,
        )
        shares.rows[grant.id] = grant
        return grant

    return _make


# ---- database ---------------------------------------------------------------


@pytest.fixture
async def test_engine():
    """In-memory SQLite engine shared across connections"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def test_db(test_engine):
    """Create test database session"""
    async_session = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
        autocommit=False,
    )

    async with async_session() as session:
        yield session
