import uuid
from typing import Generator
from unittest.mock import Mock

import pytest
import requests
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from main import app
from app.db.base import Base
from app.db.session import get_db, get_session_factory
from app.models.users import User
from app.services.blob_storage import get_blob_store
from app.services.directory_sync import DirectorySyncClient, get_directory_client
from app.services.identity_client import get_identity_client
from tests.helpers import StubBlobStore, StubIdentityClient


# Create in-memory SQLite database for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"
engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db() -> Generator:
    """Override database dependency for testing"""
    try:
        db = TestingSessionLocal()
        yield db
    finally:
        db.close()


@pytest.fixture(autouse=True)
def tables() -> Generator:
    """Fresh schema for every test"""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session() -> Generator[Session, None, None]:
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def identity() -> StubIdentityClient:
    return StubIdentityClient()


@pytest.fixture
def blob_store() -> StubBlobStore:
    return StubBlobStore()


@pytest.fixture
def directory_http() -> Mock:
    """HTTP session used by the directory client; unconfigured by default"""
    return Mock(spec=requests.Session)


@pytest.fixture
def directory(directory_http) -> DirectorySyncClient:
    return DirectorySyncClient(None, None, http=directory_http)


@pytest.fixture
def client(identity, blob_store, directory) -> Generator[TestClient, None, None]:
    """Create a test client for the FastAPI application"""
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: TestingSessionLocal
    app.dependency_overrides[get_identity_client] = lambda: identity
    app.dependency_overrides[get_blob_store] = lambda: blob_store
    app.dependency_overrides[get_directory_client] = lambda: directory
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db_session):
    def _make_user(**fields) -> User:
        values = {
            "fid": f"-{uuid.uuid4().int % 100000}",
            "username": "ada_lovelace",
            "display_name": "Ada",
            "pfp_url": "https://cdn.example.com/profile-pictures/old.png",
        }
        values.update(fields)
        user = User(**values)
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user
