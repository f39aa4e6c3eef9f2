from __future__ import annotations

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from telemed.db.base import Base
from telemed.main import create_app
from telemed.services.call_requests import CallRequestService
from telemed.services.events import EventBroadcaster
from telemed.services.request_store import InMemoryCallRequestRepository, SqlCallRequestRepository


@pytest.fixture
def sql_session_factory() -> Generator[sessionmaker, None, None]:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(params=["memory", "database"])
def repository(request: pytest.FixtureRequest, sql_session_factory: sessionmaker):
    if request.param == "memory":
        return InMemoryCallRequestRepository()
    return SqlCallRequestRepository(sql_session_factory)


@pytest.fixture
def memory_repository() -> InMemoryCallRequestRepository:
    return InMemoryCallRequestRepository()


@pytest.fixture
def service(memory_repository: InMemoryCallRequestRepository) -> CallRequestService:
    return CallRequestService(memory_repository, EventBroadcaster())


@pytest.fixture
def app(memory_repository: InMemoryCallRequestRepository):
    return create_app(memory_repository)


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)
