# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Generator, Iterator, Mapping
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("PYTEST_RUNNING", "true")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("AUTO_CREATE_TABLES", "false")

from presence_relay.core.errors import ConnectionGoneError, InfrastructureError
from presence_relay.db.session import Base
from presence_relay.db.session import get_db as app_get_session
from presence_relay.main import app as fastapi_app
from presence_relay.models import Connection, Message
from presence_relay.repositories import ConnectionRepository, MessageRepository
from presence_relay.services import (
    ConnectionRegistry,
    EventRouter,
    HistoryService,
    LocalPushGateway,
    MessageRelay,
)

TEST_DB_URL = "sqlite://"


class FakePushGateway:
    """Records pushes; sessions listed in ``gone`` or ``failing`` misbehave."""

    def __init__(self) -> None:
        self.pushes: list[tuple[str, dict[str, Any]]] = []
        self.gone: set[str] = set()
        self.failing: set[str] = set()

    async def post_to_connection(self, connection_id: str, payload: Mapping[str, Any]) -> None:
        if connection_id in self.failing:
            raise InfrastructureError("gateway unavailable")
        if connection_id in self.gone:
            raise ConnectionGoneError(connection_id)
        self.pushes.append((connection_id, dict(payload)))

    def pushes_to(self, connection_id: str, push_type: str | None = None) -> list[dict[str, Any]]:
        return [
            payload
            for target, payload in self.pushes
            if target == connection_id and (push_type is None or payload.get("type") == push_type)
        ]

    def clear(self) -> None:
        self.pushes.clear()

    async def close(self) -> None:
        return None


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> Iterator[sessionmaker[Session]]:
    factory = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    try:
        yield factory
    finally:
        # Ensure each test sees a clean database even if commits occurred.
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture()
def db_session(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def push_gateway() -> FakePushGateway:
    return FakePushGateway()


@pytest.fixture()
def registry(db_session: Session, push_gateway: FakePushGateway) -> ConnectionRegistry:
    return ConnectionRegistry(ConnectionRepository(db_session), push_gateway)


@pytest.fixture()
def relay(registry: ConnectionRegistry, db_session: Session) -> MessageRelay:
    return MessageRelay(registry, MessageRepository(db_session))


@pytest.fixture()
def history(registry: ConnectionRegistry, db_session: Session) -> HistoryService:
    return HistoryService(registry, MessageRepository(db_session))


@pytest.fixture()
def event_router(db_session: Session, push_gateway: FakePushGateway) -> EventRouter:
    return EventRouter.for_session(db_session, push_gateway)


@pytest.fixture()
def bind_connection(db_session: Session):
    """Store a connection row directly, bypassing the registry."""

    def _bind(connection_id: str, nickname: str) -> Connection:
        connection = Connection(connection_id=connection_id, nickname=nickname)
        db_session.add(connection)
        db_session.commit()
        return connection

    return _bind


@pytest.fixture()
def count_messages(db_session: Session):
    def _count() -> int:
        return db_session.scalar(select(func.count()).select_from(Message)) or 0

    return _count


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture()
def use_gateway(app: FastAPI, session_factory: sessionmaker[Session]):
    """Install a gateway and the test session factory on the application."""
    original_gateway = app.state.push_gateway
    original_factory = app.state.session_factory

    def _get_session_override() -> Generator[Session, None, None]:
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    def _install(gateway: Any) -> Any:
        app.state.push_gateway = gateway
        app.state.session_factory = session_factory
        app.dependency_overrides[app_get_session] = _get_session_override
        return gateway

    try:
        yield _install
    finally:
        app.state.push_gateway = original_gateway
        app.state.session_factory = original_factory
        app.dependency_overrides.pop(app_get_session, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def local_gateway(use_gateway) -> LocalPushGateway:
    return use_gateway(LocalPushGateway(timeout_seconds=2.0))
