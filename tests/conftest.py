import json
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from stampcard.clients.user_service import CounterSync, TokenProvider, UserServiceClient
from stampcard.db import Base, get_db
from stampcard.deps.counter_sync import get_counter_sync
from stampcard.main import app
from stampcard.models.prize import Prize
from stampcard.services.business_service import provision_business


TOKEN_URL = "http://keycloak.test/realms/pizzeria/protocol/openid-connect/token"
USER_SERVICE_URL = "http://user-service.test"


class UserServiceStub:
    """Plays both the token endpoint and the user-service counters endpoint."""

    def __init__(self) -> None:
        self.counter_status = 200
        self.token_calls = 0
        self.counter_requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        if str(request.url) == TOKEN_URL:
            self.token_calls += 1
            return httpx.Response(200, json={"access_token": f"token-{self.token_calls}", "expires_in": 300})

        self.counter_requests.append(request)
        return httpx.Response(self.counter_status, json={"ok": self.counter_status < 400})

    @property
    def counter_payloads(self) -> list[dict]:
        return [json.loads(r.content) for r in self.counter_requests]


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)

    factory = sessionmaker(bind=engine, autoflush=False, autocommit=False)

    try:
        yield factory
    finally:
        engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def user_service():
    return UserServiceStub()


@pytest.fixture
def counter_sync(user_service):
    http_client = httpx.Client(transport=httpx.MockTransport(user_service.handler))
    tokens = TokenProvider(
        token_url=TOKEN_URL,
        client_id="business-service",
        client_secret="secret",
        http_client=http_client,
    )
    client = UserServiceClient(base_url=USER_SERVICE_URL, token_provider=tokens, http_client=http_client)
    sync = CounterSync(client, http_client=http_client)
    try:
        yield sync
    finally:
        sync.close()


@pytest.fixture
def client(session_factory, counter_sync):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_counter_sync] = lambda: counter_sync

    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def business(db):
    biz, _ = provision_business(db, business_id="af941888-ec4c-458e-b905-21673241af3e", name="Pizzeria Da Gino")
    db.commit()
    return biz


@pytest.fixture
def make_prize(db):
    def _make(business_id: str, name: str, points: int, *, promotional: bool = False) -> Prize:
        prize = Prize(name=name, points_required=points, is_promotional=promotional, business_id=business_id)
        db.add(prize)
        db.commit()
        return prize

    return _make
