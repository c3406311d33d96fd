import os

# Ensure JWT_SECRET exists before importing recipeshare.main (create_app() calls require_jwt_secret()).
os.environ.setdefault("JWT_SECRET", "test_jwt_secret")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("EMAIL_ENABLED", "false")
os.environ.setdefault("ENABLE_RATE_LIMITING", "false")

import re
from contextlib import contextmanager
from dataclasses import dataclass, field

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from recipeshare.core.base import Base
from recipeshare.core.config import Settings
from recipeshare.core.rate_limit import limiter
from recipeshare.core.security import SecretHasher

# Import models so they register with SQLAlchemy metadata.
from recipeshare.models.cookbook import Cookbook  # noqa: F401
from recipeshare.models.refresh_token import RefreshToken  # noqa: F401
from recipeshare.models.review import Review  # noqa: F401
from recipeshare.models.user import User

from recipeshare.core.database import get_db
from recipeshare.dependencies.auth import get_email_sender
from recipeshare.main import create_app
from recipeshare.services.tokens import TokenService

API = "/api/v1"
PASSWORD = "pw123456"


@dataclass
class SentEmail:
    to_email: str
    subject: str
    body: str


@dataclass
class Outbox:
    """Stands in for EmailSender; records every message instead of delivering it."""

    sent: list[SentEmail] = field(default_factory=list)
    fail: bool = False

    def send(self, to_email: str, subject: str, body: str) -> str | None:
        if self.fail:
            from recipeshare.services.email import EmailDeliveryError

            raise EmailDeliveryError("simulated delivery failure")
        self.sent.append(SentEmail(to_email=to_email, subject=subject, body=body))
        return f"msg-{len(self.sent)}"

    def last_token(self, param: str) -> str:
        for message in reversed(self.sent):
            match = re.search(rf"{param}=([0-9a-f]{{64}})", message.body)
            if match:
                return match.group(1)
        raise AssertionError(f"no email carrying {param}")

    def subjects(self) -> list[str]:
        return [m.subject for m in self.sent]


@pytest.fixture(scope="session")
def db_engine():
    # In-memory SQLite for fast, isolated tests.
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture()
def db_session(db_engine):
    # Important: because we use an in-memory SQLite DB with StaticPool, the DB
    # persists across tests. Reset schema per test to avoid cross-test coupling.
    Base.metadata.drop_all(bind=db_engine)
    Base.metadata.create_all(bind=db_engine)

    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def config():
    """
    A fresh Settings per test, so tests can tweak values without leaking
    into each other.
    """
    cfg = Settings()
    cfg.JWT_SECRET = cfg.JWT_SECRET or "test_jwt_secret"
    cfg.BCRYPT_ROUNDS = 4
    return cfg


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    # The limiter is process-global; default every test to "disabled" with empty counters.
    limiter.enabled = False
    limiter.reset()
    yield
    limiter.enabled = False
    limiter.reset()


@pytest.fixture()
def outbox():
    return Outbox()


@pytest.fixture()
def app(db_session, config, outbox):
    fastapi_app = create_app(config)

    def override_get_db():
        yield db_session

    fastapi_app.dependency_overrides[get_db] = override_get_db
    fastapi_app.dependency_overrides[get_email_sender] = lambda: outbox
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture()
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def token_service(db_session, config):
    return TokenService(db_session, config)


@pytest.fixture()
def hasher(config):
    return SecretHasher(config)


@pytest.fixture()
def make_user(db_session, hasher):
    def _make_user(
        email: str = "ann@example.com",
        username: str = "ann",
        password: str | None = PASSWORD,
        verified: bool = True,
        google_id: str | None = None,
    ) -> User:
        user = User(
            email=email,
            username=username,
            hashed_password=hasher.hash(password) if password else None,
            verified=verified,
            google_id=google_id,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture()
def users(make_user):
    """
    Two distinct verified email/password users for ownership / isolation tests.
    """
    user_a = make_user(email="ann@example.com", username="ann")
    user_b = make_user(email="bob@example.com", username="bob")
    return user_a, user_b


@pytest.fixture()
def auth_headers(token_service):
    """Builds an Authorization header for an arbitrary user + auth method."""

    def _auth_headers(user: User, auth_method: str = "email") -> dict[str, str]:
        token = token_service.issue_access_token(user.id, auth_method)
        return {"Authorization": f"Bearer {token}"}

    return _auth_headers


@pytest.fixture()
def login(client):
    """
    Logs in through the API and returns (response, refresh_token).
    """

    def _login(email: str = "ann@example.com", password: str = PASSWORD):
        res = client.post(f"{API}/auth/login", json={"email": email, "password": password})
        return res, res.cookies.get("refreshToken")

    return _login


@pytest.fixture()
def client_with_cookie(app):
    """
    Context manager yielding a fresh client that carries a refresh cookie.
    """

    @contextmanager
    def _client_with_cookie(refresh_token: str):
        with TestClient(app) as c:
            c.cookies.set("refreshToken", refresh_token)
            yield c

    return _client_with_cookie
