"""
Test configuration and fixtures.

Provides:
- Fresh schema per test (SQLite in-memory by default, DATABASE_URL overrides)
- Users, babies and sessions in their usual shapes
- JWT token minting for authenticated tests
- HTTPX AsyncClient with proper headers
- A recording notification gateway in place of the websocket fan-out
"""
import os
import uuid
from dataclasses import dataclass, field
from datetime import date
from typing import AsyncGenerator, Callable, Generator

# Must be set before the app (and its settings) are imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("TESTING", "1")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.orm import Session

from app.core.deps import COOKIE_NAME, get_db, get_gateway
from app.core.security import create_session_token
from app.db.base import Base
from app.db.enums import SessionType
from app.db.models import Baby, BabyCaregiver, BabyParent, MonitoringSession, User
from app.db.session import SessionLocal, engine
from app.main import app
from app.services import monitoring_service


# =============================================================================
# Notification gateway double
# =============================================================================

@dataclass
class RecordingGateway:
    """Captures published events instead of fanning them out."""
    events: list[tuple[str, str, dict]] = field(default_factory=list)

    def publish(self, topic, event: str, payload: dict) -> None:
        self.events.append((str(topic), event, payload))

    def of_type(self, event: str) -> list[tuple[str, str, dict]]:
        return [e for e in self.events if e[1] == event]


@pytest.fixture(scope="function")
def gateway() -> RecordingGateway:
    return RecordingGateway()


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """
    Creates a database session over a freshly created schema.

    App code commits freely; the schema is dropped after each test.
    """
    Base.metadata.create_all(engine)
    session = SessionLocal()

    yield session

    session.close()
    Base.metadata.drop_all(engine)


@pytest.fixture(scope="function")
def make_user(db: Session) -> Callable[..., User]:
    """Factory for users with unique emails."""
    def _make(display_name: str = "Test User") -> User:
        user = User(
            id=uuid.uuid4(),
            email=f"test-{uuid.uuid4().hex[:8]}@test.com",
            display_name=display_name,
        )
        db.add(user)
        db.flush()
        return user
    return _make


@pytest.fixture(scope="function")
def parent(make_user) -> User:
    return make_user("Parent")


@pytest.fixture(scope="function")
def caregiver(make_user) -> User:
    return make_user("Caregiver")


@pytest.fixture(scope="function")
def stranger(make_user) -> User:
    return make_user("Stranger")


@pytest.fixture(scope="function")
def make_baby(db: Session) -> Callable[..., Baby]:
    """Factory for babies with the given parents and caregiver rows."""
    def _make(
        parents: list[User],
        caregivers: list[tuple[User, dict]] | None = None,
        name: str = "Test Baby",
    ) -> Baby:
        baby = Baby(
            id=uuid.uuid4(),
            name=name,
            date_of_birth=date(2026, 1, 15),
            gender="Female",
            height_cm=60,
            weight_kg=5.5,
        )
        baby.parents = [BabyParent(user_id=p.id) for p in parents]
        baby.caregivers = [
            BabyCaregiver(user_id=user.id, **flags) for user, flags in (caregivers or [])
        ]
        db.add(baby)
        db.commit()
        return baby
    return _make


@pytest.fixture(scope="function")
def baby(make_baby, parent: User, caregiver: User) -> Baby:
    """Baby with one parent and one caregiver who receives alerts."""
    return make_baby(
        [parent],
        [(caregiver, {"receive_alerts": True, "view_live_stream": True})],
    )


@pytest.fixture(scope="function")
def active_session(db: Session, baby: Baby, parent: User, gateway: RecordingGateway) -> MonitoringSession:
    session = monitoring_service.start_session(
        db,
        baby_id=baby.id,
        user_id=parent.id,
        session_type=SessionType.SLEEP,
        gateway=gateway,
    )
    db.commit()
    gateway.events.clear()
    return session


# =============================================================================
# Auth Fixtures
# =============================================================================

@dataclass
class TestAuth:
    """Test authentication context."""
    user: User
    token: str
    cookie_name: str = COOKIE_NAME


def _auth_for(user: User) -> TestAuth:
    return TestAuth(user=user, token=create_session_token(user.id, user.token_version))


@pytest.fixture(scope="function")
def test_auth(parent: User) -> TestAuth:
    """Create JWT token for the parent user."""
    return _auth_for(parent)


# =============================================================================
# Client Fixtures
# =============================================================================

def _install_overrides(db: Session, gateway: RecordingGateway) -> None:
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_gateway] = lambda: gateway


@pytest.fixture(scope="function")
async def client(db: Session, gateway: RecordingGateway) -> AsyncGenerator[AsyncClient, None]:
    """
    Create unauthenticated AsyncClient for testing public endpoints.
    """
    _install_overrides(db, gateway)

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def authed_client(
    db: Session,
    gateway: RecordingGateway,
    test_auth: TestAuth,
) -> AsyncGenerator[AsyncClient, None]:
    """
    Create authenticated AsyncClient (parent) with JWT cookie and CSRF header.
    """
    _install_overrides(db, gateway)

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        cookies={test_auth.cookie_name: test_auth.token},
        headers={"X-Requested-With": "XMLHttpRequest"},  # CSRF header
    ) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def client_for(db: Session, gateway: RecordingGateway):
    """Factory for an authenticated client acting as any user (Bearer header)."""
    _install_overrides(db, gateway)

    def _client(user: User) -> AsyncClient:
        auth = _auth_for(user)
        return AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
            headers={
                "Authorization": f"Bearer {auth.token}",
                "X-Requested-With": "XMLHttpRequest",
            },
        )

    yield _client

    app.dependency_overrides.clear()
