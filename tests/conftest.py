"""
Test configuration and fixtures.

Provides:
- A throwaway SQLite database per test (file-backed so that two sessions
  can race each other)
- FakeGateway: records every outbound message, fails selected recipients
- Seeded lift directory (two lifts, three contacts)
- HTTPX AsyncClient with get_db / get_gateway overridden
"""
import os
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import AsyncGenerator, Generator, Sequence

# Settings are read at import time
os.environ["TESTING"] = "1"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["WHATSAPP_APP_SECRET"] = ""
os.environ["SMS_HMAC_SECRET"] = ""
os.environ["ADMIN_TOKEN"] = "test-admin-token"
os.environ["INTERNAL_SECRET"] = "test-internal-secret"
os.environ["WHATSAPP_ACCESS_TOKEN"] = ""

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from liftalert.core.deps import get_db, get_gateway
from liftalert.db.base import Base
from liftalert.db.models import Contact, Lift, LiftContact
from liftalert.main import app
from liftalert.services.whatsapp_gateway import GatewayAuthError, GatewaySendFailed, ReplyButton

NOW = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def session_factory(tmp_path) -> Generator[sessionmaker, None, None]:
    engine = create_engine(
        f"sqlite:///{tmp_path / 'liftalert-test.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    engine.dispose()


@pytest.fixture(scope="function")
def db(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    yield session
    session.close()


# =============================================================================
# Fake messaging gateway
# =============================================================================

@dataclass
class SentMessage:
    kind: str
    to: str
    payload: dict
    message_id: str | None = None
    error: str | None = None


@dataclass
class FakeGateway:
    """In-memory MessagingGateway; recipients in `fail_for` get GatewaySendFailed."""

    calls: list[SentMessage] = field(default_factory=list)
    fail_for: set[str] = field(default_factory=set)
    auth_fail_for: set[str] = field(default_factory=set)
    _seq: int = 0

    def _send(self, kind: str, to: str, payload: dict) -> str:
        message = SentMessage(kind=kind, to=to, payload=payload)
        self.calls.append(message)
        if to in self.auth_fail_for:
            message.error = "auth"
            raise GatewayAuthError("whatsapp_auth", status_code=401)
        if to in self.fail_for:
            message.error = "send_failed"
            raise GatewaySendFailed("whatsapp_non_2xx_500", status_code=500)
        self._seq += 1
        message.message_id = f"wamid.TEST{self._seq:04d}"
        return message.message_id

    async def send_template(
        self, to: str, template_name: str, language_code: str, body_param: str
    ) -> str:
        return self._send(
            "template",
            to,
            {"template": template_name, "language": language_code, "body_param": body_param},
        )

    async def send_text(self, to: str, text: str) -> str:
        return self._send("text", to, {"text": text})

    async def send_interactive(
        self, to: str, body_text: str, buttons: Sequence[ReplyButton]
    ) -> str:
        return self._send(
            "interactive",
            to,
            {"body": body_text, "buttons": [(b.id, b.title) for b in buttons]},
        )

    def delivered(self, kind: str | None = None) -> list[SentMessage]:
        return [
            m for m in self.calls
            if m.message_id is not None and (kind is None or m.kind == kind)
        ]

    def recipients(self, kind: str | None = None) -> list[str]:
        return [m.to for m in self.delivered(kind)]

    def reset(self) -> None:
        self.calls.clear()


@pytest.fixture(scope="function")
def gateway() -> FakeGateway:
    return FakeGateway()


# =============================================================================
# Directory Fixtures
# =============================================================================

@dataclass
class Directory:
    lift: Lift
    other_lift: Lift
    empty_lift: Lift
    contact_a: Contact
    contact_b: Contact
    contact_c: Contact


LIFT_MSISDN = "27820000001"
OTHER_LIFT_MSISDN = "27820000002"
EMPTY_LIFT_MSISDN = "27820000003"
A_MSISDN = "27821111111"
B_MSISDN = "27822222222"
C_MSISDN = "27823333333"


@pytest.fixture(scope="function")
def directory(db: Session) -> Directory:
    """
    L1 has contacts A (primary) and B (tenant).
    L2 has contacts A and C, so A is linked to two lifts.
    L3 has nobody.
    """
    lift = Lift(msisdn=LIFT_MSISDN, site_name="Growthpoint", building="Block A")
    other_lift = Lift(msisdn=OTHER_LIFT_MSISDN, site_name="Harbour View", building="Tower 2")
    empty_lift = Lift(msisdn=EMPTY_LIFT_MSISDN, site_name="Old Mill")
    contact_a = Contact(id=uuid.uuid4(), primary_msisdn=A_MSISDN, display_name="Alice")
    contact_b = Contact(id=uuid.uuid4(), primary_msisdn=B_MSISDN, display_name="Bongani")
    contact_c = Contact(id=uuid.uuid4(), primary_msisdn=C_MSISDN, display_name="Chen")
    db.add_all([lift, other_lift, empty_lift, contact_a, contact_b, contact_c])
    db.flush()
    db.add_all(
        [
            LiftContact(lift_id=lift.id, contact_id=contact_a.id, relation="primary"),
            LiftContact(lift_id=lift.id, contact_id=contact_b.id, relation="tenant"),
            LiftContact(lift_id=other_lift.id, contact_id=contact_a.id, relation="primary"),
            LiftContact(lift_id=other_lift.id, contact_id=contact_c.id, relation="tenant"),
        ]
    )
    db.commit()
    return Directory(lift, other_lift, empty_lift, contact_a, contact_b, contact_c)


# =============================================================================
# Client Fixtures
# =============================================================================

@pytest.fixture(scope="function")
async def client(db: Session, gateway: FakeGateway) -> AsyncGenerator[AsyncClient, None]:
    """AsyncClient against the app with the test database and fake gateway."""
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_gateway] = lambda: gateway
    app.state.inbound_buffer.clear()

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()
