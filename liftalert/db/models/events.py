"""Audit event log ORM model."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Index, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from liftalert.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Event(Base):
    """
    Operational audit log.

    One row per significant step (lift resolved, per-contact send result,
    transitions, reminders). Required for operability, not for the state
    machine itself, so there are no foreign keys: events outlive deletes.
    """

    __tablename__ = "events"
    __table_args__ = (
        Index("idx_events_ticket_created", "ticket_id", "created_at"),
        Index("idx_events_type_created", "event_type", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    event_type: Mapped[str] = mapped_column(String(50), nullable=False)  # EventType
    ticket_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    lift_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    contact_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    details: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=_utcnow, nullable=False)
