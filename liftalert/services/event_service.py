"""Audit event log."""

from __future__ import annotations

import logging
import uuid
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from liftalert.core.structured_logging import build_log_context
from liftalert.db.enums import EventType
from liftalert.db.models import Event

logger = logging.getLogger(__name__)


def log_event(
    db: Session,
    event_type: EventType,
    *,
    ticket_id: int | None = None,
    lift_id: int | None = None,
    contact_id: uuid.UUID | None = None,
    details: dict[str, Any] | None = None,
) -> Event:
    """
    Add an audit event to the caller's transaction.

    Does not commit: the event lands together with the state change it
    describes. Also mirrored to the application log.
    """
    entry = Event(
        event_type=event_type.value,
        ticket_id=ticket_id,
        lift_id=lift_id,
        contact_id=contact_id,
        details=details,
    )
    db.add(entry)
    logger.info(
        "event=%s ticket=%s lift=%s",
        event_type.value,
        ticket_id,
        lift_id,
        extra=build_log_context(
            ticket_id=ticket_id,
            lift_id=lift_id,
            contact_id=str(contact_id) if contact_id else None,
            event=event_type.value,
        ),
    )
    return entry


def list_events(
    db: Session,
    *,
    ticket_id: int | None = None,
    event_type: EventType | None = None,
    limit: int = 100,
) -> list[Event]:
    stmt = select(Event).order_by(Event.id.desc()).limit(limit)
    if ticket_id is not None:
        stmt = stmt.where(Event.ticket_id == ticket_id)
    if event_type is not None:
        stmt = stmt.where(Event.event_type == event_type.value)
    return list(db.execute(stmt).scalars().all())
