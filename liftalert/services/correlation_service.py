"""Correlation store: provider message id -> (ticket, contact, kind)."""

from __future__ import annotations

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session

from liftalert.core.structured_logging import build_log_context
from liftalert.db.enums import MessageKind
from liftalert.db.models import MessageCorrelation

logger = logging.getLogger(__name__)


def record_message(
    db: Session,
    *,
    message_id: str,
    ticket_id: int,
    contact_id: uuid.UUID,
    kind: MessageKind,
) -> MessageCorrelation | None:
    """
    Add a correlation record in the caller's transaction.

    Records are immutable: a provider id that is already known keeps its
    original mapping and the duplicate is dropped.
    """
    existing = db.get(MessageCorrelation, message_id)
    if existing is not None:
        logger.warning(
            "Duplicate provider message id ignored (kept ticket %s)",
            existing.ticket_id,
            extra=build_log_context(ticket_id=ticket_id, message_id=message_id),
        )
        return None

    record = MessageCorrelation(
        message_id=message_id,
        ticket_id=ticket_id,
        contact_id=contact_id,
        kind=kind,
    )
    db.add(record)
    db.flush()
    return record


def get_by_message_id(db: Session, message_id: str | None) -> MessageCorrelation | None:
    if not message_id:
        return None
    return db.get(MessageCorrelation, message_id)


def list_for_ticket(db: Session, ticket_id: int) -> list[MessageCorrelation]:
    stmt = (
        select(MessageCorrelation)
        .where(MessageCorrelation.ticket_id == ticket_id)
        .order_by(MessageCorrelation.created_at, MessageCorrelation.message_id)
    )
    return list(db.execute(stmt).scalars().all())
