"""Ticket store: creation, guarded transitions and lookups.

Every mutation is a single-row conditional UPDATE guarded by the status and
button state the caller observed. A zero-row result means a concurrent
writer (another click, or a reminder tick) got there first; the loser
becomes a no-op instead of silently overwriting.
"""

from __future__ import annotations

import logging
import re
import uuid
from datetime import datetime, timezone
from typing import Any, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from liftalert.core.structured_logging import build_log_context
from liftalert.db.enums import ButtonTag, TicketStatus
from liftalert.db.models import Lift, Ticket

logger = logging.getLogger(__name__)

REFERENCE_PREFIX_LEN = 4
DEFAULT_REFERENCE_PREFIX = "LIFT"


def auto_close_note(max_reminders: int) -> str:
    return f"Auto-closed: no response after {max_reminders} reminders"


def as_utc(value: datetime | None) -> datetime | None:
    """Treat naive datetimes (SQLite round-trips) as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def build_reference(building: str | None, ticket_id: int) -> str:
    """Human reference from the building name and id, e.g. ("Growthpoint", 42) -> "GROW-00042"."""
    prefix = re.sub(r"[^A-Z0-9]", "", (building or "").upper())[:REFERENCE_PREFIX_LEN]
    return f"{prefix or DEFAULT_REFERENCE_PREFIX}-{ticket_id:05d}"


# =============================================================================
# Creation
# =============================================================================

def create_ticket(
    db: Session,
    lift: Lift,
    *,
    sms_id: str,
    text: str | None,
    now: datetime,
) -> Ticket:
    """
    Open a ticket for a lift (flushes, does not commit).

    The creation time seeds the first reminder window.
    """
    ticket = Ticket(
        lift_id=lift.id,
        sms_id=sms_id,
        status=TicketStatus.OPEN,
        button_clicked=None,
        reminder_count=0,
        last_reminder_at=now,
        notes=text,
        created_at=now,
        updated_at=now,
    )
    db.add(ticket)
    db.flush()
    ticket.reference = build_reference(lift.building or lift.site_name, ticket.id)
    db.flush()
    return ticket


def get_ticket(db: Session, ticket_id: int) -> Ticket | None:
    return db.get(Ticket, ticket_id)


# =============================================================================
# Guarded transitions
# =============================================================================

def _button_guard(observed: ButtonTag | None):
    if observed is None:
        return Ticket.button_clicked.is_(None)
    return Ticket.button_clicked == observed


def _guarded_update(
    db: Session,
    ticket: Ticket,
    values: dict[str, Any],
    *,
    extra_conditions: Sequence = (),
    action: str,
) -> bool:
    stmt = (
        update(Ticket)
        .where(
            Ticket.id == ticket.id,
            Ticket.status == TicketStatus.OPEN,
            _button_guard(ticket.button_clicked),
            *extra_conditions,
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)
    if result.rowcount != 1:
        logger.warning(
            "Ticket %s transition '%s' lost to a concurrent update",
            ticket.id,
            action,
            extra=build_log_context(ticket_id=ticket.id, event="transition_conflict"),
        )
        return False
    db.expire(ticket)
    return True


def close_ticket(
    db: Session,
    ticket: Ticket,
    *,
    tag: ButtonTag,
    contact_id: uuid.UUID | None,
    now: datetime,
) -> bool:
    """Human-resolved closure. Never sets closure_note."""
    if not tag.is_terminal:
        raise ValueError(f"{tag.value} is not a terminal button tag")
    return _guarded_update(
        db,
        ticket,
        {
            "status": TicketStatus.CLOSED,
            "button_clicked": tag,
            "responded_by": contact_id,
            "resolved_at": now,
            "updated_at": now,
        },
        action=f"close:{tag.value}",
    )


def mark_awaiting_confirmation(
    db: Session,
    ticket: Ticket,
    *,
    contact_id: uuid.UUID,
    now: datetime,
) -> bool:
    """
    Entrapment reported: wait for the YES confirmation from `contact_id`.

    Restarts the reminder budget for the confirmation step. Allowed while no
    button has been recorded, or again while already awaiting confirmation.
    """
    if ticket.button_clicked not in (None, ButtonTag.ENTRAPMENT_AWAITING_CONFIRMATION):
        return False
    return _guarded_update(
        db,
        ticket,
        {
            "button_clicked": ButtonTag.ENTRAPMENT_AWAITING_CONFIRMATION,
            "reminder_count": 0,
            "last_reminder_at": now,
            "responded_by": contact_id,
            "updated_at": now,
        },
        action="await_confirmation",
    )


def claim_reminder(db: Session, ticket: Ticket, *, now: datetime) -> bool:
    """
    Claim the next reminder slot: count + 1 and stamp last_reminder_at.

    Guarded by the count the sweep selected, so two scheduler instances
    can never both send the same reminder.
    """
    seen = ticket.reminder_count
    return _guarded_update(
        db,
        ticket,
        {
            "reminder_count": seen + 1,
            "last_reminder_at": now,
            "updated_at": now,
        },
        extra_conditions=(Ticket.reminder_count == seen,),
        action="claim_reminder",
    )


def auto_close(db: Session, ticket: Ticket, *, now: datetime, max_reminders: int) -> bool:
    """Reminder budget exhausted. The only path that sets closure_note."""
    seen = ticket.reminder_count
    return _guarded_update(
        db,
        ticket,
        {
            "status": TicketStatus.CLOSED,
            "reminder_count": max_reminders,
            "resolved_at": now,
            "closure_note": auto_close_note(max_reminders),
            "updated_at": now,
        },
        extra_conditions=(Ticket.reminder_count == seen,),
        action="auto_close",
    )


# =============================================================================
# Queries
# =============================================================================

def find_open_tickets_for_lifts(
    db: Session, lift_ids: Sequence[int], *, created_since: datetime
) -> list[Ticket]:
    """Open tickets on the given lifts, most recently created first."""
    if not lift_ids:
        return []
    stmt = (
        select(Ticket)
        .where(
            Ticket.lift_id.in_(lift_ids),
            Ticket.status == TicketStatus.OPEN,
            Ticket.created_at >= created_since,
        )
        .order_by(Ticket.created_at.desc(), Ticket.id.desc())
    )
    return list(db.execute(stmt).scalars().all())


def find_recently_closed_ticket_for_lifts(
    db: Session, lift_ids: Sequence[int], *, resolved_since: datetime
) -> Ticket | None:
    if not lift_ids:
        return None
    stmt = (
        select(Ticket)
        .where(
            Ticket.lift_id.in_(lift_ids),
            Ticket.status == TicketStatus.CLOSED,
            Ticket.resolved_at >= resolved_since,
        )
        .order_by(Ticket.resolved_at.desc(), Ticket.id.desc())
        .limit(1)
    )
    return db.execute(stmt).scalar_one_or_none()


def find_due_for_reminder(
    db: Session,
    *,
    button_state: ButtonTag | None,
    cutoff: datetime,
    max_reminders: int,
) -> list[Ticket]:
    """Open tickets in `button_state` whose last reminder is older than `cutoff`."""
    stmt = (
        select(Ticket)
        .where(
            Ticket.status == TicketStatus.OPEN,
            _button_guard(button_state),
            Ticket.reminder_count <= max_reminders,
            Ticket.last_reminder_at < cutoff,
        )
        .order_by(Ticket.last_reminder_at, Ticket.id)
    )
    return list(db.execute(stmt).scalars().all())


def count_open_tickets(db: Session) -> int:
    stmt = select(func.count()).select_from(Ticket).where(Ticket.status == TicketStatus.OPEN)
    return db.execute(stmt).scalar_one()
