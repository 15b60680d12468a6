"""Reminder sweep: resend pending alerts, auto-close after the reminder budget.

Two sweeps per run:
- Sweep A: no button pressed yet. Resend the alert template to every
  contact on the lift (kind `reminder`).
- Sweep B: entrapment reported, YES confirmation pending. Resend the
  interactive YES prompt to the responding contact only
  (kind `entrapment_reminder`).

A ticket already at the budget is auto-closed instead and the escalation is
broadcast to every contact on the lift. Each ticket is claimed with a
guarded update before anything is sent, so concurrent scheduler instances
(or a racing button click) turn into no-ops rather than duplicate sends.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy.orm import Session

from liftalert.core.config import settings
from liftalert.core.structured_logging import build_log_context
from liftalert.db.enums import ButtonTag, EventType, MessageKind, SendStatus, TicketStatus
from liftalert.db.models import Ticket
from liftalert.services import event_service, lift_service, notification_service, ticket_service
from liftalert.services.whatsapp_gateway import MessagingGateway

logger = logging.getLogger(__name__)


@dataclass
class ReminderSweepStats:
    reminders_sent: int = 0
    entrapment_reminders_sent: int = 0
    auto_closed: int = 0
    skipped: int = 0
    errors: int = 0

    def as_dict(self) -> dict:
        return {
            "reminders_sent": self.reminders_sent,
            "entrapment_reminders_sent": self.entrapment_reminders_sent,
            "auto_closed": self.auto_closed,
            "skipped": self.skipped,
            "errors": self.errors,
        }


async def run_reminder_sweep(
    db: Session,
    gateway: MessagingGateway,
    now: datetime | None = None,
) -> ReminderSweepStats:
    """Run Sweep A then Sweep B once. Never raises for a single ticket."""
    now = now or datetime.now(timezone.utc)
    max_reminders = settings.MAX_REMINDERS
    cutoff = now - timedelta(seconds=settings.REMINDER_COOLDOWN_SECONDS)
    stats = ReminderSweepStats()

    for button_state in (None, ButtonTag.ENTRAPMENT_AWAITING_CONFIRMATION):
        due_ids = [
            ticket.id
            for ticket in ticket_service.find_due_for_reminder(
                db, button_state=button_state, cutoff=cutoff, max_reminders=max_reminders
            )
        ]
        for ticket_id in due_ids:
            try:
                await _process_ticket(db, gateway, ticket_id, button_state, now, stats)
            except Exception as exc:
                db.rollback()
                stats.errors += 1
                logger.exception(
                    "Reminder sweep failed for ticket %s",
                    ticket_id,
                    extra=build_log_context(ticket_id=ticket_id, event="reminder_sweep_error"),
                )
                try:
                    event_service.log_event(
                        db,
                        EventType.REMINDER_SWEEP_ERROR,
                        ticket_id=ticket_id,
                        details={"error": f"{type(exc).__name__}: {exc}"},
                    )
                    db.commit()
                except Exception:
                    db.rollback()
                    logger.exception(
                        "Could not record sweep error for ticket %s",
                        ticket_id,
                        extra=build_log_context(ticket_id=ticket_id),
                    )

    if stats.reminders_sent or stats.entrapment_reminders_sent or stats.auto_closed:
        logger.info("Reminder sweep finished: %s", stats.as_dict())
    return stats


async def _process_ticket(
    db: Session,
    gateway: MessagingGateway,
    ticket_id: int,
    button_state: ButtonTag | None,
    now: datetime,
    stats: ReminderSweepStats,
) -> None:
    ticket = ticket_service.get_ticket(db, ticket_id)
    if (
        ticket is None
        or ticket.status != TicketStatus.OPEN
        or ticket.button_clicked != button_state
    ):
        stats.skipped += 1
        return

    if ticket.reminder_count >= settings.MAX_REMINDERS:
        await _auto_close(db, gateway, ticket, now, stats)
    elif button_state is None:
        await _resend_alert(db, gateway, ticket, now, stats)
    else:
        await _resend_confirmation(db, gateway, ticket, now, stats)


async def _auto_close(
    db: Session,
    gateway: MessagingGateway,
    ticket: Ticket,
    now: datetime,
    stats: ReminderSweepStats,
) -> None:
    max_reminders = settings.MAX_REMINDERS
    if not ticket_service.auto_close(db, ticket, now=now, max_reminders=max_reminders):
        stats.skipped += 1
        return
    lift = ticket.lift
    event_service.log_event(
        db,
        EventType.TICKET_AUTO_CLOSED,
        ticket_id=ticket.id,
        lift_id=lift.id,
        details={"reminder_count": max_reminders, "closure_note": ticket.closure_note},
    )
    db.commit()
    stats.auto_closed += 1
    logger.warning(
        "Ticket %s auto-closed after %d reminders",
        ticket.reference,
        max_reminders,
        extra=build_log_context(ticket_id=ticket.id, lift_id=lift.id),
    )

    # Escalation goes to everyone on the lift, whichever sweep selected the ticket
    await notification_service.broadcast_text(
        db,
        gateway,
        ticket=ticket,
        lift=lift,
        contacts=lift_service.list_lift_contacts(db, lift.id),
        text=notification_service.escalation_text(ticket, lift, max_reminders),
        purpose="escalation",
    )
    db.commit()


async def _resend_alert(
    db: Session,
    gateway: MessagingGateway,
    ticket: Ticket,
    now: datetime,
    stats: ReminderSweepStats,
) -> None:
    if not ticket_service.claim_reminder(db, ticket, now=now):
        stats.skipped += 1
        return
    db.commit()

    lift = ticket.lift
    results = await notification_service.fan_out_template(
        db,
        gateway,
        ticket=ticket,
        lift=lift,
        contacts=lift_service.list_lift_contacts(db, lift.id),
        kind=MessageKind.REMINDER,
    )
    db.commit()
    stats.reminders_sent += sum(1 for r in results if r.status == SendStatus.SENT)


async def _resend_confirmation(
    db: Session,
    gateway: MessagingGateway,
    ticket: Ticket,
    now: datetime,
    stats: ReminderSweepStats,
) -> None:
    responder = ticket.responder
    if responder is None:
        # Nobody to remind; let the budget run out to the escalation
        logger.warning(
            "Ticket %s awaits confirmation without a responder",
            ticket.reference,
            extra=build_log_context(ticket_id=ticket.id),
        )
    if not ticket_service.claim_reminder(db, ticket, now=now):
        stats.skipped += 1
        return
    db.commit()
    if responder is None:
        return

    lift = ticket.lift
    result = await notification_service.send_confirmation_prompt(
        db,
        gateway,
        ticket=ticket,
        lift=lift,
        contact=responder,
        kind=MessageKind.ENTRAPMENT_REMINDER,
    )
    sent = result.status == SendStatus.SENT
    event_service.log_event(
        db,
        EventType.REMINDER_SENT if sent else EventType.REMINDER_FAILED,
        ticket_id=ticket.id,
        lift_id=lift.id,
        contact_id=responder.id,
        details={
            "kind": MessageKind.ENTRAPMENT_REMINDER.value,
            "message_id": result.message_id,
            "error": result.error,
        },
    )
    db.commit()
    if sent:
        stats.entrapment_reminders_sent += 1
