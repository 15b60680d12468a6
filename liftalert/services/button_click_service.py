"""Button click dispatch: resolve contact and ticket, apply the transition.

Transition table (decoded action -> effect on an open ticket):

    yes          close, tag entrapment_yes, notify all lift contacts
    no           deprecated, acknowledged without action
    test         close, tag test, notify all lift contacts
    maintenance  close, tag maintenance, notify all lift contacts
    entrapment   stay open, await YES confirmation from the clicking contact
    unknown      acknowledged without action

The ticket is resolved before the table applies, so a click of any kind on a
recently closed ticket gets the "already closed" reply.

Nothing here raises for resolution failures: the webhook sender must always
get a 2xx, so every dead end is logged, audited and returned as an outcome.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from liftalert.core.structured_logging import build_log_context
from liftalert.db.enums import (
    ButtonAction,
    ButtonTag,
    EventType,
    MatchType,
    MessageKind,
    SendStatus,
)
from liftalert.db.models import Contact, Ticket
from liftalert.services import (
    button_service,
    event_service,
    lift_service,
    notification_service,
    ticket_service,
)
from liftalert.services.notification_service import ContactSendResult
from liftalert.services.ticket_matching import resolve_ticket
from liftalert.services.whatsapp_gateway import GatewayError, MessagingGateway

logger = logging.getLogger(__name__)

CLOSING_TAGS = {
    ButtonAction.YES: ButtonTag.ENTRAPMENT_YES,
    ButtonAction.TEST: ButtonTag.TEST,
    ButtonAction.MAINTENANCE: ButtonTag.MAINTENANCE,
}


@dataclass
class ButtonClickEvent:
    """One inbound reply, normalised from the provider webhook."""

    from_phone: str
    button_id: str | None = None
    button_text: str | None = None
    context_message_id: str | None = None
    provider_message_id: str | None = None

    def as_dict(self) -> dict:
        return {
            "button_id": self.button_id,
            "button_text": self.button_text,
            "context_message_id": self.context_message_id,
            "provider_message_id": self.provider_message_id,
        }


@dataclass
class DispatchOutcome:
    outcome: str
    action: ButtonAction
    match_type: MatchType = MatchType.NONE
    ticket_id: int | None = None
    notifications: list[ContactSendResult] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "outcome": self.outcome,
            "action": self.action.value,
            "match_type": self.match_type.value,
            "ticket_id": self.ticket_id,
            "notified": sum(1 for n in self.notifications if n.status == SendStatus.SENT),
        }


async def dispatch_button_click(
    db: Session,
    gateway: MessagingGateway,
    event: ButtonClickEvent,
    now: datetime | None = None,
) -> DispatchOutcome:
    now = now or datetime.now(timezone.utc)
    action = button_service.decode_button(event.button_id, event.button_text)

    contact = lift_service.get_contact_by_msisdn(db, event.from_phone)
    if contact is None:
        event_service.log_event(
            db,
            EventType.CONTACT_NOT_FOUND,
            details={"from": lift_service.normalize_msisdn(event.from_phone), **event.as_dict()},
        )
        db.commit()
        return DispatchOutcome("contact_not_found", action)

    event_service.log_event(
        db,
        EventType.BUTTON_CLICK_RECEIVED,
        contact_id=contact.id,
        details={"action": action.value, **event.as_dict()},
    )

    match = resolve_ticket(db, contact, event.context_message_id, now=now)

    # Any click on a recently closed ticket gets the reply, whatever the button
    if match.match_type == MatchType.RECENTLY_CLOSED:
        return await _reply_already_closed(db, gateway, contact, match.ticket, action)

    if action == ButtonAction.NO:
        event_service.log_event(
            db,
            EventType.DEPRECATED_BUTTON,
            ticket_id=match.ticket.id if match.ticket else None,
            contact_id=contact.id,
            details=event.as_dict(),
        )
        db.commit()
        return DispatchOutcome("deprecated_button", action, match.match_type)
    if action == ButtonAction.UNKNOWN:
        event_service.log_event(
            db,
            EventType.UNKNOWN_BUTTON,
            ticket_id=match.ticket.id if match.ticket else None,
            contact_id=contact.id,
            details=event.as_dict(),
        )
        db.commit()
        return DispatchOutcome("unknown_button", action, match.match_type)

    if match.match_type == MatchType.AMBIGUOUS:
        db.commit()
        return DispatchOutcome("ambiguous", action, match.match_type)

    if not match.is_open:
        event_service.log_event(
            db,
            EventType.TICKET_NOT_FOUND,
            ticket_id=match.ticket.id if match.ticket else None,
            contact_id=contact.id,
            details={"action": action.value, **event.as_dict()},
        )
        db.commit()
        return DispatchOutcome(
            "ticket_not_found",
            action,
            match.match_type,
            ticket_id=match.ticket.id if match.ticket else None,
        )

    ticket = match.ticket
    if action == ButtonAction.ENTRAPMENT:
        return await _await_confirmation(db, gateway, ticket, contact, match.match_type, now)
    return await _close(db, gateway, ticket, contact, action, match.match_type, now)


async def _close(
    db: Session,
    gateway: MessagingGateway,
    ticket: Ticket,
    contact: Contact,
    action: ButtonAction,
    match_type: MatchType,
    now: datetime,
) -> DispatchOutcome:
    tag = CLOSING_TAGS[action]
    ticket_id = ticket.id
    lift = ticket.lift

    if not ticket_service.close_ticket(db, ticket, tag=tag, contact_id=contact.id, now=now):
        return _conflict(db, ticket_id, contact, action, match_type)

    event_service.log_event(
        db,
        EventType.TICKET_CLOSED,
        ticket_id=ticket_id,
        lift_id=lift.id,
        contact_id=contact.id,
        details={"button": tag.value, "match_type": match_type.value},
    )
    db.commit()
    logger.info(
        "Ticket %s closed by button '%s'",
        ticket.reference,
        tag.value,
        extra=build_log_context(ticket_id=ticket_id, contact_id=str(contact.id)),
    )

    notifications = await notification_service.broadcast_text(
        db,
        gateway,
        ticket=ticket,
        lift=lift,
        contacts=lift_service.list_lift_contacts(db, lift.id),
        text=notification_service.resolution_text(tag, ticket, lift, contact),
        purpose=f"resolved:{tag.value}",
    )
    db.commit()
    return DispatchOutcome("closed", action, match_type, ticket_id, notifications)


async def _await_confirmation(
    db: Session,
    gateway: MessagingGateway,
    ticket: Ticket,
    contact: Contact,
    match_type: MatchType,
    now: datetime,
) -> DispatchOutcome:
    action = ButtonAction.ENTRAPMENT
    ticket_id = ticket.id
    lift = ticket.lift

    if not ticket_service.mark_awaiting_confirmation(db, ticket, contact_id=contact.id, now=now):
        return _conflict(db, ticket_id, contact, action, match_type)
    db.commit()

    result = await notification_service.send_confirmation_prompt(
        db,
        gateway,
        ticket=ticket,
        lift=lift,
        contact=contact,
        kind=MessageKind.ENTRAPMENT_FOLLOWUP,
    )
    sent = result.status == SendStatus.SENT
    event_service.log_event(
        db,
        EventType.ENTRAPMENT_FOLLOWUP_SENT if sent else EventType.ENTRAPMENT_FOLLOWUP_FAILED,
        ticket_id=ticket_id,
        lift_id=lift.id,
        contact_id=contact.id,
        details={"message_id": result.message_id, "error": result.error},
    )
    db.commit()
    return DispatchOutcome("awaiting_confirmation", action, match_type, ticket_id, [result])


async def _reply_already_closed(
    db: Session,
    gateway: MessagingGateway,
    contact: Contact,
    ticket: Ticket,
    action: ButtonAction,
) -> DispatchOutcome:
    details: dict = {"action": action.value}
    try:
        details["message_id"] = await gateway.send_text(
            contact.primary_msisdn,
            notification_service.already_closed_text(ticket, ticket.lift),
        )
    except GatewayError as exc:
        details["error"] = f"{type(exc).__name__}: {exc}"
        logger.warning(
            "Already-closed reply failed",
            extra=build_log_context(ticket_id=ticket.id, contact_id=str(contact.id)),
        )
    event_service.log_event(
        db,
        EventType.ALREADY_CLOSED_REPLY,
        ticket_id=ticket.id,
        lift_id=ticket.lift_id,
        contact_id=contact.id,
        details=details,
    )
    db.commit()
    return DispatchOutcome("already_closed", action, MatchType.RECENTLY_CLOSED, ticket.id)


def _conflict(
    db: Session,
    ticket_id: int,
    contact: Contact,
    action: ButtonAction,
    match_type: MatchType,
) -> DispatchOutcome:
    # The losing conditional update changed nothing; keep the audit trail so far
    event_service.log_event(
        db,
        EventType.TRANSITION_CONFLICT,
        ticket_id=ticket_id,
        contact_id=contact.id,
        details={"action": action.value, "match_type": match_type.value},
    )
    db.commit()
    return DispatchOutcome("conflict", action, match_type, ticket_id)
