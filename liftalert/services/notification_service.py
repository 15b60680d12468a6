"""Outbound alert, reminder and broadcast messages.

Every loop here sends to each contact independently: a GatewayError for
one recipient is recorded against that recipient and the loop continues.
Nothing in this module commits; callers own the transaction.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Iterable

from sqlalchemy.orm import Session

from liftalert.core.config import settings
from liftalert.core.structured_logging import build_log_context
from liftalert.db.enums import ButtonTag, EventType, MessageKind, SendStatus
from liftalert.db.models import Contact, Lift, Ticket
from liftalert.services import correlation_service, event_service
from liftalert.services.whatsapp_gateway import GatewayError, MessagingGateway, ReplyButton

logger = logging.getLogger(__name__)

CONFIRM_BUTTONS = (ReplyButton(id="entrapment_yes", title="YES"),)

RESOLUTION_LABELS = {
    ButtonTag.TEST: "Test alert resolved",
    ButtonTag.MAINTENANCE: "Maintenance alert resolved",
    ButtonTag.ENTRAPMENT_YES: "Entrapment alert resolved",
}


@dataclass
class ContactSendResult:
    contact_id: uuid.UUID
    name: str
    msisdn: str
    status: SendStatus
    message_id: str | None = None
    error: str | None = None

    def as_dict(self) -> dict:
        return {
            "contact_id": str(self.contact_id),
            "name": self.name,
            "status": self.status.value,
            "message_id": self.message_id,
            "error": self.error,
        }


# =============================================================================
# Message text
# =============================================================================

def alert_body_param(ticket: Ticket, lift: Lift) -> str:
    return f"{lift.display_name} (ticket {ticket.reference})"


def resolution_text(tag: ButtonTag, ticket: Ticket, lift: Lift, contact: Contact | None) -> str:
    label = RESOLUTION_LABELS.get(tag, "Alert resolved")
    by = f" by {contact.name}" if contact else ""
    text = f"{label} for {lift.display_name}. Ticket {ticket.reference} was closed{by}."
    if tag == ButtonTag.ENTRAPMENT_YES:
        text += " The service provider has been notified."
    return text


def confirmation_prompt_text(ticket: Ticket, lift: Lift) -> str:
    return (
        f"Entrapment reported at {lift.display_name} (ticket {ticket.reference}). "
        "Please press YES once the service provider has been notified."
    )


def escalation_text(ticket: Ticket, lift: Lift, max_reminders: int) -> str:
    return (
        f"No response received for the emergency alert at {lift.display_name} "
        f"(ticket {ticket.reference}) after {max_reminders} reminders. "
        "The ticket has been closed automatically. Please follow up on site."
    )


def already_closed_text(ticket: Ticket, lift: Lift) -> str:
    return (
        f"Ticket {ticket.reference} for {lift.display_name} has already been closed. "
        "No further action is needed."
    )


# =============================================================================
# Sending
# =============================================================================

def _failed(contact: Contact, exc: GatewayError) -> ContactSendResult:
    return ContactSendResult(
        contact_id=contact.id,
        name=contact.name,
        msisdn=contact.primary_msisdn,
        status=SendStatus.FAILED,
        error=f"{type(exc).__name__}: {exc}",
    )


def _sent(contact: Contact, message_id: str) -> ContactSendResult:
    return ContactSendResult(
        contact_id=contact.id,
        name=contact.name,
        msisdn=contact.primary_msisdn,
        status=SendStatus.SENT,
        message_id=message_id,
    )


async def fan_out_template(
    db: Session,
    gateway: MessagingGateway,
    *,
    ticket: Ticket,
    lift: Lift,
    contacts: Iterable[Contact],
    kind: MessageKind,
) -> list[ContactSendResult]:
    """
    Send the alert template (Test / Maintenance / Entrapment buttons) to each contact.

    Each successful send gets a correlation record of `kind` so the reply
    can be attributed to this ticket.
    """
    sent_event = EventType.ALERT_SENT if kind == MessageKind.INITIAL else EventType.REMINDER_SENT
    failed_event = (
        EventType.ALERT_SEND_FAILED if kind == MessageKind.INITIAL else EventType.REMINDER_FAILED
    )
    body_param = alert_body_param(ticket, lift)
    results: list[ContactSendResult] = []

    for contact in contacts:
        try:
            message_id = await gateway.send_template(
                contact.primary_msisdn,
                settings.ALERT_TEMPLATE_NAME,
                settings.template_language_code,
                body_param,
            )
        except GatewayError as exc:
            logger.warning(
                "Alert template to contact failed (%s)",
                type(exc).__name__,
                extra=build_log_context(
                    ticket_id=ticket.id, contact_id=str(contact.id), msisdn=contact.primary_msisdn
                ),
            )
            results.append(_failed(contact, exc))
            continue
        results.append(_sent(contact, message_id))

    # Correlations and per-contact events are written together after the sends
    for result in results:
        if result.status == SendStatus.SENT:
            correlation_service.record_message(
                db,
                message_id=result.message_id,
                ticket_id=ticket.id,
                contact_id=result.contact_id,
                kind=kind,
            )
        event_service.log_event(
            db,
            sent_event if result.status == SendStatus.SENT else failed_event,
            ticket_id=ticket.id,
            lift_id=lift.id,
            contact_id=result.contact_id,
            details={"kind": kind.value, "message_id": result.message_id, "error": result.error},
        )

    return results


async def send_confirmation_prompt(
    db: Session,
    gateway: MessagingGateway,
    *,
    ticket: Ticket,
    lift: Lift,
    contact: Contact,
    kind: MessageKind,
) -> ContactSendResult:
    """Interactive single YES button asking to confirm the service provider was notified."""
    try:
        message_id = await gateway.send_interactive(
            contact.primary_msisdn, confirmation_prompt_text(ticket, lift), CONFIRM_BUTTONS
        )
    except GatewayError as exc:
        logger.warning(
            "Entrapment confirmation prompt failed (%s)",
            type(exc).__name__,
            extra=build_log_context(ticket_id=ticket.id, contact_id=str(contact.id)),
        )
        return _failed(contact, exc)

    correlation_service.record_message(
        db, message_id=message_id, ticket_id=ticket.id, contact_id=contact.id, kind=kind
    )
    return _sent(contact, message_id)


async def broadcast_text(
    db: Session,
    gateway: MessagingGateway,
    *,
    ticket: Ticket,
    lift: Lift,
    contacts: Iterable[Contact],
    text: str,
    purpose: str,
) -> list[ContactSendResult]:
    """Plain text to every contact on the lift (resolution notices, escalations)."""
    results: list[ContactSendResult] = []
    for contact in contacts:
        try:
            message_id = await gateway.send_text(contact.primary_msisdn, text)
        except GatewayError as exc:
            result = _failed(contact, exc)
            event_service.log_event(
                db,
                EventType.NOTIFICATION_FAILED,
                ticket_id=ticket.id,
                lift_id=lift.id,
                contact_id=contact.id,
                details={"purpose": purpose, "error": result.error},
            )
            results.append(result)
            continue

        event_service.log_event(
            db,
            EventType.NOTIFICATION_SENT,
            ticket_id=ticket.id,
            lift_id=lift.id,
            contact_id=contact.id,
            details={"purpose": purpose, "message_id": message_id},
        )
        results.append(_sent(contact, message_id))
    return results
