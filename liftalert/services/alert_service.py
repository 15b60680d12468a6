"""Alert origination: inbound trigger -> ticket -> WhatsApp fan-out."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from liftalert.core.structured_logging import build_log_context
from liftalert.db.enums import EventType, MessageKind, SendStatus
from liftalert.db.models import Lift, Ticket
from liftalert.services import event_service, lift_service, notification_service, ticket_service
from liftalert.services.notification_service import ContactSendResult
from liftalert.services.whatsapp_gateway import MessagingGateway

logger = logging.getLogger(__name__)


class AlertError(Exception):
    """Base exception for alert origination errors the caller can act on."""

    code = "ALERT_ERROR"
    status_code = 400


class LiftNotFound(AlertError):
    code = "LIFT_NOT_FOUND"
    status_code = 404

    def __init__(self, msisdn: str):
        super().__init__(f"No lift registered for {msisdn or '(empty)'}")
        self.msisdn = msisdn


class NoContactsLinked(AlertError):
    code = "NO_CONTACTS_LINKED"
    status_code = 422

    def __init__(self, lift: Lift):
        super().__init__(f"Lift {lift.id} has no linked contacts")
        self.lift_id = lift.id


@dataclass
class AlertResult:
    ticket: Ticket
    lift: Lift
    results: list[ContactSendResult] = field(default_factory=list)

    @property
    def sent_count(self) -> int:
        return sum(1 for r in self.results if r.status == SendStatus.SENT)

    @property
    def failed_count(self) -> int:
        return sum(1 for r in self.results if r.status == SendStatus.FAILED)


async def originate_alert(
    db: Session,
    gateway: MessagingGateway,
    lift_phone: str,
    text: str | None,
    external_id: str,
    now: datetime | None = None,
) -> AlertResult:
    """
    Open a ticket for the lift behind `lift_phone` and alert every linked contact.

    Raises LiftNotFound or NoContactsLinked; in both cases no ticket is
    persisted and the failure is audited. Per-contact gateway failures are
    reported in the result, never raised.
    """
    now = now or datetime.now(timezone.utc)
    msisdn = lift_service.normalize_msisdn(lift_phone)

    lift = lift_service.get_lift_by_msisdn(db, msisdn)
    if lift is None:
        event_service.log_event(
            db,
            EventType.LIFT_NOT_FOUND,
            details={"msisdn": msisdn, "sms_id": external_id},
        )
        db.commit()
        raise LiftNotFound(msisdn)

    event_service.log_event(
        db,
        EventType.LIFT_RESOLVED,
        lift_id=lift.id,
        details={"msisdn": msisdn, "sms_id": external_id},
    )

    contacts = lift_service.list_lift_contacts(db, lift.id)
    if not contacts:
        event_service.log_event(
            db,
            EventType.NO_CONTACTS_LINKED,
            lift_id=lift.id,
            details={"sms_id": external_id},
        )
        db.commit()
        raise NoContactsLinked(lift)

    event_service.log_event(
        db,
        EventType.CONTACTS_FOUND,
        lift_id=lift.id,
        details={"count": len(contacts), "contact_ids": [str(c.id) for c in contacts]},
    )

    ticket = ticket_service.create_ticket(db, lift, sms_id=external_id, text=text, now=now)
    event_service.log_event(
        db,
        EventType.TICKET_CREATED,
        ticket_id=ticket.id,
        lift_id=lift.id,
        details={"reference": ticket.reference, "sms_id": external_id},
    )
    db.commit()

    log_context = build_log_context(ticket_id=ticket.id, lift_id=lift.id)
    logger.info(
        "Ticket %s opened, alerting %d contacts",
        ticket.reference,
        len(contacts),
        extra=log_context,
    )

    results = await notification_service.fan_out_template(
        db,
        gateway,
        ticket=ticket,
        lift=lift,
        contacts=contacts,
        kind=MessageKind.INITIAL,
    )

    first_sent = next((r for r in results if r.status == SendStatus.SENT), None)
    if first_sent is not None:
        ticket.initial_message_id = first_sent.message_id

    result = AlertResult(ticket=ticket, lift=lift, results=results)
    event_service.log_event(
        db,
        EventType.ALERT_BATCH_SUMMARY,
        ticket_id=ticket.id,
        lift_id=lift.id,
        details={
            "sent": result.sent_count,
            "failed": result.failed_count,
            "results": [r.as_dict() for r in results],
        },
    )
    db.commit()
    db.refresh(ticket)

    if result.sent_count == 0:
        logger.error("Ticket %s: alert reached no contacts", ticket.reference, extra=log_context)
    return result
