"""Attribute an inbound button click to a ticket.

Resolution order:
1. Correlation record for the replied-to message id (precise).
2. Most recently created open ticket on any of the contact's lifts inside
   the match window. This is a degraded fallback: a contact with several
   open tickets at once cannot be disambiguated, so ambiguity is audited
   and, with STRICT_TICKET_MATCHING, rejected outright.
3. A ticket on the contact's lifts closed inside the closed window, so the
   caller can answer "already closed".
4. Nothing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from liftalert.core.config import settings
from liftalert.core.structured_logging import build_log_context
from liftalert.db.enums import EventType, MatchType, TicketStatus
from liftalert.db.models import Contact, MessageCorrelation, Ticket
from liftalert.services import correlation_service, event_service, lift_service, ticket_service
from liftalert.services.ticket_service import as_utc

logger = logging.getLogger(__name__)


@dataclass
class TicketMatch:
    match_type: MatchType
    ticket: Ticket | None = None
    correlation: MessageCorrelation | None = None
    candidate_ids: list[int] = field(default_factory=list)

    @property
    def is_open(self) -> bool:
        return self.ticket is not None and self.ticket.status == TicketStatus.OPEN


def _closed_within_window(ticket: Ticket, now: datetime) -> bool:
    resolved_at = as_utc(ticket.resolved_at)
    if resolved_at is None:
        return False
    return resolved_at >= now - timedelta(minutes=settings.CLOSED_TICKET_WINDOW_MINUTES)


def resolve_ticket(
    db: Session,
    contact: Contact,
    context_message_id: str | None,
    *,
    now: datetime,
    strict: bool | None = None,
) -> TicketMatch:
    """Find the ticket a click from `contact` refers to. Writes audit events, never commits."""
    strict = settings.STRICT_TICKET_MATCHING if strict is None else strict

    if context_message_id:
        record = correlation_service.get_by_message_id(db, context_message_id)
        if record is not None:
            ticket = ticket_service.get_ticket(db, record.ticket_id)
            if ticket is not None:
                if ticket.status == TicketStatus.OPEN:
                    return TicketMatch(MatchType.CORRELATION, ticket=ticket, correlation=record)
                # A precise hit on a closed ticket never falls through to the heuristic
                if _closed_within_window(ticket, now):
                    return TicketMatch(
                        MatchType.RECENTLY_CLOSED, ticket=ticket, correlation=record
                    )
                return TicketMatch(MatchType.NONE, ticket=ticket, correlation=record)
        else:
            logger.info(
                "No correlation record for context id, falling back to heuristic",
                extra=build_log_context(
                    contact_id=str(contact.id), message_id=context_message_id
                ),
            )

    lift_ids = lift_service.list_contact_lift_ids(db, contact.id)
    candidates = ticket_service.find_open_tickets_for_lifts(
        db,
        lift_ids,
        created_since=now - timedelta(hours=settings.TICKET_MATCH_WINDOW_HOURS),
    )
    if candidates:
        candidate_ids = [ticket.id for ticket in candidates]
        if len(candidates) > 1:
            event_service.log_event(
                db,
                EventType.AMBIGUOUS_TICKET_MATCH,
                ticket_id=candidates[0].id,
                contact_id=contact.id,
                details={
                    "candidate_ticket_ids": candidate_ids,
                    "context_message_id": context_message_id,
                    "strict": strict,
                },
            )
            if strict:
                return TicketMatch(MatchType.AMBIGUOUS, candidate_ids=candidate_ids)
        return TicketMatch(MatchType.HEURISTIC, ticket=candidates[0], candidate_ids=candidate_ids)

    closed = ticket_service.find_recently_closed_ticket_for_lifts(
        db,
        lift_ids,
        resolved_since=now - timedelta(minutes=settings.CLOSED_TICKET_WINDOW_MINUTES),
    )
    if closed is not None:
        return TicketMatch(MatchType.RECENTLY_CLOSED, ticket=closed)

    return TicketMatch(MatchType.NONE)
