"""Operator read endpoints: status, recent inbound traffic, ticket timeline.

All routes require the X-Admin-Token header.
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from liftalert.core.config import settings
from liftalert.core.deps import get_db, get_inbound_buffer, require_admin_token
from liftalert.core.inbound_buffer import InboundBuffer
from liftalert.db.models import Contact, Event, Lift
from liftalert.schemas.status import InboundLatestResponse, StatusResponse
from liftalert.schemas.ticket import CorrelationRead, EventRead, TicketRead, TicketTimeline
from liftalert.services import correlation_service, event_service, ticket_service

router = APIRouter(
    prefix="/admin",
    tags=["admin"],
    dependencies=[Depends(require_admin_token)],
)


@router.get("/status", response_model=StatusResponse)
def get_status(db: Session = Depends(get_db)):
    """Directory size, open tickets and gateway / template configuration."""
    lifts = db.execute(select(func.count()).select_from(Lift)).scalar_one()
    contacts = db.execute(select(func.count()).select_from(Contact)).scalar_one()
    last_event_at = db.execute(select(func.max(Event.created_at))).scalar_one_or_none()
    return StatusResponse(
        env=settings.ENV,
        version=settings.VERSION,
        lifts=lifts,
        contacts=contacts,
        open_tickets=ticket_service.count_open_tickets(db),
        last_event_at=ticket_service.as_utc(last_event_at),
        template_name=settings.ALERT_TEMPLATE_NAME,
        template_language=settings.template_language_code,
        scheduler_enabled=settings.SCHEDULER_ENABLED,
        gateway_configured=bool(
            settings.WHATSAPP_ACCESS_TOKEN and settings.WHATSAPP_PHONE_NUMBER_ID
        ),
    )


@router.get("/inbound/latest", response_model=InboundLatestResponse)
def get_latest_inbound(
    limit: int = Query(20, ge=1, le=200),
    source: str | None = Query(None, pattern="^(sms|whatsapp)$"),
    buffer: InboundBuffer = Depends(get_inbound_buffer),
):
    items = buffer.latest(limit=limit, source=source)
    return InboundLatestResponse(count=len(items), items=items)


@router.get("/tickets/{ticket_id}/timeline", response_model=TicketTimeline)
def get_ticket_timeline(ticket_id: int, db: Session = Depends(get_db)):
    ticket = ticket_service.get_ticket(db, ticket_id)
    if ticket is None:
        raise HTTPException(status_code=404, detail="Ticket not found")
    events = event_service.list_events(db, ticket_id=ticket_id, limit=500)
    return TicketTimeline(
        ticket=TicketRead.model_validate(ticket),
        correlations=[
            CorrelationRead.model_validate(record)
            for record in correlation_service.list_for_ticket(db, ticket_id)
        ],
        events=[EventRead.model_validate(event) for event in reversed(events)],
    )
