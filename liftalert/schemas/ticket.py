"""Pydantic schemas for ticket read models (operator timeline)."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from liftalert.db.enums import ButtonTag, MessageKind, TicketStatus


class TicketRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    reference: str | None
    lift_id: int
    sms_id: str
    status: TicketStatus
    button_clicked: ButtonTag | None = None
    responded_by: UUID | None = None
    reminder_count: int
    last_reminder_at: datetime | None = None
    resolved_at: datetime | None = None
    closure_note: str | None = None
    notes: str | None = None
    initial_message_id: str | None = None
    created_at: datetime
    updated_at: datetime


class CorrelationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    message_id: str
    contact_id: UUID
    kind: MessageKind
    created_at: datetime


class EventRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    event_type: str
    ticket_id: int | None = None
    lift_id: int | None = None
    contact_id: UUID | None = None
    details: dict | None = None
    created_at: datetime


class TicketTimeline(BaseModel):
    ticket: TicketRead
    correlations: list[CorrelationRead]
    events: list[EventRead]
