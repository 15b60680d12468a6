"""Pydantic schemas for operator status and scheduled endpoints."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel


class StatusResponse(BaseModel):
    env: str
    version: str
    lifts: int
    contacts: int
    open_tickets: int
    last_event_at: datetime | None = None
    template_name: str
    template_language: str
    scheduler_enabled: bool
    gateway_configured: bool


class InboundLatestResponse(BaseModel):
    count: int
    items: list[dict[str, Any]]


class ReminderSweepResponse(BaseModel):
    reminders_sent: int
    entrapment_reminders_sent: int
    auto_closed: int
    skipped: int
    errors: int
