"""Pydantic schemas for API request/response models."""

from liftalert.schemas.alert import AlertAccepted, ErrorResponse, SmsTrigger
from liftalert.schemas.status import InboundLatestResponse, ReminderSweepResponse, StatusResponse
from liftalert.schemas.ticket import CorrelationRead, EventRead, TicketRead, TicketTimeline

__all__ = [
    "AlertAccepted",
    "CorrelationRead",
    "ErrorResponse",
    "EventRead",
    "InboundLatestResponse",
    "ReminderSweepResponse",
    "SmsTrigger",
    "StatusResponse",
    "TicketRead",
    "TicketTimeline",
]
