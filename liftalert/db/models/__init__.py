"""SQLAlchemy ORM models."""

from liftalert.db.models.events import Event
from liftalert.db.models.lifts import Contact, Lift, LiftContact
from liftalert.db.models.tickets import MessageCorrelation, Ticket

__all__ = [
    "Contact",
    "Event",
    "Lift",
    "LiftContact",
    "MessageCorrelation",
    "Ticket",
]
