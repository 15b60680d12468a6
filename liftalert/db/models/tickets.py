"""Ticket and message correlation ORM models."""

from __future__ import annotations

from typing import TYPE_CHECKING

import uuid
from datetime import datetime, timezone

from sqlalchemy import Enum, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from liftalert.db.base import Base
from liftalert.db.enums import ButtonTag, MessageKind, TicketStatus

if TYPE_CHECKING:
    from liftalert.db.models import Contact, Lift


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _enum_type(enum_cls, *, name: str) -> Enum:
    """Store str-enums as their value strings in a portable VARCHAR."""
    return Enum(
        enum_cls,
        name=name,
        native_enum=False,
        length=50,
        values_callable=lambda members: [member.value for member in members],
    )


class Ticket(Base):
    """
    One emergency alert for one lift, tracked until resolved or auto-closed.

    Invariants:
    - closed is terminal; resolved_at is set exactly once on closure
    - closure_note is only set by the reminder budget auto-close path
    - reminder_count never exceeds the reminder budget and only goes down
      when reset to 0 on entering entrapment confirmation
    """

    __tablename__ = "tickets"
    __table_args__ = (
        Index("idx_tickets_lift_id", "lift_id"),
        Index("idx_tickets_status", "status"),
        Index("idx_tickets_sms_id", "sms_id"),
        Index("idx_tickets_status_reminder", "status", "button_clicked", "last_reminder_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    reference: Mapped[str | None] = mapped_column(String(32), unique=True, nullable=True)
    lift_id: Mapped[int] = mapped_column(
        ForeignKey("lifts.id", ondelete="RESTRICT"), nullable=False
    )
    sms_id: Mapped[str] = mapped_column(String(128), nullable=False)
    status: Mapped[TicketStatus] = mapped_column(
        _enum_type(TicketStatus, name="ticket_status"),
        default=TicketStatus.OPEN,
        nullable=False,
    )
    button_clicked: Mapped[ButtonTag | None] = mapped_column(
        _enum_type(ButtonTag, name="button_tag"), nullable=True
    )
    responded_by: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("contacts.id", ondelete="SET NULL"), nullable=True
    )
    reminder_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_reminder_at: Mapped[datetime | None] = mapped_column(nullable=True)
    resolved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    closure_note: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)  # inbound alert text
    initial_message_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=_utcnow, nullable=False)

    lift: Mapped["Lift"] = relationship(back_populates="tickets")
    responder: Mapped["Contact | None"] = relationship()
    correlations: Mapped[list["MessageCorrelation"]] = relationship(back_populates="ticket")


class MessageCorrelation(Base):
    """
    Provider message id -> (ticket, contact, kind).

    Written once per outbound message that can be replied to; never updated.
    """

    __tablename__ = "message_correlations"
    __table_args__ = (Index("idx_message_correlations_ticket", "ticket_id"),)

    message_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    ticket_id: Mapped[int] = mapped_column(
        ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False
    )
    contact_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("contacts.id", ondelete="CASCADE"), nullable=False
    )
    kind: Mapped[MessageKind] = mapped_column(
        _enum_type(MessageKind, name="message_kind"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(default=_utcnow, nullable=False)

    ticket: Mapped["Ticket"] = relationship(back_populates="correlations")
