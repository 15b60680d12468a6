"""Lift directory ORM models: lifts, contacts and the links between them."""

from __future__ import annotations

from typing import TYPE_CHECKING

import uuid
from datetime import datetime, timezone

from sqlalchemy import ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from liftalert.db.base import Base

if TYPE_CHECKING:
    from liftalert.db.models import Ticket


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Lift(Base):
    """
    A physical elevator, addressed by the MSISDN of its emergency dialler.

    The MSISDN is stored digits-only so inbound numbers can be matched
    without formatting concerns.
    """

    __tablename__ = "lifts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    msisdn: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    site_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    building: Mapped[str | None] = mapped_column(String(255), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=_utcnow, nullable=False)

    contact_links: Mapped[list["LiftContact"]] = relationship(
        back_populates="lift", cascade="all, delete-orphan"
    )
    tickets: Mapped[list["Ticket"]] = relationship(back_populates="lift")

    @property
    def display_name(self) -> str:
        if self.site_name and self.building:
            return f"{self.site_name} - {self.building}"
        return self.building or self.site_name or f"Lift {self.id}"


class Contact(Base):
    """A person who can respond to alerts for one or more lifts."""

    __tablename__ = "contacts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    primary_msisdn: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    display_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    role: Mapped[str | None] = mapped_column(String(50), nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=_utcnow, nullable=False)

    lift_links: Mapped[list["LiftContact"]] = relationship(
        back_populates="contact", cascade="all, delete-orphan"
    )

    @property
    def name(self) -> str:
        return self.display_name or self.primary_msisdn


class LiftContact(Base):
    """Many-to-many link between lifts and contacts ("primary", "tenant", ...)."""

    __tablename__ = "lift_contacts"
    __table_args__ = (Index("idx_lift_contacts_contact", "contact_id"),)

    lift_id: Mapped[int] = mapped_column(
        ForeignKey("lifts.id", ondelete="CASCADE"), primary_key=True
    )
    contact_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("contacts.id", ondelete="CASCADE"), primary_key=True
    )
    relation: Mapped[str] = mapped_column(String(50), default="primary", nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=_utcnow, nullable=False)

    lift: Mapped["Lift"] = relationship(back_populates="contact_links")
    contact: Mapped["Contact"] = relationship(back_populates="lift_links")
