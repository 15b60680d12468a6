"""Lift directory lookups."""

import re
import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session

from liftalert.db.models import Contact, Lift, LiftContact

MAX_MSISDN_DIGITS = 20


def normalize_msisdn(raw: str | None) -> str:
    """Digits only ("+27 82-123" -> "2782123"), WhatsApp "whatsapp:" prefixes dropped."""
    if not raw:
        return ""
    return re.sub(r"\D", "", str(raw))[:MAX_MSISDN_DIGITS]


def get_lift_by_msisdn(db: Session, msisdn: str) -> Lift | None:
    digits = normalize_msisdn(msisdn)
    if not digits:
        return None
    return db.execute(select(Lift).where(Lift.msisdn == digits)).scalar_one_or_none()


def get_contact_by_msisdn(db: Session, msisdn: str) -> Contact | None:
    digits = normalize_msisdn(msisdn)
    if not digits:
        return None
    return db.execute(
        select(Contact).where(Contact.primary_msisdn == digits)
    ).scalar_one_or_none()


def list_lift_contacts(db: Session, lift_id: int) -> list[Contact]:
    """Contacts linked to a lift, primary contacts first."""
    stmt = (
        select(Contact)
        .join(LiftContact, LiftContact.contact_id == Contact.id)
        .where(LiftContact.lift_id == lift_id)
        .order_by(LiftContact.relation, Contact.display_name, Contact.primary_msisdn)
    )
    return list(db.execute(stmt).scalars().all())


def list_contact_lift_ids(db: Session, contact_id: uuid.UUID) -> list[int]:
    stmt = select(LiftContact.lift_id).where(LiftContact.contact_id == contact_id)
    return list(db.execute(stmt).scalars().all())
