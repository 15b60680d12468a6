"""FastAPI dependencies for database access, the messaging gateway and admin auth."""

from typing import Generator

from fastapi import Header, HTTPException, Request
from sqlalchemy.orm import Session

from liftalert.core.config import settings
from liftalert.core.inbound_buffer import InboundBuffer
from liftalert.core.security import verify_secret
from liftalert.db.session import SessionLocal
from liftalert.services.whatsapp_gateway import MessagingGateway, WhatsAppGateway


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a database session and ensures it's closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_gateway() -> MessagingGateway:
    """Outbound WhatsApp gateway built from settings (overridden in tests)."""
    return WhatsAppGateway()


def get_inbound_buffer(request: Request) -> InboundBuffer:
    buffer = getattr(request.app.state, "inbound_buffer", None)
    if buffer is None:
        buffer = InboundBuffer(settings.INBOUND_BUFFER_SIZE)
        request.app.state.inbound_buffer = buffer
    return buffer


def require_admin_token(x_admin_token: str | None = Header(default=None)) -> None:
    """
    Guard for operator read endpoints.

    Raises:
        HTTPException 501: ADMIN_TOKEN not configured
        HTTPException 403: header missing or wrong
    """
    if not settings.ADMIN_TOKEN:
        raise HTTPException(status_code=501, detail="ADMIN_TOKEN not configured")
    if not verify_secret(x_admin_token, settings.ADMIN_TOKEN):
        raise HTTPException(status_code=403, detail="Invalid admin token")


def require_internal_secret(x_internal_secret: str | None = Header(default=None)) -> None:
    """Guard for /internal/scheduled/* (external cron)."""
    if not settings.INTERNAL_SECRET:
        raise HTTPException(status_code=501, detail="INTERNAL_SECRET not configured")
    if not verify_secret(x_internal_secret, settings.INTERNAL_SECRET):
        raise HTTPException(status_code=403, detail="Invalid internal secret")
