"""Webhooks router - WhatsApp button clicks and delivery statuses."""

import logging

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from liftalert.core.deps import get_db, get_gateway, get_inbound_buffer
from liftalert.core.inbound_buffer import InboundBuffer
from liftalert.core.rate_limit import limiter, webhook_limit
from liftalert.services.webhooks.registry import get_handler
from liftalert.services.whatsapp_gateway import MessagingGateway

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/whatsapp")
async def verify_whatsapp_webhook(
    mode: str = Query(None, alias="hub.mode"),
    token: str = Query(None, alias="hub.verify_token"),
    challenge: str = Query(None, alias="hub.challenge"),
):
    """Subscription handshake: echo hub.challenge as plain text."""
    return get_handler("whatsapp").verify(mode, token, challenge)


@router.post("/whatsapp")
@limiter.limit(webhook_limit)
async def receive_whatsapp_webhook(
    request: Request,
    db: Session = Depends(get_db),
    gateway: MessagingGateway = Depends(get_gateway),
    buffer: InboundBuffer = Depends(get_inbound_buffer),
):
    """
    Receive button clicks from WhatsApp.

    Always 200 once the signature checks out, so the provider never
    retries; resolution failures are audited instead.
    """
    return await get_handler("whatsapp").handle(request, db, gateway=gateway, buffer=buffer)
