"""Interface for inbound messaging-provider webhooks."""

from __future__ import annotations

from typing import Protocol

from fastapi import Request, Response
from sqlalchemy.orm import Session

from liftalert.core.inbound_buffer import InboundBuffer
from liftalert.services.whatsapp_gateway import MessagingGateway

WebhookResult = dict | Response


class WebhookHandler(Protocol):
    def verify(self, mode: str | None, token: str | None, challenge: str | None) -> Response:
        """Answer the provider's subscription handshake."""

    async def handle(
        self,
        request: Request,
        db: Session,
        *,
        gateway: MessagingGateway,
        buffer: InboundBuffer | None = None,
    ) -> WebhookResult:
        """Authenticate the request, then dispatch button clicks and delivery statuses."""
