"""WhatsApp Cloud API webhook handler."""

from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import HTTPException, Request
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session

from liftalert.core.config import settings
from liftalert.core.inbound_buffer import InboundBuffer
from liftalert.core.security import verify_hmac_signature
from liftalert.core.structured_logging import build_log_context
from liftalert.db.enums import EventType
from liftalert.services import correlation_service, event_service
from liftalert.services.button_click_service import ButtonClickEvent, dispatch_button_click
from liftalert.services.whatsapp_gateway import MessagingGateway

logger = logging.getLogger(__name__)

MAX_PAYLOAD_BYTES = 1_000_000


def _iter_values(data: Any):
    if not isinstance(data, dict):
        return
    for entry in data.get("entry") or []:
        if not isinstance(entry, dict):
            continue
        for change in entry.get("changes") or []:
            if not isinstance(change, dict):
                continue
            value = change.get("value")
            if isinstance(value, dict):
                yield value


def _click_from_message(message: dict) -> ButtonClickEvent | None:
    from_phone = message.get("from")
    if not from_phone:
        return None
    msg_type = message.get("type")
    context_id = (message.get("context") or {}).get("id")
    button_id = None
    button_text = None

    if msg_type == "interactive":
        interactive = message.get("interactive") or {}
        reply = interactive.get("button_reply") or interactive.get("list_reply") or {}
        button_id = reply.get("id")
        button_text = reply.get("title")
    elif msg_type == "button":
        # Template quick-reply buttons
        button = message.get("button") or {}
        button_id = button.get("payload")
        button_text = button.get("text")
    elif msg_type == "text":
        button_text = (message.get("text") or {}).get("body")
    else:
        return None

    if not button_id and not button_text:
        return None
    return ButtonClickEvent(
        from_phone=str(from_phone),
        button_id=button_id,
        button_text=button_text,
        context_message_id=context_id,
        provider_message_id=message.get("id"),
    )


def parse_whatsapp_payload(data: Any) -> list[ButtonClickEvent]:
    """
    Extract button clicks (and legacy free-text replies) from a webhook body.

    Interactive `button_reply`, template quick-reply `button` and plain `text`
    messages become events; media, reactions and status callbacks do not.
    """
    events: list[ButtonClickEvent] = []
    for value in _iter_values(data):
        for message in value.get("messages") or []:
            if not isinstance(message, dict):
                continue
            event = _click_from_message(message)
            if event is not None:
                events.append(event)
    return events


def parse_status_updates(data: Any) -> list[dict[str, Any]]:
    """Delivery status callbacks (sent / delivered / read / failed)."""
    updates: list[dict[str, Any]] = []
    for value in _iter_values(data):
        for status in value.get("statuses") or []:
            if isinstance(status, dict) and status.get("id") and status.get("status"):
                updates.append(
                    {
                        "message_id": status["id"],
                        "status": status["status"],
                        "recipient_id": status.get("recipient_id"),
                        "errors": status.get("errors"),
                    }
                )
    return updates


class WhatsAppWebhookHandler:
    def verify(self, mode: str | None, token: str | None, challenge: str | None):
        """
        Subscription handshake.

        The Cloud API sends a GET with hub.mode / hub.verify_token /
        hub.challenge and expects the challenge echoed back as plain text.
        """
        if (
            mode == "subscribe"
            and settings.WHATSAPP_VERIFY_TOKEN
            and token == settings.WHATSAPP_VERIFY_TOKEN
        ):
            return PlainTextResponse(challenge or "")

        logger.warning("WhatsApp webhook verification failed: mode=%s", mode)
        raise HTTPException(status_code=403, detail="Verification failed")

    async def handle(
        self,
        request: Request,
        db: Session,
        *,
        gateway: MessagingGateway,
        buffer: InboundBuffer | None = None,
    ) -> dict:
        """
        Receive button clicks and status callbacks.

        Security:
        - Validates X-Hub-Signature-256 when WHATSAPP_APP_SECRET is set
        - Validates payload size

        Processing:
        - Always acknowledges 200 past the security checks so the provider
          never retries; every per-event failure is isolated and audited
        """
        body = await request.body()
        if len(body) > MAX_PAYLOAD_BYTES:
            raise HTTPException(413, "Payload too large")

        if settings.WHATSAPP_APP_SECRET:
            signature = request.headers.get("X-Hub-Signature-256", "")
            if not verify_hmac_signature(body, signature, settings.WHATSAPP_APP_SECRET):
                logger.warning("WhatsApp webhook invalid or missing signature")
                raise HTTPException(403, "Invalid signature")

        try:
            data = json.loads(body) if body else {}
        except json.JSONDecodeError:
            logger.warning("WhatsApp webhook: body is not JSON, acknowledging")
            return {"status": "ok", "ignored": True, "reason": "invalid_json"}

        clicks = parse_whatsapp_payload(data)
        statuses = parse_status_updates(data)
        outcomes: list[dict] = []

        for click in clicks:
            if buffer is not None:
                buffer.record("whatsapp", {"from": click.from_phone, **click.as_dict()})
            try:
                outcome = await dispatch_button_click(db, gateway, click)
                outcomes.append(outcome.as_dict())
            except Exception as exc:
                db.rollback()
                logger.exception(
                    "WhatsApp webhook: button click dispatch failed",
                    extra=build_log_context(
                        message_id=click.provider_message_id, msisdn=click.from_phone
                    ),
                )
                event_service.log_event(
                    db,
                    EventType.WEBHOOK_EVENT_ERROR,
                    details={"error": f"{type(exc).__name__}: {exc}", **click.as_dict()},
                )
                db.commit()
                outcomes.append({"outcome": "error"})

        statuses_recorded = self._record_statuses(db, statuses)

        return {
            "status": "ok",
            "processed": len(clicks),
            "outcomes": outcomes,
            "statuses_recorded": statuses_recorded,
        }

    def _record_statuses(self, db: Session, statuses: list[dict[str, Any]]) -> int:
        recorded = 0
        for update in statuses:
            record = correlation_service.get_by_message_id(db, update["message_id"])
            if record is None:
                continue
            event_service.log_event(
                db,
                EventType.MESSAGE_STATUS,
                ticket_id=record.ticket_id,
                contact_id=record.contact_id,
                details={**update, "kind": record.kind.value},
            )
            recorded += 1
        if recorded:
            db.commit()
        return recorded
