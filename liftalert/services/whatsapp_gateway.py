"""WhatsApp Cloud API gateway.

Handles:
- Template, plain text and interactive button sends
- Error taxonomy: GatewayAuthError vs GatewaySendFailed
- Fixed per-call timeout, no transport-level retry (the reminder scheduler
  owns retries at ticket granularity)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Protocol, Sequence

import httpx

from liftalert.core.config import settings
from liftalert.core.structured_logging import build_log_context

logger = logging.getLogger(__name__)

# WhatsApp rejects reply button titles longer than this
MAX_BUTTON_TITLE = 20


class GatewayError(Exception):
    """Base exception for outbound messaging failures."""

    def __init__(self, message: str, *, status_code: int | None = None, body: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class GatewayAuthError(GatewayError):
    """Missing or rejected credential."""

    pass


class GatewaySendFailed(GatewayError):
    """Non-2xx response, timeout or network error."""

    pass


@dataclass(frozen=True)
class ReplyButton:
    id: str
    title: str


class MessagingGateway(Protocol):
    async def send_template(
        self, to: str, template_name: str, language_code: str, body_param: str
    ) -> str:
        """Send an approved template with one body parameter; returns provider message id."""

    async def send_text(self, to: str, text: str) -> str:
        """Send a plain text message; returns provider message id."""

    async def send_interactive(
        self, to: str, body_text: str, buttons: Sequence[ReplyButton]
    ) -> str:
        """Send an interactive reply-button message; returns provider message id."""


class WhatsAppGateway:
    """MessagingGateway backed by the WhatsApp Cloud (Graph) API."""

    def __init__(
        self,
        *,
        base_url: str | None = None,
        api_version: str | None = None,
        phone_number_id: str | None = None,
        access_token: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url or settings.WHATSAPP_API_BASE).rstrip("/")
        self.api_version = api_version or settings.WHATSAPP_API_VERSION
        self.phone_number_id = (
            phone_number_id if phone_number_id is not None else settings.WHATSAPP_PHONE_NUMBER_ID
        )
        self.access_token = (
            access_token if access_token is not None else settings.WHATSAPP_ACCESS_TOKEN
        )
        self.timeout = timeout if timeout is not None else settings.GATEWAY_TIMEOUT_SECONDS
        self._transport = transport

    @property
    def messages_url(self) -> str:
        return f"{self.base_url}/{self.api_version}/{self.phone_number_id}/messages"

    async def send_template(
        self, to: str, template_name: str, language_code: str, body_param: str
    ) -> str:
        template: dict[str, Any] = {"name": template_name, "language": {"code": language_code}}
        if body_param:
            template["components"] = [
                {"type": "body", "parameters": [{"type": "text", "text": body_param}]}
            ]
        return await self._post(to, {"type": "template", "template": template})

    async def send_text(self, to: str, text: str) -> str:
        return await self._post(to, {"type": "text", "text": {"body": text}})

    async def send_interactive(
        self, to: str, body_text: str, buttons: Sequence[ReplyButton]
    ) -> str:
        interactive = {
            "type": "button",
            "body": {"text": body_text},
            "action": {
                "buttons": [
                    {
                        "type": "reply",
                        "reply": {"id": button.id, "title": button.title[:MAX_BUTTON_TITLE]},
                    }
                    for button in buttons
                ]
            },
        }
        return await self._post(to, {"type": "interactive", "interactive": interactive})

    async def _post(self, to: str, message: dict[str, Any]) -> str:
        if not self.access_token:
            raise GatewayAuthError("missing WHATSAPP_ACCESS_TOKEN")
        if not self.phone_number_id:
            raise GatewayAuthError("missing WHATSAPP_PHONE_NUMBER_ID")

        payload = {"messaging_product": "whatsapp", "to": to, **message}
        headers = {"Authorization": f"Bearer {self.access_token}"}

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.post(self.messages_url, json=payload, headers=headers)
        except httpx.TimeoutException as exc:
            raise GatewaySendFailed(f"whatsapp_timeout: {type(exc).__name__}") from exc
        except httpx.RequestError as exc:
            raise GatewaySendFailed(f"whatsapp_request_failed: {type(exc).__name__}") from exc

        try:
            body = response.json() if response.content else {}
        except ValueError:
            body = {"raw": response.text[:500]}

        if response.status_code in (401, 403):
            raise GatewayAuthError(
                "whatsapp_auth", status_code=response.status_code, body=body
            )
        if not 200 <= response.status_code < 300:
            raise GatewaySendFailed(
                f"whatsapp_non_2xx_{response.status_code}",
                status_code=response.status_code,
                body=body,
            )

        message_id = _extract_message_id(body)
        if not message_id:
            raise GatewaySendFailed(
                "whatsapp_missing_message_id", status_code=response.status_code, body=body
            )

        logger.info(
            "WhatsApp %s message accepted",
            message["type"],
            extra=build_log_context(message_id=message_id, msisdn=to),
        )
        return message_id


def _extract_message_id(body: Any) -> str | None:
    if not isinstance(body, dict):
        return None
    messages = body.get("messages") or []
    if messages and isinstance(messages[0], dict) and messages[0].get("id"):
        return str(messages[0]["id"])
    return None
