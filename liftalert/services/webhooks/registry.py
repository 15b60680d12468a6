"""Provider name -> webhook handler."""

from __future__ import annotations

from liftalert.services.webhooks.base import WebhookHandler
from liftalert.services.webhooks.whatsapp import WhatsAppWebhookHandler

_HANDLERS: dict[str, WebhookHandler] = {
    "whatsapp": WhatsAppWebhookHandler(),
}


def get_handler(provider: str) -> WebhookHandler:
    handler = _HANDLERS.get(provider)
    if handler is None:
        raise KeyError(f"No webhook handler for provider: {provider}")
    return handler
