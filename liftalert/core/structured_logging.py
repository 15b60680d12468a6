"""Structured logging helpers (phone numbers masked)."""

import logging
from typing import Any


def mask_msisdn(msisdn: str | None) -> str:
    """Keep the country prefix and last three digits of a phone number."""
    if not msisdn:
        return ""
    if len(msisdn) <= 6:
        return "***" + msisdn[-2:]
    return f"{msisdn[:3]}***{msisdn[-3:]}"


def build_log_context(
    *,
    ticket_id: int | None = None,
    lift_id: int | None = None,
    contact_id: str | None = None,
    message_id: str | None = None,
    msisdn: str | None = None,
    route: str | None = None,
    event: str | None = None,
) -> dict[str, Any]:
    """Return a log context dict for the `extra=` argument."""
    context: dict[str, Any] = {}
    if ticket_id is not None:
        context["ticket_id"] = ticket_id
    if lift_id is not None:
        context["lift_id"] = lift_id
    if contact_id:
        context["contact_id"] = str(contact_id)
    if message_id:
        context["message_id"] = message_id
    if msisdn:
        context["msisdn"] = mask_msisdn(msisdn)
    if route:
        context["route"] = route
    if event:
        context["event"] = event
    return context


def configure_logging(level: str = "INFO") -> None:
    """Fallback stdout logging for the API process and the worker."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
