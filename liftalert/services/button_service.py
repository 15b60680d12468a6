"""Decode inbound button clicks and text replies into a ButtonAction.

Stable payload ids are decoded through an explicit table first. Legacy
text-only replies fall back to case-insensitive substring matching with a
fixed precedence: yes, no, test, maintenance/service, entrapment.
"""

from __future__ import annotations

import re

from liftalert.db.enums import ButtonAction

# Payload ids we put on outbound buttons, plus the template quick-reply payloads.
PAYLOAD_IDS: dict[str, ButtonAction] = {
    "yes": ButtonAction.YES,
    "entrapment_yes": ButtonAction.YES,
    "confirm_yes": ButtonAction.YES,
    "no": ButtonAction.NO,
    "test": ButtonAction.TEST,
    "maintenance": ButtonAction.MAINTENANCE,
    "maint": ButtonAction.MAINTENANCE,
    "service": ButtonAction.MAINTENANCE,
    "entrapment": ButtonAction.ENTRAPMENT,
    "entrap": ButtonAction.ENTRAPMENT,
}

# Ids may carry a ticket reference prefix, e.g. "GROW-00042_entrap"
_PREFIXED_ID = re.compile(r"^[a-z0-9-]+_(?P<action>[a-z_]+)$")

# Order matters: "yes" before anything else so "entrapment yes" confirms,
# then "no" ahead of every closing action ("maintenance now" is a no-op).
_SUBSTRING_PRECEDENCE: tuple[tuple[ButtonAction, tuple[str, ...]], ...] = (
    (ButtonAction.YES, ("yes",)),
    (ButtonAction.NO, ("no",)),
    (ButtonAction.TEST, ("test",)),
    (ButtonAction.MAINTENANCE, ("maintenance", "service")),
    (ButtonAction.ENTRAPMENT, ("entrapment",)),
)


def decode_payload_id(button_id: str | None) -> ButtonAction | None:
    """Exact decode of a machine-readable payload id, or None if unrecognised."""
    if not button_id:
        return None
    key = button_id.strip().lower()
    if key in PAYLOAD_IDS:
        return PAYLOAD_IDS[key]
    match = _PREFIXED_ID.match(key)
    if match:
        return PAYLOAD_IDS.get(match.group("action"))
    return None


def match_text(value: str | None) -> ButtonAction:
    """Legacy substring decode for display text and free-text replies."""
    if not value:
        return ButtonAction.UNKNOWN
    text = value.strip().lower()
    for action, needles in _SUBSTRING_PRECEDENCE:
        if any(needle in text for needle in needles):
            return action
    return ButtonAction.UNKNOWN


def decode_button(button_id: str | None, button_text: str | None = None) -> ButtonAction:
    """
    Payload id preferred, display text as fallback.

    An id we don't recognise is still run through the substring matcher
    before falling back to the display text.
    """
    action = decode_payload_id(button_id)
    if action is not None:
        return action
    action = match_text(button_id)
    if action is not ButtonAction.UNKNOWN:
        return action
    return match_text(button_text)
