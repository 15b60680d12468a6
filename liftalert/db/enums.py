"""Enum definitions for application constants."""

from enum import Enum


class TicketStatus(str, Enum):
    """Ticket lifecycle status. `closed` is terminal."""
    OPEN = "open"
    CLOSED = "closed"


class ButtonTag(str, Enum):
    """
    Outcome recorded on `Ticket.button_clicked`.

    NULL while awaiting any response; ENTRAPMENT_AWAITING_CONFIRMATION while
    the nested YES confirmation is pending; the rest are terminal.
    """
    TEST = "test"
    MAINTENANCE = "maintenance"
    ENTRAPMENT_AWAITING_CONFIRMATION = "entrapment_awaiting_confirmation"
    ENTRAPMENT_YES = "entrapment_yes"

    @property
    def is_terminal(self) -> bool:
        return self != ButtonTag.ENTRAPMENT_AWAITING_CONFIRMATION


class MessageKind(str, Enum):
    """Kind of outbound message a correlation record points at."""
    INITIAL = "initial"
    ENTRAPMENT_FOLLOWUP = "entrapment_followup"
    REMINDER = "reminder"
    ENTRAPMENT_REMINDER = "entrapment_reminder"


class ButtonAction(str, Enum):
    """Decoded meaning of an inbound button click or text reply."""
    YES = "yes"
    NO = "no"
    TEST = "test"
    MAINTENANCE = "maintenance"
    ENTRAPMENT = "entrapment"
    UNKNOWN = "unknown"


class SendStatus(str, Enum):
    """Per-contact fan-out result."""
    SENT = "sent"
    FAILED = "failed"


class MatchType(str, Enum):
    """How an inbound click was attributed to a ticket."""
    CORRELATION = "correlation"
    HEURISTIC = "heuristic"
    RECENTLY_CLOSED = "recently_closed"
    AMBIGUOUS = "ambiguous"
    NONE = "none"


class EventType(str, Enum):
    """Audit log event names."""
    SMS_RECEIVED = "sms_received"
    LIFT_NOT_FOUND = "lift_not_found"
    LIFT_RESOLVED = "lift_resolved"
    NO_CONTACTS_LINKED = "no_contacts_linked"
    CONTACTS_FOUND = "contacts_found"
    TICKET_CREATED = "ticket_created"
    ALERT_SENT = "alert_sent"
    ALERT_SEND_FAILED = "alert_send_failed"
    ALERT_BATCH_SUMMARY = "alert_batch_summary"

    BUTTON_CLICK_RECEIVED = "button_click_received"
    CONTACT_NOT_FOUND = "contact_not_found"
    TICKET_NOT_FOUND = "ticket_not_found"
    AMBIGUOUS_TICKET_MATCH = "ambiguous_ticket_match"
    ALREADY_CLOSED_REPLY = "already_closed_reply"
    UNKNOWN_BUTTON = "unknown_button"
    DEPRECATED_BUTTON = "deprecated_button"
    TICKET_CLOSED = "ticket_closed"
    ENTRAPMENT_FOLLOWUP_SENT = "entrapment_followup_sent"
    ENTRAPMENT_FOLLOWUP_FAILED = "entrapment_followup_failed"
    TRANSITION_CONFLICT = "transition_conflict"
    NOTIFICATION_SENT = "notification_sent"
    NOTIFICATION_FAILED = "notification_failed"
    MESSAGE_STATUS = "message_status"
    WEBHOOK_EVENT_ERROR = "webhook_event_error"

    REMINDER_SENT = "reminder_sent"
    REMINDER_FAILED = "reminder_failed"
    TICKET_AUTO_CLOSED = "ticket_auto_closed"
    REMINDER_SWEEP_ERROR = "reminder_sweep_error"
