"""Tests for button click dispatch: ticket resolution and transitions."""

from datetime import timedelta

import pytest
from sqlalchemy import select

from liftalert.core.config import settings
from liftalert.db.enums import ButtonTag, EventType, MatchType, MessageKind, TicketStatus
from liftalert.db.models import MessageCorrelation, Ticket
from liftalert.services import event_service
from liftalert.services.alert_service import originate_alert
from liftalert.services.button_click_service import ButtonClickEvent, dispatch_button_click

from tests.conftest import (
    A_MSISDN,
    B_MSISDN,
    C_MSISDN,
    LIFT_MSISDN,
    NOW,
    OTHER_LIFT_MSISDN,
)


async def _open(db, gateway, msisdn=LIFT_MSISDN, at=NOW) -> Ticket:
    result = await originate_alert(db, gateway, msisdn, "help", f"sms-{msisdn}-{at}", now=at)
    return result.ticket


def _message_id(db, ticket_id, contact_id, kind=MessageKind.INITIAL) -> str:
    return db.execute(
        select(MessageCorrelation.message_id).where(
            MessageCorrelation.ticket_id == ticket_id,
            MessageCorrelation.contact_id == contact_id,
            MessageCorrelation.kind == kind,
        )
    ).scalar_one()


def _click(from_phone, button_id=None, text=None, context=None) -> ButtonClickEvent:
    return ButtonClickEvent(
        from_phone=from_phone,
        button_id=button_id,
        button_text=text,
        context_message_id=context,
    )


# =============================================================================
# Closing transitions
# =============================================================================

@pytest.mark.asyncio
async def test_test_button_closes_and_notifies_all_contacts(db, gateway, directory):
    ticket = await _open(db, gateway)
    context = _message_id(db, ticket.id, directory.contact_a.id)
    gateway.reset()

    outcome = await dispatch_button_click(
        db, gateway, _click(A_MSISDN, "test", "Test", context), now=NOW + timedelta(minutes=2)
    )

    assert outcome.outcome == "closed"
    assert outcome.match_type == MatchType.CORRELATION
    db.refresh(ticket)
    assert ticket.status == TicketStatus.CLOSED
    assert ticket.button_clicked == ButtonTag.TEST
    assert ticket.responded_by == directory.contact_a.id
    assert ticket.resolved_at is not None
    assert ticket.closure_note is None
    assert sorted(gateway.recipients("text")) == sorted([A_MSISDN, B_MSISDN])
    assert "Test alert resolved" in gateway.delivered("text")[0].payload["text"]


@pytest.mark.asyncio
async def test_service_text_maps_to_maintenance(db, gateway, directory):
    ticket = await _open(db, gateway)
    context = _message_id(db, ticket.id, directory.contact_b.id)

    outcome = await dispatch_button_click(
        db, gateway, _click(B_MSISDN, None, "Service", context), now=NOW + timedelta(minutes=1)
    )

    assert outcome.outcome == "closed"
    db.refresh(ticket)
    assert ticket.button_clicked == ButtonTag.MAINTENANCE
    assert ticket.responded_by == directory.contact_b.id


@pytest.mark.asyncio
async def test_broadcast_failure_for_one_contact_does_not_abort(db, gateway, directory):
    ticket = await _open(db, gateway)
    context = _message_id(db, ticket.id, directory.contact_a.id)
    gateway.reset()
    gateway.fail_for.add(B_MSISDN)

    outcome = await dispatch_button_click(
        db, gateway, _click(A_MSISDN, "maintenance", None, context), now=NOW
    )

    assert outcome.outcome == "closed"
    assert gateway.recipients("text") == [A_MSISDN]
    assert event_service.list_events(
        db, ticket_id=ticket.id, event_type=EventType.NOTIFICATION_FAILED
    )


# =============================================================================
# Entrapment confirmation flow
# =============================================================================

@pytest.mark.asyncio
async def test_entrapment_waits_for_confirmation(db, gateway, directory):
    ticket = await _open(db, gateway)
    context = _message_id(db, ticket.id, directory.contact_a.id)
    gateway.reset()
    clicked_at = NOW + timedelta(minutes=3)

    outcome = await dispatch_button_click(
        db, gateway, _click(A_MSISDN, "entrapment", "Entrapment", context), now=clicked_at
    )

    assert outcome.outcome == "awaiting_confirmation"
    db.refresh(ticket)
    assert ticket.status == TicketStatus.OPEN
    assert ticket.button_clicked == ButtonTag.ENTRAPMENT_AWAITING_CONFIRMATION
    assert ticket.reminder_count == 0
    assert ticket.responded_by == directory.contact_a.id
    assert ticket.last_reminder_at.replace(tzinfo=None) == clicked_at.replace(tzinfo=None)

    prompts = gateway.delivered("interactive")
    assert [p.to for p in prompts] == [A_MSISDN]
    assert prompts[0].payload["buttons"] == [("entrapment_yes", "YES")]
    assert gateway.delivered("text") == []

    followup = _message_id(db, ticket.id, directory.contact_a.id, MessageKind.ENTRAPMENT_FOLLOWUP)
    assert followup == prompts[0].message_id


@pytest.mark.asyncio
async def test_yes_on_followup_closes_entrapment(db, gateway, directory):
    ticket = await _open(db, gateway)
    context = _message_id(db, ticket.id, directory.contact_a.id)
    await dispatch_button_click(db, gateway, _click(A_MSISDN, "entrapment", None, context), now=NOW)
    followup = _message_id(db, ticket.id, directory.contact_a.id, MessageKind.ENTRAPMENT_FOLLOWUP)
    gateway.reset()

    outcome = await dispatch_button_click(
        db, gateway, _click(A_MSISDN, "entrapment_yes", "YES", followup),
        now=NOW + timedelta(minutes=4),
    )

    assert outcome.outcome == "closed"
    assert outcome.match_type == MatchType.CORRELATION
    db.refresh(ticket)
    assert ticket.status == TicketStatus.CLOSED
    assert ticket.button_clicked == ButtonTag.ENTRAPMENT_YES
    assert sorted(gateway.recipients("text")) == sorted([A_MSISDN, B_MSISDN])


@pytest.mark.asyncio
async def test_yes_takes_precedence_over_entrapment_in_text(db, gateway, directory):
    ticket = await _open(db, gateway)
    context = _message_id(db, ticket.id, directory.contact_a.id)

    outcome = await dispatch_button_click(
        db, gateway, _click(A_MSISDN, None, "Entrapment - YES", context), now=NOW
    )

    assert outcome.outcome == "closed"
    db.refresh(ticket)
    assert ticket.button_clicked == ButtonTag.ENTRAPMENT_YES


# =============================================================================
# Ticket resolution
# =============================================================================

@pytest.mark.asyncio
async def test_correlation_picks_exact_ticket_among_open_tickets(db, gateway, directory):
    older = await _open(db, gateway, LIFT_MSISDN, NOW)
    newer = await _open(db, gateway, OTHER_LIFT_MSISDN, NOW + timedelta(minutes=1))
    context = _message_id(db, older.id, directory.contact_a.id)

    outcome = await dispatch_button_click(
        db, gateway, _click(A_MSISDN, "test", None, context), now=NOW + timedelta(minutes=2)
    )

    assert outcome.ticket_id == older.id
    db.refresh(older)
    db.refresh(newer)
    assert older.status == TicketStatus.CLOSED
    assert newer.status == TicketStatus.OPEN


@pytest.mark.asyncio
async def test_heuristic_picks_most_recent_and_flags_ambiguity(db, gateway, directory):
    older = await _open(db, gateway, LIFT_MSISDN, NOW)
    newer = await _open(db, gateway, OTHER_LIFT_MSISDN, NOW + timedelta(minutes=1))

    outcome = await dispatch_button_click(
        db, gateway, _click(A_MSISDN, "test"), now=NOW + timedelta(minutes=2)
    )

    # Degraded fallback: most recent open ticket wins, which may not be what A meant
    assert outcome.match_type == MatchType.HEURISTIC
    assert outcome.ticket_id == newer.id
    db.refresh(older)
    assert older.status == TicketStatus.OPEN

    ambiguous = event_service.list_events(db, event_type=EventType.AMBIGUOUS_TICKET_MATCH)
    assert len(ambiguous) == 1
    assert ambiguous[0].details["candidate_ticket_ids"] == [newer.id, older.id]


@pytest.mark.asyncio
async def test_strict_matching_rejects_ambiguous_click(db, gateway, directory, monkeypatch):
    monkeypatch.setattr(settings, "STRICT_TICKET_MATCHING", True)
    first = await _open(db, gateway, LIFT_MSISDN, NOW)
    second = await _open(db, gateway, OTHER_LIFT_MSISDN, NOW + timedelta(minutes=1))
    gateway.reset()

    outcome = await dispatch_button_click(
        db, gateway, _click(A_MSISDN, "test"), now=NOW + timedelta(minutes=2)
    )

    assert outcome.outcome == "ambiguous"
    assert outcome.match_type == MatchType.AMBIGUOUS
    db.refresh(first)
    db.refresh(second)
    assert first.status == TicketStatus.OPEN
    assert second.status == TicketStatus.OPEN
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_single_open_ticket_heuristic_is_not_ambiguous(db, gateway, directory):
    ticket = await _open(db, gateway)

    outcome = await dispatch_button_click(
        db, gateway, _click(B_MSISDN, "test", context="wamid.UNKNOWN"), now=NOW
    )

    assert outcome.match_type == MatchType.HEURISTIC
    assert outcome.ticket_id == ticket.id
    assert event_service.list_events(db, event_type=EventType.AMBIGUOUS_TICKET_MATCH) == []


@pytest.mark.asyncio
async def test_heuristic_ignores_tickets_outside_window(db, gateway, directory):
    ticket = await _open(db, gateway)
    later = NOW + timedelta(hours=settings.TICKET_MATCH_WINDOW_HOURS, minutes=1)

    outcome = await dispatch_button_click(db, gateway, _click(A_MSISDN, "test"), now=later)

    assert outcome.outcome == "ticket_not_found"
    db.refresh(ticket)
    assert ticket.status == TicketStatus.OPEN


# =============================================================================
# Closed tickets
# =============================================================================

@pytest.mark.asyncio
async def test_click_on_recently_closed_ticket_gets_informational_reply(db, gateway, directory):
    ticket = await _open(db, gateway)
    context = _message_id(db, ticket.id, directory.contact_b.id)
    await dispatch_button_click(db, gateway, _click(A_MSISDN, "test", None, _message_id(
        db, ticket.id, directory.contact_a.id)), now=NOW)
    db.refresh(ticket)
    resolved_at = ticket.resolved_at
    gateway.reset()

    outcome = await dispatch_button_click(
        db, gateway, _click(B_MSISDN, "maintenance", None, context),
        now=NOW + timedelta(minutes=10),
    )

    assert outcome.outcome == "already_closed"
    db.refresh(ticket)
    assert ticket.status == TicketStatus.CLOSED
    assert ticket.button_clicked == ButtonTag.TEST
    assert ticket.resolved_at == resolved_at
    assert gateway.recipients("text") == [B_MSISDN]
    assert "already been closed" in gateway.delivered("text")[0].payload["text"]


@pytest.mark.asyncio
async def test_click_on_long_closed_ticket_is_silent(db, gateway, directory):
    ticket = await _open(db, gateway)
    context = _message_id(db, ticket.id, directory.contact_a.id)
    await dispatch_button_click(db, gateway, _click(A_MSISDN, "test", None, context), now=NOW)
    gateway.reset()
    later = NOW + timedelta(minutes=settings.CLOSED_TICKET_WINDOW_MINUTES + 5)

    outcome = await dispatch_button_click(
        db, gateway, _click(A_MSISDN, "test", None, context), now=later
    )

    assert outcome.outcome == "ticket_not_found"
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_closed_correlation_hit_never_falls_through_to_heuristic(db, gateway, directory):
    closed = await _open(db, gateway, LIFT_MSISDN, NOW)
    context = _message_id(db, closed.id, directory.contact_a.id)
    await dispatch_button_click(db, gateway, _click(A_MSISDN, "test", None, context), now=NOW)
    still_open = await _open(db, gateway, OTHER_LIFT_MSISDN, NOW + timedelta(minutes=1))

    outcome = await dispatch_button_click(
        db, gateway, _click(A_MSISDN, "maintenance", None, context),
        now=NOW + timedelta(minutes=2),
    )

    assert outcome.outcome == "already_closed"
    assert outcome.ticket_id == closed.id
    db.refresh(still_open)
    assert still_open.status == TicketStatus.OPEN


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "button_id,text",
    [("no", "No"), (None, "what is going on?")],
)
async def test_non_closing_click_on_recently_closed_ticket_still_gets_reply(
    db, gateway, directory, button_id, text
):
    ticket = await _open(db, gateway)
    context = _message_id(db, ticket.id, directory.contact_a.id)
    await dispatch_button_click(db, gateway, _click(A_MSISDN, "test", None, context), now=NOW)
    gateway.reset()

    outcome = await dispatch_button_click(
        db, gateway, _click(A_MSISDN, button_id, text, context), now=NOW + timedelta(minutes=5)
    )

    assert outcome.outcome == "already_closed"
    assert outcome.ticket_id == ticket.id
    assert gateway.recipients("text") == [A_MSISDN]
    assert event_service.list_events(
        db, ticket_id=ticket.id, event_type=EventType.ALREADY_CLOSED_REPLY
    )
    db.refresh(ticket)
    assert ticket.button_clicked == ButtonTag.TEST


# =============================================================================
# Acknowledged no-ops
# =============================================================================

@pytest.mark.asyncio
async def test_unknown_contact_is_acknowledged_silently(db, gateway, directory):
    await _open(db, gateway)
    gateway.reset()

    outcome = await dispatch_button_click(db, gateway, _click("27990000000", "test"), now=NOW)

    assert outcome.outcome == "contact_not_found"
    assert gateway.calls == []
    assert event_service.list_events(db, event_type=EventType.CONTACT_NOT_FOUND)


@pytest.mark.asyncio
async def test_no_button_is_a_deprecated_no_op(db, gateway, directory):
    ticket = await _open(db, gateway)
    context = _message_id(db, ticket.id, directory.contact_a.id)
    gateway.reset()

    outcome = await dispatch_button_click(
        db, gateway, _click(A_MSISDN, "no", "No", context), now=NOW
    )

    assert outcome.outcome == "deprecated_button"
    db.refresh(ticket)
    assert ticket.status == TicketStatus.OPEN
    assert ticket.button_clicked is None
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_text_containing_no_does_not_close(db, gateway, directory):
    ticket = await _open(db, gateway)
    context = _message_id(db, ticket.id, directory.contact_a.id)
    gateway.reset()

    outcome = await dispatch_button_click(
        db, gateway, _click(A_MSISDN, None, "Maintenance now", context), now=NOW
    )

    assert outcome.outcome == "deprecated_button"
    assert outcome.match_type == MatchType.CORRELATION
    db.refresh(ticket)
    assert ticket.status == TicketStatus.OPEN
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_unrecognised_reply_is_logged_as_unknown(db, gateway, directory):
    ticket = await _open(db, gateway)

    outcome = await dispatch_button_click(
        db, gateway, _click(C_MSISDN, None, "what is going on?"), now=NOW
    )

    assert outcome.outcome == "unknown_button"
    db.refresh(ticket)
    assert ticket.status == TicketStatus.OPEN
    assert event_service.list_events(db, event_type=EventType.UNKNOWN_BUTTON)
