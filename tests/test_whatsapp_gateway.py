"""Tests for the WhatsApp Cloud API gateway using httpx.MockTransport."""

import json

import httpx
import pytest

from liftalert.services.whatsapp_gateway import (
    MAX_BUTTON_TITLE,
    GatewayAuthError,
    GatewaySendFailed,
    ReplyButton,
    WhatsAppGateway,
)


def _gateway(handler, **overrides) -> WhatsAppGateway:
    options = {
        "base_url": "https://graph.example.test/",
        "api_version": "v23.0",
        "phone_number_id": "1234567890",
        "access_token": "token-abc",
        "timeout": 5.0,
        "transport": httpx.MockTransport(handler),
    }
    options.update(overrides)
    return WhatsAppGateway(**options)


def _accepted(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, json={"messages": [{"id": "wamid.ABC"}]})


@pytest.mark.asyncio
async def test_template_send_returns_provider_id():
    seen = []

    def handler(request):
        seen.append(request)
        return _accepted(request)

    label = "Growthpoint - Block A (ticket GROW-00001)"
    gateway = _gateway(handler)
    message_id = await gateway.send_template("27821111111", "lift_emergency_alert", "en_US", label)

    assert message_id == "wamid.ABC"
    request = seen[0]
    assert str(request.url) == "https://graph.example.test/v23.0/1234567890/messages"
    assert request.headers["Authorization"] == "Bearer token-abc"
    body = json.loads(request.content)
    assert body["messaging_product"] == "whatsapp"
    assert body["to"] == "27821111111"
    assert body["template"]["name"] == "lift_emergency_alert"
    assert body["template"]["language"] == {"code": "en_US"}
    params = body["template"]["components"][0]["parameters"]
    assert params == [{"type": "text", "text": label}]


@pytest.mark.asyncio
async def test_text_send_body():
    seen = []

    def handler(request):
        seen.append(json.loads(request.content))
        return _accepted(request)

    await _gateway(handler).send_text("27822222222", "Ticket closed")

    assert seen[0]["type"] == "text"
    assert seen[0]["text"] == {"body": "Ticket closed"}


@pytest.mark.asyncio
async def test_interactive_button_titles_are_truncated():
    seen = []

    def handler(request):
        seen.append(json.loads(request.content))
        return _accepted(request)

    long_title = "Confirm everyone is out of the lift"
    await _gateway(handler).send_interactive(
        "27821111111", "Please confirm", [ReplyButton(id="entrapment_yes", title=long_title)]
    )

    button = seen[0]["interactive"]["action"]["buttons"][0]
    assert button["type"] == "reply"
    assert button["reply"]["id"] == "entrapment_yes"
    assert button["reply"]["title"] == long_title[:MAX_BUTTON_TITLE]
    assert seen[0]["interactive"]["body"] == {"text": "Please confirm"}


@pytest.mark.asyncio
@pytest.mark.parametrize("status_code", [401, 403])
async def test_rejected_credentials_raise_auth_error(status_code):
    def handler(request):
        return httpx.Response(status_code, json={"error": {"message": "Invalid OAuth token"}})

    with pytest.raises(GatewayAuthError) as exc_info:
        await _gateway(handler).send_text("27821111111", "hi")

    assert exc_info.value.status_code == status_code
    assert exc_info.value.body["error"]["message"] == "Invalid OAuth token"


@pytest.mark.asyncio
async def test_server_error_raises_send_failed():
    def handler(request):
        return httpx.Response(500, text="upstream broke")

    with pytest.raises(GatewaySendFailed) as exc_info:
        await _gateway(handler).send_text("27821111111", "hi")

    assert exc_info.value.status_code == 500
    assert exc_info.value.body == {"raw": "upstream broke"}


@pytest.mark.asyncio
async def test_missing_message_id_is_a_failure():
    def handler(request):
        return httpx.Response(200, json={"messages": []})

    with pytest.raises(GatewaySendFailed, match="missing_message_id"):
        await _gateway(handler).send_text("27821111111", "hi")


@pytest.mark.asyncio
async def test_timeout_is_a_send_failure():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(GatewaySendFailed, match="timeout"):
        await _gateway(handler).send_text("27821111111", "hi")


@pytest.mark.asyncio
async def test_connection_error_is_a_send_failure():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(GatewaySendFailed, match="request_failed"):
        await _gateway(handler).send_text("27821111111", "hi")


@pytest.mark.asyncio
async def test_missing_token_fails_before_any_request():
    calls = []

    def handler(request):
        calls.append(request)
        return _accepted(request)

    with pytest.raises(GatewayAuthError):
        await _gateway(handler, access_token="").send_text("27821111111", "hi")
    with pytest.raises(GatewayAuthError):
        await _gateway(handler, phone_number_id="").send_text("27821111111", "hi")

    assert calls == []
