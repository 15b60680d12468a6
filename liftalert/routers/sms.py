"""Inbound SMS trigger from the lift emergency diallers."""

import json
import logging
import time

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.orm import Session

from liftalert.core.config import settings
from liftalert.core.deps import get_db, get_gateway, get_inbound_buffer
from liftalert.core.inbound_buffer import InboundBuffer
from liftalert.core.security import verify_hmac_signature
from liftalert.core.structured_logging import build_log_context
from liftalert.db.enums import EventType
from liftalert.schemas.alert import AlertAccepted, ErrorResponse, SmsTrigger
from liftalert.services import event_service
from liftalert.services.alert_service import AlertError, originate_alert
from liftalert.services.whatsapp_gateway import MessagingGateway

router = APIRouter()
logger = logging.getLogger(__name__)


def _error(status_code: int, code: str, message: str) -> JSONResponse:
    body = ErrorResponse(error={"code": code, "message": message})
    return JSONResponse(status_code=status_code, content=body.model_dump())


@router.post(
    "/inbound",
    status_code=202,
    response_model=AlertAccepted,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def receive_sms(
    request: Request,
    db: Session = Depends(get_db),
    gateway: MessagingGateway = Depends(get_gateway),
    buffer: InboundBuffer = Depends(get_inbound_buffer),
):
    """
    Open a ticket for the lift that sent the SMS and alert its contacts.

    Security:
    - Validates X-Signature (hex HMAC-SHA256 of the raw body) when
      SMS_HMAC_SECRET is set

    Responses:
    - 202 with per-contact send results (partial failure is still 202)
    - 400 VALIDATION_ERROR, 404 LIFT_NOT_FOUND, 422 NO_CONTACTS_LINKED
    """
    body = await request.body()

    if settings.SMS_HMAC_SECRET:
        signature = request.headers.get("X-Signature", "")
        if not verify_hmac_signature(body, signature, settings.SMS_HMAC_SECRET):
            logger.warning("SMS inbound: invalid signature")
            return _error(401, "INVALID_SIGNATURE", "Invalid signature")

    try:
        payload = json.loads(body) if body else {}
    except json.JSONDecodeError:
        return _error(400, "VALIDATION_ERROR", "Body must be JSON")
    if not isinstance(payload, dict):
        return _error(400, "VALIDATION_ERROR", "Body must be a JSON object")

    try:
        trigger = SmsTrigger.model_validate(payload)
    except ValidationError as exc:
        fields = sorted({str(err["loc"][0]) for err in exc.errors() if err.get("loc")})
        return _error(400, "VALIDATION_ERROR", f"Missing or invalid: {', '.join(fields)}")

    sms_id = trigger.id or f"sms-{int(time.time() * 1000)}"
    buffer.record("sms", {"id": sms_id, "phone": trigger.phone, "text": trigger.text})
    event_service.log_event(
        db,
        EventType.SMS_RECEIVED,
        details={"sms_id": sms_id, "phone": trigger.phone, "text_len": len(trigger.text)},
    )
    db.commit()

    try:
        result = await originate_alert(db, gateway, trigger.phone, trigger.text, sms_id)
    except AlertError as exc:
        logger.info(
            "SMS inbound rejected: %s",
            exc.code,
            extra=build_log_context(msisdn=trigger.phone, route="/sms/inbound"),
        )
        return _error(exc.status_code, exc.code, str(exc))

    return AlertAccepted(
        ticket_id=result.ticket.id,
        reference=result.ticket.reference,
        lift_id=result.lift.id,
        sms_id=sms_id,
        sent=result.sent_count,
        failed=result.failed_count,
        results=[r.as_dict() for r in result.results],
    )
