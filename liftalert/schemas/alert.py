"""Pydantic schemas for the inbound SMS alert trigger."""

from __future__ import annotations

from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

MAX_ALERT_TEXT = 1024


class SmsTrigger(BaseModel):
    """
    Inbound SMS from the lift dialler gateway.

    Gateways disagree on field names, so each field accepts the aliases seen
    in the wild.
    """

    model_config = ConfigDict(str_strip_whitespace=True, coerce_numbers_to_str=True)

    phone: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("phone", "phoneNumber", "to", "msisdn", "from"),
    )
    text: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("text", "incomingData", "IncomingData", "message", "body"),
    )
    id: str | None = Field(None, validation_alias=AliasChoices("id", "Id", "messageId", "reqId"))

    @field_validator("text")
    @classmethod
    def truncate_text(cls, value: str) -> str:
        return value[:MAX_ALERT_TEXT]


class ContactSendResultRead(BaseModel):
    contact_id: UUID
    name: str
    status: str
    message_id: str | None = None
    error: str | None = None


class AlertAccepted(BaseModel):
    """202 response for an accepted alert."""

    ok: bool = True
    ticket_id: int
    reference: str | None
    lift_id: int
    sms_id: str
    sent: int
    failed: int
    results: list[ContactSendResultRead]


class ErrorDetail(BaseModel):
    code: str
    message: str


class ErrorResponse(BaseModel):
    ok: bool = False
    error: ErrorDetail
