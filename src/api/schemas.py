"""API-facing Pydantic models."""

from __future__ import annotations

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    status: str = "ok"


class OutboundCallRequest(BaseModel):
    to_number: str | None = Field(
        default=None,
        description="E.164 phone number; defaults to TWILIO_TARGET_NUMBER.",
    )


class OutboundCallResponse(BaseModel):
    ok: bool = True
    call_sid: str
