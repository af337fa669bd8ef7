"""FastAPI routes exposed by the gateway."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from api.errors import GatewayError
from api.schemas import HealthResponse, OutboundCallResponse
from api.twilio_routes import get_twilio_cfg, get_twilio_client
from api.twilio_routes import router as twilio_router
from integrations.twilio_client import TwilioConfig, create_outbound_call

LOGGER = logging.getLogger(__name__)

router = APIRouter()
router.include_router(twilio_router)


@router.get("/", response_model=HealthResponse)
async def health() -> HealthResponse:
    return HealthResponse()


@router.get("/test-call", response_model=OutboundCallResponse)
async def test_call(
    twilio_client=Depends(get_twilio_client),
    cfg: TwilioConfig = Depends(get_twilio_cfg),
) -> OutboundCallResponse:
    """Ring the configured target number and connect it to the media stream."""

    try:
        call_sid = create_outbound_call(twilio_client, cfg)
    except GatewayError as exc:
        LOGGER.warning("Test call failed: %s", exc.detail)
        raise HTTPException(status_code=exc.status_code, detail=exc.detail) from exc
    return OutboundCallResponse(call_sid=call_sid)
