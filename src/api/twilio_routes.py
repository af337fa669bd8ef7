"""Twilio Voice integration.

This module provides:
- Voice webhook (TwiML) that connects the call to the media stream WebSocket.
- Outbound call endpoint.
- The Media Streams WebSocket that plays the synthetic tone into the call.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import NoReturn
from xml.sax.saxutils import escape, quoteattr

from fastapi import APIRouter, Depends, HTTPException, Request, Response, WebSocket

from api.errors import GatewayError
from api.schemas import OutboundCallRequest, OutboundCallResponse
from config.settings import get_settings
from integrations.twilio_client import (
    TwilioConfig,
    build_twilio_client,
    create_outbound_call,
    get_twilio_config,
)
from integrations.twilio_streaming import MediaStreamAcceptor, PlaybackConfig

LOGGER = logging.getLogger(__name__)

router = APIRouter(prefix="/twilio", tags=["twilio"])


def _twiml_response(xml: str) -> Response:
    # Twilio expects application/xml
    return Response(content=xml, media_type="application/xml")


def _to_ws_url(http_url: str) -> str:
    if http_url.startswith("https://"):
        return "wss://" + http_url.removeprefix("https://")
    if http_url.startswith("http://"):
        return "ws://" + http_url.removeprefix("http://")
    return http_url


def _stream_url(request: Request) -> str:
    settings = get_settings()
    if settings.public_base_url:
        base = settings.public_base_url.rstrip("/")
    else:
        # Fallback to request host. This may not work behind proxies; prefer PUBLIC_BASE_URL.
        base = str(request.base_url).rstrip("/")
    return _to_ws_url(f"{base}/api/twilio/stream")


def _twiml_connect_stream(
    *,
    say_text: str,
    voice: str,
    language: str,
    pause_seconds: int,
    stream_url: str,
    track: str,
) -> str:
    say = escape(say_text)
    pause = max(0, int(pause_seconds))
    return (
        "<?xml version=\"1.0\" encoding=\"UTF-8\"?>"
        "<Response>"
        f"<Say voice={quoteattr(voice)} language={quoteattr(language)}>{say}</Say>"
        f"<Pause length=\"{pause}\"/>"
        "<Connect>"
        f"<Stream url={quoteattr(stream_url)} track={quoteattr(track)}/>"
        "</Connect>"
        "</Response>"
    )


def _twiml_invalid_mode() -> str:
    return (
        "<?xml version=\"1.0\" encoding=\"UTF-8\"?>"
        "<Response>"
        "<Say>Invalid mode</Say>"
        "</Response>"
    )


@router.api_route("/voice", methods=["GET", "POST"])
async def twilio_voice_webhook(request: Request, mode: str = "outbound") -> Response:
    settings = get_settings()
    LOGGER.info("Voice webhook mode=%s", mode)

    if mode != "outbound":
        return _twiml_response(_twiml_invalid_mode())

    return _twiml_response(
        _twiml_connect_stream(
            say_text=settings.twilio_say_text,
            voice=settings.twilio_say_voice,
            language=settings.twilio_say_language,
            pause_seconds=settings.twilio_connect_pause_seconds,
            stream_url=_stream_url(request),
            track=settings.twilio_stream_track,
        )
    )


@lru_cache(maxsize=1)
def _acceptor_factory() -> MediaStreamAcceptor:
    return MediaStreamAcceptor(PlaybackConfig.from_settings(get_settings()))


def get_media_stream_acceptor() -> MediaStreamAcceptor:
    return _acceptor_factory()


@router.websocket("/stream")
async def twilio_media_stream(
    websocket: WebSocket,
    acceptor: MediaStreamAcceptor = Depends(get_media_stream_acceptor),
) -> None:
    await acceptor.serve(websocket)


def _raise_http(exc: GatewayError) -> NoReturn:
    LOGGER.warning("Twilio call-control failed: %s", exc.detail)
    raise HTTPException(status_code=exc.status_code, detail=exc.detail) from exc


def get_twilio_cfg() -> TwilioConfig:
    try:
        return get_twilio_config()
    except GatewayError as exc:
        _raise_http(exc)


def get_twilio_client(cfg: TwilioConfig = Depends(get_twilio_cfg)):
    return build_twilio_client(cfg)


@router.post("/calls", response_model=OutboundCallResponse)
async def create_call(
    payload: OutboundCallRequest,
    twilio_client=Depends(get_twilio_client),
    cfg: TwilioConfig = Depends(get_twilio_cfg),
) -> OutboundCallResponse:
    try:
        call_sid = create_outbound_call(twilio_client, cfg, payload.to_number)
    except GatewayError as exc:
        _raise_http(exc)
    return OutboundCallResponse(call_sid=call_sid)
