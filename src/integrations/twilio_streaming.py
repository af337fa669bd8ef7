from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any

from starlette.websockets import WebSocket, WebSocketDisconnect, WebSocketState

from config.settings import Settings
from telephony.frames import SAMPLE_RATE_HZ
from telephony.g711 import ulaw_encode
from telephony.pacer import FramePacer, MediaTransport, PacingHandle, TransportClosedError
from telephony.session import (
    CancelPlayback,
    MediaSignal,
    Session,
    SessionLifecycle,
    Signal,
    StartPlayback,
    StartSignal,
    StopSignal,
    TransportClosedSignal,
)
from telephony.tone import generate_tone

LOGGER = logging.getLogger(__name__)


def parse_twilio_ws_message(text: str | bytes) -> dict[str, Any] | None:
    """Parse a Media Streams message; anything but a JSON object yields None."""

    try:
        message = json.loads(text)
    except (TypeError, ValueError):
        return None
    if not isinstance(message, dict):
        return None
    return message


def signal_from_message(message: dict[str, Any]) -> Signal | None:
    event = message.get("event")
    if event == "start":
        start = message.get("start")
        stream_sid = start.get("streamSid") if isinstance(start, dict) else None
        if isinstance(stream_sid, str) and stream_sid:
            return StartSignal(stream_sid=stream_sid)
        return None
    if event == "media":
        return MediaSignal()
    if event == "stop":
        return StopSignal()
    return None


@dataclass(frozen=True, slots=True)
class PlaybackConfig:
    frequency_hz: float = 440.0
    duration_ms: float = 600.0
    amplitude: float = 0.35
    warmup_ms: int = 150

    @classmethod
    def from_settings(cls, settings: Settings) -> PlaybackConfig:
        return cls(
            frequency_hz=settings.tone_frequency_hz,
            duration_ms=settings.tone_duration_ms,
            amplitude=settings.tone_amplitude,
            warmup_ms=settings.media_warmup_ms,
        )

    def render(self) -> bytes:
        pcm = generate_tone(
            self.frequency_hz,
            self.duration_ms,
            sample_rate_hz=SAMPLE_RATE_HZ,
            amplitude=self.amplitude,
        )
        return ulaw_encode(pcm)


class WebSocketTransport:
    """`MediaTransport` over a Starlette/FastAPI WebSocket."""

    def __init__(self, websocket: WebSocket) -> None:
        self._websocket = websocket
        self._closed = False

    @property
    def is_open(self) -> bool:
        return (
            not self._closed
            and self._websocket.client_state == WebSocketState.CONNECTED
            and self._websocket.application_state == WebSocketState.CONNECTED
        )

    def mark_closed(self) -> None:
        self._closed = True

    async def send_text(self, data: str) -> None:
        try:
            await self._websocket.send_text(data)
        except (WebSocketDisconnect, RuntimeError, OSError) as exc:
            self._closed = True
            raise TransportClosedError(str(exc)) from exc


class MediaStreamConnection:
    """One media stream: its session, its pacer and the warm-up before playback.

    Inbound messages are handled synchronously; the only awaiting work is the
    warm-up delay and the pacer task, both cancelled on stop or close.
    """

    def __init__(
        self,
        transport: MediaTransport,
        playback: PlaybackConfig,
        *,
        pacer: FramePacer | None = None,
    ) -> None:
        self.transport = transport
        self.playback = playback
        self.lifecycle = SessionLifecycle()
        self.pacer = pacer or FramePacer()
        self._warmup: asyncio.Task | None = None
        self._pacing: PacingHandle | None = None

    @property
    def session(self) -> Session:
        return self.lifecycle.current

    def handle_text(self, text: str | bytes) -> None:
        message = parse_twilio_ws_message(text)
        if message is None:
            LOGGER.debug("Dropping malformed media stream message")
            return
        signal = signal_from_message(message)
        if signal is None:
            LOGGER.debug("Ignoring media stream event %r", message.get("event"))
            return
        self.handle_signal(signal)

    def handle_signal(self, signal: Signal) -> None:
        for effect in self.lifecycle.apply(signal):
            if isinstance(effect, StartPlayback):
                LOGGER.info("Media stream started streamSid=%s", effect.stream_sid)
                self._schedule_playback()
            elif isinstance(effect, CancelPlayback):
                LOGGER.info(
                    "Media stream closed streamSid=%s (%s)",
                    self.session.id,
                    type(signal).__name__,
                )
                self.cancel_playback()

    def transport_closed(self) -> None:
        self.handle_signal(TransportClosedSignal())

    def cancel_playback(self) -> None:
        if self._warmup is not None and not self._warmup.done():
            self._warmup.cancel()
        self.pacer.cancel()

    async def wait_playback(self) -> PacingHandle | None:
        """Wait until the warm-up and any pacing task have finished."""

        if self._warmup is not None:
            await asyncio.wait({self._warmup})
        if self._pacing is not None:
            await self._pacing.wait()
        return self._pacing

    def _schedule_playback(self) -> None:
        self.cancel_playback()
        self._warmup = asyncio.get_running_loop().create_task(self._play_after_warmup())

    async def _play_after_warmup(self) -> None:
        if self.playback.warmup_ms:
            await asyncio.sleep(self.playback.warmup_ms / 1000)
        if not self.lifecycle.is_streaming:
            return

        encoded = self.playback.render()
        self._pacing = self.pacer.start(encoded, self.lifecycle, self.transport)
        outcome = await self._pacing.wait()
        LOGGER.info(
            "Playback for streamSid=%s finished: %s (%s frames)",
            self.session.id,
            outcome.value,
            self._pacing.frames_sent,
        )


class MediaStreamAcceptor:
    """Accepts media stream WebSockets, one isolated connection each."""

    def __init__(self, playback: PlaybackConfig) -> None:
        self._playback = playback

    def open_connection(self, transport: MediaTransport) -> MediaStreamConnection:
        return MediaStreamConnection(transport, self._playback)

    async def serve(self, websocket: WebSocket) -> MediaStreamConnection:
        await websocket.accept()
        transport = WebSocketTransport(websocket)
        connection = self.open_connection(transport)
        LOGGER.info("Media stream WebSocket connected")

        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
                text = message.get("text")
                if text is None:
                    # Binary frames are not part of the Media Streams protocol.
                    LOGGER.debug("Dropping binary media stream frame")
                    continue
                connection.handle_text(text)
        except WebSocketDisconnect:
            pass
        finally:
            transport.mark_closed()
            connection.transport_closed()
            LOGGER.info("Media stream WebSocket closed")

        return connection
