from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Protocol

from telephony.frames import FRAME_MS, build_media_message, iter_frames
from telephony.session import SessionLifecycle

LOGGER = logging.getLogger(__name__)


class TransportClosedError(Exception):
    """Raised by a transport when a frame can no longer be delivered."""


class MediaTransport(Protocol):
    @property
    def is_open(self) -> bool: ...

    async def send_text(self, data: str) -> None: ...


class PacingOutcome(str, Enum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    SESSION_INACTIVE = "session_inactive"
    TRANSPORT_CLOSED = "transport_closed"


class PacingHandle:
    """Handle on one scheduled pacing task.

    `cancel()` is idempotent and takes effect before the next frame is sent.
    """

    def __init__(self) -> None:
        self.frames_sent = 0
        self._task: asyncio.Task[PacingOutcome] | None = None

    def _attach(self, task: asyncio.Task[PacingOutcome]) -> None:
        self._task = task

    @property
    def done(self) -> bool:
        return self._task is None or self._task.done()

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def wait(self) -> PacingOutcome:
        if self._task is None:
            return PacingOutcome.CANCELLED
        await asyncio.wait({self._task})
        if self._task.cancelled():
            return PacingOutcome.CANCELLED
        return self._task.result()


class FramePacer:
    """Deliver an encoded buffer to a transport in fixed 20 ms frames.

    One pacer belongs to one connection. Starting a new delivery cancels
    the previous one, so at most one pacing task is live per session.
    Deadlines are taken from the task start (`start + k * period`) rather
    than from the previous send, which keeps cumulative drift bounded.
    """

    def __init__(self, *, frame_seconds: float = FRAME_MS / 1000) -> None:
        self._frame_seconds = frame_seconds
        self._handle: PacingHandle | None = None

    @property
    def active(self) -> PacingHandle | None:
        if self._handle is None or self._handle.done:
            return None
        return self._handle

    def start(
        self,
        encoded: bytes,
        lifecycle: SessionLifecycle,
        transport: MediaTransport,
    ) -> PacingHandle:
        self.cancel()

        handle = PacingHandle()
        task = asyncio.get_running_loop().create_task(
            self._deliver(encoded, lifecycle, transport, handle)
        )
        handle._attach(task)  # noqa: SLF001
        self._handle = handle
        return handle

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()

    async def _deliver(
        self,
        encoded: bytes,
        lifecycle: SessionLifecycle,
        transport: MediaTransport,
        handle: PacingHandle,
    ) -> PacingOutcome:
        loop = asyncio.get_running_loop()
        started = loop.time()

        for tick, frame in enumerate(iter_frames(encoded), start=1):
            delay = started + tick * self._frame_seconds - loop.time()
            if delay > 0:
                await asyncio.sleep(delay)

            if not transport.is_open:
                LOGGER.debug("Transport closed; pacing stopped after %s frames", handle.frames_sent)
                return PacingOutcome.TRANSPORT_CLOSED

            session = lifecycle.current
            if not session.is_streaming:
                LOGGER.debug("Session %s not active; pacing stopped", session.id)
                return PacingOutcome.SESSION_INACTIVE

            try:
                await transport.send_text(build_media_message(session.id, frame))
            except TransportClosedError:
                LOGGER.debug("Send failed; pacing stopped after %s frames", handle.frames_sent)
                return PacingOutcome.TRANSPORT_CLOSED
            except Exception:
                LOGGER.exception("Unexpected transport failure; pacing stopped")
                return PacingOutcome.TRANSPORT_CLOSED

            handle.frames_sent += 1

        return PacingOutcome.COMPLETED
