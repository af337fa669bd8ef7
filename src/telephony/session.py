"""Per-connection media session state machine.

The transition function is pure: it maps (session, signal) to the next
session and the side effects the owning connection has to carry out. It is
usable without any transport attached.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class SessionState(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    CLOSED = "closed"


@dataclass(frozen=True, slots=True)
class Session:
    id: str | None = None
    state: SessionState = SessionState.PENDING

    @property
    def is_streaming(self) -> bool:
        return self.state is SessionState.ACTIVE and bool(self.id)


@dataclass(frozen=True, slots=True)
class StartSignal:
    stream_sid: str


@dataclass(frozen=True, slots=True)
class MediaSignal:
    pass


@dataclass(frozen=True, slots=True)
class StopSignal:
    pass


@dataclass(frozen=True, slots=True)
class TransportClosedSignal:
    pass


Signal = StartSignal | MediaSignal | StopSignal | TransportClosedSignal


@dataclass(frozen=True, slots=True)
class StartPlayback:
    stream_sid: str


@dataclass(frozen=True, slots=True)
class CancelPlayback:
    pass


Effect = StartPlayback | CancelPlayback


@dataclass(frozen=True, slots=True)
class Transition:
    session: Session
    effects: tuple[Effect, ...] = ()


def transition(session: Session, signal: Signal) -> Transition:
    """Compute the next session state and its side effects."""

    if session.state is SessionState.CLOSED:
        return Transition(session)

    if isinstance(signal, StartSignal):
        # The id is assigned once; a repeated start on an active session is a no-op.
        if session.state is not SessionState.PENDING or not signal.stream_sid:
            return Transition(session)
        started = Session(id=signal.stream_sid, state=SessionState.ACTIVE)
        return Transition(started, (StartPlayback(signal.stream_sid),))

    if isinstance(signal, (StopSignal, TransportClosedSignal)):
        closed = Session(id=session.id, state=SessionState.CLOSED)
        return Transition(closed, (CancelPlayback(),))

    return Transition(session)


@dataclass(slots=True)
class SessionLifecycle:
    """Mutable holder for the current `Session` of one connection."""

    current: Session = field(default_factory=Session)

    @property
    def is_streaming(self) -> bool:
        return self.current.is_streaming

    def apply(self, signal: Signal) -> tuple[Effect, ...]:
        result = transition(self.current, signal)
        self.current = result.session
        return result.effects
