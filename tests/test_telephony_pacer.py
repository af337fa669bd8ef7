from __future__ import annotations

import asyncio
import base64
import json
import statistics

from telephony.frames import FRAME_BYTES, build_media_message, iter_frames
from telephony.pacer import FramePacer, PacingOutcome
from telephony.session import SessionLifecycle, StartSignal, StopSignal


def _run(coro):
    return asyncio.run(coro)


def _active_lifecycle(stream_sid: str = "CA123") -> SessionLifecycle:
    lifecycle = SessionLifecycle()
    lifecycle.apply(StartSignal(stream_sid))
    return lifecycle


def _payloads(transport) -> list[bytes]:
    return [base64.b64decode(json.loads(m)["media"]["payload"]) for m in transport.sent]


def test_frame_size_is_20ms_at_8khz() -> None:
    assert FRAME_BYTES == 160


def test_iter_frames_sends_short_tail_and_no_empty_frame() -> None:
    assert [len(f) for f in iter_frames(bytes(400))] == [160, 160, 80]
    assert [len(f) for f in iter_frames(bytes(320))] == [160, 160]
    assert list(iter_frames(b"")) == []


def test_build_media_message_shape() -> None:
    message = json.loads(build_media_message("CA123", b"\xff\x00"))

    assert message == {"event": "media", "streamSid": "CA123", "media": {"payload": "/wA="}}


def test_pacer_delivers_all_frames_in_order(transport) -> None:
    encoded = bytes(i % 256 for i in range(4800 + 17))

    async def scenario():
        handle = FramePacer(frame_seconds=0.001).start(encoded, _active_lifecycle(), transport)
        return handle, await handle.wait()

    handle, outcome = _run(scenario())

    assert outcome is PacingOutcome.COMPLETED
    assert handle.frames_sent == 31
    payloads = _payloads(transport)
    assert [len(p) for p in payloads] == [160] * 30 + [17]
    assert b"".join(payloads) == encoded
    assert all(json.loads(m)["streamSid"] == "CA123" for m in transport.sent)


def test_pacer_keeps_20ms_cadence(transport) -> None:
    async def scenario():
        loop = asyncio.get_running_loop()
        started = loop.time()
        handle = FramePacer().start(bytes(160 * 10), _active_lifecycle(), transport)
        await handle.wait()
        return started

    started = _run(scenario())

    assert len(transport.sent_at) == 10
    intervals = [b - a for a, b in zip(transport.sent_at, transport.sent_at[1:])]
    assert 0.018 <= statistics.median(intervals) <= 0.022
    assert max(intervals) <= 0.035
    # Deadlines are anchored to the start, so the total does not accumulate drift.
    assert 0.19 <= transport.sent_at[-1] - started <= 0.215


def test_pacer_cadence_follows_frame_period(transport) -> None:
    async def scenario():
        loop = asyncio.get_running_loop()
        started = loop.time()
        handle = FramePacer(frame_seconds=0.025).start(bytes(160 * 10), _active_lifecycle(), transport)
        await handle.wait()
        return started

    started = _run(scenario())

    # A 25 ms period lands outside the 20 ms window checked above.
    assert transport.sent_at[-1] - started >= 0.245


def test_pacer_absorbs_unexpected_send_errors() -> None:
    class BrokenTransport:
        is_open = True

        async def send_text(self, data: str) -> None:
            raise RuntimeError("socket exploded")

    async def scenario():
        handle = FramePacer(frame_seconds=0.001).start(bytes(480), _active_lifecycle(), BrokenTransport())
        return handle, await handle.wait()

    handle, outcome = _run(scenario())

    assert outcome is PacingOutcome.TRANSPORT_CLOSED
    assert handle.frames_sent == 0


def test_pacer_declines_inactive_session(transport) -> None:
    async def scenario():
        handle = FramePacer(frame_seconds=0.001).start(bytes(480), SessionLifecycle(), transport)
        return await handle.wait()

    assert _run(scenario()) is PacingOutcome.SESSION_INACTIVE
    assert transport.sent == []


def test_pacer_stops_when_transport_closes(transport) -> None:
    transport.fail_after = 2

    async def scenario():
        handle = FramePacer(frame_seconds=0.001).start(bytes(1600), _active_lifecycle(), transport)
        return handle, await handle.wait()

    handle, outcome = _run(scenario())

    assert outcome is PacingOutcome.TRANSPORT_CLOSED
    assert handle.frames_sent == 2
    assert len(transport.sent) == 2


def test_pacer_checks_transport_before_each_frame(transport) -> None:
    transport.is_open = False

    async def scenario():
        handle = FramePacer(frame_seconds=0.001).start(bytes(480), _active_lifecycle(), transport)
        return await handle.wait()

    assert _run(scenario()) is PacingOutcome.TRANSPORT_CLOSED
    assert transport.sent == []


def test_stop_after_frame_k_prevents_frame_k_plus_one(transport) -> None:
    lifecycle = _active_lifecycle()

    async def scenario():
        handle = FramePacer(frame_seconds=0.005).start(bytes(160 * 20), lifecycle, transport)
        while len(transport.sent) < 3:
            await asyncio.sleep(0.001)
        lifecycle.apply(StopSignal())
        sent_at_stop = len(transport.sent)
        outcome = await handle.wait()
        return sent_at_stop, outcome

    sent_at_stop, outcome = _run(scenario())

    assert outcome is PacingOutcome.SESSION_INACTIVE
    assert len(transport.sent) == sent_at_stop


def test_cancel_is_immediate_and_idempotent(transport) -> None:
    async def scenario():
        handle = FramePacer(frame_seconds=0.005).start(bytes(160 * 20), _active_lifecycle(), transport)
        while len(transport.sent) < 2:
            await asyncio.sleep(0.001)
        handle.cancel()
        sent_at_cancel = len(transport.sent)
        handle.cancel()
        outcome = await handle.wait()
        await asyncio.sleep(0.02)
        return handle, sent_at_cancel, outcome

    handle, sent_at_cancel, outcome = _run(scenario())

    assert outcome is PacingOutcome.CANCELLED
    assert handle.done
    assert len(transport.sent) == sent_at_cancel


def test_new_start_cancels_previous_task(transport) -> None:
    lifecycle = _active_lifecycle()

    async def scenario():
        pacer = FramePacer(frame_seconds=0.002)
        first = pacer.start(b"\x01" * 1600, lifecycle, transport)
        second = pacer.start(b"\x02" * 320, lifecycle, transport)
        return pacer, await first.wait(), await second.wait()

    pacer, first_outcome, second_outcome = _run(scenario())

    assert first_outcome is PacingOutcome.CANCELLED
    assert second_outcome is PacingOutcome.COMPLETED
    assert _payloads(transport) == [b"\x02" * 160, b"\x02" * 160]
    assert pacer.active is None


def test_empty_buffer_completes_without_frames(transport) -> None:
    async def scenario():
        return await FramePacer().start(b"", _active_lifecycle(), transport).wait()

    assert _run(scenario()) is PacingOutcome.COMPLETED
    assert transport.sent == []
