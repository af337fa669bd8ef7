from __future__ import annotations

import base64
import json
from collections.abc import Iterator
from typing import Final

SAMPLE_RATE_HZ: Final[int] = 8000
FRAME_MS: Final[int] = 20
# One mu-law byte per sample.
FRAME_BYTES: Final[int] = SAMPLE_RATE_HZ * FRAME_MS // 1000


def iter_frames(encoded: bytes, frame_size: int = FRAME_BYTES) -> Iterator[bytes]:
    """Yield consecutive slices of `encoded`; the last one may be short."""

    for offset in range(0, len(encoded), frame_size):
        yield encoded[offset : offset + frame_size]


def build_media_message(stream_sid: str, frame: bytes) -> str:
    """Serialize one outbound Twilio Media Streams `media` message."""

    return json.dumps(
        {
            "event": "media",
            "streamSid": stream_sid,
            "media": {"payload": base64.b64encode(frame).decode("ascii")},
        }
    )
