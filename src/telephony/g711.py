from __future__ import annotations

from typing import Final

import numpy as np

ULAW_BIAS: Final[int] = 0x84
ULAW_CLIP: Final[int] = 32635


def encode_sample(sample: int) -> int:
    """Encode one linear PCM16 sample to a G.711 mu-law byte value."""

    sample = max(-32768, min(sample, 32767))
    sign = (sample >> 8) & 0x80
    if sign:
        sample = -sample
    sample = min(sample, ULAW_CLIP) + ULAW_BIAS

    exponent = 7
    exp_mask = 0x4000
    while not sample & exp_mask and exponent > 0:
        exponent -= 1
        exp_mask >>= 1

    mantissa = (sample >> (exponent + 3)) & 0x0F
    return ~(sign | (exponent << 4) | mantissa) & 0xFF


def ulaw_encode(pcm16: np.ndarray) -> bytes:
    """Encode PCM16 int16 array to G.711 mu-law bytes.

    Vectorized form of `encode_sample`; output is byte-for-byte identical
    and has one byte per input sample.
    """

    if pcm16.size == 0:
        return b""

    x = pcm16.astype(np.int32)
    sign = np.where(x < 0, 0x80, 0).astype(np.int32)
    x = np.abs(x)

    x = np.minimum(x, ULAW_CLIP) + ULAW_BIAS

    # Highest set bit among bits 7..14 of the biased magnitude.
    exponent = np.zeros_like(x)
    for exp in range(8):
        exponent = np.where(x >= (1 << (exp + 7)), exp, exponent)

    mantissa = (x >> (exponent + 3)) & 0x0F

    ulaw = np.bitwise_not(sign | (exponent << 4) | mantissa) & 0xFF
    return ulaw.astype(np.uint8).tobytes()
