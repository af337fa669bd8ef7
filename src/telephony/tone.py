from __future__ import annotations

from typing import Final

import numpy as np

# 10 ms at 8 kHz.
FADE_SAMPLES: Final[int] = 80


def tone_sample_count(duration_ms: float, sample_rate_hz: int) -> int:
    return int(np.floor(duration_ms / 1000 * sample_rate_hz))


def fade_envelope(total_samples: int) -> np.ndarray:
    """Linear fade-in/fade-out gain over `FADE_SAMPLES` at both ends."""

    n = np.arange(total_samples, dtype=np.float64)
    attack = np.minimum(1.0, n / FADE_SAMPLES)
    release = np.minimum(1.0, (total_samples - n) / FADE_SAMPLES)
    return np.minimum(attack, release)


def generate_tone(
    frequency_hz: float,
    duration_ms: float,
    sample_rate_hz: int = 8000,
    amplitude: float = 0.35,
) -> np.ndarray:
    """Render a shaped sine tone as a mono PCM16 buffer.

    The result is deterministic for a given set of parameters. Samples are
    clamped to [-1, 1] before scaling to int16 and truncated toward zero.

    Raises:
        ValueError: for a negative duration, a non-positive sample rate or an
            amplitude outside [0, 1].
    """

    if duration_ms < 0:
        raise ValueError(f"Tone duration must be >= 0 ms, got {duration_ms}")
    if sample_rate_hz <= 0:
        raise ValueError(f"Sample rate must be > 0 Hz, got {sample_rate_hz}")
    if not 0.0 <= amplitude <= 1.0:
        raise ValueError(f"Amplitude must be within [0, 1], got {amplitude}")

    total = tone_sample_count(duration_ms, sample_rate_hz)
    if total == 0:
        return np.zeros(0, dtype=np.int16)

    n = np.arange(total, dtype=np.float64)
    wave = np.sin(2 * np.pi * frequency_hz * n / sample_rate_hz) * amplitude
    wave *= fade_envelope(total)

    return (np.clip(wave, -1.0, 1.0) * 32767).astype(np.int16)
