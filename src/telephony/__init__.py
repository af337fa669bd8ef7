"""Realtime outbound audio for telephony media streams.

Pipeline: tone source (PCM16 @ 8 kHz) -> G.711 mu-law codec -> 20 ms frame
pacer, gated by the per-connection session state machine.
"""
