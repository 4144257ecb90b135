"""
Audio frame primitives.

Pure data containers only.
No behavior, no queues, no timing logic.
"""

from __future__ import annotations
from dataclasses import dataclass


@dataclass(frozen=True)
class AudioFrame:
    """
    One block of captured microphone audio, ready for the wire.

    sequence_num:
        Monotonic per capture run, starting at 1. Debugging only.

    pcm_bytes:
        Raw PCM16 little-endian mono samples.

    sample_rate_hz:
        Declared sample rate of pcm_bytes (16 kHz for capture).

    ts_ms:
        Wall-clock timestamp (milliseconds) when the block was captured.
        Observability only.
    """
    sequence_num: int
    pcm_bytes: bytes
    sample_rate_hz: int
    ts_ms: int

    @property
    def num_samples(self) -> int:
        """Number of PCM16 samples in the frame."""
        return len(self.pcm_bytes) // 2
