"""PCM conversion utilities."""
from __future__ import annotations

import base64
import binascii

import numpy as np

from spec import PCM16_NEGATIVE_SCALE, PCM16_POSITIVE_SCALE


def float32_to_pcm16le(samples: np.ndarray) -> bytes:
    """
    Convert float samples to PCM16 little-endian mono bytes.

    Samples are clamped to [-1.0, 1.0] first. Negative values scale by
    32768 and positive values by 32767 so both extremes stay in range.
    """
    clipped = np.clip(np.asarray(samples, dtype=np.float32), -1.0, 1.0)
    scaled = np.where(
        clipped < 0,
        clipped * PCM16_NEGATIVE_SCALE,
        clipped * PCM16_POSITIVE_SCALE,
    )
    return scaled.astype("<i2").tobytes()


def pcm16le_to_float32(pcm_bytes: bytes) -> np.ndarray:
    """
    Convert PCM16 little-endian mono bytes to float32 in [-1.0, 1.0).

    No resampling. No channel mixing.
    """
    if len(pcm_bytes) % 2 != 0:
        # Truncated trailing sample
        pcm_bytes = pcm_bytes[: len(pcm_bytes) - 1]

    audio_i16 = np.frombuffer(pcm_bytes, dtype="<i2")
    return audio_i16.astype(np.float32) / PCM16_NEGATIVE_SCALE


def pcm16_to_base64(pcm_bytes: bytes) -> str:
    """Encode raw PCM bytes for the JSON wire boundary."""
    return base64.b64encode(pcm_bytes).decode("ascii")


def base64_to_pcm16(data: str) -> bytes:
    """
    Decode a base64 audio payload from the wire.

    Raises:
        ValueError if the payload is not valid base64.
    """
    try:
        return base64.b64decode(data, validate=True)
    except binascii.Error as e:
        raise ValueError(f"invalid base64 audio payload: {e}") from e
