"""
Gapless playback scheduler for inbound model audio.

Responsibilities:
- Decode base64 PCM16 chunks into float32 units
- Place each unit on a strictly advancing cursor: start = max(cursor, now)
- Mix live units into the output device block by block
- Stop everything instantly on interruption

Clock model:
- The playback clock is the number of samples rendered to the device.
  It only advances inside render(), which the output callback drives.
- All positions are kept in samples; seconds are derived for reporting.

Threading:
- render() runs on the PortAudio thread; schedule()/interrupt() run on the
  event loop. A threading.Lock guards the unit set and the cursor.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Callable

import numpy as np

from audio.pcm import base64_to_pcm16, pcm16le_to_float32
from observability.logger import log_event
from spec import (
    AUDIO_CHANNELS,
    PLAYBACK_BLOCK_SAMPLES,
    PLAYBACK_SAMPLE_RATE_HZ,
    samples_to_seconds,
)


StreamFactory = Callable[..., Any]


def _default_output_stream(**kwargs: Any) -> Any:
    import sounddevice as sd  # pylint: disable=import-outside-toplevel
    return sd.OutputStream(**kwargs)


class SampleClock:
    """Playback clock measured in rendered samples."""

    def __init__(self, sample_rate_hz: int = PLAYBACK_SAMPLE_RATE_HZ) -> None:
        self.sample_rate_hz = sample_rate_hz
        self._samples: int = 0

    @property
    def samples(self) -> int:
        return self._samples

    def now(self) -> float:
        return samples_to_seconds(self._samples, self.sample_rate_hz)

    def advance(self, num_samples: int) -> None:
        if num_samples > 0:
            self._samples += num_samples


@dataclass(eq=False)
class ScheduledUnit:
    """One decoded chunk placed on the playback timeline."""
    start_sample: int
    samples: np.ndarray
    stopped: bool = False

    @property
    def end_sample(self) -> int:
        return self.start_sample + len(self.samples)


class AudioPlaybackScheduler:
    """
    Schedules inbound chunks back to back and renders them to the speaker.

    The output device is opened lazily on the first scheduled chunk. If it
    cannot be opened, the failure is logged once and chunks are still
    placed on the timeline but not kept for mixing.
    """

    def __init__(
        self,
        *,
        stream_factory: StreamFactory | None = None,
        sample_rate_hz: int = PLAYBACK_SAMPLE_RATE_HZ,
        block_samples: int = PLAYBACK_BLOCK_SAMPLES,
        open_device: bool = True,
    ) -> None:
        self._stream_factory = stream_factory or _default_output_stream
        self._block_samples = block_samples
        self._open_device = open_device

        self.clock = SampleClock(sample_rate_hz)
        self._cursor: int = 0
        self._live: set[ScheduledUnit] = set()
        self._lock = threading.Lock()

        self._stream: Any | None = None
        self._device_failed: bool = False

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def cursor_samples(self) -> int:
        return self._cursor

    @property
    def live_count(self) -> int:
        with self._lock:
            return len(self._live)

    # ------------------------------------------------------------------
    # Event-loop side
    # ------------------------------------------------------------------

    def schedule(self, data_b64: str) -> ScheduledUnit | None:
        """
        Decode one chunk and append it to the timeline.

        Returns the scheduled unit, or None when the payload is empty or
        undecodable (logged, never raised).
        """
        try:
            samples = pcm16le_to_float32(base64_to_pcm16(data_b64))
        except ValueError as e:
            log_event({
                "event_type": "PLAYBACK_DECODE_FAILED",
                "level": "WARNING",
                "error": str(e),
            })
            return None

        if samples.size == 0:
            return None

        self._ensure_output()

        with self._lock:
            start = max(self._cursor, self.clock.samples)
            unit = ScheduledUnit(start_sample=start, samples=samples)
            self._cursor = unit.end_sample
            # No device, no render(): the live set stays empty
            if not self._device_failed:
                self._live.add(unit)
        return unit

    def interrupt(self) -> int:
        """
        Stop every live unit and move the cursor to the current clock time.

        Returns the number of units that were cut off.
        """
        with self._lock:
            stopped = len(self._live)
            for unit in self._live:
                unit.stopped = True
            self._live.clear()
            self._cursor = self.clock.samples
        return stopped

    def stop_all(self) -> None:
        self.interrupt()

    def close(self) -> None:
        """Silence output and release the device. Idempotent."""
        self.interrupt()
        stream = self._stream
        self._stream = None
        if stream is None:
            return
        try:
            stream.stop()
            stream.close()
        except Exception as e:  # pylint: disable=broad-exception-caught
            log_event({
                "event_type": "PLAYBACK_RELEASE_FAILED",
                "level": "WARNING",
                "error": repr(e),
            })

    # ------------------------------------------------------------------
    # Audio-thread side
    # ------------------------------------------------------------------

    def render(self, num_samples: int) -> np.ndarray:
        """
        Mix the next `num_samples` of the timeline and advance the clock.

        Units that finish inside this block leave the live set.
        """
        out = np.zeros(num_samples, dtype=np.float32)
        with self._lock:
            t0 = self.clock.samples
            t1 = t0 + num_samples
            for unit in list(self._live):
                if unit.stopped:
                    self._live.discard(unit)
                    continue
                lo = max(unit.start_sample, t0)
                hi = min(unit.end_sample, t1)
                if hi > lo:
                    out[lo - t0:hi - t0] += unit.samples[
                        lo - unit.start_sample:hi - unit.start_sample
                    ]
                if unit.end_sample <= t1:
                    self._live.discard(unit)
            self.clock.advance(num_samples)
        return np.clip(out, -1.0, 1.0)

    def _on_block(
        self,
        outdata: np.ndarray,
        frames: int,
        time_info: Any,  # pylint: disable=unused-argument
        status: Any,  # pylint: disable=unused-argument
    ) -> None:
        outdata[:, 0] = self.render(frames)

    def _ensure_output(self) -> None:
        if not self._open_device or self._stream is not None or self._device_failed:
            return
        try:
            stream = self._stream_factory(
                samplerate=self.clock.sample_rate_hz,
                channels=AUDIO_CHANNELS,
                dtype="float32",
                blocksize=self._block_samples,
                callback=self._on_block,
            )
            stream.start()
        except Exception as e:  # pylint: disable=broad-exception-caught
            self._device_failed = True
            log_event({
                "event_type": "PLAYBACK_DEVICE_FAILED",
                "level": "ERROR",
                "error": repr(e),
            })
            return
        self._stream = stream
        log_event({
            "event_type": "PLAYBACK_STARTED",
            "sample_rate_hz": self.clock.sample_rate_hz,
        })
